import io

import pytest

from tinyfs.commands import cat, cat_main, echo, echo_main


class _ShortWriter:
    def write(self, data):
        return 0


class _FailingReader:
    def read(self, n):
        raise OSError("device gone")


def test_cat_copies_everything():
    data = bytes(range(256)) * 5
    out = io.BytesIO()
    cat(io.BytesIO(data), out)
    assert out.getvalue() == data


def test_cat_empty_input():
    out = io.BytesIO()
    cat(io.BytesIO(b""), out)
    assert out.getvalue() == b""


def test_cat_short_write_raises():
    with pytest.raises(OSError, match="cat: write error"):
        cat(io.BytesIO(b"data"), _ShortWriter())


def test_cat_read_error_raises():
    with pytest.raises(OSError, match="cat: read error"):
        cat(_FailingReader(), io.BytesIO())


def test_echo_joins_arguments():
    out = io.StringIO()
    echo(["hello", "world"], out)
    assert out.getvalue() == "hello" + " " + "world" + "\n"


def test_echo_without_arguments_prints_nothing():
    out = io.StringIO()
    echo([], out)
    assert out.getvalue() == ""


def test_echo_main(capsys):
    assert echo_main(["a", "b"]) == 0
    assert capsys.readouterr().out == "a b\n"


def test_cat_main_concatenates(tmp_path, capsysbinary):
    first = tmp_path / "first"
    second = tmp_path / "second"
    first.write_bytes(b"alpha\n")
    second.write_bytes(b"beta\n")
    assert cat_main([str(first), str(second)]) == 0
    assert capsysbinary.readouterr().out == b"alpha\n" + b"beta\n"


def test_cat_main_missing_file(tmp_path, capsysbinary):
    assert cat_main([str(tmp_path / "missing")]) == 1
    assert b"cat: cannot open" in capsysbinary.readouterr().out