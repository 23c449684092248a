import io

import pytest

from tinyfs.filesystem import FileSystem
from tinyfs.layout import DIRSIZ, ROOTINO, FileType
from tinyfs.ls import fmtname, ls, main
from tinyfs.memdisk import MemDisk
from tinyfs.mkfs import ImageBuilder


def _image() -> bytes:
    builder = ImageBuilder()
    builder.add_file("README", b"hello")
    builder.add_file("_cat", b"x" * 600)
    return builder.finish()


@pytest.fixture
def fs():
    return FileSystem(MemDisk(_image()))


def _run(fs, path):
    out, err = io.StringIO(), io.StringIO()
    ls(fs, path, out, err)
    return out.getvalue(), err.getvalue()


def _rows(text):
    return {fields[0]: [int(x) for x in fields[1:]]
            for fields in (line.split() for line in text.splitlines())}


def test_fmtname_pads_last_element():
    name = fmtname("dir/sub/cat")
    assert len(name) == DIRSIZ
    assert name.rstrip() == "cat"


def test_fmtname_keeps_long_names():
    assert fmtname("x/" + "n" * 20) == "n" * 20


def test_ls_root_lists_entries(fs):
    out, err = _run(fs, "/")
    rows = _rows(out)
    assert err == ""
    assert set(rows) == {".", "..", "README", "cat"}
    assert rows["README"] == [FileType.FILE, rows["README"][1], 5]
    assert rows["cat"][0] == FileType.FILE
    assert rows["cat"][2] == 600
    assert rows["."][0] == FileType.DIR
    assert rows["."][1] == ROOTINO
    assert rows[".."][1] == rows["."][1]


def test_ls_default_dot_is_root(fs):
    assert _rows(_run(fs, ".")[0]) == _rows(_run(fs, "/")[0])


def test_ls_single_file(fs):
    out, err = _run(fs, "/README")
    lines = out.splitlines()
    assert len(lines) == 1
    fields = lines[0].split()
    assert fields[0] == "README"
    assert int(fields[3]) == 5
    assert err == ""


def test_ls_missing_path(fs):
    out, err = _run(fs, "/nope")
    assert err == "ls: cannot open /nope\n"
    assert out == ""


def test_ls_path_too_long(fs):
    out, _ = _run(fs, "/" * 500)
    assert out == "ls: path too long\n"


def test_ls_repeated_does_not_leak_inodes(fs):
    first = _run(fs, "/")
    for _ in range(60):
        assert _run(fs, "/") == first


def test_main_lists_image(tmp_path, capsys):
    image = tmp_path / "fs.img"
    image.write_bytes(_image())
    assert main([str(image)]) == 0
    assert "README" in capsys.readouterr().out


def test_main_usage(capsys):
    assert main([]) == 1
    assert "usage" in capsys.readouterr().err