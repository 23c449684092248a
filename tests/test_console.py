import io

import pytest

from tinyfs.console import BACKSPACE, CgaScreen, Console, cformat
from tinyfs.layout import FsPanic


def test_cformat_decimal_and_hex():
    assert cformat("%d", -5) == "-5"
    assert cformat("%d %d", 0, 42) == "0 42"
    assert cformat("%x", 255) == "ff"
    assert cformat("%x", -1) == "ffffffff"


def test_cformat_strings_and_unknown():
    assert cformat("%s!", "hi") == "hi!"
    assert cformat("%s", None) == "(null)"
    assert cformat("100%%") == "100%"
    assert cformat("%q") == "%q"
    assert cformat("end%") == "end"


def test_cformat_errors():
    with pytest.raises(TypeError):
        cformat("%d")
    with pytest.raises(FsPanic):
        cformat(None)


def test_line_read():
    con = Console()
    con.interrupt("hi\n")
    assert con.read(None, 10) == b"hi\n"


def test_carriage_return_becomes_newline():
    con = Console()
    con.interrupt("ok\r")
    assert con.read(None, 10) == b"ok\n"


def test_backspace_and_kill_line():
    con = Console()
    con.interrupt("abx\x7f\n")
    assert con.read(None, 10) == b"ab\n"
    con.interrupt("abc\x15de\n")
    assert con.read(None, 10) == b"de\n"


def test_ctrl_d_ends_input():
    con = Console()
    con.interrupt("ab\x04")
    assert con.read(None, 10) == b"ab"
    assert con.read(None, 10) == b""


def test_read_stops_at_n():
    con = Console()
    con.interrupt("abcdef\n")
    assert con.read(None, 3) == b"abc"
    assert con.read(None, 10) == b"def\n"


def test_full_buffer_completes_line():
    con = Console()
    con.interrupt("a" * 200)
    assert con.read(None, 128) == b"a" * 128


def test_echo_to_stream_and_screen():
    out = io.StringIO()
    con = Console(output=out)
    con.interrupt("ab\x7f")
    assert out.getvalue() == "ab\b \b"
    assert con.screen.text() == "a"


def test_procdump_callback():
    calls = []
    con = Console(on_procdump=lambda: calls.append(True))
    con.interrupt("\x10")
    assert calls == [True]


def test_cprintf_and_write():
    out = io.StringIO()
    con = Console(output=out)
    con.cprintf("pid %d\n", 7)
    assert con.write(None, b"ok") == 2
    assert out.getvalue() == "pid 7\nok"
    assert con.screen.text() == "pid 7\nok"


def test_screen_scrolls():
    screen = CgaScreen()
    for i in range(30):
        for ch in f"line{i}\n":
            screen.putc(ch)
    lines = screen.text().splitlines()
    assert lines[-1] == "line29"
    assert "line0" not in lines
    assert len(lines) < 25


def test_screen_backspace_at_origin_stays():
    screen = CgaScreen()
    screen.putc(BACKSPACE)
    assert screen.pos == 0
    screen.putc("x")
    screen.putc(BACKSPACE)
    assert screen.pos == 0