import io

import pytest

from tinyfs.fmt import format_user, fprintf


@pytest.mark.parametrize("n", [0, 7, -42, 2**31 - 1, -(2**31)])
def test_decimal_round_trip(n):
    assert int(format_user("%d", n)) == n


@pytest.mark.parametrize("n", [0, 1, 255, 0xDEAD, 2**32 - 1])
def test_hex_round_trip_and_upper_case(n):
    text = format_user("%x", n)
    assert int(text, 16) == n
    assert text == text.upper()


def test_pointer_formats_like_hex():
    assert format_user("%p", 4096) == format_user("%x", 4096)


def test_hex_is_unsigned_32_bit():
    assert int(format_user("%x", -1), 16) == 0xFFFFFFFF


def test_string_and_null():
    assert format_user("%s", "hello") == "hello"
    assert format_user("%s", None) == "(null)"


def test_char_from_str_and_int():
    assert format_user("%c", ord("z")) == "z"
    assert format_user("%c", "q") == "q"


def test_percent_escape():
    assert format_user("%%") == "%"


def test_unknown_sequence_kept():
    assert format_user("%q") == "%q"


def test_trailing_percent_dropped():
    assert format_user("abc%") == "abc"


def test_plain_text_passes_through():
    assert format_user("plain text") == "plain text"


def test_nul_ends_format():
    assert format_user("ab\0cd") == "ab"


def test_missing_argument_raises():
    with pytest.raises(TypeError):
        format_user("%d %d", 1)


def test_fprintf_writes_formatted_text():
    stream = io.StringIO()
    count = fprintf(stream, "%s=%d\n", "key", 12)
    assert stream.getvalue() == format_user("%s=%d\n", "key", 12)
    assert count == len(stream.getvalue())