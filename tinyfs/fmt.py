"""Formatted output for user programs: %d, %x, %p, %s, %c and %%."""

from __future__ import annotations

from typing import TextIO

_DIGITS = "0123456789ABCDEF"


def _printint(value, base: int, signed: bool) -> str:
    x = int(value) & 0xFFFFFFFF
    neg = signed and x >= 0x80000000
    if neg:
        x = 0x100000000 - x
    digits = []
    while True:
        digits.append(_DIGITS[x % base])
        x //= base
        if x == 0:
            break
    if neg:
        digits.append("-")
    return "".join(reversed(digits))


def _char(value) -> str:
    if isinstance(value, str):
        return value[:1]
    return chr(int(value) & 0xFF)


def format_user(fmt: str, *args) -> str:
    """Format a string; unknown % sequences are kept to draw attention.

    Integers are treated as 32-bit values, hexadecimal digits are upper case,
    a ``None`` string prints as ``(null)`` and a trailing ``%`` is dropped.
    """
    fmt = fmt.split("\0", 1)[0]
    values = iter(args)

    def arg():
        try:
            return next(values)
        except StopIteration:
            raise TypeError("not enough arguments for format string") from None

    out = []
    in_escape = False
    for c in fmt:
        if not in_escape:
            if c == "%":
                in_escape = True
            else:
                out.append(c)
            continue
        if c == "d":
            out.append(_printint(arg(), 10, True))
        elif c in ("x", "p"):
            out.append(_printint(arg(), 16, False))
        elif c == "s":
            s = arg()
            out.append("(null)" if s is None else str(s))
        elif c == "c":
            out.append(_char(arg()))
        elif c == "%":
            out.append("%")
        else:
            out.append("%" + c)
        in_escape = False
    return "".join(out)


def fprintf(stream: TextIO, fmt: str, *args) -> int:
    """Format as :func:`format_user`, write to ``stream``, return the length."""
    text = format_user(fmt, *args)
    stream.write(text)
    return len(text)