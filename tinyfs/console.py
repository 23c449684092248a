"""Console: line-edited keyboard input, output to a text screen and a stream."""

from __future__ import annotations

import threading
from typing import Callable, Iterable, TextIO

from .layout import FsPanic

BACKSPACE = 0x100
INPUT_BUF = 128
COLS = 80
ROWS = 25

_ATTR = 0x0700  # light grey on black
_DIGITS = "0123456789abcdef"


def _ctrl(ch: str) -> int:
    return ord(ch) - ord("@")


def _code(c) -> int:
    return ord(c) if isinstance(c, str) else int(c)


class CgaScreen:
    """An 80x25 text-mode screen whose cursor scrolls at the 24th row."""

    def __init__(self) -> None:
        self.cells = [0] * (COLS * ROWS)
        self.pos = 0

    def putc(self, c) -> None:
        c = _code(c)
        pos = self.pos
        if c == ord("\n"):
            pos += COLS - pos % COLS
        elif c == BACKSPACE:
            if pos > 0:
                pos -= 1
        else:
            self.cells[pos] = (c & 0xFF) | _ATTR
            pos += 1

        if pos < 0 or pos > ROWS * COLS:
            raise FsPanic("pos under/overflow")

        if pos // COLS >= 24:
            self.cells[0:23 * COLS] = self.cells[COLS:24 * COLS]
            pos -= COLS
            self.cells[pos:24 * COLS] = [0] * (24 * COLS - pos)

        self.pos = pos
        self.cells[pos] = ord(" ") | _ATTR

    def text(self) -> str:
        """The visible text, one line per row, without trailing blanks."""
        rows = []
        for start in range(0, ROWS * COLS, COLS):
            row = "".join(
                chr(cell & 0xFF) if cell & 0xFF else " "
                for cell in self.cells[start:start + COLS]
            )
            rows.append(row.rstrip())
        return "\n".join(rows).rstrip("\n")


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


def cformat(fmt: str, *args) -> str:
    """Format with %d, %x, %p, %s and %%; unknown sequences are kept as is."""
    if fmt is None:
        raise FsPanic("null fmt")
    fmt = fmt.split("\0", 1)[0]
    values = iter(args)

    def arg():
        try:
            return next(values)
        except StopIteration:
            raise TypeError("not enough arguments for format string") from None

    out = []
    chars = iter(fmt)
    for c in chars:
        if c != "%":
            out.append(c)
            continue
        c = next(chars, None)
        if c is None:
            break
        if c == "d":
            out.append(_printint(arg(), 10, True))
        elif c in ("x", "p"):
            out.append(_printint(arg(), 16, False))
        elif c == "s":
            s = arg()
            out.append("(null)" if s is None else str(s))
        elif c == "%":
            out.append("%")
        else:
            out.append("%" + c)
    return "".join(out)


class Console:
    """Keyboard input buffer with line editing, echoed to screen and stream."""

    def __init__(self, output: TextIO | None = None,
                 on_procdump: Callable[[], None] | None = None) -> None:
        self.output = output
        self.on_procdump = on_procdump
        self.screen = CgaScreen()
        self._cond = threading.Condition()
        self._buf = [0] * INPUT_BUF
        self._r = 0  # read index
        self._w = 0  # write index
        self._e = 0  # edit index

    def putc(self, c) -> None:
        """Send one character to the stream and the screen."""
        c = _code(c)
        if self.output is not None:
            self.output.write("\b \b" if c == BACKSPACE else chr(c))
        self.screen.putc(c)

    def interrupt(self, chars: Iterable) -> None:
        """Take typed characters, editing the current line as they arrive."""
        procdump = False
        with self._cond:
            for c in chars:
                c = _code(c)
                if c < 0:
                    break
                if c == _ctrl("P"):
                    procdump = True
                elif c == _ctrl("U"):
                    while (self._e != self._w
                           and self._buf[(self._e - 1) % INPUT_BUF] != ord("\n")):
                        self._e -= 1
                        self.putc(BACKSPACE)
                elif c in (_ctrl("H"), 0x7F):
                    if self._e != self._w:
                        self._e -= 1
                        self.putc(BACKSPACE)
                elif c != 0 and self._e - self._r < INPUT_BUF:
                    if c == ord("\r"):
                        c = ord("\n")
                    self._buf[self._e % INPUT_BUF] = c & 0xFF
                    self._e += 1
                    self.putc(c)
                    if (c == ord("\n") or c == _ctrl("D")
                            or self._e == self._r + INPUT_BUF):
                        self._w = self._e
                        self._cond.notify_all()
        if procdump and self.on_procdump is not None:
            self.on_procdump()

    def read(self, ip, n: int) -> bytes:
        """Read up to one completed line; ^D marks end of input.

        ``ip`` is the device inode the read came through.
        """
        target = n
        out = bytearray()
        with self._cond:
            while n > 0:
                while self._r == self._w:
                    self._cond.wait()
                c = self._buf[self._r % INPUT_BUF]
                self._r += 1
                if c == _ctrl("D"):
                    if n < target:
                        # Keep ^D so the next read returns nothing.
                        self._r -= 1
                    break
                out.append(c)
                n -= 1
                if c == ord("\n"):
                    break
        return bytes(out)

    def write(self, ip, data) -> int:
        """Write bytes to the console; ``ip`` is the device inode."""
        with self._cond:
            for byte in bytes(data):
                self.putc(byte & 0xFF)
        return len(data)

    def cprintf(self, fmt: str, *args) -> None:
        """Format as :func:`cformat` and print to the console."""
        text = cformat(fmt, *args)
        with self._cond:
            for ch in text:
                self.putc(ch)