"""A simple grep supporting only the ^ . * $ operators."""

from __future__ import annotations

import sys

_BUFSIZE = 1024


def match(re: str, text: str) -> bool:
    """Search for ``re`` anywhere in ``text``."""
    if re.startswith("^"):
        return matchhere(re[1:], text)
    # Must also try the empty string at the end.
    return any(matchhere(re, text[i:]) for i in range(len(text) + 1))


def matchhere(re: str, text: str) -> bool:
    """Search for ``re`` at the beginning of ``text``."""
    while True:
        if not re:
            return True
        if len(re) >= 2 and re[1] == "*":
            return matchstar(re[0], re[2:], text)
        if re == "$":
            return text == ""
        if text and (re[0] == "." or re[0] == text[0]):
            re, text = re[1:], text[1:]
            continue
        return False


def matchstar(c: str, re: str, text: str) -> bool:
    """Search for ``c*re`` at the beginning of ``text``."""
    i = 0
    while True:
        if matchhere(re, text[i:]):
            return True
        if i < len(text) and (text[i] == c or c == "."):
            i += 1
            continue
        return False


def grep(pattern, stream, out) -> None:
    """Copy the lines of a binary stream that match ``pattern`` to ``out``.

    Only newline-terminated lines are considered.
    """
    if isinstance(pattern, bytes):
        pattern = pattern.decode("latin-1")
    buf = b""
    while True:
        chunk = stream.read(_BUFSIZE - 1 - len(buf))
        if not chunk:
            break
        buf += chunk
        *lines, rest = buf.split(b"\n")
        for line in lines:
            if match(pattern, line.decode("latin-1")):
                out.write(line + b"\n")
        # A buffer holding no complete line is discarded.
        buf = rest if lines else b""


def main(argv=None) -> int:
    args = sys.argv[1:] if argv is None else list(argv)
    if not args:
        print("usage: grep pattern [file ...]", file=sys.stderr)
        return 1
    pattern, *names = args
    out = sys.stdout.buffer

    if not names:
        grep(pattern, sys.stdin.buffer, out)
        out.flush()
        return 0

    for name in names:
        try:
            stream = open(name, "rb")
        except OSError:
            out.flush()
            print(f"grep: cannot open {name}")
            sys.stdout.flush()
            return 1
        with stream:
            grep(pattern, stream, out)
    out.flush()
    return 0


if __name__ == "__main__":
    sys.exit(main())