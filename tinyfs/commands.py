"""The cat and echo commands."""

from __future__ import annotations

import sys

_CHUNK = 512


def cat(stream, out) -> None:
    """Copy a binary stream to ``out`` until end of input."""
    while True:
        try:
            chunk = stream.read(_CHUNK)
        except OSError as exc:
            raise OSError("cat: read error") from exc
        if not chunk:
            return
        try:
            written = out.write(chunk)
        except OSError as exc:
            raise OSError("cat: write error") from exc
        if written is not None and written != len(chunk):
            raise OSError("cat: write error")


def echo(args, out) -> None:
    """Write the arguments separated by blanks and ended by a newline."""
    args = list(args)
    if args:
        out.write(" ".join(args) + "\n")


def _report(message: str) -> None:
    sys.stdout.buffer.flush()
    print(message)
    sys.stdout.flush()


def cat_main(argv=None) -> int:
    args = sys.argv[1:] if argv is None else list(argv)
    out = sys.stdout.buffer

    if not args:
        try:
            cat(sys.stdin.buffer, out)
        except OSError as exc:
            _report(str(exc))
            return 1
        out.flush()
        return 0

    for name in args:
        try:
            stream = open(name, "rb")
        except OSError:
            _report(f"cat: cannot open {name}")
            return 1
        with stream:
            try:
                cat(stream, out)
            except OSError as exc:
                _report(str(exc))
                return 1
    out.flush()
    return 0


def echo_main(argv=None) -> int:
    args = sys.argv[1:] if argv is None else list(argv)
    echo(args, sys.stdout)
    return 0


if __name__ == "__main__":
    sys.exit(cat_main())