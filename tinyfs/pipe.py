"""A bounded in-memory byte channel with one read end and one write end."""

from __future__ import annotations

import threading

PIPESIZE = 512


class Pipe:
    """Bytes written at one end are read, in order, at the other.

    A writer blocks while the pipe holds PIPESIZE bytes; a reader blocks while
    it is empty and the write end is still open.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._buf = bytearray()
        self.nread = 0  # total bytes read
        self.nwrite = 0  # total bytes written
        self.readopen = True
        self.writeopen = True

    def write(self, data) -> int:
        """Write all of ``data``, waiting for room as needed."""
        data = bytes(data)
        with self._cond:
            pos = 0
            while pos < len(data):
                while len(self._buf) == PIPESIZE:
                    if not self.readopen:
                        raise BrokenPipeError("read end of pipe is closed")
                    self._cond.notify_all()
                    self._cond.wait()
                chunk = data[pos:pos + PIPESIZE - len(self._buf)]
                self._buf += chunk
                pos += len(chunk)
                self.nwrite += len(chunk)
            self._cond.notify_all()
        return len(data)

    def read(self, n: int) -> bytes:
        """Read up to ``n`` bytes; ``b""`` once the pipe is empty and closed."""
        if n < 0:
            raise ValueError("cannot read a negative number of bytes")
        with self._cond:
            while not self._buf and self.writeopen:
                self._cond.wait()
            chunk = bytes(self._buf[:n])
            del self._buf[:n]
            self.nread += len(chunk)
            self._cond.notify_all()
        return chunk

    def close(self, writable: bool) -> None:
        """Close the write end if ``writable``, otherwise the read end."""
        with self._cond:
            if writable:
                self.writeopen = False
            else:
                self.readopen = False
            self._cond.notify_all()