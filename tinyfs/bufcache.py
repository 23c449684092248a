"""Buffer cache: in-memory copies of disk blocks, most recently used first."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator

from .layout import BSIZE, NBUF, FsPanic


class _SleepLock:
    """A lock that remembers which thread holds it."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._owner: int | None = None

    def acquire(self) -> None:
        self._lock.acquire()
        self._owner = threading.get_ident()

    def release(self) -> None:
        self._owner = None
        self._lock.release()

    def holding(self) -> bool:
        return self._lock.locked() and self._owner == threading.get_ident()


@dataclass(eq=False)
class Buf:
    """A cached disk block.

    ``valid`` means the data has been read from disk; ``dirty`` means it has
    been changed and must be written back before the buffer is reused.
    """

    dev: int = 0
    blockno: int = 0
    valid: bool = False
    dirty: bool = False
    refcnt: int = 0
    data: bytearray = field(default_factory=lambda: bytearray(BSIZE))
    lock: _SleepLock = field(default_factory=_SleepLock, repr=False)


class BufferCache:
    """A fixed set of buffers recycled in least-recently-used order."""

    def __init__(self, disk, nbuf: int = NBUF) -> None:
        self.disk = disk
        self._lock = threading.Lock()
        # Index 0 is the most recently used buffer.
        self._mru: list[Buf] = [Buf() for _ in range(nbuf)]
        self._mru.reverse()

    def _get(self, dev: int, blockno: int) -> Buf:
        with self._lock:
            found = next(
                (b for b in self._mru if b.dev == dev and b.blockno == blockno),
                None,
            )
            if found is not None:
                found.refcnt += 1
            else:
                # A dirty buffer is still in use by the log even at refcnt 0.
                found = next(
                    (b for b in reversed(self._mru) if b.refcnt == 0 and not b.dirty),
                    None,
                )
                if found is None:
                    raise FsPanic("bget: no buffers")
                found.dev = dev
                found.blockno = blockno
                found.valid = False
                found.dirty = False
                found.refcnt = 1
        found.lock.acquire()
        return found

    def read(self, dev: int, blockno: int) -> Buf:
        """Return a locked buffer holding the contents of the block."""
        buf = self._get(dev, blockno)
        if not buf.valid:
            self.disk.rw(buf)
        return buf

    def write(self, buf: Buf) -> None:
        """Write a locked buffer's contents to disk."""
        if not buf.lock.holding():
            raise FsPanic("bwrite")
        buf.dirty = True
        self.disk.rw(buf)

    def release(self, buf: Buf) -> None:
        """Release a locked buffer; an unused one becomes most recently used."""
        if not buf.lock.holding():
            raise FsPanic("brelse")
        buf.lock.release()
        with self._lock:
            buf.refcnt -= 1
            if buf.refcnt == 0:
                self._mru.remove(buf)
                self._mru.insert(0, buf)

    @contextmanager
    def block(self, dev: int, blockno: int) -> Iterator[Buf]:
        """Read a block and release its buffer when the block is left."""
        buf = self.read(dev, blockno)
        try:
            yield buf
        finally:
            self.release(buf)