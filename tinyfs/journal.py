"""Write-ahead redo log that groups file system operations into transactions.

On disk the log is a header block holding the count and home block numbers of
the logged blocks, followed by copies of those blocks.
"""

from __future__ import annotations

import struct
import threading
from contextlib import contextmanager
from typing import Iterator

from .layout import BSIZE, LOGSIZE, MAXOPBLOCKS, FsPanic, SuperBlock

_COUNT = struct.Struct("<i")


class Log:
    """Commits the blocks changed by a group of operations atomically."""

    def __init__(self, cache, dev: int, sb: SuperBlock) -> None:
        if _COUNT.size * (1 + LOGSIZE) >= BSIZE:
            raise FsPanic("initlog: too big logheader")
        self.cache = cache
        self.dev = dev
        self.start = sb.logstart
        self.size = sb.nlog
        self.outstanding = 0  # how many operations are executing
        self.committing = False
        self.blocks: list[int] = []  # home block numbers of logged blocks
        self._cond = threading.Condition()
        self.recover()

    def _install_trans(self) -> None:
        """Copy committed blocks from the log to their home locations."""
        for tail, blockno in enumerate(self.blocks):
            lbuf = self.cache.read(self.dev, self.start + tail + 1)
            dbuf = self.cache.read(self.dev, blockno)
            dbuf.data[:] = lbuf.data
            self.cache.write(dbuf)
            self.cache.release(lbuf)
            self.cache.release(dbuf)

    def _read_head(self) -> None:
        with self.cache.block(self.dev, self.start) as buf:
            (n,) = _COUNT.unpack_from(buf.data)
            self.blocks = list(struct.unpack_from(f"<{n}i", buf.data, _COUNT.size))

    def _write_head(self) -> None:
        """Write the in-memory header to disk: the true point of commit."""
        with self.cache.block(self.dev, self.start) as buf:
            _COUNT.pack_into(buf.data, 0, len(self.blocks))
            struct.pack_into(
                f"<{len(self.blocks)}i", buf.data, _COUNT.size, *self.blocks
            )
            self.cache.write(buf)

    def recover(self) -> None:
        """Install any committed transaction found on disk, then clear the log."""
        self._read_head()
        self._install_trans()
        self.blocks = []
        self._write_head()

    def begin_op(self) -> None:
        """Start an operation, waiting while a commit runs or space is short."""
        with self._cond:
            while self.committing or (
                len(self.blocks) + (self.outstanding + 1) * MAXOPBLOCKS > LOGSIZE
            ):
                self._cond.wait()
            self.outstanding += 1

    def end_op(self) -> None:
        """Finish an operation; the last one out commits the transaction."""
        do_commit = False
        with self._cond:
            self.outstanding -= 1
            if self.committing:
                raise FsPanic("log.committing")
            if self.outstanding == 0:
                do_commit = True
                self.committing = True
            else:
                self._cond.notify_all()

        if do_commit:
            try:
                self._commit()
            finally:
                with self._cond:
                    self.committing = False
                    self._cond.notify_all()

    @contextmanager
    def transaction(self) -> Iterator["Log"]:
        """Run the enclosed code as one operation of the current transaction."""
        self.begin_op()
        try:
            yield self
        finally:
            self.end_op()

    def _write_log(self) -> None:
        """Copy modified blocks from the cache to the log area."""
        for tail, blockno in enumerate(self.blocks):
            to = self.cache.read(self.dev, self.start + tail + 1)
            src = self.cache.read(self.dev, blockno)
            to.data[:] = src.data
            self.cache.write(to)
            self.cache.release(src)
            self.cache.release(to)

    def _commit(self) -> None:
        if self.blocks:
            self._write_log()
            self._write_head()
            self._install_trans()
            self.blocks = []
            self._write_head()

    def write(self, buf) -> None:
        """Record a modified buffer in the transaction and pin it in the cache."""
        if len(self.blocks) >= LOGSIZE or len(self.blocks) >= self.size - 1:
            raise FsPanic("too big a transaction")
        if self.outstanding < 1:
            raise FsPanic("log_write outside of trans")
        with self._cond:
            if buf.blockno not in self.blocks:
                self.blocks.append(buf.blockno)
            buf.dirty = True