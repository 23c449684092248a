"""A disk whose blocks live in memory."""

from __future__ import annotations

from .layout import BSIZE, ROOTDEV, FsPanic


class MemDisk:
    """Serves block reads and writes from an in-memory disk image."""

    def __init__(self, image=b"", dev: int = ROOTDEV) -> None:
        self._data = bytearray(image)
        self.dev = dev
        self.nblocks = len(self._data) // BSIZE

    def rw(self, buf) -> None:
        """Sync a locked buffer with the disk.

        A dirty buffer is written and made clean; otherwise the block is read.
        Either way the buffer ends up valid.
        """
        if not buf.lock.holding():
            raise FsPanic("iderw: buf not locked")
        if buf.valid and not buf.dirty:
            raise FsPanic("iderw: nothing to do")
        if buf.dev != self.dev:
            raise FsPanic(f"iderw: request not for disk {self.dev}")
        if buf.blockno >= self.nblocks:
            raise FsPanic("iderw: block out of range")

        start = buf.blockno * BSIZE
        if buf.dirty:
            buf.dirty = False
            self._data[start:start + BSIZE] = buf.data
        else:
            buf.data[:] = self._data[start:start + BSIZE]
        buf.valid = True

    def image(self) -> bytes:
        """Return a copy of the whole disk image."""
        return bytes(self._data)