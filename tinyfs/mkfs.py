"""Build a file system image holding a root directory and some files.

Disk layout:
[ boot block | super block | log | inode blocks | free bit map | data blocks ]
"""

from __future__ import annotations

import struct
import sys
from collections.abc import Mapping
from pathlib import Path

from .layout import (
    BPB,
    BSIZE,
    DINODE_SIZE,
    FSSIZE,
    IPB,
    LOGSIZE,
    MAXFILE,
    NDIRECT,
    NINDIRECT,
    ROOTINO,
    DirEntry,
    DiskInode,
    FileType,
    FsPanic,
    SuperBlock,
    iblock,
)

NINODES = 200

_INDIRECT = struct.Struct(f"<{NINDIRECT}I")


class ImageBuilder:
    """Lays out a fresh image with a root directory, then appends files."""

    def __init__(self) -> None:
        self.nbitmap = FSSIZE // BPB + 1
        self.ninodeblocks = NINODES // IPB + 1
        self.nlog = LOGSIZE
        self.nmeta = 2 + self.nlog + self.ninodeblocks + self.nbitmap
        self.nblocks = FSSIZE - self.nmeta
        self.sb = SuperBlock(
            size=FSSIZE,
            nblocks=self.nblocks,
            ninodes=NINODES,
            nlog=self.nlog,
            logstart=2,
            inodestart=2 + self.nlog,
            bmapstart=2 + self.nlog + self.ninodeblocks,
        )
        self.freeinode = 1
        self.freeblock = self.nmeta  # the first block that can be allocated
        self._image = bytearray(FSSIZE * BSIZE)
        self._finished = False

        self._wsect(1, self.sb.pack())
        self.rootino = self.ialloc(FileType.DIR)
        if self.rootino != ROOTINO:
            raise FsPanic("root inode was not the first allocated")
        self.iappend(self.rootino, DirEntry(self.rootino, ".").pack())
        self.iappend(self.rootino, DirEntry(self.rootino, "..").pack())

    def _wsect(self, sec: int, data) -> None:
        if not 0 <= sec < FSSIZE:
            raise ValueError(f"sector {sec} is outside the image")
        block = bytes(data).ljust(BSIZE, b"\0")[:BSIZE]
        self._image[sec * BSIZE:(sec + 1) * BSIZE] = block

    def _rsect(self, sec: int) -> bytearray:
        if not 0 <= sec < FSSIZE:
            raise ValueError(f"sector {sec} is outside the image")
        return bytearray(self._image[sec * BSIZE:(sec + 1) * BSIZE])

    def _take_block(self) -> int:
        block = self.freeblock
        self.freeblock += 1
        return block

    def rinode(self, inum: int) -> DiskInode:
        """Read inode ``inum`` from the image."""
        buf = self._rsect(iblock(inum, self.sb))
        off = (inum % IPB) * DINODE_SIZE
        return DiskInode.unpack(buf[off:off + DINODE_SIZE])

    def winode(self, inum: int, din: DiskInode) -> None:
        """Write inode ``inum`` into the image."""
        bn = iblock(inum, self.sb)
        buf = self._rsect(bn)
        off = (inum % IPB) * DINODE_SIZE
        buf[off:off + DINODE_SIZE] = din.pack()
        self._wsect(bn, buf)

    def ialloc(self, type_: int) -> int:
        """Allocate the next inode with one link and no content."""
        inum = self.freeinode
        if inum >= NINODES:
            raise ValueError("out of inodes")
        self.freeinode += 1
        self.winode(inum, DiskInode(type=type_, nlink=1))
        return inum

    def iappend(self, inum: int, data) -> None:
        """Append bytes to the end of an inode's content."""
        din = self.rinode(inum)
        off = din.size
        view = memoryview(bytes(data))
        pos = 0
        while pos < len(view):
            fbn = off // BSIZE
            if fbn >= MAXFILE:
                raise ValueError("file too large")
            if fbn < NDIRECT:
                if din.addrs[fbn] == 0:
                    din.addrs[fbn] = self._take_block()
                block = din.addrs[fbn]
            else:
                if din.addrs[NDIRECT] == 0:
                    din.addrs[NDIRECT] = self._take_block()
                indirect = list(_INDIRECT.unpack(self._rsect(din.addrs[NDIRECT])))
                if indirect[fbn - NDIRECT] == 0:
                    indirect[fbn - NDIRECT] = self._take_block()
                    self._wsect(din.addrs[NDIRECT], _INDIRECT.pack(*indirect))
                block = indirect[fbn - NDIRECT]
            n1 = min(len(view) - pos, (fbn + 1) * BSIZE - off)
            buf = self._rsect(block)
            start = off - fbn * BSIZE
            buf[start:start + n1] = view[pos:pos + n1]
            self._wsect(block, buf)
            pos += n1
            off += n1
        din.size = off
        self.winode(inum, din)

    def add_file(self, name: str, data) -> int:
        """Add a file to the root directory; a leading '_' is dropped."""
        if self._finished:
            raise ValueError("the image is already finished")
        if "/" in name:
            raise ValueError(f"file name {name!r} contains '/'")
        if name.startswith("_"):
            name = name[1:]
        inum = self.ialloc(FileType.FILE)
        self.iappend(self.rootino, DirEntry(inum, name).pack())
        self.iappend(inum, data)
        return inum

    def finish(self) -> bytes:
        """Round up the root directory size, write the bitmap, return the image."""
        if not self._finished:
            din = self.rinode(self.rootino)
            din.size = (din.size // BSIZE + 1) * BSIZE
            self.winode(self.rootino, din)

            used = self.freeblock
            if used >= BPB:
                raise ValueError("too many blocks in use for one bitmap block")
            self._wsect(self.sb.bmapstart, ((1 << used) - 1).to_bytes(BSIZE, "little"))
            self._finished = True
        return bytes(self._image)


def make_image(path, files) -> ImageBuilder:
    """Write an image holding ``files`` (a mapping or pairs of name and data)."""
    builder = ImageBuilder()
    items = files.items() if isinstance(files, Mapping) else files
    for name, data in items:
        builder.add_file(name, data)
    Path(path).write_bytes(builder.finish())
    return builder


def main(argv=None) -> int:
    args = sys.argv[1:] if argv is None else list(argv)
    if not args:
        print("Usage: mkfs fs.img files...", file=sys.stderr)
        return 1
    image_path, *names = args

    try:
        out = open(image_path, "wb")
    except OSError as exc:
        print(f"{image_path}: {exc.strerror}", file=sys.stderr)
        return 1

    with out:
        builder = ImageBuilder()
        print(
            f"nmeta {builder.nmeta} (boot, super, log blocks {builder.nlog} "
            f"inode blocks {builder.ninodeblocks}, bitmap blocks {builder.nbitmap}) "
            f"blocks {builder.nblocks} total {FSSIZE}"
        )
        for name in names:
            if "/" in name:
                print(f"{name}: file name must not contain '/'", file=sys.stderr)
                return 1
            try:
                data = Path(name).read_bytes()
            except OSError as exc:
                print(f"{name}: {exc.strerror}", file=sys.stderr)
                return 1
            builder.add_file(name, data)

        image = builder.finish()
        print(f"balloc: first {builder.freeblock} blocks have been allocated")
        print(f"balloc: write bitmap block at sector {builder.sb.bmapstart}")
        out.write(image)
    return 0


if __name__ == "__main__":
    sys.exit(main())