"""On-disk format of the file system: sizes, limits and record layouts."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from enum import IntEnum

# System limits.
NOFILE = 16  # open files per process
NFILE = 100  # open files per system
NINODE = 50  # maximum number of active i-nodes
NDEV = 10  # maximum major device number
ROOTDEV = 1  # device number of file system root disk
MAXARG = 32  # max exec arguments
MAXOPBLOCKS = 10  # max number of blocks any FS op writes
LOGSIZE = MAXOPBLOCKS * 3  # max data blocks in on-disk log
NBUF = MAXOPBLOCKS * 3  # size of disk block cache
FSSIZE = 1000  # size of file system in blocks

# Disk format.
ROOTINO = 1  # root i-number
BSIZE = 512  # block size
NDIRECT = 12
NINDIRECT = BSIZE // 4
MAXFILE = NDIRECT + NINDIRECT
DIRSIZ = 14

_SUPERBLOCK = struct.Struct("<7I")
_DINODE = struct.Struct(f"<4hI{NDIRECT + 1}I")
_DIRENT = struct.Struct(f"<H{DIRSIZ}s")

SUPERBLOCK_SIZE = _SUPERBLOCK.size
DINODE_SIZE = _DINODE.size
DIRENT_SIZE = _DIRENT.size

IPB = BSIZE // DINODE_SIZE  # inodes per block
BPB = BSIZE * 8  # bitmap bits per block


class FsPanic(RuntimeError):
    """An internal consistency check of the file system failed."""


class FileType(IntEnum):
    """Kind of object an inode describes."""

    DIR = 1
    FILE = 2
    DEV = 3


@dataclass
class SuperBlock:
    """Describes the disk layout."""

    size: int = 0  # size of file system image (blocks)
    nblocks: int = 0  # number of data blocks
    ninodes: int = 0  # number of inodes
    nlog: int = 0  # number of log blocks
    logstart: int = 0  # block number of first log block
    inodestart: int = 0  # block number of first inode block
    bmapstart: int = 0  # block number of first free map block

    def pack(self) -> bytes:
        return _SUPERBLOCK.pack(
            self.size,
            self.nblocks,
            self.ninodes,
            self.nlog,
            self.logstart,
            self.inodestart,
            self.bmapstart,
        )

    @classmethod
    def unpack(cls, data) -> "SuperBlock":
        return cls(*_SUPERBLOCK.unpack_from(data))


def _zero_addrs() -> list[int]:
    return [0] * (NDIRECT + 1)


@dataclass
class DiskInode:
    """On-disk inode record."""

    type: int = 0
    major: int = 0
    minor: int = 0
    nlink: int = 0
    size: int = 0
    addrs: list[int] = field(default_factory=_zero_addrs)

    def pack(self) -> bytes:
        if len(self.addrs) != NDIRECT + 1:
            raise ValueError(f"an inode holds exactly {NDIRECT + 1} addresses")
        return _DINODE.pack(
            self.type, self.major, self.minor, self.nlink, self.size, *self.addrs
        )

    @classmethod
    def unpack(cls, data) -> "DiskInode":
        type_, major, minor, nlink, size, *addrs = _DINODE.unpack_from(data)
        return cls(type_, major, minor, nlink, size, list(addrs))


@dataclass
class DirEntry:
    """One entry of a directory: an inode number and a name."""

    inum: int = 0
    name: str = ""

    def pack(self) -> bytes:
        raw = self.name.encode("utf-8", "surrogateescape")[:DIRSIZ]
        return _DIRENT.pack(self.inum, raw)

    @classmethod
    def unpack(cls, data) -> "DirEntry":
        inum, raw = _DIRENT.unpack_from(data)
        raw = raw.split(b"\0", 1)[0]
        return cls(inum, raw.decode("utf-8", "surrogateescape"))


@dataclass
class Stat:
    """Metadata about a file, as reported to callers."""

    type: int
    dev: int
    ino: int
    nlink: int
    size: int


def iblock(inum: int, sb: SuperBlock) -> int:
    """Block holding inode ``inum``."""
    return inum // IPB + sb.inodestart


def bblock(b: int, sb: SuperBlock) -> int:
    """Block of the free map holding the bit for block ``b``."""
    return b // BPB + sb.bmapstart