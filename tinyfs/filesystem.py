"""Inodes, directories and path names on top of the logged block layer.

An inode describes a single unnamed file. The cache of in-memory inodes
tracks how many references each has (``ref``) and whether its copy of the
on-disk fields is current (``valid``). File system code may only examine an
inode's fields and content while it holds the inode's lock.
"""

from __future__ import annotations

import struct
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Iterator

from .bufcache import BufferCache, _SleepLock
from .journal import Log
from .layout import (
    BPB,
    BSIZE,
    DINODE_SIZE,
    DIRENT_SIZE,
    DIRSIZ,
    IPB,
    MAXFILE,
    NBUF,
    NDEV,
    NDIRECT,
    NINDIRECT,
    NINODE,
    ROOTDEV,
    ROOTINO,
    DirEntry,
    DiskInode,
    FileType,
    FsPanic,
    Stat,
    SuperBlock,
    bblock,
    iblock,
)

_UINT = struct.Struct("<I")
_INDIRECT = struct.Struct(f"<{NINDIRECT}I")


@dataclass
class Device:
    """Read and write handlers of a device, selected by its major number."""

    read: Callable[["Inode", int], bytes] | None = None
    write: Callable[["Inode", bytes], int] | None = None


def _zero_addrs() -> list[int]:
    return [0] * (NDIRECT + 1)


@dataclass(eq=False)
class Inode:
    """In-memory copy of an inode, plus cache bookkeeping."""

    dev: int = 0
    inum: int = 0
    ref: int = 0
    valid: bool = False
    type: int = 0
    major: int = 0
    minor: int = 0
    nlink: int = 0
    size: int = 0
    addrs: list[int] = field(default_factory=_zero_addrs)
    lock: _SleepLock = field(default_factory=_SleepLock, repr=False)


def _name_bytes(name: str) -> bytes:
    raw = name.encode("utf-8", "surrogateescape")
    return raw.split(b"\0", 1)[0][:DIRSIZ]


def namecmp(s: str, t: str) -> int:
    """Compare two directory entry names over at most DIRSIZ bytes."""
    a, b = _name_bytes(s), _name_bytes(t)
    return (a > b) - (a < b)


def skipelem(path: str) -> tuple[str, str] | None:
    """Split the first element off a path.

    Returns the element (cut to DIRSIZ bytes) and the rest of the path
    without leading slashes, or None when the path holds no element.
    """
    stripped = path.lstrip("/")
    if not stripped:
        return None
    elem, _, rest = stripped.partition("/")
    raw = elem.encode("utf-8", "surrogateescape")[:DIRSIZ]
    return raw.decode("utf-8", "surrogateescape"), rest.lstrip("/")


def _dinode_offset(inum: int) -> int:
    return (inum % IPB) * DINODE_SIZE


class FileSystem:
    """Block allocation, inodes, directories and path lookup for one disk."""

    def __init__(self, disk, dev: int = ROOTDEV, nbuf: int = NBUF,
                 ninode: int = NINODE) -> None:
        self.dev = dev
        self.cache = BufferCache(disk, nbuf)
        with self.cache.block(dev, 1) as bp:
            self.sb = SuperBlock.unpack(bp.data)
        self.log = Log(self.cache, dev, self.sb)
        self.devsw: dict[int, Device] = {}
        self._lock = threading.Lock()
        self._inodes = [Inode() for _ in range(ninode)]

    # Blocks.

    def _bzero(self, dev: int, bno: int) -> None:
        with self.cache.block(dev, bno) as bp:
            bp.data[:] = bytes(BSIZE)
            self.log.write(bp)

    def _balloc(self, dev: int) -> int:
        """Allocate a zeroed disk block."""
        sb = self.sb
        for b in range(0, sb.size, BPB):
            found = None
            with self.cache.block(dev, bblock(b, sb)) as bp:
                for bi in range(min(BPB, sb.size - b)):
                    mask = 1 << (bi % 8)
                    if not bp.data[bi // 8] & mask:
                        bp.data[bi // 8] |= mask
                        self.log.write(bp)
                        found = b + bi
                        break
            if found is not None:
                self._bzero(dev, found)
                return found
        raise FsPanic("balloc: out of blocks")

    def _bfree(self, dev: int, b: int) -> None:
        with self.cache.block(dev, bblock(b, self.sb)) as bp:
            bi = b % BPB
            mask = 1 << (bi % 8)
            if not bp.data[bi // 8] & mask:
                raise FsPanic("freeing free block")
            bp.data[bi // 8] &= ~mask & 0xFF
            self.log.write(bp)

    # Inodes.

    def ialloc(self, type_: int) -> Inode:
        """Allocate an inode of the given type; it is referenced but unlocked."""
        for inum in range(1, self.sb.ninodes):
            with self.cache.block(self.dev, iblock(inum, self.sb)) as bp:
                off = _dinode_offset(inum)
                din = DiskInode.unpack(bp.data[off:off + DINODE_SIZE])
                if din.type == 0:
                    bp.data[off:off + DINODE_SIZE] = DiskInode(type=type_).pack()
                    self.log.write(bp)
                    free = True
                else:
                    free = False
            if free:
                return self._iget(self.dev, inum)
        raise FsPanic("ialloc: no inodes")

    def iupdate(self, ip: Inode) -> None:
        """Copy a modified in-memory inode to disk."""
        with self.cache.block(ip.dev, iblock(ip.inum, self.sb)) as bp:
            off = _dinode_offset(ip.inum)
            din = DiskInode(ip.type, ip.major, ip.minor, ip.nlink, ip.size,
                            list(ip.addrs))
            bp.data[off:off + DINODE_SIZE] = din.pack()
            self.log.write(bp)

    def _iget(self, dev: int, inum: int) -> Inode:
        """Find or make the cache entry for an inode, without reading it."""
        with self._lock:
            empty = None
            for ip in self._inodes:
                if ip.ref > 0 and ip.dev == dev and ip.inum == inum:
                    ip.ref += 1
                    return ip
                if empty is None and ip.ref == 0:
                    empty = ip
            if empty is None:
                raise FsPanic("iget: no inodes")
            empty.dev = dev
            empty.inum = inum
            empty.ref = 1
            empty.valid = False
            return empty

    def idup(self, ip: Inode) -> Inode:
        """Take another reference to an inode."""
        with self._lock:
            ip.ref += 1
        return ip

    def ilock(self, ip: Inode) -> None:
        """Lock an inode, reading it from disk if needed."""
        if ip is None or ip.ref < 1:
            raise FsPanic("ilock")
        ip.lock.acquire()
        if not ip.valid:
            with self.cache.block(ip.dev, iblock(ip.inum, self.sb)) as bp:
                off = _dinode_offset(ip.inum)
                din = DiskInode.unpack(bp.data[off:off + DINODE_SIZE])
            ip.type = din.type
            ip.major = din.major
            ip.minor = din.minor
            ip.nlink = din.nlink
            ip.size = din.size
            ip.addrs = list(din.addrs)
            ip.valid = True
            if ip.type == 0:
                ip.lock.release()
                raise FsPanic("ilock: no type")

    def iunlock(self, ip: Inode) -> None:
        if ip is None or not ip.lock.holding() or ip.ref < 1:
            raise FsPanic("iunlock")
        ip.lock.release()

    def iput(self, ip: Inode) -> None:
        """Drop a reference; the last one to an unlinked inode frees it."""
        ip.lock.acquire()
        try:
            if ip.valid and ip.nlink == 0:
                with self._lock:
                    refs = ip.ref
                if refs == 1:
                    self._itrunc(ip)
                    ip.type = 0
                    self.iupdate(ip)
                    ip.valid = False
        finally:
            ip.lock.release()
        with self._lock:
            ip.ref -= 1

    def iunlockput(self, ip: Inode) -> None:
        self.iunlock(ip)
        self.iput(ip)

    @contextmanager
    def locked(self, ip: Inode) -> Iterator[Inode]:
        """Hold an inode's lock for the enclosed code."""
        self.ilock(ip)
        try:
            yield ip
        finally:
            self.iunlock(ip)

    # Inode content.

    def _bmap(self, ip: Inode, bn: int) -> int:
        """Disk block of the bn-th block of the inode, allocated if missing."""
        if bn < NDIRECT:
            if ip.addrs[bn] == 0:
                ip.addrs[bn] = self._balloc(ip.dev)
            return ip.addrs[bn]
        bn -= NDIRECT
        if bn < NINDIRECT:
            if ip.addrs[NDIRECT] == 0:
                ip.addrs[NDIRECT] = self._balloc(ip.dev)
            with self.cache.block(ip.dev, ip.addrs[NDIRECT]) as bp:
                (addr,) = _UINT.unpack_from(bp.data, bn * _UINT.size)
                if addr == 0:
                    addr = self._balloc(ip.dev)
                    _UINT.pack_into(bp.data, bn * _UINT.size, addr)
                    self.log.write(bp)
            return addr
        raise FsPanic("bmap: out of range")

    def _itrunc(self, ip: Inode) -> None:
        """Discard an inode's contents."""
        for i, addr in enumerate(ip.addrs[:NDIRECT]):
            if addr:
                self._bfree(ip.dev, addr)
                ip.addrs[i] = 0
        if ip.addrs[NDIRECT]:
            with self.cache.block(ip.dev, ip.addrs[NDIRECT]) as bp:
                entries = _INDIRECT.unpack_from(bp.data)
            for addr in entries:
                if addr:
                    self._bfree(ip.dev, addr)
            self._bfree(ip.dev, ip.addrs[NDIRECT])
            ip.addrs[NDIRECT] = 0
        ip.size = 0
        self.iupdate(ip)

    def stati(self, ip: Inode) -> Stat:
        return Stat(type=ip.type, dev=ip.dev, ino=ip.inum, nlink=ip.nlink,
                    size=ip.size)

    def _device(self, ip: Inode) -> Device:
        device = self.devsw.get(ip.major) if 0 <= ip.major < NDEV else None
        if device is None:
            raise OSError(f"no device with major number {ip.major}")
        return device

    def readi(self, ip: Inode, off: int, n: int) -> bytes:
        """Read up to n bytes at offset off; the caller holds the lock."""
        if ip.type == FileType.DEV:
            device = self._device(ip)
            if device.read is None:
                raise OSError(f"device {ip.major} cannot be read")
            return device.read(ip, n)
        if off < 0 or n < 0 or off > ip.size:
            raise ValueError(f"read at offset {off} of a {ip.size}-byte inode")
        n = min(n, ip.size - off)
        out = bytearray()
        while len(out) < n:
            pos = off + len(out)
            with self.cache.block(ip.dev, self._bmap(ip, pos // BSIZE)) as bp:
                start = pos % BSIZE
                m = min(n - len(out), BSIZE - start)
                out += bp.data[start:start + m]
        return bytes(out)

    def writei(self, ip: Inode, data, off: int) -> int:
        """Write data at offset off; the caller holds the lock."""
        if ip.type == FileType.DEV:
            device = self._device(ip)
            if device.write is None:
                raise OSError(f"device {ip.major} cannot be written")
            return device.write(ip, data)
        n = len(data)
        if off < 0 or off > ip.size:
            raise ValueError(f"write at offset {off} of a {ip.size}-byte inode")
        if off + n > MAXFILE * BSIZE:
            raise ValueError("write would exceed the maximum file size")
        tot = 0
        while tot < n:
            pos = off + tot
            with self.cache.block(ip.dev, self._bmap(ip, pos // BSIZE)) as bp:
                start = pos % BSIZE
                m = min(n - tot, BSIZE - start)
                bp.data[start:start + m] = data[tot:tot + m]
                self.log.write(bp)
            tot += m
        end = off + n
        if n > 0 and end > ip.size:
            ip.size = end
            self.iupdate(ip)
        return n

    # Directories.

    def _read_dirent(self, dp: Inode, off: int, what: str) -> DirEntry:
        raw = self.readi(dp, off, DIRENT_SIZE)
        if len(raw) != DIRENT_SIZE:
            raise FsPanic(what)
        return DirEntry.unpack(raw)

    def dirlookup(self, dp: Inode, name: str) -> tuple[Inode, int] | None:
        """Find an entry in a directory: its inode and byte offset, or None."""
        if dp.type != FileType.DIR:
            raise FsPanic("dirlookup not DIR")
        for off in range(0, dp.size, DIRENT_SIZE):
            de = self._read_dirent(dp, off, "dirlookup read")
            if de.inum and namecmp(name, de.name) == 0:
                return self._iget(dp.dev, de.inum), off
        return None

    def dirlink(self, dp: Inode, name: str, inum: int) -> None:
        """Add the entry (name, inum) to a directory."""
        found = self.dirlookup(dp, name)
        if found is not None:
            self.iput(found[0])
            raise FileExistsError(name)
        off = next(
            (off for off in range(0, dp.size, DIRENT_SIZE)
             if self._read_dirent(dp, off, "dirlink read").inum == 0),
            dp.size,
        )
        if self.writei(dp, DirEntry(inum, name).pack(), off) != DIRENT_SIZE:
            raise FsPanic("dirlink")

    # Paths.

    def _namex(self, path: str, parent: bool, cwd: Inode | None):
        if path.startswith("/") or cwd is None:
            ip = self._iget(self.dev, ROOTINO)
        else:
            ip = self.idup(cwd)
        rest = path
        while (elem := skipelem(rest)) is not None:
            name, rest = elem
            self.ilock(ip)
            if ip.type != FileType.DIR:
                self.iunlockput(ip)
                raise NotADirectoryError(path)
            if parent and rest == "":
                self.iunlock(ip)
                return ip, name
            found = self.dirlookup(ip, name)
            if found is None:
                self.iunlockput(ip)
                raise FileNotFoundError(path)
            self.iunlockput(ip)
            ip = found[0]
        if parent:
            self.iput(ip)
            raise FileNotFoundError(f"{path!r} has no final element")
        return ip

    def namei(self, path: str, cwd: Inode | None = None) -> Inode:
        """Inode of a path; relative paths start at cwd (root if None)."""
        return self._namex(path, False, cwd)

    def nameiparent(self, path: str, cwd: Inode | None = None) -> tuple[Inode, str]:
        """Inode of the parent directory of a path, and the final element."""
        return self._namex(path, True, cwd)