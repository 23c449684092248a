"""Open files: reference-counted handles onto inodes and pipes."""

from __future__ import annotations

import errno
import io
import threading
from dataclasses import dataclass, field
from enum import Enum

from .filesystem import FileSystem, Inode
from .layout import BSIZE, MAXOPBLOCKS, NFILE, FsPanic, Stat
from .pipe import Pipe

# Bytes per logged write: leaves room in a transaction for the inode, an
# indirect block, allocation blocks and two blocks of slop.
_MAX_WRITE = ((MAXOPBLOCKS - 1 - 1 - 2) // 2) * BSIZE


class FileKind(Enum):
    NONE = 0
    PIPE = 1
    INODE = 2


@dataclass(eq=False)
class File:
    """An entry of the open file table."""

    table: "FileTable" = field(repr=False)
    kind: FileKind = FileKind.NONE
    ref: int = 0
    readable: bool = False
    writable: bool = False
    pipe: Pipe | None = None
    ip: Inode | None = None
    off: int = 0

    def dup(self) -> "File":
        """Take another reference to this file."""
        with self.table._lock:
            if self.ref < 1:
                raise FsPanic("filedup")
            self.ref += 1
        return self

    def close(self) -> None:
        """Drop a reference; the last one releases the pipe end or inode."""
        with self.table._lock:
            if self.ref < 1:
                raise FsPanic("fileclose")
            self.ref -= 1
            if self.ref > 0:
                return
            kind, pipe, ip, writable = self.kind, self.pipe, self.ip, self.writable
            self.kind = FileKind.NONE
            self.pipe = None
            self.ip = None

        if kind is FileKind.PIPE:
            pipe.close(writable)
        elif kind is FileKind.INODE:
            fs = self.table.fs
            with fs.log.transaction():
                fs.iput(ip)

    def stat(self) -> Stat:
        """Metadata of the underlying inode."""
        if self.kind is not FileKind.INODE:
            raise io.UnsupportedOperation("only inode files have metadata")
        fs = self.table.fs
        with fs.locked(self.ip):
            return fs.stati(self.ip)

    def read(self, n: int) -> bytes:
        """Read up to ``n`` bytes at the current offset."""
        if not self.readable:
            raise io.UnsupportedOperation("file not open for reading")
        if self.kind is FileKind.PIPE:
            return self.pipe.read(n)
        if self.kind is FileKind.INODE:
            fs = self.table.fs
            with fs.locked(self.ip):
                data = fs.readi(self.ip, self.off, n)
                self.off += len(data)
            return data
        raise FsPanic("fileread")

    def write(self, data) -> int:
        """Write all of ``data`` at the current offset."""
        if not self.writable:
            raise io.UnsupportedOperation("file not open for writing")
        if self.kind is FileKind.PIPE:
            return self.pipe.write(data)
        if self.kind is FileKind.INODE:
            fs = self.table.fs
            data = bytes(data)
            done = 0
            while done < len(data):
                chunk = data[done:done + _MAX_WRITE]
                with fs.log.transaction():
                    with fs.locked(self.ip):
                        r = fs.writei(self.ip, chunk, self.off)
                        if r > 0:
                            self.off += r
                if r != len(chunk):
                    raise FsPanic("short filewrite")
                done += r
            return len(data)
        raise FsPanic("filewrite")


class FileTable:
    """The system-wide table of open files."""

    def __init__(self, fs: FileSystem | None = None, nfile: int = NFILE) -> None:
        self.fs = fs
        self._lock = threading.Lock()
        self.files = [File(self) for _ in range(nfile)]

    def alloc(self) -> File:
        """Take a free entry with one reference."""
        with self._lock:
            for f in self.files:
                if f.ref == 0:
                    f.ref = 1
                    return f
        raise OSError(errno.ENFILE, "file table overflow")

    def open_inode(self, ip: Inode, readable: bool, writable: bool) -> File:
        """Open a referenced inode; the file takes over that reference."""
        f = self.alloc()
        f.kind = FileKind.INODE
        f.ip = ip
        f.off = 0
        f.readable = bool(readable)
        f.writable = bool(writable)
        return f


def open_pipe(table: FileTable) -> tuple[File, File]:
    """Create a pipe and return its read end and write end."""
    reader = table.alloc()
    try:
        writer = table.alloc()
    except OSError:
        reader.close()
        raise
    pipe = Pipe()
    reader.kind = writer.kind = FileKind.PIPE
    reader.pipe = writer.pipe = pipe
    reader.readable, reader.writable = True, False
    writer.readable, writer.writable = False, True
    return reader, writer