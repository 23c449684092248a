"""List files of a file system image."""

from __future__ import annotations

import sys
from pathlib import Path

from .filesystem import FileSystem
from .fmt import fprintf
from .layout import DIRENT_SIZE, DIRSIZ, DirEntry, FileType, Stat
from .memdisk import MemDisk

_PATHBUF = 512


def fmtname(path: str) -> str:
    """The last element of a path, padded with blanks to DIRSIZ."""
    name = path.rsplit("/", 1)[-1]
    if len(name) >= DIRSIZ:
        return name
    return name.ljust(DIRSIZ)


def _stat_path(fs: FileSystem, path: str) -> Stat:
    with fs.log.transaction():
        ip = fs.namei(path)
        try:
            with fs.locked(ip):
                return fs.stati(ip)
        finally:
            fs.iput(ip)


def _print_stat(out, path: str, st: Stat) -> None:
    fprintf(out, "%s %d %d %d\n", fmtname(path), st.type, st.ino, st.size)


def ls(fs: FileSystem, path: str, out=None, err=None) -> None:
    """List a file, or the entries of a directory, with type, inode and size."""
    out = sys.stdout if out is None else out
    err = sys.stderr if err is None else err

    try:
        with fs.log.transaction():
            ip = fs.namei(path)
    except OSError:
        fprintf(err, "ls: cannot open %s\n", path)
        return

    try:
        with fs.locked(ip):
            st = fs.stati(ip)
            raw = fs.readi(ip, 0, ip.size) if st.type == FileType.DIR else b""
    finally:
        with fs.log.transaction():
            fs.iput(ip)

    if st.type == FileType.FILE:
        _print_stat(out, path, st)
    elif st.type == FileType.DIR:
        if len(path) + 1 + DIRSIZ + 1 > _PATHBUF:
            fprintf(out, "ls: path too long\n")
            return
        usable = len(raw) - len(raw) % DIRENT_SIZE
        entries = [
            DirEntry.unpack(raw[off:off + DIRENT_SIZE])
            for off in range(0, usable, DIRENT_SIZE)
        ]
        for de in entries:
            if de.inum == 0:
                continue
            child = f"{path}/{de.name}"
            try:
                child_st = _stat_path(fs, child)
            except OSError:
                fprintf(out, "ls: cannot stat %s\n", child)
                continue
            _print_stat(out, child, child_st)


def main(argv=None) -> int:
    args = sys.argv[1:] if argv is None else list(argv)
    if not args:
        print("usage: ls image [path ...]", file=sys.stderr)
        return 1
    image, *paths = args
    try:
        data = Path(image).read_bytes()
    except OSError as exc:
        print(f"ls: cannot read {image}: {exc.strerror}", file=sys.stderr)
        return 1
    fs = FileSystem(MemDisk(data))
    for path in paths or ["."]:
        ls(fs, path, sys.stdout, sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())