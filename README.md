# tinyfs

`tinyfs` is a small Unix-style file system in plain Python. It has no dependencies outside
the standard library. Its disk image has this layout:

```
[ boot block | super block | log | inode blocks | free bit map | data blocks ]
```

An image built by `tinyfs.mkfs` is 1000 blocks of 512 bytes and holds 200 inodes. Each inode
has 12 direct block addresses and one single-indirect block. A directory is an array of
16-byte entries. Each entry is a 2-byte inode number followed by a name of up to 14 bytes.

## What it contains

- `tinyfs.layout`: the constants of the layout and the on-disk records `SuperBlock`,
  `DiskInode` and `DirEntry`, each with `pack()` and `unpack()`. It also holds `Stat`, the
  `FileType` enum (`DIR`, `FILE`, `DEV`), the helpers `iblock()` and `bblock()`, and
  `FsPanic`, which is raised when an internal consistency check fails.
- `tinyfs.memdisk.MemDisk`: a disk held in memory and built from an image in bytes.
  `image()` returns the current contents.
- `tinyfs.bufcache.BufferCache`: a fixed number of block buffers, reused in least-recently-used
  order. It has `read()`, `write()` and `release()`, and the `block()` context manager reads
  a block and releases it on exit.
- `tinyfs.journal.Log`: a redo log. Operations are grouped with `begin_op()`/`end_op()` or
  with the `transaction()` context manager. The last operation to finish commits the
  changed blocks. When the log is created it installs any transaction already committed on
  disk.
- `tinyfs.filesystem.FileSystem`: the inode cache (`ialloc`, `idup`, `ilock`, `iunlock`,
  `iput`, `locked`) and block allocation. It reads and writes inode content (`readi`,
  `writei`), handles directories (`dirlookup`, `dirlink`) and looks up paths (`namei`,
  `nameiparent`). To route reads and writes of device inodes to handlers, register `Device`
  objects in `fs.devsw` by major number.
- `tinyfs.mkfs`: `ImageBuilder` lays out a fresh image with a root directory and adds
  files to that directory. `make_image()` writes such an image to a path.
- `tinyfs.pipe.Pipe`: a bounded byte channel of 512 bytes with blocking reads and writes.
- `tinyfs.openfile`: `FileTable` and `File`, which are open files with reference counts,
  backed by an inode or by one end of a pipe (`open_pipe()`).
- `tinyfs.console`: `Console` provides line-edited input and echoes it to an optional text
  stream and to `CgaScreen`, an 80×25 text screen. Ctrl-U kills the line, backspace erases a
  character, Ctrl-D ends the input and Ctrl-P calls a callback. `cformat()` formats `%d`,
  `%x`, `%p`, `%s` and `%%`.
- `tinyfs.keyboard`: `KeyboardDecoder` and `decode_scancodes()` turn PC scan codes into
  characters. They keep track of shift, ctrl and caps lock.
- `tinyfs.fmt`: `format_user()` and `fprintf()` format `%d`, `%x`/`%p` (upper-case hex),
  `%s`, `%c` and `%%`.
- `tinyfs.grep`, `tinyfs.ls` and `tinyfs.commands`: small command-line tools.

## Installing

```
pip install .
```

## Command-line tools

Build an image and copy some host files into its root directory:

```
tinyfs-mkfs fs.img README.md notes.txt
```

Each file name loses a leading `_` when it is stored. Names must not contain `/`.

List a file or a directory inside an image. If no path is given, `.` is listed. Each line
shows the name padded to 14 columns, then the type, the inode number and the size:

```
tinyfs-ls fs.img /
```

The text tools work on host files, or on standard input when no file is named:

```
tinyfs-grep 'ab*c$' notes.txt
tinyfs-cat notes.txt
tinyfs-echo hello world
```

`tinyfs-grep` understands only `^`, `.`, `*` and `$`, and it only looks at lines that end
in a newline.

## Using it as a library

Read a file from an image:

```python
from tinyfs.mkfs import ImageBuilder
from tinyfs.memdisk import MemDisk
from tinyfs.filesystem import FileSystem

builder = ImageBuilder()
builder.add_file("hello.txt", b"hello, world\n")
image = builder.finish()

fs = FileSystem(MemDisk(image, 1), 1, 30, 50)
ip = fs.namei("/hello.txt", None)
with fs.locked(ip):
    print(fs.readi(ip, 0, 100))
```

Create a file. Every change goes through the log, so it has to happen inside a transaction:

```python
from tinyfs.layout import FileType

with fs.log.transaction():
    root = fs.namei("/", None)
    ip = fs.ialloc(FileType.FILE)
    with fs.locked(ip):
        ip.nlink = 1
        fs.iupdate(ip)
        fs.writei(ip, b"new data\n", 0)
    with fs.locked(root):
        fs.dirlink(root, "new.txt", ip.inum)
    fs.iput(ip)
    fs.iput(root)
```

Errors are raised as exceptions:

- A path that cannot be resolved raises `FileNotFoundError` or `NotADirectoryError`.
- A name that already exists raises `FileExistsError` from `dirlink`.
- Reads or writes at a bad offset raise `ValueError`.
- A full file table raises `OSError`.
- Writing to a pipe whose read end is closed raises `BrokenPipeError`.
- A broken invariant, such as freeing a block that is already free, raises `FsPanic`.

## What it does not do

- There are no processes, no scheduler and no system-call layer. Nothing provides `open`,
  `mkdir`, `unlink` or `link` as single operations; you build them from the `FileSystem`
  methods as shown above.
- There is no driver for real disks. `MemDisk` is the only disk.
- `tinyfs-mkfs` writes files only into the root directory. `tinyfs-ls` is the only command
  that reads an image, and there is no command that changes an existing image or copies a
  file out of one.
- `Console` and `CgaScreen` emulate their behaviour in memory. They do not drive a terminal.

## Running the tests

```
pip install .[test]
pytest
```