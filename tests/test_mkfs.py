import pytest

from tinyfs.filesystem import FileSystem
from tinyfs.layout import (
    BSIZE,
    DIRENT_SIZE,
    FSSIZE,
    LOGSIZE,
    MAXFILE,
    NDIRECT,
    ROOTINO,
    DirEntry,
    DiskInode,
    FileType,
    SuperBlock,
)
from tinyfs.memdisk import MemDisk
from tinyfs.mkfs import NINODES, ImageBuilder, main, make_image


def _root_entries(builder, image):
    din = builder.rinode(ROOTINO)
    block = image[din.addrs[0] * BSIZE:(din.addrs[0] + 1) * BSIZE]
    entries = [DirEntry.unpack(block[off:off + DIRENT_SIZE])
               for off in range(0, BSIZE, DIRENT_SIZE)]
    return [e for e in entries if e.inum]


def _read_file(image, path):
    fs = FileSystem(MemDisk(image))
    with fs.log.transaction():
        ip = fs.namei(path)
        with fs.locked(ip):
            return fs.readi(ip, 0, ip.size)


def _bit(bitmap, index):
    return (bitmap[index // 8] >> (index % 8)) & 1


def test_superblock_layout():
    builder = ImageBuilder()
    image = builder.finish()
    sb = SuperBlock.unpack(image[BSIZE:2 * BSIZE])
    assert sb == builder.sb
    assert sb.size == FSSIZE
    assert sb.ninodes == NINODES
    assert sb.nlog == LOGSIZE
    assert sb.logstart == 2
    assert sb.inodestart == 2 + LOGSIZE
    assert sb.nblocks + builder.nmeta == FSSIZE
    assert len(image) == FSSIZE * BSIZE


def test_root_directory():
    builder = ImageBuilder()
    image = builder.finish()
    din = builder.rinode(ROOTINO)
    assert din.type == FileType.DIR
    assert din.nlink == 1
    assert din.size % BSIZE == 0
    entries = _root_entries(builder, image)
    assert [(e.name, e.inum) for e in entries] == [(".", ROOTINO), ("..", ROOTINO)]


def test_add_file_strips_underscore():
    builder = ImageBuilder()
    inum = builder.add_file("_cat", b"meow")
    image = builder.finish()
    names = {e.name: e.inum for e in _root_entries(builder, image)}
    assert names["cat"] == inum
    assert _read_file(image, "/cat") == b"meow"


def test_add_file_rejects_slash():
    builder = ImageBuilder()
    with pytest.raises(ValueError):
        builder.add_file("a/b", b"")


def test_bitmap_marks_used_blocks():
    builder = ImageBuilder()
    builder.add_file("f", b"x" * (3 * BSIZE))
    image = builder.finish()
    start = builder.sb.bmapstart * BSIZE
    bitmap = image[start:start + BSIZE]
    used = builder.freeblock
    assert _bit(bitmap, 0) == 1
    assert _bit(bitmap, used - 1) == 1
    assert _bit(bitmap, used) == 0
    assert sum(bin(byte).count("1") for byte in bitmap) == used


def test_inode_round_trip():
    builder = ImageBuilder()
    din = DiskInode(type=FileType.FILE, nlink=3, size=99,
                    addrs=list(range(NDIRECT + 1)))
    builder.winode(7, din)
    assert builder.rinode(7) == din


def test_ialloc_sequential():
    builder = ImageBuilder()
    first = builder.ialloc(FileType.FILE)
    second = builder.ialloc(FileType.FILE)
    assert second == first + 1
    assert builder.rinode(first).type == FileType.FILE


def test_large_file_round_trip():
    builder = ImageBuilder()
    payload = bytes(i % 253 for i in range((NDIRECT + 2) * BSIZE + 7))
    builder.add_file("big", payload)
    image = builder.finish()
    assert _read_file(image, "/big") == payload


def test_iappend_too_large():
    builder = ImageBuilder()
    inum = builder.ialloc(FileType.FILE)
    with pytest.raises(ValueError):
        builder.iappend(inum, bytes(MAXFILE * BSIZE + 1))


def test_make_image(tmp_path):
    target = tmp_path / "fs.img"
    builder = make_image(target, {"one": b"1", "_two": b"22"})
    image = target.read_bytes()
    assert len(image) == FSSIZE * BSIZE
    assert image == builder.finish()
    assert _read_file(image, "/two") == b"22"
    assert _read_file(image, "/one") == b"1"


def test_main_builds_image(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "_ls").write_bytes(b"program")
    assert main(["fs.img", "_ls"]) == 0
    out = capsys.readouterr().out
    assert "balloc: write bitmap block at sector" in out
    assert _read_file((tmp_path / "fs.img").read_bytes(), "/ls") == b"program"


def test_main_usage(capsys):
    assert main([]) == 1
    assert "Usage: mkfs fs.img files..." in capsys.readouterr().err


def test_main_missing_input(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert main(["fs.img", "absent"]) == 1