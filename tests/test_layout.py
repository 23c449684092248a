import pytest

from tinyfs.layout import (
    BPB,
    BSIZE,
    DINODE_SIZE,
    DIRENT_SIZE,
    DIRSIZ,
    IPB,
    NDIRECT,
    DirEntry,
    DiskInode,
    FileType,
    SuperBlock,
    bblock,
    iblock,
)


def test_superblock_round_trip():
    sb = SuperBlock(1000, 941, 200, 30, 2, 32, 58)
    data = sb.pack()
    assert len(data) == 28
    assert SuperBlock.unpack(data) == sb


def test_superblock_unpack_from_larger_block():
    sb = SuperBlock(10, 5, 8, 3, 2, 5, 6)
    block = sb.pack() + bytes(BSIZE - 28)
    assert SuperBlock.unpack(block) == sb


def test_superblock_is_little_endian():
    data = SuperBlock(size=1).pack()
    assert data[:4] == b"\x01\x00\x00\x00"


def test_dinode_size_divides_block():
    packed = DiskInode().pack()
    assert len(packed) == DINODE_SIZE == 64
    assert IPB * len(packed) == BSIZE


def test_dinode_round_trip():
    addrs = list(range(1, NDIRECT + 2))
    din = DiskInode(int(FileType.FILE), 0, 0, 1, 1234, addrs)
    packed = din.pack()
    assert len(packed) == DINODE_SIZE
    assert DiskInode.unpack(packed) == din


def test_dinode_default_is_free():
    din = DiskInode.unpack(bytes(DINODE_SIZE))
    assert din.type == 0
    assert din.addrs == [0] * (NDIRECT + 1)


def test_dinode_rejects_wrong_address_count():
    with pytest.raises(ValueError):
        DiskInode(addrs=[0, 1]).pack()


def test_dirent_wire_format():
    assert DirEntry(1, ".").pack() == b"\x01\x00." + b"\x00" * 13
    assert DIRENT_SIZE == 16


def test_dirent_round_trip():
    de = DirEntry(7, "README")
    assert DirEntry.unpack(de.pack()) == de


def test_dirent_long_name_truncated():
    name = "abcdefghijklmnopqrstuvwxyz"
    de = DirEntry.unpack(DirEntry(3, name).pack())
    assert de.name == name[:DIRSIZ]
    assert de.inum == 3


def test_iblock_groups_inodes():
    sb = SuperBlock(inodestart=32)
    assert iblock(0, sb) == sb.inodestart
    assert iblock(IPB - 1, sb) == sb.inodestart
    assert iblock(IPB, sb) == sb.inodestart + 1


def test_bblock_groups_blocks():
    sb = SuperBlock(bmapstart=58)
    assert bblock(0, sb) == sb.bmapstart
    assert bblock(BPB - 1, sb) == sb.bmapstart
    assert bblock(BPB, sb) == sb.bmapstart + 1


def test_file_type_values():
    assert FileType(1) is FileType.DIR
    assert FileType(3) is FileType.DEV