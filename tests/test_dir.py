import pytest

from redoxfs.block import BLOCK_SIZE, BlockLevel, TreePtr
from redoxfs.dir import DIR_ENTRY_MAX_LENGTH, DirEntry, DirList


def test_dir_list_size():
    assert len(DirList.empty(BlockLevel(0)).to_bytes()) == BLOCK_SIZE


def test_dir_list_empty_only_level_zero():
    assert DirList.empty(BlockLevel(1)) is None
    assert DirList.empty(BlockLevel(0)).is_empty()


def test_append():
    dir_list = DirList.empty(BlockLevel(0))
    dirent = DirEntry(TreePtr(123), "test000")

    assert dir_list.append(dirent)
    assert dir_list.entry_count() == 1
    assert dir_list.entry_bytes_len == dirent.serialized_size()

    max_entries = len(dir_list.entry_bytes) // dirent.serialized_size()
    for i in range(1, max_entries):
        assert dir_list.append(DirEntry(TreePtr(123), f"test{i:03}")), i
    assert not dir_list.append(DirEntry(TreePtr(123), f"test{max_entries}"))

    for i, entry in enumerate(dir_list.entries()):
        assert entry.name() == f"test{i:03}"


def test_serialize_round_trip():
    entry = DirEntry(TreePtr(7), "hello")
    data = entry.serialize()
    assert data == b"\x07\x00\x00\x00\x05hello"
    back, size = DirEntry.deserialize(data + b"trailing")
    assert back == entry
    assert size == 10


def test_deserialize_errors():
    with pytest.raises(ValueError, match="Buffer too small"):
        DirEntry.deserialize(b"\x01\x00\x00\x00\x03")
    with pytest.raises(ValueError, match="Invalid name length"):
        DirEntry.deserialize(b"\x01\x00\x00\x00\x00abc")
    with pytest.raises(ValueError, match="Buffer too small"):
        DirEntry.deserialize(b"\x01\x00\x00\x00\x05ab")


def test_name_too_long():
    with pytest.raises(ValueError):
        DirEntry(TreePtr(1), "a" * (DIR_ENTRY_MAX_LENGTH + 1))


def test_name_stops_at_nul_and_invalid_utf8():
    assert DirEntry(TreePtr(1), b"abc\0def").name() == "abc"
    assert DirEntry(TreePtr(1), b"\xff\xfe").name() is None


def test_find_and_remove():
    dir_list = DirList()
    for index, name in enumerate(["alpha", "beta", "gamma"], start=1):
        assert dir_list.append(DirEntry(TreePtr(index), name))

    assert dir_list.find_entry("beta") == DirEntry(TreePtr(2), "beta")
    assert dir_list.find_entry("delta") is None

    assert dir_list.remove_entry("beta")
    assert not dir_list.remove_entry("beta")
    assert dir_list.entry_count() == 2
    assert [e.name() for e in dir_list.entries()] == ["alpha", "gamma"]
    assert dir_list.entry_bytes_len == 10 + 10
    assert dir_list.find_entry("gamma").node_ptr == TreePtr(3)


def test_raw_entries():
    dir_list = DirList()
    dir_list.append(DirEntry(TreePtr(9), "x"))
    dir_list.append(DirEntry(TreePtr(10), "yz"))
    assert list(dir_list.raw_entries()) == [(TreePtr(9), b"x"), (TreePtr(10), b"yz")]


def test_block_round_trip():
    dir_list = DirList()
    dir_list.append(DirEntry(TreePtr(5), "file"))
    data = dir_list.to_bytes()
    assert data[:4] == b"\x01\x00\x09\x00"
    back = DirList.from_bytes(data)
    assert back == dir_list
    assert [e.name() for e in back.entries()] == ["file"]


def test_from_bytes_wrong_size():
    with pytest.raises(ValueError):
        DirList.from_bytes(b"\0" * 10)