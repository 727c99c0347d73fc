import pytest

from redoxfs.allocator import (
    ALLOC_LIST_ENTRIES,
    RELEASE_LIST_ENTRIES,
    AllocEntry,
    AllocList,
    Allocator,
    ReleaseList,
)
from redoxfs.block import BLOCK_SIZE, BlockAddr, BlockLevel, BlockMeta, BlockPtr, TreePtr


def addr(index, level=0):
    return BlockAddr.new(index, BlockMeta(BlockLevel(level)))


def test_alloc_list_size():
    assert len(AllocList().to_bytes()) == BLOCK_SIZE


def test_release_list_size():
    assert len(ReleaseList().to_bytes()) == BLOCK_SIZE


def test_allocator_sequence():
    alloc = Allocator()
    assert alloc.allocate(BlockMeta()) is None

    alloc.deallocate(addr(1))
    assert alloc.allocate(BlockMeta()) == addr(1)
    assert alloc.allocate(BlockMeta()) is None

    for index in range(1023, 2048):
        alloc.deallocate(addr(index))

    assert len(alloc.levels) == 11
    for level, indices in enumerate(alloc.levels):
        if level == 0:
            assert indices == {1023}
        elif level == 10:
            assert indices == {1024}
        else:
            assert indices == set()

    for index in range(1023, 2048):
        assert alloc.allocate(BlockMeta()) == addr(index)
    assert alloc.allocate(BlockMeta()) is None

    assert len(alloc.levels) == 11
    assert all(indices == set() for indices in alloc.levels)


def test_free_counts_base_blocks():
    alloc = Allocator()
    for index in range(0, 8):
        alloc.deallocate(addr(index))
    assert alloc.levels[3] == {0}
    assert alloc.free() == 8


def test_allocate_higher_level_splits():
    alloc = Allocator()
    for index in range(4):
        alloc.deallocate(addr(index))
    got = alloc.allocate(BlockMeta(BlockLevel(1)))
    assert got == addr(0, 1)
    assert alloc.levels[1] == {2}
    assert alloc.free() == 2


def test_allocate_exact_splits_down():
    alloc = Allocator()
    for index in range(8):
        alloc.deallocate(addr(index))
    assert alloc.allocate_exact(addr(5)) == addr(5)
    assert alloc.levels[0] == {4}
    assert alloc.levels[1] == {6}
    assert alloc.levels[2] == {0}
    assert alloc.levels[3] == set()
    assert alloc.free() == 7


def test_allocate_exact_already_used():
    alloc = Allocator()
    for index in range(8):
        alloc.deallocate(addr(index))
    alloc.allocate_exact(addr(5))
    assert alloc.allocate_exact(addr(5)) is None
    assert alloc.free() == 7


def test_allocate_exact_rejects_higher_level():
    with pytest.raises(ValueError):
        Allocator().allocate_exact(addr(4, 1))


def test_deallocate_then_rejoin():
    alloc = Allocator()
    for index in range(8):
        alloc.deallocate(addr(index))
    alloc.allocate_exact(addr(5))
    alloc.deallocate(addr(5))
    assert alloc.levels[3] == {0}
    assert all(not alloc.levels[level] for level in range(3))


def test_alloc_entry_allocate_and_deallocate():
    block = addr(5, 2)
    assert AllocEntry.allocated(block) == AllocEntry(5, -4)
    assert AllocEntry.deallocated(block) == AllocEntry(5, 4)
    assert AllocEntry().is_null()
    assert not AllocEntry(1, 1).is_null()


def test_alloc_entry_round_trip():
    entry = AllocEntry(12345, -8)
    data = entry.to_bytes()
    assert len(data) == 16
    assert AllocEntry.from_bytes(data) == entry


def test_alloc_entry_wrong_size():
    with pytest.raises(ValueError):
        AllocEntry.from_bytes(b"\0" * 15)


def test_alloc_list_round_trip():
    alloc_list = AllocList.empty(BlockLevel(0))
    alloc_list.prev = BlockPtr(addr(7), 99)
    alloc_list.entries[0] = AllocEntry(3, 2)
    alloc_list.entries[ALLOC_LIST_ENTRIES - 1] = AllocEntry(9, -1)
    restored = AllocList.from_bytes(alloc_list.to_bytes())
    assert restored == alloc_list
    assert len(restored.entries) == ALLOC_LIST_ENTRIES


def test_alloc_list_empty_only_level_zero():
    assert AllocList.empty(BlockLevel(1)) is None


def test_release_list_round_trip():
    release = ReleaseList.empty(BlockLevel(0))
    release.entries[0] = TreePtr(42)
    release.entries[RELEASE_LIST_ENTRIES - 1] = TreePtr(7)
    restored = ReleaseList.from_bytes(release.to_bytes())
    assert restored == release
    assert ReleaseList.empty(BlockLevel(2)) is None


def test_release_list_wrong_size():
    with pytest.raises(ValueError):
        ReleaseList.from_bytes(b"\0" * 100)