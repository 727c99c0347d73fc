"""Buddy allocator for data blocks and the on-disk allocation and release logs."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import Optional

from .block import (
    BLOCK_PTR_SIZE,
    BLOCK_SIZE,
    TREE_PTR_SIZE,
    BlockAddr,
    BlockLevel,
    BlockMeta,
    BlockPtr,
    TreePtr,
)

__all__ = [
    "ALLOC_ENTRY_SIZE",
    "ALLOC_LIST_ENTRIES",
    "RELEASE_LIST_ENTRIES",
    "Allocator",
    "AllocEntry",
    "AllocList",
    "ReleaseList",
]

_ENTRY_STRUCT = struct.Struct("<Qq")
ALLOC_ENTRY_SIZE = _ENTRY_STRUCT.size
ALLOC_LIST_ENTRIES = (BLOCK_SIZE - BLOCK_PTR_SIZE) // ALLOC_ENTRY_SIZE
RELEASE_LIST_ENTRIES = (BLOCK_SIZE - BLOCK_PTR_SIZE) // TREE_PTR_SIZE


@dataclass
class Allocator:
    """Tracks free data blocks per level, splitting and joining buddies.

    ``levels[n]`` holds the indices of free blocks of level ``n``, each
    spanning ``2**n`` base blocks.
    """

    levels: list = field(default_factory=list)

    def free(self) -> int:
        """Number of free base blocks."""
        return sum(len(indices) << level for level, indices in enumerate(self.levels))

    def allocate(self, meta: BlockMeta = BlockMeta()) -> Optional[BlockAddr]:
        """Take the lowest free block able to hold a block of ``meta.level``.

        Returns None when no such block is free.
        """
        wanted = meta.level.value
        best: Optional[tuple[int, int]] = None
        for level in range(wanted, len(self.levels)):
            indices = self.levels[level]
            if not indices:
                continue
            index = min(indices)
            if best is None or index < best[1]:
                best = (level, index)
        if best is None:
            return None

        level, index = best
        self.levels[level].discard(index)
        while level > wanted:
            level -= 1
            self.levels[level].add(index + (1 << level))
        return BlockAddr.new(index, meta)

    def allocate_exact(self, exact_addr: BlockAddr) -> Optional[BlockAddr]:
        """Take exactly the level-0 block at ``exact_addr``, splitting as needed.

        Returns None when the block is not free.
        """
        if exact_addr.level().value != 0:
            raise ValueError("only level 0 blocks can be allocated exactly")
        exact_index = exact_addr.index()

        found: Optional[int] = None
        for level in reversed(range(len(self.levels))):
            level_size = 1 << level
            indices = self.levels[level]
            if found is not None:
                indices.add(found)
                indices.add(found + level_size)
                found = None
            containing = [
                start for start in indices if start <= exact_index < start + level_size
            ]
            if containing:
                found = min(containing)
                indices.discard(found)

        if found is None:
            return None
        return BlockAddr.new(found, exact_addr.meta())

    def deallocate(self, addr: BlockAddr) -> None:
        """Mark ``addr`` free, joining it with free buddies into larger blocks."""
        index = addr.index()
        level = addr.level().value
        while True:
            while level >= len(self.levels):
                self.levels.append(set())

            indices = self.levels[level]
            level_size = 1 << level
            next_size = level_size << 1

            right = index + level_size
            left = index - level_size
            if index % next_size == 0 and right in indices:
                indices.discard(right)
            elif left >= 0 and left % next_size == 0 and left in indices:
                indices.discard(left)
                index = left
            else:
                indices.add(index)
                return
            level += 1


@dataclass(frozen=True)
class AllocEntry:
    """A run of blocks: positive ``count`` marks them free, negative used."""

    index: int = 0
    count: int = 0

    @classmethod
    def allocated(cls, addr: BlockAddr) -> AllocEntry:
        return cls(addr.index(), -addr.level().blocks())

    @classmethod
    def deallocated(cls, addr: BlockAddr) -> AllocEntry:
        return cls(addr.index(), addr.level().blocks())

    def is_null(self) -> bool:
        return self.count == 0

    def to_bytes(self) -> bytes:
        return _ENTRY_STRUCT.pack(self.index, self.count)

    @classmethod
    def from_bytes(cls, data: bytes) -> AllocEntry:
        if len(data) != ALLOC_ENTRY_SIZE:
            raise ValueError(f"allocation entry needs {ALLOC_ENTRY_SIZE} bytes")
        index, count = _ENTRY_STRUCT.unpack(data)
        return cls(index, count)


def _empty_alloc_entries() -> list:
    return [AllocEntry()] * ALLOC_LIST_ENTRIES


def _empty_release_entries() -> list:
    return [TreePtr()] * RELEASE_LIST_ENTRIES


def _chunks(data: bytes, start: int, size: int) -> list[bytes]:
    return [data[offset : offset + size] for offset in range(start, len(data), size)]


@dataclass
class AllocList:
    """One block of the allocation log, linked to the previous one."""

    prev: BlockPtr = field(default_factory=BlockPtr)
    entries: list = field(default_factory=_empty_alloc_entries)

    @classmethod
    def empty(cls, level: BlockLevel) -> Optional[AllocList]:
        return cls() if level.value == 0 else None

    def to_bytes(self) -> bytes:
        if len(self.entries) != ALLOC_LIST_ENTRIES:
            raise ValueError(f"allocation list holds exactly {ALLOC_LIST_ENTRIES} entries")
        return self.prev.to_bytes() + b"".join(entry.to_bytes() for entry in self.entries)

    @classmethod
    def from_bytes(cls, data: bytes) -> AllocList:
        data = bytes(data)
        if len(data) != BLOCK_SIZE:
            raise ValueError(f"allocation list needs {BLOCK_SIZE} bytes")
        return cls(
            BlockPtr.from_bytes(data[:BLOCK_PTR_SIZE]),
            [
                AllocEntry.from_bytes(chunk)
                for chunk in _chunks(data, BLOCK_PTR_SIZE, ALLOC_ENTRY_SIZE)
            ],
        )

    def __repr__(self) -> str:
        used = [entry for entry in self.entries if entry.count > 0]
        return f"AllocList(prev={self.prev!r}, entries={used!r})"


@dataclass
class ReleaseList:
    """One block of the list of tree nodes waiting to be released."""

    prev: BlockPtr = field(default_factory=BlockPtr)
    entries: list = field(default_factory=_empty_release_entries)

    @classmethod
    def empty(cls, level: BlockLevel) -> Optional[ReleaseList]:
        return cls() if level.value == 0 else None

    def to_bytes(self) -> bytes:
        if len(self.entries) != RELEASE_LIST_ENTRIES:
            raise ValueError(f"release list holds exactly {RELEASE_LIST_ENTRIES} entries")
        return self.prev.to_bytes() + b"".join(entry.to_bytes() for entry in self.entries)

    @classmethod
    def from_bytes(cls, data: bytes) -> ReleaseList:
        data = bytes(data)
        if len(data) != BLOCK_SIZE:
            raise ValueError(f"release list needs {BLOCK_SIZE} bytes")
        return cls(
            BlockPtr.from_bytes(data[:BLOCK_PTR_SIZE]),
            [
                TreePtr.from_bytes(chunk)
                for chunk in _chunks(data, BLOCK_PTR_SIZE, TREE_PTR_SIZE)
            ],
        )

    def __repr__(self) -> str:
        ids = [entry.id for entry in self.entries if not entry.is_null()]
        return f"ReleaseList(prev={self.prev!r}, entries={ids!r})"