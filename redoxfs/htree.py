"""Hashed directory tree: name hashes, hash-keyed pointers and index nodes."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import ClassVar, Iterator, Optional

from . import seahash
from .block import BLOCK_PTR_SIZE, BLOCK_SIZE, BlockLevel, BlockPtr
from .dir import DirList

__all__ = [
    "HTREE_IDX_ENTRIES",
    "HTREE_PTR_SIZE",
    "RECORD_LEVEL",
    "HTreeHash",
    "HTreePtr",
    "HTreeNode",
]

RECORD_LEVEL = 5
_U32_MAX = 0xFFFF_FFFF
_HASH_STRUCT = struct.Struct("<I")
HTREE_PTR_SIZE = _HASH_STRUCT.size + BLOCK_PTR_SIZE
HTREE_IDX_ENTRIES = BLOCK_SIZE // HTREE_PTR_SIZE
HTREE_IDX_PADDING = BLOCK_SIZE - HTREE_IDX_ENTRIES * HTREE_PTR_SIZE


@dataclass(frozen=True, order=True)
class HTreeHash:
    """A 32-bit name hash; the default (all ones) sorts last and means unset."""

    value: int = _U32_MAX
    MAX: ClassVar[HTreeHash]

    def __post_init__(self) -> None:
        if not 0 <= self.value <= _U32_MAX:
            raise ValueError("htree hash out of range")

    @classmethod
    def from_name(cls, name: str) -> HTreeHash:
        value = seahash.hash(name.encode("utf-8")) & _U32_MAX
        # A real name never hashes to the unset value.
        if value == _U32_MAX:
            return cls.MAX
        return cls(value)

    def _is_default(self) -> bool:
        return self.value == _U32_MAX

    def max_ignoring_default(self, other: HTreeHash) -> HTreeHash:
        """The larger of two hashes, treating the unset value as absent."""
        if self._is_default():
            return other
        if other._is_default():
            return self
        return self if self > other else other

    @classmethod
    def find_max(cls, dir_list: DirList) -> Optional[HTreeHash]:
        """Largest name hash in ``dir_list``, or None when it has no entries."""
        best = cls()
        for _, name in dir_list.raw_entries():
            best = best.max_ignoring_default(
                cls.from_name(name.decode("utf-8", errors="replace"))
            )
        return None if best._is_default() else best


HTreeHash.MAX = HTreeHash(_U32_MAX - 1)


@dataclass(frozen=True)
class HTreePtr:
    """A block pointer keyed by the largest name hash reachable through it."""

    htree_hash: HTreeHash = HTreeHash()
    ptr: BlockPtr = BlockPtr()

    def is_null(self) -> bool:
        return self.ptr.is_null()

    def to_bytes(self) -> bytes:
        return _HASH_STRUCT.pack(self.htree_hash.value) + self.ptr.to_bytes()

    @classmethod
    def from_bytes(cls, data: bytes) -> HTreePtr:
        data = bytes(data)
        if len(data) != HTREE_PTR_SIZE:
            raise ValueError(f"htree pointer needs {HTREE_PTR_SIZE} bytes")
        (value,) = _HASH_STRUCT.unpack_from(data)
        return cls(HTreeHash(value), BlockPtr.from_bytes(data[_HASH_STRUCT.size :]))


def _empty_htree_ptrs() -> list:
    return [HTreePtr()] * HTREE_IDX_ENTRIES


@dataclass
class HTreeNode:
    """An index block of hash-keyed pointers."""

    ptrs: list = field(default_factory=_empty_htree_ptrs)
    padding: bytes = field(default=bytes(HTREE_IDX_PADDING), repr=False)

    @classmethod
    def empty(cls, level: BlockLevel) -> Optional[HTreeNode]:
        return cls() if level.value <= RECORD_LEVEL else None

    def find_max_htree_hash(self) -> Optional[HTreeHash]:
        best = HTreeHash()
        for entry in self.ptrs:
            best = best.max_ignoring_default(entry.htree_hash)
        return None if best._is_default() else best

    def find_ptrs_for_read(self, htree_hash: HTreeHash) -> Iterator[tuple[int, HTreePtr]]:
        """Yield (index, pointer) for every child that may hold ``htree_hash``.

        That is each entry whose hash equals it, plus the first larger one.
        """
        last = HTreeHash(0)
        for index, entry in enumerate(self.ptrs):
            if entry.htree_hash < htree_hash:
                continue
            take = not entry.is_null() and last <= htree_hash
            last = entry.htree_hash
            if not take:
                return
            yield index, entry

    def to_bytes(self) -> bytes:
        if len(self.ptrs) != HTREE_IDX_ENTRIES or len(self.padding) != HTREE_IDX_PADDING:
            raise ValueError(f"htree node holds exactly {HTREE_IDX_ENTRIES} pointers")
        return b"".join(ptr.to_bytes() for ptr in self.ptrs) + bytes(self.padding)

    @classmethod
    def from_bytes(cls, data: bytes) -> HTreeNode:
        data = bytes(data)
        if len(data) != BLOCK_SIZE:
            raise ValueError(f"htree node needs {BLOCK_SIZE} bytes")
        end = HTREE_IDX_ENTRIES * HTREE_PTR_SIZE
        return cls(
            [
                HTreePtr.from_bytes(data[offset : offset + HTREE_PTR_SIZE])
                for offset in range(0, end, HTREE_PTR_SIZE)
            ],
            data[end:],
        )