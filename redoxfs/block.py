"""Block addresses, levels, pointers and fixed-size block containers."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import Generic, Optional, TypeVar

from . import seahash

BLOCK_SIZE = 4096
U64_MAX = (1 << 64) - 1

_INDEX_SHIFT = 8
_DECOMP_LEVEL_MASK = 0xF0
_DECOMP_LEVEL_SHIFT = 4
_LEVEL_MASK = 0xF

_PTR_STRUCT = struct.Struct("<QQ")
BLOCK_PTR_SIZE = _PTR_STRUCT.size
BLOCK_LIST_ENTRIES = BLOCK_SIZE // BLOCK_PTR_SIZE
TREE_PTR_SIZE = 4

T = TypeVar("T")


@dataclass(frozen=True, order=True)
class BlockLevel:
    """Size class of a block: a level ``n`` block spans ``2**n`` base blocks."""

    value: int = 0

    def __post_init__(self) -> None:
        if self.value < 0:
            raise ValueError("block level must not be negative")

    @classmethod
    def for_bytes(cls, nbytes: int) -> BlockLevel:
        """Return the smallest level able to hold ``nbytes`` bytes."""
        if nbytes <= 0:
            return cls(0)
        blocks = -(-nbytes // BLOCK_SIZE)
        return cls((blocks - 1).bit_length())

    def blocks(self) -> int:
        """Number of base blocks in a block of this level."""
        return 1 << self.value

    def bytes(self) -> int:
        """Number of bytes in a block of this level."""
        return BLOCK_SIZE << self.value


@dataclass(frozen=True)
class BlockMeta:
    """Level and optional decompressed level of a block."""

    level: BlockLevel = BlockLevel(0)
    decomp_level: Optional[BlockLevel] = None

    @classmethod
    def compressed(cls, level: BlockLevel, decomp_level: BlockLevel) -> BlockMeta:
        return cls(level, decomp_level)


@dataclass(frozen=True, order=True)
class BlockAddr:
    """A block address packing index, decompressed level and level into a u64."""

    value: int = 0

    def __post_init__(self) -> None:
        if not 0 <= self.value <= U64_MAX:
            raise ValueError("block address out of range")

    @classmethod
    def new(cls, index: int, meta: BlockMeta = BlockMeta()) -> BlockAddr:
        if meta.level.value > _LEVEL_MASK:
            raise ValueError("block level too large")
        decomp = meta.decomp_level or BlockLevel(0)
        if (decomp.value << _DECOMP_LEVEL_SHIFT) > _DECOMP_LEVEL_MASK:
            raise ValueError("decompressed block level too large")
        if index < 0 or (index << _INDEX_SHIFT) > U64_MAX:
            raise ValueError("block index too large")
        return cls(
            (index << _INDEX_SHIFT)
            | (decomp.value << _DECOMP_LEVEL_SHIFT)
            | meta.level.value
        )

    @classmethod
    def null(cls, meta: BlockMeta = BlockMeta()) -> BlockAddr:
        return cls.new(0, meta)

    def index(self) -> int:
        return self.value >> _INDEX_SHIFT

    def level(self) -> BlockLevel:
        return BlockLevel(self.value & _LEVEL_MASK)

    def decomp_level(self) -> Optional[BlockLevel]:
        value = (self.value & _DECOMP_LEVEL_MASK) >> _DECOMP_LEVEL_SHIFT
        return BlockLevel(value) if value else None

    def meta(self) -> BlockMeta:
        return BlockMeta(self.level(), self.decomp_level())

    def is_null(self) -> bool:
        return self.index() == 0


@dataclass(frozen=True)
class BlockPtr:
    """A block address together with the checksum of the block's data."""

    addr: BlockAddr = BlockAddr()
    hash: int = 0

    @classmethod
    def null(cls, meta: BlockMeta = BlockMeta()) -> BlockPtr:
        return cls(BlockAddr.null(meta), 0)

    @classmethod
    def marker(cls, level: int) -> BlockPtr:
        if not 0 <= level <= 0xF:
            raise ValueError("marker level must fit in four bits")
        return cls(BlockAddr(0xFFFF_FFFF_FFFF_FFF0 | level), U64_MAX)

    def is_null(self) -> bool:
        return self.addr.is_null()

    def is_marker(self) -> bool:
        return (self.addr.value | 0xF) == U64_MAX and self.hash == U64_MAX

    def to_bytes(self) -> bytes:
        return _PTR_STRUCT.pack(self.addr.value, self.hash)

    @classmethod
    def from_bytes(cls, data: bytes) -> BlockPtr:
        if len(data) != BLOCK_PTR_SIZE:
            raise ValueError(f"block pointer needs {BLOCK_PTR_SIZE} bytes")
        addr, digest = _PTR_STRUCT.unpack(data)
        return cls(BlockAddr(addr), digest)


@dataclass(frozen=True, order=True)
class TreePtr:
    """A 32-bit identifier of a node in the filesystem tree."""

    id: int = 0

    def __post_init__(self) -> None:
        if not 0 <= self.id <= 0xFFFF_FFFF:
            raise ValueError("tree pointer out of range")

    @classmethod
    def root(cls) -> TreePtr:
        return cls(1)

    def is_null(self) -> bool:
        return self.id == 0

    def to_bytes(self) -> bytes:
        return self.id.to_bytes(TREE_PTR_SIZE, "little")

    @classmethod
    def from_bytes(cls, data: bytes) -> TreePtr:
        if len(data) != TREE_PTR_SIZE:
            raise ValueError(f"tree pointer needs {TREE_PTR_SIZE} bytes")
        return cls(int.from_bytes(data, "little"))


@dataclass
class BlockData(Generic[T]):
    """A block address and the data stored there."""

    addr: BlockAddr
    data: T

    def swap_addr(self, addr: BlockAddr) -> BlockAddr:
        """Point this block at ``addr`` and return the previous address."""
        if self.addr.level() != addr.level():
            raise ValueError("address levels must match")
        old, self.addr = self.addr, addr
        return old

    def create_ptr(self) -> BlockPtr:
        """Return a pointer to this block carrying the checksum of its data."""
        data = self.data
        raw = bytes(data) if isinstance(data, (bytes, bytearray, memoryview)) else data.to_bytes()
        return BlockPtr(self.addr, seahash.hash(raw))


def _empty_ptrs() -> list:
    return [BlockPtr()] * BLOCK_LIST_ENTRIES


@dataclass
class BlockList:
    """A block filled with block pointers."""

    ptrs: list = field(default_factory=_empty_ptrs)

    @classmethod
    def empty(cls, level: BlockLevel) -> Optional[BlockList]:
        return cls() if level.value == 0 else None

    def is_empty(self) -> bool:
        return all(ptr.is_null() for ptr in self.ptrs)

    def to_bytes(self) -> bytes:
        if len(self.ptrs) != BLOCK_LIST_ENTRIES:
            raise ValueError(f"block list holds exactly {BLOCK_LIST_ENTRIES} pointers")
        return b"".join(ptr.to_bytes() for ptr in self.ptrs)

    @classmethod
    def from_bytes(cls, data: bytes) -> BlockList:
        if len(data) != BLOCK_SIZE:
            raise ValueError(f"block list needs {BLOCK_SIZE} bytes")
        view = memoryview(data)
        return cls(
            [
                BlockPtr.from_bytes(bytes(view[offset : offset + BLOCK_PTR_SIZE]))
                for offset in range(0, BLOCK_SIZE, BLOCK_PTR_SIZE)
            ]
        )


@dataclass
class BlockRaw:
    """A block of raw bytes."""

    data: bytearray = field(default_factory=lambda: bytearray(BLOCK_SIZE))

    @classmethod
    def empty(cls, level: BlockLevel) -> Optional[BlockRaw]:
        return cls() if level.value == 0 else None

    def to_bytes(self) -> bytes:
        return bytes(self.data)

    @classmethod
    def from_bytes(cls, data: bytes) -> BlockRaw:
        if len(data) != BLOCK_SIZE:
            raise ValueError(f"raw block needs {BLOCK_SIZE} bytes")
        return cls(bytearray(data))