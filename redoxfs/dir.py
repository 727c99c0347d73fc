"""Directory entries and the packed block of entries that holds them."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import Iterator, Optional, Union

from .block import BLOCK_SIZE, TREE_PTR_SIZE, BlockLevel, TreePtr

__all__ = [
    "DIR_ENTRY_MAX_LENGTH",
    "DIR_LIST_CAPACITY",
    "DirEntry",
    "DirList",
]

DIR_ENTRY_MAX_LENGTH = 252
_PREFIX_SIZE = TREE_PTR_SIZE + 1
_HEADER = struct.Struct("<HH")
DIR_LIST_CAPACITY = BLOCK_SIZE - _HEADER.size


@dataclass(frozen=True)
class DirEntry:
    """A name in a directory and the tree node it refers to.

    The name is kept as raw bytes; it ends at the first NUL byte.
    """

    node_ptr: TreePtr = TreePtr()
    name_bytes: Union[bytes, str] = b""

    def __post_init__(self) -> None:
        raw = self.name_bytes
        raw = raw.encode("utf-8") if isinstance(raw, str) else bytes(raw)
        raw = raw.split(b"\0", 1)[0]
        if len(raw) > DIR_ENTRY_MAX_LENGTH:
            raise ValueError(
                f"directory entry name longer than {DIR_ENTRY_MAX_LENGTH} bytes"
            )
        object.__setattr__(self, "name_bytes", raw)

    def name(self) -> Optional[str]:
        """The name as text, or None when it is not valid UTF-8."""
        try:
            return self.name_bytes.decode("utf-8")
        except UnicodeDecodeError:
            return None

    def serialized_size(self) -> int:
        """Bytes taken by this entry inside a directory list."""
        return _PREFIX_SIZE + len(self.name_bytes)

    def serialize(self) -> bytes:
        """Pointer, name length byte and name bytes."""
        return self.node_ptr.to_bytes() + bytes([len(self.name_bytes)]) + self.name_bytes

    @classmethod
    def deserialize(cls, data) -> tuple[DirEntry, int]:
        """Read one entry from the start of ``data``; return it and its size."""
        view = memoryview(data)
        if len(view) <= _PREFIX_SIZE:
            raise ValueError("Buffer too small")
        node_ptr = TreePtr.from_bytes(bytes(view[:TREE_PTR_SIZE]))
        name_len = view[TREE_PTR_SIZE]
        if not 1 <= name_len <= DIR_ENTRY_MAX_LENGTH:
            raise ValueError("Invalid name length")
        end = _PREFIX_SIZE + name_len
        if len(view) < end:
            raise ValueError("Buffer too small")
        return cls(node_ptr, bytes(view[_PREFIX_SIZE:end])), end


@dataclass
class DirList:
    """A block of directory entries packed one after another."""

    count: int = 0
    entry_bytes_len: int = 0
    entry_bytes: bytearray = field(default_factory=lambda: bytearray(DIR_LIST_CAPACITY))

    @classmethod
    def empty(cls, level: BlockLevel) -> Optional[DirList]:
        return cls() if level.value == 0 else None

    def is_empty(self) -> bool:
        return self.count == 0

    def entry_count(self) -> int:
        return self.count

    def _walk(self) -> Iterator[tuple[int, int]]:
        position = 0
        for _ in range(self.count):
            name_len = self.entry_bytes[position + TREE_PTR_SIZE]
            yield position, name_len
            position += _PREFIX_SIZE + name_len

    def entries(self) -> Iterator[DirEntry]:
        """Yield the entries in stored order."""
        view = memoryview(self.entry_bytes)
        for position, _ in self._walk():
            entry, _ = DirEntry.deserialize(view[position:])
            yield entry

    def raw_entries(self) -> Iterator[tuple[TreePtr, bytes]]:
        """Yield each entry's node pointer and raw name bytes."""
        for position, name_len in self._walk():
            start = position + _PREFIX_SIZE
            yield (
                TreePtr.from_bytes(bytes(self.entry_bytes[position : position + TREE_PTR_SIZE])),
                bytes(self.entry_bytes[start : start + name_len]),
            )

    def _position_of(self, name: str) -> Optional[int]:
        wanted = name.encode("utf-8")
        for position, name_len in self._walk():
            if name_len == len(wanted):
                start = position + _PREFIX_SIZE
                if self.entry_bytes[start : start + name_len] == wanted:
                    return position
        return None

    def find_entry(self, name: str) -> Optional[DirEntry]:
        position = self._position_of(name)
        if position is None:
            return None
        entry, _ = DirEntry.deserialize(memoryview(self.entry_bytes)[position:])
        return entry

    def remove_entry(self, name: str) -> bool:
        """Remove the entry called ``name``; return whether it was present."""
        position = self._position_of(name)
        if position is None:
            return False
        size = _PREFIX_SIZE + self.entry_bytes[position + TREE_PTR_SIZE]
        end = self.entry_bytes_len
        if end - position - size > 0:
            self.entry_bytes[position : end - size] = self.entry_bytes[position + size : end]
        self.entry_bytes_len -= size
        self.count -= 1
        return True

    def append(self, entry: DirEntry) -> bool:
        """Add ``entry`` at the end; return False when it does not fit."""
        size = entry.serialized_size()
        start = self.entry_bytes_len
        if start + size > len(self.entry_bytes):
            return False
        self.entry_bytes[start : start + size] = entry.serialize()
        self.count += 1
        self.entry_bytes_len += size
        return True

    def to_bytes(self) -> bytes:
        if len(self.entry_bytes) != DIR_LIST_CAPACITY:
            raise ValueError(f"directory list holds exactly {DIR_LIST_CAPACITY} entry bytes")
        return _HEADER.pack(self.count, self.entry_bytes_len) + bytes(self.entry_bytes)

    @classmethod
    def from_bytes(cls, data: bytes) -> DirList:
        data = bytes(data)
        if len(data) != BLOCK_SIZE:
            raise ValueError(f"directory list needs {BLOCK_SIZE} bytes")
        count, used = _HEADER.unpack_from(data)
        if used > DIR_LIST_CAPACITY:
            raise ValueError("directory list claims more bytes than it holds")
        return cls(count, used, bytearray(data[_HEADER.size :]))