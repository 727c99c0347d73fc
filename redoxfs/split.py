"""Inserting into hashed directory blocks, splitting them in two when full."""

from __future__ import annotations

import errno
import os
from typing import Optional

from .dir import DirEntry, DirList
from .htree import HTREE_IDX_ENTRIES, HTREE_IDX_PADDING, HTreeHash, HTreePtr, HTreeNode

__all__ = ["add_inner_node", "add_dir_entry"]


def _io_error(message: str) -> OSError:
    return OSError(errno.EIO, message)


def _boundary_split(hashes: list, half: int, past_last: bool) -> int:
    """Index near ``half`` that keeps equal hashes on one side of the split."""
    pivot = hashes[half]
    same = [index for index, value in enumerate(hashes) if value == pivot]
    first_idx = min(half, same[0])
    last_idx = max(half, same[-1])
    if past_last:
        last_idx += 1
    return first_idx if (half - first_idx) < (last_idx - half) else last_idx


def _filled_ptrs(ptrs: list) -> list:
    return list(ptrs) + [HTreePtr()] * (HTREE_IDX_ENTRIES - len(ptrs))


def add_inner_node(
    parent: HTreeNode, new_ptr: HTreePtr
) -> Optional[tuple[HTreeHash, HTreeNode]]:
    """Insert ``new_ptr`` into ``parent``, keeping pointers sorted by hash.

    When ``parent`` is full it keeps the lower half and the upper half is
    returned as a new sibling together with its largest hash; otherwise
    None is returned.
    """
    for slot, ptr in enumerate(parent.ptrs):
        if ptr.is_null():
            ptrs = list(parent.ptrs)
            ptrs[slot] = new_ptr
            parent.ptrs = sorted(ptrs, key=lambda item: item.htree_hash)
            return None

    all_ptrs = sorted([*parent.ptrs, new_ptr], key=lambda item: item.htree_hash)
    hashes = [ptr.htree_hash for ptr in all_ptrs]
    split = _boundary_split(hashes, len(all_ptrs) // 2, past_last=False)
    lower, upper = all_ptrs[:split], all_ptrs[split:]

    parent.ptrs = _filled_ptrs(lower)
    parent.padding = bytes(HTREE_IDX_PADDING)

    sibling = HTreeNode(_filled_ptrs(upper))
    return upper[-1].htree_hash, sibling


def _refill(dir_list: DirList, entries: list) -> None:
    fresh = DirList()
    for entry in entries:
        fresh.append(entry)
    dir_list.count = fresh.count
    dir_list.entry_bytes_len = fresh.entry_bytes_len
    dir_list.entry_bytes = fresh.entry_bytes


def add_dir_entry(
    dir_list: DirList, htree_hash: HTreeHash, dirent: DirEntry
) -> tuple[HTreeHash, Optional[tuple[HTreeHash, DirList]]]:
    """Add ``dirent`` to ``dir_list``, whose largest name hash is ``htree_hash``.

    Returns the updated largest hash of ``dir_list`` and, when the list had
    to be split, the new sibling list with its largest hash (else None).
    Raises FileExistsError when the name is already present and OSError
    with EIO when a name is not valid UTF-8.
    """
    name = dirent.name()
    if name is not None and dir_list.find_entry(name) is not None:
        raise FileExistsError(errno.EEXIST, os.strerror(errno.EEXIST), name)
    if name is None:
        raise _io_error("directory entry name is not valid UTF-8")

    if dir_list.append(dirent):
        return HTreeHash.from_name(name).max_ignoring_default(htree_hash), None

    keyed = []
    for entry in dir_list.entries():
        entry_name = entry.name()
        if entry_name is None:
            raise _io_error("directory entry name is not valid UTF-8")
        keyed.append((HTreeHash.from_name(entry_name), entry))
    keyed.append((HTreeHash.from_name(name), dirent))
    keyed.sort(key=lambda item: item[0])

    hashes = [value for value, _ in keyed]
    split = max(_boundary_split(hashes, len(keyed) // 2, past_last=True), 1)
    entries = [entry for _, entry in keyed]
    lower, upper = entries[:split], entries[split:]

    _refill(dir_list, lower)
    lower_hash = hashes[len(lower) - 1]

    sibling = DirList()
    _refill(sibling, upper)
    return lower_hash, (hashes[-1], sibling)