# redoxfs

A pure Python library for the on-disk structures of the Redox filesystem
format: block addresses and pointers, the buddy block allocator, the
filesystem header, directory lists, hashed directory index blocks, and a
set of disk backends to read and write blocks.

## Installation

```
pip install .
```

To run the test suite:

```
pip install .[test]
pytest
```

## Modules

- `redoxfs.seahash`: `hash(data)`, the 64-bit SeaHash checksum used for
  block pointers, the header and directory name hashes.
- `redoxfs.block`: the addressing scheme and fixed-size block layouts.
  `BLOCK_SIZE` is 4096 bytes.
  - `BlockLevel`: a level `n` block spans `2**n` base blocks;
    `for_bytes`, `blocks()`, `bytes()`.
  - `BlockMeta`: a level plus an optional decompressed level.
  - `BlockAddr`: index, decompressed level and level packed into one
    64-bit value; `new`, `null`, `index()`, `level()`, `decomp_level()`,
    `meta()`, `is_null()`.
  - `BlockPtr`: an address with the checksum of the block's data;
    `null`, `marker`, `is_marker()`, `to_bytes()` / `from_bytes()`.
  - `TreePtr`: a 32-bit tree node id; `root()` is id 1.
  - `BlockData`: an address with its data; `swap_addr` and `create_ptr`.
  - `BlockList` and `BlockRaw`: a block of pointers and a block of raw bytes.
- `redoxfs.allocator`:
  - `Allocator`: a buddy allocator. `allocate(meta)` takes the lowest free
    block that fits and splits larger ones; `allocate_exact(addr)` takes one
    given level-0 block; `deallocate(addr)` frees a block and joins free
    buddies; `free()` counts free base blocks. Allocation returns `None`
    when nothing fits.
  - `AllocEntry`, `AllocList` and `ReleaseList`: the allocation log and
    release list blocks, with `to_bytes()` / `from_bytes()`.
- `redoxfs.header`: `Header`, the filesystem header. `Header.new(size)`
  makes one with a random UUID; `valid()` checks signature, version and
  checksum; `update()` advances the generation and refreshes the checksums.
  The encrypted copy of the checksum uses AES-128-XTS with a 32-byte key
  passed as `cipher_key`; `encrypted()` tells whether the stored hash is
  encrypted and `key_matches(cipher_key)` whether a key decrypts it.
- `redoxfs.dir`: `DirEntry` (a name of at most 252 bytes and a `TreePtr`)
  and `DirList`, a block of packed entries with `append`, `find_entry`,
  `remove_entry`, `entries()` and `raw_entries()`.
- `redoxfs.htree`: `HTreeHash` (32-bit name hashes, all ones meaning
  unset), `HTreePtr` and `HTreeNode` with `find_max_htree_hash` and
  `find_ptrs_for_read`.
- `redoxfs.split`: `add_inner_node(parent, new_ptr)` and
  `add_dir_entry(dir_list, htree_hash, dirent)`, which insert into an index
  node or a directory list and split it in two when it is full, keeping
  equal hashes on one side. `add_dir_entry` returns the list's new largest
  hash and, after a split, the sibling list with its largest hash; it raises
  `FileExistsError` for a name already present.
- `redoxfs.disk`: the `Disk` interface (`read_at(block, length)`,
  `write_at(block, data)`, `size()`, `flush()`) and its backends
  `DiskMemory`, `DiskIo` (any seekable binary stream), `DiskFile`,
  `DiskSparse` (reports a fixed size) and `DiskCache` (a write-through
  block cache in front of another disk). I/O failures raise `DiskError`,
  an `OSError` with `EIO`.

## Example

```python
from redoxfs.allocator import Allocator
from redoxfs.block import BlockAddr, BlockMeta
from redoxfs.disk import DiskMemory

allocator = Allocator()
for index in range(16, 32):
    allocator.deallocate(BlockAddr.new(index, BlockMeta()))

addr = allocator.allocate(BlockMeta())
print(addr.index(), allocator.free())  # 16 15

disk = DiskMemory(1024 * 1024)
disk.write_at(addr.index(), b"\x01" * 4096)
assert disk.read_at(addr.index(), 4096) == b"\x01" * 4096
```

## What this package does not do

It works with individual blocks and structures only. It has no filesystem
object tying them together: no tree nodes or transactions, no creating,
opening or mounting a filesystem, no reading or writing files by path, and
no commands for making, archiving, cloning or resizing disk images. Key
slots in the header are kept as raw bytes; deriving a key from a password
is not provided, so encrypted headers can only be checked with a key you
already have.