"""The filesystem header block: identity, roots, key slots and checksums."""

from __future__ import annotations

import struct
import uuid as _uuid
from dataclasses import dataclass, field
from typing import Optional

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from . import seahash
from .block import BLOCK_PTR_SIZE, BLOCK_SIZE, BlockPtr

__all__ = [
    "HEADER_RING",
    "KEY_SLOT_COUNT",
    "KEY_SLOT_SIZE",
    "SIGNATURE",
    "VERSION",
    "Header",
]

HEADER_RING = 256
SIGNATURE = b"RedoxFS\0"
VERSION = 8
KEY_SLOT_COUNT = 64
KEY_SLOT_SIZE = 48
PADDING_SIZE = BLOCK_SIZE - 3192

_PREFIX = struct.Struct("<8sQ16sQQ")
_HASHES_SIZE = 16 + 8
_HASHED_SIZE = BLOCK_SIZE - _HASHES_SIZE


def _empty_key_slots() -> list:
    return [bytes(KEY_SLOT_SIZE)] * KEY_SLOT_COUNT


def _xts(cipher_key: bytes, generation: int) -> Cipher:
    # The whole encrypted hash lies in one sector numbered by the generation.
    tweak = generation.to_bytes(16, "little")
    return Cipher(algorithms.AES(cipher_key), modes.XTS(tweak))


@dataclass
class Header:
    """The header of the filesystem.

    Encryption keys are 32-byte AES-128-XTS keys: the data key followed by the
    tweak key.
    """

    signature: bytes = bytes(8)
    version: int = 0
    uuid: bytes = bytes(16)
    size: int = 0
    generation: int = 0
    tree: BlockPtr = field(default_factory=BlockPtr)
    alloc: BlockPtr = field(default_factory=BlockPtr)
    key_slots: list = field(default_factory=_empty_key_slots, repr=False)
    release: BlockPtr = field(default_factory=BlockPtr)
    padding: bytes = field(default=bytes(PADDING_SIZE), repr=False)
    encrypted_hash: bytes = field(default=bytes(16), repr=False)
    hash: int = 0

    @classmethod
    def new(cls, size: int) -> Header:
        """A fresh header for a filesystem of ``size`` bytes with a random UUID."""
        header = cls(
            signature=SIGNATURE,
            version=VERSION,
            uuid=_uuid.uuid4().bytes,
            size=size,
        )
        header.update_hash(None)
        return header

    def valid(self) -> bool:
        """Whether signature, version and checksum all match."""
        return (
            self.signature == SIGNATURE
            and self.version == VERSION
            and self.hash == self.create_hash()
        )

    def create_hash(self) -> int:
        """Checksum of the header without its two hash fields."""
        return seahash.hash(self.to_bytes()[:_HASHED_SIZE])

    def _create_encrypted_hash(self, cipher_key: Optional[bytes]) -> bytes:
        plain = self.hash.to_bytes(8, "little") + bytes(8)
        if cipher_key is None:
            return plain
        encryptor = _xts(cipher_key, self.generation).encryptor()
        return encryptor.update(plain) + encryptor.finalize()

    def update_hash(self, cipher_key: Optional[bytes] = None) -> None:
        """Recompute the checksum, then its encrypted copy."""
        self.hash = self.create_hash()
        self.encrypted_hash = self._create_encrypted_hash(cipher_key)

    def encrypted(self) -> bool:
        """Whether the header's hash was stored encrypted."""
        return self.encrypted_hash != self._create_encrypted_hash(None)

    def key_matches(self, cipher_key: bytes) -> bool:
        """Whether ``cipher_key`` decrypts the stored hash correctly."""
        decryptor = _xts(cipher_key, self.generation).decryptor()
        block = decryptor.update(self.encrypted_hash) + decryptor.finalize()
        return block == self._create_encrypted_hash(None)

    def update(self, cipher_key: Optional[bytes] = None) -> int:
        """Advance the generation, refresh the checksums and return the generation."""
        self.generation += 1
        self.update_hash(cipher_key)
        return self.generation

    def to_bytes(self) -> bytes:
        if len(self.key_slots) != KEY_SLOT_COUNT or any(
            len(slot) != KEY_SLOT_SIZE for slot in self.key_slots
        ):
            raise ValueError(f"header needs {KEY_SLOT_COUNT} key slots of {KEY_SLOT_SIZE} bytes")
        if len(self.padding) != PADDING_SIZE or len(self.encrypted_hash) != 16:
            raise ValueError("header padding or encrypted hash has the wrong size")
        return b"".join(
            [
                _PREFIX.pack(
                    self.signature, self.version, self.uuid, self.size, self.generation
                ),
                self.tree.to_bytes(),
                self.alloc.to_bytes(),
                *(bytes(slot) for slot in self.key_slots),
                self.release.to_bytes(),
                bytes(self.padding),
                bytes(self.encrypted_hash),
                self.hash.to_bytes(8, "little"),
            ]
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> Header:
        data = bytes(data)
        if len(data) != BLOCK_SIZE:
            raise ValueError(f"header needs {BLOCK_SIZE} bytes")
        signature, version, disk_uuid, size, generation = _PREFIX.unpack_from(data)
        offset = _PREFIX.size

        def take(length: int) -> bytes:
            nonlocal offset
            chunk = data[offset : offset + length]
            offset += length
            return chunk

        tree = BlockPtr.from_bytes(take(BLOCK_PTR_SIZE))
        alloc = BlockPtr.from_bytes(take(BLOCK_PTR_SIZE))
        key_slots = [take(KEY_SLOT_SIZE) for _ in range(KEY_SLOT_COUNT)]
        release = BlockPtr.from_bytes(take(BLOCK_PTR_SIZE))
        padding = take(PADDING_SIZE)
        encrypted_hash = take(16)
        digest = int.from_bytes(take(8), "little")
        return cls(
            signature=signature,
            version=version,
            uuid=disk_uuid,
            size=size,
            generation=generation,
            tree=tree,
            alloc=alloc,
            key_slots=key_slots,
            release=release,
            padding=padding,
            encrypted_hash=encrypted_hash,
            hash=digest,
        )