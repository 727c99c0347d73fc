import pytest

from redoxfs.block import BLOCK_SIZE, BlockAddr, BlockPtr
from redoxfs.header import SIGNATURE, VERSION, Header

XTS_KEY = bytes(range(32))
OTHER_XTS_KEY = bytes(range(32, 64))


def test_default_header_not_valid():
    assert Header().valid() is False


def test_header_size():
    assert len(Header().to_bytes()) == BLOCK_SIZE


def test_header_hash():
    header = Header()
    assert header.create_hash() == 0xE81FFCB86026FF96
    header.update_hash(None)
    assert header.hash == 0xE81FFCB86026FF96
    assert header.encrypted_hash == bytes(
        [0x96, 0xFF, 0x26, 0x60, 0xB8, 0xFC, 0x1F, 0xE8, 0, 0, 0, 0, 0, 0, 0, 0]
    )


def test_new_header_valid():
    header = Header.new(0)
    assert header.valid() is True
    assert header.signature == SIGNATURE
    assert header.version == VERSION


def test_new_header_size_and_unique_uuid():
    first = Header.new(4096 * 10)
    second = Header.new(4096 * 10)
    assert first.size == 4096 * 10
    assert first.uuid != second.uuid
    assert len(first.uuid) == 16


def test_update_increments_generation():
    header = Header.new(0)
    assert header.update() == 1
    assert header.update() == 2
    assert header.generation == 2
    assert header.valid()
    assert not header.encrypted()


def test_modified_header_invalid_until_rehashed():
    header = Header.new(0)
    header.size = 8192
    assert not header.valid()
    header.update_hash()
    assert header.valid()


def test_round_trip():
    header = Header.new(1 << 20)
    header.tree = BlockPtr(BlockAddr.new(3), 0x1234)
    header.alloc = BlockPtr(BlockAddr.new(9), 0x5678)
    header.key_slots[2] = bytes(range(48))
    header.update()
    restored = Header.from_bytes(header.to_bytes())
    assert restored == header
    assert restored.valid()


def test_corrupted_bytes_invalid():
    data = bytearray(Header.new(0).to_bytes())
    data[40] ^= 0xFF
    assert not Header.from_bytes(bytes(data)).valid()


def test_from_bytes_wrong_size():
    with pytest.raises(ValueError):
        Header.from_bytes(b"\0" * 100)


def test_encrypted_hash_with_key():
    header = Header.new(0)
    header.update(XTS_KEY)
    assert header.encrypted()
    assert header.valid()
    assert header.key_matches(XTS_KEY)
    assert not header.key_matches(OTHER_XTS_KEY)


def test_plain_header_does_not_match_key():
    header = Header.new(0)
    assert not header.encrypted()
    assert not header.key_matches(XTS_KEY)