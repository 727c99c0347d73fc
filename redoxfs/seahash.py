"""SeaHash: the 64-bit checksum used for block and header integrity."""

from __future__ import annotations

__all__ = ["hash"]

_MASK = (1 << 64) - 1
_PRIME = 0x6EED0E9DA4D94A4F
_SEEDS = (
    0x16F11FE89B0D677C,
    0xB480A793D8E6C86C,
    0x6FE2E5AAF078EBC9,
    0x14F994A4C5259381,
)


def _diffuse(x: int) -> int:
    x = (x * _PRIME) & _MASK
    x ^= (x >> 32) >> (x >> 60)
    return (x * _PRIME) & _MASK


def hash(data: bytes | bytearray | memoryview) -> int:  # noqa: A001
    """Return the 64-bit SeaHash of ``data`` using the default seeds."""
    buf = bytes(data)
    lanes = list(_SEEDS)

    full_end = len(buf) & ~0x1F
    for start in range(0, full_end, 32):
        lanes = [
            _diffuse(lane ^ int.from_bytes(buf[offset : offset + 8], "little"))
            for lane, offset in zip(lanes, range(start, start + 32, 8))
        ]

    tail = buf[full_end:]
    pieces = [tail[i : i + 8] for i in range(0, len(tail), 8)]
    for lane_index, piece in enumerate(pieces):
        lanes[lane_index] = _diffuse(
            lanes[lane_index] ^ int.from_bytes(piece, "little")
        )

    a, b, c, d = lanes
    a ^= b
    c ^= d
    a ^= c
    a ^= len(buf) & _MASK
    return _diffuse(a)