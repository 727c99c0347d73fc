"""Block devices backing a filesystem: memory, streams, files and a cache."""

from __future__ import annotations

import errno
import logging
import os
from abc import ABC, abstractmethod
from collections import deque
from contextlib import contextmanager
from typing import BinaryIO, Iterator

from .block import BLOCK_SIZE

logger = logging.getLogger(__name__)


class DiskError(OSError):
    """An I/O failure on the underlying device, reported as EIO."""

    def __init__(self, message: str = "disk I/O error") -> None:
        super().__init__(errno.EIO, message)


@contextmanager
def _io_errors() -> Iterator[None]:
    try:
        yield
    except DiskError:
        raise
    except OSError as err:
        logger.error("disk I/O error: %s", err)
        raise DiskError(str(err)) from err


class Disk(ABC):
    """A device addressed in blocks of BLOCK_SIZE bytes."""

    @abstractmethod
    def read_at(self, block: int, length: int) -> bytes:
        """Read up to ``length`` bytes starting at ``block``."""

    @abstractmethod
    def write_at(self, block: int, data: bytes) -> int:
        """Write ``data`` starting at ``block``; return the bytes written."""

    @abstractmethod
    def size(self) -> int:
        """Size of the device in bytes."""

    def flush(self) -> None:
        """Push pending writes to stable storage."""


class DiskMemory(Disk):
    """A disk held entirely in memory."""

    def __init__(self, size: int) -> None:
        self._data = bytearray(size)

    def _span(self, block: int, length: int) -> slice:
        offset = block * BLOCK_SIZE
        end = offset + length
        if offset < 0 or end > len(self._data):
            raise DiskError("access beyond end of memory disk")
        return slice(offset, end)

    def read_at(self, block: int, length: int) -> bytes:
        return bytes(self._data[self._span(block, length)])

    def write_at(self, block: int, data: bytes) -> int:
        self._data[self._span(block, len(data))] = data
        return len(data)

    def size(self) -> int:
        return len(self._data)


class DiskIo(Disk):
    """A disk over any seekable binary stream."""

    def __init__(self, stream: BinaryIO) -> None:
        self.stream = stream

    def read_at(self, block: int, length: int) -> bytes:
        with _io_errors():
            self.stream.seek(block * BLOCK_SIZE)
            return self.stream.read(length) or b""

    def write_at(self, block: int, data: bytes) -> int:
        with _io_errors():
            self.stream.seek(block * BLOCK_SIZE)
            return self.stream.write(data) or 0

    def size(self) -> int:
        with _io_errors():
            return self.stream.seek(0, os.SEEK_END)

    def flush(self) -> None:
        with _io_errors():
            self.stream.flush()

    def close(self) -> None:
        self.stream.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def _open_rw(path: str | os.PathLike, create: bool) -> BinaryIO:
    flags = os.O_RDWR | (os.O_CREAT if create else 0)
    fd = os.open(path, flags, 0o666)
    try:
        return os.fdopen(fd, "r+b")
    except BaseException:
        os.close(fd)
        raise


class DiskFile(DiskIo):
    """A disk image stored in a regular file."""

    @property
    def file(self) -> BinaryIO:
        return self.stream

    @classmethod
    def open(cls, path: str | os.PathLike) -> DiskFile:
        with _io_errors():
            return cls(_open_rw(path, create=False))

    @classmethod
    def create(cls, path: str | os.PathLike, size: int) -> DiskFile:
        with _io_errors():
            file = _open_rw(path, create=True)
            try:
                file.truncate(size)
            except BaseException:
                file.close()
                raise
            return cls(file)

    def flush(self) -> None:
        with _io_errors():
            self.stream.flush()
            os.fsync(self.stream.fileno())

    def close(self) -> None:
        self.stream.close()


class DiskSparse(DiskIo):
    """A file-backed disk that reports a fixed size regardless of file length."""

    def __init__(self, file: BinaryIO, max_size: int) -> None:
        super().__init__(file)
        self.max_size = max_size

    @property
    def file(self) -> BinaryIO:
        return self.stream

    @classmethod
    def create(cls, path: str | os.PathLike, max_size: int) -> DiskSparse:
        with _io_errors():
            return cls(_open_rw(path, create=True), max_size)

    def size(self) -> int:
        return self.max_size

    def flush(self) -> None:
        with _io_errors():
            self.stream.flush()
            os.fsync(self.stream.fileno())

    def close(self) -> None:
        self.stream.close()


class DiskCache(Disk):
    """A write-through cache of whole blocks in front of another disk."""

    DEFAULT_CAPACITY = 16 * 1024 * 1024 // BLOCK_SIZE

    def __init__(self, inner: Disk, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("cache capacity must be at least one block")
        self.inner = inner
        self.capacity = capacity
        self._cache: dict[int, bytes] = {}
        self._order: deque[int] = deque()

    def _insert(self, index: int, chunk: bytes) -> None:
        while len(self._order) >= self.capacity:
            self._cache.pop(self._order.popleft(), None)
        self._cache[index] = chunk.ljust(BLOCK_SIZE, b"\0")
        self._order.append(index)

    def _store(self, block: int, data: bytes) -> None:
        for number, offset in enumerate(range(0, len(data), BLOCK_SIZE)):
            self._insert(block + number, data[offset : offset + BLOCK_SIZE])

    def read_at(self, block: int, length: int) -> bytes:
        count = -(-length // BLOCK_SIZE)
        cached = [self._cache.get(block + number) for number in range(count)]
        if all(chunk is not None for chunk in cached):
            return b"".join(cached)[:length]

        data = self.inner.read_at(block, length)[:length].ljust(length, b"\0")
        self._store(block, data)
        return data

    def write_at(self, block: int, data: bytes) -> int:
        self.inner.write_at(block, data)
        data = bytes(data)
        self._store(block, data)
        return len(data)

    def size(self) -> int:
        return self.inner.size()

    def flush(self) -> None:
        self.inner.flush()