"""Buffers loaded from files, and dumping buffers back to disk."""

from __future__ import annotations

import os
from typing import Optional, Tuple, Union

from bearpe.buffers import BUFSIZE_MAX, AbstractByteBuffer, ByteBuffer
from bearpe.util import ByteBufferError, CustomError, DbgLevel, Logger

PathLike = Union[str, "os.PathLike[str]"]

FILE_MAXSIZE = BUFSIZE_MAX - 1
FILEVIEW_MAXSIZE = 0x40000000


class FileBufferError(ByteBufferError):
    """Raised when a file cannot be read into or written from a buffer."""


def _readable(size: int) -> int:
    return min(size, FILE_MAXSIZE)


def _mappable(size: int) -> int:
    return min(_readable(size), FILEVIEW_MAXSIZE)


class FileView(AbstractByteBuffer):
    """The leading part of a file, held in memory as a writable buffer."""

    def __init__(self, path: PathLike, max_size: int = FILE_MAXSIZE):
        self.file_name = os.fspath(path)
        try:
            handle = open(self.file_name, "rb")
        except OSError as exc:
            raise FileBufferError(f"Cannot open the file: {self.file_name}") from exc
        with handle:
            self.file_size = os.fstat(handle.fileno()).st_size
            if self.file_size == 0:
                raise FileBufferError("The file is empty")
            self.mapped_size = min(_mappable(self.file_size), max_size)
            if self.mapped_size <= 0:
                raise ByteBufferError(
                    f"Cannot map the file: {self.file_name} of size: 0x{self.mapped_size:x}")
            self._data: Optional[bytearray] = bytearray(handle.read(self.mapped_size))
        self.mapped_size = len(self._data)

    def __len__(self) -> int:
        return 0 if self._data is None else self.mapped_size

    def _locate(self) -> Optional[Tuple[bytearray, int]]:
        if self._data is None:
            return None
        return self._data, 0

    def close(self) -> None:
        """Release the loaded content."""
        self._data = None

    def __enter__(self) -> "FileView":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def get_readable_size(path: Optional[PathLike]) -> int:
    """Size of the file that may be read, or 0 if it cannot be opened."""
    if not path:
        return 0
    try:
        size = os.path.getsize(os.fspath(path))
    except OSError:
        return 0
    return _readable(size)


def read_file(path: PathLike, min_buf_size: int = 0, allow_truncate: bool = False) -> ByteBuffer:
    """Read a file into a new buffer of at least ``min_buf_size`` bytes."""
    name = os.fspath(path)
    try:
        handle = open(name, "rb")
    except OSError as exc:
        raise FileBufferError(f"Cannot open the file: {name}") from exc
    with handle:
        readable = _readable(os.fstat(handle.fileno()).st_size)
        alloc_size = max(readable, min_buf_size)
        buffer: Optional[ByteBuffer] = None
        while buffer is None:
            try:
                buffer = ByteBuffer(alloc_size)
            except CustomError:
                if not allow_truncate:
                    raise
                alloc_size //= 2
                if not alloc_size:
                    break
        if buffer is None or len(buffer) == 0:
            raise FileBufferError("Cannot allocate buffer")
        read_size = 0
        while read_size < len(buffer):
            chunk = handle.read(min(len(buffer) - read_size, FILEVIEW_MAXSIZE))
            if not chunk:
                break
            buffer.set_buffered_value(read_size, chunk)
            read_size += len(chunk)
    Logger.append(DbgLevel.INFO, f"Read size: {read_size:X}")
    return buffer


def dump(path: PathLike, buf: AbstractByteBuffer, allow_exceptions: bool = False) -> int:
    """Write the content of ``buf`` to ``path``; return the number of bytes written."""
    content = buf.content
    if content is None:
        if allow_exceptions:
            raise FileBufferError("Buffer is empty")
        return 0
    name = os.fspath(path)
    try:
        with open(name, "wb") as out:
            return out.write(content)
    except OSError as exc:
        if allow_exceptions:
            raise FileBufferError(f"Cannot open the file: {name} for writing") from exc
        return 0