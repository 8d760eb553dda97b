"""Byte buffers: an abstract interface, views into other buffers and owned buffers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import BinaryIO, Iterator, Optional, Tuple

from bearpe.util import (
    ByteBufferError,
    DbgLevel,
    Logger,
    get_ascii_len,
    get_ascii_len_w,
)

BUFSIZE_MAX = 0xFFFFFFFF

_NUM_SIZES = (1, 2, 4, 8)


def _offset_ok(offset: Optional[int]) -> bool:
    return offset is not None and offset >= 0


class AbstractByteBuffer(ABC):
    """A sized, writable run of bytes addressed by offset."""

    @abstractmethod
    def __len__(self) -> int:
        """Size of the content in bytes."""

    @abstractmethod
    def _locate(self) -> Optional[Tuple[bytearray, int]]:
        """Backing storage and the position of this buffer's content in it."""

    @property
    def content(self) -> Optional[bytes]:
        """A copy of the whole content, or None when there is none."""
        loc = self._locate()
        if loc is None:
            return None
        store, start = loc
        return bytes(store[start:start + len(self)])

    def __iter__(self) -> Iterator[int]:
        return iter(self.content or b"")

    def _write(self, offset: int, data: bytes) -> None:
        loc = self._locate()
        if loc is None:
            raise ByteBufferError("Buffer is empty!")
        store, start = loc
        begin = start + offset
        store[begin:begin + len(data)] = data

    @staticmethod
    def is_valid(buf: Optional["AbstractByteBuffer"]) -> bool:
        """True if ``buf`` exists and has non-empty content."""
        if buf is None:
            return False
        return buf._locate() is not None and len(buf) > 0

    def __getitem__(self, idx: int) -> int:
        if idx < 0 or idx >= len(self):
            raise ByteBufferError("Too far offset requested!")
        loc = self._locate()
        if loc is None:
            raise ByteBufferError("Buffer is empty!")
        store, start = loc
        return store[start + idx]

    def get_content_at(self, offset: Optional[int], size: int,
                       allow_exceptions: bool = False) -> Optional[bytes]:
        """Bytes in ``[offset, offset + size)``, or None (or an error) when out of range."""
        def fail(message: str) -> None:
            if allow_exceptions:
                raise ByteBufferError(message)
            return None

        if not _offset_ok(offset):
            return fail("Invalid address requested!")
        if size <= 0:
            return fail("Zero size requested!")
        loc = self._locate()
        if loc is None:
            return None
        buf_size = len(self)
        if offset >= buf_size:
            return fail(f"Too far offset requested! Buffer size: {buf_size}"
                        f" vs requested Offset: 0x{offset:x}")
        end = offset + size
        if end > buf_size:
            return fail(f"Too big size requested! Buffer size: {buf_size}"
                        f" vs end of the requested area: 0x{end:x}")
        store, start = loc
        return bytes(store[start + offset:start + end])

    def get_max_size_from_offset(self, start_offset: Optional[int]) -> int:
        """Number of bytes available from ``start_offset`` to the end."""
        if not _offset_ok(start_offset):
            return 0
        size = len(self)
        if size < start_offset:
            return 0
        return size - start_offset

    def _tail(self, offset: Optional[int]) -> Optional[bytes]:
        return self.get_content_at(offset, self.get_max_size_from_offset(offset))

    def _c_string_at(self, offset: int) -> bytes:
        tail = self._tail(offset) or b""
        return tail.split(b"\0", 1)[0]

    def set_buffered_value(self, offset: Optional[int], data: Optional[bytes],
                           padding_size: int = 0, allow_exceptions: bool = False) -> bool:
        """Copy ``data`` followed by ``padding_size`` zeros at ``offset``; True if anything changed."""
        if data is None:
            return False
        if not _offset_ok(offset) or offset >= len(self) or self._locate() is None:
            Logger.append(DbgLevel.ERROR, "Invalid copy destination!")
            if allow_exceptions:
                raise ByteBufferError("Invalid copy destination!")
            return False
        source = bytes(data)
        size = min(len(source) + padding_size, len(self) - offset)
        if size <= 0:
            return False
        wanted = (source + bytes(padding_size))[:size]
        if self.get_content_at(offset, size) == wanted:
            return False
        self._write(offset, wanted)
        return True

    def set_string_value(self, offset: Optional[int], text: str) -> bool:
        """Store ``text`` as a terminated UTF-8 string at ``offset``."""
        encoded = text.encode("utf-8")
        if self.get_content_at(offset, len(encoded) + 1) is None:
            return False
        return self.set_buffered_value(offset, encoded, 1)

    def get_string_value(self, offset: Optional[int], size: Optional[int] = None,
                         accept_non_terminated: bool = False) -> str:
        """Read a printable ASCII string at ``offset``; empty if none."""
        if size is None:
            if not _offset_ok(offset):
                return ""
            size = len(self) - offset
        data = self.get_content_at(offset, size)
        if data is None:
            return ""
        length = get_ascii_len(data, size, accept_non_terminated)
        return data[:length].decode("utf-8", errors="replace")

    def get_wstring_value(self, offset: Optional[int], length: Optional[int] = None) -> str:
        """Read a UTF-16 string of ``length`` characters, or up to its terminator."""
        size = 2 if length is None else length * 2
        data = self.get_content_at(offset, size)
        if data is None:
            return ""
        if length is None:
            tail = self._tail(offset) or b""
            tail = tail[: len(tail) // 2 * 2]
            return tail.decode("utf-16-le", errors="replace").split("\0", 1)[0]
        return data.decode("utf-16-le", errors="replace")

    def get_wascii_string_value(self, offset: Optional[int], length: Optional[int] = None,
                                accept_non_terminated: bool = False) -> str:
        """Read a UTF-16 string made only of printable ASCII characters."""
        size = 2 if length is None else length * 2
        data = self.get_content_at(offset, size)
        if data is None:
            return ""
        if length is None:
            data = self._tail(offset) or b""
        count = get_ascii_len_w(data, length, accept_non_terminated)
        return data[: count * 2].decode("utf-16-le", errors="replace")

    def is_area_empty(self, offset: Optional[int], size: int) -> bool:
        """True if the area exists and holds only zeros."""
        area = self.get_content_at(offset, size)
        if area is None:
            return False
        return not any(area)

    def fill_content(self, filling: int) -> bool:
        """Set every byte to ``filling``."""
        if self._locate() is None:
            return False
        self._write(0, bytes([filling & 0xFF]) * len(self))
        return True

    def paste_buffer(self, offset: Optional[int], buf: Optional["AbstractByteBuffer"],
                     allow_trunc: bool = False) -> bool:
        """Copy the content of ``buf`` to ``offset``, optionally truncating it to fit."""
        if not self.is_valid(buf) or not self.is_valid(self):
            return False
        source = buf.content
        if source is None:
            return False
        size_to_fill = len(source)
        my_size = len(self)
        if not _offset_ok(offset) or my_size <= offset:
            Logger.append(DbgLevel.ERROR,
                          f"Too far offset requested: {offset if offset is not None else -1:X}"
                          f" while mySize: {my_size:X}")
            return False
        if self.get_content_at(offset, size_to_fill) is None:
            if not allow_trunc:
                return False
            size_to_fill = my_size - offset
        self._write(offset, source[:size_to_fill])
        return True

    def contains_block(self, offset: Optional[int], size: int) -> bool:
        """True if the whole block lies inside the buffer."""
        if not _offset_ok(offset) or size == 0:
            return False
        if self._locate() is None:
            return False
        return offset + size <= len(self)

    def intersects_block(self, offset: Optional[int], size: int) -> bool:
        """True if the block starts or ends within the buffer bounds."""
        if not _offset_ok(offset) or size == 0:
            return False
        if self._locate() is None:
            return False
        end = len(self)
        if offset <= end:
            Logger.append(DbgLevel.INFO, f"Found in bounds: 0 - {end:X} end: {offset:X}")
            return True
        if 0 <= offset + size <= end:
            Logger.append(DbgLevel.INFO, f"Found in bounds: 0 - {end:X}")
            return True
        return False

    def get_num_value(self, offset: Optional[int], size: int) -> Optional[int]:
        """Little-endian unsigned integer of 1, 2, 4 or 8 bytes; None if unreadable."""
        if size == 0 or not _offset_ok(offset):
            return None
        data = self.get_content_at(offset, size)
        if data is None or size not in _NUM_SIZES:
            return None
        return int.from_bytes(data, "little")

    def set_num_value(self, offset: Optional[int], size: int, value: int) -> bool:
        """Store ``value`` as a little-endian integer; True if the bytes changed."""
        if size == 0 or not _offset_ok(offset):
            return False
        current = self.get_content_at(offset, size)
        if current is None:
            Logger.append(DbgLevel.ERROR, f"Cannot get Ptr at: {offset:X} of size: {size:X}!")
            return False
        if size not in _NUM_SIZES:
            Logger.append(DbgLevel.ERROR, "Wrong size!")
            return False
        encoded = (value & ((1 << (8 * size)) - 1)).to_bytes(size, "little")
        if encoded == current:
            return False
        self._write(offset, encoded)
        return True

    def set_text_value(self, offset: Optional[int], text: str, field_limit_len: int = 0) -> bool:
        """Overwrite the terminated string at ``offset``, clearing a fixed-size field if given."""
        encoded = text.encode("utf-8")
        if not _offset_ok(offset) or offset >= len(self):
            return False
        new_len = len(encoded) + 1
        if self.get_content_at(offset, new_len) is None:
            return False
        if self._c_string_at(offset) == encoded:
            return False
        if field_limit_len and self.get_content_at(offset, field_limit_len) is not None:
            self._write(offset, bytes(field_limit_len))
            new_len = min(new_len, field_limit_len)
        self._write(offset, (encoded + b"\0")[:new_len])
        if offset + new_len < len(self):
            self._write(offset + new_len, b"\0")
        return True

    def subst_fragment_by_file(self, offset: Optional[int], content_size: int, stream: BinaryIO) -> int:
        """Replace a fragment with data read from ``stream``; return the number of bytes loaded."""
        if self.get_content_at(offset, content_size) is None:
            return 0
        if not stream.readable():
            return 0
        loaded = stream.read(content_size) or b""
        self._write(offset, bytes(content_size))
        self._write(offset, loaded)
        return len(loaded)


class BufferView(AbstractByteBuffer):
    """A window onto part of another buffer, trimmed to the parent's size."""

    def __init__(self, parent: AbstractByteBuffer, offset: int, size: int):
        if parent is None:
            raise ByteBufferError("Cannot make subBuffer for NULL buffer!")
        self.parent = parent
        self.offset = offset
        self.size = size

    def __len__(self) -> int:
        max_size = len(self.parent)
        if self.offset > max_size:
            return 0
        return min(self.size, max_size - self.offset)

    def _locate(self) -> Optional[Tuple[bytearray, int]]:
        if len(self) == 0:
            return None
        loc = self.parent._locate()
        if loc is None:
            return None
        store, start = loc
        return store, start + self.offset


class ByteBuffer(AbstractByteBuffer):
    """A buffer that owns its bytes, with optional zero padding after the content."""

    def __init__(self, size: int, padding: int = 0, content: Optional[bytes] = None):
        self._data = self._alloc(size, padding)
        self._size = size
        self.padding = padding
        self.original_size = size
        if content is not None:
            chunk = bytes(content[:size])
            self._data[:len(chunk)] = chunk

    @staticmethod
    def _alloc(size: int, padding: int) -> bytearray:
        if size == 0:
            raise ByteBufferError("Zero size requested")
        if size < 0 or size >= BUFSIZE_MAX:
            raise ByteBufferError("Too big size requested")
        try:
            return bytearray(size + padding)
        except MemoryError as exc:
            raise ByteBufferError(f"Cannot allocate buffer of size: 0x{size + padding:x}") from exc

    @classmethod
    def from_buffer(cls, parent: AbstractByteBuffer, offset: int, size: int,
                    padding: int = 0) -> "ByteBuffer":
        """Copy ``size`` bytes of ``parent`` starting at ``offset`` into a new buffer."""
        if parent is None:
            raise ByteBufferError("Cannot make subBuffer for NULL buffer!")
        if not size:
            raise ByteBufferError("Cannot make 0 size buffer!")
        copy_size = min(size, len(parent))
        chunk = parent.get_content_at(offset, copy_size)
        if chunk is None:
            raise ByteBufferError("Cannot make Buffer for NULL content!")
        return cls(size, padding, chunk)

    def __len__(self) -> int:
        return self._size

    def _locate(self) -> Tuple[bytearray, int]:
        return self._data, 0

    def resize(self, new_size: int) -> bool:
        """Change the content size, keeping the existing prefix and zeroing growth."""
        if new_size == self._size:
            return True
        try:
            fresh = self._alloc(new_size, self.padding)
        except ByteBufferError:
            return False
        keep = min(self._size, len(fresh))
        fresh[:keep] = self._data[:keep]
        self._data = fresh
        self._size = new_size
        return True