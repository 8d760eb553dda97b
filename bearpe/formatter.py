"""Per-byte text renderings of a buffer."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterator

from bearpe.buffers import AbstractByteBuffer
from bearpe.util import ByteBufferError, is_printable


class AbstractFormatter(ABC):
    """Renders each byte of a buffer as a short string."""

    def __init__(self, buf: AbstractByteBuffer):
        if buf is None:
            raise ByteBufferError("Cannot make a formatter for NULL buffer!")
        self.buf = buf

    @abstractmethod
    def __getitem__(self, idx: int) -> str:
        """Text for the byte at ``idx``."""


class Formatter(AbstractFormatter):
    """Shows bytes as characters, escapes, or hex digits."""

    def __init__(self, buf: AbstractByteBuffer, is_hex: bool = False,
                 skip_nonprintable: bool = False):
        super().__init__(buf)
        self.is_hex = is_hex
        self.skip_nonprintable = skip_nonprintable

    @staticmethod
    def _hex(byte: int) -> str:
        return f"{byte:x}".ljust(2, "0")

    def __getitem__(self, idx: int) -> str:
        byte = self.buf[idx]
        if self.is_hex:
            return self._hex(byte)
        if not is_printable(byte):
            if self.skip_nonprintable:
                return ".."
            return "\\x" + self._hex(byte)
        return chr(byte)

    def __len__(self) -> int:
        return len(self.buf)

    def __iter__(self) -> Iterator[str]:
        return map(self.__getitem__, range(len(self)))


class HexFormatter(Formatter):
    """Shows every byte as hex digits."""

    def __init__(self, buf: AbstractByteBuffer):
        super().__init__(buf, True)