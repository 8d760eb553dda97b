"""Executables: address translation over a buffer, and containers of wrappers."""

from __future__ import annotations

from abc import abstractmethod
from enum import IntEnum
from typing import Dict, Optional, Tuple

from bearpe.buffers import AbstractByteBuffer, BufferView
from bearpe.filebuffer import FileView, dump
from bearpe.util import CustomError, DbgLevel, Logger


class AddrType(IntEnum):
    """Kinds of address an executable understands."""

    NOT_ADDR = 0
    RAW = 1
    RVA = 2
    VA = 3


class ExeError(CustomError):
    """Raised when an executable cannot be built or wrapped."""


class Executable(AbstractByteBuffer):
    """An executable image backed by a buffer, able to translate addresses."""

    def __init__(self, buf: AbstractByteBuffer, bit_mode: int):
        if buf is None:
            raise ExeError("Cannot make an Exe from NULL buffer")
        self.buf = buf
        self.bit_mode = bit_mode

    def __len__(self) -> int:
        return len(self.buf)

    def _locate(self) -> Optional[Tuple[bytearray, int]]:
        return self.buf._locate()

    @property
    def raw_size(self) -> int:
        """Size of the raw image."""
        return len(self)

    @property
    def is_bit32(self) -> bool:
        return self.bit_mode == 32

    @property
    def is_bit64(self) -> bool:
        return self.bit_mode == 64

    @property
    @abstractmethod
    def image_base(self) -> int:
        """Address at which the image is meant to be loaded."""

    @property
    @abstractmethod
    def entry_point(self) -> Optional[int]:
        """Entry point as an RVA."""

    @abstractmethod
    def get_mapped_size(self, addr_type: AddrType) -> int:
        """Size of the image in the given address space."""

    @abstractmethod
    def get_alignment(self, addr_type: AddrType) -> int:
        """Alignment of the image in the given address space."""

    @abstractmethod
    def raw_to_rva(self, raw: int) -> Optional[int]:
        """Translate a raw offset to an RVA, or None."""

    @abstractmethod
    def rva_to_raw(self, rva: int) -> Optional[int]:
        """Translate an RVA to a raw offset, or None."""

    @property
    def file_name(self) -> str:
        """Name of the file the image was loaded from, if any."""
        if isinstance(self.buf, FileView):
            return self.buf.file_name
        return ""

    @property
    def file_size(self) -> int:
        """Size of the underlying file, or of the buffer when not loaded from a file."""
        if isinstance(self.buf, FileView):
            return self.buf.file_size
        return len(self.buf)

    def get_content_at_addr(self, offset: Optional[int], addr_type: AddrType, size: int,
                            allow_exceptions: bool = False) -> Optional[bytes]:
        """Bytes at an address of the given kind."""
        raw = self.to_raw(offset, addr_type, allow_exceptions)
        if raw is None:
            return None
        return self.get_content_at(raw, size, allow_exceptions)

    def is_valid_addr(self, addr: Optional[int], addr_type: AddrType) -> bool:
        """True if ``addr`` lies within the image in the given address space."""
        if addr is None or addr_type == AddrType.NOT_ADDR:
            return False
        mapped_from = self.image_base if addr_type == AddrType.VA else 0
        mapped_to = mapped_from + self.get_mapped_size(addr_type)
        return mapped_from <= addr < mapped_to

    def va_to_rva(self, va: Optional[int], autodetect: bool = False) -> Optional[int]:
        """Subtract the image base from a VA; values below it are returned unchanged."""
        if va is None:
            return None
        if autodetect and not self.is_valid_addr(va, AddrType.VA):
            return va
        base = self.image_base
        if va < base:
            return va
        return va - base

    def convert_addr(self, addr: Optional[int], in_type: AddrType,
                     out_type: AddrType) -> Optional[int]:
        """Translate an address between address spaces; None if it cannot be mapped."""
        if in_type == AddrType.NOT_ADDR or out_type == AddrType.NOT_ADDR:
            return None
        if not self.is_valid_addr(addr, in_type):
            return None
        if in_type == out_type:
            return addr
        base = self.image_base
        if out_type == AddrType.RAW:
            if in_type == AddrType.VA:
                if addr < base:
                    return None
                addr -= base
            return self.rva_to_raw(addr)
        if in_type == AddrType.RAW:
            rva = self.raw_to_rva(addr)
            if rva is None:
                return None
            return rva + base if out_type == AddrType.VA else rva
        if out_type == AddrType.RVA:
            if addr < base:
                return None
            return addr - base
        if out_type == AddrType.VA:
            return addr + base
        return None

    def to_raw(self, offset: Optional[int], addr_type: AddrType,
               allow_exceptions: bool = False) -> Optional[int]:
        """Raw offset for an address of the given kind, or None."""
        if offset is None:
            return None
        if addr_type == AddrType.RAW:
            if offset < 0 or offset >= self.raw_size:
                return None
            return offset
        if addr_type == AddrType.VA:
            offset = self.va_to_rva(offset, False)
            addr_type = AddrType.RVA
        converted = None
        if addr_type == AddrType.RVA:
            try:
                converted = self.rva_to_raw(offset)
            except CustomError:
                if allow_exceptions:
                    raise
        if converted is None:
            Logger.append(DbgLevel.WARNING,
                          f"Address out of bounds: offset = {offset:X} addrType = {int(addr_type)}")
            if allow_exceptions:
                raise CustomError("Address out of bounds!")
        return converted

    def detect_addr_type(self, offset: Optional[int],
                         hint_type: AddrType = AddrType.NOT_ADDR) -> AddrType:
        """Guess which address space ``offset`` belongs to, starting from ``hint_type``."""
        if hint_type == AddrType.RAW:
            return hint_type if self.is_valid_addr(offset, hint_type) else AddrType.NOT_ADDR
        if hint_type == AddrType.NOT_ADDR:
            hint_type = AddrType.RVA
        if not self.is_valid_addr(offset, hint_type):
            hint_type = AddrType.VA if hint_type == AddrType.RVA else AddrType.RVA
        if not self.is_valid_addr(offset, hint_type):
            return AddrType.NOT_ADDR
        return hint_type

    def dump_fragment(self, offset: int, size: int, file_name) -> bool:
        """Write ``size`` raw bytes from ``offset`` to a file; True if anything was written."""
        view = BufferView(self, offset, size)
        return dump(file_name, view, False) > 0


class MappedExe(Executable):
    """An executable whose parts are exposed through numbered wrappers."""

    def __init__(self, buf: AbstractByteBuffer, bit_mode: int):
        super().__init__(buf, bit_mode)
        self.wrappers: Dict[int, object] = {}

    def get_wrapper(self, wrapper_id: int):
        """The wrapper with this id, or None."""
        return self.wrappers.get(wrapper_id)

    def get_wrapper_name(self, wrapper_id: int) -> str:
        """Name of the wrapper with this id, or an empty string."""
        wrapper = self.wrappers.get(wrapper_id)
        if wrapper is None:
            return ""
        return wrapper.name

    def wrappers_count(self) -> int:
        """Number of registered wrappers."""
        return len(self.wrappers)

    def clear_wrappers(self) -> None:
        """Forget all wrappers."""
        self.wrappers.clear()

    @abstractmethod
    def wrap(self) -> None:
        """Parse the image and (re)build the wrappers."""