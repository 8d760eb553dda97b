"""MS-DOS executables: the DOS header wrapper, the executable and its builder."""

from __future__ import annotations

from enum import IntEnum
from typing import Optional

from bearpe.buffers import AbstractByteBuffer
from bearpe.executable import AddrType, ExeError, MappedExe
from bearpe.util import DbgLevel, Logger
from bearpe.wrappers import ExeElementWrapper

S_DOS = 0x5A4D
S_DOS2 = 0x4D5A
DOS_MAGICS = (S_DOS, S_DOS2)

BITS_16 = 16
WR_DOS_HDR = 0

# A DOS image is loaded as one flat block: no address space is aligned.
_ALIGNMENTS = {addr_type: 0 for addr_type in AddrType}


class DosField(IntEnum):
    """Fields of the DOS header, in the order they are stored."""

    MAGIC = 0
    CBLP = 1
    CP = 2
    CRLC = 3
    CPARHDR = 4
    MINALLOC = 5
    MAXALLOC = 6
    SS = 7
    SP = 8
    CSUM = 9
    IP = 10
    CS = 11
    LFARLC = 12
    OVNO = 13
    RES = 14
    OEMID = 15
    OEMINFO = 16
    RES2 = 17
    LFNEW = 18
    FIELD_COUNTER = 19


_FIELD_OFFSETS = {
    DosField.MAGIC: 0,
    DosField.CBLP: 2,
    DosField.CP: 4,
    DosField.CRLC: 6,
    DosField.CPARHDR: 8,
    DosField.MINALLOC: 10,
    DosField.MAXALLOC: 12,
    DosField.SS: 14,
    DosField.SP: 16,
    DosField.CSUM: 18,
    DosField.IP: 20,
    DosField.CS: 22,
    DosField.LFARLC: 24,
    DosField.OVNO: 26,
    DosField.RES: 28,
    DosField.OEMID: 36,
    DosField.OEMINFO: 38,
    DosField.RES2: 40,
    DosField.LFNEW: 60,
    DosField.FIELD_COUNTER: 64,
}

DOS_HEADER_SIZE = _FIELD_OFFSETS[DosField.FIELD_COUNTER]

_FIELD_NAMES = {
    DosField.MAGIC: "Magic number",
    DosField.CBLP: "Bytes on last page of file",
    DosField.CP: "Pages in file",
    DosField.CRLC: "Relocations",
    DosField.CPARHDR: "Size of header in paragraphs",
    DosField.MINALLOC: "Minimum extra paragraphs needed",
    DosField.MAXALLOC: "Maximum extra paragraphs needed",
    DosField.SS: "Initial (relative) SS value",
    DosField.SP: "Initial SP value",
    DosField.CSUM: "Checksum",
    DosField.IP: "Initial IP value",
    DosField.CS: "Initial (relative) CS value",
    DosField.LFARLC: "File address of relocation table",
    DosField.OVNO: "Overlay number",
    DosField.RES: "Reserved words[4]",
    DosField.OEMID: "OEM identifier (for OEM information)",
    DosField.OEMINFO: "OEM information; OEM identifier specific",
    DosField.RES2: "Reserved words[10]",
    DosField.LFNEW: "File address of new exe header",
}


class DosHdrWrapper(ExeElementWrapper):
    """The DOS header at the start of the image."""

    name = "DOS Hdr"

    def _present(self) -> bool:
        return self.exe.get_content_at(0, DOS_HEADER_SIZE) is not None

    @property
    def offset(self) -> Optional[int]:
        return 0 if self._present() else None

    @property
    def size(self) -> int:
        return DOS_HEADER_SIZE if self._present() else 0

    @property
    def fields_count(self) -> int:
        return int(DosField.FIELD_COUNTER)

    def get_field_offset(self, field_id: int, sub_field: int = 0) -> Optional[int]:
        """Raw offset of a header field; the header start for unknown ids."""
        if not self._present():
            return None
        try:
            return _FIELD_OFFSETS[DosField(field_id)]
        except ValueError:
            return 0

    def get_field_name(self, field_id: int) -> str:
        try:
            return _FIELD_NAMES.get(DosField(field_id), "")
        except ValueError:
            return ""

    def contains_addr_type(self, field_id: int, sub_field: int = 0) -> AddrType:
        if field_id in (DosField.LFARLC, DosField.LFNEW):
            return AddrType.RAW
        return AddrType.NOT_ADDR


class DOSExe(MappedExe):
    """A 16-bit MS-DOS executable, addressed by raw offsets only."""

    def __init__(self, buf: AbstractByteBuffer):
        super().__init__(buf, BITS_16)
        self.dos_hdr_wrapper: Optional[DosHdrWrapper] = None
        self.wrap()

    @property
    def image_base(self) -> int:
        return 0

    @property
    def entry_point(self) -> Optional[int]:
        return 0

    def get_mapped_size(self, addr_type: AddrType) -> int:
        return self.raw_size

    def get_alignment(self, addr_type: AddrType) -> int:
        """Alignment of the given address space; DOS images have none."""
        return _ALIGNMENTS.get(addr_type, 0)

    def raw_to_rva(self, raw: int) -> Optional[int]:
        return raw if 0 <= raw < self.raw_size else None

    def rva_to_raw(self, rva: int) -> Optional[int]:
        return rva if 0 <= rva < self.raw_size else None

    def wrap(self) -> None:
        """Locate and validate the DOS header."""
        wrapper = DosHdrWrapper(self)
        self.dos_hdr_wrapper = wrapper
        if self.get_content_at(0, DOS_HEADER_SIZE) is None or wrapper.offset is None:
            raise ExeError("Could not Wrap!")
        magic = wrapper.get_num_value(DosField.MAGIC)
        if magic is None:
            raise ExeError("Could not Wrap!")
        if magic not in DOS_MAGICS:
            Logger.append(DbgLevel.WARNING, "It is not a DOS file!")
            raise ExeError("It is not a DOS file!")
        self.wrappers[WR_DOS_HDR] = wrapper

    def pe_signature_offset(self) -> int:
        """Value of the e_lfanew field: where the new-style header begins."""
        if self.dos_hdr_wrapper is None:
            return 0
        value = self.dos_hdr_wrapper.get_num_value(DosField.LFNEW)
        if value is None:
            return 0
        if value >= 1 << 31:
            value -= 1 << 32
        return value


class DOSExeBuilder:
    """Recognises and builds DOS executables."""

    def signature_matches(self, buf: Optional[AbstractByteBuffer]) -> bool:
        """True if the buffer starts with a DOS magic."""
        if buf is None:
            return False
        return buf.get_num_value(0, 2) in DOS_MAGICS

    def build(self, buf: Optional[AbstractByteBuffer]) -> Optional[DOSExe]:
        """A DOS executable over ``buf``, or None if it is not one."""
        if not self.signature_matches(buf):
            return None
        try:
            return DOSExe(buf)
        except ExeError:
            return None

    def type_name(self) -> str:
        return "MZ"