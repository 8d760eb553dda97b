"""Wrappers exposing structures of an executable as numbered fields and entries."""

from __future__ import annotations

from abc import abstractmethod
from enum import Enum
from typing import Callable, Dict, List, Mapping, Optional, Tuple, Union

from bearpe.buffers import BUFSIZE_MAX, AbstractByteBuffer
from bearpe.executable import AddrType, Executable
from bearpe.util import CustomError, DbgLevel, Logger


class DataType(Enum):
    """How the bytes of a field are to be interpreted."""

    NONE = 0
    INT = 1
    STRING = 2
    WSTRING = 3
    COMPLEX = 4


class WrappedValue:
    """A typed view of one field's bytes inside an owner buffer."""

    def __init__(self, owner: Optional[AbstractByteBuffer] = None, offset: Optional[int] = None,
                 size: int = 0, data_type: DataType = DataType.NONE):
        self.owner = owner
        self.offset = offset
        self.size = size
        self.data_type = data_type if owner is not None else DataType.NONE

    def is_valid(self) -> bool:
        """True unless the value is empty."""
        return self.data_type is not DataType.NONE

    def value(self) -> Union[int, str, None]:
        """The decoded value: an int, a string, or a marker string."""
        if self.data_type is DataType.INT:
            num = self.owner.get_num_value(self.offset, self.size)
            return "INVALID" if num is None else num
        if self.data_type is DataType.STRING:
            if self.owner.get_content_at(self.offset, self.size) is None:
                return None
            tail = self.owner.get_content_at(
                self.offset, self.owner.get_max_size_from_offset(self.offset)) or b""
            return tail.split(b"\0", 1)[0].decode("utf-8", errors="replace")
        if self.data_type is DataType.WSTRING:
            data = self.owner.get_content_at(self.offset, self.size) or b""
            units = self.size // 2
            return data[: units * 2].decode("utf-16-le", errors="replace")
        return "..."

    def int_format(self) -> str:
        """Format spec printing the integer as zero-padded upper-case hex of the field's width."""
        return f"0{self.size * 2}X"

    def to_string(self) -> str:
        """Human-readable rendering of the value."""
        if self.data_type is DataType.NONE:
            return ""
        if self.data_type is DataType.COMPLEX:
            return "..."
        if self.data_type is DataType.INT:
            if self.size > 8:
                return "..."
            num = self.owner.get_num_value(self.offset, self.size)
            if num is None:
                return "INVALID"
            return format(num, self.int_format())
        val = self.value()
        return "" if val is None else str(val)

    def __str__(self) -> str:
        return self.to_string()


class ExeElementWrapper(AbstractByteBuffer):
    """A structure inside an executable, seen both as a buffer and as numbered fields."""

    name: str = ""
    # Field id -> function turning the field's integer value into a description.
    field_translators: Mapping[int, Callable[[int], str]] = {}

    def __init__(self, exe: Executable):
        if exe is None:
            Logger.append(DbgLevel.ERROR, "Cannot initialize with Exe == NULL!")
            raise CustomError("Cannot initialize with Exe == NULL!")
        self.exe = exe

    @property
    @abstractmethod
    def offset(self) -> Optional[int]:
        """Raw offset of the structure in the executable, or None if absent."""

    @property
    @abstractmethod
    def size(self) -> int:
        """Size of the structure in bytes."""

    @property
    def fields_count(self) -> int:
        return 0

    @property
    def sub_fields_count(self) -> int:
        return 0

    def __len__(self) -> int:
        return self.size or 0

    def _locate(self) -> Optional[Tuple[bytearray, int]]:
        start = self.offset
        if start is None:
            return None
        loc = self.exe._locate()
        if loc is None:
            return None
        store, base = loc
        return store, base + start

    def get_field_offset(self, field_id: int, sub_field: int = 0) -> Optional[int]:
        """Raw offset of a field; by default the start of the structure."""
        return self.offset

    def get_field_name(self, field_id: int) -> str:
        return ""

    def contains_addr_type(self, field_id: int, sub_field: int = 0) -> AddrType:
        return AddrType.NOT_ADDR

    def contains_data_type(self, field_id: int, sub_field: int = 0) -> DataType:
        return DataType.INT

    def translate_field_content(self, field_id: int) -> str:
        """Description of a field's value, or an empty string if it has none."""
        translator = self.field_translators.get(field_id)
        if translator is None:
            return ""
        value = self.get_num_value(field_id)
        if value is None:
            return ""
        return translator(value)

    def get_field_size(self, field_id: int, sub_field: int = 0) -> int:
        """Size of a field, measured up to the next field or the end of the structure."""
        count = self.fields_count
        if field_id >= count:
            return self.size
        start = self.get_field_offset(field_id, sub_field)
        if start is None:
            return 0
        following = self.get_field_offset(field_id + 1, sub_field) if field_id + 1 < count else None
        if following is not None:
            return max(following - start, 0)
        base = self.offset
        if base is None:
            return 0
        return max(base + self.size - start, 0)

    def get_wrapped_value(self, field_id: Optional[int], sub_field: int = 0) -> WrappedValue:
        """The field as a typed value, empty when it cannot be read."""
        if field_id is None or field_id < 0:
            return WrappedValue()
        start = self.get_field_offset(field_id, sub_field)
        if start is None or start < 0 or start >= len(self.exe):
            return WrappedValue()
        size = self.get_field_size(field_id, sub_field)
        if size <= 0 or size >= BUFSIZE_MAX:
            return WrappedValue()
        return WrappedValue(self.exe, start, size, self.contains_data_type(field_id, sub_field))

    def get_num_value(self, field_id: int, sub_field: int = 0) -> Optional[int]:
        """Integer stored in a field, or None."""
        start = self.get_field_offset(field_id, sub_field)
        size = self.get_field_size(field_id, sub_field)
        return self.exe.get_num_value(start, size)

    def set_num_value(self, field_id: int, sub_field: int, value: int) -> bool:
        """Store an integer in a field; True if the bytes changed."""
        start = self.get_field_offset(field_id, sub_field)
        size = self.get_field_size(field_id, sub_field)
        return self.exe.set_num_value(start, size, value)

    def can_copy_to_offset(self, offset: Optional[int]) -> bool:
        """True if the target area is free to receive a copy."""
        return self.exe.is_area_empty(offset, self.size)

    def copy_to_offset(self, offset: Optional[int]) -> bool:
        """Copy the structure into an empty area of the executable."""
        if not self.can_copy_to_offset(offset):
            Logger.append(DbgLevel.ERROR, "The area is not empty!")
            return False
        if not self.exe.paste_buffer(offset, self, False):
            Logger.append(DbgLevel.ERROR, "Cannot paste the buffer!")
            return False
        return True


class ExeNodeWrapper(ExeElementWrapper):
    """A structure that holds a list of entries, each itself a wrapper."""

    # Wrapper class built for each entry, called as entry_class(exe, parent, entry_num).
    entry_class: Optional[type] = None

    def __init__(self, exe: Executable, parent: Optional["ExeNodeWrapper"] = None,
                 entry_num: int = 0):
        super().__init__(exe)
        self.parent = parent
        self.entry_num = entry_num
        self.entries: List[ExeNodeWrapper] = []
        self._by_offset: Dict[int, ExeNodeWrapper] = {}
        self.wrap()

    def wrap(self) -> bool:
        """Reload the entries."""
        self.clear()
        while self.load_next_entry(len(self.entries)):
            pass
        self.reload_mapping()
        return True

    def load_next_entry(self, entry_num: int) -> bool:
        """Append the entry with this number; False when there is none."""
        if self.entry_class is None:
            return False
        entry = self.entry_class(self.exe, self, entry_num)
        if entry.offset is None:
            return False
        self.entries.append(entry)
        return True

    def reload_mapping(self) -> None:
        """Rebuild the lookup of entries by their raw offset."""
        self._by_offset = {}
        for entry in self.entries:
            start = entry.offset
            if start is not None:
                self._by_offset.setdefault(start, entry)

    def entry_at_offset(self, offset: Optional[int]) -> Optional["ExeNodeWrapper"]:
        """The entry starting at a raw offset, or None."""
        if offset is None:
            return None
        return self._by_offset.get(offset)

    def get_entry_at(self, index: int) -> Optional["ExeNodeWrapper"]:
        """The entry at ``index``, or None."""
        if 0 <= index < len(self.entries):
            return self.entries[index]
        return None

    def entries_count(self) -> int:
        return len(self.entries)

    def clear(self) -> None:
        """Drop all entries."""
        self.entries.clear()
        self._by_offset = {}

    def get_subfield_offset(self, field_id: int, sub_field: int) -> Optional[int]:
        entry = self.get_entry_at(field_id)
        if entry is None:
            return None
        return entry.get_field_offset(sub_field)

    def get_subfield_size(self, field_id: int, sub_field: int) -> int:
        entry = self.get_entry_at(field_id)
        if entry is None:
            return 0
        return entry.get_field_size(sub_field)

    def get_subfield_name(self, field_id: int, sub_field: int) -> str:
        entry = self.get_entry_at(field_id)
        if entry is None:
            return ""
        return entry.get_field_name(sub_field)

    def can_add_entry(self) -> bool:
        """True if there is empty room for another entry after the last one."""
        next_offset = self.next_entry_offset()
        size = self.entry_size()
        if size == 0:
            return False
        have_space = self.exe.is_area_empty(next_offset, size * 2)
        Logger.append(DbgLevel.INFO,
                      f"NextOffset = {next_offset if next_offset is not None else -1:X}"
                      f" size = {size:X}, canAdd: {int(have_space)}")
        return have_space

    def is_my_entry_type(self, entry: Optional["ExeNodeWrapper"]) -> bool:
        return entry is not None

    def last_entry(self) -> Optional["ExeNodeWrapper"]:
        return self.entries[-1] if self.entries else None

    def next_entry_offset(self) -> Optional[int]:
        """Raw offset right after the last entry, or None."""
        last = self.last_entry()
        if last is None:
            return None
        start = last.offset
        if start is None:
            return None
        return start + last.size

    def entry_size(self) -> int:
        """Size of the last entry, or 0 when there are none."""
        last = self.last_entry()
        return 0 if last is None else last.size

    def add_entry_at(self, entry: Optional["ExeNodeWrapper"],
                     offset: Optional[int]) -> Optional["ExeNodeWrapper"]:
        """Copy ``entry`` (the last one by default) to ``offset`` and load it as a new entry."""
        if not self.can_add_entry():
            return None
        entry_num = self.entries_count()
        if offset is None:
            return None
        if entry is None:
            entry = self.last_entry()
        if not self.is_my_entry_type(entry):
            return None
        if not self.exe.paste_buffer(offset, entry, False):
            return None
        if not self.load_next_entry(entry_num):
            return None
        self.reload_mapping()
        Logger.append(DbgLevel.INFO, f"Entries count: {self.entries_count()}")
        return self.last_entry()

    def add_entry(self, entry: Optional["ExeNodeWrapper"] = None) -> Optional["ExeNodeWrapper"]:
        """Append an entry right after the last one."""
        return self.add_entry_at(entry, self.next_entry_offset())