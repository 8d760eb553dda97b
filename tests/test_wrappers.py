import struct

import pytest

from bearpe.buffers import ByteBuffer
from bearpe.executable import AddrType, Executable
from bearpe.util import CustomError
from bearpe.wrappers import (
    DataType,
    ExeElementWrapper,
    ExeNodeWrapper,
    WrappedValue,
)

RECORD = 8


class FlatExe(Executable):
    image_base = 0x400000
    entry_point = 0

    def get_mapped_size(self, addr_type):
        return len(self)

    def get_alignment(self, addr_type):
        return 1

    def raw_to_rva(self, raw):
        return raw if 0 <= raw < len(self) else None

    def rva_to_raw(self, rva):
        return rva if 0 <= rva < len(self) else None


def make_exe(data):
    return FlatExe(ByteBuffer(len(data), content=data), 32)


class Record(ExeNodeWrapper):
    name = "Record"

    @property
    def offset(self):
        start = self.parent.start + self.entry_num * RECORD
        return start if start + RECORD <= len(self.exe) else None

    @property
    def size(self):
        return RECORD if self.offset is not None else 0

    @property
    def fields_count(self):
        return 2

    def get_field_offset(self, field_id, sub_field=0):
        start = self.offset
        if start is None:
            return None
        if field_id == 1:
            return start + 4
        return start

    def get_field_name(self, field_id):
        return ("First", "Second")[field_id] if field_id < 2 else ""


class Table(ExeNodeWrapper):
    name = "Table"

    def __init__(self, exe, start):
        self.start = start
        super().__init__(exe)

    @property
    def offset(self):
        return self.start

    @property
    def size(self):
        return len(self.entries) * RECORD

    def load_next_entry(self, entry_num):
        rec = Record(self.exe, self, entry_num)
        if rec.offset is None or not rec.get_num_value(0):
            return False
        self.entries.append(rec)
        return True


@pytest.fixture
def exe():
    data = (struct.pack("<II", 1, 2) + struct.pack("<II", 3, 4)
            + struct.pack("<II", 5, 6) + bytes(40))
    return make_exe(data)


@pytest.fixture
def table(exe):
    return Table(exe, 0)


def test_requires_exe():
    with pytest.raises(CustomError):
        Table(None, 0)
    empty = Table(FlatExe(ByteBuffer(RECORD), 32), 0)
    assert empty.entries_count() == 0


def test_entries_loaded(table):
    assert table.entries_count() == 3
    assert table.get_entry_at(1).get_num_value(1) == 4
    assert table.get_entry_at(3) is None
    assert table.get_entry_at(-1) is None
    assert table.last_entry() is table.get_entry_at(2)


def test_field_sizes(table):
    rec = table.get_entry_at(0)
    assert rec.get_field_size(0) + rec.get_field_size(1) == rec.size
    assert rec.get_field_size(0) == rec.get_field_offset(1) - rec.get_field_offset(0)
    assert rec.get_field_size(5) == rec.size


def test_subfield_access(table):
    rec = table.get_entry_at(0)
    assert table.get_subfield_offset(0, 1) == rec.get_field_offset(1)
    assert table.get_subfield_size(0, 0) == rec.get_field_size(0)
    assert table.get_subfield_name(0, 1) == rec.get_field_name(1)
    assert table.get_subfield_name(9, 0) == ""
    assert table.get_subfield_offset(9, 0) is None
    assert table.get_subfield_size(9, 0) == 0


def test_num_value_round_trip(table):
    rec = table.get_entry_at(2)
    assert rec.set_num_value(1, 0, 0xCAFE)
    assert rec.get_num_value(1) == 0xCAFE
    assert not rec.set_num_value(1, 0, 0xCAFE)


def test_wrapped_value_int(table):
    rec = table.get_entry_at(0)
    value = rec.get_wrapped_value(0)
    assert value.is_valid()
    assert value.value() == 1
    text = value.to_string()
    assert text == "00000001"
    assert int(text, 16) == rec.get_num_value(0)


def test_wrapped_value_invalid_field(table):
    rec = table.get_entry_at(0)
    assert not rec.get_wrapped_value(-1).is_valid()
    assert rec.get_wrapped_value(None).to_string() == ""


def test_next_entry_offset_and_size(table):
    last = table.last_entry()
    assert table.next_entry_offset() == last.offset + last.size
    assert table.entry_size() == last.size


def test_add_entry_duplicates_last(table, exe):
    assert table.can_add_entry()
    added = table.add_entry()
    assert added is table.last_entry()
    assert table.entries_count() == 4
    assert added.content == table.get_entry_at(2).content
    assert exe.get_content_at(added.offset, RECORD) == table.get_entry_at(2).content


def test_cannot_add_without_room():
    data = struct.pack("<II", 1, 2) + struct.pack("<II", 3, 4)
    table = Table(make_exe(data), 0)
    assert not table.can_add_entry()
    assert table.add_entry() is None
    assert table.entries_count() == 2


def test_copy_to_offset(table, exe):
    rec = table.get_entry_at(0)
    assert not rec.can_copy_to_offset(0)
    assert not rec.copy_to_offset(0)
    assert rec.copy_to_offset(48)
    assert exe.get_content_at(48, RECORD) == rec.content


def test_fill_content_then_rewrap(table):
    rec = table.get_entry_at(1)
    assert rec.fill_content(0)
    assert rec.is_area_empty(0, RECORD)
    assert table.wrap()
    assert table.entries_count() == 1


def test_clear(table):
    table.clear()
    assert table.entries_count() == 0
    assert table.last_entry() is None
    assert table.next_entry_offset() is None
    assert table.entry_size() == 0


def test_wrapped_string_values():
    exe = make_exe(b"hello\0" + "hi".encode("utf-16-le") + bytes(4))
    assert WrappedValue(exe, 0, 6, DataType.STRING).to_string() == "hello"
    assert WrappedValue(exe, 6, 4, DataType.WSTRING).to_string() == "hi"
    assert WrappedValue(exe, 100, 4, DataType.STRING).value() is None


def test_wrapped_value_markers():
    exe = make_exe(bytes(32))
    assert WrappedValue(exe, 0, 3, DataType.INT).to_string() == "INVALID"
    assert WrappedValue(exe, 0, 3, DataType.INT).value() == "INVALID"
    assert WrappedValue(exe, 0, 16, DataType.INT).to_string() == "..."
    assert WrappedValue(exe, 0, 4, DataType.COMPLEX).to_string() == "..."
    assert not WrappedValue().is_valid()
    assert WrappedValue().to_string() == ""


@pytest.mark.parametrize("size", [1, 2, 4, 8])
def test_int_format_width(size):
    exe = make_exe(bytes(range(1, 17)))
    value = WrappedValue(exe, 0, size, DataType.INT)
    text = value.to_string()
    assert len(text) == size * 2
    assert int(text, 16) == exe.get_num_value(0, size)
    assert format(value.value(), value.int_format()) == text


def test_default_element_wrapper():
    class Whole(ExeElementWrapper):
        offset = 0
        size = 4

    exe = make_exe(b"\x07\x00\x00\x00" + bytes(4))
    whole = Whole(exe)
    assert whole.get_field_offset(3) == 0
    assert whole.contains_addr_type(0) == AddrType.NOT_ADDR
    assert whole.get_num_value(0) == 7