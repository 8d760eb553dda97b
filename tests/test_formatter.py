import pytest

from bearpe.buffers import ByteBuffer
from bearpe.formatter import Formatter, HexFormatter
from bearpe.util import ByteBufferError

DATA = b"A\x01\xffz"


@pytest.fixture
def buf():
    return ByteBuffer(len(DATA), content=DATA)


def test_printable_shown_as_character(buf):
    fmt = Formatter(buf)
    assert fmt[0] == "A"
    assert fmt[3] == "z"


def test_nonprintable_escaped(buf):
    fmt = Formatter(buf)
    assert fmt[1].startswith("\\x")
    assert int(fmt[2][2:], 16) == DATA[2]


def test_nonprintable_skipped(buf):
    fmt = Formatter(buf, skip_nonprintable=True)
    assert fmt[1] == ".."
    assert fmt[2] == ".."
    assert fmt[0] == "A"


def test_hex_formatter(buf):
    fmt = HexFormatter(buf)
    assert int(fmt[0], 16) == DATA[0]
    assert int(fmt[2], 16) == DATA[2]
    assert all(len(part) == 2 for part in fmt)


def test_length_and_iteration(buf):
    fmt = Formatter(buf)
    parts = list(fmt)
    assert len(fmt) == len(DATA)
    assert len(parts) == len(DATA)
    assert parts[0] == fmt[0]


def test_out_of_range(buf):
    with pytest.raises(ByteBufferError):
        Formatter(buf)[len(DATA)]


def test_null_buffer():
    with pytest.raises(ByteBufferError):
        Formatter(None)