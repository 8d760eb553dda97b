"""Errors, logging and byte-level helpers shared by the parser."""

from __future__ import annotations

import string
import struct
import sys
from enum import IntEnum
from itertools import islice
from typing import Iterable, Iterator, Optional, Union

MAX_LINE = 255

CharLike = Union[int, str]

_FUNC_PUNCTUATION = frozenset(ord(c) for c in "_.#@?-\\/:")
_HEX_DIGITS = frozenset(ord(c) for c in string.hexdigits)
_DOT = ord(".")
_SPACE = ord(" ")


class CustomError(Exception):
    """Base error raised by the package."""


class ByteBufferError(CustomError):
    """Raised when a buffer cannot satisfy a request."""


class DbgLevel(IntEnum):
    """Severity of a log message; lower is more severe."""

    ERROR = 0
    WARNING = 1
    INFO = 2


class Logger:
    """Writes diagnostic lines to stderr when their level is enabled."""

    level: DbgLevel = DbgLevel.ERROR

    @classmethod
    def append(cls, level: Union[DbgLevel, int], message: str) -> bool:
        """Log ``message`` at ``level``; return True if it was written."""
        if int(level) > cls.level:
            return False
        if not message:
            return False
        try:
            level = DbgLevel(level)
        except ValueError:
            level = DbgLevel.ERROR
        line = str(message)[: MAX_LINE - 1]
        print(f"[{level.name}] {line}", file=sys.stderr)
        return True


def _code(c: CharLike) -> int:
    if isinstance(c, str):
        return ord(c) if c else 0
    return int(c)


def _codes(data: Iterable[CharLike]) -> Iterator[int]:
    for c in data:
        yield _code(c)


def is_printable(c: CharLike) -> bool:
    """True for printable ASCII characters (space through tilde)."""
    return 0x20 <= _code(c) < 0x7F


def is_endline(c: CharLike) -> bool:
    """True for carriage return and line feed."""
    return _code(c) in (0x0A, 0x0D)


def roundup_to_unit(size: int, unit: int) -> int:
    """Round ``size`` up to the nearest multiple of ``unit``."""
    if unit == 0:
        raise ValueError("Invalid roundup unit!")
    units, rest = divmod(size, unit)
    if rest:
        units += 1
    return units * unit


def is_str_longer(data: Iterable[CharLike], max_len: int) -> bool:
    """True if no terminator appears within the first ``max_len`` characters."""
    window = list(islice(_codes(data), max_len))
    if len(window) < max_len:
        return False
    return 0 not in window


def _ascii_len(codes: Iterable[int], max_len: Optional[int], accept_not_terminated: bool) -> int:
    count = 0
    for c in islice(codes, max_len):
        if c == 0:
            return count
        if not is_printable(c) and not is_endline(c):
            break
        count += 1
    return count if accept_not_terminated else 0


def get_ascii_len(data: Iterable[CharLike], max_len: Optional[int], accept_not_terminated: bool = False) -> int:
    """Length of the printable ASCII string at the start of ``data``.

    Returns 0 for an unterminated string unless ``accept_not_terminated``.
    """
    return _ascii_len(_codes(data), max_len, accept_not_terminated)


def _words(data) -> Iterator[int]:
    if isinstance(data, (bytes, bytearray, memoryview)):
        raw = bytes(data)
        raw = raw[: len(raw) // 2 * 2]
        return (word for (word,) in struct.iter_unpack("<H", raw))
    return _codes(data)


def get_ascii_len_w(data, max_len: Optional[int], accept_not_terminated: bool = False) -> int:
    """Like :func:`get_ascii_len` for 16-bit little-endian characters."""
    return _ascii_len(_words(data), max_len, accept_not_terminated)


def has_non_printable(data: Iterable[CharLike], max_len: int) -> bool:
    """True if a non-printable character occurs before the terminator."""
    for c in islice(_codes(data), max_len):
        if c == 0:
            break
        if not is_printable(c):
            return True
    return False


def is_func_char(c: CharLike) -> bool:
    """True for characters allowed in (possibly mangled) function names."""
    code = _code(c)
    return (
        ord("a") <= code <= ord("z")
        or ord("A") <= code <= ord("Z")
        or ord("0") <= code <= ord("9")
        or code in _FUNC_PUNCTUATION
    )


def validate_func_name(data: Iterable[CharLike], buf_size: int) -> bool:
    """True if every character up to the terminator is a function-name character."""
    if not data or not buf_size:
        return False
    for c in islice(_codes(data), buf_size):
        if c == 0:
            break
        if not is_func_char(c):
            return False
    return True


def forwarder_name_len(data: Iterable[CharLike], buf_size: int) -> int:
    """Length of a terminated forwarder name such as ``LIB.Function``, else 0."""
    if not data or buf_size <= 0:
        return 0
    window = list(islice(_codes(data), buf_size))
    length = 0
    has_dot = False
    for c in window:
        if not is_func_char(c):
            break
        has_dot = has_dot or c == _DOT
        length += 1
    if length == buf_size:
        return 0
    terminator = window[length] if length < len(window) else 0
    if terminator == 0 and has_dot:
        return length
    return 0


def no_white_count(data: Iterable[CharLike]) -> int:
    """Number of printable characters that are not spaces."""
    return sum(1 for c in _codes(data) if is_printable(c) and c != _SPACE)


def is_space_clear(data: Iterable[CharLike]) -> bool:
    """True if every byte is zero."""
    return all(c == 0 for c in _codes(data))


def is_hex_char(c: CharLike) -> bool:
    """True for hexadecimal digits."""
    return _code(c) in _HEX_DIGITS


def hexdump(data: bytes, pad: int = 16) -> str:
    """Render ``data`` as ``0xNN`` values, ``pad`` per line."""
    if pad <= 0:
        raise ValueError("Invalid padding!")
    parts = ["\n---\n"]
    for position, byte in enumerate(data):
        if position % pad == 0:
            parts.append("\n")
        parts.append(f"0x{byte:02X} ")
    parts.append("\n---\n")
    return "".join(parts)