"""Recognising the kind of an executable and building it."""

from __future__ import annotations

from enum import IntEnum
from typing import Optional

from bearpe.buffers import AbstractByteBuffer
from bearpe.dos import DOSExeBuilder
from bearpe.executable import Executable


class ExeType(IntEnum):
    """Kinds of executable the factory knows about."""

    NONE = -1
    MZ = 0
    PE = 1


_BUILDERS = {
    ExeType.MZ: DOSExeBuilder(),
}


def find_matching(buf: Optional[AbstractByteBuffer]) -> ExeType:
    """The first executable type whose signature matches ``buf``."""
    if buf is None:
        return ExeType.NONE
    for exe_type in sorted(_BUILDERS):
        if _BUILDERS[exe_type].signature_matches(buf):
            return exe_type
    return ExeType.NONE


def build(buf: Optional[AbstractByteBuffer], exe_type: ExeType) -> Optional[Executable]:
    """Build an executable of ``exe_type`` over ``buf``; None if unsupported or invalid."""
    builder = _BUILDERS.get(exe_type)
    if builder is None:
        return None
    return builder.build(buf)


def get_type_name(exe_type: ExeType) -> str:
    """Display name of an executable type."""
    builder = _BUILDERS.get(exe_type)
    if builder is None:
        return "Not supported"
    return builder.type_name()