"""Command-line entry point: load an executable and run the command loop."""

from __future__ import annotations

import os
import sys
from typing import List, Optional

from bearpe.buffers import ByteBuffer
from bearpe.commander import CmdContext
from bearpe.execommander import ExeCmdContext, ExeCommander, read_number
from bearpe.factory import ExeType, build, find_matching, get_type_name
from bearpe.filebuffer import FILE_MAXSIZE, FileView
from bearpe.util import ByteBufferError, CustomError

TITLE = "BearCommander"
PARSER_VERSION = "1.0"
MINBUF = 0x200


def try_loading(context: CmdContext, path: str) -> Optional[FileView]:
    """Load ``path``, asking for a smaller size while loading fails; None on giving up."""
    max_size = FILE_MAXSIZE
    while True:
        if not os.path.exists(path):
            print("[ERROR] The file does not exist", file=context.stderr)
            return None
        try:
            return FileView(path, max_size)
        except ByteBufferError as exc:
            print(f"[ERROR] {exc}", file=context.stderr)
            max_size = read_number(context, "Try again with size (hex): ", True)
            if max_size == 0:
                return None


def main(argv: Optional[List[str]] = None) -> int:
    """Run the commander on the file named by the first argument."""
    args = sys.argv[1:] if argv is None else list(argv)
    context = ExeCmdContext()
    commander = ExeCommander(context)
    out = context.stdout
    err = context.stderr

    if not args:
        print(f"Bearparser version: {PARSER_VERSION}", file=out)
        print("Args: <exe file>", file=out)
        commander.print_help()
        return 0

    try:
        view = try_loading(context, args[0])
        if view is None:
            return -1
        with view:
            exe_type = find_matching(view)
            if exe_type == ExeType.NONE:
                print("Type not supported", file=err)
                return 1
            print(f"Type: {get_type_name(exe_type)}", file=out)
            alloc_size = max(len(view), MINBUF)
            print("Buffering...", file=out)
            buf = ByteBuffer.from_buffer(view, 0, alloc_size)
        print("Parsing executable...", file=out)
        context.exe = build(buf, exe_type)
        commander.parse_commands()
        print("Bye!", file=out)
    except CustomError as exc:
        print(f"[ERROR] {exc}", file=err)
        return -1
    return 0