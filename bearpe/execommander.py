"""Commands that inspect and edit a loaded executable."""

from __future__ import annotations

from typing import Any, Optional, TextIO

from bearpe.buffers import BufferView
from bearpe.commander import CmdContext, Command, Commander
from bearpe.executable import AddrType, Executable, MappedExe
from bearpe.filebuffer import dump
from bearpe.formatter import Formatter, HexFormatter
from bearpe.util import CustomError
from bearpe.wrappers import ExeElementWrapper, ExeNodeWrapper

FETCH_SIZE = 100
_INVALID_ADDR = (1 << 64) - 1
_OFFSET_MASK = (1 << 64) - 1
_NUMBER_MASK = (1 << 32) - 1

_ADDR_CHARS = {AddrType.RAW: "r", AddrType.RVA: "v", AddrType.VA: "V"}
_ADDR_NAMES = {AddrType.RAW: "raw", AddrType.RVA: "RVA", AddrType.VA: "VA"}


def _as_offset(value: Optional[int]) -> int:
    return _INVALID_ADDR if value is None else value


def _padded_hex(value: Optional[int]) -> str:
    return f"{_as_offset(value):08x}"


def _padded_offset(value: Optional[int]) -> str:
    return f"[{_padded_hex(value)}]"


def addr_type_to_char(addr_type: AddrType) -> str:
    """One-letter marker of an address kind."""
    return _ADDR_CHARS.get(addr_type, "_")


def addr_type_to_str(addr_type: AddrType) -> str:
    """Short name of an address kind."""
    return _ADDR_NAMES.get(addr_type, "")


class ExeCmdContext(CmdContext):
    """Command context that carries the executable being worked on."""

    def __init__(self, exe: Optional[Executable] = None, stdin: Optional[TextIO] = None,
                 stdout: Optional[TextIO] = None, stderr: Optional[TextIO] = None):
        super().__init__(stdin, stdout, stderr)
        self.exe = exe


def exe_from_context(context: Optional[CmdContext]) -> Executable:
    """The executable held by ``context``; raises if there is none."""
    if not isinstance(context, ExeCmdContext):
        raise CustomError("Invalid command context!")
    if context.exe is None:
        raise CustomError("Invalid command context: no Exe")
    return context.exe


def _mapped_exe_from_context(context: Optional[CmdContext]) -> Optional[MappedExe]:
    exe = exe_from_context(context)
    return exe if isinstance(exe, MappedExe) else None


def _read_int(context: CmdContext, base: int, mask: int) -> int:
    token = context.read_token()
    if token is None:
        return 0
    try:
        return int(token, base) & mask
    except ValueError:
        return 0


def read_offset(context: CmdContext, addr_type: AddrType) -> Optional[int]:
    """Prompt for a hexadecimal address of the given kind."""
    if addr_type == AddrType.NOT_ADDR:
        return None
    out = context.stdout
    out.write(f"{addr_type_to_str(addr_type)}: ")
    out.flush()
    return _read_int(context, 16, _OFFSET_MASK)


def read_number(context: CmdContext, prompt: str, read_hex: bool = False) -> int:
    """Prompt for a number, decimal unless ``read_hex``; 0 if none could be read."""
    out = context.stdout
    out.write(f"{prompt}: ")
    out.flush()
    return _read_int(context, 16 if read_hex else 10, _NUMBER_MASK)


def fetch(context: CmdContext, exe: Executable, offset: Optional[int],
          addr_type: AddrType, hex_mode: bool) -> None:
    """Print the bytes found at an address, as hex or as characters."""
    raw = exe.to_raw(offset, addr_type)
    if raw is None:
        print("ERROR: Invalid Address supplied", file=context.stderr)
        return
    view = BufferView(exe, raw, FETCH_SIZE)
    if view.content is None:
        print("[ERROR] Cannot fetch", file=context.stdout)
        return
    if hex_mode:
        formatter: Formatter = HexFormatter(view)
        separator = " "
    else:
        formatter = Formatter(view)
        separator = ""
    out = context.stdout
    print("Fetched:", file=out)
    print("".join(item + separator for item in formatter), file=out)


def print_wrapper_names(context: CmdContext, exe: MappedExe) -> None:
    """List the wrappers that point at existing structures."""
    for index in range(exe.wrappers_count()):
        wrapper = exe.get_wrapper(index)
        if wrapper is None or wrapper.offset is None:
            continue
        print(f"[{index}] {exe.get_wrapper_name(index)}", file=context.stdout)


def dump_entry_info(context: CmdContext, wrapper: Optional[ExeElementWrapper]) -> None:
    """Print a wrapper's fields with their offsets, values and address kinds."""
    if wrapper is None:
        return
    out = context.stdout
    out.write("\n------\n")
    fields = wrapper.fields_count
    out.write(f"[{wrapper.name}] size: 0x{wrapper.size:x} fieldsCount: {fields}\n\n")
    for field_id in range(fields):
        offset = wrapper.get_field_offset(field_id)
        if offset is None:
            continue
        parts = [f"{_padded_offset(offset)} {wrapper.get_field_name(field_id)}\t"]
        for sub_field in range(wrapper.sub_fields_count or 1):
            value = wrapper.get_wrapped_value(field_id, sub_field)
            if not value.is_valid():
                break
            marker = addr_type_to_char(wrapper.contains_addr_type(field_id, sub_field))
            parts.append(f"[{value.to_string()} {marker}]")
        translated = wrapper.translate_field_content(field_id)
        if translated:
            parts.append(f" {translated} ")
        out.write("".join(parts) + "\n")
    out.write("------\n")


def dump_node_info(context: CmdContext, wrapper: Optional[ExeElementWrapper]) -> None:
    """Print every entry of a node wrapper; other wrappers are ignored."""
    if not isinstance(wrapper, ExeNodeWrapper):
        return
    out = context.stdout
    out.write("------\n")
    count = wrapper.entries_count()
    out.write(f"\t [{wrapper.name}] entriesCount: {count}\n")
    for index in range(count):
        entry = wrapper.get_entry_at(index)
        if entry is None:
            break
        out.write(f"Entry #{index}\n")
        dump_entry_info(context, entry)
        sub_entries = entry.entries_count()
        if sub_entries > 0:
            out.write(f"Have entries: {sub_entries} ( 0x{sub_entries:x} )")
        out.write("\n")


class ConvertAddrCommand(Command):
    """Converts an address from one address space to another."""

    def __init__(self, addr_from: AddrType, addr_to: AddrType, description: str):
        super().__init__(description)
        self.addr_from = addr_from
        self.addr_to = addr_to

    def execute(self, params: Any, context: Optional[CmdContext]) -> None:
        exe = exe_from_context(context)
        offset = read_offset(context, self.addr_from)
        converted = exe.convert_addr(offset, self.addr_from, self.addr_to)
        out = context.stdout
        if converted is None:
            print("[WARNING] This address cannot be mapped", file=out)
            return
        print(f"[{addr_type_to_str(self.addr_from)}]\t->\t[{addr_type_to_str(self.addr_to)}]:",
              file=out)
        print(f"{_padded_offset(offset)}\t->\t{_padded_offset(converted)}", file=out)


class FetchCommand(Command):
    """Prints the content found at an address."""

    def __init__(self, is_hex: bool, addr_type: AddrType, description: str):
        super().__init__(description)
        self.is_hex = is_hex
        self.addr_type = addr_type

    def execute(self, params: Any, context: Optional[CmdContext]) -> None:
        exe = exe_from_context(context)
        offset = read_offset(context, self.addr_type)
        fetch(context, exe, offset, self.addr_type, self.is_hex)


class ExeInfoCommand(Command):
    """Prints general information about the executable."""

    def __init__(self, description: str = "Exe Info"):
        super().__init__(description)

    def execute(self, params: Any, context: Optional[CmdContext]) -> None:
        exe = exe_from_context(context)
        out = context.stdout
        out.write(f"Bit mode: \t{exe.bit_mode}\n")
        out.write(f"Entry point: \t[{_padded_hex(exe.entry_point)} "
                  f"{addr_type_to_char(AddrType.RVA)}]\n")
        out.write(f"Raw size: \t{_padded_offset(exe.get_mapped_size(AddrType.RAW))}\n")
        out.write(f"Raw align. \t{_padded_offset(exe.get_alignment(AddrType.RAW))}\n")
        out.write(f"Virtual size: \t{_padded_offset(exe.get_mapped_size(AddrType.RVA))}\n")
        out.write(f"Virtual align. \t{_padded_offset(exe.get_alignment(AddrType.RVA))}\n")
        mapped = _mapped_exe_from_context(context)
        if mapped is not None:
            out.write("Contains:\n")
            print_wrapper_names(context, mapped)
        out.write("\n")


class WrapperCommand(Command):
    """A command acting on one wrapper, chosen up front or asked for."""

    def __init__(self, description: str, wrapper_id: Optional[int] = None):
        super().__init__(description)
        self.wrapper_id = wrapper_id

    def execute(self, params: Any, context: Optional[CmdContext]) -> None:
        mapped = _mapped_exe_from_context(context)
        if mapped is None:
            return
        wrapper_id = self.wrapper_id
        if wrapper_id is None:
            print_wrapper_names(context, mapped)
            wrapper_id = read_number(context, "wrapperNum", False)
        wrapper = mapped.get_wrapper(wrapper_id)
        if wrapper is None:
            print("No such wrapper!", file=context.stdout)
            return
        self.wrapper_action(context, wrapper)

    def wrapper_action(self, context: CmdContext, wrapper: Optional[ExeElementWrapper]) -> None:
        """Act on the chosen wrapper."""
        raise NotImplementedError


class AddEntryCommand(WrapperCommand):
    """Appends a copy of the last entry to a node wrapper."""

    def wrapper_action(self, context: CmdContext, wrapper: Optional[ExeElementWrapper]) -> None:
        out = context.stdout
        if wrapper is None:
            print("Invalid Wrapper", file=out)
            return
        if not isinstance(wrapper, ExeNodeWrapper):
            print("This wrapper stores no entries!", file=context.stderr)
            return
        if not wrapper.can_add_entry():
            print("No space to add entry", file=out)
            return
        if wrapper.add_entry(None) is not None:
            print("Added!", file=out)
            return
        print("Failed!", file=out)


class DumpWrapperCommand(WrapperCommand):
    """Prints a wrapper's fields and entries."""

    def wrapper_action(self, context: CmdContext, wrapper: Optional[ExeElementWrapper]) -> None:
        if wrapper is None:
            return
        dump_entry_info(context, wrapper)
        dump_node_info(context, wrapper)


class DumpWrapperEntriesCommand(WrapperCommand):
    """Prints one chosen entry of a node wrapper, with its sub-entries."""

    def wrapper_action(self, context: CmdContext, wrapper: Optional[ExeElementWrapper]) -> None:
        if wrapper is None:
            print("Invalid Wrapper", file=context.stderr)
            return
        if not isinstance(wrapper, ExeNodeWrapper):
            print("This wrapper has no entries!", file=context.stderr)
            return
        dump_entry_info(context, wrapper)
        index = read_number(context, "Dump subentries of Index: ")
        entry = wrapper.get_entry_at(index)
        dump_entry_info(context, entry)
        dump_node_info(context, entry)


class ClearWrapperCommand(WrapperCommand):
    """Zeroes a wrapper's content and re-parses the executable."""

    def wrapper_action(self, context: CmdContext, wrapper: Optional[ExeElementWrapper]) -> None:
        if wrapper is None:
            return
        out = context.stdout
        if wrapper.fill_content(0):
            print("Filled!", file=out)
        else:
            print("Failed to fill...", file=out)
            return
        if isinstance(wrapper.exe, MappedExe):
            wrapper.exe.wrap()


class DumpWrapperToFileCommand(WrapperCommand):
    """Writes a wrapper's content into a file in the current directory."""

    def wrapper_action(self, context: CmdContext, wrapper: Optional[ExeElementWrapper]) -> None:
        if wrapper is None:
            return
        file_name = self.make_file_name(wrapper.offset)
        size = dump(file_name, wrapper, True)
        print(f"Dumped size: 0x{size:x} into: {file_name}", file=context.stdout)

    def make_file_name(self, wrapper_offset: Optional[int]) -> str:
        """File name for a wrapper found at ``wrapper_offset``."""
        suffix = "" if wrapper_offset is None else f"_at_{wrapper_offset:x}"
        return f"wrapper{suffix}.bin"


class SaveExeToFileCommand(Command):
    """Writes the whole executable into ``dumped.exe``."""

    FILE_NAME = "dumped.exe"

    def __init__(self, description: str = "Save exe to file"):
        super().__init__(description)

    def execute(self, params: Any, context: Optional[CmdContext]) -> None:
        exe = exe_from_context(context)
        size = dump(self.FILE_NAME, exe, True)
        print(f"Dumped size: 0x{size:x} into: {self.FILE_NAME}", file=context.stdout)


class ExeCommander(Commander):
    """Command loop with the commands that work on any executable."""

    def __init__(self, context: ExeCmdContext):
        super().__init__(context)
        self.add_command("info", ExeInfoCommand())
        self.add_command("r-v", ConvertAddrCommand(AddrType.RAW, AddrType.RVA,
                                                   "Convert: RAW -> RVA"))
        self.add_command("v-r", ConvertAddrCommand(AddrType.RVA, AddrType.RAW,
                                                   "Convert: RVA -> RAW"))
        self.add_command("printc", FetchCommand(False, AddrType.RAW,
                                                "Print content by Raw address"))
        self.add_command("printx", FetchCommand(True, AddrType.RAW,
                                                "Print content by Raw address - HEX"))
        self.add_command("cl", ClearWrapperCommand("Clear chosen wrapper Content"))
        self.add_command("fdump", DumpWrapperToFileCommand(
            "Dump chosen wrapper Content into a file"))
        self.add_command("winfo", DumpWrapperCommand("Dump chosen wrapper info"))
        self.add_command("einfo", DumpWrapperEntriesCommand("Dump wrapper entries"))
        self.add_command("e_add", AddEntryCommand("Add entry to a wrapper"))
        self.add_command("save", SaveExeToFileCommand())

    def set_exe(self, exe: Optional[Executable]) -> None:
        """Select the executable the commands work on."""
        self.context.exe = exe