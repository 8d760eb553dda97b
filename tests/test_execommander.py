import io

import pytest

from bearpe.buffers import ByteBuffer
from bearpe.commander import CmdContext
from bearpe.dos import DOSExe
from bearpe.execommander import (
    AddEntryCommand,
    ClearWrapperCommand,
    ConvertAddrCommand,
    DumpWrapperCommand,
    DumpWrapperEntriesCommand,
    DumpWrapperToFileCommand,
    ExeCmdContext,
    ExeCommander,
    ExeInfoCommand,
    FetchCommand,
    SaveExeToFileCommand,
    addr_type_to_char,
    addr_type_to_str,
    dump_entry_info,
    dump_node_info,
    exe_from_context,
    fetch,
    print_wrapper_names,
    read_number,
    read_offset,
)
from bearpe.executable import AddrType, ExeError
from bearpe.util import CustomError
from bearpe.wrappers import ExeNodeWrapper


def _dos_exe():
    data = bytearray(0x80)
    data[0:2] = b"MZ"
    data[60:64] = (0x40).to_bytes(4, "little")
    return DOSExe(ByteBuffer(len(data), content=bytes(data)))


def _ctx(exe=None, text=""):
    return ExeCmdContext(exe, io.StringIO(text), io.StringIO(), io.StringIO())


class _Node(ExeNodeWrapper):
    name = "node"

    @property
    def offset(self):
        return 0 if self.parent is None else 4 * self.entry_num

    @property
    def size(self):
        return 4

    def load_next_entry(self, entry_num):
        if self.parent is not None or entry_num >= 2:
            return False
        self.entries.append(_Node(self.exe, self, entry_num))
        return True


def test_addr_type_markers():
    assert [addr_type_to_char(t) for t in AddrType] == ["_", "r", "v", "V"]
    assert [addr_type_to_str(t) for t in AddrType] == ["", "raw", "RVA", "VA"]


def test_exe_from_context_errors():
    with pytest.raises(CustomError):
        exe_from_context(CmdContext(io.StringIO(), io.StringIO(), io.StringIO()))
    with pytest.raises(CustomError):
        exe_from_context(_ctx())
    exe = _dos_exe()
    assert exe_from_context(_ctx(exe)) is exe


def test_read_offset_and_number():
    ctx = _ctx(text="1f 12\nzz ff\n")
    assert read_offset(ctx, AddrType.NOT_ADDR) is None
    assert read_offset(ctx, AddrType.RAW) == 0x1F
    assert read_number(ctx, "n") == 12
    assert read_number(ctx, "n") == 0
    assert read_number(ctx, "n", True) == 0xFF
    assert read_number(ctx, "n") == 0
    assert ctx.stdout.getvalue().startswith("raw: n: ")


def test_fetch_hex_and_text():
    exe = _dos_exe()
    ctx = _ctx(exe)
    fetch(ctx, exe, 0, AddrType.RAW, True)
    assert ctx.stdout.getvalue().startswith("Fetched:\n4d 5a 00 ")
    ctx = _ctx(exe)
    fetch(ctx, exe, 0, AddrType.RAW, False)
    assert "MZ\\x00" in ctx.stdout.getvalue()


def test_fetch_invalid_address():
    exe = _dos_exe()
    ctx = _ctx(exe)
    fetch(ctx, exe, len(exe) + 5, AddrType.RAW, True)
    assert "Invalid Address" in ctx.stderr.getvalue()
    assert ctx.stdout.getvalue() == ""


def test_fetch_command_reads_address():
    exe = _dos_exe()
    ctx = _ctx(exe, "1\n")
    FetchCommand(True, AddrType.RAW, "x").execute(None, ctx)
    assert "Fetched:\n5a 00 " in ctx.stdout.getvalue()


def test_convert_addr_command():
    exe = _dos_exe()
    ctx = _ctx(exe, "10\n")
    ConvertAddrCommand(AddrType.RAW, AddrType.RVA, "c").execute(None, ctx)
    out = ctx.stdout.getvalue()
    assert "[raw]\t->\t[RVA]:" in out
    assert "[00000010]\t->\t[00000010]" in out


def test_convert_addr_out_of_range():
    exe = _dos_exe()
    ctx = _ctx(exe, "ffff\n")
    ConvertAddrCommand(AddrType.RAW, AddrType.RVA, "c").execute(None, ctx)
    assert "[WARNING] This address cannot be mapped" in ctx.stdout.getvalue()


def test_exe_info_command():
    exe = _dos_exe()
    ctx = _ctx(exe)
    ExeInfoCommand().execute(None, ctx)
    out = ctx.stdout.getvalue()
    assert "Bit mode: \t16\n" in out
    assert f"Raw size: \t[{len(exe):08x}]" in out
    assert "Contains:\n[0] DOS Hdr\n" in out


def test_print_wrapper_names():
    exe = _dos_exe()
    ctx = _ctx(exe)
    print_wrapper_names(ctx, exe)
    assert ctx.stdout.getvalue() == "[0] DOS Hdr\n"


def test_dump_wrapper_command():
    exe = _dos_exe()
    ctx = _ctx(exe)
    DumpWrapperCommand("d", 0).execute(None, ctx)
    out = ctx.stdout.getvalue()
    assert "[DOS Hdr] size: 0x40 fieldsCount: 19" in out
    assert "[00000000] Magic number\t[5A4D _]" in out
    assert "File address of new exe header" in out


def test_wrapper_command_asks_for_id():
    exe = _dos_exe()
    ctx = _ctx(exe, "5\n")
    DumpWrapperCommand("d").execute(None, ctx)
    out = ctx.stdout.getvalue()
    assert "wrapperNum: " in out
    assert "No such wrapper!" in out


def test_add_entry_requires_node():
    exe = _dos_exe()
    ctx = _ctx(exe)
    AddEntryCommand("a", 0).execute(None, ctx)
    assert "This wrapper stores no entries!" in ctx.stderr.getvalue()


def test_dump_entries_requires_node():
    exe = _dos_exe()
    ctx = _ctx(exe)
    DumpWrapperEntriesCommand("e", 0).execute(None, ctx)
    assert "This wrapper has no entries!" in ctx.stderr.getvalue()


def test_dump_node_info_lists_entries():
    exe = _dos_exe()
    node = _Node(exe)
    ctx = _ctx(exe)
    dump_node_info(ctx, node)
    out = ctx.stdout.getvalue()
    assert "\t [node] entriesCount: 2" in out
    assert "Entry #0" in out and "Entry #1" in out
    assert "Entry #2" not in out


def test_dump_helpers_ignore_missing():
    exe = _dos_exe()
    ctx = _ctx(exe)
    dump_entry_info(ctx, None)
    dump_node_info(ctx, exe.get_wrapper(0))
    assert ctx.stdout.getvalue() == ""


def test_add_entry_on_node_reports_result():
    exe = _dos_exe()
    node = _Node(exe)
    ctx = _ctx(exe)
    AddEntryCommand("a").wrapper_action(ctx, node)
    assert ctx.stdout.getvalue() == "Failed!\n"
    assert node.entries_count() == 2


def test_dump_entries_on_node():
    exe = _dos_exe()
    node = _Node(exe)
    ctx = _ctx(exe, "1\n")
    DumpWrapperEntriesCommand("e").wrapper_action(ctx, node)
    out = ctx.stdout.getvalue()
    assert "Dump subentries of Index: : " in out
    assert out.count("[node] size: 0x4") == 2


def test_clear_wrapper_zeroes_and_rewraps():
    exe = _dos_exe()
    ctx = _ctx(exe)
    with pytest.raises(ExeError):
        ClearWrapperCommand("c", 0).execute(None, ctx)
    assert "Filled!" in ctx.stdout.getvalue()
    assert exe.content[:64] == bytes(64)


def test_make_file_name():
    command = DumpWrapperToFileCommand("f")
    assert command.make_file_name(0) == "wrapper_at_0.bin"
    assert command.make_file_name(None) == "wrapper.bin"


def test_dump_wrapper_to_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    exe = _dos_exe()
    ctx = _ctx(exe)
    DumpWrapperToFileCommand("f", 0).execute(None, ctx)
    assert (tmp_path / "wrapper_at_0.bin").read_bytes() == exe.content[:64]
    assert "Dumped size: 0x40 into: wrapper_at_0.bin" in ctx.stdout.getvalue()


def test_save_exe_to_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    exe = _dos_exe()
    ctx = _ctx(exe)
    SaveExeToFileCommand().execute(None, ctx)
    assert (tmp_path / "dumped.exe").read_bytes() == exe.content


def test_exe_commander_loop():
    exe = _dos_exe()
    ctx = _ctx(exe, "bogus\nwinfo 0\nq\n")
    commander = ExeCommander(ctx)
    assert {"q", "info", "r-v", "v-r", "printc", "printx", "cl", "fdump",
            "winfo", "einfo", "e_add", "save"} == set(commander.commands)
    commander.parse_commands()
    assert ctx.end_processing
    out = ctx.stdout.getvalue()
    assert f"Available commands: {len(commander.commands)}" in out
    assert "[DOS Hdr] size: 0x40" in out
    assert "No such command" in ctx.stderr.getvalue()