import io

from bearpe.cli import main, try_loading
from bearpe.execommander import ExeCmdContext


def _write_dos(path):
    data = bytearray(64)
    data[0:2] = b"MZ"
    path.write_bytes(bytes(data))
    return path


def _ctx(text=""):
    return ExeCmdContext(None, io.StringIO(text), io.StringIO(), io.StringIO())


def test_main_without_arguments(capsys):
    assert main([]) == 0
    out = capsys.readouterr().out
    assert "Bearparser version" in out
    assert "Available commands:" in out


def test_main_missing_file(tmp_path, capsys):
    assert main([str(tmp_path / "absent.exe")]) == -1
    assert "The file does not exist" in capsys.readouterr().err


def test_main_unsupported_type(tmp_path, capsys):
    path = tmp_path / "plain.bin"
    path.write_bytes(b"hello world")
    assert main([str(path)]) == 1
    assert "Type not supported" in capsys.readouterr().err


def test_main_runs_commands(tmp_path, capsys, monkeypatch):
    path = _write_dos(tmp_path / "dos.exe")
    monkeypatch.setattr("sys.stdin", io.StringIO("info\nq\n"))
    assert main([str(path)]) == 0
    out = capsys.readouterr().out
    assert "Type: MZ" in out
    assert "Bit mode: \t16" in out
    assert f"Raw size: \t[{0x200:08x}]" in out
    assert out.rstrip().endswith("Bye!")


def test_main_stops_at_end_of_input(tmp_path, capsys, monkeypatch):
    path = _write_dos(tmp_path / "dos.exe")
    monkeypatch.setattr("sys.stdin", io.StringIO(""))
    assert main([str(path)]) == 0
    assert "Bye!" in capsys.readouterr().out


def test_try_loading_existing(tmp_path):
    path = _write_dos(tmp_path / "dos.exe")
    view = try_loading(_ctx(), str(path))
    assert len(view) == path.stat().st_size
    assert view.content[:2] == b"MZ"


def test_try_loading_empty_file_gives_up(tmp_path):
    path = tmp_path / "empty.bin"
    path.write_bytes(b"")
    ctx = _ctx("")
    assert try_loading(ctx, str(path)) is None
    assert "The file is empty" in ctx.stderr.getvalue()
    assert "Try again with size (hex): " in ctx.stdout.getvalue()


def test_try_loading_missing(tmp_path):
    ctx = _ctx()
    assert try_loading(ctx, str(tmp_path / "nope")) is None
    assert "[ERROR] The file does not exist" in ctx.stderr.getvalue()