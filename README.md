# bearpe

A small library for parsing executable files, together with an interactive
shell, `bearcommander`, for looking inside them.

The library works on in-memory byte buffers. It can tell whether a buffer
holds an MS-DOS (MZ) executable, convert between raw file offsets, relative
virtual addresses (RVA) and virtual addresses (VA), and expose the DOS header
as named fields that can be read and changed.

## Installing

```
pip install .
```

## The command shell

Start it with the path of an executable:

```
bearcommander program.exe
```

With no arguments it prints its version and the list of commands.

Once the file is loaded, enter a command name at the `$ ` prompt. Commands
that need more input ask for it: addresses are read in hexadecimal and
indexes in decimal. An unknown name prints the list of commands. The shell
ends on `q` or at the end of its input.

| Command  | What it does                                          |
|----------|-------------------------------------------------------|
| `info`   | Bit mode, entry point, sizes, alignments and wrappers |
| `r-v`    | Convert a raw offset to an RVA                        |
| `v-r`    | Convert an RVA to a raw offset                        |
| `printc` | Print up to 100 bytes at a raw offset as characters   |
| `printx` | Print up to 100 bytes at a raw offset in hex          |
| `winfo`  | Dump the fields of a chosen wrapper                   |
| `einfo`  | Dump the entries of a chosen wrapper                  |
| `e_add`  | Add an entry to a wrapper that holds entries          |
| `cl`     | Fill a chosen wrapper's content with zeros            |
| `fdump`  | Save a chosen wrapper's content to `wrapper_at_<offset>.bin` |
| `save`   | Save the whole executable as `dumped.exe`             |
| `q`      | Quit                                                  |

`fdump` and `save` write into the current directory.

## Using the library

```python
from bearpe.buffers import ByteBuffer
from bearpe.factory import ExeType, build, find_matching, get_type_name

with open("program.exe", "rb") as f:
    data = f.read()

buf = ByteBuffer(len(data), content=data)
exe_type = find_matching(buf)
if exe_type is not ExeType.NONE:
    print(get_type_name(exe_type))          # "MZ"
    exe = build(buf, exe_type)
    print(exe.pe_signature_offset())        # value of the e_lfanew field
```

The DOS header is available as a wrapper whose fields are listed in
`bearpe.dos.DosField`:

```python
from bearpe.dos import DosField

hdr = exe.get_wrapper(0)
print(hdr.get_field_name(DosField.LFNEW), hdr.get_num_value(DosField.LFNEW))
```

Buffers give bounds-checked access to their content:

```python
from bearpe.buffers import ByteBuffer

buf = ByteBuffer(16)
buf.set_num_value(0, 4, 0x1234)
assert buf.get_num_value(0, 4) == 0x1234
buf.set_string_value(4, "MZ")
assert buf.get_string_value(4, 8, False) == "MZ"
```

Files can be loaded with `bearpe.filebuffer.FileView` or
`bearpe.filebuffer.read_file`, and any buffer written back with
`bearpe.filebuffer.dump`.

## What it does not do

Only the MS-DOS header is understood. A Windows PE file is recognised as an
MZ executable, because it starts with the same signature, but its PE headers,
sections, data directories, imports, exports and resources are not parsed,
and `ExeType.PE` has no builder (`get_type_name` reports it as
"Not supported"). The DOS header holds no entries, so `einfo` and `e_add`
only report that the chosen wrapper has none.

## Running the tests

```
pip install .[test]
pytest
```