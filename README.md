# teachos

A small teaching machine written in plain Python. It provides:

- tools for little-endian MIPS COFF object files: a parser, a disassembler
  and a converter to the simple NOFF executable format;
- a user-mode MIPS interpreter that loads a COFF program and runs it,
  passing a handful of system calls through to the host;
- a simulated disk stored in an ordinary file, with seek, rotation and
  track-buffer timing, and a minimal flat file system on top of it
  (a free-sector bitmap, a fixed-size directory, single-sector file headers).

No third-party libraries are needed.

## Installing

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Command-line tools

Disassemble the text section of a COFF program (defaults to `a.out`).
A note is printed first for each usual section the file lacks:

```
teachos-disasm program.coff
```

Convert a COFF program into a NOFF file. The program must be an unshared
(OMAGIC) file whose sections are `.text`, `.data` or `.rdata`, and `.bss`
or `.sbss`; any other non-empty section is shown as a hex dump and the
conversion fails, leaving no output file:

```
teachos-coff2noff program.coff program.noff
```

Run a COFF program in the interpreter (defaults to `a.out`). `-t` traces
every instruction, `-r` adds a register dump to each trace line, and `-T`
traces system calls. `-m` takes four values and ignores them. The exit
status is the program's own:

```
teachos-interp -t program.coff arg1 arg2
```

The interpreter handles the system calls exit, read, write, open, close,
sbreak, lseek, ioctl, fstat and getpagesize; any other stops the program
with status 2. Coprocessor instructions and the SWL and SWR stores are not
supported.

## Working with object files from Python

```python
from teachos.coff import parse_coff
from teachos.disasm import format_instruction

with open("program.coff", "rb") as fh:
    image = parse_coff(fh.read())

text = image.find_section(".text")
print(len(image.section_data(text)), "bytes of code")

print(format_instruction(0x27BDFFE8, 0x10000000, True))
```

`teachos.coff2noff.convert` does the work of the converter on bytes in
memory and returns the bytes of the NOFF file; a conversion the format
cannot express raises `teachos.coff2noff.ConversionError`.
`teachos.coff.NoffHeader.unpack` reads the header of such a file back.

The interpreter can also be driven directly: build a
`teachos.interp.Memory`, copy a program into it with
`teachos.interp.load_program`, and call `Machine(memory).run(memory.offset, argv)`.

## The simulated disk and file system

```python
import io

from teachos.synchdisk import SynchDisk
from teachos.filesys import FileSystem
from teachos.fstest import copy, print_file

disk = SynchDisk("DISK")
fs = FileSystem(disk, True)          # True formats a fresh disk

fs.create("hello", 11)
f = fs.open("hello")
f.write(b"hello world")
f.seek(0)
print(f.read(11))

print(fs.list())
out = io.StringIO()
print_file(fs, "hello", out)

fs.remove("hello")
disk.close()
```

Files have a fixed size chosen when they are created, a file is limited to
what one sector of block pointers can address, and the directory holds ten
names of at most nine characters. `teachos.fstest.performance_test` writes
and reads back a large file in small chunks; on this baseline file system
it reports that the file cannot be written or read and returns False,
which is the expected result.

## What it does not do

There is no converter to a flat memory image: the NOFF converter is the
only output format for programs. The file system has no command-line tool;
it is used from Python as shown above.