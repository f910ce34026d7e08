import struct

import pytest

from teachos.coff import MIPSELMAGIC, OMAGIC, CoffError, parse_coff
from teachos.disasm import MEMORY_OFFSET, disassemble, format_instruction, main
from teachos.mips import (
    I_ADD,
    I_ADDIU,
    I_BCOND,
    I_BEQ,
    I_JAL,
    I_JR,
    I_LUI,
    I_LW,
    I_SPECIAL,
    I_SYSCALL,
)


def r_type(rs_, rt_, rd_, funct, sh=0):
    return (I_SPECIAL << 26) | (rs_ << 21) | (rt_ << 16) | (rd_ << 11) | (sh << 6) | funct


def i_type(opcode, rs_, rt_, imm):
    return (opcode << 26) | (rs_ << 21) | (rt_ << 16) | (imm & 0xFFFF)


def build_coff(sections, magic=MIPSELMAGIC):
    def section(name, vaddr, size, scnptr):
        return struct.pack("<8s6IHHI", name, vaddr, vaddr, size, scnptr, 0, 0, 0, 0, 0)

    header = struct.pack("<HHiiiHH", magic, len(sections), 0, 0, 0, 0, 0)
    header += struct.pack("<hh13i", OMAGIC, 0, *([0] * 13))
    offset = len(header) + len(section(b"", 0, 0, 0)) * len(sections)
    headers = b""
    body = b""
    for name, vaddr, payload in sections:
        headers += section(name, vaddr, len(payload), offset + len(body))
        body += payload
    return header + headers + body


PROGRAM = [0, i_type(I_ADDIU, 29, 29, 0x10), r_type(31, 0, 0, I_JR)]
TEXT = b"".join(struct.pack("<I", w) for w in PROGRAM)


def test_nop_short():
    assert format_instruction(0, 0, False) == "\tnop"


def test_long_prefix():
    word = i_type(I_ADDIU, 29, 29, 0x10)
    line = format_instruction(word, 0x400, True)
    assert line == f"{0x400:08x}: {word:08x}  \taddiu\tsp,sp,0x10"


def test_negative_immediate():
    line = format_instruction(i_type(I_ADDIU, 29, 29, -8), 0, False)
    assert line == "\taddiu\tsp,sp,0xfffffff8"


def test_special_forms():
    assert format_instruction(r_type(1, 2, 3, I_ADD), 0, False) == "\tadd\tr3,r1,r2"
    assert format_instruction(r_type(31, 0, 0, I_JR), 0, False) == "\tjr\tr31"
    assert format_instruction(r_type(0, 0, 0, I_SYSCALL), 0, False) == "\tsyscall\t"


def test_memory_and_lui():
    assert format_instruction(i_type(I_LW, 29, 2, 4), 0, False) == "\tlw\tr2,0x4(sp)"
    assert format_instruction(i_type(I_LUI, 0, 1, 0x1000), 0, False) == "\tlui\tr1,0x1000"


def test_jump_and_branch_targets():
    assert format_instruction((I_JAL << 26) | 0x100, 0, False) == "\tjal\t00000400"
    assert format_instruction(i_type(I_BEQ, 1, 2, 0), 0x100, False) == "\tbeq\tr2,r1,00000104"


def test_bcond_names():
    assert format_instruction(i_type(I_BCOND, 4, 0, 0), 0, False).startswith("\tbltz\tr4,")
    assert format_instruction(i_type(I_BCOND, 4, 5, 0), 0, False).startswith("\tBCOND\tr4,")


def test_disassemble_listing():
    image = parse_coff(build_coff([(b".text", MEMORY_OFFSET, TEXT), (b".data", MEMORY_OFFSET + 0x40, b"abcd")]))
    lines = list(disassemble(image))
    assert lines[:4] == [
        "rdata section header missing",
        "sdata section header missing",
        "sbss section header missing",
        "bss section header missing",
    ]
    assert lines[4:] == [format_instruction(w, MEMORY_OFFSET + 4 * i) for i, w in enumerate(PROGRAM)]
    assert lines[4].endswith("\tnop")


def test_disassemble_rejects_address_below_memory():
    image = parse_coff(build_coff([(b".text", 0, TEXT)]))
    with pytest.raises(CoffError):
        list(disassemble(image))


def test_main_prints_listing(tmp_path, capsys):
    path = tmp_path / "prog.coff"
    path.write_bytes(build_coff([(b".text", MEMORY_OFFSET, TEXT)]))
    assert main([str(path)]) == 0
    out = capsys.readouterr().out.splitlines()
    assert out[-1] == format_instruction(PROGRAM[-1], MEMORY_OFFSET + 8)
    assert "data section header missing" in out


def test_main_missing_file(tmp_path, capsys):
    assert main([str(tmp_path / "absent")]) == 0
    assert "Could not open" in capsys.readouterr().err


def test_main_wrong_magic(tmp_path, capsys):
    path = tmp_path / "big.coff"
    path.write_bytes(build_coff([(b".text", MEMORY_OFFSET, TEXT)], magic=0x6201))
    assert main(["-x", str(path)]) == 0
    assert "big-endian object file" in capsys.readouterr().err