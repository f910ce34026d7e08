"""Disassembler for MIPS little-endian COFF programs."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Iterator, Optional, Sequence

from .coff import MIPSELMAGIC, CoffError, CoffImage, parse_coff
from .mips import (
    I_ADD, I_ADDI, I_ADDIU, I_ADDU, I_AND, I_ANDI, I_BCOND, I_BEQ, I_BGEZ,
    I_BGEZAL, I_BLTZ, I_BLTZAL, I_BNE, I_DIV, I_DIVU, I_J, I_JAL, I_JALR,
    I_JR, I_LB, I_LBU, I_LH, I_LHU, I_LUI, I_LW, I_LWC0, I_LWC1, I_LWC2,
    I_LWC3, I_LWL, I_LWR, I_MFHI, I_MFLO, I_MTHI, I_MTLO, I_MULT, I_MULTU,
    I_NOP, I_NOR, I_OR, I_ORI, I_SB, I_SH, I_SLL, I_SLLV, I_SLT, I_SLTI,
    I_SLTIU, I_SLTU, I_SPECIAL, I_SRA, I_SRAV, I_SRL, I_SRLV, I_SUB, I_SUBU,
    I_SW, I_SWC0, I_SWC1, I_SWC2, I_SWC3, I_SWL, I_SWR, I_XOR, I_XORI,
    NORMAL_OPS, SPECIAL_OPS, immed, off16, off26, rd, rs, rt, shamt, top4,
)

MEMORY_SIZE = 1 << 24
MEMORY_OFFSET = 0x10000000

REGISTER_NAMES = (
    "0", "r1", "r2", "r3", "r4", "r5", "r6", "r7", "r8", "r9",
    "r10", "r11", "r12", "r13", "r14", "r15", "r16", "r17", "r18", "r19",
    "r20", "r21", "r22", "r23", "r24", "r25", "r26", "r27", "gp", "sp",
    "r30", "r31",
)

_MASK = 0xFFFFFFFF

_BCOND_NAMES = {I_BLTZ: "bltz", I_BGEZ: "bgez", I_BLTZAL: "bltzal", I_BGEZAL: "bgezal"}

_SHIFT_IMMEDIATE = {I_SLL, I_SRL, I_SRA}
_SHIFT_VARIABLE = {I_SLLV, I_SRLV, I_SRAV}
_RS_ONLY = {I_JR, I_JALR, I_MFLO, I_MTLO}
_RD_ONLY = {I_MFHI, I_MTHI}
_RS_RT = {I_MULT, I_MULTU, I_DIV, I_DIVU}
_THREE_REGISTER = {I_ADD, I_ADDU, I_SUB, I_SUBU, I_AND, I_OR, I_XOR, I_NOR, I_SLT, I_SLTU}

_IMMEDIATE_OPS = {I_ADDI, I_ADDIU, I_SLTI, I_SLTIU, I_ANDI, I_ORI, I_XORI}
_MEMORY_OPS = {
    I_LB, I_LH, I_LWL, I_LW, I_LBU, I_LHU, I_LWR, I_SB, I_SH, I_SWL, I_SW,
    I_SWR, I_LWC0, I_LWC1, I_LWC2, I_LWC3, I_SWC0, I_SWC1, I_SWC2, I_SWC3,
}

_LOADED_SECTIONS = (".text", ".rdata", ".data", ".sdata", ".sbss", ".bss")


def _reg(number: int) -> str:
    return REGISTER_NAMES[number]


def _hex(value: int) -> str:
    return f"0x{value & _MASK:x}"


def _address(value: int) -> str:
    return f"{value & _MASK:08x}"


def _format_special(word: int) -> str:
    funct = word & 0x3F
    if funct in _SHIFT_IMMEDIATE:
        operands = f"{_reg(rd(word))},{_reg(rt(word))},0x{shamt(word):x}"
    elif funct in _SHIFT_VARIABLE:
        operands = f"{_reg(rd(word))},{_reg(rt(word))},{_reg(rs(word))}"
    elif funct in _RS_ONLY:
        operands = _reg(rs(word))
    elif funct in _RD_ONLY:
        operands = _reg(rd(word))
    elif funct in _RS_RT:
        operands = f"{_reg(rs(word))},{_reg(rt(word))}"
    elif funct in _THREE_REGISTER:
        operands = f"{_reg(rd(word))},{_reg(rs(word))},{_reg(rt(word))}"
    else:
        operands = ""
    return f"{SPECIAL_OPS[funct]}\t{operands}"


def _format_bcond(word: int, pc: int) -> str:
    name = _BCOND_NAMES.get(rt(word), "BCOND")
    return f"{name}\t{_reg(rs(word))},{_address(off16(word) + pc + 4)}"


def _format_normal(word: int, opcode: int, pc: int) -> str:
    if opcode in (I_J, I_JAL):
        operands = _address(top4(pc) | off26(word))
    elif opcode in (I_BEQ, I_BNE):
        operands = f"{_reg(rt(word))},{_reg(rs(word))},{_address(off16(word) + pc + 4)}"
    elif opcode in _IMMEDIATE_OPS:
        operands = f"{_reg(rt(word))},{_reg(rs(word))},{_hex(immed(word))}"
    elif opcode == I_LUI:
        operands = f"{_reg(rt(word))},{_hex(immed(word))}"
    elif opcode in _MEMORY_OPS:
        operands = f"{_reg(rt(word))},{_hex(immed(word))}({_reg(rs(word))})"
    else:
        operands = ""
    return f"{NORMAL_OPS[opcode]}\t{operands}"


def format_instruction(instruction: int, pc: int, long_format: bool = True) -> str:
    """Render one instruction as assembly text, optionally prefixed by pc and word."""
    word = instruction & _MASK
    prefix = f"{pc & _MASK:08x}: {word:08x}  " if long_format else ""
    opcode = word >> 26
    if word == I_NOP:
        body = "nop"
    elif opcode == I_SPECIAL:
        body = _format_special(word)
    elif opcode == I_BCOND:
        body = _format_bcond(word, pc)
    else:
        body = _format_normal(word, opcode, pc)
    return f"{prefix}\t{body}"


def _load(memory: bytearray, address: int, contents: bytes) -> None:
    start = address - MEMORY_OFFSET
    end = start + len(contents)
    if start < 0 or end > MEMORY_SIZE:
        raise CoffError("MEMSIZE too small. Fix and recompile.")
    if len(memory) < end:
        memory.extend(bytes(end - len(memory)))
    memory[start:end] = contents


def disassemble(image: CoffImage) -> Iterator[str]:
    """Load the program's sections and yield the listing of its text segment.

    Notes about missing sections are yielded first, in load order.
    """
    memory = bytearray()
    text_size = 0
    for name in _LOADED_SECTIONS:
        section = image.find_section(name)
        if section is None:
            yield f"{name[1:]} section header missing"
            continue
        if name == ".text":
            text_size = section.size
        if section.scnptr != 0:
            _load(memory, section.vaddr, image.section_data(section))
    for offset in range(0, text_size, 4):
        raw = bytes(memory[offset:offset + 4]).ljust(4, b"\0")
        yield format_instruction(int.from_bytes(raw, "little"), MEMORY_OFFSET + offset)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Disassemble a COFF file (default ``a.out``) to standard output."""
    args = list(sys.argv[1:] if argv is None else argv)
    while args and args[0].startswith("-"):
        args.pop(0)
    filename = args[0] if args else "a.out"
    try:
        data = Path(filename).read_bytes()
    except OSError:
        print(f"disasm: Could not open '{filename}'", file=sys.stderr)
        return 0
    try:
        image = parse_coff(data)
    except CoffError:
        print(f"disasm: Load read error on {filename}", file=sys.stderr)
        return 0
    if image.file_header.magic != MIPSELMAGIC:
        print("big-endian object file (little-endian interp)", file=sys.stderr)
        return 0
    try:
        for line in disassemble(image):
            print(line)
    except CoffError as error:
        print(error)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())