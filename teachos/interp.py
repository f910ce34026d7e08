"""Interpreter for MIPS little-endian programs loaded from COFF files."""

from __future__ import annotations

import mmap
import os
import sys
from pathlib import Path
from typing import Optional, Sequence, TextIO

from .coff import MIPSELMAGIC, CoffError, CoffImage, parse_coff
from .disasm import MEMORY_OFFSET, MEMORY_SIZE, format_instruction
from .mips import (
    I_ADD, I_ADDI, I_ADDIU, I_ADDU, I_AND, I_ANDI, I_BCOND, I_BEQ, I_BGEZ,
    I_BGEZAL, I_BGTZ, I_BLEZ, I_BLTZ, I_BLTZAL, I_BNE, I_BREAK, I_COP0,
    I_COP1, I_COP2, I_COP3, I_DIV, I_DIVU, I_J, I_JAL, I_JALR, I_JR, I_LB,
    I_LBU, I_LH, I_LHU, I_LUI, I_LW, I_LWC0, I_LWC1, I_LWC2, I_LWC3, I_LWL,
    I_LWR, I_MFHI, I_MFLO, I_MTHI, I_MTLO, I_MULT, I_MULTU, I_NOR, I_OR,
    I_ORI, I_SB, I_SH, I_SLL, I_SLLV, I_SLT, I_SLTI, I_SLTIU, I_SLTU,
    I_SPECIAL, I_SRA, I_SRAV, I_SRL, I_SRLV, I_SUB, I_SUBU, I_SW, I_SWC0,
    I_SWC1, I_SWC2, I_SWC3, I_SWL, I_SWR, I_SYSCALL, I_XOR, I_XORI, immed,
    rd, rs, rt, shamt,
)

_MASK = 0xFFFFFFFF

SYS_EXIT = 1
SYS_READ = 3
SYS_WRITE = 4
SYS_OPEN = 5
SYS_CLOSE = 6
SYS_SBREAK = 17
SYS_LSEEK = 19
SYS_IOCTL = 54
SYS_FSTAT = 62
SYS_GETPAGESIZE = 64

_LOADED_SECTIONS = (".text", ".rdata", ".data", ".sdata", ".sbss", ".bss")

_COPROCESSOR_OPS = {
    I_LWC0, I_LWC1, I_LWC2, I_LWC3, I_SWC0, I_SWC1, I_SWC2, I_SWC3,
    I_COP0, I_COP1, I_COP2, I_COP3,
}

# Open flags as the guest's C library encodes them.
_GUEST_OPEN_FLAGS = {
    0x008: os.O_APPEND,
    0x200: os.O_CREAT,
    0x400: os.O_TRUNC,
    0x800: os.O_EXCL,
}


def _s32(value: int) -> int:
    return ((value + 0x80000000) & _MASK) - 0x80000000


def _u32(value: int) -> int:
    return value & _MASK


def _trunc_div(a: int, b: int) -> int:
    quotient = abs(a) // abs(b)
    return quotient if (a < 0) == (b < 0) else -quotient


class MachineError(Exception):
    """Raised when the simulated machine faults."""


class ProgramExit(Exception):
    """Raised when the simulated program stops, carrying its exit status."""

    def __init__(self, status: int) -> None:
        super().__init__(f"program exited with status {status}")
        self.status = status


class Memory:
    """Byte-addressed little-endian memory starting at ``offset``."""

    def __init__(self, size: int = MEMORY_SIZE, offset: int = MEMORY_OFFSET) -> None:
        self.size = size
        self.offset = offset
        self._bytes = bytearray(size)

    def _index(self, address: int, length: int) -> int:
        index = _u32(address) - self.offset
        if index < 0 or index + length > self.size:
            raise MachineError(f"Address 0x{_u32(address):08x} out of range")
        return index

    def _read(self, address: int, length: int) -> bytes:
        index = self._index(address, length)
        return bytes(self._bytes[index:index + length])

    def _fetch_sized(self, address: int, length: int, signed: bool) -> int:
        return int.from_bytes(self._read(address, length), "little", signed=signed)

    def _store_sized(self, address: int, length: int, value: int) -> None:
        mask = (1 << (8 * length)) - 1
        self.load(address, (value & mask).to_bytes(length, "little"))

    def load(self, address: int, data: bytes) -> None:
        """Copy ``data`` into memory at ``address``."""
        index = self._index(address, len(data))
        self._bytes[index:index + len(data)] = data

    def fetch(self, address: int) -> int:
        """Return the signed 32-bit word at ``address``."""
        return self._fetch_sized(address, 4, True)

    def store(self, address: int, value: int) -> None:
        """Store the low 32 bits of ``value`` at ``address``."""
        self._store_sized(address, 4, value)

    def read_cstring(self, address: int) -> bytes:
        """Return the NUL-terminated byte string at ``address``, without the NUL."""
        start = self._index(address, 0)
        end = self._bytes.find(b"\0", start)
        if end == -1:
            raise MachineError("Unterminated string")
        return bytes(self._bytes[start:end])


class Machine:
    """A MIPS processor executing a program held in a ``Memory``."""

    def __init__(
        self,
        memory: Memory,
        trace: bool = False,
        trap_trace: bool = False,
        reg_trace: bool = False,
        out: Optional[TextIO] = None,
    ) -> None:
        self.memory = memory
        self.trace = trace
        self.trap_trace = trap_trace
        self.reg_trace = reg_trace
        self.out = out if out is not None else sys.stdout
        self.registers = [0] * 32
        self.hi = 0
        self.lo = 0
        self.pc = memory.offset
        self.npc = memory.offset + 4
        self._open_fds: set[int] = set()

    def setup_arguments(self, argv: Sequence[str]) -> None:
        """Place argc and argv at the top of memory and point sp at them."""
        sp = self.memory.size - 1024 + self.memory.offset
        self.registers[29] = _s32(sp)
        self.memory.store(sp, len(argv))
        pointer = sp + 4
        string_at = pointer + 32
        for arg in argv:
            raw = os.fsencode(arg)
            self.memory.load(string_at, raw + b"\0")
            self.memory.store(pointer, string_at)
            pointer += 4
            string_at += len(raw) + 1

    def _unimplemented(self) -> None:
        self.out.write("Unimplemented Instruction\n")
        raise ProgramExit(2)

    def _branch(self, xpc: int, word: int) -> None:
        self.npc = _u32(xpc + 4 + (immed(word) << 2))

    def _address(self, word: int) -> int:
        return _s32(self.registers[rs(word)] + immed(word))

    def _execute_special(self, word: int, xpc: int) -> None:
        regs = self.registers
        funct = word & 0x3F
        a, b = regs[rs(word)], regs[rt(word)]
        if funct == I_SLL:
            regs[rd(word)] = _s32(b << shamt(word))
        elif funct == I_SRL:
            regs[rd(word)] = _s32(_u32(b) >> shamt(word))
        elif funct == I_SRA:
            regs[rd(word)] = b >> shamt(word)
        elif funct == I_SLLV:
            regs[rd(word)] = _s32(b << (a & 0x1F))
        elif funct == I_SRLV:
            regs[rd(word)] = _s32(_u32(b) >> (a & 0x1F))
        elif funct == I_SRAV:
            regs[rd(word)] = b >> (a & 0x1F)
        elif funct == I_JR:
            self.npc = _u32(a)
        elif funct == I_JALR:
            self.npc = _u32(a)
            regs[rd(word)] = _s32(xpc + 8)
        elif funct == I_SYSCALL:
            self.system_trap()
        elif funct == I_BREAK:
            if self.trap_trace:
                self.out.write("**breakpoint ")
            self.system_trap()
        elif funct == I_MFHI:
            regs[rd(word)] = self.hi
        elif funct == I_MTHI:
            self.hi = a
        elif funct == I_MFLO:
            regs[rd(word)] = self.lo
        elif funct == I_MTLO:
            self.lo = a
        elif funct == I_MULT:
            self._multiply(a, b, signed=True)
        elif funct == I_MULTU:
            self._multiply(a, b, signed=False)
        elif funct == I_DIV:
            if b == 0:
                raise MachineError("Integer divide by zero")
            quotient = _trunc_div(a, b)
            self.lo = _s32(quotient)
            self.hi = _s32(a - b * quotient)
        elif funct == I_DIVU:
            if b == 0:
                raise MachineError("Integer divide by zero")
            self.lo = _s32(_u32(a) // _u32(b))
            self.hi = _s32(_u32(a) % _u32(b))
        elif funct in (I_ADD, I_ADDU):
            regs[rd(word)] = _s32(a + b)
        elif funct in (I_SUB, I_SUBU):
            regs[rd(word)] = _s32(a - b)
        elif funct == I_AND:
            regs[rd(word)] = a & b
        elif funct == I_OR:
            regs[rd(word)] = a | b
        elif funct == I_XOR:
            regs[rd(word)] = a ^ b
        elif funct == I_NOR:
            regs[rd(word)] = ~(a | b)
        elif funct == I_SLT:
            regs[rd(word)] = int(a < b)
        elif funct == I_SLTU:
            regs[rd(word)] = int(_u32(a) < _u32(b))
        else:
            self._unimplemented()

    def _multiply(self, t1: int, t2: int, signed: bool) -> None:
        # The high word is built from 16-bit partial products, as the
        # reference machine does.
        negative = False
        if signed:
            if t1 < 0:
                t1 = _s32(-t1)
                negative = not negative
            if t2 < 0:
                t2 = _s32(-t2)
                negative = not negative
        lo = _s32(t1 * t2)
        t1l, t1h = t1 & 0xFFFF, (t1 >> 16) & 0xFFFF
        t2l, t2h = t2 & 0xFFFF, (t2 >> 16) & 0xFFFF
        hi = _s32(
            _s32(t1h * t2h) + (_s32(t1h * t2l) >> 16) + (_s32(t2h * t1l) >> 16)
        )
        if negative:
            lo, hi = ~lo, ~hi
            lo = _s32(lo + 1)
            if lo == 0:
                hi = _s32(hi + 1)
        self.lo, self.hi = lo, hi

    def _execute_bcond(self, word: int, xpc: int) -> None:
        regs = self.registers
        op = rt(word)
        if op in (I_BLTZAL, I_BGEZAL):
            regs[31] = _s32(xpc + 8)
        if op in (I_BLTZ, I_BLTZAL):
            if regs[rs(word)] < 0:
                self._branch(xpc, word)
        elif op in (I_BGEZ, I_BGEZAL):
            if regs[rs(word)] >= 0:
                self._branch(xpc, word)
        else:
            self._unimplemented()

    def _execute_normal(self, word: int, opcode: int, xpc: int) -> None:
        regs = self.registers
        memory = self.memory
        a = regs[rs(word)]
        target = rt(word)
        if opcode in (I_J, I_JAL):
            if opcode == I_JAL:
                regs[31] = _s32(xpc + 8)
            self.npc = (xpc & 0xF0000000) | ((word & 0x03FFFFFF) << 2)
        elif opcode == I_BEQ:
            if a == regs[target]:
                self._branch(xpc, word)
        elif opcode == I_BNE:
            if a != regs[target]:
                self._branch(xpc, word)
        elif opcode == I_BLEZ:
            if a <= 0:
                self._branch(xpc, word)
        elif opcode == I_BGTZ:
            if a > 0:
                self._branch(xpc, word)
        elif opcode in (I_ADDI, I_ADDIU):
            regs[target] = _s32(a + immed(word))
        elif opcode == I_SLTI:
            regs[target] = int(a < immed(word))
        elif opcode == I_SLTIU:
            regs[target] = int(_u32(a) < _u32(immed(word)))
        elif opcode == I_ANDI:
            regs[target] = _s32(a & immed(word))
        elif opcode == I_ORI:
            regs[target] = _s32(a | immed(word))
        elif opcode == I_XORI:
            regs[target] = _s32(a ^ immed(word))
        elif opcode == I_LUI:
            regs[target] = _s32(word << 16)
        elif opcode == I_LB:
            regs[target] = memory._fetch_sized(self._address(word), 1, True)
        elif opcode == I_LH:
            regs[target] = memory._fetch_sized(self._address(word), 2, True)
        elif opcode == I_LW:
            regs[target] = memory.fetch(self._address(word))
        elif opcode == I_LBU:
            regs[target] = memory._fetch_sized(self._address(word), 1, False)
        elif opcode == I_LHU:
            regs[target] = memory._fetch_sized(self._address(word), 2, False)
        elif opcode == I_LWL:
            address = self._address(word)
            loaded = _u32(memory.fetch(address & ~3)) << (8 * (address & 3))
            regs[target] = _s32(_u32(regs[target]) | (loaded & _MASK))
        elif opcode == I_LWR:
            address = self._address(word)
            value = regs[target] & (-1 << (8 * (address & 3)))
            if address & 3 == 0:
                value = 0
            value |= memory.fetch(address & ~3) >> (8 * ((-address) & 3))
            regs[target] = _s32(value)
        elif opcode == I_SB:
            memory._store_sized(self._address(word), 1, regs[target])
        elif opcode == I_SH:
            memory._store_sized(self._address(word), 2, regs[target])
        elif opcode == I_SW:
            memory.store(self._address(word), regs[target])
        elif opcode in (I_SWL, I_SWR):
            name = "SWL" if opcode == I_SWL else "SWR"
            sys.stderr.write(f"sorry, no {name} yet.\n")
            self._unimplemented()
        elif opcode in _COPROCESSOR_OPS:
            sys.stderr.write("Sorry, no coprocessors.\n")
            raise ProgramExit(2)
        else:
            self._unimplemented()

    def step(self) -> None:
        """Execute the instruction at the program counter."""
        xpc = self.pc
        self.pc = self.npc
        self.npc = _u32(self.pc + 4)
        word = _u32(self.memory.fetch(xpc))
        self.registers[0] = 0
        if word != 0:
            opcode = (word >> 26) & 0x3F
            if opcode == I_SPECIAL:
                self._execute_special(word, xpc)
            elif opcode == I_BCOND:
                self._execute_bcond(word, xpc)
            else:
                self._execute_normal(word, opcode, xpc)
        if self.trace:
            self.out.write(format_instruction(word, xpc) + "\n")
            if self.reg_trace:
                self.dump_registers()

    def run(self, start_pc: int, argv: Sequence[str]) -> int:
        """Run from ``start_pc`` with ``argv`` until the program stops; return its status."""
        self.setup_arguments(argv)
        self.pc = _u32(start_pc)
        self.npc = _u32(start_pc + 4)
        try:
            while True:
                self.step()
        except ProgramExit as stop:
            return stop.status
        finally:
            for fd in self._open_fds:
                try:
                    os.close(fd)
                except OSError:
                    pass
            self._open_fds.clear()

    def _read(self, fd: int, address: int, count: int) -> int:
        if count < 0:
            return -1
        try:
            if fd == 0:
                data = os.read(sys.stdin.fileno(), count)
            elif fd in self._open_fds:
                data = os.read(fd, count)
            else:
                return -1
        except (OSError, ValueError, AttributeError):
            return -1
        self.memory.load(address, data)
        return len(data)

    def _write(self, fd: int, address: int, count: int) -> int:
        if count < 0:
            return -1
        data = self.memory._read(address, count)
        if fd == 1:
            self.out.write(data.decode("latin-1"))
            return count
        if fd == 2:
            sys.stderr.write(data.decode("latin-1"))
            return count
        if fd not in self._open_fds:
            return -1
        try:
            return os.write(fd, data)
        except OSError:
            return -1

    def _open(self, address: int, guest_flags: int, mode: int) -> int:
        path = self.memory.read_cstring(address)
        flags = (guest_flags & 3) | getattr(os, "O_BINARY", 0)
        for guest_bit, host_bit in _GUEST_OPEN_FLAGS.items():
            if guest_flags & guest_bit:
                flags |= host_bit
        try:
            fd = os.open(path, flags, mode & 0o7777)
        except OSError:
            return -1
        self._open_fds.add(fd)
        return fd

    def _lseek(self, fd: int, offset: int, whence: int) -> int:
        if fd not in self._open_fds:
            return -1
        try:
            return os.lseek(fd, offset, whence)
        except OSError:
            return -1

    def _fstat(self, fd: int) -> int:
        if fd not in self._open_fds and fd not in (0, 1, 2):
            return -1
        try:
            os.fstat(fd)
        except OSError:
            return -1
        return 0

    def system_trap(self) -> None:
        """Carry out the system call numbered in r2 with arguments in r4..r6."""
        regs = self.registers
        number = regs[2]
        o0, o1, o2 = regs[4], regs[5], regs[6]
        if self.trap_trace:
            self.out.write(f"**System call {number}\n")
            self.dump_registers()

        if number == SYS_EXIT:
            self.out.flush()
            raise ProgramExit(0)
        if number == SYS_READ:
            result = self._read(o0, o1, o2)
        elif number == SYS_WRITE:
            result = self._write(o0, o1, o2)
        elif number == SYS_OPEN:
            result = self._open(o0, o1, o2)
        elif number == SYS_CLOSE:
            result = 0
        elif number == SYS_SBREAK:
            result = (_trunc_div(o0, 8192) + 1) * 8192
        elif number == SYS_LSEEK:
            result = self._lseek(o0, o1, o2)
        elif number == SYS_IOCTL:
            result = 0
        elif number == SYS_FSTAT:
            result = self._fstat(o1)
        elif number == SYS_GETPAGESIZE:
            result = mmap.PAGESIZE
        else:
            self.out.write(f"Unknown System call {number}\n")
            if not self.trap_trace:
                self.dump_registers()
            raise ProgramExit(2)
        regs[1] = _s32(result)

        if self.trap_trace:
            self.out.write("**Afterwards:\n")
            self.dump_registers()

    def dump_registers(self) -> None:
        """Write all 32 registers, eight to a line, to the output."""
        for row, label in enumerate((" 0:", " 8:", "16:", "24:")):
            values = self.registers[row * 8:row * 8 + 8]
            self.out.write(label + "".join(f" {_u32(v):08x}" for v in values) + "\n")


def load_program(image: CoffImage, memory: Memory) -> list[str]:
    """Copy the program's sections into memory; return notes on missing sections."""
    notes = []
    for name in _LOADED_SECTIONS:
        section = image.find_section(name)
        if section is None:
            notes.append(f"{name[1:]} section header missing")
            continue
        if section.scnptr == 0:
            continue
        if section.vaddr + section.size - memory.offset >= memory.size:
            raise MachineError("MEMSIZE too small. Fix and recompile.")
        try:
            contents = image.section_data(section)
        except CoffError as error:
            raise MachineError(str(error)) from error
        memory.load(section.vaddr, contents)
    return notes


def ilog2(value: int) -> int:
    """Number of bits needed to hold ``value`` taken as unsigned 32-bit."""
    return _u32(value).bit_length()


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Load a COFF program (default ``a.out``) and run it."""
    args = list(sys.argv[1:] if argv is None else argv)
    trace = trap_trace = reg_trace = False
    while args and args[0].startswith("-"):
        option = args.pop(0)
        for flag in option[1:]:
            if flag == "t":
                trace = True
            elif flag == "T":
                trap_trace = True
            elif flag == "r":
                reg_trace = True
            elif flag == "m":
                # Cache geometry: rows, associativity, line size, policy.
                if len(args) < 4:
                    print("interp: -m needs four values", file=sys.stderr)
                    return 1
                del args[:4]

    filename = args[0] if args else "a.out"
    program_args = [filename, *args[1:]]
    try:
        data = Path(filename).read_bytes()
    except OSError:
        print(f"interp: Could not open '{filename}'", file=sys.stderr)
        return 0
    try:
        image = parse_coff(data)
    except CoffError:
        print(f"interp: Load read error on {filename}", file=sys.stderr)
        return 0
    if image.file_header.magic != MIPSELMAGIC:
        print("big-endian object file (little-endian interp)", file=sys.stderr)
        return 0

    memory = Memory()
    try:
        for note in load_program(image, memory):
            print(note)
    except MachineError as error:
        print(error)
        return 1

    machine = Machine(memory, trace, trap_trace, reg_trace, sys.stdout)
    try:
        return machine.run(memory.offset, program_args)
    except MachineError as error:
        print(error, file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())