"""MIPS instruction fields, opcode numbers and mnemonic tables."""

# normal opcodes
I_SPECIAL = 0o00
I_BCOND = 0o01
I_J = 0o02
I_JAL = 0o03
I_BEQ = 0o04
I_BNE = 0o05
I_BLEZ = 0o06
I_BGTZ = 0o07
I_ADDI = 0o10
I_ADDIU = 0o11
I_SLTI = 0o12
I_SLTIU = 0o13
I_ANDI = 0o14
I_ORI = 0o15
I_XORI = 0o16
I_LUI = 0o17
I_COP0 = 0o20
I_COP1 = 0o21
I_COP2 = 0o22
I_COP3 = 0o23
I_LB = 0o40
I_LH = 0o41
I_LWL = 0o42
I_LW = 0o43
I_LBU = 0o44
I_LHU = 0o45
I_LWR = 0o46
I_SB = 0o50
I_SH = 0o51
I_SWL = 0o52
I_SW = 0o53
I_SWR = 0o56
I_LWC0 = 0o60
I_LWC1 = 0o61
I_LWC2 = 0o62
I_LWC3 = 0o63
I_SWC0 = 0o70
I_SWC1 = 0o71
I_SWC2 = 0o72
I_SWC3 = 0o73

# special opcodes (function field)
I_SLL = 0o00
I_SRL = 0o02
I_SRA = 0o03
I_SLLV = 0o04
I_SRLV = 0o06
I_SRAV = 0o07
I_JR = 0o10
I_JALR = 0o11
I_SYSCALL = 0o14
I_BREAK = 0o15
I_MFHI = 0o20
I_MTHI = 0o21
I_MFLO = 0o22
I_MTLO = 0o23
I_MULT = 0o30
I_MULTU = 0o31
I_DIV = 0o32
I_DIVU = 0o33
I_ADD = 0o40
I_ADDU = 0o41
I_SUB = 0o42
I_SUBU = 0o43
I_AND = 0o44
I_OR = 0o45
I_XOR = 0o46
I_NOR = 0o47
I_SLT = 0o52
I_SLTU = 0o53

# bcond opcodes (rt field)
I_BLTZ = 0o00
I_BGEZ = 0o01
I_BLTZAL = 0o20
I_BGEZAL = 0o21

# whole instructions
I_NOP = 0

NORMAL_OPS = (
    "special", "bcond", "j", "jal", "beq", "bne", "blez", "bgtz",
    "addi", "addiu", "slti", "sltiu", "andi", "ori", "xori", "lui",
    "cop0", "cop1", "cop2", "cop3", "024", "025", "026", "027",
    "030", "031", "032", "033", "034", "035", "036", "037",
    "lb", "lh", "lwl", "lw", "lbu", "lhu", "lwr", "047",
    "sb", "sh", "swl", "sw", "054", "055", "swr", "057",
    "lwc0", "lwc1", "lwc2", "lwc3", "064", "065", "066", "067",
    "swc0", "swc1", "swc2", "swc3", "074", "075", "076", "077",
)

SPECIAL_OPS = (
    "sll", "001", "srl", "sra", "sllv", "005", "srlv", "srav",
    "jr", "jalr", "012", "013", "syscall", "break", "016", "017",
    "mfhi", "mthi", "mflo", "mtlo", "024", "025", "026", "027",
    "mult", "multu", "div", "divu", "034", "035", "036", "037",
    "add", "addu", "sub", "subu", "and", "or", "xor", "nor",
    "050", "051", "slt", "sltu", "054", "055", "056", "057",
    "060", "061", "062", "063", "064", "065", "066", "067",
    "070", "071", "072", "073", "074", "075", "076", "077",
)


def rd(instruction: int) -> int:
    """Destination register field."""
    return (instruction >> 11) & 0x1F


def rt(instruction: int) -> int:
    """Target register field."""
    return (instruction >> 16) & 0x1F


def rs(instruction: int) -> int:
    """Source register field."""
    return (instruction >> 21) & 0x1F


def shamt(instruction: int) -> int:
    """Shift amount field."""
    return (instruction >> 6) & 0x1F


def immed(instruction: int) -> int:
    """The 16-bit immediate, sign-extended."""
    if instruction & 0x8000:
        return instruction | -0x8000
    return instruction & 0x7FFF


def off26(instruction: int) -> int:
    """The 26-bit jump target, as a byte offset."""
    return (instruction & ((1 << 26) - 1)) << 2


def top4(value: int) -> int:
    """The top four bits of a 32-bit address."""
    return value & 0xF0000000


def off16(instruction: int) -> int:
    """The sign-extended 16-bit branch offset, in bytes."""
    return immed(instruction) << 2


def extend(value: int, hibitmask: int) -> int:
    """Sign-extend ``value`` whose sign bit is ``hibitmask``."""
    if value & hibitmask:
        return value | -hibitmask
    return value