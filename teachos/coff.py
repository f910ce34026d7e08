"""MIPS little-endian COFF object files and the NOFF executable header."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import ClassVar, Optional

MIPSELMAGIC = 0x0162
OMAGIC = 0o407
SOMAGIC = 0x0701
NOFFMAGIC = 0xBADFAD

_FILE_HEADER = struct.Struct("<HHiiiHH")
_AOUT_HEADER = struct.Struct("<hh13i")
_SECTION_HEADER = struct.Struct("<8s6IHHI")
_NOFF_HEADER = struct.Struct("<10I")


class CoffError(Exception):
    """Raised when an object file is malformed or truncated."""


def _unpack(layout: struct.Struct, data: bytes, offset: int) -> tuple:
    if len(data) < offset + layout.size:
        raise CoffError("File is too short")
    return layout.unpack_from(data, offset)


@dataclass(frozen=True)
class CoffFileHeader:
    """The COFF file header."""

    magic: int
    nscns: int
    timdat: int
    symptr: int
    nsyms: int
    opthdr: int
    flags: int

    SIZE: ClassVar[int] = _FILE_HEADER.size

    @classmethod
    def _from_bytes(cls, data: bytes, offset: int) -> "CoffFileHeader":
        return cls(*_unpack(_FILE_HEADER, data, offset))


@dataclass(frozen=True)
class AoutHeader:
    """The a.out (system) header that follows the file header."""

    magic: int
    vstamp: int
    tsize: int
    dsize: int
    bsize: int
    entry: int
    text_start: int
    data_start: int
    bss_start: int
    gprmask: int
    cprmask: tuple[int, int, int, int]
    gp_value: int

    SIZE: ClassVar[int] = _AOUT_HEADER.size

    @classmethod
    def _from_bytes(cls, data: bytes, offset: int) -> "AoutHeader":
        values = _unpack(_AOUT_HEADER, data, offset)
        return cls(*values[:10], cprmask=tuple(values[10:14]), gp_value=values[14])


@dataclass(frozen=True)
class SectionHeader:
    """One COFF section header."""

    name: str
    paddr: int
    vaddr: int
    size: int
    scnptr: int
    relptr: int
    lnnoptr: int
    nreloc: int
    nlnno: int
    flags: int

    SIZE: ClassVar[int] = _SECTION_HEADER.size

    @classmethod
    def _from_bytes(cls, data: bytes, offset: int) -> "SectionHeader":
        raw_name, *rest = _unpack(_SECTION_HEADER, data, offset)
        name = raw_name.split(b"\0", 1)[0].decode("latin-1")
        return cls(name, *rest)


@dataclass(frozen=True)
class CoffImage:
    """A parsed COFF file together with its raw bytes."""

    file_header: CoffFileHeader
    aout_header: AoutHeader
    sections: tuple[SectionHeader, ...]
    data: bytes = field(repr=False)

    def section_data(self, section: SectionHeader) -> bytes:
        """Return the raw contents of a section as stored in the file."""
        end = section.scnptr + section.size
        if end > len(self.data):
            raise CoffError("File is too short")
        return self.data[section.scnptr:end]

    def find_section(self, name: str) -> Optional[SectionHeader]:
        """Return the first section called ``name``, or None."""
        return next((s for s in self.sections if s.name == name), None)


def parse_coff(data: bytes) -> CoffImage:
    """Parse the file, a.out and section headers of a COFF file."""
    data = bytes(data)
    file_header = CoffFileHeader._from_bytes(data, 0)
    offset = CoffFileHeader.SIZE
    aout_header = AoutHeader._from_bytes(data, offset)
    offset += AoutHeader.SIZE
    sections = []
    for _ in range(file_header.nscns):
        sections.append(SectionHeader._from_bytes(data, offset))
        offset += SectionHeader.SIZE
    return CoffImage(file_header, aout_header, tuple(sections), data)


@dataclass
class Segment:
    """Where a segment lives in the address space and in the NOFF file."""

    virtual_addr: int = 0
    in_file_addr: int = 0
    size: int = 0


@dataclass
class NoffHeader:
    """Header of a NOFF executable: code, initialised and uninitialised data."""

    noff_magic: int = NOFFMAGIC
    code: Segment = field(default_factory=Segment)
    init_data: Segment = field(default_factory=Segment)
    uninit_data: Segment = field(default_factory=Segment)

    SIZE: ClassVar[int] = _NOFF_HEADER.size

    def pack(self) -> bytes:
        """Encode the header as little-endian 32-bit words."""
        values = [self.noff_magic]
        for segment in (self.code, self.init_data, self.uninit_data):
            values += [segment.virtual_addr, segment.in_file_addr, segment.size]
        return _NOFF_HEADER.pack(*(v & 0xFFFFFFFF for v in values))

    @classmethod
    def unpack(cls, data: bytes) -> "NoffHeader":
        """Decode a header from the start of ``data``."""
        if len(data) < _NOFF_HEADER.size:
            raise CoffError("NOFF header is too short")
        magic, *rest = _NOFF_HEADER.unpack_from(data, 0)
        return cls(
            magic,
            Segment(*rest[0:3]),
            Segment(*rest[3:6]),
            Segment(*rest[6:9]),
        )