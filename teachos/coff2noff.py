"""Convert a MIPS COFF executable into a NOFF executable."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Callable, Iterator, Optional, Sequence

from .coff import (
    MIPSELMAGIC,
    OMAGIC,
    CoffError,
    CoffImage,
    NoffHeader,
    SectionHeader,
    Segment,
    parse_coff,
)

Log = Callable[[str], None]


class ConversionError(Exception):
    """Raised when an object file cannot be converted."""


def _open_image(data: bytes) -> CoffImage:
    """Parse ``data`` and check that it is an unshared MIPSEL COFF file."""
    try:
        image = parse_coff(data)
    except CoffError as error:
        raise ConversionError(str(error)) from error
    if image.file_header.magic != MIPSELMAGIC:
        raise ConversionError("File is not a MIPSEL COFF file")
    if image.aout_header.magic != OMAGIC:
        raise ConversionError("File is not a OMAGIC file")
    return image


def _contents(image: CoffImage, section: SectionHeader) -> bytes:
    try:
        return image.section_data(section)
    except CoffError as error:
        raise ConversionError(str(error)) from error


def _hex_byte(byte: int) -> str:
    # Bytes are shown as signed chars promoted to int.
    value = byte - 256 if byte >= 0x80 else byte
    return f"{value & 0xFFFFFFFF:02x}"


def hexdump(data: bytes) -> Iterator[str]:
    """Yield lines of eight bytes each: hex values followed by the characters."""
    for start in range(0, len(data), 8):
        chunk = data[start:start + 8]
        hex_part = "".join(f"{_hex_byte(b)} " for b in chunk)
        text_part = "".join("." if b <= 31 else chr(b) for b in chunk)
        yield f"\t\t{hex_part}{text_part}"


def convert(data: bytes, log: Optional[Log] = None) -> bytes:
    """Return the NOFF file built from the COFF file ``data``.

    Progress lines go to ``log`` if one is given.
    """

    def emit(line: str) -> None:
        if log is not None:
            log(line)

    image = _open_image(data)
    sections = image.sections
    emit(f"numsections {len(sections)} ")

    header = NoffHeader()
    body = bytearray()
    in_file = NoffHeader.SIZE
    emit(f"Loading {len(sections)} sections:")
    for section in sections:
        name = section.name[:8]
        emit(
            f'\t"{name}", filepos 0x{section.scnptr:x}, mempos 0x{section.paddr:x}, '
            f"size 0x{section.size:x}, flags 0x{section.flags:x}"
        )
        if section.size == 0:
            continue
        if name == ".text":
            header.code = Segment(section.paddr, in_file, section.size)
            body += _contents(image, section)
            in_file += section.size
        elif name in (".data", ".rdata"):
            if header.init_data.size != 0:
                raise ConversionError("Can't handle both data and rdata")
            header.init_data = Segment(section.paddr, in_file, section.size)
            body += _contents(image, section)
            in_file += section.size
        elif name in (".bss", ".sbss"):
            uninit = header.uninit_data
            if uninit.size != 0:
                if section.paddr == uninit.virtual_addr + uninit.size:
                    raise ConversionError("Can't handle both bss and sbss")
                uninit.size += section.size
            else:
                header.uninit_data = Segment(section.paddr, 0, section.size)
        else:
            contents = _contents(image, section)
            emit(f"\tFound {name} section with contents:")
            for line in hexdump(contents):
                emit(line)
            raise ConversionError(f"Unknown segment type: {name}")
    return header.pack() + bytes(body)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Convert the COFF file named first into the NOFF file named second."""
    args = list(sys.argv[1:] if argv is None else argv)
    if len(args) < 2:
        print("Usage: coff2noff <coffFileName> <noffFileName>", file=sys.stderr)
        return 1
    source, target = Path(args[0]), Path(args[1])
    try:
        data = source.read_bytes()
    except OSError as error:
        print(f"{source}: {error.strerror}", file=sys.stderr)
        return 1
    try:
        result = convert(data, log=print)
    except ConversionError as error:
        print(error, file=sys.stderr)
        target.unlink(missing_ok=True)
        return 1
    try:
        target.write_bytes(result)
    except OSError as error:
        print(f"{target}: {error.strerror}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())