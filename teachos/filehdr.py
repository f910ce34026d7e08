"""Free-sector bitmap and the on-disk file header (i-node)."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import Optional, Protocol

from .disk import SECTOR_SIZE

_INT_SIZE = 4
NUM_DIRECT = (SECTOR_SIZE - 2 * _INT_SIZE) // _INT_SIZE
MAX_FILE_SIZE = NUM_DIRECT * SECTOR_SIZE

_HEADER = struct.Struct(f"<2i{NUM_DIRECT}i")


class _File(Protocol):
    def read_at(self, num_bytes: int, position: int) -> bytes: ...

    def write_at(self, data: bytes, position: int) -> int: ...


class _SectorDevice(Protocol):
    def read_sector(self, sector_number: int) -> bytes: ...

    def write_sector(self, sector_number: int, data: bytes) -> None: ...


def _div_round_up(n: int, s: int) -> int:
    return -(-n // s)


class FreeMap:
    """A bitmap of disk sectors; a set bit means the sector is in use."""

    def __init__(self, num_bits: int) -> None:
        if num_bits < 0:
            raise ValueError("number of bits must not be negative")
        self.num_bits = num_bits
        self._bits = bytearray(_div_round_up(num_bits, 8))

    def __len__(self) -> int:
        return self.num_bits

    def __str__(self) -> str:
        used = ", ".join(str(i) for i in range(self.num_bits) if self.test(i))
        return f"Bitmap set:\n{used}\n"

    def _check(self, which: int) -> None:
        if not 0 <= which < self.num_bits:
            raise IndexError(f"bit {which} out of range")

    def mark(self, which: int) -> None:
        """Set bit ``which``."""
        self._check(which)
        self._bits[which // 8] |= 1 << (which % 8)

    def clear(self, which: int) -> None:
        """Clear bit ``which``."""
        self._check(which)
        self._bits[which // 8] &= ~(1 << (which % 8)) & 0xFF

    def test(self, which: int) -> bool:
        """Whether bit ``which`` is set."""
        self._check(which)
        return bool(self._bits[which // 8] & (1 << (which % 8)))

    def find(self) -> Optional[int]:
        """Mark and return the lowest clear bit, or None if all are set."""
        for which in range(self.num_bits):
            if not self.test(which):
                self.mark(which)
                return which
        return None

    def num_clear(self) -> int:
        """Number of clear bits."""
        return sum(1 for which in range(self.num_bits) if not self.test(which))

    def fetch_from(self, file: _File) -> None:
        """Load the bitmap from the start of ``file``."""
        data = file.read_at(len(self._bits), 0)
        self._bits = bytearray(bytes(data).ljust(len(self._bits), b"\0"))
        spare = len(self._bits) * 8 - self.num_bits
        if spare:
            self._bits[-1] &= 0xFF >> spare

    def write_back(self, file: _File) -> None:
        """Store the bitmap at the start of ``file``."""
        file.write_at(bytes(self._bits), 0)


@dataclass
class FileHeader:
    """Size of a file and the sectors holding its data, one sector on disk."""

    num_bytes: int = 0
    num_sectors: int = 0
    data_sectors: list[int] = field(default_factory=list)

    def allocate(self, free_map: FreeMap, file_size: int) -> bool:
        """Take data sectors for a new file; False if there is not enough room."""
        if file_size < 0:
            raise ValueError("file size must not be negative")
        self.num_bytes = file_size
        self.num_sectors = _div_round_up(file_size, SECTOR_SIZE)
        if self.num_sectors > NUM_DIRECT or free_map.num_clear() < self.num_sectors:
            return False
        self.data_sectors = [free_map.find() for _ in range(self.num_sectors)]
        return True

    def deallocate(self, free_map: FreeMap) -> None:
        """Give this file's data sectors back to ``free_map``."""
        for sector in self.data_sectors:
            if not free_map.test(sector):
                raise ValueError(f"sector {sector} is not marked in use")
            free_map.clear(sector)

    def fetch_from(self, disk: _SectorDevice, sector: int) -> None:
        """Read the header stored in ``sector``."""
        num_bytes, num_sectors, *sectors = _HEADER.unpack(disk.read_sector(sector))
        self.num_bytes = num_bytes
        self.num_sectors = num_sectors
        self.data_sectors = sectors[:max(0, min(num_sectors, NUM_DIRECT))]

    def write_back(self, disk: _SectorDevice, sector: int) -> None:
        """Store the header in ``sector``."""
        padded = list(self.data_sectors) + [0] * (NUM_DIRECT - len(self.data_sectors))
        disk.write_sector(sector, _HEADER.pack(self.num_bytes, self.num_sectors, *padded))

    def byte_to_sector(self, offset: int) -> int:
        """The disk sector holding byte ``offset`` of the file."""
        return self.data_sectors[offset // SECTOR_SIZE]

    def file_length(self) -> int:
        """Number of bytes in the file."""
        return self.num_bytes

    def describe(self, disk: _SectorDevice) -> str:
        """Text giving the header and the contents of every data sector."""
        parts = [
            f"FileHeader contents.  File size: {self.num_bytes}.  File blocks:\n",
            "".join(f"{sector} " for sector in self.data_sectors),
            "\nFile contents:\n",
        ]
        remaining = self.num_bytes
        for sector in self.data_sectors:
            data = disk.read_sector(sector)[:max(0, remaining)]
            remaining -= len(data)
            parts.append(
                "".join(chr(b) if 0x20 <= b <= 0x7E else f"\\{b:x}" for b in data)
            )
            parts.append("\n")
        return "".join(parts)