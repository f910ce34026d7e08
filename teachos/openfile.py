"""An open file: byte-level reads and writes over whole disk sectors."""

from __future__ import annotations

from typing import Protocol

from .disk import SECTOR_SIZE
from .filehdr import FileHeader


class _SectorDevice(Protocol):
    def read_sector(self, sector_number: int) -> bytes: ...

    def write_sector(self, sector_number: int, data: bytes) -> None: ...


class OpenFile:
    """A file whose header sits in a disk sector, with a current position."""

    def __init__(self, disk: _SectorDevice, sector: int) -> None:
        self._disk = disk
        self.header = FileHeader()
        self.header.fetch_from(disk, sector)
        self.position = 0

    def seek(self, position: int) -> None:
        """Set where the next read or write starts."""
        self.position = position

    def read(self, num_bytes: int) -> bytes:
        """Read from the current position and advance past what was read."""
        data = self.read_at(num_bytes, self.position)
        self.position += len(data)
        return data

    def write(self, data: bytes) -> int:
        """Write at the current position; return and advance by the count written."""
        written = self.write_at(data, self.position)
        self.position += written
        return written

    def _clip(self, num_bytes: int, position: int) -> int:
        file_length = self.header.file_length()
        if num_bytes <= 0 or position < 0 or position >= file_length:
            return 0
        return min(num_bytes, file_length - position)

    def read_at(self, num_bytes: int, position: int) -> bytes:
        """Read up to ``num_bytes`` at ``position``; fewer at the end of the file."""
        num_bytes = self._clip(num_bytes, position)
        if num_bytes == 0:
            return b""
        first = position // SECTOR_SIZE
        last = (position + num_bytes - 1) // SECTOR_SIZE
        buf = b"".join(
            self._disk.read_sector(self.header.byte_to_sector(i * SECTOR_SIZE))
            for i in range(first, last + 1)
        )
        start = position - first * SECTOR_SIZE
        return buf[start:start + num_bytes]

    def write_at(self, data: bytes, position: int) -> int:
        """Write ``data`` at ``position``, clipped to the file length; return the count."""
        data = bytes(data)
        num_bytes = self._clip(len(data), position)
        if num_bytes == 0:
            return 0
        first = position // SECTOR_SIZE
        last = (position + num_bytes - 1) // SECTOR_SIZE
        buf = bytearray((last - first + 1) * SECTOR_SIZE)

        first_aligned = position == first * SECTOR_SIZE
        last_aligned = position + num_bytes == (last + 1) * SECTOR_SIZE
        if not first_aligned:
            head = self.read_at(SECTOR_SIZE, first * SECTOR_SIZE)
            buf[:len(head)] = head
        if not last_aligned and (first != last or first_aligned):
            tail = self.read_at(SECTOR_SIZE, last * SECTOR_SIZE)
            base = (last - first) * SECTOR_SIZE
            buf[base:base + len(tail)] = tail

        start = position - first * SECTOR_SIZE
        buf[start:start + num_bytes] = data[:num_bytes]

        for i in range(first, last + 1):
            base = (i - first) * SECTOR_SIZE
            self._disk.write_sector(
                self.header.byte_to_sector(i * SECTOR_SIZE),
                bytes(buf[base:base + SECTOR_SIZE]),
            )
        return num_bytes

    def length(self) -> int:
        """Number of bytes in the file."""
        return self.header.file_length()