"""A fixed-size directory table mapping file names to header sectors."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

FILE_NAME_MAX_LEN = 9

_ENTRY = struct.Struct(f"<?3xi{FILE_NAME_MAX_LEN + 1}s2x")


class _File(Protocol):
    def read_at(self, num_bytes: int, position: int) -> bytes: ...

    def write_at(self, data: bytes, position: int) -> int: ...


def _truncate(name: str) -> str:
    raw = name.encode("utf-8")[:FILE_NAME_MAX_LEN]
    return raw.decode("utf-8", errors="ignore")


@dataclass
class DirectoryEntry:
    """One slot of the directory: whether used, header sector and name."""

    in_use: bool = False
    sector: int = 0
    name: str = ""

    SIZE = _ENTRY.size

    def pack(self) -> bytes:
        return _ENTRY.pack(self.in_use, self.sector, self.name.encode("utf-8"))

    @classmethod
    def unpack(cls, data: bytes) -> "DirectoryEntry":
        in_use, sector, raw = _ENTRY.unpack(data)
        name = raw.split(b"\0", 1)[0][:FILE_NAME_MAX_LEN].decode("utf-8", errors="ignore")
        return cls(in_use, sector, name)


class Directory:
    """A table of (file name, header sector) pairs of fixed capacity."""

    def __init__(self, size: int) -> None:
        self._table = [DirectoryEntry() for _ in range(size)]

    @property
    def entries(self) -> tuple[DirectoryEntry, ...]:
        return tuple(self._table)

    def __len__(self) -> int:
        return len(self._table)

    def to_bytes(self) -> bytes:
        """Encode the table as it is stored on disk."""
        return b"".join(entry.pack() for entry in self._table)

    def load_bytes(self, data: bytes) -> None:
        """Replace the table with entries decoded from ``data``."""
        expected = len(self._table) * DirectoryEntry.SIZE
        data = bytes(data[:expected]).ljust(expected, b"\0")
        self._table = [
            DirectoryEntry.unpack(data[start:start + DirectoryEntry.SIZE])
            for start in range(0, expected, DirectoryEntry.SIZE)
        ]

    def fetch_from(self, file: _File) -> None:
        """Read the directory contents from ``file``."""
        self.load_bytes(file.read_at(len(self._table) * DirectoryEntry.SIZE, 0))

    def write_back(self, file: _File) -> None:
        """Write the directory contents to ``file``."""
        file.write_at(self.to_bytes(), 0)

    def _find_entry(self, name: str) -> Optional[DirectoryEntry]:
        key = _truncate(name)
        return next((e for e in self._table if e.in_use and e.name == key), None)

    def find(self, name: str) -> Optional[int]:
        """Return the header sector of ``name``, or None if absent."""
        entry = self._find_entry(name)
        return entry.sector if entry is not None else None

    def add(self, name: str, new_sector: int) -> bool:
        """Add ``name``; False if it already exists or the table is full."""
        if self._find_entry(name) is not None:
            return False
        for entry in self._table:
            if not entry.in_use:
                entry.in_use = True
                entry.name = _truncate(name)
                entry.sector = new_sector
                return True
        return False

    def remove(self, name: str) -> bool:
        """Remove ``name``; False if it is not in the directory."""
        entry = self._find_entry(name)
        if entry is None:
            return False
        entry.in_use = False
        return True

    def list(self) -> list[str]:
        """Names of all files in the directory, in table order."""
        return [entry.name for entry in self._table if entry.in_use]

    def print(self, describe_header: Optional[Callable[[int], str]] = None) -> str:
        """Text listing each file, its header sector and its header description."""
        parts = ["Directory contents:\n"]
        for entry in self._table:
            if entry.in_use:
                parts.append(f"Name: {entry.name}, Sector: {entry.sector}\n")
                if describe_header is not None:
                    parts.append(describe_header(entry.sector))
        parts.append("\n")
        return "".join(parts)