"""A flat file system on a simulated disk: a free-sector bitmap and one directory."""

from __future__ import annotations

from typing import Optional, Protocol

from .directory import Directory, DirectoryEntry
from .disk import NUM_SECTORS
from .filehdr import FileHeader, FreeMap
from .openfile import OpenFile

FREE_MAP_SECTOR = 0
DIRECTORY_SECTOR = 1

FREE_MAP_FILE_SIZE = NUM_SECTORS // 8
NUM_DIR_ENTRIES = 10
DIRECTORY_FILE_SIZE = DirectoryEntry.SIZE * NUM_DIR_ENTRIES


class _SectorDevice(Protocol):
    def read_sector(self, sector_number: int) -> bytes: ...

    def write_sector(self, sector_number: int, data: bytes) -> None: ...


class FileSystem:
    """Files named in a single directory, with a bitmap of free sectors.

    The bitmap and the directory are themselves files whose headers live
    in sectors 0 and 1. Both are kept open for the life of the object.
    Changes are written to disk only when an operation succeeds.
    """

    def __init__(self, disk: _SectorDevice, format: bool = False) -> None:
        self._disk = disk
        if format:
            self._format()
        self.free_map_file = OpenFile(disk, FREE_MAP_SECTOR)
        self.directory_file = OpenFile(disk, DIRECTORY_SECTOR)
        if format:
            self._initial_map.write_back(self.free_map_file)
            Directory(NUM_DIR_ENTRIES).write_back(self.directory_file)
            del self._initial_map

    def _format(self) -> None:
        free_map = FreeMap(NUM_SECTORS)
        map_header = FileHeader()
        dir_header = FileHeader()
        free_map.mark(FREE_MAP_SECTOR)
        free_map.mark(DIRECTORY_SECTOR)
        if not map_header.allocate(free_map, FREE_MAP_FILE_SIZE):
            raise RuntimeError("disk too small for the free-sector bitmap")
        if not dir_header.allocate(free_map, DIRECTORY_FILE_SIZE):
            raise RuntimeError("disk too small for the directory")
        map_header.write_back(self._disk, FREE_MAP_SECTOR)
        dir_header.write_back(self._disk, DIRECTORY_SECTOR)
        self._initial_map = free_map

    def _load_directory(self) -> Directory:
        directory = Directory(NUM_DIR_ENTRIES)
        directory.fetch_from(self.directory_file)
        return directory

    def _load_free_map(self) -> FreeMap:
        free_map = FreeMap(NUM_SECTORS)
        free_map.fetch_from(self.free_map_file)
        return free_map

    def create(self, name: str, initial_size: int) -> bool:
        """Create a file of fixed size; False if it exists or there is no room."""
        directory = self._load_directory()
        if directory.find(name) is not None:
            return False
        free_map = self._load_free_map()
        sector = free_map.find()
        if sector is None:
            return False
        if not directory.add(name, sector):
            return False
        header = FileHeader()
        if not header.allocate(free_map, initial_size):
            return False
        header.write_back(self._disk, sector)
        directory.write_back(self.directory_file)
        free_map.write_back(self.free_map_file)
        return True

    def open(self, name: str) -> Optional[OpenFile]:
        """Open ``name`` for reading and writing, or return None if absent."""
        sector = self._load_directory().find(name)
        if sector is None:
            return None
        return OpenFile(self._disk, sector)

    def remove(self, name: str) -> bool:
        """Delete ``name`` and free its sectors; False if it does not exist."""
        directory = self._load_directory()
        sector = directory.find(name)
        if sector is None:
            return False
        header = FileHeader()
        header.fetch_from(self._disk, sector)
        free_map = self._load_free_map()
        header.deallocate(free_map)
        free_map.clear(sector)
        directory.remove(name)
        free_map.write_back(self.free_map_file)
        directory.write_back(self.directory_file)
        return True

    def list(self) -> list[str]:
        """Names of all files in the directory."""
        return self._load_directory().list()

    def _describe_header(self, sector: int) -> str:
        header = FileHeader()
        header.fetch_from(self._disk, sector)
        return header.describe(self._disk)

    def print(self) -> str:
        """Text describing the bitmap, the directory and every file."""
        return "".join(
            [
                "Bit map file header:\n",
                self._describe_header(FREE_MAP_SECTOR),
                "Directory file header:\n",
                self._describe_header(DIRECTORY_SECTOR),
                str(self._load_free_map()),
                self._load_directory().print(self._describe_header),
            ]
        )