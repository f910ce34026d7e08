"""A simulated disk kept in a host file, with seek and rotation timing."""

from __future__ import annotations

import logging
import struct
from pathlib import Path
from typing import Callable, Optional, Union

SECTOR_SIZE = 128
SECTORS_PER_TRACK = 32
NUM_TRACKS = 32
NUM_SECTORS = SECTORS_PER_TRACK * NUM_TRACKS

MAGIC_NUMBER = 0x456789AB
_MAGIC = struct.Struct("<I")
MAGIC_SIZE = _MAGIC.size
DISK_SIZE = MAGIC_SIZE + NUM_SECTORS * SECTOR_SIZE

SEEK_TIME = 500
ROTATION_TIME = 500

_log = logging.getLogger(__name__)


class DiskError(Exception):
    """Raised on a bad disk file or an invalid disk request."""


def _modulo_diff(to: int, start: int) -> int:
    """Sectors of rotational delay from position ``start`` to sector ``to``."""
    return ((to % SECTORS_PER_TRACK) - (start % SECTORS_PER_TRACK)) % SECTORS_PER_TRACK


def _describe_sector(writing: bool, sector: int, data: bytes) -> str:
    words = struct.unpack(f"<{SECTOR_SIZE // 4}I", data)
    action = "Writing" if writing else "Reading"
    return f"{action} sector: {sector}\n" + "".join(f"{w:x} " for w in words)


class Disk:
    """One request at a time; ``handle_interrupt`` signals completion.

    ``now`` returns the current simulated time in ticks; after each request
    ``pending_latency`` holds how many ticks it takes to complete.
    """

    seek_time = SEEK_TIME
    rotation_time = ROTATION_TIME

    def __init__(
        self,
        path: Union[str, Path],
        on_done: Optional[Callable[[], None]] = None,
        now: Optional[Callable[[], int]] = None,
    ) -> None:
        self._on_done = on_done
        self._now = now if now is not None else (lambda: 0)
        self.active = False
        self.last_sector = 0
        self.buffer_init = 0
        self.pending_latency = 0
        self.num_reads = 0
        self.num_writes = 0
        path = Path(path)
        try:
            self._file = open(path, "r+b")
        except FileNotFoundError:
            self._file = open(path, "w+b")
            self._file.write(_MAGIC.pack(MAGIC_NUMBER))
            self._file.seek(DISK_SIZE - 4)
            self._file.write(bytes(4))
            self._file.flush()
        else:
            raw = self._file.read(MAGIC_SIZE)
            if len(raw) != MAGIC_SIZE or _MAGIC.unpack(raw)[0] != MAGIC_NUMBER:
                self._file.close()
                raise DiskError(f"{path} is not a disk file")

    def __enter__(self) -> "Disk":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _check_request(self, sector_number: int) -> None:
        if self.active:
            raise DiskError("Disk request already in progress")
        if not 0 <= sector_number < NUM_SECTORS:
            raise DiskError(f"Sector {sector_number} out of range")

    def _finish_request(self, sector_number: int, ticks: int) -> None:
        self.active = True
        self._update_last(sector_number)
        self.pending_latency = ticks

    def read_request(self, sector_number: int) -> bytes:
        """Start reading a sector and return its contents."""
        self._check_request(sector_number)
        ticks = self.compute_latency(sector_number, False)
        _log.debug("Reading from sector %d", sector_number)
        self._file.seek(SECTOR_SIZE * sector_number + MAGIC_SIZE)
        data = self._file.read(SECTOR_SIZE)
        if len(data) != SECTOR_SIZE:
            raise DiskError("Disk file is too short")
        if _log.isEnabledFor(logging.DEBUG):
            _log.debug("%s", _describe_sector(False, sector_number, data))
        self.num_reads += 1
        self._finish_request(sector_number, ticks)
        return data

    def write_request(self, sector_number: int, data: bytes) -> None:
        """Start writing exactly one sector of ``data``."""
        data = bytes(data)
        if len(data) != SECTOR_SIZE:
            raise DiskError(f"Sector data must be {SECTOR_SIZE} bytes")
        self._check_request(sector_number)
        ticks = self.compute_latency(sector_number, True)
        _log.debug("Writing to sector %d", sector_number)
        self._file.seek(SECTOR_SIZE * sector_number + MAGIC_SIZE)
        self._file.write(data)
        self._file.flush()
        if _log.isEnabledFor(logging.DEBUG):
            _log.debug("%s", _describe_sector(True, sector_number, data))
        self.num_writes += 1
        self._finish_request(sector_number, ticks)

    def handle_interrupt(self) -> None:
        """Mark the current request done and notify the owner."""
        self.active = False
        if self._on_done is not None:
            self._on_done()

    def _time_to_seek(self, new_sector: int) -> tuple[int, int]:
        """Return (seek ticks, ticks until the next sector boundary)."""
        new_track = new_sector // SECTORS_PER_TRACK
        old_track = self.last_sector // SECTORS_PER_TRACK
        seek = abs(new_track - old_track) * self.seek_time
        over = (self._now() + seek) % self.rotation_time
        rotation = self.rotation_time - over if over > 0 else 0
        return seek, rotation

    def compute_latency(self, new_sector: int, writing: bool) -> int:
        """Ticks to seek, rotate to and transfer ``new_sector``."""
        seek, rotation = self._time_to_seek(new_sector)
        time_after = self._now() + seek + rotation
        if (
            not writing
            and seek == 0
            and (time_after - self.buffer_init) // self.rotation_time
            > _modulo_diff(new_sector, self.buffer_init // self.rotation_time)
        ):
            _log.debug("Request latency = %d", self.rotation_time)
            return self.rotation_time
        rotation += _modulo_diff(new_sector, time_after // self.rotation_time) * self.rotation_time
        latency = seek + rotation + self.rotation_time
        _log.debug("Request latency = %d", latency)
        return latency

    def _update_last(self, new_sector: int) -> None:
        seek, rotation = self._time_to_seek(new_sector)
        if seek != 0:
            self.buffer_init = self._now() + seek + rotation
        self.last_sector = new_sector

    def close(self) -> None:
        """Close the host file behind the disk."""
        self._file.close()