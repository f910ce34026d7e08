"""A disk interface whose reads and writes return only when complete."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Union

from .disk import Disk


class SynchDisk:
    """Serialises requests to a ``Disk`` and waits for each to finish.

    Simulated time advances by each request's latency.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self._semaphore = threading.Semaphore(0)
        self._lock = threading.Lock()
        self._ticks = 0
        self._disk = Disk(path, self.request_done, lambda: self._ticks)

    def __enter__(self) -> "SynchDisk":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def disk(self) -> Disk:
        return self._disk

    @property
    def ticks(self) -> int:
        """Simulated time spent on disk requests so far."""
        return self._ticks

    def _complete(self) -> None:
        self._ticks += self._disk.pending_latency
        self._disk.handle_interrupt()
        self._semaphore.acquire()

    def read_sector(self, sector_number: int) -> bytes:
        """Return the contents of a sector once it has been read."""
        with self._lock:
            data = self._disk.read_request(sector_number)
            self._complete()
            return data

    def write_sector(self, sector_number: int, data: bytes) -> None:
        """Write one sector and return once it is on disk."""
        with self._lock:
            self._disk.write_request(sector_number, data)
            self._complete()

    def request_done(self) -> None:
        """Wake the request waiting for the disk."""
        self._semaphore.release()

    def close(self) -> None:
        """Close the underlying disk."""
        self._disk.close()