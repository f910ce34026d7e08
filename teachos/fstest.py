"""Copying host files in, printing files out, and a sequential stress test."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional, TextIO, Union

from .filesys import FileSystem

TRANSFER_SIZE = 10

FILE_NAME = "TestFile"
CONTENTS = b"1234567890"
CONTENT_SIZE = len(CONTENTS)
FILE_SIZE = CONTENT_SIZE * 5000


def copy(file_system: FileSystem, source: Union[str, Path], name: str) -> int:
    """Copy the host file ``source`` into the file ``name``; return its length."""
    try:
        with open(source, "rb") as host:
            data = host.read()
    except OSError as error:
        raise OSError(f"Copy: couldn't open input file {source}") from error
    if not file_system.create(name, len(data)):
        raise OSError(f"Copy: couldn't create output file {name}")
    open_file = file_system.open(name)
    if open_file is None:
        raise OSError(f"Copy: couldn't open output file {name}")
    for start in range(0, len(data), TRANSFER_SIZE):
        open_file.write(data[start:start + TRANSFER_SIZE])
    return len(data)


def print_file(
    file_system: FileSystem, name: str, out: Optional[TextIO] = None
) -> int:
    """Write the contents of ``name`` to ``out``; return the number of bytes."""
    stream = out if out is not None else sys.stdout
    open_file = file_system.open(name)
    if open_file is None:
        raise FileNotFoundError(f"Print: unable to open file {name}")
    total = 0
    while chunk := open_file.read(TRANSFER_SIZE):
        stream.write(chunk.decode("latin-1"))
        total += len(chunk)
    return total


def _file_write(file_system: FileSystem, out: TextIO) -> bool:
    out.write(
        f"Sequential write of {FILE_SIZE} byte file, in {CONTENT_SIZE} byte chunks\n"
    )
    if not file_system.create(FILE_NAME, 0):
        out.write(f"Perf test: can't create {FILE_NAME}\n")
        return False
    open_file = file_system.open(FILE_NAME)
    if open_file is None:
        out.write(f"Perf test: unable to open {FILE_NAME}\n")
        return False
    for _ in range(0, FILE_SIZE, CONTENT_SIZE):
        if open_file.write(CONTENTS) < CONTENT_SIZE:
            out.write(f"Perf test: unable to write {FILE_NAME}\n")
            return False
    return True


def _file_read(file_system: FileSystem, out: TextIO) -> bool:
    out.write(
        f"Sequential read of {FILE_SIZE} byte file, in {CONTENT_SIZE} byte chunks\n"
    )
    open_file = file_system.open(FILE_NAME)
    if open_file is None:
        out.write(f"Perf test: unable to open file {FILE_NAME}\n")
        return False
    for _ in range(0, FILE_SIZE, CONTENT_SIZE):
        if open_file.read(CONTENT_SIZE) != CONTENTS:
            out.write(f"Perf test: unable to read {FILE_NAME}\n")
            return False
    return True


def performance_test(file_system: FileSystem, out: Optional[TextIO] = None) -> bool:
    """Write and read back a large file in small chunks, then remove it.

    Returns True only if every step succeeded.
    """
    stream = out if out is not None else sys.stdout
    stream.write("Starting file system performance test:\n")
    wrote = _file_write(file_system, stream)
    read = _file_read(file_system, stream)
    if not file_system.remove(FILE_NAME):
        stream.write(f"Perf test: unable to remove {FILE_NAME}\n")
        return False
    return wrote and read