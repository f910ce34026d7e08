import pytest

from teachos.disk import NUM_SECTORS, SECTOR_SIZE
from teachos.filehdr import FileHeader, FreeMap
from teachos.openfile import OpenFile
from teachos.synchdisk import SynchDisk

HEADER_SECTOR = 0


@pytest.fixture
def disk(tmp_path):
    with SynchDisk(tmp_path / "DISK") as synch:
        yield synch


def make_file(disk, size):
    free_map = FreeMap(NUM_SECTORS)
    free_map.mark(HEADER_SECTOR)
    header = FileHeader()
    assert header.allocate(free_map, size)
    header.write_back(disk, HEADER_SECTOR)
    return OpenFile(disk, HEADER_SECTOR)


def test_length_matches_allocation(disk):
    f = make_file(disk, 300)
    assert f.length() == 300


def test_write_then_read_across_sectors(disk):
    size = 3 * SECTOR_SIZE
    f = make_file(disk, size)
    payload = bytes(i % 251 for i in range(size))
    assert f.write(payload) == size
    assert f.position == size
    f.seek(0)
    assert f.read(size) == payload


def test_read_at_past_end_is_empty(disk):
    f = make_file(disk, 50)
    assert f.read_at(10, 50) == b""
    assert f.read_at(0, 0) == b""


def test_write_is_clipped_to_file_length(disk):
    f = make_file(disk, 20)
    assert f.write_at(b"x" * 30, 15) == 5
    assert f.read_at(100, 15) == b"xxxxx"
    assert f.write_at(b"y", 20) == 0


def test_unaligned_write_preserves_neighbours(disk):
    size = 2 * SECTOR_SIZE
    f = make_file(disk, size)
    original = bytes(range(256))[:size]
    f.write_at(original, 0)
    position = SECTOR_SIZE - 3
    f.write_at(b"HELLO!", position)
    expected = bytearray(original)
    expected[position:position + 6] = b"HELLO!"
    assert f.read_at(size, 0) == bytes(expected)


def test_small_write_inside_one_sector(disk):
    f = make_file(disk, SECTOR_SIZE)
    f.write_at(b"a" * SECTOR_SIZE, 0)
    f.write_at(b"bc", 10)
    data = f.read_at(SECTOR_SIZE, 0)
    assert data[:10] == b"a" * 10
    assert data[10:12] == b"bc"
    assert data[12:] == b"a" * (SECTOR_SIZE - 12)


def test_sequential_reads_advance(disk):
    f = make_file(disk, 25)
    f.write(b"1234567890" * 2 + b"abcde")
    f.seek(0)
    chunks = [f.read(10), f.read(10), f.read(10), f.read(10)]
    assert chunks == [b"1234567890", b"1234567890", b"abcde", b""]


def test_data_survives_reopen(disk):
    f = make_file(disk, 40)
    f.write(b"persisted data")
    again = OpenFile(disk, HEADER_SECTOR)
    assert again.read(14) == b"persisted data"
    assert again.length() == 40


def test_zero_length_file(disk):
    f = make_file(disk, 0)
    assert f.write(b"abc") == 0
    assert f.read(3) == b""
    assert f.position == 0