import pytest

from teachos.disk import NUM_SECTORS, SECTOR_SIZE
from teachos.filehdr import MAX_FILE_SIZE, NUM_DIRECT, FileHeader, FreeMap
from teachos.synchdisk import SynchDisk


class MemoryFile:
    def __init__(self, size):
        self.data = bytearray(size)

    def read_at(self, num_bytes, position):
        return bytes(self.data[position:position + num_bytes])

    def write_at(self, data, position):
        self.data[position:position + len(data)] = data
        return len(data)


@pytest.fixture
def disk(tmp_path):
    with SynchDisk(tmp_path / "DISK") as synch:
        yield synch


def test_allocate_max_file_size_uses_every_direct_slot():
    assert NUM_DIRECT == (SECTOR_SIZE - 8) // 4
    fm = FreeMap(NUM_SECTORS)
    hdr = FileHeader()
    assert hdr.allocate(fm, MAX_FILE_SIZE)
    assert hdr.num_sectors == NUM_DIRECT
    assert hdr.file_length() == NUM_DIRECT * SECTOR_SIZE
    assert fm.num_clear() == NUM_SECTORS - NUM_DIRECT


def test_mark_test_clear():
    fm = FreeMap(16)
    fm.mark(5)
    assert fm.test(5)
    assert not fm.test(4)
    fm.clear(5)
    assert not fm.test(5)


def test_find_takes_lowest_clear_bit():
    fm = FreeMap(8)
    fm.mark(0)
    fm.mark(1)
    assert fm.find() == 2
    assert fm.test(2)
    assert fm.num_clear() == 5


def test_find_when_full_returns_none():
    fm = FreeMap(3)
    for i in range(3):
        fm.mark(i)
    assert fm.find() is None
    assert fm.num_clear() == 0


def test_out_of_range_bit():
    fm = FreeMap(8)
    with pytest.raises(IndexError):
        fm.mark(8)
    with pytest.raises(IndexError):
        fm.test(-1)


def test_free_map_round_trip():
    fm = FreeMap(NUM_SECTORS)
    for i in (0, 1, 9, NUM_SECTORS - 1):
        fm.mark(i)
    file = MemoryFile(NUM_SECTORS // 8)
    fm.write_back(file)
    other = FreeMap(NUM_SECTORS)
    other.fetch_from(file)
    assert [i for i in range(NUM_SECTORS) if other.test(i)] == [0, 1, 9, NUM_SECTORS - 1]
    assert other.num_clear() == NUM_SECTORS - 4


def test_allocate_takes_rounded_up_sectors():
    fm = FreeMap(NUM_SECTORS)
    hdr = FileHeader()
    assert hdr.allocate(fm, SECTOR_SIZE + 1)
    assert hdr.num_sectors == 2
    assert hdr.file_length() == SECTOR_SIZE + 1
    assert len(set(hdr.data_sectors)) == 2
    assert all(fm.test(s) for s in hdr.data_sectors)
    assert fm.num_clear() == NUM_SECTORS - 2


def test_allocate_fails_without_space():
    fm = FreeMap(4)
    fm.mark(0)
    fm.mark(1)
    hdr = FileHeader()
    assert not hdr.allocate(fm, 3 * SECTOR_SIZE)
    assert fm.num_clear() == 2


def test_allocate_fails_beyond_max_size():
    fm = FreeMap(NUM_SECTORS)
    hdr = FileHeader()
    assert not hdr.allocate(fm, MAX_FILE_SIZE + 1)
    assert fm.num_clear() == NUM_SECTORS


def test_allocate_zero_size():
    fm = FreeMap(NUM_SECTORS)
    hdr = FileHeader()
    assert hdr.allocate(fm, 0)
    assert hdr.data_sectors == []


def test_deallocate_returns_sectors():
    fm = FreeMap(NUM_SECTORS)
    hdr = FileHeader()
    hdr.allocate(fm, 3 * SECTOR_SIZE)
    hdr.deallocate(fm)
    assert fm.num_clear() == NUM_SECTORS


def test_deallocate_twice_raises():
    fm = FreeMap(NUM_SECTORS)
    hdr = FileHeader()
    hdr.allocate(fm, SECTOR_SIZE)
    hdr.deallocate(fm)
    with pytest.raises(ValueError):
        hdr.deallocate(fm)


def test_byte_to_sector():
    hdr = FileHeader(num_bytes=3 * SECTOR_SIZE, num_sectors=3, data_sectors=[7, 3, 11])
    assert hdr.byte_to_sector(0) == 7
    assert hdr.byte_to_sector(SECTOR_SIZE - 1) == 7
    assert hdr.byte_to_sector(SECTOR_SIZE) == 3
    assert hdr.byte_to_sector(2 * SECTOR_SIZE + 5) == 11


def test_header_round_trip_on_disk(disk):
    fm = FreeMap(NUM_SECTORS)
    fm.mark(0)
    hdr = FileHeader()
    hdr.allocate(fm, 2 * SECTOR_SIZE + 10)
    hdr.write_back(disk, 0)
    loaded = FileHeader()
    loaded.fetch_from(disk, 0)
    assert loaded == hdr
    assert len(disk.read_sector(0)) == SECTOR_SIZE


def test_describe(disk):
    hdr = FileHeader(num_bytes=3, num_sectors=1, data_sectors=[5])
    disk.write_sector(5, b"A\nB".ljust(SECTOR_SIZE, b"Z"))
    text = hdr.describe(disk)
    assert text == (
        "FileHeader contents.  File size: 3.  File blocks:\n"
        "5 \nFile contents:\nA\\aB\n"
    )