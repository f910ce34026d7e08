import pytest

from teachos.disk import NUM_SECTORS, SECTOR_SIZE, DiskError
from teachos.synchdisk import SynchDisk


@pytest.fixture
def synch(tmp_path):
    with SynchDisk(tmp_path / "DISK") as disk:
        yield disk


def test_round_trip(synch):
    payload = bytes(reversed(range(SECTOR_SIZE)))
    synch.write_sector(10, payload)
    assert synch.read_sector(10) == payload


def test_consecutive_requests_do_not_conflict(synch):
    for sector in range(5):
        synch.write_sector(sector, bytes([sector]) * SECTOR_SIZE)
    assert [synch.read_sector(s)[0] for s in range(5)] == list(range(5))
    assert synch.disk.active is False


def test_time_advances_with_each_request(synch):
    before = synch.ticks
    synch.write_sector(0, bytes(SECTOR_SIZE))
    after_write = synch.ticks
    synch.read_sector(40)
    assert before < after_write < synch.ticks


def test_counts_requests(synch):
    synch.write_sector(1, bytes(SECTOR_SIZE))
    synch.read_sector(1)
    synch.read_sector(2)
    assert (synch.disk.num_reads, synch.disk.num_writes) == (2, 1)


def test_bad_sector_raises_and_disk_stays_usable(synch):
    with pytest.raises(DiskError):
        synch.read_sector(NUM_SECTORS)
    synch.write_sector(0, b"\x01" * SECTOR_SIZE)
    assert synch.read_sector(0) == b"\x01" * SECTOR_SIZE


def test_data_survives_reopen(tmp_path):
    path = tmp_path / "DISK"
    with SynchDisk(path) as disk:
        disk.write_sector(99, b"z" * SECTOR_SIZE)
    with SynchDisk(path) as disk:
        assert disk.read_sector(99) == b"z" * SECTOR_SIZE