import pytest

from teachos.directory import FILE_NAME_MAX_LEN, Directory, DirectoryEntry


class FakeFile:
    def __init__(self, size):
        self.data = bytearray(size)

    def read_at(self, num_bytes, position):
        return bytes(self.data[position:position + num_bytes])

    def write_at(self, data, position):
        self.data[position:position + len(data)] = data
        return len(data)


def test_add_and_find():
    directory = Directory(4)
    assert directory.add("alpha", 5)
    assert directory.add("beta", 7)
    assert directory.find("alpha") == 5
    assert directory.find("beta") == 7
    assert directory.find("gamma") is None


def test_duplicate_rejected():
    directory = Directory(4)
    assert directory.add("alpha", 5)
    assert not directory.add("alpha", 6)
    assert directory.find("alpha") == 5


def test_full_directory_rejects():
    directory = Directory(2)
    assert directory.add("a", 1)
    assert directory.add("b", 2)
    assert not directory.add("c", 3)
    assert directory.find("c") is None


def test_remove_frees_slot():
    directory = Directory(1)
    directory.add("a", 1)
    assert directory.remove("a")
    assert not directory.remove("a")
    assert directory.find("a") is None
    assert directory.add("b", 2)
    assert directory.find("b") == 2


def test_long_names_are_truncated():
    directory = Directory(2)
    long_name = "abcdefghijklmn"
    assert directory.add(long_name, 3)
    assert directory.list() == [long_name[:FILE_NAME_MAX_LEN]]
    assert directory.find(long_name[:FILE_NAME_MAX_LEN] + "zz") == 3
    assert not directory.add(long_name[:FILE_NAME_MAX_LEN] + "q", 4)


def test_list_in_table_order():
    directory = Directory(3)
    directory.add("one", 1)
    directory.add("two", 2)
    directory.add("three", 3)
    directory.remove("two")
    directory.add("four", 4)
    assert directory.list() == ["one", "four", "three"]


@pytest.mark.parametrize("size", [1, 3, 10])
def test_serialised_size(size):
    assert len(Directory(size).to_bytes()) == size * DirectoryEntry.SIZE


def test_bytes_round_trip():
    directory = Directory(3)
    directory.add("x", 9)
    directory.add("y", 11)
    directory.remove("x")
    copy = Directory(3)
    copy.load_bytes(directory.to_bytes())
    assert copy.entries == directory.entries
    assert copy.find("y") == 11
    assert copy.find("x") is None


def test_fetch_and_write_back():
    file = FakeFile(10 * DirectoryEntry.SIZE)
    directory = Directory(10)
    directory.add("file", 42)
    directory.write_back(file)
    loaded = Directory(10)
    loaded.fetch_from(file)
    assert loaded.find("file") == 42
    assert loaded.list() == ["file"]


def test_empty_disk_gives_empty_directory():
    directory = Directory(4)
    directory.fetch_from(FakeFile(0))
    assert directory.list() == []
    assert len(directory) == 4


def test_print_lists_entries_and_headers():
    directory = Directory(3)
    directory.add("a", 2)
    directory.add("b", 3)
    text = directory.print(lambda sector: f"<header {sector}>\n")
    assert text == (
        "Directory contents:\n"
        "Name: a, Sector: 2\n<header 2>\n"
        "Name: b, Sector: 3\n<header 3>\n"
        "\n"
    )


def test_print_without_describer():
    assert Directory(2).print() == "Directory contents:\n\n"