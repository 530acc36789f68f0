import struct

import pytest

from eposfs.directory import DirectoryCursor, canonical_to_dir, find_free_entry, open_dir
from eposfs.fat import FatTable, end_of_chain, get_volume_info, is_chain_end
from eposfs.structures import (
    SECTOR_SIZE,
    Attr,
    DirEntry,
    FatType,
    MediaError,
    MemoryDevice,
    NotFoundError,
)

TOTAL_SECTORS = 64


def _entry(name, attr=0, cluster=0, size=0):
    entry = DirEntry(name=name, attr=int(attr), file_size=size)
    entry.set_start_cluster(cluster)
    return entry.to_bytes()


def _write_entries(device, sector, entries):
    device.write_sector(sector, b"".join(entries).ljust(SECTOR_SIZE, b"\0"))


def _cluster_sector(volume, cluster):
    return volume.data_area + (cluster - 2) * volume.sec_per_clus


def _names(prefix, count):
    return [(f"{prefix}{i:03d}".ljust(8)[:8]).encode() + b"TXT" for i in range(count)]


def _filled(prefix, count):
    return [_entry(name, Attr.ARCHIVE, 0) for name in _names(prefix, count)]


@pytest.fixture
def disk():
    device = MemoryDevice(bytes(TOTAL_SECTORS * SECTOR_SIZE))
    boot = bytearray(SECTOR_SIZE)
    boot[0:3] = b"\xeb\x3c\x90"
    boot[3:11] = b"TESTOEM "
    struct.pack_into("<HBHBHHBHHHII", boot, 11, 512, 1, 1, 2, 32, TOTAL_SECTORS, 0xF8, 1, 32, 2, 0, 0)
    boot[43:54] = b"TESTVOL    "
    boot[510:512] = b"\x55\xaa"
    device.write_sector(0, bytes(boot))
    volume = get_volume_info(device, 0)

    fat = FatTable(device, volume)
    fat.set(0, 0xFF8)
    fat.set(1, 0xFFF)
    for cluster in (2, 3, 4, 5):
        fat.set(cluster, end_of_chain(volume.filesystem))

    _write_entries(device, volume.root_dir, [
        _entry(b"HELLO   TXT", Attr.ARCHIVE, 2, 5),
        _entry(b"SUB        ", Attr.DIRECTORY, 3),
        _entry(b"\xe5LD     TXT", Attr.ARCHIVE, 0),
        _entry(b"Along name ", Attr.LONG_NAME, 0),
        _entry(b"\x05ANJI   TXT", Attr.ARCHIVE, 0),
    ])
    _write_entries(device, _cluster_sector(volume, 3), [
        _entry(b".          ", Attr.DIRECTORY, 3),
        _entry(b"..         ", Attr.DIRECTORY, 0),
        _entry(b"INNER   TXT", Attr.ARCHIVE, 4, 10),
        _entry(b"DEEP       ", Attr.DIRECTORY, 5),
    ])
    return device, volume


def test_volume_fixture_is_fat12(disk):
    _, volume = disk
    assert volume.filesystem == FatType.FAT12


def test_canonical_matches_documented_form():
    assert canonical_to_dir("FILE.EXT") == b"FILE    EXT"
    assert canonical_to_dir("file.ext") == b"FILE    EXT"
    assert canonical_to_dir(b"file.ext") == canonical_to_dir("FILE.EXT")


def test_canonical_stops_at_separator():
    assert canonical_to_dir("mydir/file.ext") == canonical_to_dir("MYDIR")


@pytest.mark.parametrize("name", ["readme", "a.b", "Mixed.Txt", "x1_2.c"])
def test_canonical_is_case_insensitive_and_fixed_length(name):
    result = canonical_to_dir(name)
    assert len(result) == 11
    assert result == canonical_to_dir(name.upper())


def test_canonical_truncates_long_names():
    assert canonical_to_dir("abcdefghijklmn") == b"ABCDEFGHIJK"
    assert canonical_to_dir("a.longext")[8:] == b"LON"


def test_root_listing_translates_special_entries(disk):
    device, volume = disk
    names = [entry.name for entry in open_dir(device, volume, "")]
    assert names == [
        b"HELLO   TXT",
        b"SUB        ",
        b"\x00LD     TXT",
        b"\x00long name ",
        b"\xe5ANJI   TXT",
    ]


def test_separator_alone_is_root(disk):
    device, volume = disk
    root = [entry.name for entry in open_dir(device, volume, "")]
    slash = [entry.name for entry in open_dir(device, volume, "/")]
    assert slash == root


def test_new_cursor_starts_at_root(disk):
    device, volume = disk
    cursor = DirectoryCursor(device, volume)
    assert cursor.current_cluster == 0
    assert cursor.entry_sector() == volume.root_dir


def test_open_subdirectory(disk):
    device, volume = disk
    cursor = open_dir(device, volume, "SUB")
    assert cursor.current_cluster == 3
    assert cursor.entry_sector() == _cluster_sector(volume, 3)
    entries = {entry.name: entry for entry in cursor}
    inner = entries[b"INNER   TXT"]
    assert inner.start_cluster(volume.filesystem) == 4
    assert inner.file_size == 10


def test_open_nested_path_ignores_case_and_extra_separators(disk):
    device, volume = disk
    cursor = open_dir(device, volume, "/sub/deep/")
    assert cursor.current_cluster == 5


@pytest.mark.parametrize("path", ["MISSING", "HELLO.TXT", "SUB/MISSING", "SUB/INNER.TXT"])
def test_open_dir_not_found(disk, path):
    device, volume = disk
    with pytest.raises(NotFoundError):
        open_dir(device, volume, path)


def test_iteration_spans_root_sectors(disk):
    device, volume = disk
    _write_entries(device, volume.root_dir, _filled("A", 16))
    _write_entries(device, volume.root_dir + 1, [_entry(b"LAST    TXT", Attr.ARCHIVE, 0)])
    names = [entry.name for entry in open_dir(device, volume, "")]
    assert len(names) == 17
    assert names[-1] == b"LAST    TXT"
    assert names[:16] == _names("A", 16)


def test_iteration_follows_cluster_chain(disk):
    device, volume = disk
    fat = FatTable(device, volume)
    fat.set(3, 6)
    fat.set(6, end_of_chain(volume.filesystem))
    _write_entries(device, _cluster_sector(volume, 3), _filled("B", 16))
    _write_entries(device, _cluster_sector(volume, 6), [_entry(b"TAIL    TXT", Attr.ARCHIVE, 0)])
    cursor = open_dir(device, volume, "SUB")
    names = [entry.name for entry in cursor]
    assert len(names) == 17
    assert names[-1] == b"TAIL    TXT"
    assert cursor.current_cluster == 6


def test_iteration_stops_at_chain_end(disk):
    device, volume = disk
    _write_entries(device, _cluster_sector(volume, 3), _filled("C", 16))
    cursor = open_dir(device, volume, "SUB")
    assert len(list(cursor)) == 16
    assert cursor.chain_exhausted is True
    assert cursor.next_entry() is None


def test_find_free_reuses_deleted_entry(disk):
    device, volume = disk
    cursor = find_free_entry(device, volume, "")
    assert cursor.last_index == 2
    assert cursor.entry_sector() == volume.root_dir


def test_find_free_in_subdirectory_uses_first_unused(disk):
    device, volume = disk
    cursor = find_free_entry(device, volume, "SUB")
    assert cursor.last_index == 4
    assert cursor.entry_sector() == _cluster_sector(volume, 3)


def test_find_free_in_full_root_fails(disk):
    device, volume = disk
    _write_entries(device, volume.root_dir, _filled("D", 16))
    _write_entries(device, volume.root_dir + 1, _filled("E", 16))
    with pytest.raises(MediaError):
        find_free_entry(device, volume, "/")


def test_find_free_extends_full_subdirectory(disk):
    device, volume = disk
    _write_entries(device, _cluster_sector(volume, 3), _filled("F", 16))
    expected = FatTable(device, volume).find_free()
    device.write_sector(_cluster_sector(volume, expected), b"\xaa" * SECTOR_SIZE)

    cursor = find_free_entry(device, volume, "SUB")

    new = cursor.current_cluster
    assert new == expected
    assert cursor.last_index == 0
    assert cursor.entry_sector() == _cluster_sector(volume, new)
    assert device.read_sector(_cluster_sector(volume, new)) == bytes(SECTOR_SIZE)
    fat = FatTable(device, volume)
    assert fat.get(3) == new
    assert is_chain_end(volume.filesystem, fat.get(new))
    names = [entry.name for entry in open_dir(device, volume, "SUB")]
    assert names == _names("F", 16)


def test_find_free_in_missing_directory(disk):
    device, volume = disk
    with pytest.raises(NotFoundError):
        find_free_entry(device, volume, "NOPE")