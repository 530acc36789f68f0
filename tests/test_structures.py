import struct

import pytest

from eposfs.structures import (
    DIRENT_SIZE,
    PARTITION_TABLE_OFFSET,
    SECTOR_SIZE,
    BootRecord,
    DirEntry,
    FatType,
    MediaError,
    MemoryDevice,
    PartitionEntry,
)


def test_direntry_round_trip():
    entry = DirEntry(
        name=b"FILE    EXT",
        attr=0x20,
        crt_time=0x0820,
        crt_date=0x3411,
        lst_acc_date=0x3411,
        wrt_time=0x0820,
        wrt_date=0x3411,
        start_clus_lo=7,
        start_clus_hi=1,
        file_size=1234,
    )
    raw = entry.to_bytes()
    assert len(raw) == DIRENT_SIZE
    assert DirEntry.from_bytes(raw) == entry


def test_direntry_byte_layout_matches_format():
    entry = DirEntry(name=b"FILE    EXT", crt_time=0x0820, crt_date=0x3411)
    raw = entry.to_bytes()
    assert raw[:11] == b"FILE    EXT"
    assert raw[14] == 0x20 and raw[15] == 0x08
    assert raw[16] == 0x11 and raw[17] == 0x34


def test_direntry_size_field_position():
    raw = DirEntry(file_size=0x01020304).to_bytes()
    assert raw[28:32] == bytes([0x04, 0x03, 0x02, 0x01])


def test_start_cluster_depends_on_fat_type():
    entry = DirEntry()
    entry.set_start_cluster(0x00030005)
    assert entry.start_cluster(FatType.FAT32) == 0x00030005
    assert entry.start_cluster(FatType.FAT16) == 0x0005
    assert entry.start_cluster(FatType.FAT12) == 0x0005


def test_start_cluster_bytes_on_disk():
    entry = DirEntry()
    entry.set_start_cluster(0x12345678)
    raw = entry.to_bytes()
    assert raw[26:28] == bytes([0x78, 0x56])
    assert raw[20:22] == bytes([0x34, 0x12])


def test_direntry_from_short_data_raises():
    with pytest.raises(ValueError):
        DirEntry.from_bytes(b"\0" * 31)


def test_direntry_bad_name_length_raises():
    with pytest.raises(ValueError):
        DirEntry(name=b"SHORT").to_bytes()


def test_partition_entry_parse():
    raw = struct.pack("<BBHBBHII", 0x80, 1, 2, 0x06, 3, 4, 63, 2048)
    entry = PartitionEntry.from_bytes(raw)
    assert entry.active == 0x80
    assert entry.type == 0x06
    assert entry.start == 63
    assert entry.size == 2048


def test_partition_entry_from_mbr_slot():
    sector = bytearray(SECTOR_SIZE)
    offset = PARTITION_TABLE_OFFSET + 16
    sector[offset + 8 : offset + 12] = (100).to_bytes(4, "little")
    entry = PartitionEntry.from_bytes(sector[offset : offset + 16])
    assert entry.start == 100


def test_partition_entry_short_raises():
    with pytest.raises(ValueError):
        PartitionEntry.from_bytes(b"\0" * 8)


def _boot_sector():
    sector = bytearray(SECTOR_SIZE)
    sector[3:11] = b"MSWIN4.1"
    struct.pack_into("<HBHBHHBHHHII", sector, 11, 512, 4, 1, 2, 512, 2880, 0xF0, 9, 18, 2, 0, 0)
    sector[43:54] = b"MYVOLUME   "
    sector[510:512] = b"\x55\xaa"
    return bytes(sector)


def test_boot_record_fat16_fields():
    record = BootRecord.from_bytes(_boot_sector())
    assert record.oem_id == b"MSWIN4.1"
    assert record.bytes_per_sector == 512
    assert record.sec_per_clus == 4
    assert record.reserved_secs == 1
    assert record.num_fats == 2
    assert record.root_entries == 512
    assert record.small_sectors == 2880
    assert record.sec_per_fat16 == 9
    assert record.label == b"MYVOLUME   "
    assert record.signature == b"\x55\xaa"


def test_boot_record_fat32_fields():
    sector = bytearray(_boot_sector())
    struct.pack_into("<IHHI", sector, 36, 1000, 0, 0, 2)
    sector[71:82] = b"FAT32VOL   "
    record = BootRecord.from_bytes(bytes(sector))
    assert record.fat_size32 == 1000
    assert record.root_cluster == 2
    assert record.label32 == b"FAT32VOL   "


def test_boot_record_short_raises():
    with pytest.raises(ValueError):
        BootRecord.from_bytes(b"\0" * 100)


def test_memory_device_write_then_read():
    device = MemoryDevice(bytes(SECTOR_SIZE * 4))
    payload = bytes(range(256)) * 2
    device.write_sector(2, payload)
    assert device.read_sector(2) == payload
    assert device.read_sector(1) == bytes(SECTOR_SIZE)
    assert device.getvalue()[2 * SECTOR_SIZE : 3 * SECTOR_SIZE] == payload
    assert len(device) == 4


def test_memory_device_short_write_is_padded():
    device = MemoryDevice(b"\xff" * SECTOR_SIZE)
    device.write_sector(0, b"abc")
    data = device.read_sector(0)
    assert data[:3] == b"abc"
    assert data[3:] == bytes(SECTOR_SIZE - 3)


def test_memory_device_out_of_range():
    device = MemoryDevice(bytes(SECTOR_SIZE))
    with pytest.raises(MediaError):
        device.read_sector(1)
    with pytest.raises(MediaError):
        device.write_sector(-1, b"")


def test_memory_device_rejects_bad_sizes():
    with pytest.raises(ValueError):
        MemoryDevice(bytes(SECTOR_SIZE + 1))
    device = MemoryDevice(bytes(SECTOR_SIZE))
    with pytest.raises(ValueError):
        device.write_sector(0, bytes(SECTOR_SIZE + 1))


def test_media_error_is_os_error():
    device = MemoryDevice(bytes(SECTOR_SIZE))
    with pytest.raises(OSError):
        device.read_sector(5)