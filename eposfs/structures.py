"""On-disk FAT structures, volume geometry, error types and an in-memory block device."""

from __future__ import annotations

import enum
import struct
from dataclasses import dataclass

MAX_PATH = 64
"""Longest path accepted, including the terminating position."""

DIR_SEPARATOR = "/"
SECTOR_SIZE = 512
DIRENT_SIZE = 32
ENTRIES_PER_SECTOR = SECTOR_SIZE // DIRENT_SIZE

PARTITION_TABLE_OFFSET = 0x1BE
PARTITION_ENTRY_SIZE = 16
PARTITION_COUNT = 4

DELETED_MARK = 0xE5
"""First name byte of a deleted directory entry."""

KANJI_MARK = 0x05
"""First name byte standing for a real leading 0xE5."""


class FatType(enum.IntEnum):
    """FAT variant, inferred from the number of clusters on the volume."""

    FAT12 = 0
    FAT16 = 1
    FAT32 = 2


class Attr(enum.IntFlag):
    """DOS directory-entry attribute bits."""

    READ_ONLY = 0x01
    HIDDEN = 0x02
    SYSTEM = 0x04
    VOLUME_ID = 0x08
    DIRECTORY = 0x10
    ARCHIVE = 0x20
    LONG_NAME = READ_ONLY | HIDDEN | SYSTEM | VOLUME_ID


class OpenMode(enum.IntFlag):
    """File access modes."""

    READ = 1
    WRITE = 2


class DosFsError(Exception):
    """Base class of filesystem errors."""


class NotFoundError(DosFsError, FileNotFoundError):
    """A path or file does not exist."""


class PathTooLongError(DosFsError, ValueError):
    """A path is longer than :data:`MAX_PATH` allows."""


class MediaError(DosFsError, OSError):
    """A sector could not be read or written, or the volume is unusable."""


_DIRENT = struct.Struct("<11s3B7HI")


@dataclass
class DirEntry:
    """One 32-byte directory entry.

    Dates pack day (bits 0-4), month (5-8) and years since 1980 (9-15);
    times pack 2-second count (0-4), minutes (5-10) and hours (11-15).
    """

    name: bytes = b" " * 11
    attr: int = 0
    reserved: int = 0
    crt_time_tenth: int = 0
    crt_time: int = 0
    crt_date: int = 0
    lst_acc_date: int = 0
    start_clus_hi: int = 0
    wrt_time: int = 0
    wrt_date: int = 0
    start_clus_lo: int = 0
    file_size: int = 0

    @classmethod
    def from_bytes(cls, data: bytes) -> DirEntry:
        """Parse the first 32 bytes of ``data``."""
        if len(data) < DIRENT_SIZE:
            raise ValueError(f"directory entry needs {DIRENT_SIZE} bytes, got {len(data)}")
        return cls(*_DIRENT.unpack_from(bytes(data[:DIRENT_SIZE])))

    def to_bytes(self) -> bytes:
        """Return the 32-byte on-disk form."""
        if len(self.name) != 11:
            raise ValueError("directory entry name must be 11 bytes")
        return _DIRENT.pack(
            bytes(self.name),
            self.attr,
            self.reserved,
            self.crt_time_tenth,
            self.crt_time,
            self.crt_date,
            self.lst_acc_date,
            self.start_clus_hi,
            self.wrt_time,
            self.wrt_date,
            self.start_clus_lo,
            self.file_size,
        )

    def start_cluster(self, fat_type: FatType) -> int:
        """Return the first cluster; the high word counts only on FAT32."""
        if fat_type == FatType.FAT32:
            return self.start_clus_hi << 16 | self.start_clus_lo
        return self.start_clus_lo

    def set_start_cluster(self, cluster: int) -> None:
        """Store ``cluster`` in both halves of the start-cluster field."""
        self.start_clus_lo = cluster & 0xFFFF
        self.start_clus_hi = (cluster >> 16) & 0xFFFF


_PTINFO = struct.Struct("<BBHBBHII")


@dataclass(frozen=True)
class PartitionEntry:
    """One of the four partition-table entries of a master boot record."""

    active: int
    start_head: int
    start_cs: int
    type: int
    end_head: int
    end_cs: int
    start: int
    size: int

    @classmethod
    def from_bytes(cls, data: bytes) -> PartitionEntry:
        """Parse the first 16 bytes of ``data``."""
        if len(data) < PARTITION_ENTRY_SIZE:
            raise ValueError(
                f"partition entry needs {PARTITION_ENTRY_SIZE} bytes, got {len(data)}"
            )
        return cls(*_PTINFO.unpack_from(bytes(data[:PARTITION_ENTRY_SIZE])))


@dataclass(frozen=True)
class BootRecord:
    """Fields of a volume boot sector (BIOS parameter block and extensions).

    The FAT12/16 and FAT32 extended blocks share storage; both readings are kept.
    """

    oem_id: bytes
    bytes_per_sector: int
    sec_per_clus: int
    reserved_secs: int
    num_fats: int
    root_entries: int
    small_sectors: int
    media_type: int
    sec_per_fat16: int
    sec_per_track: int
    heads: int
    hidden_sectors: int
    large_sectors: int
    label: bytes
    system: bytes
    fat_size32: int
    ext_flags: int
    fs_version: int
    root_cluster: int
    fsinfo_sector: int
    backup_boot_sector: int
    label32: bytes
    system32: bytes
    signature: bytes

    @classmethod
    def from_bytes(cls, data: bytes) -> BootRecord:
        """Parse a 512-byte boot sector."""
        if len(data) < SECTOR_SIZE:
            raise ValueError(f"boot record needs {SECTOR_SIZE} bytes, got {len(data)}")
        raw = bytes(data[:SECTOR_SIZE])
        (
            bytes_per_sector,
            sec_per_clus,
            reserved_secs,
            num_fats,
            root_entries,
            small_sectors,
            media_type,
            sec_per_fat16,
            sec_per_track,
            heads,
            hidden_sectors,
            large_sectors,
        ) = struct.unpack_from("<HBHBHHBHHHII", raw, 11)
        (
            fat_size32,
            ext_flags,
            fs_version,
            root_cluster,
            fsinfo_sector,
            backup_boot_sector,
        ) = struct.unpack_from("<IHHIHH", raw, 36)
        return cls(
            oem_id=raw[3:11],
            bytes_per_sector=bytes_per_sector,
            sec_per_clus=sec_per_clus,
            reserved_secs=reserved_secs,
            num_fats=num_fats,
            root_entries=root_entries,
            small_sectors=small_sectors,
            media_type=media_type,
            sec_per_fat16=sec_per_fat16,
            sec_per_track=sec_per_track,
            heads=heads,
            hidden_sectors=hidden_sectors,
            large_sectors=large_sectors,
            label=raw[43:54],
            system=raw[54:62],
            fat_size32=fat_size32,
            ext_flags=ext_flags,
            fs_version=fs_version,
            root_cluster=root_cluster,
            fsinfo_sector=fsinfo_sector,
            backup_boot_sector=backup_boot_sector,
            label32=raw[71:82],
            system32=raw[82:90],
            signature=raw[510:512],
        )


@dataclass
class VolumeInfo:
    """Geometry of a mounted FAT volume.

    ``fat1``, ``data_area`` and (on FAT12/16) ``root_dir`` are physical sector
    numbers; on FAT32 ``root_dir`` is the root directory's first cluster.
    """

    filesystem: FatType
    start_sector: int
    sec_per_clus: int
    reserved_secs: int
    num_secs: int
    sec_per_fat: int
    root_entries: int
    num_clusters: int
    fat1: int
    root_dir: int
    data_area: int
    label: bytes = b""


class MemoryDevice:
    """A block device held in memory, addressed by 512-byte sectors."""

    def __init__(self, data: bytes | bytearray) -> None:
        if len(data) % SECTOR_SIZE:
            raise ValueError(f"image size {len(data)} is not a multiple of {SECTOR_SIZE}")
        self._data = bytearray(data)

    def __len__(self) -> int:
        return len(self._data) // SECTOR_SIZE

    def _span(self, sector: int) -> slice:
        if not 0 <= sector < len(self):
            raise MediaError(f"sector {sector} out of range for {len(self)} sectors")
        offset = sector * SECTOR_SIZE
        return slice(offset, offset + SECTOR_SIZE)

    def read_sector(self, sector: int) -> bytes:
        """Return the contents of one sector."""
        return bytes(self._data[self._span(sector)])

    def write_sector(self, sector: int, data: bytes) -> None:
        """Overwrite one sector; shorter data is padded with zeros."""
        if len(data) > SECTOR_SIZE:
            raise ValueError(f"sector data must be at most {SECTOR_SIZE} bytes")
        self._data[self._span(sector)] = bytes(data).ljust(SECTOR_SIZE, b"\0")

    def getvalue(self) -> bytes:
        """Return the whole image."""
        return bytes(self._data)