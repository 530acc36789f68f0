"""Partition table, boot sector and file allocation table access."""

from __future__ import annotations

from .structures import (
    PARTITION_COUNT,
    PARTITION_ENTRY_SIZE,
    PARTITION_TABLE_OFFSET,
    SECTOR_SIZE,
    BootRecord,
    FatType,
    MediaError,
    PartitionEntry,
    VolumeInfo,
)

FAT32_BAD_CLUSTER = 0x0FFFFFF7
"""Bad-cluster marker of FAT32, also used as a general 'no cluster' value."""

BAD_CLUSTER = {
    FatType.FAT12: 0xFF7,
    FatType.FAT16: 0xFFF7,
    FatType.FAT32: 0x0FFFFFF7,
}
"""Bad-cluster marker per FAT type; values at or above it end a directory chain."""

END_OF_CHAIN = {
    FatType.FAT12: 0xFF8,
    FatType.FAT16: 0xFFF8,
    FatType.FAT32: 0x0FFFFFF8,
}

_ENTRY_MASK = {
    FatType.FAT12: 0xFFF,
    FatType.FAT16: 0xFFFF,
    FatType.FAT32: 0x0FFFFFFF,
}

_FAT12_LIMIT = 4085
_FAT16_LIMIT = 65525


def end_of_chain(fat_type: FatType) -> int:
    """Return the value that marks the last cluster of a chain."""
    return END_OF_CHAIN[FatType(fat_type)]


def is_chain_end(fat_type: FatType, cluster: int) -> bool:
    """Return True if ``cluster`` is an end-of-chain marker for ``fat_type``."""
    return cluster >= END_OF_CHAIN[FatType(fat_type)]


def get_partition_start(device, pnum: int) -> PartitionEntry:
    """Read the master boot record and return partition ``pnum`` (0 to 3).

    The entry's ``start`` is the first sector of the partition.
    """
    if not 0 <= pnum < PARTITION_COUNT:
        raise ValueError(f"partition number {pnum} out of range 0..{PARTITION_COUNT - 1}")
    mbr = device.read_sector(0)
    offset = PARTITION_TABLE_OFFSET + pnum * PARTITION_ENTRY_SIZE
    return PartitionEntry.from_bytes(mbr[offset:offset + PARTITION_ENTRY_SIZE])


def get_volume_info(device, start_sector: int) -> VolumeInfo:
    """Read the boot sector at ``start_sector`` and work out the volume's layout."""
    boot = BootRecord.from_bytes(device.read_sector(start_sector))
    if boot.sec_per_clus == 0:
        raise MediaError(f"sector {start_sector} does not hold a FAT boot record")

    num_secs = boot.small_sectors or boot.large_sectors

    if boot.sec_per_fat16:
        sec_per_fat = boot.sec_per_fat16
        label = boot.label
    else:
        sec_per_fat = boot.fat_size32
        label = boot.label32

    root_entries = boot.root_entries
    fat1 = start_sector + boot.reserved_secs

    if root_entries:
        root_dir = fat1 + sec_per_fat * 2
        data_area = root_dir + (root_entries * 32 + SECTOR_SIZE - 1) // SECTOR_SIZE
    else:
        data_area = fat1 + sec_per_fat * 2
        root_dir = boot.root_cluster

    num_clusters = ((num_secs - data_area) & 0xFFFFFFFF) // boot.sec_per_clus
    if num_clusters < _FAT12_LIMIT:
        filesystem = FatType.FAT12
    elif num_clusters < _FAT16_LIMIT:
        filesystem = FatType.FAT16
    else:
        filesystem = FatType.FAT32

    return VolumeInfo(
        filesystem=filesystem,
        start_sector=start_sector,
        sec_per_clus=boot.sec_per_clus,
        reserved_secs=boot.reserved_secs,
        num_secs=num_secs,
        sec_per_fat=sec_per_fat,
        root_entries=root_entries,
        num_clusters=num_clusters,
        fat1=fat1,
        root_dir=root_dir,
        data_area=data_area,
        label=bytes(label),
    )


class FatTable:
    """Reads and writes entries of a volume's allocation table.

    The sector last read is cached; every change is written to the first
    table and mirrored into the second.
    """

    def __init__(self, device, volume: VolumeInfo) -> None:
        self.device = device
        self.volume = volume
        self._sector: int | None = None
        self._buf = bytearray(SECTOR_SIZE)

    def _byte_offset(self, cluster: int) -> int:
        fs = self.volume.filesystem
        if fs == FatType.FAT12:
            return cluster + cluster // 2
        if fs == FatType.FAT16:
            return cluster * 2
        return cluster * 4

    def _load(self, sector: int) -> None:
        if sector == self._sector:
            return
        try:
            data = self.device.read_sector(sector)
        except Exception:
            self._sector = None
            raise
        self._buf = bytearray(data)
        self._sector = sector

    def _store(self) -> None:
        data = bytes(self._buf)
        self.device.write_sector(self._sector, data)
        self.device.write_sector(self._sector + self.volume.sec_per_fat, data)

    def get(self, cluster: int) -> int:
        """Return the table entry for ``cluster``."""
        if cluster < 0:
            raise ValueError("cluster number must not be negative")
        fs = self.volume.filesystem
        offset = self._byte_offset(cluster)
        sector = offset // SECTOR_SIZE + self.volume.fat1
        offset %= SECTOR_SIZE
        self._load(sector)

        if fs == FatType.FAT12:
            if offset == SECTOR_SIZE - 1:
                low = self._buf[offset]
                self._load(sector + 1)
                value = low | self._buf[0] << 8
            else:
                value = int.from_bytes(self._buf[offset:offset + 2], "little")
            return value >> 4 if cluster & 1 else value & 0xFFF
        if fs == FatType.FAT16:
            return int.from_bytes(self._buf[offset:offset + 2], "little")
        return int.from_bytes(self._buf[offset:offset + 4], "little") & 0x0FFFFFFF

    def set(self, cluster: int, value: int) -> None:
        """Store ``value`` (masked to the entry width) as the entry for ``cluster``."""
        if cluster < 0:
            raise ValueError("cluster number must not be negative")
        fs = self.volume.filesystem
        value &= _ENTRY_MASK[fs]
        offset = self._byte_offset(cluster)
        sector = offset // SECTOR_SIZE + self.volume.fat1
        offset %= SECTOR_SIZE
        self._load(sector)
        buf = self._buf

        if fs == FatType.FAT12:
            odd = cluster & 1
            if odd:
                value <<= 4
                first = (buf[offset] & 0x0F) | (value & 0xF0)
            else:
                first = value & 0xFF
            high = (value >> 8) & 0xFF

            if offset == SECTOR_SIZE - 1:
                buf[offset] = first
                self._store()
                self._load(sector + 1)
                buf = self._buf
                buf[0] = high if odd else (buf[0] & 0xF0) | (high & 0x0F)
                self._store()
            else:
                buf[offset] = first
                buf[offset + 1] = high if odd else (buf[offset + 1] & 0xF0) | (high & 0x0F)
                self._store()
        elif fs == FatType.FAT16:
            buf[offset:offset + 2] = value.to_bytes(2, "little")
            self._store()
        else:
            # The top four bits of a FAT32 entry are reserved and kept as found.
            buf[offset:offset + 3] = (value & 0xFFFFFF).to_bytes(3, "little")
            buf[offset + 3] = (buf[offset + 3] & 0xF0) | (value >> 24)
            self._store()

    def find_free(self) -> int:
        """Return the first unused cluster, searching from cluster 2.

        Raises MediaError if the volume is full.
        """
        for cluster in range(2, self.volume.num_clusters):
            if self.get(cluster) == 0:
                return cluster
        raise MediaError("no free cluster on the volume")