"""Opening, reading, writing, seeking and deleting files on a FAT volume."""

from __future__ import annotations

import io

from .directory import canonical_to_dir, find_free_entry, open_dir
from .fat import (
    BAD_CLUSTER,
    FAT32_BAD_CLUSTER,
    FatTable,
    end_of_chain,
    get_partition_start,
    get_volume_info,
    is_chain_end,
)
from .structures import (
    DELETED_MARK,
    DIR_SEPARATOR,
    DIRENT_SIZE,
    MAX_PATH,
    SECTOR_SIZE,
    Attr,
    DirEntry,
    DosFsError,
    MediaError,
    NotFoundError,
    OpenMode,
    PathTooLongError,
    VolumeInfo,
)

# Timestamps stamped on newly created entries: 01:01:00, 1 January 2006.
_NEW_TIME = 0x0820
_NEW_DATE = 0x3411


def _split_path(path: str) -> tuple[str, bytes]:
    """Split ``path`` into its directory part and the 11-byte entry name."""
    if len(path) > MAX_PATH - 1:
        raise PathTooLongError(f"path longer than {MAX_PATH - 1} characters")
    trimmed = path.lstrip(DIR_SEPARATOR)
    cut = trimmed.rfind(DIR_SEPARATOR)
    if cut == -1:
        return "", canonical_to_dir(trimmed)
    return trimmed[:cut], canonical_to_dir(trimmed[cut + 1:])


class FatVolume:
    """A mounted FAT12/16/32 volume on a sector device."""

    def __init__(self, device, start_sector: int = 0) -> None:
        self.device = device
        self.info: VolumeInfo = get_volume_info(device, start_sector)

    @classmethod
    def from_partition(cls, device, pnum: int) -> FatVolume:
        """Mount the volume in partition ``pnum`` of the device's boot record."""
        return cls(device, get_partition_start(device, pnum).start)

    def _fat(self) -> FatTable:
        return FatTable(self.device, self.info)

    def _cluster_sector(self, cluster: int) -> int:
        return self.info.data_area + (cluster - 2) * self.info.sec_per_clus

    def open(self, path: str, mode: OpenMode = OpenMode.READ) -> FatFile:
        """Open the file at ``path``.

        A missing file is created when ``mode`` includes WRITE; otherwise
        NotFoundError is raised.  Directories cannot be opened.
        """
        mode = OpenMode(mode)
        dirpath, filename = _split_path(path)
        try:
            cursor = open_dir(self.device, self.info, dirpath)
        except NotFoundError:
            raise
        except DosFsError as exc:
            raise NotFoundError(f"directory {dirpath!r} could not be opened") from exc

        fs = self.info.filesystem
        for entry in cursor:
            if entry.name != filename:
                continue
            if entry.attr & Attr.DIRECTORY:
                raise NotFoundError(f"{path!r} is a directory")
            return FatFile(
                self,
                mode=mode,
                dir_sector=cursor.entry_sector(),
                dir_offset=cursor.last_index,
                first_cluster=entry.start_cluster(fs),
                size=entry.file_size,
            )

        if not mode & OpenMode.WRITE:
            raise NotFoundError(f"{path!r} not found")
        return self._create(dirpath, filename, mode)

    def _create(self, dirpath: str, filename: bytes, mode: OpenMode) -> FatFile:
        try:
            cursor = find_free_entry(self.device, self.info, dirpath)
        except DosFsError as exc:
            raise MediaError(f"no directory entry available in {dirpath!r}") from exc

        entry = DirEntry(
            name=filename,
            crt_time=_NEW_TIME,
            crt_date=_NEW_DATE,
            lst_acc_date=_NEW_DATE,
            wrt_time=_NEW_TIME,
            wrt_date=_NEW_DATE,
        )
        cluster = self._fat().find_free()
        entry.set_start_cluster(cluster)

        dir_sector = cursor.entry_sector()
        dir_offset = cursor.last_index
        block = bytearray(self.device.read_sector(dir_sector))
        start = dir_offset * DIRENT_SIZE
        block[start:start + DIRENT_SIZE] = entry.to_bytes()
        self.device.write_sector(dir_sector, bytes(block))

        self._fat().set(cluster, end_of_chain(self.info.filesystem))
        return FatFile(
            self,
            mode=mode,
            dir_sector=dir_sector,
            dir_offset=dir_offset,
            first_cluster=cluster,
            size=0,
        )

    def unlink(self, path: str) -> None:
        """Delete the file at ``path`` and free its clusters."""
        try:
            handle = self.open(path, OpenMode.READ)
        except NotFoundError:
            raise
        except DosFsError as exc:
            raise NotFoundError(f"{path!r} not found") from exc

        block = bytearray(self.device.read_sector(handle.dir_sector))
        block[handle.dir_offset * DIRENT_SIZE] = DELETED_MARK
        self.device.write_sector(handle.dir_sector, bytes(block))

        fat = self._fat()
        bad = BAD_CLUSTER[self.info.filesystem]
        cluster = handle.first_cluster
        while 2 <= cluster < bad:
            following = fat.get(cluster)
            fat.set(cluster, 0)
            cluster = following

    def listdir(self, path: str = "") -> list[DirEntry]:
        """Return the live entries of the directory at ``path``."""
        try:
            cursor = open_dir(self.device, self.info, path)
        except NotFoundError:
            raise
        except DosFsError as exc:
            raise NotFoundError(f"directory {path!r} could not be opened") from exc
        return [entry for entry in cursor if entry.name[0] != 0]


class FatFile:
    """An open file on a :class:`FatVolume`."""

    def __init__(
        self,
        volume: FatVolume,
        *,
        mode: OpenMode,
        dir_sector: int,
        dir_offset: int,
        first_cluster: int,
        size: int,
    ) -> None:
        self.volume = volume
        self.mode = OpenMode(mode)
        self.dir_sector = dir_sector
        self.dir_offset = dir_offset
        self.first_cluster = first_cluster
        self.cluster = first_cluster
        self.size = size
        self.closed = False
        self._pointer = 0

    def __repr__(self) -> str:
        return (
            f"FatFile(first_cluster={self.first_cluster}, size={self.size}, "
            f"position={self._pointer})"
        )

    @property
    def _cluster_bytes(self) -> int:
        return self.volume.info.sec_per_clus * SECTOR_SIZE

    def _check_open(self) -> None:
        if self.closed:
            raise ValueError("I/O operation on closed file")

    def _current_sector(self) -> int:
        info = self.volume.info
        within = (self._pointer % self._cluster_bytes) // SECTOR_SIZE
        return info.data_area + (self.cluster - 2) * info.sec_per_clus + within

    def _crossed_cluster(self, step: int) -> bool:
        size = self._cluster_bytes
        return (self._pointer - step) // size != self._pointer // size

    def read(self, size: int = -1) -> bytes:
        """Read up to ``size`` bytes (all remaining bytes if negative)."""
        self._check_open()
        device = self.volume.device
        fs = self.volume.info.filesystem
        available = self.size - self._pointer
        if size is None or size < 0 or size > available:
            size = available

        fat = self.volume._fat()
        chunks = []
        remain = size
        while remain:
            offset = self._pointer % SECTOR_SIZE
            step = min(SECTOR_SIZE - offset, remain)
            block = device.read_sector(self._current_sector())
            chunks.append(block[offset:offset + step])
            self._pointer += step
            remain -= step
            if self._crossed_cluster(step):
                if is_chain_end(fs, self.cluster):
                    break
                self.cluster = fat.get(self.cluster)
        return b"".join(chunks)

    def write(self, data: bytes) -> int:
        """Write ``data`` at the current position and return the bytes written.

        The file grows, cluster by cluster, as needed.
        """
        self._check_open()
        if not self.mode & OpenMode.WRITE:
            raise io.UnsupportedOperation("file not open for writing")
        device = self.volume.device
        fs = self.volume.info.filesystem
        view = memoryview(bytes(data))
        fat = self.volume._fat()

        written = 0
        while written < len(view):
            sector = self._current_sector()
            offset = self._pointer % SECTOR_SIZE
            step = min(SECTOR_SIZE - offset, len(view) - written)
            chunk = view[written:written + step]
            if offset or (step < SECTOR_SIZE and self._pointer < self.size):
                block = bytearray(device.read_sector(sector))
                block[offset:offset + step] = chunk
                device.write_sector(sector, bytes(block))
            else:
                device.write_sector(sector, bytes(chunk))

            written += step
            self._pointer += step
            self.size = max(self.size, self._pointer)

            if self._crossed_cluster(step):
                last = self.cluster
                self.cluster = fat.get(self.cluster)
                if is_chain_end(fs, self.cluster):
                    fresh = fat.find_free()
                    fat.set(last, fresh)
                    self.cluster = fresh
                    fat.set(fresh, end_of_chain(fs))

        self._store_size()
        return written

    def _store_size(self) -> None:
        device = self.volume.device
        block = bytearray(device.read_sector(self.dir_sector))
        start = self.dir_offset * DIRENT_SIZE
        entry = DirEntry.from_bytes(block[start:start + DIRENT_SIZE])
        entry.file_size = self.size & 0xFFFFFFFF
        block[start:start + DIRENT_SIZE] = entry.to_bytes()
        device.write_sector(self.dir_sector, bytes(block))

    def seek(self, offset: int) -> int:
        """Move to byte ``offset`` (clamped to the file size) and return the new position.

        If the cluster chain turns out to be broken the position is reset to 0.
        """
        self._check_open()
        if offset < 0:
            raise ValueError("negative seek position")
        if offset == self._pointer:
            return offset
        offset = min(offset, self.size)
        if offset == 0:
            self.cluster = self.first_cluster
            self._pointer = 0
            return 0
        if offset < self._pointer:
            self.cluster = self.first_cluster
            self._pointer = 0

        size = self._cluster_bytes
        current = self._pointer // size
        target = offset // size
        fat = self.volume._fat()
        while current != target:
            try:
                following = fat.get(self.cluster)
            except MediaError:
                following = FAT32_BAD_CLUSTER
            if following == FAT32_BAD_CLUSTER:
                self._pointer = 0
                self.cluster = self.first_cluster
                return 0
            self.cluster = following
            current += 1
        self._pointer = offset
        return offset

    def tell(self) -> int:
        """Return the current byte position."""
        self._check_open()
        return self._pointer

    def close(self) -> None:
        """Close the file; the directory entry is already up to date."""
        self.closed = True

    def __enter__(self) -> FatFile:
        return self

    def __exit__(self, *args) -> None:
        self.close()