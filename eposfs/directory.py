"""Directory lookup, enumeration and free-entry search on a FAT volume."""

from __future__ import annotations

from collections.abc import Iterator

from .fat import BAD_CLUSTER, FatTable, end_of_chain
from .structures import (
    DELETED_MARK,
    DIR_SEPARATOR,
    DIRENT_SIZE,
    ENTRIES_PER_SECTOR,
    KANJI_MARK,
    SECTOR_SIZE,
    Attr,
    DirEntry,
    DosFsError,
    FatType,
    MediaError,
    NotFoundError,
    VolumeInfo,
)

_SEP = ord(DIR_SEPARATOR)
_NAME_LEN = 11
_EXT_START = 8


def canonical_to_dir(name: str | bytes) -> bytes:
    """Convert one 8.3 path element to its 11-byte directory-entry form.

    Conversion stops at a separator, a NUL or once 11 bytes are filled;
    lower-case ASCII letters are upper-cased.
    """
    raw = name.encode("latin-1") if isinstance(name, str) else bytes(name)
    out = bytearray(b" " * _NAME_LEN)
    pos = 0
    for ch in raw:
        if ch == 0 or ch == _SEP or pos >= _NAME_LEN:
            break
        if 0x61 <= ch <= 0x7A:
            out[pos] = ch - 0x20
            pos += 1
        elif ch == 0x2E:
            pos = _EXT_START
        else:
            out[pos] = ch
            pos += 1
    return bytes(out)


class DirectoryCursor:
    """Walks the entries of one directory, sector by sector.

    A new cursor is positioned at the start of the root directory.  When
    ``find_blank`` is set, unused entries are returned instead of ending the
    walk, so that a free slot can be located.
    """

    def __init__(self, device, volume: VolumeInfo, find_blank: bool = False) -> None:
        self.device = device
        self.volume = volume
        self.find_blank = find_blank
        self.fat = FatTable(device, volume)
        self.chain_exhausted = False
        self._finished = False
        self.current_sector = 0
        self.current_entry = 0
        if volume.filesystem == FatType.FAT32:
            self.current_cluster = volume.root_dir
        else:
            self.current_cluster = 0
        self._buf = b""
        self._read_current()

    def _cluster_sector(self, cluster: int) -> int:
        return self.volume.data_area + (cluster - 2) * self.volume.sec_per_clus

    def entry_sector(self) -> int:
        """Return the physical sector the cursor is currently in."""
        if self.current_cluster == 0:
            return self.volume.root_dir + self.current_sector
        return self._cluster_sector(self.current_cluster) + self.current_sector

    @property
    def last_index(self) -> int:
        """Index within :meth:`entry_sector` of the entry returned last."""
        return self.current_entry - 1

    def _read_current(self) -> None:
        self._buf = self.device.read_sector(self.entry_sector())

    def _enter(self, cluster: int) -> None:
        self.current_cluster = cluster
        self.current_sector = 0
        self.current_entry = 0
        self.chain_exhausted = False
        self._finished = False
        self._read_current()

    def _advance_sector(self) -> bool:
        volume = self.volume
        self.current_entry = 0
        self.current_sector += 1
        if self.current_cluster == 0:
            # The FAT12/16 root directory has a fixed size.
            if self.current_sector * ENTRIES_PER_SECTOR >= volume.root_entries:
                return False
        elif self.current_sector >= volume.sec_per_clus:
            self.current_sector = 0
            following = self.fat.get(self.current_cluster)
            if following < 2 or following >= BAD_CLUSTER[volume.filesystem]:
                self.chain_exhausted = True
                return False
            self.current_cluster = following
        self._read_current()
        return True

    def next_entry(self) -> DirEntry | None:
        """Return the next entry, or None at the end of the directory.

        Deleted entries and long-name entries come back with a first name
        byte of 0; a leading 0x05 is turned into 0xE5.  Entries used for
        '.' and '..' are returned like any other.
        """
        if self._finished:
            return None
        if self.current_entry >= ENTRIES_PER_SECTOR and not self._advance_sector():
            self._finished = True
            return None

        offset = self.current_entry * DIRENT_SIZE
        entry = DirEntry.from_bytes(self._buf[offset:offset + DIRENT_SIZE])
        first = entry.name[0]
        if first == 0:
            if self.find_blank:
                self.current_entry += 1
                return entry
            return None

        name = bytearray(entry.name)
        if first == DELETED_MARK:
            name[0] = 0
        elif self.find_blank:
            pass
        elif (entry.attr & Attr.LONG_NAME) == Attr.LONG_NAME:
            name[0] = 0
        elif first == KANJI_MARK:
            name[0] = DELETED_MARK
        entry.name = bytes(name)

        self.current_entry += 1
        return entry

    def __iter__(self) -> Iterator[DirEntry]:
        while (entry := self.next_entry()) is not None:
            yield entry


def open_dir(device, volume: VolumeInfo, path: str) -> DirectoryCursor:
    """Return a cursor at the start of the directory named by ``path``.

    An empty path or a lone separator means the root directory.
    Raises NotFoundError if a component is missing or is not a directory.
    """
    cursor = DirectoryCursor(device, volume)
    if path == "" or path == DIR_SEPARATOR:
        return cursor

    for component in (part for part in path.split(DIR_SEPARATOR) if part):
        target = canonical_to_dir(component)
        for entry in cursor:
            if entry.name == target:
                break
        else:
            raise NotFoundError(f"{component!r} not found in {path!r}")
        if not entry.attr & Attr.DIRECTORY:
            raise NotFoundError(f"{component!r} in {path!r} is not a directory")
        cluster = entry.start_cluster(volume.filesystem)
        if cluster < 2:
            raise NotFoundError(f"{component!r} in {path!r} has no directory cluster")
        cursor._enter(cluster)

    if cursor.current_cluster == 0:
        raise NotFoundError(f"directory {path!r} not found")
    return cursor


def _extend(cursor: DirectoryCursor) -> None:
    device = cursor.device
    volume = cursor.volume
    fat = cursor.fat
    new = fat.find_free()
    zero = bytes(SECTOR_SIZE)
    first = volume.data_area + (new - 2) * volume.sec_per_clus
    for i in range(volume.sec_per_clus):
        device.write_sector(first + i, zero)
    fat.set(cursor.current_cluster, new)
    fat.set(new, end_of_chain(volume.filesystem))
    cursor.current_cluster = new
    cursor.current_sector = 0
    cursor.current_entry = 1
    cursor._buf = zero
    cursor.chain_exhausted = False
    cursor._finished = False


def find_free_entry(device, volume: VolumeInfo, path: str) -> DirectoryCursor:
    """Locate an unused entry in the directory ``path``.

    The returned cursor is positioned so that the free slot is entry
    ``cursor.last_index`` of sector ``cursor.entry_sector()``.  A full
    subdirectory is extended by one zeroed cluster; a full fixed-size root
    directory raises MediaError.
    """
    try:
        cursor = open_dir(device, volume, path)
    except NotFoundError:
        raise
    except DosFsError as exc:
        raise NotFoundError(f"directory {path!r} could not be opened") from exc

    cursor.find_blank = True
    while True:
        entry = cursor.next_entry()
        if entry is not None:
            if entry.name[0] == 0:
                return cursor
            continue
        if not cursor.chain_exhausted:
            raise MediaError(f"directory {path!r} has no free entry")
        _extend(cursor)
        return cursor