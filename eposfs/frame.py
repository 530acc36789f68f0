"""Physical page-frame allocator over zones of RAM."""

from __future__ import annotations

import threading
from collections.abc import Iterable
from dataclasses import dataclass

from .bitmap import Bitmap, buf_size

DEFAULT_PAGE_SIZE = 4096


def _page_roundup(value: int, page_size: int) -> int:
    return -(-value // page_size) * page_size


@dataclass
class FrameZone:
    """A run of usable physical memory with a bitmap of its frames."""

    base: int
    limit: int
    bitmap: Bitmap
    meta_base: int

    def __contains__(self, paddr: int) -> bool:
        return self.base <= paddr < self.base + self.limit


class FrameAllocator:
    """Allocates contiguous physical frames from a list of RAM zones.

    Each zone gives up its leading pages to hold its own frame bitmap.
    """

    def __init__(self, ram_zones: Iterable[tuple[int, int]], page_size: int = DEFAULT_PAGE_SIZE) -> None:
        if page_size <= 0:
            raise ValueError("page size must be positive")
        self.page_size = page_size
        self._lock = threading.Lock()
        zones: list[FrameZone] = []
        for start, end in ram_zones:
            if end - start == 0:
                break
            limit = end - start
            bit_cnt = limit // page_size
            size = _page_roundup(buf_size(bit_cnt), page_size)
            if limit - size <= 0:
                continue
            zones.append(
                FrameZone(
                    base=start + size,
                    limit=limit - size,
                    bitmap=Bitmap(bit_cnt),
                    meta_base=start,
                )
            )
        self.zones: tuple[FrameZone, ...] = tuple(zones)

    def alloc_at(self, pa: int, nframes: int) -> int:
        """Claim ``nframes`` frames starting at physical address ``pa``.

        Returns ``pa``; raises MemoryError if the frames are not free.
        """
        with self._lock:
            for zone in self.zones:
                if pa not in zone:
                    continue
                idx = (pa - zone.base) // self.page_size
                try:
                    free = zone.bitmap.none(idx, nframes)
                except IndexError:
                    continue
                if free:
                    zone.bitmap.set_multiple(idx, nframes, True)
                    return pa
        raise MemoryError(f"cannot allocate {nframes} frames at {pa:#010x}")

    def alloc(self, nframes: int) -> int:
        """Claim ``nframes`` contiguous frames and return their start address.

        Raises MemoryError if no zone has room.
        """
        with self._lock:
            for zone in self.zones:
                idx = zone.bitmap.scan(0, nframes, False)
                if idx is not None:
                    zone.bitmap.set_multiple(idx, nframes, True)
                    return zone.base + idx * self.page_size
        raise MemoryError(f"cannot allocate {nframes} frames")

    def free(self, paddr: int, nframes: int) -> None:
        """Release frames claimed earlier; addresses outside every zone are ignored."""
        with self._lock:
            for zone in self.zones:
                if paddr in zone:
                    idx = (paddr - zone.base) // self.page_size
                    zone.bitmap.set_multiple(idx, nframes, False)
                    return