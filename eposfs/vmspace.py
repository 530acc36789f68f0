"""Virtual address-space bookkeeping: allocated regions and their protection."""

from __future__ import annotations

import threading
from dataclasses import dataclass

DEFAULT_PAGE_SIZE = 4096

VM_PROT_NONE = 0x0
VM_PROT_READ = 0x1
VM_PROT_WRITE = 0x2
VM_PROT_EXEC = 0x4
VM_PROT_ALL = VM_PROT_READ | VM_PROT_WRITE | VM_PROT_EXEC


class AllocationError(Exception):
    """Raised when a virtual-memory request cannot be met."""


@dataclass
class VmZone:
    """A region of virtual addresses with one protection setting."""

    base: int
    limit: int
    protect: int

    @property
    def end(self) -> int:
        return self.base + self.limit

    def __contains__(self, va: int) -> bool:
        return self.base <= va < self.end


class VirtualMemory:
    """Tracks the allocated regions of the user and kernel address spaces.

    The kernel space starts with one region covering
    ``[user_max_addr, brk)``, which can never be freed.
    """

    def __init__(
        self,
        brk: int,
        user_min_addr: int,
        user_max_addr: int,
        kern_max_addr: int,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        if page_size <= 0 or page_size & (page_size - 1):
            raise ValueError("page size must be a positive power of two")
        if not user_min_addr <= user_max_addr <= brk <= kern_max_addr:
            raise ValueError("address limits out of order")
        self.user_min_addr = user_min_addr
        self.user_max_addr = user_max_addr
        self.kern_max_addr = kern_max_addr
        self.page_size = page_size
        self._lock = threading.Lock()
        self._kernel: list[VmZone] = [
            VmZone(base=user_max_addr, limit=brk - user_max_addr, protect=VM_PROT_ALL)
        ]
        self._user: list[VmZone] = []

    def _space(self, va: int) -> list[VmZone]:
        return self._user if va < self.user_max_addr else self._kernel

    def alloc_at(self, va: int, npages: int, prot: int) -> int:
        """Claim ``npages`` pages at virtual address ``va`` and return ``va``."""
        size = npages * self.page_size
        if npages <= 0:
            raise AllocationError("page count must be positive")
        if va & (self.page_size - 1):
            raise AllocationError(f"address {va:#010x} is not page aligned")
        if va < self.user_min_addr or va >= self.kern_max_addr or va + size > self.kern_max_addr:
            raise AllocationError(f"address {va:#010x} out of range")
        if va < self.user_max_addr and va + size > self.user_max_addr:
            raise AllocationError("region crosses the user/kernel boundary")

        with self._lock:
            zones = self._space(va)
            position = len(zones)
            for i, zone in enumerate(zones):
                if va in zone:
                    raise AllocationError(f"address {va:#010x} already in use")
                if va < zone.base:
                    if va + size > zone.base:
                        raise AllocationError(f"region at {va:#010x} overlaps another")
                    position = i
                    break
            zones.insert(position, VmZone(base=va, limit=size, protect=prot))
        return va

    def alloc(self, npages: int, prot: int, user: bool) -> int:
        """Claim ``npages`` contiguous pages in the user or kernel space.

        The search starts at the end of the first region; in an empty user
        space the region is placed at ``user_min_addr``.
        """
        size = npages * self.page_size
        if npages <= 0:
            raise AllocationError("page count must be positive")

        with self._lock:
            zones = self._user if user else self._kernel
            if not zones:
                va = self.user_min_addr
                position = 0
            else:
                va = zones[0].end
                position = len(zones)
                for i, zone in enumerate(zones[1:], start=1):
                    if va + size <= zone.base:
                        position = i
                        break
                    va = zone.end

            limit = self.user_max_addr if user else self.kern_max_addr
            if va >= limit or va + size > limit:
                raise AllocationError(f"no room for {npages} pages")
            zones.insert(position, VmZone(base=va, limit=size, protect=prot))
        return va

    def free(self, va: int, npages: int) -> None:
        """Release a region allocated earlier with exactly this start and size."""
        size = npages * self.page_size
        if npages <= 0:
            raise AllocationError("page count must be positive")
        if va == self.user_max_addr:
            raise AllocationError("the kernel image region cannot be freed")

        with self._lock:
            zones = self._space(va)
            for i, zone in enumerate(zones):
                if zone.base == va and zone.limit == size:
                    del zones[i]
                    return
        raise AllocationError(f"no region of {npages} pages at {va:#010x}")

    def prot(self, va: int) -> int | None:
        """Return the protection of the region holding ``va``, or None."""
        with self._lock:
            for zone in self._space(va):
                if va in zone:
                    return zone.protect
        return None

    def zones(self, user: bool) -> tuple[VmZone, ...]:
        """Return the regions of one address space, in address order."""
        with self._lock:
            source = self._user if user else self._kernel
            return tuple(VmZone(z.base, z.limit, z.protect) for z in source)