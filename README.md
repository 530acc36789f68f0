# eposfs

A small, dependency-free library for reading and writing FAT12, FAT16 and
FAT32 volumes held as sector images, together with a few building blocks
from a teaching kernel: a bit map, a physical frame allocator, a virtual
address-space zone allocator and a kernel-style `mktime`.

## Installing

```
pip install .
```

## Working with a FAT image

```python
from eposfs.structures import MemoryDevice, OpenMode
from eposfs.files import FatVolume

with open("disk.img", "rb") as fh:
    device = MemoryDevice(fh.read())

# Image with a master boot record: mount the first partition.
volume = FatVolume.from_partition(device, 0)
# Image that starts directly with the boot record:
# volume = FatVolume(device, 0)

for entry in volume.listdir("/"):
    print(entry.name, entry.file_size)

with volume.open("DOCS/README.TXT", OpenMode.READ) as f:
    print(f.read(1024))

with volume.open("NEW.TXT", OpenMode.WRITE) as f:
    f.write(b"hello\n")

volume.unlink("OLD.TXT")

with open("disk.img", "wb") as fh:
    fh.write(device.getvalue())
```

Names are 8.3 and upper-cased on lookup; `/` separates directories.
Opening a missing file with `OpenMode.WRITE` creates it. An open
`FatFile` offers `read`, `write`, `seek`, `tell` and `close`, and works as
a context manager; `seek` clamps the position to the file size.

Failures raise `NotFoundError`, `PathTooLongError` or `MediaError`, all
subclasses of `DosFsError`. Writing to a file opened read-only raises
`io.UnsupportedOperation`.

`MemoryDevice` keeps the image in memory; any object with
`read_sector(sector)` and `write_sector(sector, data)` methods working on
512-byte sectors can be used in its place.

Lower-level access is available too: `eposfs.fat` reads partition tables
and boot records (`get_partition_start`, `get_volume_info`) and offers
`FatTable` for reading and writing cluster chains; `eposfs.directory`
offers `canonical_to_dir`, `open_dir`, `find_free_entry` and
`DirectoryCursor` for walking directory entries; `eposfs.structures` holds
the on-disk record types (`DirEntry`, `PartitionEntry`, `BootRecord`) and
`VolumeInfo`.

## Other pieces

```python
from eposfs.bitmap import Bitmap
from eposfs.frame import FrameAllocator
from eposfs.vmspace import VirtualMemory, VM_PROT_READ
from eposfs.clock import mktime

bits = Bitmap(64)
start = bits.scan_and_flip(0, 8, False)   # 0; bits 0..7 are now set

frames = FrameAllocator([(0x100000, 0x400000)], 4096)
paddr = frames.alloc(4)                   # MemoryError when no room
frames.free(paddr, 4)

vm = VirtualMemory(0xC0400000, 0x1000, 0xC0000000, 0xFFC00000)
va = vm.alloc(2, VM_PROT_READ, True)      # AllocationError when no room
assert vm.prot(va) == VM_PROT_READ
vm.free(va, 2)

seconds = mktime(100, 0, 1, 0, 0, 0)      # 2000-01-01 00:00:00 -> 946684800
```

## What it does not do

- It has no command-line tool; it is a library only.
- It does not format new volumes, create directories or read long file
  names: long-name entries are skipped by `listdir`.
- New files get a fixed timestamp (01:01:00, 1 January 2006).
- The memory pieces only keep books on addresses; they do not touch real
  memory or page tables.

## Running the tests

```
pip install .[test]
pytest
```