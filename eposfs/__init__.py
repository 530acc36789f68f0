"""FAT filesystem access over sector images, with small kernel memory-management models."""

__version__ = "0.1.0"

__all__ = ["bitmap", "clock", "frame", "vmspace", "structures", "fat", "directory", "files"]