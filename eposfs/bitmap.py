"""Fixed-size bitmap packed into 32-bit little-endian words."""

from __future__ import annotations

ELEM_BITS = 32
"""Number of bits held by one storage word."""

ELEM_BYTES = ELEM_BITS // 8

_HEADER_BYTES = 8
"""Bytes taken by the bitmap header (bit count and storage pointer)."""


def _elem_cnt(bit_cnt: int) -> int:
    return -(-bit_cnt // ELEM_BITS)


def _byte_cnt(bit_cnt: int) -> int:
    return ELEM_BYTES * _elem_cnt(bit_cnt)


def buf_size(bit_cnt: int) -> int:
    """Return the bytes needed to hold a bitmap of ``bit_cnt`` bits with its header."""
    if bit_cnt < 0:
        raise ValueError("bit count must not be negative")
    return _HEADER_BYTES + _byte_cnt(bit_cnt)


class Bitmap:
    """An array of ``bit_cnt`` bits, all initially false."""

    __slots__ = ("_size", "_bits")

    def __init__(self, bit_cnt: int) -> None:
        if bit_cnt < 0:
            raise ValueError("bit count must not be negative")
        self._size = bit_cnt
        self._bits = 0

    def __len__(self) -> int:
        return self._size

    def __repr__(self) -> str:
        shown = "".join("1" if self.test(i) else "0" for i in range(min(self._size, 64)))
        more = "..." if self._size > 64 else ""
        return f"Bitmap({self._size}, {shown}{more})"

    # -- validation -----------------------------------------------------

    def _check_index(self, idx: int) -> None:
        if not 0 <= idx < self._size:
            raise IndexError(f"bit index {idx} out of range for {self._size} bits")

    def _check_range(self, start: int, cnt: int) -> None:
        if start < 0 or cnt < 0 or start > self._size or start + cnt > self._size:
            raise IndexError(
                f"bit range [{start}, {start + cnt}) out of range for {self._size} bits"
            )

    def _segment(self, start: int, cnt: int) -> int:
        return (self._bits >> start) & ((1 << cnt) - 1)

    # -- single bits ----------------------------------------------------

    def set(self, idx: int, value: bool) -> None:
        """Set bit ``idx`` to ``value``."""
        if value:
            self.mark(idx)
        else:
            self.reset(idx)

    def mark(self, idx: int) -> None:
        """Set bit ``idx`` to true."""
        self._check_index(idx)
        self._bits |= 1 << idx

    def reset(self, idx: int) -> None:
        """Set bit ``idx`` to false."""
        self._check_index(idx)
        self._bits &= ~(1 << idx)

    def flip(self, idx: int) -> None:
        """Toggle bit ``idx``."""
        self._check_index(idx)
        self._bits ^= 1 << idx

    def test(self, idx: int) -> bool:
        """Return the value of bit ``idx``."""
        self._check_index(idx)
        return bool(self._bits >> idx & 1)

    # -- ranges ---------------------------------------------------------

    def set_all(self, value: bool) -> None:
        """Set every bit to ``value``."""
        self.set_multiple(0, self._size, value)

    def set_multiple(self, start: int, cnt: int, value: bool) -> None:
        """Set the ``cnt`` bits starting at ``start`` to ``value``."""
        self._check_range(start, cnt)
        mask = ((1 << cnt) - 1) << start
        if value:
            self._bits |= mask
        else:
            self._bits &= ~mask

    def count(self, start: int, cnt: int, value: bool) -> int:
        """Return how many of the ``cnt`` bits from ``start`` equal ``value``."""
        self._check_range(start, cnt)
        ones = bin(self._segment(start, cnt)).count("1")
        return ones if value else cnt - ones

    def contains(self, start: int, cnt: int, value: bool) -> bool:
        """Return True if any of the ``cnt`` bits from ``start`` equals ``value``."""
        self._check_range(start, cnt)
        segment = self._segment(start, cnt)
        if value:
            return segment != 0
        return segment != (1 << cnt) - 1

    def any(self, start: int, cnt: int) -> bool:
        """Return True if any bit in the range is set."""
        return self.contains(start, cnt, True)

    def none(self, start: int, cnt: int) -> bool:
        """Return True if no bit in the range is set."""
        return not self.contains(start, cnt, True)

    def all(self, start: int, cnt: int) -> bool:
        """Return True if every bit in the range is set."""
        return not self.contains(start, cnt, False)

    # -- searching ------------------------------------------------------

    def scan(self, start: int, cnt: int, value: bool) -> int | None:
        """Return the first index at or after ``start`` of ``cnt`` consecutive
        bits equal to ``value``, or None if there is no such group."""
        if start < 0 or start > self._size:
            raise IndexError(f"start {start} out of range for {self._size} bits")
        if cnt < 0:
            raise ValueError("count must not be negative")
        if cnt <= self._size:
            for i in range(start, self._size - cnt + 1):
                if not self.contains(i, cnt, not value):
                    return i
        return None

    def scan_and_flip(self, start: int, cnt: int, value: bool) -> int | None:
        """Like :meth:`scan`, then set the group found to ``not value``."""
        idx = self.scan(start, cnt, value)
        if idx is not None:
            self.set_multiple(idx, cnt, not value)
        return idx

    # -- serialisation --------------------------------------------------

    def file_size(self) -> int:
        """Return the number of bytes needed to store the bits."""
        return _byte_cnt(self._size)

    def to_bytes(self) -> bytes:
        """Return the bits as little-endian 32-bit words."""
        return self._bits.to_bytes(self.file_size(), "little")

    @classmethod
    def from_bytes(cls, bit_cnt: int, data: bytes) -> Bitmap:
        """Build a bitmap of ``bit_cnt`` bits from stored words.

        Bits past ``bit_cnt`` in the last word are cleared.
        """
        bitmap = cls(bit_cnt)
        size = bitmap.file_size()
        if len(data) < size:
            raise ValueError(f"need {size} bytes for {bit_cnt} bits, got {len(data)}")
        bitmap._bits = int.from_bytes(bytes(data[:size]), "little") & ((1 << bit_cnt) - 1)
        return bitmap