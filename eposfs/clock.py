"""Conversion of broken-down calendar time to seconds since 1970."""

MINUTE = 60
HOUR = 60 * MINUTE
DAY = 24 * HOUR
YEAR = 365 * DAY

# Month start offsets, assuming a leap year; corrected below for other years.
_MONTH_OFFSETS = tuple(
    DAY * days
    for days in (
        0,
        31,
        31 + 29,
        31 + 29 + 31,
        31 + 29 + 31 + 30,
        31 + 29 + 31 + 30 + 31,
        31 + 29 + 31 + 30 + 31 + 30,
        31 + 29 + 31 + 30 + 31 + 30 + 31,
        31 + 29 + 31 + 30 + 31 + 30 + 31 + 31,
        31 + 29 + 31 + 30 + 31 + 30 + 31 + 31 + 30,
        31 + 29 + 31 + 30 + 31 + 30 + 31 + 31 + 30 + 31,
        31 + 29 + 31 + 30 + 31 + 30 + 31 + 31 + 30 + 31 + 30,
    )
)


def _trunc_div(a: int, b: int) -> int:
    q = abs(a) // abs(b)
    return q if (a >= 0) == (b >= 0) else -q


def _trunc_mod(a: int, b: int) -> int:
    return a - b * _trunc_div(a, b)


def mktime(tm_year: int, tm_mon: int, tm_mday: int, tm_hour: int, tm_min: int, tm_sec: int) -> int:
    """Return seconds since 1970-01-01 00:00:00 UTC.

    ``tm_year`` counts years since 1900 and ``tm_mon`` runs from 0 to 11.
    Every fourth year is taken as a leap year; time zones are ignored.
    """
    if not 0 <= tm_mon < 12:
        raise ValueError(f"month {tm_mon} out of range 0..11")
    year = tm_year - 70
    res = YEAR * year + DAY * _trunc_div(year + 1, 4)
    res += _MONTH_OFFSETS[tm_mon]
    if tm_mon > 1 and _trunc_mod(year + 2, 4):
        res -= DAY
    res += DAY * (tm_mday - 1)
    res += HOUR * tm_hour
    res += MINUTE * tm_min
    res += tm_sec
    return res