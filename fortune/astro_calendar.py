"""
Calendar utilities for the Four Pillars engine.
Handles date validation, approximate solar-term lookups,
timezone normalization, and epoch day counting.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional

import swisseph as swe

from fortune.errors import InvalidCalendarDate, InvalidTimeOfDay

logger = logging.getLogger(__name__)

# Year 4 CE was Jia Zi, the start of the 60-term cycle
EPOCH_YEAR = 4

# 1900-01-01 was a Jia Xu day (stem 0, branch 10)
DAY_EPOCH = (1900, 1, 1)
DAY_EPOCH_STEM_INDEX = 0
DAY_EPOCH_BRANCH_INDEX = 10


# ============================================================
# VALIDATION
# ============================================================

def validate_date(year: int, month: int, day: int) -> date:
    """
    Check that the date exists in the proleptic Gregorian calendar.

    Raises:
        InvalidCalendarDate: for impossible dates (Feb 30, month 13, ...)
            or years before the cycle epoch.
    """
    if year < EPOCH_YEAR:
        raise InvalidCalendarDate(f"Year {year} is before the cycle epoch year {EPOCH_YEAR}")
    try:
        return date(year, month, day)
    except (TypeError, ValueError) as exc:
        raise InvalidCalendarDate(f"{year:04d}-{month:02d}-{day:02d} is not a valid date") from exc


def validate_time(hour: int, minute: int) -> None:
    """Raises InvalidTimeOfDay unless 0 <= hour <= 23 and 0 <= minute <= 59."""
    if not 0 <= hour <= 23:
        raise InvalidTimeOfDay(f"Hour {hour} is outside 0-23")
    if not 0 <= minute <= 59:
        raise InvalidTimeOfDay(f"Minute {minute} is outside 0-59")


# ============================================================
# SOLAR TERMS (APPROXIMATE)
# ============================================================
#
# The 12 Jie (节) solar terms mark month boundaries. The day on which each
# term falls drifts by a day or two between years; here it is taken as the
# first day of a fixed range instead of being computed from the Sun.
#
# Li Chun (~Feb 4)    → solar month 1
# Jing Zhe (~Mar 5)   → solar month 2
# Qing Ming (~Apr 4)  → solar month 3
# Li Xia (~May 5)     → solar month 4
# Mang Zhong (~Jun 5) → solar month 5
# Xiao Shu (~Jul 6)   → solar month 6
# Li Qiu (~Aug 7)     → solar month 7
# Bai Lu (~Sep 7)     → solar month 8
# Han Lu (~Oct 8)     → solar month 9
# Li Dong (~Nov 7)    → solar month 10
# Da Xue (~Dec 6)     → solar month 11
# Xiao Han (~Jan 5)   → solar month 12


@dataclass(frozen=True)
class SolarTerm:
    chinese: str
    name: str
    month: int  # Gregorian month the term falls in
    day_range: tuple[int, int]  # earliest and latest day it falls on
    solar_month: int  # 1-12, solar month that starts at this term

    @property
    def boundary_day(self) -> int:
        return self.day_range[0]


SOLAR_TERMS = (
    SolarTerm("立春", "Li Chun", 2, (4, 6), 1),
    SolarTerm("惊蛰", "Jing Zhe", 3, (5, 7), 2),
    SolarTerm("清明", "Qing Ming", 4, (4, 6), 3),
    SolarTerm("立夏", "Li Xia", 5, (5, 7), 4),
    SolarTerm("芒种", "Mang Zhong", 6, (5, 7), 5),
    SolarTerm("小暑", "Xiao Shu", 7, (6, 8), 6),
    SolarTerm("立秋", "Li Qiu", 8, (7, 9), 7),
    SolarTerm("白露", "Bai Lu", 9, (7, 9), 8),
    SolarTerm("寒露", "Han Lu", 10, (8, 10), 9),
    SolarTerm("立冬", "Li Dong", 11, (7, 9), 10),
    SolarTerm("大雪", "Da Xue", 12, (6, 8), 11),
    SolarTerm("小寒", "Xiao Han", 1, (5, 7), 12),
)

SOLAR_TERM_BY_MONTH = {term.month: term for term in SOLAR_TERMS}


def solar_month(month: int, day: int) -> int:
    """
    Find the solar month (1-12) containing a Gregorian month/day.

    Every Gregorian month holds exactly one Jie term. On or after its
    boundary day the date belongs to the month that term opens; before it,
    to the previous solar month.

    Example:
        Feb 3 → 12 (still the Xiao Han month), Feb 4 → 1 (Li Chun)
    """
    term = SOLAR_TERM_BY_MONTH[month]
    if day >= term.boundary_day:
        return term.solar_month
    return (term.solar_month - 2) % 12 + 1


def solar_term_for(month: int, day: int) -> SolarTerm:
    """Return the Jie term that opened the solar month containing month/day."""
    index = solar_month(month, day)
    return SOLAR_TERMS[index - 1]


# ============================================================
# TIMEZONE NORMALIZATION
# ============================================================

REFERENCE_TIMEZONE = "Asia/Shanghai"

# Standard (non-DST) offsets in hours. Identifiers missing here fall back to
# the reference offset.
TIMEZONE_OFFSETS = {
    "Asia/Shanghai": 8.0,
    "Asia/Chongqing": 8.0,
    "Asia/Harbin": 8.0,
    "Asia/Urumqi": 6.0,
    "Asia/Hong_Kong": 8.0,
    "Asia/Macau": 8.0,
    "Asia/Taipei": 8.0,
    "Asia/Singapore": 8.0,
    "Asia/Kuala_Lumpur": 8.0,
    "Asia/Manila": 8.0,
    "Asia/Tokyo": 9.0,
    "Asia/Seoul": 9.0,
    "Asia/Bangkok": 7.0,
    "Asia/Ho_Chi_Minh": 7.0,
    "Asia/Jakarta": 7.0,
    "Asia/Kolkata": 5.5,
    "Asia/Dubai": 4.0,
    "Europe/London": 0.0,
    "Europe/Paris": 1.0,
    "Europe/Berlin": 1.0,
    "Europe/Madrid": 1.0,
    "Europe/Rome": 1.0,
    "Europe/Moscow": 3.0,
    "America/New_York": -5.0,
    "America/Toronto": -5.0,
    "America/Chicago": -6.0,
    "America/Denver": -7.0,
    "America/Los_Angeles": -8.0,
    "America/Vancouver": -8.0,
    "America/Sao_Paulo": -3.0,
    "Australia/Sydney": 10.0,
    "Australia/Melbourne": 10.0,
    "Australia/Perth": 8.0,
    "Pacific/Auckland": 12.0,
    "UTC": 0.0,
    "Etc/UTC": 0.0,
}

REFERENCE_OFFSET = TIMEZONE_OFFSETS[REFERENCE_TIMEZONE]


@dataclass(frozen=True)
class TimezoneResolution:
    """Outcome of looking up a timezone; `recognized` is False on fallback."""
    timezone: str
    offset_hours: float
    recognized: bool

    def to_dict(self) -> dict:
        return {
            "timezone": self.timezone,
            "offset_hours": self.offset_hours,
            "recognized": self.recognized,
        }


def resolve_timezone(timezone: Optional[str]) -> TimezoneResolution:
    """
    Look up the standard UTC offset for an IANA identifier.

    Unknown or empty identifiers are not an error: they resolve to the
    reference offset with recognized=False so callers can surface a warning.
    """
    name = timezone or REFERENCE_TIMEZONE
    offset = TIMEZONE_OFFSETS.get(name)
    if offset is None:
        logger.warning("Unrecognized timezone %r, assuming %s (UTC%+g)",
                       name, REFERENCE_TIMEZONE, REFERENCE_OFFSET)
        return TimezoneResolution(name, REFERENCE_OFFSET, False)
    return TimezoneResolution(name, offset, True)


def to_reference_time(local_time: datetime, resolution: TimezoneResolution) -> datetime:
    """
    Shift a naive local wall time into reference (UTC+8) wall time.

    Example:
        1990-01-01 12:00 America/New_York (UTC-5) → 1990-01-02 01:00
    """
    return local_time + timedelta(hours=REFERENCE_OFFSET - resolution.offset_hours)


# ============================================================
# DAY COUNTING
# ============================================================

def days_since_epoch(year: int, month: int, day: int) -> int:
    """
    Whole days from DAY_EPOCH to the given date (negative before it).

    Uses Julian Day Numbers on the proleptic Gregorian calendar.
    """
    jd_epoch = swe.julday(*DAY_EPOCH, 0.0)
    jd_target = swe.julday(year, month, day, 0.0)
    return int(round(jd_target - jd_epoch))


# Quick verification
if __name__ == "__main__":
    for month, day in [(1, 4), (1, 5), (2, 3), (2, 4), (12, 31)]:
        term = solar_term_for(month, day)
        print(f"{month:02d}-{day:02d} → solar month {solar_month(month, day):2d} ({term.name})")

    ny = resolve_timezone("America/New_York")
    print(f"\nNew York noon → {to_reference_time(datetime(1990, 1, 1, 12), ny)} reference time")
    print(f"Days from 1900-01-01 to 1990-01-01: {days_since_epoch(1990, 1, 1)}")
