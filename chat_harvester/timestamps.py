# timestamps.py
# Helpers for the raw, locale-dependent message timestamps, e.g.
#   "19:33, 23.1.2026"    (day.month.year)
#   "7:33 PM, 1/23/2026"  (month/day/year)
#
# The field order is not fixed, so a date is kept as the raw (first, second[, year]) numbers and
# every comparison tries both DD.MM and MM.DD, using the 1-12 month range to discard
# impossible readings.

import re
from dataclasses import dataclass
from datetime import date
from typing import List, Optional, Tuple

_DATE_RE = re.compile(r"(\d{1,2})[./](\d{1,2})(?:[./](\d{2,4}))?")
_TIME_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})(?:\s*([AaPp])\.?\s*[Mm]\.?)?")
_SHOWN_TIME_RE = re.compile(r"^(\d{1,2}:\d{2}(?:\s*[AaPp]\.?\s*[Mm]\.?)?)")
_PREFIX_RE = re.compile(r"\[(.*?)\] (.*?):")
_BRACKET_RE = re.compile(r"\[(.*?)\]")


@dataclass(frozen=True)
class RawDate:
    first: int
    second: int
    year: Optional[int] = None

    def readings(self) -> List[date]:
        """Every valid calendar reading (DD.MM first, then MM.DD)."""
        out: List[date] = []
        year = self.year or 2000  # leap year, so 29.02 stays valid without a year
        for day, month in ((self.first, self.second), (self.second, self.first)):
            try:
                d = date(year, month, day)
            except ValueError:
                continue
            if d not in out:
                out.append(d)
        return out


def split_prefix(prefix: Optional[str]) -> Tuple[str, Optional[str]]:
    """'[19:33, 23.1.2026] Dana: ' -> ('19:33, 23.1.2026', 'Dana'); sender None if absent."""
    if not prefix:
        return "", None
    m = _PREFIX_RE.search(prefix)
    if m:
        return m.group(1).strip(), m.group(2).strip()
    m = _BRACKET_RE.search(prefix)
    if m:
        return m.group(1).strip(), None
    return "", None


def extract_date(raw_timestamp: Optional[str]) -> Optional[RawDate]:
    if not raw_timestamp:
        return None
    parts = raw_timestamp.split(", ")
    date_part = parts[1].strip() if len(parts) > 1 else raw_timestamp
    m = _DATE_RE.search(date_part)
    if not m:
        return None
    year = None
    if m.group(3):
        year = int(m.group(3))
        if year < 100:
            year += 2000
    return RawDate(int(m.group(1)), int(m.group(2)), year)


def _in_year(d: date, year: int) -> Optional[date]:
    try:
        return d.replace(year=year)
    except ValueError:  # 29.02 outside a leap year
        return None


def _comparable(raw: RawDate, reference: date) -> List[date]:
    if raw.year is not None:
        return raw.readings()
    # No year in the raw string: the most recent such day on or before the reference day, so
    # "20.12" seen in early January lands in the previous year.
    out = []
    for d in raw.readings():
        this_year = _in_year(d, reference.year)
        if this_year is not None and this_year <= reference:
            out.append(this_year)
            continue
        last_year = _in_year(d, reference.year - 1)
        if last_year is not None:
            out.append(last_year)
    return out


def resolve_reading(raw: Optional[RawDate], reference: date) -> Optional[date]:
    """
    Pick one calendar reading for ordering: the reference day if it is a reading, else the
    latest reading not after it, else the earliest reading.
    """
    if raw is None:
        return None
    readings = _comparable(raw, reference)
    if not readings:
        return None
    if reference in readings:
        return reference
    not_after = [d for d in readings if d <= reference]
    return max(not_after) if not_after else min(readings)


def is_reference_day(raw: Optional[RawDate], reference: date) -> bool:
    if raw is None:
        return False
    return reference in _comparable(raw, reference)


def is_before_reference(raw: Optional[RawDate], reference: date) -> bool:
    """
    True when the date is strictly before the reference day under some reading and is not the
    reference day under any reading. Unparseable dates are never "before".
    """
    if raw is None:
        return False
    readings = _comparable(raw, reference)
    if reference in readings:
        return False
    return any(d < reference for d in readings)


def time_key(raw_timestamp: Optional[str]) -> str:
    """Zero-padded 24h 'HH:MM' from the start of the timestamp; the raw string if there is none."""
    if not raw_timestamp:
        return ""
    m = _TIME_RE.match(raw_timestamp)
    if not m:
        return raw_timestamp.strip()
    hour, minute = int(m.group(1)), int(m.group(2))
    meridiem = (m.group(3) or "").lower()
    if meridiem == "p" and hour < 12:
        hour += 12
    elif meridiem == "a" and hour == 12:
        hour = 0
    return f"{hour:02d}:{minute:02d}"


def time_prefix(raw_timestamp: Optional[str]) -> Optional[str]:
    """The time exactly as rendered at the start of the timestamp ('19:33', '7:33 PM')."""
    if not raw_timestamp:
        return None
    m = _SHOWN_TIME_RE.match(raw_timestamp.strip())
    return m.group(1) if m else None
