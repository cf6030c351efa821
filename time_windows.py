"""
Calendar / mail time windows
- Computes UTC bounds for local calendar days in an explicit IANA zone
- Resolves DST state + EST/EDT-style labels for display
- Formats instants for JSON responses and LLM prompts (label appended by callers)
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Dict, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

# -----------------------------------------------------------------------------
# Errors
# -----------------------------------------------------------------------------
class TimeWindowError(ValueError):
    """Base class for window/zone input errors."""


class InvalidTimeZone(TimeWindowError):
    def __init__(self, zone_id):
        super().__init__(f"Unknown time zone: {zone_id!r}")
        self.zone_id = zone_id


class UnsupportedZoneLabel(TimeWindowError):
    def __init__(self, zone_id):
        super().__init__(f"No standard/daylight abbreviation known for {zone_id!r}")
        self.zone_id = zone_id


class InvalidRange(TimeWindowError):
    def __init__(self, days):
        super().__init__(f"Day range must be a whole number of days >= 0 within the calendar, got {days!r}")
        self.days = days


# -----------------------------------------------------------------------------
# Types
# -----------------------------------------------------------------------------
class DisplayStyle(enum.Enum):
    DATE_ONLY = "date"
    TIME_ONLY = "time"
    DATE_AND_TIME = "datetime"
    WEEKDAY_AND_TIME = "weekday"
    FULL = "full"


@dataclass(frozen=True)
class DateWindow:
    start: datetime
    end: datetime
    zone: str
    label: str

    def iso_bounds(self) -> Tuple[str, str]:
        return to_iso_z(self.start), to_iso_z(self.end)

    def as_dict(self) -> Dict[str, str]:
        start, end = self.iso_bounds()
        return {"start": start, "end": end, "timeZone": self.zone, "label": self.label}


# Abbreviations (standard, daylight) for zones users actually pick.
# Zones missing here are still labelled when the tz database has alphabetic
# names for them (Europe/Vienna -> CET/CEST); UnsupportedZoneLabel is raised
# only when it has numeric placeholders such as "-03".
ZONE_ABBREVIATIONS: Dict[str, Tuple[str, str]] = {
    "America/New_York": ("EST", "EDT"),
    "America/Detroit": ("EST", "EDT"),
    "America/Toronto": ("EST", "EDT"),
    "America/Chicago": ("CST", "CDT"),
    "America/Winnipeg": ("CST", "CDT"),
    "America/Denver": ("MST", "MDT"),
    "America/Edmonton": ("MST", "MDT"),
    "America/Phoenix": ("MST", "MST"),
    "America/Los_Angeles": ("PST", "PDT"),
    "America/Vancouver": ("PST", "PDT"),
    "America/Anchorage": ("AKST", "AKDT"),
    "America/Halifax": ("AST", "ADT"),
    "America/St_Johns": ("NST", "NDT"),
    "Pacific/Honolulu": ("HST", "HST"),
    "Europe/London": ("GMT", "BST"),
    "Europe/Dublin": ("GMT", "IST"),
    "Europe/Lisbon": ("WET", "WEST"),
    "Europe/Paris": ("CET", "CEST"),
    "Europe/Berlin": ("CET", "CEST"),
    "Europe/Madrid": ("CET", "CEST"),
    "Europe/Rome": ("CET", "CEST"),
    "Europe/Amsterdam": ("CET", "CEST"),
    "Europe/Athens": ("EET", "EEST"),
    "Europe/Helsinki": ("EET", "EEST"),
    "Asia/Kolkata": ("IST", "IST"),
    "Asia/Tokyo": ("JST", "JST"),
    "Asia/Shanghai": ("CST", "CST"),
    "Australia/Sydney": ("AEST", "AEDT"),
    "Australia/Melbourne": ("AEST", "AEDT"),
    "Australia/Brisbane": ("AEST", "AEST"),
    "Australia/Adelaide": ("ACST", "ACDT"),
    "Australia/Perth": ("AWST", "AWST"),
    "Pacific/Auckland": ("NZST", "NZDT"),
    "UTC": ("UTC", "UTC"),
    "Etc/UTC": ("UTC", "UTC"),
}

_END_OF_DAY = time(23, 59, 59, 999000)

# English names; strftime's %a/%b/%p follow the process locale
_WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")
_MONTHS = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)


# -----------------------------------------------------------------------------
# Zone helpers
# -----------------------------------------------------------------------------
def resolve_zone(zone_id: str) -> ZoneInfo:
    if not isinstance(zone_id, str) or not zone_id.strip():
        raise InvalidTimeZone(zone_id)
    try:
        return ZoneInfo(zone_id)
    except (ZoneInfoNotFoundError, ValueError, OSError):
        raise InvalidTimeZone(zone_id) from None


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(instant: datetime) -> datetime:
    # naive instants are taken as UTC (Graph and the DB both store UTC)
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)


def _reference_offsets(year: int, tz: ZoneInfo) -> Tuple[timedelta, timedelta]:
    jan = datetime(year, 1, 1, tzinfo=tz).utcoffset()
    jul = datetime(year, 7, 1, tzinfo=tz).utcoffset()
    return jan, jul


def to_iso_z(instant: datetime) -> str:
    """UTC ISO-8601 with millisecond precision, e.g. 2025-01-15T05:00:00.000Z"""
    return _as_utc(instant).isoformat(timespec="milliseconds").replace("+00:00", "Z")


# -----------------------------------------------------------------------------
# DST state + labels
# -----------------------------------------------------------------------------
def is_daylight_saving(instant: datetime, zone: str) -> bool:
    """
    Jan 1 vs Jul 1 heuristic: the reference offset further behind UTC is
    standard time; any other offset observed at `instant` is daylight time.
    Only meaningful for zones with a single annual DST pair.
    """
    tz = resolve_zone(zone)
    local = _as_utc(instant).astimezone(tz)
    jan, jul = _reference_offsets(local.year, tz)
    if jan == jul:
        return False
    return local.utcoffset() != min(jan, jul)


def _abbreviations(zone: str, tz: ZoneInfo, year: int) -> Tuple[str, str]:
    known = ZONE_ABBREVIATIONS.get(zone)
    if known:
        return known

    jan_dt = datetime(year, 1, 1, tzinfo=tz)
    jul_dt = datetime(year, 7, 1, tzinfo=tz)
    if jan_dt.utcoffset() <= jul_dt.utcoffset():
        std, dst = jan_dt.tzname(), jul_dt.tzname()
    else:
        std, dst = jul_dt.tzname(), jan_dt.tzname()

    # tzdata uses "+03"-style placeholders where no abbreviation exists
    for name in (std, dst):
        if not name or not name[0].isalpha():
            raise UnsupportedZoneLabel(zone)
    return std, dst


def timezone_label(instant: datetime, zone: str) -> str:
    tz = resolve_zone(zone)
    local = _as_utc(instant).astimezone(tz)
    std, dst = _abbreviations(zone, tz, local.year)
    return dst if is_daylight_saving(instant, zone) else std


# -----------------------------------------------------------------------------
# Windows
# -----------------------------------------------------------------------------
def _local_date(reference_now: datetime, tz: ZoneInfo) -> date:
    return _as_utc(reference_now).astimezone(tz).date()


def _bounds_for(civil_date: date, tz: ZoneInfo) -> Tuple[datetime, datetime]:
    # each bound takes the offset in force at its own local moment
    start = datetime.combine(civil_date, time.min, tzinfo=tz).astimezone(timezone.utc)
    end = datetime.combine(civil_date, _END_OF_DAY, tzinfo=tz).astimezone(timezone.utc)
    return start, end


def _check_whole_days(days) -> None:
    # bool is an int subclass; floats would be truncated silently
    if isinstance(days, bool) or not isinstance(days, int):
        raise InvalidRange(days)


def day_window(zone: str, day_offset: int = 0, reference_now: Optional[datetime] = None) -> DateWindow:
    """Local day `today + day_offset` in `zone`, as UTC [00:00:00.000, 23:59:59.999]."""
    _check_whole_days(day_offset)
    tz = resolve_zone(zone)
    now = reference_now if reference_now is not None else utc_now()
    try:
        target = _local_date(now, tz) + timedelta(days=day_offset)
        start, end = _bounds_for(target, tz)
    except OverflowError:
        raise InvalidRange(day_offset) from None
    return DateWindow(start=start, end=end, zone=zone, label=timezone_label(start, zone))


def window_for_date(zone: str, civil_date: date, reference_now: Optional[datetime] = None) -> DateWindow:
    tz = resolve_zone(zone)
    now = reference_now if reference_now is not None else utc_now()
    return day_window(zone, (civil_date - _local_date(now, tz)).days, now)


def range_window(zone: str, days: int, reference_now: Optional[datetime] = None) -> DateWindow:
    """From local midnight today through the end of the local day `days` days ahead."""
    _check_whole_days(days)
    if days < 0:
        raise InvalidRange(days)
    now = reference_now if reference_now is not None else utc_now()
    first = day_window(zone, 0, now)
    last = day_window(zone, days, now)
    return DateWindow(start=first.start, end=last.end, zone=zone, label=first.label)


def trailing_window(zone: str, days: int, reference_now: Optional[datetime] = None) -> DateWindow:
    """From local midnight `days` days ago through the end of today."""
    _check_whole_days(days)
    if days < 0:
        raise InvalidRange(days)
    now = reference_now if reference_now is not None else utc_now()
    first = day_window(zone, -days, now)
    last = day_window(zone, 0, now)
    return DateWindow(start=first.start, end=last.end, zone=zone, label=first.label)


# -----------------------------------------------------------------------------
# Display formatting
# -----------------------------------------------------------------------------
def _clock(local: datetime) -> str:
    hour = local.hour % 12 or 12
    return f"{hour}:{local.minute:02d} {'AM' if local.hour < 12 else 'PM'}"


def format_local_time(instant: datetime, zone: str, style: DisplayStyle = DisplayStyle.DATE_AND_TIME) -> str:
    """
    Render `instant` in `zone` local fields. Never appends the zone label;
    callers add timezone_label() for the same instant.
    """
    tz = resolve_zone(zone)
    local = _as_utc(instant).astimezone(tz)
    day = f"{local.month}/{local.day}/{local.year}"

    if style is DisplayStyle.DATE_ONLY:
        return day
    if style is DisplayStyle.TIME_ONLY:
        return _clock(local)
    if style is DisplayStyle.DATE_AND_TIME:
        return f"{day}, {_clock(local)}"
    weekday, month = _WEEKDAYS[local.weekday()], _MONTHS[local.month - 1]
    if style is DisplayStyle.WEEKDAY_AND_TIME:
        return f"{weekday[:3]}, {month[:3]} {local.day}, {_clock(local)}"
    if style is DisplayStyle.FULL:
        return f"{weekday}, {month} {local.day}, {local.year} at {_clock(local)}"
    raise ValueError(f"Unknown display style: {style!r}")


def format_with_label(instant: datetime, zone: str, style: DisplayStyle = DisplayStyle.DATE_AND_TIME) -> str:
    return f"{format_local_time(instant, zone, style)} {timezone_label(instant, zone)}"
