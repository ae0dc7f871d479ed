"""
Domain: Chronos (Time)

Timezone and calendar helpers shared by the engine, the runner and the
providers. Zones are IANA names resolved with zoneinfo; unknown or empty
names fall back to UTC.

Helpers:
  - now_utc / now_in_tz: aware "now"
  - get_offset: UTC offset in minutes
  - get_dst_info: DST state and the surrounding offset transitions
  - get_day_bounds: start and end of the local day
  - add_calendar_delta: cursor arithmetic used by ChronusEngine.jump
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dateutil.relativedelta import relativedelta

ONE_DAY = timedelta(days=1)
ONE_HOUR = timedelta(hours=1)
MAX_SEARCH_DAYS = 370


def resolve_zone(tz: Optional[str]) -> tzinfo:
    if not tz:
        return timezone.utc
    try:
        return ZoneInfo(tz)
    except (ZoneInfoNotFoundError, ValueError):
        return timezone.utc


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def now_in_tz(tz: Optional[str]) -> datetime:
    return datetime.now(resolve_zone(tz))


def _as_aware(at: Optional[datetime]) -> datetime:
    if at is None:
        return now_utc()
    if at.tzinfo is None:
        return at.replace(tzinfo=timezone.utc)
    return at


def get_offset(tz: Optional[str], at: Optional[datetime] = None) -> float:
    """UTC offset of ``tz`` at instant ``at`` (default now), in minutes."""
    offset = _as_aware(at).astimezone(resolve_zone(tz)).utcoffset()
    return offset.total_seconds() / 60 if offset is not None else 0.0


@dataclass
class DstInfo:
    in_dst: bool
    offset_minutes: float
    next_transition: Optional[datetime] = None
    prev_transition: Optional[datetime] = None


def _find_transition(tz: Optional[str], ref: datetime, step: timedelta) -> Optional[datetime]:
    base = get_offset(tz, ref)
    point = ref
    for _ in range(MAX_SEARCH_DAYS):
        candidate = point + step
        if get_offset(tz, candidate) != base:
            # Bisect between the last same-offset point and the first changed one
            same, changed = point, candidate
            while abs(changed - same) > ONE_HOUR:
                mid = same + (changed - same) / 2
                if get_offset(tz, mid) == base:
                    same = mid
                else:
                    changed = mid
            return changed if step > timedelta(0) else same
        point = candidate
    return None


def get_dst_info(tz: Optional[str], at: Optional[datetime] = None) -> DstInfo:
    """
    DST state at ``at`` plus the nearest offset changes within about a year
    either side, located to one-hour resolution.
    """
    ref = _as_aware(at).astimezone(timezone.utc)
    local = ref.astimezone(resolve_zone(tz))
    dst = local.dst()
    return DstInfo(
        in_dst=bool(dst),
        offset_minutes=get_offset(tz, ref),
        next_transition=_find_transition(tz, ref, ONE_DAY),
        prev_transition=_find_transition(tz, ref, -ONE_DAY),
    )


def get_day_bounds(tz: Optional[str], day: Optional[date] = None) -> Tuple[datetime, datetime]:
    """Start (00:00) and end (23:59:59.999999) of a local day in ``tz``."""
    zone = resolve_zone(tz)
    if day is None:
        day = datetime.now(zone).date()
    elif isinstance(day, datetime):
        day = (day.astimezone(zone) if day.tzinfo else day).date()
    start = datetime.combine(day, time(0, 0), tzinfo=zone)
    end = datetime.combine(day, time(23, 59, 59, 999999), tzinfo=zone)
    return start, end


def _roll_months(at: datetime, delta: relativedelta) -> datetime:
    # Shift on day 1, then add the day count back so overflow spills into
    # the following month instead of clamping to month end.
    first = at.replace(day=1) + delta
    return first + timedelta(days=at.day - 1)


def add_calendar_delta(
    at: datetime, *, days: int = 0, weeks: int = 0, months: int = 0, years: int = 0
) -> datetime:
    """
    Apply days, weeks, months and years in that order.

    Example:
        add_calendar_delta(datetime(2024, 1, 31), months=1)  # 2024-03-02
        add_calendar_delta(datetime(2024, 2, 29), years=1)   # 2025-03-01
    """
    result = at
    if days:
        result = result + timedelta(days=days)
    if weeks:
        result = result + timedelta(weeks=weeks)
    if months:
        result = _roll_months(result, relativedelta(months=months))
    if years:
        result = _roll_months(result, relativedelta(years=years))
    return result
