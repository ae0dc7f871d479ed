"""
Civil Provider: calendar boundaries as anchors.

  daily    day:start 00:00, day:midday 12:00, day:end 23:59
  weekly   week:start Monday 00:00, week:end Sunday 23:59 (ISO week)
  monthly  month:start, month:end
  annual   year:start, year:end

Times are local to the context's ``tz`` (UTC when unset). Midday is the
12:00 wall-clock placeholder, not solar noon.
"""
from __future__ import annotations

import calendar
from datetime import date, datetime, time, timedelta, tzinfo
from typing import List

from ..kernel.registry import AnchorProvider
from ..kernel.schema import Anchor, Frame, ProviderQuery
from ..lib.chronos import resolve_zone

CIVIL_SOURCE = "chronus/civil"

START = time(0, 0)
MIDDAY = time(12, 0)
END = time(23, 59)


def _at(day: date, clock: time, zone: tzinfo) -> datetime:
    return datetime.combine(day, clock, tzinfo=zone)


class CivilProvider(AnchorProvider):
    name = CIVIL_SOURCE

    def provide(self, query: ProviderQuery) -> List[Anchor]:
        zone = resolve_zone(query.context.tz)
        today = query.cursor.astimezone(zone).date()

        if query.frame is Frame.DAILY:
            points = [
                ("day:start", "Day Start", _at(today, START, zone)),
                ("day:midday", "Midday", _at(today, MIDDAY, zone)),
                ("day:end", "Day End", _at(today, END, zone)),
            ]
        elif query.frame is Frame.WEEKLY:
            monday = today - timedelta(days=today.weekday())
            points = [
                ("week:start", "Week Start", _at(monday, START, zone)),
                ("week:end", "Week End", _at(monday + timedelta(days=6), END, zone)),
            ]
        elif query.frame is Frame.MONTHLY:
            last = calendar.monthrange(today.year, today.month)[1]
            points = [
                ("month:start", "Month Start", _at(today.replace(day=1), START, zone)),
                ("month:end", "Month End", _at(today.replace(day=last), END, zone)),
            ]
        else:
            points = [
                ("year:start", "Year Start", _at(date(today.year, 1, 1), START, zone)),
                ("year:end", "Year End", _at(date(today.year, 12, 31), END, zone)),
            ]

        return [
            Anchor(
                id=anchor_id,
                label=label,
                at=at,
                frame=query.frame,
                category="civil",
                context_id=query.context.id or "",
                source=CIVIL_SOURCE,
                priority=0,
            )
            for anchor_id, label, at in points
        ]
