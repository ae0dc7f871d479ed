"""
Runner: anchors synthesized from step templates.

    build_single_run(...)     one run starting at a given instant
    build_recurring_run(...)  one run per daily slot / minute cadence

Both are pure: they return anchors and leave publishing to the caller
(usually ChronusEngine.upsert_anchors or a small provider).

Anchor ids look like ``run:{run_id}:step:{step_id}:{YYYYMMDDTHHMM}`` so the
same run instantiated on different days never collides. Every anchor has
category "run" and source "chronus/runner".
"""
from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..kernel.schema import Anchor, Frame, SequenceStep, to_timestamp
from .chronos import now_utc, resolve_zone

RUN_CATEGORY = "run"
RUN_SOURCE = "chronus/runner"
DEFAULT_PRIORITY = -1
DEFAULT_HORIZON_DAYS = 7

_HHMM = re.compile(r"^(\d{1,2}):(\d{2})$")

StepLike = Union[SequenceStep, Mapping[str, Any]]


class RecurrencePattern(BaseModel):
    """
    When a recurring run is instantiated.

    daily_at      "HH:MM", one instantiation per day at that local time
    every_minutes cadence from 00:00 through 23:59 of each day
    start_date    first day of the horizon (default: now)
    tz            IANA zone for the local times (default: start_date's zone)
    """

    model_config = ConfigDict(populate_by_name=True)

    daily_at: Optional[str] = Field(default=None, alias="dailyAt")
    every_minutes: Optional[int] = Field(default=None, alias="everyMinutes")
    start_date: Optional[datetime] = Field(default=None, alias="startDate")
    tz: Optional[str] = None

    @field_validator("daily_at")
    @classmethod
    def _check_daily_at(cls, value: Optional[str]) -> Optional[str]:
        if value is not None:
            parse_hhmm(value)
        return value

    @field_validator("start_date", mode="before")
    @classmethod
    def _normalize_start(cls, value: Any) -> Any:
        return to_timestamp(value) if value is not None else None


def parse_hhmm(value: str) -> Tuple[int, int]:
    match = _HHMM.match(value.strip())
    if not match:
        raise ValueError(f"Expected HH:MM, got {value!r}")
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        raise ValueError(f"Time out of range: {value!r}")
    return hour, minute


def _coerce_steps(steps: Iterable[StepLike]) -> List[SequenceStep]:
    return [s if isinstance(s, SequenceStep) else SequenceStep.model_validate(s) for s in steps]


def run_anchor_id(run_id: str, step_id: str, at: datetime) -> str:
    return f"run:{run_id}:step:{step_id}:{at:%Y%m%dT%H%M}"


def _instantiate(
    base: datetime,
    steps: List[SequenceStep],
    *,
    run_id: str,
    label: Optional[str],
    context_id: Optional[str],
    frame: Frame,
    priority: int,
    recurring: bool,
) -> List[Anchor]:
    anchors = []
    for step in steps:
        at = base + timedelta(milliseconds=step.offset_ms or 0)
        meta: Dict[str, Any] = {
            "run_id": run_id,
            "run_label": label,
            "duration_ms": step.duration_ms or 0,
        }
        if recurring:
            meta["recurring"] = True
        anchors.append(
            Anchor(
                id=run_anchor_id(run_id, step.id, at),
                label=step.label or step.id,
                at=at,
                frame=frame,
                category=RUN_CATEGORY,
                context_id=context_id or "",
                source=RUN_SOURCE,
                priority=priority,
                meta=meta,
            )
        )
    return anchors


def build_single_run(
    *,
    run_id: str,
    start_at: Any,
    steps: Iterable[StepLike],
    label: Optional[str] = None,
    context_id: Optional[str] = None,
    frame: Union[Frame, str] = Frame.DAILY,
    priority: int = DEFAULT_PRIORITY,
) -> List[Anchor]:
    """One anchor per step at ``start_at + offset``, sorted by time."""
    anchors = _instantiate(
        to_timestamp(start_at),
        _coerce_steps(steps),
        run_id=run_id,
        label=label,
        context_id=context_id,
        frame=Frame.coerce(frame),
        priority=priority,
        recurring=False,
    )
    anchors.sort(key=lambda a: a.at)
    return anchors


def _day_slots(day: date, zone: tzinfo, pattern: RecurrencePattern) -> List[datetime]:
    slots = []
    if pattern.daily_at:
        hour, minute = parse_hhmm(pattern.daily_at)
        slots.append(datetime.combine(day, time(hour, minute), tzinfo=zone))
    if pattern.every_minutes and pattern.every_minutes > 0:
        step = timedelta(minutes=pattern.every_minutes)
        slot = datetime.combine(day, time(0, 0), tzinfo=zone)
        last = datetime.combine(day, time(23, 59), tzinfo=zone)
        while slot <= last:
            slots.append(slot)
            slot += step
    return slots


def build_recurring_run(
    *,
    run_id: str,
    pattern: Union[RecurrencePattern, Mapping[str, Any]],
    step_template: Iterable[StepLike],
    label: Optional[str] = None,
    context_id: Optional[str] = None,
    frame: Union[Frame, str] = Frame.DAILY,
    horizon_days: int = DEFAULT_HORIZON_DAYS,
    priority: int = DEFAULT_PRIORITY,
) -> List[Anchor]:
    """
    Expand ``pattern`` over ``horizon_days`` consecutive days and apply the
    step template at every slot. Anchors carry ``meta["recurring"] = True``.
    Anchors that collide on id keep the first occurrence.
    """
    if not isinstance(pattern, RecurrencePattern):
        pattern = RecurrencePattern.model_validate(pattern)
    steps = _coerce_steps(step_template)
    start = pattern.start_date or now_utc()
    zone = resolve_zone(pattern.tz) if pattern.tz else start.tzinfo
    first_day = start.astimezone(zone).date()

    seen = set()
    anchors: List[Anchor] = []
    for offset in range(max(horizon_days, 0)):
        day = first_day + timedelta(days=offset)
        for slot in _day_slots(day, zone, pattern):
            for anchor in _instantiate(
                slot,
                steps,
                run_id=run_id,
                label=label,
                context_id=context_id,
                frame=Frame.coerce(frame),
                priority=priority,
                recurring=True,
            ):
                if anchor.id in seen:
                    continue
                seen.add(anchor.id)
                anchors.append(anchor)
    anchors.sort(key=lambda a: a.at)
    return anchors
