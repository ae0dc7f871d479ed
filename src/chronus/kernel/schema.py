from __future__ import annotations

from datetime import date, datetime, time, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import InvalidCursor, InvalidFrame


def to_timestamp(value: Any) -> datetime:
    """
    Normalize a cursor-like value to an aware datetime.

    Accepts datetimes (naive values are taken as UTC), dates (midnight UTC),
    ISO 8601 strings (a trailing "Z" is allowed) and epoch seconds.
    Raises InvalidCursor for anything else.
    """
    if isinstance(value, datetime):
        result = value
    elif isinstance(value, date):
        result = datetime.combine(value, time(0, 0))
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            result = datetime.fromisoformat(text)
        except ValueError as e:
            raise InvalidCursor(f"Invalid timestamp: {value!r}") from e
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            result = datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError) as e:
            raise InvalidCursor(f"Timestamp out of range: {value!r}") from e
    else:
        raise InvalidCursor(f"Cannot use {type(value).__name__} as a timestamp")

    if result.tzinfo is None:
        result = result.replace(tzinfo=timezone.utc)
    return result


class Frame(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    ANNUAL = "annual"

    @classmethod
    def coerce(cls, value: Any) -> "Frame":
        try:
            return cls(value)
        except ValueError as e:
            allowed = ", ".join(f.value for f in cls)
            raise InvalidFrame(f"Unknown frame {value!r} (expected one of: {allowed})") from e


class Context(BaseModel):
    """
    A named place/timezone profile that anchors are computed against.

    Extra hints (prayer method, country code, ...) are kept as-is for
    providers to read.
    """

    model_config = ConfigDict(extra="allow", frozen=True)

    id: Optional[str] = None
    label: Optional[str] = None
    tz: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    method: Optional[str] = None


class Anchor(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    label: str = ""
    at: datetime
    frame: Frame
    category: str = ""
    context_id: str = Field(default="", alias="contextId")
    source: str = ""
    priority: int = 0
    meta: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("at", mode="before")
    @classmethod
    def _normalize_at(cls, value: Any) -> datetime:
        return to_timestamp(value)

    @field_validator("frame", mode="before")
    @classmethod
    def _normalize_frame(cls, value: Any) -> Frame:
        return Frame.coerce(value)


class ProviderQuery(BaseModel):
    """What a provider is asked to compute anchors for."""

    model_config = ConfigDict(frozen=True)

    context: Context
    frame: Frame
    cursor: datetime


class SequenceStep(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str
    label: Optional[str] = None
    duration_ms: Optional[int] = Field(default=None, alias="durationMs")
    offset_ms: Optional[int] = Field(default=None, alias="offsetMs")
    meta: Optional[Dict[str, Any]] = None


class Sequence(BaseModel):
    """A user-authored, reusable list of step templates."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str
    label: Optional[str] = None
    steps: List[SequenceStep] = Field(default_factory=list)
    meta: Optional[Dict[str, Any]] = None


class EngineState(BaseModel):
    model_config = ConfigDict(frozen=True)

    cursor: datetime
    frame: Frame
    active_context_id: Optional[str] = None
