"""
Event Bus: typed publish/subscribe for engine state changes.

Every event kind has exactly one payload model. Subscribers register per kind
and receive the payload instance. Dispatch is synchronous and runs in
subscription order; a failing handler is discarded so the remaining handlers
still run and the emitting operation never fails.
"""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Callable, ClassVar, Dict, List, Optional, Type, Union

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from .schema import Anchor, Frame


class EventKind(str, Enum):
    CONTEXT_CHANGED = "context-changed"
    CURSOR_CHANGED = "cursor-changed"
    BLEND_UPDATED = "blend-updated"
    ANCHOR_TICK = "anchor-tick"
    PROVIDER_ERROR = "provider-error"
    SEQUENCES_UPDATED = "sequences-updated"


class Event(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: ClassVar[EventKind]


class ContextChanged(Event):
    kind: ClassVar[EventKind] = EventKind.CONTEXT_CHANGED

    active_context_id: Optional[str]


class CursorChanged(Event):
    """Fired for both cursor and frame changes."""

    kind: ClassVar[EventKind] = EventKind.CURSOR_CHANGED

    cursor: datetime
    frame: Frame


class BlendUpdated(Event):
    kind: ClassVar[EventKind] = EventKind.BLEND_UPDATED

    context_id: str
    frame: Frame
    anchors: List[Anchor] = Field(default_factory=list)


class AnchorTick(Event):
    kind: ClassVar[EventKind] = EventKind.ANCHOR_TICK

    context_id: str
    anchor_id: str
    label: str
    at: datetime
    eta_seconds: int
    is_past: bool


class ProviderError(Event):
    kind: ClassVar[EventKind] = EventKind.PROVIDER_ERROR

    provider: str
    message: str


class SequencesUpdated(Event):
    kind: ClassVar[EventKind] = EventKind.SEQUENCES_UPDATED

    ids: List[str] = Field(default_factory=list)


EVENT_TYPES: Dict[EventKind, Type[Event]] = {
    EventKind.CONTEXT_CHANGED: ContextChanged,
    EventKind.CURSOR_CHANGED: CursorChanged,
    EventKind.BLEND_UPDATED: BlendUpdated,
    EventKind.ANCHOR_TICK: AnchorTick,
    EventKind.PROVIDER_ERROR: ProviderError,
    EventKind.SEQUENCES_UPDATED: SequencesUpdated,
}

EventHandler = Callable[[Event], None]


class Subscription:
    """Cancellable handle returned by EventBus.on(). Calling it unsubscribes."""

    def __init__(self, bus: "EventBus", kind: EventKind, handler: EventHandler):
        self._bus = bus
        self.kind = kind
        self.handler = handler

    @property
    def active(self) -> bool:
        return self._bus.is_subscribed(self.kind, self.handler)

    def cancel(self) -> None:
        self._bus.off(self.kind, self.handler)

    __call__ = cancel


class EventBus:
    def __init__(self) -> None:
        self._handlers: Dict[EventKind, List[EventHandler]] = {kind: [] for kind in EventKind}

    def on(self, kind: Union[EventKind, str], handler: EventHandler) -> Subscription:
        """Subscribe handler to one event kind."""
        event_kind = EventKind(kind)
        if not callable(handler):
            raise TypeError("handler must be callable")
        self._handlers[event_kind].append(handler)
        return Subscription(self, event_kind, handler)

    def off(self, kind: Union[EventKind, str], handler: EventHandler) -> None:
        """Remove a handler; unknown handlers are ignored."""
        handlers = self._handlers[EventKind(kind)]
        if handler in handlers:
            handlers.remove(handler)

    def is_subscribed(self, kind: EventKind, handler: EventHandler) -> bool:
        return handler in self._handlers[kind]

    def subscriber_count(self, kind: Union[EventKind, str]) -> int:
        return len(self._handlers[EventKind(kind)])

    def emit(self, event: Event) -> None:
        expected = EVENT_TYPES[event.kind]
        if type(event) is not expected:
            raise TypeError(f"{event.kind.value} carries {expected.__name__}, got {type(event).__name__}")

        # Snapshot so handlers may unsubscribe while being dispatched
        for handler in list(self._handlers[event.kind]):
            try:
                handler(event)
            except Exception:
                logger.opt(exception=True).debug(
                    "Discarded failing {} handler {!r}", event.kind.value, handler
                )
