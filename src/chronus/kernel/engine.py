"""
ChronusEngine: the time-anchor scheduling engine.

One engine instance owns every collection: contexts, the anchor store, the
provider registry and the sequence library. Consumers hold a reference to the
engine and go through its operations; several engines can live side by side.

Architecture:
    add_context / set_active_context ──┐
    set_frame / set_cursor / jump ─────┼──> refresh() ──> providers ──> AnchorStore
    register_provider ─────────────────┘                                   │
                                                     TickEngine <──────────┘
                                                         │
                                                     EventBus ──> subscribers

Refresh runs every provider independently and writes each provider's result
as soon as it arrives, so one refresh may produce several blend-updated
events. A provider that fails is reported with a provider-error event and
does not affect the others.
"""
from __future__ import annotations

import asyncio
import inspect
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Union

from loguru import logger
from pydantic import ValidationError

from ..lib.chronos import add_calendar_delta, now_utc
from .errors import InvalidAnchor, InvalidContext, UnknownContext
from .events import (
    BlendUpdated,
    ContextChanged,
    CursorChanged,
    EventBus,
    EventHandler,
    EventKind,
    ProviderError,
    Subscription,
)
from .registry import AnchorLike, ProviderRegistry, SupportsProvide
from .schema import Anchor, Context, EngineState, Frame, ProviderQuery, Sequence as SequenceModel, to_timestamp
from .sequences import SequenceLibrary, SequenceLike
from .storage import KeyValueStorage
from .store import AnchorStore
from .ticker import TickEngine

ContextLike = Union[Context, Mapping[str, Any]]


def _as_anchor(item: AnchorLike, context_id: str, frame: Frame) -> Anchor:
    if isinstance(item, Anchor):
        return item
    if not isinstance(item, Mapping):
        raise InvalidAnchor(f"Cannot use {type(item).__name__} as an anchor")
    fields = dict(item)
    fields.setdefault("frame", frame)
    if "contextId" not in fields and "context_id" not in fields:
        fields["contextId"] = context_id
    try:
        return Anchor.model_validate(fields)
    except ValidationError as e:
        raise InvalidAnchor(str(e)) from e


class ChronusEngine:
    """
    Example:
        engine = ChronusEngine()
        engine.register_provider(CivilProvider())
        engine.add_context({"id": "cairo", "tz": "Africa/Cairo"})
        engine.get_anchors()  # day:start, day:midday, day:end
    """

    def __init__(
        self,
        *,
        storage: Optional[KeyValueStorage] = None,
        storage_key: Optional[str] = None,
        frame: Union[Frame, str] = Frame.DAILY,
        cursor: Any = None,
        tick_interval: float = 1.0,
    ) -> None:
        self.bus = EventBus()
        self._contexts: Dict[str, Context] = {}
        self._active_context_id: Optional[str] = None
        self._frame = Frame.coerce(frame)
        self._cursor = to_timestamp(cursor) if cursor is not None else now_utc()
        self._store = AnchorStore()
        self._providers = ProviderRegistry()
        library_kwargs = {"key": storage_key} if storage_key else {}
        self.sequences = SequenceLibrary(storage, self.bus, **library_kwargs)
        self.ticker = TickEngine(self, interval=tick_interval)
        self._pending: Set[asyncio.Task[None]] = set()

    # -------------------------------------------------------------------------
    # Events
    # -------------------------------------------------------------------------

    def on(self, kind: Union[EventKind, str], handler: EventHandler) -> Subscription:
        """Subscribe to an event kind; call the returned handle to unsubscribe."""
        return self.bus.on(kind, handler)

    # -------------------------------------------------------------------------
    # Contexts
    # -------------------------------------------------------------------------

    def add_context(self, ctx: ContextLike) -> str:
        """
        Register (or overwrite) a context. The first context becomes active.

        Raises InvalidContext when the context has no id.
        """
        if isinstance(ctx, Context):
            context = ctx
        elif isinstance(ctx, Mapping):
            if not ctx.get("id"):
                raise InvalidContext("Context requires an id")
            try:
                context = Context.model_validate(dict(ctx))
            except ValidationError as e:
                raise InvalidContext(str(e)) from e
        else:
            raise InvalidContext(f"Cannot use {type(ctx).__name__} as a context")
        if not context.id:
            raise InvalidContext("Context requires an id")

        self._contexts[context.id] = context
        if self._active_context_id is None:
            self._active_context_id = context.id
        self.bus.emit(ContextChanged(active_context_id=self._active_context_id))
        self.request_refresh()
        return context.id

    def set_active_context(self, context_id: str) -> None:
        """Raises UnknownContext for ids that were never registered."""
        if context_id not in self._contexts:
            raise UnknownContext(context_id)
        self._active_context_id = context_id
        self.bus.emit(ContextChanged(active_context_id=context_id))
        self.request_refresh()

    def list_contexts(self) -> List[Context]:
        return list(self._contexts.values())

    def get_active_context(self) -> Optional[Context]:
        if self._active_context_id is None:
            return None
        return self._contexts.get(self._active_context_id)

    # -------------------------------------------------------------------------
    # Frame & cursor
    # -------------------------------------------------------------------------

    def get_frame(self) -> Frame:
        return self._frame

    def get_cursor(self) -> datetime:
        return self._cursor

    @property
    def state(self) -> EngineState:
        return EngineState(
            cursor=self._cursor,
            frame=self._frame,
            active_context_id=self._active_context_id,
        )

    def set_frame(self, frame: Union[Frame, str]) -> None:
        """Raises InvalidFrame outside daily/weekly/monthly/annual."""
        self._frame = Frame.coerce(frame)
        self.bus.emit(CursorChanged(cursor=self._cursor, frame=self._frame))
        self.request_refresh()

    def set_cursor(self, value: Any) -> None:
        """Move the logical "now". Raises InvalidCursor for unusable values."""
        self._cursor = to_timestamp(value)
        self.bus.emit(CursorChanged(cursor=self._cursor, frame=self._frame))
        self.request_refresh()

    def jump(self, *, days: int = 0, weeks: int = 0, months: int = 0, years: int = 0) -> None:
        """
        Shift the cursor by calendar units.

        Month and year shifts roll over instead of clamping: January 31 plus
        one month lands in early March.
        """
        self.set_cursor(add_calendar_delta(self._cursor, days=days, weeks=weeks, months=months, years=years))

    # -------------------------------------------------------------------------
    # Anchors
    # -------------------------------------------------------------------------

    def upsert_anchors(
        self, context_id: str, frame: Union[Frame, str], anchors: Optional[Iterable[AnchorLike]]
    ) -> List[Anchor]:
        """
        Replace the (context_id, frame) bucket with anchors sorted by ``at``.

        Mappings without a frame or context id take the bucket's. Raises
        InvalidAnchor for records that still do not validate.
        """
        bucket_frame = Frame.coerce(frame)
        items = [_as_anchor(a, context_id, bucket_frame) for a in (anchors or ())]
        ordered = self._store.put(context_id, bucket_frame, items)
        self.bus.emit(BlendUpdated(context_id=context_id, frame=bucket_frame, anchors=ordered))
        return ordered

    def get_anchors(
        self, context_id: Optional[str] = None, frame: Optional[Union[Frame, str]] = None
    ) -> List[Anchor]:
        """The bucket for the given (or current) context and frame; empty when absent."""
        ctx_id = context_id or self._active_context_id
        if ctx_id is None:
            return []
        return self._store.get(ctx_id, Frame.coerce(frame) if frame else self._frame)

    # -------------------------------------------------------------------------
    # Providers & refresh
    # -------------------------------------------------------------------------

    def register_provider(self, provider: SupportsProvide) -> None:
        """
        Add a provider and refresh straight away.

        The provider is checked at registration; InvalidProvider is raised when
        it has no name or no provide().
        """
        if self._providers.register(provider):
            self.request_refresh()

    def list_providers(self) -> List[SupportsProvide]:
        return list(self._providers.all())

    def get_provider(self, name: str) -> Optional[SupportsProvide]:
        return self._providers.get(name)

    async def refresh(self) -> None:
        """Ask every provider for anchors for the active context, frame and cursor."""
        context = self.get_active_context()
        if context is None:
            logger.debug("Refresh skipped: no active context")
            return
        query = ProviderQuery(context=context, frame=self._frame, cursor=self._cursor)
        await asyncio.gather(*(self._run_provider(p, query) for p in self._providers.all()))

    async def _run_provider(self, provider: SupportsProvide, query: ProviderQuery) -> None:
        try:
            result = provider.provide(query)
            if inspect.isawaitable(result):
                result = await result
            if isinstance(result, (list, tuple)):
                self.upsert_anchors(str(query.context.id), query.frame, result)
        except Exception as e:
            name = getattr(provider, "name", None) or "provider"
            logger.warning("Provider {} failed: {}", name, e)
            self.bus.emit(ProviderError(provider=name, message=str(e)))

    def request_refresh(self) -> None:
        """
        Trigger a refresh from synchronous code.

        Inside a running event loop the refresh becomes a background task
        (see settle()); otherwise it runs to completion before returning,
        together with any refresh a subscriber triggers along the way.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            asyncio.run(self._refresh_and_settle())
            return
        task = loop.create_task(self.refresh())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def settle(self) -> None:
        """Wait until every background refresh has finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _refresh_and_settle(self) -> None:
        await self.refresh()
        await self.settle()

    # -------------------------------------------------------------------------
    # Tick engine
    # -------------------------------------------------------------------------

    def start(self) -> None:
        self.ticker.start()

    def stop(self) -> None:
        self.ticker.stop()

    @property
    def running(self) -> bool:
        return self.ticker.running

    # -------------------------------------------------------------------------
    # Sequences
    # -------------------------------------------------------------------------

    def upsert_sequences(self, items: Iterable[SequenceLike]) -> List[str]:
        return self.sequences.upsert_sequences(items)

    def get_sequences(self, ids: Optional[Sequence[str]] = None) -> List[SequenceModel]:
        return self.sequences.get_sequences(ids=ids)

    def delete_sequences(self, ids: Iterable[str]) -> List[str]:
        return self.sequences.delete_sequences(ids)
