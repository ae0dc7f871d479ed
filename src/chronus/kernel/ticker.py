"""
Tick Engine: the periodic countdown publisher.

On start the engine asks for a refresh (without awaiting it), publishes one
anchor-tick per stored anchor right away, then repeats that publication on a
fixed interval. ETAs are measured against the engine cursor, not the wall
clock.

The loop is not synchronized with refreshes in flight: a tick that fires
while providers are still running reports the previous anchor set.
"""
from __future__ import annotations

import asyncio
import math
from typing import TYPE_CHECKING, Optional

from loguru import logger

from .events import AnchorTick

if TYPE_CHECKING:
    from .engine import ChronusEngine


class TickEngine:
    def __init__(self, engine: "ChronusEngine", interval: float = 1.0) -> None:
        if interval <= 0:
            raise ValueError("tick interval must be positive")
        self._engine = engine
        self.interval = interval
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Begin ticking. No-op when already running. Needs a running event loop."""
        if self.running:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError as e:
            raise RuntimeError("TickEngine.start() requires a running event loop") from e

        self._engine.request_refresh()
        self.emit_ticks()
        self._task = loop.create_task(self._run(), name="chronus-tick")
        logger.info("Tick loop started (every {}s)", self.interval)

    def stop(self) -> None:
        """Cancel the periodic loop. Refreshes in flight are left alone."""
        if self._task is None:
            return
        self._task.cancel()
        self._task = None
        logger.info("Tick loop stopped")

    def emit_ticks(self) -> int:
        """Publish one anchor-tick per anchor in the active bucket; returns the count."""
        context = self._engine.get_active_context()
        if context is None or context.id is None:
            return 0
        cursor = self._engine.get_cursor()
        anchors = self._engine.get_anchors()
        for anchor in anchors:
            eta = math.floor((anchor.at - cursor).total_seconds())
            self._engine.bus.emit(
                AnchorTick(
                    context_id=context.id,
                    anchor_id=anchor.id,
                    label=anchor.label,
                    at=anchor.at,
                    eta_seconds=eta,
                    is_past=eta < 0,
                )
            )
        return len(anchors)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            self.emit_ticks()
