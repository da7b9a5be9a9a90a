"""Ordered progress reporting for a discovery run.

The reporter is the only producer of :class:`ProgressEvent` values for a run.
It keeps phases in increasing order and percentages non-decreasing, so a
consumer never has to reorder or smooth anything.
"""
from __future__ import annotations

import inspect
import logging
from typing import Awaitable, Callable, Optional, Union

from prospect_finder.schemas.progress import PHASE_ORDER, ProgressEvent, ProgressPhase

logger = logging.getLogger(__name__)

ProgressSink = Callable[[ProgressEvent], Union[None, Awaitable[None]]]


class ProgressReporter:
    def __init__(self, sink: Optional[ProgressSink] = None):
        self.sink = sink
        self.events: list[ProgressEvent] = []
        self._phase: Optional[ProgressPhase] = None
        self._progress = 0.0

    @property
    def phase(self) -> Optional[ProgressPhase]:
        return self._phase

    @property
    def finished(self) -> bool:
        return bool(self.events) and self.events[-1].is_terminal

    async def _publish(self, event: ProgressEvent) -> None:
        self.events.append(event)
        if self.sink is None:
            return
        result = self.sink(event)
        if inspect.isawaitable(result):
            await result

    async def emit(
        self,
        phase: ProgressPhase,
        progress: float,
        message: str = "",
        current: int = 0,
        total: int = 0,
        item: Optional[str] = None,
        **extra,
    ) -> ProgressEvent:
        if self.finished:
            raise RuntimeError("Run already finished; no events may follow the terminal one")
        if self._phase is not None and PHASE_ORDER[phase] < PHASE_ORDER[self._phase]:
            raise ValueError(f"Phase {phase.value} cannot follow {self._phase.value}")

        # Never move the bar backwards
        progress = max(self._progress, min(100.0, float(progress)))
        self._phase = phase
        self._progress = progress

        event = ProgressEvent(
            phase=phase,
            current=current,
            total=total,
            progress=round(progress, 1),
            message=message,
            item=item,
            **extra,
        )
        logger.debug("[%s] %.0f%% %s", phase.value, progress, message)
        await self._publish(event)
        return event

    async def complete(self, items_found: int, total_found: int, errors: list[str], message: str = "") -> ProgressEvent:
        return await self.emit(
            ProgressPhase.DONE,
            100,
            message or f"Done! {items_found} new results",
            current=items_found,
            total=total_found,
            items_found=items_found,
            total_found=total_found,
            errors=list(errors),
        )

    async def fail(self, message: str) -> ProgressEvent:
        """Terminal error event; the percentage stays where the run stopped."""
        return await self.emit(ProgressPhase.ERROR, self._progress, message)
