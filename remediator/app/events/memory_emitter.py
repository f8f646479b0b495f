from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, List, Optional

from remediator.app.events.models import (
    TERMINAL_EVENT_TYPES,
    RemediationEvent,
)
from remediator.app.events.emitter import EventEmitter

logger = logging.getLogger(__name__)


class MemoryQueueEventEmitter(EventEmitter):
    """
    In-memory async event emitter for progress streaming.

    Properties:
    - single-consumer
    - deterministic ordering
    - terminates cleanly once the session completes, fails or is cancelled
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[Optional[RemediationEvent]] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def emit(self, event: RemediationEvent) -> None:
        if self._closed:
            return

        try:
            await self._queue.put(event)
        except Exception:
            logger.warning(
                "Dropped remediation event %s for session %s",
                event.event_type.value,
                event.session_id,
                exc_info=True,
            )
            return

        if event.event_type in TERMINAL_EVENT_TYPES:
            await self.close()

    async def close(self) -> None:
        if not self._closed:
            self._closed = True
            await self._queue.put(None)

    async def stream(self) -> AsyncIterator[RemediationEvent]:
        """
        Async generator yielding emitted events in order.
        """
        while True:
            event = await self._queue.get()
            if event is None:
                break
            yield event

    def drain(self) -> List[RemediationEvent]:
        """
        Return every event queued so far without waiting.
        """
        events: List[RemediationEvent] = []
        while not self._queue.empty():
            event = self._queue.get_nowait()
            if event is not None:
                events.append(event)
        return events
