from __future__ import annotations

from typing import Protocol

from remediator.app.events.models import RemediationEvent


class EventEmitter(Protocol):
    """
    Interface for broadcasting remediation observations.

    Implementations must be:
    - non-blocking (or minimally blocking)
    - fail-safe (emission failures must not crash the session)
    """

    async def emit(self, event: RemediationEvent) -> None:
        ...


class NullEventEmitter:
    """
    A safe no-op emitter.

    Used when nobody is streaming progress, and by tests that do not
    care about events.
    """

    async def emit(self, event: RemediationEvent) -> None:
        return
