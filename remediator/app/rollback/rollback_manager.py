"""
Rollback Manager.

Captures immutable DOM snapshots immediately before a fix is applied and
restores them on demand through the browser-automation capability's
element-replace primitive.

Snapshots are session-scoped. Independent sessions may share a manager
instance safely because every query and bulk operation is keyed by
session id. The orchestrator only ever holds the opaque snapshot id.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional, Protocol
from uuid import uuid4

from pydantic import BaseModel, Field
from pydantic import ConfigDict

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class RollbackError(RuntimeError):
    """Base class for rollback failures."""


class SnapshotNotFoundError(RollbackError):
    def __init__(self, snapshot_id: str) -> None:
        super().__init__(f"Snapshot not found: {snapshot_id}")
        self.snapshot_id = snapshot_id


class RollbackTargetNotFoundError(RollbackError):
    def __init__(self, selector: str) -> None:
        super().__init__(f"Element not found for rollback: {selector}")
        self.selector = selector


# ---------------------------------------------------------------------------
# Browser-automation boundary
# ---------------------------------------------------------------------------


class PageHandle(Protocol):
    """
    Minimal live-page surface required by snapshot and rollback.

    Implementations wrap the external browser-automation capability.
    """

    async def outer_html(self, selector: str) -> Optional[str]:
        """Return the element's outer HTML, or None if it does not resolve."""
        ...

    async def replace_element(self, selector: str, html: str) -> bool:
        """Replace the element's outer HTML. Return False if it does not resolve."""
        ...


# ---------------------------------------------------------------------------
# Snapshot record
# ---------------------------------------------------------------------------


class DOMSnapshot(BaseModel):
    id: str = Field(..., min_length=1)
    session_id: str = Field(..., min_length=1)
    selector: str
    html: str
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )

    model_config = ConfigDict(frozen=True, extra="forbid")


# ---------------------------------------------------------------------------
# Manager
# ---------------------------------------------------------------------------


class RollbackManager:
    def __init__(self) -> None:
        self._snapshots: Dict[str, DOMSnapshot] = {}
        self._by_session: Dict[str, List[str]] = {}

    @staticmethod
    def _generate_snapshot_id() -> str:
        return f"snapshot-{uuid4()}"

    def save_snapshot(self, session_id: str, selector: str, html: str) -> str:
        """
        Store the pre-fix markup of `selector` and return its snapshot id.
        """
        snapshot_id = self._generate_snapshot_id()
        while snapshot_id in self._snapshots:
            snapshot_id = self._generate_snapshot_id()

        self._snapshots[snapshot_id] = DOMSnapshot(
            id=snapshot_id,
            session_id=session_id,
            selector=selector,
            html=html,
        )
        self._by_session.setdefault(session_id, []).append(snapshot_id)

        logger.debug(
            "Saved snapshot %s for %s (session %s)",
            snapshot_id,
            selector,
            session_id,
        )
        return snapshot_id

    def get_snapshot(self, snapshot_id: str) -> Optional[DOMSnapshot]:
        return self._snapshots.get(snapshot_id)

    def get_session_snapshots(self, session_id: str) -> List[DOMSnapshot]:
        return [
            self._snapshots[sid]
            for sid in self._by_session.get(session_id, [])
            if sid in self._snapshots
        ]

    def get_rollback_html(self, snapshot_id: str) -> str:
        snapshot = self._snapshots.get(snapshot_id)
        if snapshot is None:
            raise SnapshotNotFoundError(snapshot_id)
        return snapshot.html

    async def rollback(self, page: PageHandle, snapshot_id: str) -> DOMSnapshot:
        """
        Restore the element captured by `snapshot_id` on the live page.

        Raises:
            SnapshotNotFoundError: unknown snapshot id
            RollbackTargetNotFoundError: selector no longer resolves
        """
        snapshot = self._snapshots.get(snapshot_id)
        if snapshot is None:
            raise SnapshotNotFoundError(snapshot_id)

        replaced = await page.replace_element(snapshot.selector, snapshot.html)
        if not replaced:
            logger.warning(
                "Rollback of %s failed: %s no longer resolves",
                snapshot_id,
                snapshot.selector,
            )
            raise RollbackTargetNotFoundError(snapshot.selector)

        logger.info("Rolled back %s to snapshot %s", snapshot.selector, snapshot_id)
        return snapshot

    def delete_snapshot(self, snapshot_id: str) -> bool:
        snapshot = self._snapshots.pop(snapshot_id, None)
        if snapshot is None:
            return False

        session_ids = self._by_session.get(snapshot.session_id)
        if session_ids and snapshot_id in session_ids:
            session_ids.remove(snapshot_id)
        return True

    def clear_session(self, session_id: str) -> None:
        for snapshot_id in self._by_session.pop(session_id, []):
            self._snapshots.pop(snapshot_id, None)

    def clear_all(self) -> None:
        self._snapshots.clear()
        self._by_session.clear()

    def get_snapshot_count(self, session_id: str) -> int:
        return len(self._by_session.get(session_id, []))

    def get_total_snapshot_count(self) -> int:
        return len(self._snapshots)
