"""
Session State Tracker.

Owns the authoritative ledger of one remediation session:

- the pending violation ids, in priority order
- the fixed and skipped violation ids
- the currently active violation and its retry count
- per-violation retry records (attempts + last failure reason)

IMPORTANT:
The tracker is the ONLY writer of this ledger. The orchestrator drives it
exclusively through the transition methods below.

Invariant (checked on every mutation):
- a violation id appears in exactly one of {pending, fixed, skipped}
- the active id, when set, is drawn from pending
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Union

from remediator.app.config import DEFAULT_MAX_RETRY_ATTEMPTS
from remediator.app.schemas.session_state import SessionAttributes

logger = logging.getLogger(__name__)


@dataclass
class _RetryRecord:
    attempts: int = 0
    last_failure_reason: Optional[str] = None


class SessionStateTracker:
    """
    In-memory ledger for one remediation session.

    Lists are kept as native Python lists. They are flattened into a
    string map only at the persistence boundary
    (`to_session_attributes` / `serialize`).
    """

    def __init__(
        self,
        initial_url: str,
        *,
        max_retry_attempts: int = DEFAULT_MAX_RETRY_ATTEMPTS,
    ) -> None:
        if max_retry_attempts < 1:
            raise ValueError("max_retry_attempts must be >= 1")

        self._max_retry_attempts = max_retry_attempts
        self._current_url = initial_url
        self._pending: List[str] = []
        self._fixed: List[str] = []
        self._skipped: List[str] = []
        self._current_violation_id: Optional[str] = None
        self._retry_attempts = 0
        self._human_handoff_reason: Optional[str] = None
        self._retries: Dict[str, _RetryRecord] = {}

    # ------------------------------------------------------------------
    # Read accessors
    # ------------------------------------------------------------------

    @property
    def max_retry_attempts(self) -> int:
        return self._max_retry_attempts

    def get_current_url(self) -> str:
        return self._current_url

    def get_pending_violations(self) -> List[str]:
        return list(self._pending)

    def get_fixed_violations(self) -> List[str]:
        return list(self._fixed)

    def get_skipped_violations(self) -> List[str]:
        return list(self._skipped)

    def get_current_violation_id(self) -> Optional[str]:
        return self._current_violation_id

    def get_retry_attempts(self) -> int:
        """Retry attempts recorded for the active violation."""
        return self._retry_attempts

    def get_retry_attempts_for_violation(self, violation_id: str) -> int:
        record = self._retries.get(violation_id)
        return record.attempts if record else 0

    def get_last_failure_reason(self, violation_id: str) -> Optional[str]:
        record = self._retries.get(violation_id)
        return record.last_failure_reason if record else None

    def get_human_handoff_reason(self) -> Optional[str]:
        return self._human_handoff_reason

    def get_next_pending_violation(self) -> Optional[str]:
        """
        Peek at the head of the priority-ordered pending sequence.

        The id stays pending until it is explicitly marked fixed or
        skipped.
        """
        return self._pending[0] if self._pending else None

    def has_reached_three_strike_limit(self, violation_id: str) -> bool:
        return (
            self.get_retry_attempts_for_violation(violation_id)
            >= self._max_retry_attempts
        )

    def is_complete(self) -> bool:
        return not self._pending

    def get_summary(self) -> Dict[str, int]:
        return {
            "total_processed": len(self._fixed) + len(self._skipped),
            "fixed_count": len(self._fixed),
            "skipped_count": len(self._skipped),
            "pending_count": len(self._pending),
        }

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def set_pending_violations(self, violation_ids: Iterable[str]) -> None:
        """
        Replace the entire pending sequence.

        Called once, right after a scan completes.
        """
        ids = list(violation_ids)

        if len(set(ids)) != len(ids):
            raise ValueError("Pending violation ids must be unique")

        settled = set(self._fixed) | set(self._skipped)
        overlap = settled.intersection(ids)
        if overlap:
            raise ValueError(
                "Violation ids already fixed or skipped cannot become "
                f"pending again: {sorted(overlap)}"
            )

        self._pending = ids

        if self._current_violation_id not in self._pending:
            self._current_violation_id = None
            self._retry_attempts = 0

        self._check_invariants()

    def set_current_violation(self, violation_id: Optional[str]) -> None:
        if violation_id is None:
            self._current_violation_id = None
            self._retry_attempts = 0
            return

        if violation_id not in self._pending:
            raise ValueError(
                f"Active violation '{violation_id}' is not pending"
            )

        record = self._retries.setdefault(violation_id, _RetryRecord())
        self._current_violation_id = violation_id
        self._retry_attempts = record.attempts

    def mark_violation_fixed(self, violation_id: str) -> bool:
        """
        Move a violation from pending to fixed.

        Returns False when the id is not pending.
        """
        if not self._remove_pending(violation_id):
            return False

        self._fixed.append(violation_id)
        self._retries.pop(violation_id, None)

        self._check_invariants()
        return True

    def skip_violation(self, violation_id: str, reason: str) -> bool:
        """
        Move a violation from pending to skipped and record the reason.

        The retry record is retained so reporting can tell how many
        attempts were spent before giving up.
        """
        if not self._remove_pending(violation_id):
            return False

        self._skipped.append(violation_id)
        self._human_handoff_reason = reason

        record = self._retries.setdefault(violation_id, _RetryRecord())
        if record.last_failure_reason is None:
            record.last_failure_reason = reason

        logger.debug(
            "Skipped violation %s after %d attempt(s): %s",
            violation_id,
            record.attempts,
            reason,
        )

        self._check_invariants()
        return True

    def increment_retry(
        self,
        violation_id: str,
        failure_reason: Optional[str] = None,
    ) -> int:
        """
        Record one failed attempt and return the new count.
        """
        record = self._retries.setdefault(violation_id, _RetryRecord())
        record.attempts += 1
        if failure_reason:
            record.last_failure_reason = failure_reason

        if self._current_violation_id == violation_id:
            self._retry_attempts = record.attempts

        return record.attempts

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def is_valid(self) -> bool:
        try:
            self._check_invariants()
        except ValueError:
            return False
        return True

    def _check_invariants(self) -> None:
        pending = set(self._pending)
        fixed = set(self._fixed)
        skipped = set(self._skipped)

        if (
            len(pending) != len(self._pending)
            or len(fixed) != len(self._fixed)
            or len(skipped) != len(self._skipped)
        ):
            raise ValueError("Session ledger contains duplicate violation ids")

        if pending & fixed or pending & skipped or fixed & skipped:
            raise ValueError(
                "A violation id must appear in exactly one of "
                "pending, fixed or skipped"
            )

        if (
            self._current_violation_id is not None
            and self._current_violation_id not in pending
        ):
            raise ValueError("The active violation must be pending")

        if self._retry_attempts < 0:
            raise ValueError("retry_attempts must be non-negative")

    def _remove_pending(self, violation_id: str) -> bool:
        try:
            self._pending.remove(violation_id)
        except ValueError:
            return False

        if self._current_violation_id == violation_id:
            self._current_violation_id = None
            self._retry_attempts = 0

        return True

    # ------------------------------------------------------------------
    # Persistence boundary
    # ------------------------------------------------------------------

    def get_session_attributes(self) -> SessionAttributes:
        return SessionAttributes.from_lists(
            current_url=self._current_url,
            pending=self._pending,
            fixed=self._fixed,
            skipped=self._skipped,
            current_violation_id=self._current_violation_id,
            retry_attempts=self._retry_attempts,
            human_handoff_reason=self._human_handoff_reason,
        )

    def to_session_attributes(self) -> Dict[str, str]:
        """
        Flatten the ledger into a restartable string map.
        """
        return self.get_session_attributes().to_string_map()

    @classmethod
    def from_session_attributes(
        cls,
        attrs: Union[Mapping[str, str], SessionAttributes],
        *,
        max_retry_attempts: int = DEFAULT_MAX_RETRY_ATTEMPTS,
    ) -> "SessionStateTracker":
        """
        Restore a tracker from a flat string map.

        Only the active violation's retry count survives a restart;
        retry records of other violations are not part of the flat form.

        Raises ValueError when the restored ledger is inconsistent.
        """
        if not isinstance(attrs, SessionAttributes):
            attrs = SessionAttributes.from_string_map(dict(attrs))

        tracker = cls(
            attrs.current_url,
            max_retry_attempts=max_retry_attempts,
        )
        tracker._pending = attrs.pending
        tracker._fixed = attrs.fixed
        tracker._skipped = attrs.skipped
        tracker._current_violation_id = attrs.current_violation_id
        tracker._retry_attempts = attrs.retry_attempts
        tracker._human_handoff_reason = attrs.human_handoff_reason

        if attrs.current_violation_id is not None:
            tracker._retries[attrs.current_violation_id] = _RetryRecord(
                attempts=attrs.retry_attempts,
            )

        tracker._check_invariants()
        return tracker

    def serialize(self) -> str:
        return self.get_session_attributes().model_dump_json()

    @classmethod
    def deserialize(
        cls,
        raw: str,
        *,
        max_retry_attempts: int = DEFAULT_MAX_RETRY_ATTEMPTS,
    ) -> "SessionStateTracker":
        """
        Restore a tracker from `serialize()` output.

        Raises pydantic.ValidationError on malformed input and ValueError
        on an inconsistent ledger.
        """
        return cls.from_session_attributes(
            SessionAttributes.model_validate_json(raw),
            max_retry_attempts=max_retry_attempts,
        )
