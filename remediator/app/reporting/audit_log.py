"""
Append-only audit log of fix-injection attempts.

Entries are validated on creation and grouped by session. The Report
Generator only ever reads from this store.
"""

from __future__ import annotations

from typing import Dict, List

from remediator.app.schemas.audit_log import AuditLogEntry, AuditLogResult
from remediator.app.schemas.fixes import FixInstruction


class AuditLog:
    def __init__(self) -> None:
        self._entries: Dict[str, List[AuditLogEntry]] = {}

    @staticmethod
    def create_entry(
        session_id: str,
        violation_id: str,
        instruction: FixInstruction,
        before_html: str,
        after_html: str,
        result: AuditLogResult,
    ) -> AuditLogEntry:
        """
        Build a validated entry without recording it.

        Raises pydantic.ValidationError on invalid input.
        """
        return AuditLogEntry(
            session_id=session_id,
            violation_id=violation_id,
            instruction=instruction,
            before_html=before_html,
            after_html=after_html,
            result=result,
        )

    def record(self, entry: AuditLogEntry) -> None:
        self._entries.setdefault(entry.session_id, []).append(entry)

    def log(
        self,
        session_id: str,
        violation_id: str,
        instruction: FixInstruction,
        before_html: str,
        after_html: str,
        result: AuditLogResult,
    ) -> AuditLogEntry:
        entry = self.create_entry(
            session_id,
            violation_id,
            instruction,
            before_html,
            after_html,
            result,
        )
        self.record(entry)
        return entry

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_by_session(self, session_id: str) -> List[AuditLogEntry]:
        return list(self._entries.get(session_id, []))

    def get_by_violation(self, session_id: str, violation_id: str) -> List[AuditLogEntry]:
        return [
            entry
            for entry in self._entries.get(session_id, [])
            if entry.violation_id == violation_id
        ]

    def get_by_result(self, session_id: str, result: AuditLogResult) -> List[AuditLogEntry]:
        return [
            entry
            for entry in self._entries.get(session_id, [])
            if entry.result == result
        ]

    def get_count(self, session_id: str) -> int:
        return len(self._entries.get(session_id, []))

    def get_summary(self, session_id: str) -> Dict[str, int]:
        entries = self._entries.get(session_id, [])
        counts = {result: 0 for result in AuditLogResult}
        for entry in entries:
            counts[entry.result] += 1
        return {
            "total": len(entries),
            "applied": counts[AuditLogResult.APPLIED],
            "rejected": counts[AuditLogResult.REJECTED],
            "rolled_back": counts[AuditLogResult.ROLLED_BACK],
        }

    def get_session_ids(self) -> List[str]:
        return list(self._entries)

    # ------------------------------------------------------------------
    # Housekeeping
    # ------------------------------------------------------------------

    def clear_session(self, session_id: str) -> None:
        self._entries.pop(session_id, None)

    def clear_all(self) -> None:
        self._entries.clear()
