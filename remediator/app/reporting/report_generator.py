"""
Remediation report generation.

The generator accumulates fixed, skipped and handoff items plus an
externally supplied pending count. Summary counts are DERIVED from the
collection lengths at generation time and are never tracked
independently, which keeps the totals invariant trivially true.

IMPORTANT:
`generate()` validates the report against the RemediationReport schema.
A schema violation is a programming defect and surfaces as a pydantic
ValidationError. It is never caught here.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Mapping, Optional

from pydantic import BaseModel, Field
from pydantic import ConfigDict

from remediator.app.reporting.audit_log import AuditLog
from remediator.app.schemas.audit_log import AuditLogEntry, AuditLogResult
from remediator.app.schemas.remediation_report import (
    AppliedFix,
    HumanHandoffItem,
    RemediationReport,
    ReportSummary,
    SkippedViolation,
)
from remediator.app.schemas.violations import Violation
from remediator.app.session.state_tracker import SessionStateTracker

logger = logging.getLogger(__name__)


DEFAULT_SKIP_REASON = "Maximum retry attempts exceeded"
DEFAULT_SUGGESTED_ACTION = (
    "Manual review required - automated remediation failed after "
    "multiple attempts"
)
UNKNOWN = "unknown"


class ViolationMetadata(BaseModel):
    """
    Per-violation facts the tracker does not hold.

    `suggested_action` is set only for violations explicitly escalated to
    a human.
    """

    violation_id: str = Field(..., min_length=1)
    rule_id: str = Field(..., min_length=1)
    selector: str = Field(..., min_length=1)
    reason: Optional[str] = None
    attempts: Optional[int] = Field(None, ge=0)
    suggested_action: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_violation(cls, violation: Violation) -> "ViolationMetadata":
        return cls(
            violation_id=violation.id,
            rule_id=violation.rule_id,
            selector=violation.selector,
        )


class ReportGenerator:
    def __init__(self, session_id: str, url: str) -> None:
        self._session_id = session_id
        self._url = url
        self._fixes: List[AppliedFix] = []
        self._skipped: List[SkippedViolation] = []
        self._human_handoff: List[HumanHandoffItem] = []
        self._pending_count = 0
        self._violation_metadata: Dict[str, ViolationMetadata] = {}

    @property
    def session_id(self) -> str:
        return self._session_id

    # ------------------------------------------------------------------
    # Accumulation
    # ------------------------------------------------------------------

    def register_violations(self, violations: Iterable[Violation]) -> None:
        for violation in violations:
            self._violation_metadata[violation.id] = ViolationMetadata.from_violation(
                violation
            )

    def add_fix(self, fix: AppliedFix) -> None:
        self._fixes.append(fix)

    def add_skipped(self, skipped: SkippedViolation) -> None:
        self._skipped.append(skipped)

    def add_human_handoff(self, handoff: HumanHandoffItem) -> None:
        self._human_handoff.append(handoff)

    def set_pending_count(self, count: int) -> None:
        if count < 0:
            raise ValueError(f"pending count must be non-negative, got {count}")
        self._pending_count = count

    def create_fix_from_audit_log(
        self,
        entry: AuditLogEntry,
        rule_id: Optional[str] = None,
    ) -> AppliedFix:
        """
        Build an AppliedFix from an audit log entry.

        Without a rule id the registered violation metadata is consulted,
        then the fix type is used as a last resort.
        """
        if rule_id is None:
            metadata = self._violation_metadata.get(entry.violation_id)
            rule_id = metadata.rule_id if metadata else entry.instruction.type.value

        return AppliedFix(
            violation_id=entry.violation_id,
            rule_id=rule_id,
            selector=entry.instruction.selector,
            fix_type=entry.instruction.type,
            before_html=entry.before_html,
            after_html=entry.after_html,
            reasoning=entry.instruction.reasoning,
        )

    # ------------------------------------------------------------------
    # Derivation
    # ------------------------------------------------------------------

    def calculate_summary(self) -> ReportSummary:
        fixed = len(self._fixes)
        skipped = len(self._skipped)
        return ReportSummary(
            total_violations=fixed + skipped + self._pending_count,
            fixed_count=fixed,
            skipped_count=skipped,
            pending_count=self._pending_count,
        )

    def generate(self) -> RemediationReport:
        """
        Build and validate the report.

        Always legal on the generator itself, whether or not work is
        still pending.
        """
        return RemediationReport(
            session_id=self._session_id,
            url=self._url,
            summary=self.calculate_summary(),
            fixes=[fix.model_copy() for fix in self._fixes],
            skipped=[item.model_copy() for item in self._skipped],
            human_handoff=[item.model_copy() for item in self._human_handoff],
        )

    def populate_from_session(
        self,
        tracker: SessionStateTracker,
        audit_log: AuditLog,
        violation_metadata: Mapping[str, ViolationMetadata],
    ) -> None:
        """
        Rebuild report collections from a session ledger and its audit log.

        - fixed ids: the most recent `applied` audit entry per violation
        - skipped ids: the tracker's last failure reason and attempt count
        - handoff: skipped ids that exhausted their retries or were
          explicitly escalated
        """
        metadata = {**self._violation_metadata, **violation_metadata}

        for violation_id in tracker.get_fixed_violations():
            applied = [
                entry
                for entry in audit_log.get_by_violation(self._session_id, violation_id)
                if entry.result is AuditLogResult.APPLIED
            ]
            if not applied:
                logger.debug(
                    "Fixed violation %s has no applied audit entry",
                    violation_id,
                )
                continue

            meta = metadata.get(violation_id)
            self.add_fix(
                self.create_fix_from_audit_log(
                    applied[-1],
                    rule_id=meta.rule_id if meta else None,
                )
            )

        for violation_id in tracker.get_skipped_violations():
            meta = metadata.get(violation_id)
            rule_id = meta.rule_id if meta else UNKNOWN
            selector = meta.selector if meta else UNKNOWN

            reason = tracker.get_last_failure_reason(violation_id) or DEFAULT_SKIP_REASON
            attempts = tracker.get_retry_attempts_for_violation(violation_id)
            if meta and meta.attempts is not None:
                attempts = max(attempts, meta.attempts)

            self.add_skipped(
                SkippedViolation(
                    violation_id=violation_id,
                    rule_id=rule_id,
                    selector=selector,
                    reason=reason,
                    attempts=attempts,
                )
            )

            escalated = meta is not None and meta.suggested_action is not None
            if escalated or attempts >= tracker.max_retry_attempts:
                self.add_human_handoff(
                    HumanHandoffItem(
                        violation_id=violation_id,
                        rule_id=rule_id,
                        selector=selector,
                        reason=(meta.reason if meta and meta.reason else reason),
                        suggested_action=(
                            meta.suggested_action
                            if meta and meta.suggested_action
                            else DEFAULT_SUGGESTED_ACTION
                        ),
                    )
                )

        self.set_pending_count(len(tracker.get_pending_violations()))

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def is_complete(self) -> bool:
        return self._pending_count == 0

    def get_fixed_count(self) -> int:
        return len(self._fixes)

    def get_skipped_count(self) -> int:
        return len(self._skipped)

    def get_human_handoff_count(self) -> int:
        return len(self._human_handoff)

    def clear(self) -> None:
        self._fixes = []
        self._skipped = []
        self._human_handoff = []
        self._pending_count = 0
        self._violation_metadata.clear()


def create_report_from_session(
    session_id: str,
    url: str,
    tracker: SessionStateTracker,
    audit_log: AuditLog,
    violation_metadata: Mapping[str, ViolationMetadata],
) -> RemediationReport:
    generator = ReportGenerator(session_id, url)
    generator.populate_from_session(tracker, audit_log, violation_metadata)
    return generator.generate()
