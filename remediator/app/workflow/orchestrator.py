"""
Workflow Orchestrator.

Synchronous state machine sequencing the scan -> plan -> execute ->
verify lifecycle of one remediation session.

State transitions:
- IDLE      -> SCANNING   (START_SCAN)
- SCANNING  -> PLANNING   (SCAN_COMPLETE with violations)
- SCANNING  -> COMPLETE   (SCAN_COMPLETE without violations)
- PLANNING  -> EXECUTING  (PLAN_COMPLETE)
- PLANNING  -> COMPLETE   (START_PLANNING with nothing pending)
- EXECUTING -> VERIFYING  (EXECUTION_COMPLETE)
- VERIFYING -> PLANNING   (VERIFICATION_PASS / FAIL, work remaining)
- VERIFYING -> COMPLETE   (VERIFICATION_PASS / FAIL, nothing pending)
- any       -> IDLE       (RESET)

IMPORTANT:
- Audit-first ordering: no execution-class operation is legal before a
  scan has completed in the current (non-reset) lifetime.
- The orchestrator never mutates the session ledger directly. Every
  change goes through the SessionStateTracker.
- The orchestrator never awaits anything. External calls are made by the
  caller between the *_start / *_complete pairs.
- Illegal calls always raise WorkflowTransitionError. They are never
  ignored.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from remediator.app.config import RemediatorConfig
from remediator.app.planning.router import FixPlanningRouter, PlannedFix
from remediator.app.reporting.audit_log import AuditLog
from remediator.app.reporting.report_generator import (
    ReportGenerator,
    ViolationMetadata,
)
from remediator.app.schemas.fixes import FixInstruction, FixResult
from remediator.app.schemas.remediation_report import RemediationReport
from remediator.app.schemas.violations import PageContext, Violation
from remediator.app.session.state_tracker import SessionStateTracker
from remediator.app.workflow.exceptions import (
    ViolationNotFoundError,
    WorkflowIncompleteError,
    WorkflowTransitionError,
)
from remediator.app.workflow.states import (
    WorkflowAction,
    WorkflowEvent,
    WorkflowState,
)

logger = logging.getLogger(__name__)


# The fix-verify cycle every PLAN_COMPLETE must be followed by.
FIX_VERIFY_CYCLE = (
    WorkflowAction.START_EXECUTION,
    WorkflowAction.EXECUTION_COMPLETE,
    WorkflowAction.START_VERIFICATION,
)

VERIFICATION_OUTCOMES = frozenset(
    {WorkflowAction.VERIFICATION_PASS, WorkflowAction.VERIFICATION_FAIL}
)


def sort_by_severity(violations: Sequence[Violation]) -> List[Violation]:
    """
    Stable sort: critical, serious, moderate, minor. Equal severities keep
    their scan order.
    """
    return sorted(violations, key=lambda v: v.impact.priority)


class WorkflowOrchestrator:
    def __init__(
        self,
        url: str,
        *,
        config: Optional[RemediatorConfig] = None,
        tracker: Optional[SessionStateTracker] = None,
        router: Optional[FixPlanningRouter] = None,
    ) -> None:
        self._config = config or RemediatorConfig()

        if tracker is not None:
            self._check_tracker(tracker)

        self._tracker = tracker or SessionStateTracker(
            url,
            max_retry_attempts=self._config.MAX_RETRY_ATTEMPTS,
        )
        self._router = router or FixPlanningRouter()

        self._state = WorkflowState.IDLE
        self._scan_completed = False
        self._violations: List[Violation] = []
        self._current_violation: Optional[Violation] = None
        self._current_instruction: Optional[FixInstruction] = None
        self._current_plan: Optional[PlannedFix] = None
        self._last_result: Optional[FixResult] = None
        self._page_context: Optional[PageContext] = None
        self._event_history: List[WorkflowEvent] = []

        # Instructions fed back by verification recovery, keyed by
        # violation id. Consumed by the next planning round.
        self._corrected_instructions: Dict[str, FixInstruction] = {}
        self._escalations: Dict[str, ViolationMetadata] = {}

    def _check_tracker(self, tracker: SessionStateTracker) -> None:
        if tracker.max_retry_attempts != self._config.MAX_RETRY_ATTEMPTS:
            raise ValueError(
                "Tracker retry limit "
                f"({tracker.max_retry_attempts}) does not match "
                f"MAX_RETRY_ATTEMPTS ({self._config.MAX_RETRY_ATTEMPTS})"
            )

    # ------------------------------------------------------------------
    # Read-only accessors
    # ------------------------------------------------------------------

    @property
    def state(self) -> WorkflowState:
        return self._state

    @property
    def scan_completed(self) -> bool:
        return self._scan_completed

    @property
    def current_violation(self) -> Optional[Violation]:
        return self._current_violation

    @property
    def current_instruction(self) -> Optional[FixInstruction]:
        return self._current_instruction

    @property
    def current_plan(self) -> Optional[PlannedFix]:
        """Router output for the current violation, None for a corrected retry."""
        return self._current_plan

    @property
    def last_result(self) -> Optional[FixResult]:
        return self._last_result

    @property
    def tracker(self) -> SessionStateTracker:
        return self._tracker

    @property
    def config(self) -> RemediatorConfig:
        return self._config

    @property
    def violations(self) -> List[Violation]:
        return list(self._violations)

    @property
    def event_history(self) -> List[WorkflowEvent]:
        return list(self._event_history)

    # ------------------------------------------------------------------
    # Audit-first enforcement
    # ------------------------------------------------------------------

    def can_execute_injector_action(self) -> bool:
        return self._scan_completed

    def require_scan_complete(self) -> None:
        if not self._scan_completed:
            raise WorkflowTransitionError(
                self._state,
                WorkflowAction.START_EXECUTION,
                "Cannot execute injector actions before scan is complete. "
                "Audit-first ordering requires a scan to be completed first.",
            )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _record(
        self,
        action: WorkflowAction,
        payload: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._event_history.append(WorkflowEvent(action=action, payload=payload))

    def _transition_to(self, state: WorkflowState) -> None:
        logger.debug("Workflow %s -> %s", self._state.value, state.value)
        self._state = state

    def _require_state(self, expected: WorkflowState, action: WorkflowAction) -> None:
        if self._state is not expected:
            raise WorkflowTransitionError(
                self._state,
                action,
                f"Must be in {expected.value} state.",
            )

    def _require_current_violation(self, action: WorkflowAction) -> Violation:
        if self._current_violation is None:
            raise WorkflowTransitionError(
                self._state,
                action,
                "No violation is currently being processed.",
            )
        return self._current_violation

    def _finish_cycle(self) -> None:
        self._current_violation = None
        self._current_instruction = None
        self._current_plan = None
        self._last_result = None
        self._tracker.set_current_violation(None)

        if self._tracker.is_complete():
            self._transition_to(WorkflowState.COMPLETE)
            self._record(WorkflowAction.ALL_VIOLATIONS_PROCESSED)
        else:
            self._transition_to(WorkflowState.PLANNING)

    # ------------------------------------------------------------------
    # Scan
    # ------------------------------------------------------------------

    def start_scan(self) -> None:
        self._require_state(WorkflowState.IDLE, WorkflowAction.START_SCAN)
        self._record(WorkflowAction.START_SCAN)
        self._transition_to(WorkflowState.SCANNING)

    def complete_scan(self, violations: Sequence[Violation], url: str) -> None:
        """
        Record scan results and establish the audit-first invariant.

        The priority-ordered ids become the tracker's pending sequence.
        """
        self._require_state(WorkflowState.SCANNING, WorkflowAction.SCAN_COMPLETE)

        ordered = sort_by_severity(violations)
        self._tracker.set_pending_violations(v.id for v in ordered)
        self._violations = ordered
        self._scan_completed = True

        self._record(
            WorkflowAction.SCAN_COMPLETE,
            {"url": url, "violation_ids": [v.id for v in ordered]},
        )

        if not ordered:
            self._transition_to(WorkflowState.COMPLETE)
        else:
            self._transition_to(WorkflowState.PLANNING)

    # ------------------------------------------------------------------
    # Plan
    # ------------------------------------------------------------------

    def start_planning(
        self,
        context: Optional[PageContext] = None,
    ) -> Optional[Violation]:
        """
        Select the head of the pending sequence as the active violation.

        Returns None (and completes the workflow) when nothing is pending.
        """
        self._require_state(WorkflowState.PLANNING, WorkflowAction.START_PLANNING)

        next_id = self._tracker.get_next_pending_violation()
        if next_id is None:
            self._transition_to(WorkflowState.COMPLETE)
            self._record(WorkflowAction.ALL_VIOLATIONS_PROCESSED)
            return None

        violation = next((v for v in self._violations if v.id == next_id), None)
        if violation is None:
            raise ViolationNotFoundError(next_id)

        self._tracker.set_current_violation(next_id)
        self._current_violation = violation
        self._page_context = context or PageContext(
            url=self._tracker.get_current_url()
        )

        self._record(
            WorkflowAction.START_PLANNING,
            {
                "violation_id": next_id,
                "attempt": self._tracker.get_retry_attempts() + 1,
            },
        )
        return violation

    def complete_planning(self) -> FixInstruction:
        """
        Produce the fix instruction for the active violation.

        A corrected instruction left behind by verification recovery takes
        precedence over a fresh router plan.
        """
        if self._state is not WorkflowState.PLANNING or self._current_violation is None:
            raise WorkflowTransitionError(
                self._state,
                WorkflowAction.PLAN_COMPLETE,
                "Planning requires PLANNING state and an active violation.",
            )

        violation = self._current_violation
        corrected = self._corrected_instructions.pop(violation.id, None)

        if corrected is not None:
            self._current_plan = None
            self._current_instruction = corrected
        else:
            context = self._page_context or PageContext(
                url=self._tracker.get_current_url()
            )
            self._current_plan = self._router.plan(violation, context)
            self._current_instruction = self._current_plan.instruction

        self._record(
            WorkflowAction.PLAN_COMPLETE,
            {
                "violation_id": violation.id,
                "instruction": self._current_instruction.model_dump(),
                "corrected": corrected is not None,
            },
        )
        self._transition_to(WorkflowState.EXECUTING)
        return self._current_instruction

    # ------------------------------------------------------------------
    # Execute
    # ------------------------------------------------------------------

    def start_execution(self) -> FixInstruction:
        self._require_state(WorkflowState.EXECUTING, WorkflowAction.START_EXECUTION)
        self.require_scan_complete()

        violation = self._require_current_violation(WorkflowAction.START_EXECUTION)
        if self._current_instruction is None:
            raise WorkflowTransitionError(
                self._state,
                WorkflowAction.START_EXECUTION,
                "No fix instruction has been planned.",
            )

        self._record(
            WorkflowAction.START_EXECUTION,
            {"violation_id": violation.id},
        )
        return self._current_instruction

    def correct_instruction(self, instruction: FixInstruction) -> None:
        """
        Swap in a recovered instruction mid-execution.

        Used after selector recovery, before the single re-apply. The
        instruction must belong to the active violation.
        """
        self._require_state(WorkflowState.EXECUTING, WorkflowAction.START_EXECUTION)
        violation = self._require_current_violation(WorkflowAction.START_EXECUTION)

        if instruction.violation_id != violation.id:
            raise ValueError(
                f"Instruction for {instruction.violation_id} cannot replace "
                f"the instruction of active violation {violation.id}"
            )

        logger.debug(
            "Instruction for %s corrected: %s -> %s",
            violation.id,
            self._current_instruction.selector if self._current_instruction else None,
            instruction.selector,
        )
        self._current_instruction = instruction

    def complete_execution(self, result: FixResult) -> None:
        self._require_state(WorkflowState.EXECUTING, WorkflowAction.EXECUTION_COMPLETE)
        violation = self._require_current_violation(WorkflowAction.EXECUTION_COMPLETE)

        self._last_result = result
        self._record(
            WorkflowAction.EXECUTION_COMPLETE,
            {
                "violation_id": violation.id,
                "success": result.success,
                "error_code": result.error.code.value if result.error else None,
            },
        )
        self._transition_to(WorkflowState.VERIFYING)

    # ------------------------------------------------------------------
    # Verify
    # ------------------------------------------------------------------

    def start_verification(self) -> None:
        self._require_state(WorkflowState.VERIFYING, WorkflowAction.START_VERIFICATION)
        violation = self._require_current_violation(WorkflowAction.START_VERIFICATION)
        self._record(
            WorkflowAction.START_VERIFICATION,
            {"violation_id": violation.id},
        )

    def handle_verification_result(
        self,
        passed: bool,
        reason: Optional[str] = None,
        *,
        corrected_instruction: Optional[FixInstruction] = None,
    ) -> None:
        """
        Apply a verification verdict to the active violation.

        Three-strike rule: a failure increments the retry counter and the
        violation is skipped only once the counter reaches
        MAX_RETRY_ATTEMPTS. Below the limit it stays pending, and a
        supplied corrected instruction is used for the next attempt.
        """
        action = (
            WorkflowAction.VERIFICATION_PASS
            if passed
            else WorkflowAction.VERIFICATION_FAIL
        )
        self._require_state(WorkflowState.VERIFYING, action)
        violation = self._require_current_violation(action)

        if passed:
            self._tracker.mark_violation_fixed(violation.id)
            self._corrected_instructions.pop(violation.id, None)
            self._record(action, {"violation_id": violation.id, "passed": True})
            self._finish_cycle()
            return

        attempts = self._tracker.increment_retry(violation.id, reason)
        skipped = self._tracker.has_reached_three_strike_limit(violation.id)

        if skipped:
            self._tracker.skip_violation(
                violation.id,
                reason or f"Max retries ({self._tracker.max_retry_attempts}) exceeded",
            )
            self._corrected_instructions.pop(violation.id, None)
            suggestion = self._router.suggest_handoff_action(violation)
            if suggestion is not None:
                self._escalations[violation.id] = ViolationMetadata(
                    violation_id=violation.id,
                    rule_id=violation.rule_id,
                    selector=violation.selector,
                    reason=reason,
                    attempts=attempts,
                    suggested_action=suggestion,
                )
            logger.warning(
                "Violation %s skipped after %d failed attempt(s): %s",
                violation.id,
                attempts,
                reason,
            )
        elif corrected_instruction is not None:
            if corrected_instruction.violation_id != violation.id:
                raise ValueError(
                    "Corrected instruction belongs to "
                    f"{corrected_instruction.violation_id}, not {violation.id}"
                )
            self._corrected_instructions[violation.id] = corrected_instruction

        self._record(
            action,
            {
                "violation_id": violation.id,
                "passed": False,
                "reason": reason,
                "attempts": attempts,
                "skipped": skipped,
            },
        )
        self._finish_cycle()

    def escalate_to_human(self, reason: str, suggested_action: str) -> ViolationMetadata:
        """
        Skip the active violation immediately and queue it for manual review.

        Used for failures recovery cannot handle. Processing of the
        remaining violations continues.

        A suggestion from the routed specialist takes precedence over
        `suggested_action`.
        """
        self._require_state(WorkflowState.VERIFYING, WorkflowAction.VERIFICATION_FAIL)
        violation = self._require_current_violation(WorkflowAction.VERIFICATION_FAIL)

        attempts = self._tracker.increment_retry(violation.id, reason)
        self._tracker.skip_violation(violation.id, reason)
        self._corrected_instructions.pop(violation.id, None)

        metadata = ViolationMetadata(
            violation_id=violation.id,
            rule_id=violation.rule_id,
            selector=violation.selector,
            reason=reason,
            attempts=attempts,
            suggested_action=(
                self._router.suggest_handoff_action(violation) or suggested_action
            ),
        )
        self._escalations[violation.id] = metadata

        logger.warning("Violation %s handed off to a human: %s", violation.id, reason)

        self._record(
            WorkflowAction.VERIFICATION_FAIL,
            {
                "violation_id": violation.id,
                "passed": False,
                "reason": reason,
                "attempts": attempts,
                "skipped": True,
                "handoff": True,
            },
        )
        self._finish_cycle()
        return metadata

    # ------------------------------------------------------------------
    # Reset
    # ------------------------------------------------------------------

    def reset(self, tracker: Optional[SessionStateTracker] = None) -> None:
        """
        Return to IDLE and start a new session lifetime.

        The ledger is replaced by `tracker`, or by a fresh tracker for the
        same URL when none is supplied, so the page can be scanned again.
        """
        if tracker is None:
            tracker = SessionStateTracker(
                self._tracker.get_current_url(),
                max_retry_attempts=self._config.MAX_RETRY_ATTEMPTS,
            )
        else:
            self._check_tracker(tracker)

        self._record(WorkflowAction.RESET)
        self._state = WorkflowState.IDLE
        self._scan_completed = False
        self._violations = []
        self._current_violation = None
        self._current_instruction = None
        self._current_plan = None
        self._last_result = None
        self._page_context = None
        self._corrected_instructions.clear()
        self._escalations.clear()

        self._tracker = tracker

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def get_processing_order(self) -> List[str]:
        return [v.id for v in self._violations]

    def is_complete(self) -> bool:
        return self._state is WorkflowState.COMPLETE

    def get_summary(self) -> Dict[str, Any]:
        session = self._tracker.get_summary()
        return {
            "state": self._state,
            "scan_completed": self._scan_completed,
            "total_violations": len(self._violations),
            "processed_count": session["total_processed"],
            "fixed_count": session["fixed_count"],
            "skipped_count": session["skipped_count"],
            "pending_count": session["pending_count"],
        }

    def get_action_sequence(self) -> List[WorkflowAction]:
        return [event.action for event in self._event_history]

    def validate_fix_verify_cycle(self) -> bool:
        """
        Every PLAN_COMPLETE must be followed, with no interleaving, by
        START_EXECUTION, EXECUTION_COMPLETE, START_VERIFICATION and one
        verification outcome.

        A cycle still in flight at the end of the history is accepted as
        long as its recorded prefix is in order.
        """
        sequence = self.get_action_sequence()
        expected = (*FIX_VERIFY_CYCLE, None)

        for index, action in enumerate(sequence):
            if action is not WorkflowAction.PLAN_COMPLETE:
                continue

            following = sequence[index + 1 : index + 1 + len(expected)]
            for got, want in zip(following, expected):
                if want is None:
                    if got not in VERIFICATION_OUTCOMES:
                        return False
                elif got is not want:
                    return False

        return True

    # ------------------------------------------------------------------
    # Completion and reporting
    # ------------------------------------------------------------------

    def detect_completion(self) -> bool:
        return self._state is WorkflowState.COMPLETE and self._tracker.is_complete()

    def get_violation_metadata(self) -> Dict[str, ViolationMetadata]:
        metadata = {
            v.id: ViolationMetadata.from_violation(v) for v in self._violations
        }
        metadata.update(self._escalations)
        return metadata

    def generate_report(self, session_id: str, audit_log: AuditLog) -> RemediationReport:
        """
        Build the final report. Legal only once every violation is settled.

        Raises WorkflowIncompleteError otherwise.
        """
        if not self.detect_completion():
            raise WorkflowIncompleteError(
                self._state,
                len(self._tracker.get_pending_violations()),
            )

        generator = ReportGenerator(session_id, self._tracker.get_current_url())
        generator.register_violations(self._violations)
        generator.populate_from_session(
            self._tracker,
            audit_log,
            self.get_violation_metadata(),
        )
        return generator.generate()
