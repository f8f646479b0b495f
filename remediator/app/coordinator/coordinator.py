"""
Remediation coordinator.

The async driver of one remediation session, and the ONLY component
that awaits the external capabilities.

Execution order:
    1. Scan (audit-first, establishes the pending sequence)
    2. Per violation, strictly sequentially:
       plan -> safety gate -> snapshot -> inject -> verify
    3. Report

IMPORTANT:
- At most one mutating call is outstanding per coordinator. Concurrent
  `run()` calls on the same coordinator are serialized.
- Cancellation is cooperative and observed only at phase boundaries.
  An in-flight capability call is never aborted here.
- A single violation's unrecoverable failure becomes a human handoff.
  It never aborts the session.
- Events are strictly observational and never influence control flow.
- DOM snapshots live only as long as the run that took them. The
  session's snapshots are cleared when `run()` returns or raises.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional, Tuple

import anyio
from pydantic import BaseModel
from pydantic import ConfigDict

from remediator.app.checks.safety_validator import SafetyValidator
from remediator.app.config import RemediatorConfig
from remediator.app.coordinator.capabilities import AuditCapability, FixInjector
from remediator.app.events import (
    EventEmitter,
    NullEventEmitter,
    RemediationEvent,
    RemediationEventType,
)
from remediator.app.planning.router import FixPlanningRouter
from remediator.app.recovery.error_recovery import (
    ErrorRecoveryService,
    RecoveryAction,
)
from remediator.app.reporting.audit_log import AuditLog
from remediator.app.rollback.rollback_manager import PageHandle, RollbackManager
from remediator.app.schemas.audit_log import AuditLogResult
from remediator.app.schemas.fixes import (
    FixInstruction,
    FixResult,
    InjectorError,
    InjectorErrorCode,
)
from remediator.app.schemas.remediation_report import RemediationReport
from remediator.app.schemas.violations import (
    PageContext,
    PageStructure,
    Viewport,
    Violation,
)
from remediator.app.workflow.orchestrator import WorkflowOrchestrator
from remediator.app.workflow.states import WorkflowState

logger = logging.getLogger(__name__)


SUGGESTED_ACTIONS: Dict[InjectorErrorCode, str] = {
    InjectorErrorCode.SELECTOR_NOT_FOUND: (
        "Locate the affected element manually and apply the fix"
    ),
    InjectorErrorCode.CONTENT_CHANGED: (
        "Re-run the audit and plan the fix against the current page content"
    ),
    InjectorErrorCode.VALIDATION_FAILED: (
        "Correct the fix instruction and apply it manually"
    ),
    InjectorErrorCode.DESTRUCTIVE_CHANGE: (
        "Review the fix manually; it would break an interactive element"
    ),
    InjectorErrorCode.STYLE_CONFLICT: (
        "Resolve the conflicting styles manually"
    ),
}

VERIFICATION_HANDOFF_ACTION = (
    "Review the applied fix manually; automated verification recovery failed"
)

DEFAULT_VERIFICATION_FAILURE = "Verification failed"


class RemediationOutcome(BaseModel):
    """
    Result of one `RemediationCoordinator.run()` call.

    `report` is None for a cancelled run. `session_attributes` is the
    flat, restartable form of the session ledger in either case.
    """

    session_id: str
    state: WorkflowState
    cancelled: bool
    report: Optional[RemediationReport] = None
    session_attributes: Dict[str, str]

    model_config = ConfigDict(frozen=True)


class _Cancelled(Exception):
    """Internal signal: cancellation observed at a phase boundary."""


class RemediationCoordinator:
    def __init__(
        self,
        *,
        audit: AuditCapability,
        injector: FixInjector,
        page: PageHandle,
        config: Optional[RemediatorConfig] = None,
        router: Optional[FixPlanningRouter] = None,
        rollback_manager: Optional[RollbackManager] = None,
        audit_log: Optional[AuditLog] = None,
        safety_validator: Optional[SafetyValidator] = None,
        error_recovery: Optional[ErrorRecoveryService] = None,
    ) -> None:
        self._config = config or RemediatorConfig()
        self._audit = audit
        self._injector = injector
        self._page = page
        self._router = router or FixPlanningRouter()
        self._audit_log = audit_log or AuditLog()
        self._safety_validator = safety_validator or SafetyValidator()

        if error_recovery is None:
            error_recovery = ErrorRecoveryService(
                rollback_manager or RollbackManager(),
                confidence_threshold=self._config.SELECTOR_CONFIDENCE_THRESHOLD,
            )
        elif (
            rollback_manager is not None
            and rollback_manager is not error_recovery.rollback_manager
        ):
            raise ValueError(
                "rollback_manager must be the one owned by error_recovery"
            )
        self._error_recovery = error_recovery
        self._lock = anyio.Lock()

    @property
    def audit_log(self) -> AuditLog:
        return self._audit_log

    @property
    def rollback_manager(self) -> RollbackManager:
        return self._error_recovery.rollback_manager

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def run(
        self,
        *,
        url: str,
        session_id: str,
        viewport: Optional[Viewport] = None,
        emitter: Optional[EventEmitter] = None,
        cancel_event: Optional[anyio.Event] = None,
    ) -> RemediationOutcome:
        """
        Remediate `url` end to end.

        Unexpected exceptions (including workflow-transition errors,
        which indicate a defect) emit REMEDIATION_FAILED and re-raise.
        """
        emitter = emitter or NullEventEmitter()
        viewport = viewport or Viewport(
            width=self._config.DEFAULT_VIEWPORT_WIDTH,
            height=self._config.DEFAULT_VIEWPORT_HEIGHT,
        )

        async with self._lock:
            orchestrator = WorkflowOrchestrator(
                url,
                config=self._config,
                router=self._router,
            )
            self._error_recovery.clear_page_structure_cache()

            await self._emit(
                emitter,
                session_id,
                RemediationEventType.REMEDIATION_STARTED,
                {"url": url},
            )

            try:
                report = await self._run_session(
                    orchestrator,
                    url=url,
                    session_id=session_id,
                    viewport=viewport,
                    emitter=emitter,
                    cancel_event=cancel_event,
                )
            except _Cancelled:
                logger.info(
                    "Session %s cancelled in state %s",
                    session_id,
                    orchestrator.state.value,
                )
                await self._emit(
                    emitter,
                    session_id,
                    RemediationEventType.REMEDIATION_CANCELLED,
                    {"state": orchestrator.state.value},
                )
                return RemediationOutcome(
                    session_id=session_id,
                    state=orchestrator.state,
                    cancelled=True,
                    session_attributes=orchestrator.tracker.to_session_attributes(),
                )
            except Exception as exc:
                await self._emit(
                    emitter,
                    session_id,
                    RemediationEventType.REMEDIATION_FAILED,
                    {"error": str(exc), "state": orchestrator.state.value},
                )
                raise
            finally:
                self.rollback_manager.clear_session(session_id)

            await self._emit(
                emitter,
                session_id,
                RemediationEventType.REMEDIATION_COMPLETED,
                {
                    "fixed_count": report.summary.fixed_count,
                    "skipped_count": report.summary.skipped_count,
                    "human_handoff_count": len(report.human_handoff),
                },
            )

            return RemediationOutcome(
                session_id=session_id,
                state=orchestrator.state,
                cancelled=False,
                report=report,
                session_attributes=orchestrator.tracker.to_session_attributes(),
            )

    # ------------------------------------------------------------------
    # Session phases
    # ------------------------------------------------------------------

    async def _run_session(
        self,
        orchestrator: WorkflowOrchestrator,
        *,
        url: str,
        session_id: str,
        viewport: Viewport,
        emitter: EventEmitter,
        cancel_event: Optional[anyio.Event],
    ) -> RemediationReport:
        # --------------------------------------------------------------
        # 1. Scan (audit-first)
        # --------------------------------------------------------------
        self._check_cancelled(cancel_event)
        orchestrator.start_scan()
        await self._emit(emitter, session_id, RemediationEventType.SCAN_STARTED)

        scan = await self._audit.scan(url, viewport)
        orchestrator.complete_scan(scan.violations, url)

        logger.info(
            "Scan of %s found %d violation(s)", url, len(scan.violations)
        )
        await self._emit(
            emitter,
            session_id,
            RemediationEventType.SCAN_COMPLETED,
            {"violations_count": len(scan.violations)},
        )

        context = PageContext(url=url, title=scan.metadata.get("title"))

        # --------------------------------------------------------------
        # 2. Plan -> execute -> verify, one violation at a time
        # --------------------------------------------------------------
        while orchestrator.state is WorkflowState.PLANNING:
            self._check_cancelled(cancel_event)

            violation = orchestrator.start_planning(context)
            if violation is None:
                break

            instruction = orchestrator.complete_planning()
            plan = orchestrator.current_plan
            await self._emit(
                emitter,
                session_id,
                RemediationEventType.FIX_PLANNED,
                {
                    "violation_id": violation.id,
                    "fix_type": instruction.type.value,
                    "specialist": plan.specialist_name if plan else None,
                    "confidence": plan.confidence.value if plan else None,
                    "requires_human_review": (
                        plan.confidence.requires_human_review if plan else None
                    ),
                },
            )

            self._check_cancelled(cancel_event)
            await self._execute_and_verify(
                orchestrator,
                violation,
                session_id=session_id,
                emitter=emitter,
                cancel_event=cancel_event,
            )

        # --------------------------------------------------------------
        # 3. Report
        # --------------------------------------------------------------
        report = orchestrator.generate_report(session_id, self._audit_log)
        await self._emit(
            emitter,
            session_id,
            RemediationEventType.REPORT_READY,
            {"report": report.model_dump(mode="json")},
        )
        return report

    async def _execute_and_verify(
        self,
        orchestrator: WorkflowOrchestrator,
        violation: Violation,
        *,
        session_id: str,
        emitter: EventEmitter,
        cancel_event: Optional[anyio.Event],
    ) -> None:
        instruction = orchestrator.start_execution()

        result, snapshot_id = await self._inject(
            session_id, violation, instruction, emitter
        )

        handoff_details: Optional[str] = None
        if (
            not result.success
            and result.error is not None
            and result.error.code is InjectorErrorCode.SELECTOR_NOT_FOUND
        ):
            corrected, handoff_details = await self._recover_selector(
                session_id, violation, instruction, result.error, emitter
            )
            if corrected is not None:
                orchestrator.correct_instruction(corrected)
                instruction = corrected
                result, snapshot_id = await self._inject(
                    session_id, violation, instruction, emitter
                )
                if not result.success:
                    handoff_details = (
                        f'Corrected selector "{instruction.selector}" still '
                        f"failed: {result.error.message}"
                    )

        orchestrator.complete_execution(result)
        self._check_cancelled(cancel_event)
        orchestrator.start_verification()

        # --------------------------------------------------------------
        # Injection failure: never auto-recovered past this point
        # --------------------------------------------------------------
        if not result.success:
            error = result.error
            if handoff_details is None:
                handoff_details = self._error_recovery.recover_from_injector_error(
                    error, instruction
                ).details

            await self._handoff(
                orchestrator,
                violation,
                session_id=session_id,
                emitter=emitter,
                reason=handoff_details,
                suggested_action=SUGGESTED_ACTIONS[error.code],
            )
            return

        # --------------------------------------------------------------
        # Verification
        # --------------------------------------------------------------
        outcome = await self._audit.verify_fix(violation, instruction, result)

        if outcome.passed:
            orchestrator.handle_verification_result(True)
            await self._emit(
                emitter,
                session_id,
                RemediationEventType.VERIFICATION_PASSED,
                {"violation_id": violation.id},
            )
            return

        reason = outcome.reason or DEFAULT_VERIFICATION_FAILURE
        await self._emit(
            emitter,
            session_id,
            RemediationEventType.VERIFICATION_FAILED,
            {"violation_id": violation.id, "reason": reason},
        )

        recovery = await self._error_recovery.recover_from_verification_failure(
            self._page,
            reason,
            instruction,
            snapshot_id,
        )
        await self._emit(
            emitter,
            session_id,
            RemediationEventType.RECOVERY_ATTEMPTED,
            {
                "violation_id": violation.id,
                "action": recovery.action.value,
                "success": recovery.success,
                "details": recovery.details,
            },
        )

        if recovery.action is RecoveryAction.HANDOFF:
            await self._handoff(
                orchestrator,
                violation,
                session_id=session_id,
                emitter=emitter,
                reason=recovery.details,
                suggested_action=VERIFICATION_HANDOFF_ACTION,
            )
            return

        if recovery.action is RecoveryAction.ROLLED_BACK:
            self._audit_log.log(
                session_id,
                violation.id,
                instruction,
                before_html=result.after_html,
                after_html=result.before_html,
                result=AuditLogResult.ROLLED_BACK,
            )
            await self._emit(
                emitter,
                session_id,
                RemediationEventType.ROLLBACK_PERFORMED,
                {"violation_id": violation.id, "snapshot_id": snapshot_id},
            )

        orchestrator.handle_verification_result(
            False,
            reason,
            corrected_instruction=recovery.corrected_instruction,
        )

        if violation.id in orchestrator.tracker.get_skipped_violations():
            await self._emit(
                emitter,
                session_id,
                RemediationEventType.VIOLATION_SKIPPED,
                {
                    "violation_id": violation.id,
                    "reason": reason,
                    "attempts": orchestrator.tracker.get_retry_attempts_for_violation(
                        violation.id
                    ),
                },
            )

    # ------------------------------------------------------------------
    # Injection
    # ------------------------------------------------------------------

    async def _inject(
        self,
        session_id: str,
        violation: Violation,
        instruction: FixInstruction,
        emitter: EventEmitter,
    ) -> Tuple[FixResult, Optional[str]]:
        """
        Gate, snapshot and apply one instruction.

        Every attempt lands in the audit log as `applied` or `rejected`.
        """
        if self._config.ENABLE_SAFETY_VALIDATION:
            validation = self._safety_validator.validate(instruction.model_dump())
            if not validation.valid:
                if self._safety_validator.is_destructive(instruction):
                    error = self._safety_validator.create_destructive_change_error(
                        instruction
                    )
                else:
                    error = self._safety_validator.create_validation_failed_error(
                        instruction.selector, validation.errors
                    )
                result = FixResult(
                    success=False,
                    selector=instruction.selector,
                    error=error,
                )
                await self._record_attempt(
                    session_id, violation, instruction, result, emitter
                )
                return result, None

        snapshot_id: Optional[str] = None
        if self._config.ENABLE_SNAPSHOTS:
            html = await self._page.outer_html(instruction.selector)
            if html is not None:
                snapshot_id = self.rollback_manager.save_snapshot(
                    session_id, instruction.selector, html
                )

        result = await self._injector.apply(instruction)
        await self._record_attempt(session_id, violation, instruction, result, emitter)
        return result, snapshot_id

    async def _record_attempt(
        self,
        session_id: str,
        violation: Violation,
        instruction: FixInstruction,
        result: FixResult,
        emitter: EventEmitter,
    ) -> None:
        self._audit_log.log(
            session_id,
            violation.id,
            instruction,
            before_html=result.before_html,
            after_html=result.after_html,
            result=(
                AuditLogResult.APPLIED if result.success else AuditLogResult.REJECTED
            ),
        )

        if result.success:
            await self._emit(
                emitter,
                session_id,
                RemediationEventType.FIX_APPLIED,
                {"violation_id": violation.id, "selector": instruction.selector},
            )
        else:
            await self._emit(
                emitter,
                session_id,
                RemediationEventType.FIX_REJECTED,
                {
                    "violation_id": violation.id,
                    "selector": instruction.selector,
                    "error_code": result.error.code.value,
                    "message": result.error.message,
                },
            )

    # ------------------------------------------------------------------
    # Recovery helpers
    # ------------------------------------------------------------------

    async def _recover_selector(
        self,
        session_id: str,
        violation: Violation,
        instruction: FixInstruction,
        error: InjectorError,
        emitter: EventEmitter,
    ) -> Tuple[Optional[FixInstruction], Optional[str]]:
        structure = await self._page_structure()
        recovery = self._error_recovery.recover_from_injector_error(
            error, instruction, structure
        )

        await self._emit(
            emitter,
            session_id,
            RemediationEventType.RECOVERY_ATTEMPTED,
            {
                "violation_id": violation.id,
                "action": recovery.action.value,
                "success": recovery.success,
                "details": recovery.details,
            },
        )

        if recovery.success and recovery.corrected_instruction is not None:
            return recovery.corrected_instruction, None
        return None, recovery.details

    async def _page_structure(self) -> PageStructure:
        if self._config.CACHE_PAGE_STRUCTURE:
            cached = self._error_recovery.get_page_structure()
            if cached is not None:
                return cached

        structure = await self._audit.get_page_structure()
        if self._config.CACHE_PAGE_STRUCTURE:
            self._error_recovery.set_page_structure(structure)
        return structure

    async def _handoff(
        self,
        orchestrator: WorkflowOrchestrator,
        violation: Violation,
        *,
        session_id: str,
        emitter: EventEmitter,
        reason: str,
        suggested_action: str,
    ) -> None:
        metadata = orchestrator.escalate_to_human(reason, suggested_action)

        await self._emit(
            emitter,
            session_id,
            RemediationEventType.VIOLATION_SKIPPED,
            {"violation_id": violation.id, "reason": reason},
        )
        await self._emit(
            emitter,
            session_id,
            RemediationEventType.HUMAN_HANDOFF,
            {
                "violation_id": violation.id,
                "rule_id": violation.rule_id,
                "reason": reason,
                "suggested_action": metadata.suggested_action,
            },
        )

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    @staticmethod
    def _check_cancelled(cancel_event: Optional[anyio.Event]) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise _Cancelled()

    @staticmethod
    async def _emit(
        emitter: EventEmitter,
        session_id: str,
        event_type: RemediationEventType,
        details: Optional[Dict[str, object]] = None,
    ) -> None:
        await emitter.emit(
            RemediationEvent(
                session_id=session_id,
                event_type=event_type,
                details=details,
            )
        )
