"""
Workflow errors.

Every error here is fatal to the call that raised it. None of them is
used for per-violation failures, which are values (FixResult.error,
RecoveryResult) handled inside the fix-verify cycle.
"""

from __future__ import annotations

from remediator.app.workflow.states import WorkflowAction, WorkflowState


class WorkflowTransitionError(RuntimeError):
    """
    An operation was called in a state that does not allow it.
    """

    def __init__(
        self,
        current_state: WorkflowState,
        attempted_action: WorkflowAction,
        message: str,
    ) -> None:
        super().__init__(
            f"[{current_state.value} -> {attempted_action.value}] {message}"
        )
        self.current_state = current_state
        self.attempted_action = attempted_action


class ViolationNotFoundError(RuntimeError):
    """
    A pending violation id has no matching scanned violation.
    """

    def __init__(self, violation_id: str) -> None:
        super().__init__(f"Violation {violation_id} not found in violations list")
        self.violation_id = violation_id


class WorkflowIncompleteError(RuntimeError):
    """
    A report was requested before every violation was processed.
    """

    def __init__(self, state: WorkflowState, pending_count: int) -> None:
        super().__init__(
            "Cannot generate report: workflow is not complete "
            f"(state={state.value}, pending={pending_count})"
        )
        self.state = state
        self.pending_count = pending_count
