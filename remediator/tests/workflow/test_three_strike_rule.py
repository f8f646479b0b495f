import pytest

from remediator.app.config import RemediatorConfig
from remediator.app.schemas.fixes import FixResult
from remediator.app.session.state_tracker import SessionStateTracker
from remediator.app.workflow.orchestrator import WorkflowOrchestrator
from remediator.app.workflow.states import WorkflowAction, WorkflowState
from remediator.tests.fixtures.factories import make_attribute_fix, make_violation


URL = "https://example.test/"


def _scanned(*violations, config=None) -> WorkflowOrchestrator:
    orchestrator = WorkflowOrchestrator(URL, config=config)
    orchestrator.start_scan()
    orchestrator.complete_scan(list(violations), URL)
    return orchestrator


def _fail_once(orchestrator, reason="still failing", corrected=None):
    orchestrator.start_planning()
    instruction = orchestrator.complete_planning()
    orchestrator.start_execution()
    orchestrator.complete_execution(
        FixResult(
            success=True,
            selector=instruction.selector,
            before_html="<a>",
            after_html="<a>",
        )
    )
    orchestrator.start_verification()
    orchestrator.handle_verification_result(
        False, reason, corrected_instruction=corrected
    )
    return instruction


def test_two_failures_keep_violation_pending():
    orchestrator = _scanned(make_violation("a"))

    _fail_once(orchestrator)
    _fail_once(orchestrator)

    tracker = orchestrator.tracker
    assert tracker.get_pending_violations() == ["a"]
    assert tracker.get_skipped_violations() == []
    assert tracker.get_retry_attempts_for_violation("a") == 2
    assert orchestrator.state is WorkflowState.PLANNING


def test_third_failure_skips_and_never_fixes():
    orchestrator = _scanned(make_violation("a"))

    for _ in range(3):
        _fail_once(orchestrator, reason="Alt text is vague")

    tracker = orchestrator.tracker
    assert tracker.get_skipped_violations() == ["a"]
    assert tracker.get_fixed_violations() == []
    assert tracker.get_last_failure_reason("a") == "Alt text is vague"
    assert orchestrator.state is WorkflowState.COMPLETE

    fail_events = [
        e for e in orchestrator.event_history
        if e.action is WorkflowAction.VERIFICATION_FAIL
    ]
    assert [e.payload["skipped"] for e in fail_events] == [False, False, True]


def test_skip_without_reason_uses_default():
    orchestrator = _scanned(make_violation("a"))

    for _ in range(3):
        _fail_once(orchestrator, reason=None)

    assert orchestrator.tracker.get_human_handoff_reason() == "Max retries (3) exceeded"


def test_configured_retry_limit_is_honoured():
    config = RemediatorConfig(MAX_RETRY_ATTEMPTS=1)
    orchestrator = _scanned(make_violation("a"), config=config)

    _fail_once(orchestrator)

    assert orchestrator.tracker.get_skipped_violations() == ["a"]


def test_mismatched_tracker_limit_is_rejected():
    with pytest.raises(ValueError):
        WorkflowOrchestrator(
            URL,
            config=RemediatorConfig(MAX_RETRY_ATTEMPTS=5),
            tracker=SessionStateTracker(URL, max_retry_attempts=3),
        )


def test_corrected_instruction_replaces_next_plan():
    orchestrator = _scanned(make_violation("a"))
    corrected = make_attribute_fix(
        "a", selector="#a", attribute="alt", value="Team photo - unique identifier"
    )

    _fail_once(orchestrator, reason="duplicate", corrected=corrected)

    orchestrator.start_planning()
    instruction = orchestrator.complete_planning()

    assert instruction == corrected
    assert orchestrator.current_plan is None
    plan_events = [
        e for e in orchestrator.event_history
        if e.action is WorkflowAction.PLAN_COMPLETE
    ]
    assert plan_events[-1].payload["corrected"] is True


def test_corrected_instruction_for_other_violation_is_rejected():
    orchestrator = _scanned(make_violation("a"))
    foreign = make_attribute_fix("b", selector="#b")

    with pytest.raises(ValueError):
        _fail_once(orchestrator, corrected=foreign)


def test_passing_after_two_failures_fixes():
    orchestrator = _scanned(make_violation("a"))
    _fail_once(orchestrator)
    _fail_once(orchestrator)

    orchestrator.start_planning()
    instruction = orchestrator.complete_planning()
    orchestrator.start_execution()
    orchestrator.complete_execution(
        FixResult(success=True, selector=instruction.selector)
    )
    orchestrator.start_verification()
    orchestrator.handle_verification_result(True)

    assert orchestrator.tracker.get_fixed_violations() == ["a"]
    assert orchestrator.tracker.get_retry_attempts_for_violation("a") == 0
    assert orchestrator.detect_completion() is True
