import pytest

from remediator.app.reporting.audit_log import AuditLog
from remediator.app.schemas.audit_log import AuditLogResult
from remediator.app.schemas.fixes import FixResult
from remediator.app.schemas.violations import Severity
from remediator.app.workflow.exceptions import WorkflowIncompleteError
from remediator.app.workflow.orchestrator import WorkflowOrchestrator
from remediator.tests.fixtures.factories import make_violation


URL = "https://example.test/"
SESSION = "session-report"


def _cycle(orchestrator, audit_log, passed, reason=None):
    violation = orchestrator.start_planning()
    instruction = orchestrator.complete_planning()
    orchestrator.start_execution()
    result = FixResult(
        success=True,
        selector=instruction.selector,
        before_html="<img>",
        after_html='<img alt="fixed">',
    )
    audit_log.log(
        SESSION,
        violation.id,
        instruction,
        result.before_html,
        result.after_html,
        AuditLogResult.APPLIED,
    )
    orchestrator.complete_execution(result)
    orchestrator.start_verification()
    orchestrator.handle_verification_result(passed, reason)


def test_report_is_refused_while_work_is_pending():
    orchestrator = WorkflowOrchestrator(URL)
    orchestrator.start_scan()
    orchestrator.complete_scan([make_violation("a")], URL)

    with pytest.raises(WorkflowIncompleteError) as excinfo:
        orchestrator.generate_report(SESSION, AuditLog())

    assert excinfo.value.pending_count == 1


def test_report_reconciles_fixed_skipped_and_handoff():
    audit_log = AuditLog()
    orchestrator = WorkflowOrchestrator(URL)
    orchestrator.start_scan()
    orchestrator.complete_scan(
        [
            make_violation("fixed", impact=Severity.CRITICAL),
            make_violation("stuck", impact=Severity.MINOR, rule_id="color-contrast"),
        ],
        URL,
    )

    _cycle(orchestrator, audit_log, passed=True)
    for _ in range(3):
        _cycle(orchestrator, audit_log, passed=False, reason="Contrast still low")

    report = orchestrator.generate_report(SESSION, audit_log)

    assert report.session_id == SESSION
    assert report.url == URL
    assert report.summary.total_violations == 2
    assert report.summary.fixed_count == 1
    assert report.summary.skipped_count == 1
    assert report.summary.pending_count == 0

    assert [f.violation_id for f in report.fixes] == ["fixed"]
    assert report.fixes[0].rule_id == "image-alt"

    skipped = report.skipped[0]
    assert skipped.violation_id == "stuck"
    assert skipped.rule_id == "color-contrast"
    assert skipped.reason == "Contrast still low"
    assert skipped.attempts == 3

    assert [h.violation_id for h in report.human_handoff] == ["stuck"]


def test_escalated_violation_carries_suggested_action():
    audit_log = AuditLog()
    orchestrator = WorkflowOrchestrator(URL)
    orchestrator.start_scan()
    orchestrator.complete_scan([make_violation("a")], URL)

    orchestrator.start_planning()
    orchestrator.complete_planning()
    orchestrator.start_execution()
    orchestrator.complete_execution(FixResult(success=True, selector="#a"))
    orchestrator.start_verification()
    orchestrator.escalate_to_human("Fix would break a form", "Review the form")

    report = orchestrator.generate_report(SESSION, audit_log)

    assert report.summary.skipped_count == 1
    assert report.skipped[0].attempts == 1
    handoff = report.human_handoff[0]
    assert handoff.reason == "Fix would break a form"
    assert handoff.suggested_action == "Review the form"



def _dragging(violation_id="drag"):
    return make_violation(
        violation_id,
        rule_id="dragging-movements",
        html='<input type="range" class="slider">',
    )


SLIDER_ACTION = (
    "Implement input-based alternative: "
    "Add a number input for precise value entry"
)


def test_exhausted_dragging_violation_carries_specialist_suggestion():
    audit_log = AuditLog()
    orchestrator = WorkflowOrchestrator(URL)
    orchestrator.start_scan()
    orchestrator.complete_scan([_dragging()], URL)

    for _ in range(3):
        _cycle(orchestrator, audit_log, passed=False, reason="Still drag-only")

    report = orchestrator.generate_report(SESSION, audit_log)

    handoff = report.human_handoff[0]
    assert handoff.violation_id == "drag"
    assert handoff.reason == "Still drag-only"
    assert handoff.suggested_action == SLIDER_ACTION


def test_specialist_suggestion_overrides_escalation_default():
    orchestrator = WorkflowOrchestrator(URL)
    orchestrator.start_scan()
    orchestrator.complete_scan([_dragging()], URL)

    orchestrator.start_planning()
    orchestrator.complete_planning()
    orchestrator.start_execution()
    orchestrator.complete_execution(FixResult(success=True, selector="#drag"))
    orchestrator.start_verification()
    metadata = orchestrator.escalate_to_human("Verification gave up", "Review the fix")

    assert metadata.suggested_action == SLIDER_ACTION
    report = orchestrator.generate_report(SESSION, AuditLog())
    assert report.human_handoff[0].suggested_action == SLIDER_ACTION

def test_empty_scan_produces_empty_report():
    orchestrator = WorkflowOrchestrator(URL)
    orchestrator.start_scan()
    orchestrator.complete_scan([], URL)

    report = orchestrator.generate_report(SESSION, AuditLog())

    assert report.summary.total_violations == 0
    assert report.fixes == []
