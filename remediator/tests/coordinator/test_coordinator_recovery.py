import pytest

from remediator.app.config import RemediatorConfig
from remediator.app.coordinator.coordinator import (
    SUGGESTED_ACTIONS,
    RemediationCoordinator,
)
from remediator.app.planning.base import BaseSpecialist
from remediator.app.planning.router import FixPlanningRouter
from remediator.app.reporting.report_generator import DEFAULT_SUGGESTED_ACTION
from remediator.app.schemas.fixes import InjectorErrorCode, VerificationOutcome
from remediator.app.schemas.violations import ElementSummary, PageStructure
from remediator.app.workflow.states import WorkflowState
from remediator.tests.fixtures.factories import make_violation
from remediator.tests.fixtures.fakes import FakeAudit, FakeInjector, FakePage, ListEmitter

pytestmark = pytest.mark.anyio


URL = "https://example.test/checkout"


def _fail_until(passing_attempt, reason):
    def verdict(violation, instruction, attempt):
        if attempt >= passing_attempt:
            return VerificationOutcome(passed=True)
        return VerificationOutcome(passed=False, reason=reason)

    return verdict


def _always_fail(reason):
    def verdict(violation, instruction, attempt):
        return VerificationOutcome(passed=False, reason=reason)

    return verdict


class EmptyHrefSpecialist(BaseSpecialist):
    name = "EmptyHrefSpecialist"

    def can_handle(self, violation):
        return True

    def plan_fix(self, violation, context):
        return self.attribute_fix(
            violation, attribute="href", value="", reasoning="Clearing the link target"
        )


# ---------------------------------------------------------------------------
# Selector recovery
# ---------------------------------------------------------------------------


BUTTON = make_violation(
    "v-btn",
    rule_id="button-name",
    selector="#submit-order",
    html='<button id="submit-order"></button>',
)

STRUCTURE = PageStructure(
    interactive_elements=[
        ElementSummary(selector="a.home", tag_name="a", role="link", text="Home"),
        ElementSummary(selector="button#submit-order", tag_name="button", role="button"),
    ]
)


async def test_stale_selector_is_recovered_and_reapplied():
    page = FakePage({"button#submit-order": '<button id="submit-order"></button>'})
    audit = FakeAudit([BUTTON], structure=STRUCTURE)
    injector = FakeInjector(page)
    emitter = ListEmitter()

    outcome = await RemediationCoordinator(
        audit=audit, injector=injector, page=page
    ).run(url=URL, session_id="s1", emitter=emitter)

    (fix,) = outcome.report.fixes
    assert fix.selector == "button#submit-order"
    assert [i.selector for i in injector.applied] == ["#submit-order", "button#submit-order"]
    assert audit.structure_requests == 1
    assert emitter.types()[3:8] == [
        "fix_planned",
        "fix_rejected",
        "recovery_attempted",
        "fix_applied",
        "verification_passed",
    ]


async def test_unmatched_selector_is_handed_off():
    page = FakePage()
    coordinator = RemediationCoordinator(
        audit=FakeAudit([BUTTON]), injector=FakeInjector(page), page=page
    )

    outcome = await coordinator.run(url=URL, session_id="s1")

    report = outcome.report
    assert report.summary.skipped_count == 1
    assert report.skipped[0].attempts == 1
    (handoff,) = report.human_handoff
    assert handoff.reason.startswith("Could not find matching element")
    assert handoff.suggested_action == SUGGESTED_ACTIONS[InjectorErrorCode.SELECTOR_NOT_FOUND]


async def test_corrected_selector_that_still_fails_is_handed_off():
    page = FakePage()
    injector = FakeInjector(page)
    coordinator = RemediationCoordinator(
        audit=FakeAudit([BUTTON], structure=STRUCTURE), injector=injector, page=page
    )

    outcome = await coordinator.run(url=URL, session_id="s1")

    assert len(injector.applied) == 2
    assert outcome.report.human_handoff[0].reason.startswith(
        'Corrected selector "button#submit-order" still failed'
    )


async def test_page_structure_is_fetched_once_per_session():
    violations = [
        make_violation("v-1", rule_id="button-name", selector="#gone-1"),
        make_violation("v-2", rule_id="button-name", selector="#gone-2"),
    ]
    page = FakePage()
    audit = FakeAudit(violations)

    await RemediationCoordinator(
        audit=audit, injector=FakeInjector(page), page=page
    ).run(url=URL, session_id="s1")

    assert audit.structure_requests == 1


# ---------------------------------------------------------------------------
# Verification recovery
# ---------------------------------------------------------------------------


async def test_vague_alt_text_is_improved_on_retry():
    page = FakePage({"#v-1": '<img id="v-1" src="/static/team-photo.jpg">'})
    injector = FakeInjector(page)
    emitter = ListEmitter()
    coordinator = RemediationCoordinator(
        audit=FakeAudit([make_violation()], verdict=_fail_until(2, "Alt text is vague")),
        injector=injector,
        page=page,
    )

    outcome = await coordinator.run(url=URL, session_id="s1", emitter=emitter)

    first, second = injector.applied
    assert second.params.value != first.params.value
    assert second.params.value.startswith(first.params.value)
    assert outcome.report.summary.fixed_count == 1
    assert outcome.report.fixes[0].reasoning == second.reasoning

    planned = [e.details for e in emitter.events if e.event_type.value == "fix_planned"]
    assert planned[0]["specialist"] == "AltTextSpecialist"
    assert planned[1]["specialist"] is None


async def test_fix_that_breaks_the_page_is_rolled_back_and_replanned():
    original = '<img id="v-1" src="/static/team-photo.jpg">'
    page = FakePage({"#v-1": original})
    injector = FakeInjector(page)
    emitter = ListEmitter()
    coordinator = RemediationCoordinator(
        audit=FakeAudit(
            [make_violation()], verdict=_fail_until(2, "Fix introduced a new violation")
        ),
        injector=injector,
        page=page,
    )

    outcome = await coordinator.run(url=URL, session_id="s1", emitter=emitter)

    assert page.replaced == ["#v-1"]
    assert "rollback_performed" in emitter.types()
    assert coordinator.audit_log.get_summary("s1") == {
        "total": 3,
        "applied": 2,
        "rejected": 0,
        "rolled_back": 1,
    }
    assert outcome.report.fixes[0].before_html == original
    assert outcome.report.summary.fixed_count == 1


async def test_three_failed_verifications_skip_the_violation():
    violations = [make_violation("v-1"), make_violation("v-2")]
    page = FakePage(
        {"#v-1": '<img id="v-1" src="/a.png">', "#v-2": '<img id="v-2" src="/b.png">'}
    )
    audit = FakeAudit(violations, verdict=_always_fail("Timeout while checking"))
    injector = FakeInjector(page)
    emitter = ListEmitter()

    outcome = await RemediationCoordinator(
        audit=audit, injector=injector, page=page
    ).run(url=URL, session_id="s1", emitter=emitter)

    assert outcome.state is WorkflowState.COMPLETE
    assert audit.verifications == {"v-1": 3, "v-2": 3}
    assert [i.violation_id for i in injector.applied] == ["v-1"] * 3 + ["v-2"] * 3

    report = outcome.report
    assert report.summary.skipped_count == 2
    assert [s.attempts for s in report.skipped] == [3, 3]
    assert all(h.suggested_action == DEFAULT_SUGGESTED_ACTION for h in report.human_handoff)
    assert emitter.types().count("violation_skipped") == 2


async def test_custom_retry_limit_is_honoured():
    page = FakePage({"#v-1": '<img id="v-1" src="/a.png">'})
    audit = FakeAudit([make_violation()], verdict=_always_fail("Timeout while checking"))

    outcome = await RemediationCoordinator(
        audit=audit,
        injector=FakeInjector(page),
        page=page,
        config=RemediatorConfig(MAX_RETRY_ATTEMPTS=5),
    ).run(url=URL, session_id="s1")

    assert audit.verifications == {"v-1": 5}
    assert outcome.report.skipped[0].attempts == 5


async def test_unrecoverable_verification_failure_is_handed_off_at_once():
    page = FakePage({"p.note": '<p class="note">Hi</p>'})
    audit = FakeAudit(
        [make_violation("v-1", rule_id="color-contrast", selector="p.note")],
        verdict=_always_fail("Colour is still unclear"),
    )

    outcome = await RemediationCoordinator(
        audit=audit, injector=FakeInjector(page), page=page
    ).run(url=URL, session_id="s1")

    assert audit.verifications == {"v-1": 1}
    (handoff,) = outcome.report.human_handoff
    assert handoff.reason.startswith("Could not recover from verification failure")


# ---------------------------------------------------------------------------
# Injection gates
# ---------------------------------------------------------------------------


async def test_destructive_fix_never_reaches_the_injector():
    page = FakePage({"a.promo": '<a class="promo" href="/sale">Sale</a>'})
    injector = FakeInjector(page)
    emitter = ListEmitter()
    coordinator = RemediationCoordinator(
        audit=FakeAudit([make_violation("v-1", rule_id="link-name", selector="a.promo")]),
        injector=injector,
        page=page,
        router=FixPlanningRouter(specialists=[EmptyHrefSpecialist()]),
    )

    outcome = await coordinator.run(url=URL, session_id="s1", emitter=emitter)

    assert injector.applied == []
    rejected = [e.details for e in emitter.events if e.event_type.value == "fix_rejected"]
    assert rejected[0]["error_code"] == "DESTRUCTIVE_CHANGE"
    (handoff,) = outcome.report.human_handoff
    assert handoff.suggested_action == SUGGESTED_ACTIONS[InjectorErrorCode.DESTRUCTIVE_CHANGE]
    assert coordinator.audit_log.get_summary("s1")["rejected"] == 1
    assert page.elements["a.promo"] == '<a class="promo" href="/sale">Sale</a>'


async def test_safety_gate_can_be_disabled():
    page = FakePage({"a.promo": '<a class="promo" href="/sale">Sale</a>'})
    injector = FakeInjector(page)

    await RemediationCoordinator(
        audit=FakeAudit([make_violation("v-1", rule_id="link-name", selector="a.promo")]),
        injector=injector,
        page=page,
        router=FixPlanningRouter(specialists=[EmptyHrefSpecialist()]),
        config=RemediatorConfig(ENABLE_SAFETY_VALIDATION=False),
    ).run(url=URL, session_id="s1")

    assert len(injector.applied) == 1


async def test_changed_content_is_handed_off_without_recovery():
    page = FakePage({"#v-1": '<img id="v-1">'})
    audit = FakeAudit([make_violation()], structure=STRUCTURE)
    emitter = ListEmitter()

    outcome = await RemediationCoordinator(
        audit=audit,
        injector=FakeInjector(page, failures={"#v-1": InjectorErrorCode.CONTENT_CHANGED}),
        page=page,
    ).run(url=URL, session_id="s1", emitter=emitter)

    assert audit.structure_requests == 0
    assert "recovery_attempted" not in emitter.types()
    (handoff,) = outcome.report.human_handoff
    assert handoff.reason == "Content changed since audit - re-audit required"
    assert handoff.suggested_action == SUGGESTED_ACTIONS[InjectorErrorCode.CONTENT_CHANGED]


async def test_dragging_handoff_names_the_alternative_to_build():
    slider = make_violation(
        "v-drag",
        rule_id="dragging-movements",
        html='<div class="slider" draggable="true"></div>',
    )
    page = FakePage({"#v-drag": '<div class="slider" draggable="true"></div>'})
    emitter = ListEmitter()

    outcome = await RemediationCoordinator(
        audit=FakeAudit([slider]),
        injector=FakeInjector(
            page, failures={"#v-drag": InjectorErrorCode.CONTENT_CHANGED}
        ),
        page=page,
    ).run(url=URL, session_id="s1", emitter=emitter)

    expected = (
        "Implement input-based alternative: "
        "Add a number input for precise value entry"
    )
    (event,) = [e for e in emitter.events if e.event_type.value == "human_handoff"]
    assert event.details["suggested_action"] == expected
    assert outcome.report.human_handoff[0].suggested_action == expected
