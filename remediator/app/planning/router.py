"""
Fix-Planning Router.

Routing is first-match-wins over an ordered specialist list, followed by
a mandatory generic fallback. The router therefore never leaves a
violation unplanned.

Order matters: the focus-visibility specialist is consulted before the
navigation specialist, whose broader `focus` pattern would otherwise
claim the WCAG 2.2 focus rules.
"""

from __future__ import annotations

import logging
from typing import List, NamedTuple, Optional, Sequence

from remediator.app.planning.alt_text import AltTextSpecialist
from remediator.app.planning.base import Specialist
from remediator.app.planning.confidence import ConfidenceScore
from remediator.app.planning.contrast import ContrastSpecialist
from remediator.app.planning.focus import FocusSpecialist
from remediator.app.planning.generic_aria import GenericAriaSpecialist
from remediator.app.planning.interaction import InteractionSpecialist
from remediator.app.planning.navigation import NavigationSpecialist
from remediator.app.schemas.fixes import FixInstruction
from remediator.app.schemas.violations import PageContext, Violation

logger = logging.getLogger(__name__)


class PlannedFix(NamedTuple):
    instruction: FixInstruction
    specialist_name: str
    confidence: ConfidenceScore


def default_specialists() -> List[Specialist]:
    return [
        AltTextSpecialist(),
        FocusSpecialist(),
        InteractionSpecialist(),
        ContrastSpecialist(),
        NavigationSpecialist(),
    ]


class FixPlanningRouter:
    def __init__(
        self,
        specialists: Optional[Sequence[Specialist]] = None,
        fallback: Optional[Specialist] = None,
    ) -> None:
        self._specialists: List[Specialist] = (
            list(specialists) if specialists is not None else default_specialists()
        )
        self._fallback: Specialist = fallback or GenericAriaSpecialist()

    def route(self, violation: Violation) -> Specialist:
        for specialist in self._specialists:
            if specialist.can_handle(violation):
                return specialist
        return self._fallback

    def plan_fix(self, violation: Violation, context: PageContext) -> FixInstruction:
        return self.plan(violation, context).instruction

    def plan(self, violation: Violation, context: PageContext) -> PlannedFix:
        specialist = self.route(violation)
        instruction = specialist.plan_fix(violation, context)
        confidence = specialist.calculate_confidence(violation)

        logger.debug(
            "Routed %s (%s) to %s: %s fix, confidence %d (%s)",
            violation.id,
            violation.rule_id,
            specialist.name,
            instruction.type.value,
            confidence.value,
            confidence.tier.value,
        )

        return PlannedFix(
            instruction=instruction,
            specialist_name=specialist.name,
            confidence=confidence,
        )

    def get_specialist_name(self, violation: Violation) -> str:
        return self.route(violation).name

    def suggest_handoff_action(self, violation: Violation) -> Optional[str]:
        return self.route(violation).suggest_handoff_action(violation)

    def get_specialists(self) -> List[Specialist]:
        return [*self._specialists, self._fallback]
