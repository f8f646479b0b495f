"""
Pointer interaction specialist (WCAG 2.2: 2.5.7, 2.5.8).

Target-size violations get a CSS fix. Dragging violations cannot be
repaired by attribute or style edits alone: the element is tagged with a
marker attribute and the violation is meant for human review, with
`suggest_handoff_action` naming the alternative to build.
"""

from __future__ import annotations

from typing import NamedTuple, Optional

from remediator.app.planning.base import BaseSpecialist, rule_patterns
from remediator.app.planning.confidence import ConfidenceScore, build_confidence
from remediator.app.schemas.fixes import FixInstruction
from remediator.app.schemas.violations import PageContext, Violation


NEEDS_ALTERNATIVE_ATTRIBUTE = "data-a11y-needs-alternative"


class DraggingAlternative(NamedTuple):
    kind: str
    description: str


def _is_target_size(violation: Violation) -> bool:
    rule = violation.rule_id.lower()
    return "target-size" in rule or "2.5.8" in rule


class InteractionSpecialist(BaseSpecialist):
    name = "InteractionSpecialist"
    handled_rule_patterns = rule_patterns(
        r"dragging",
        r"drag-movements",
        r"target-size",
        r"pointer",
        r"2\.5\.7",
        r"2\.5\.8",
    )

    def plan_fix(self, violation: Violation, context: PageContext) -> FixInstruction:
        if _is_target_size(violation):
            return self.style_fix(
                violation,
                css_class="a11y-target-size",
                styles={
                    "min-width": "24px",
                    "min-height": "24px",
                    "padding": "4px",
                    "touch-action": "manipulation",
                },
                reasoning=(
                    "WCAG 2.2 Target Size Fix (2.5.8): "
                    f'element "{violation.selector}" is below the 24x24 CSS '
                    "pixel minimum."
                ),
            )

        alternative = self.suggest_dragging_alternative(violation)
        return self.attribute_fix(
            violation,
            attribute=NEEDS_ALTERNATIVE_ATTRIBUTE,
            value="true",
            reasoning=(
                "WCAG 2.2 Dragging Movements (2.5.7): "
                f'element "{violation.selector}" has no single-pointer '
                f"alternative. REQUIRES HUMAN REVIEW: {alternative.description}."
            ),
        )

    def calculate_confidence(self, violation: Violation) -> ConfidenceScore:
        if _is_target_size(violation):
            return build_confidence(
                85,
                ["CSS-only fix", "No functionality changes"],
                default_factor="CSS-only fix",
            )

        return build_confidence(
            30,
            [
                "Requires JavaScript implementation",
                "Alternative interface must be created",
                "Functional testing required",
            ],
            default_factor="Requires JavaScript implementation",
        )

    @staticmethod
    def suggest_dragging_alternative(violation: Violation) -> DraggingAlternative:
        html = violation.html.lower()

        if "slider" in html or "range" in html:
            return DraggingAlternative(
                "input", "Add a number input for precise value entry"
            )
        if "sortable" in html or "draggable" in html or "kanban" in html:
            return DraggingAlternative(
                "button", 'Add "Move Up" and "Move Down" buttons for each item'
            )
        if "map" in html:
            return DraggingAlternative(
                "button", "Add pan buttons and a location search input"
            )
        return DraggingAlternative(
            "button", "Provide click-based alternatives to the drag operation"
        )

    def suggest_handoff_action(self, violation: Violation) -> Optional[str]:
        if _is_target_size(violation):
            return None

        alternative = self.suggest_dragging_alternative(violation)
        return (
            f"Implement {alternative.kind}-based alternative: "
            f"{alternative.description}"
        )
