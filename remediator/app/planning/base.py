"""
Specialist interface and shared helpers.

A specialist claims violations by rule-id pattern and turns each claimed
violation into exactly one FixInstruction. Specialists are pure: they
never touch the live page and never raise for an unrecognised markup
shape (they fall back to a generic but valid fix instead).
"""

from __future__ import annotations

import re
from typing import Final, Optional, Pattern, Protocol, Tuple

from remediator.app.planning.confidence import ConfidenceScore, build_confidence
from remediator.app.schemas.fixes import (
    AttributeFixInstruction,
    AttributeFixParams,
    FixInstruction,
    StyleFixInstruction,
    StyleFixParams,
)
from remediator.app.schemas.violations import PageContext, Violation


_INNER_TEXT_RE: Final = re.compile(r">([^<]+)<")


class Specialist(Protocol):
    name: str

    def can_handle(self, violation: Violation) -> bool:
        ...

    def plan_fix(self, violation: Violation, context: PageContext) -> FixInstruction:
        ...

    def calculate_confidence(self, violation: Violation) -> ConfidenceScore:
        ...

    def suggest_handoff_action(self, violation: Violation) -> Optional[str]:
        """Manual follow-up for this violation when automation gives up, if any."""
        ...


class BaseSpecialist:
    """
    Pattern-matching specialist base.

    Subclasses set `name` and `handled_rule_patterns` and implement
    `plan_fix`.
    """

    name: str = "BaseSpecialist"
    handled_rule_patterns: Tuple[Pattern[str], ...] = ()

    # Starting score for `calculate_confidence`. Subclasses adjust it.
    base_confidence: int = 85
    default_confidence_factor: str = "Rule-based fix"

    def can_handle(self, violation: Violation) -> bool:
        return any(
            pattern.search(violation.rule_id)
            for pattern in self.handled_rule_patterns
        )

    def calculate_confidence(self, violation: Violation) -> ConfidenceScore:
        return build_confidence(
            self.base_confidence,
            [],
            default_factor=self.default_confidence_factor,
        )

    def suggest_handoff_action(self, violation: Violation) -> Optional[str]:
        return None

    # ------------------------------------------------------------------
    # Instruction builders
    # ------------------------------------------------------------------

    @staticmethod
    def attribute_fix(
        violation: Violation,
        *,
        attribute: str,
        value: str,
        reasoning: str,
    ) -> AttributeFixInstruction:
        return AttributeFixInstruction(
            violation_id=violation.id,
            selector=violation.selector,
            reasoning=reasoning,
            params=AttributeFixParams(
                selector=violation.selector,
                attribute=attribute,
                value=value,
                reasoning=reasoning,
            ),
        )

    @staticmethod
    def style_fix(
        violation: Violation,
        *,
        css_class: str,
        styles: dict,
        reasoning: str,
    ) -> StyleFixInstruction:
        return StyleFixInstruction(
            violation_id=violation.id,
            selector=violation.selector,
            reasoning=reasoning,
            params=StyleFixParams(
                selector=violation.selector,
                css_class=css_class,
                styles=dict(styles),
            ),
        )


def rule_patterns(*patterns: str) -> Tuple[Pattern[str], ...]:
    """Compile case-insensitive rule-id patterns."""
    return tuple(re.compile(p, re.IGNORECASE) for p in patterns)


def extract_inner_text(html: str) -> Optional[str]:
    """Return the first non-blank text node of a markup snippet."""
    match = _INNER_TEXT_RE.search(html)
    if match and match.group(1).strip():
        return match.group(1).strip()
    return None


def extract_attribute(html: str, attribute: str) -> Optional[str]:
    match = re.search(
        rf"{re.escape(attribute)}\s*=\s*[\"']([^\"']+)[\"']",
        html,
        re.IGNORECASE,
    )
    if match and match.group(1).strip():
        return match.group(1).strip()
    return None
