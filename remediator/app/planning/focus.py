"""
Focus visibility specialist (WCAG 2.2: 2.4.11, 2.4.12, 2.4.13).

All fixes are CSS-only: scroll margins that keep a focused element clear
of sticky headers and footers, or a visible focus indicator.
"""

from __future__ import annotations

from typing import Dict, Tuple

from remediator.app.planning.base import BaseSpecialist, rule_patterns
from remediator.app.planning.confidence import ConfidenceScore, build_confidence
from remediator.app.schemas.fixes import StyleFixInstruction
from remediator.app.schemas.violations import PageContext, Violation


class FocusSpecialist(BaseSpecialist):
    name = "FocusSpecialist"
    handled_rule_patterns = rule_patterns(
        r"focus-not-obscured",
        r"focus-obscured",
        r"focus-visible",
        r"focus-appearance",
        r"2\.4\.11",
        r"2\.4\.12",
        r"2\.4\.13",
    )

    def plan_fix(
        self, violation: Violation, context: PageContext
    ) -> StyleFixInstruction:
        css_class, styles, description = self._strategy(violation)
        return self.style_fix(
            violation,
            css_class=css_class,
            styles=styles,
            reasoning=(
                f"WCAG 2.2 Focus Fix: {description}. "
                f'Addresses "{violation.rule_id}" on element "{violation.selector}".'
            ),
        )

    def calculate_confidence(self, violation: Violation) -> ConfidenceScore:
        value = 90
        factors = []

        selector = violation.selector.lower()
        if "[class*=custom" in selector.replace("'", "").replace('"', "") or (
            "[data-" in selector
        ):
            value -= 15
            factors.append("Custom component detected")

        description = violation.description.lower()
        if "z-index" in description or "stacking" in description:
            value -= 10
            factors.append("Z-index modification may affect layout")

        return build_confidence(
            value,
            factors,
            default_factor="Standard CSS focus fix",
        )

    @staticmethod
    def _strategy(violation: Violation) -> Tuple[str, Dict[str, str], str]:
        rule = violation.rule_id.lower()

        if "obscured" in rule or "2.4.11" in rule or "2.4.12" in rule:
            return (
                "a11y-focus-visible",
                {
                    "scroll-margin-top": "80px",
                    "scroll-margin-bottom": "80px",
                    "position": "relative",
                    "z-index": "1",
                },
                "Add scroll-margin to prevent focus being obscured by sticky elements",
            )

        if "appearance" in rule or "2.4.13" in rule:
            return (
                "a11y-focus-indicator",
                {
                    "outline": "2px solid #005fcc",
                    "outline-offset": "2px",
                    "border-radius": "2px",
                },
                "Add visible focus indicator",
            )

        return (
            "a11y-focus-default",
            {
                "scroll-margin-top": "80px",
                "outline": "2px solid currentColor",
                "outline-offset": "2px",
            },
            "Add default focus visibility improvements",
        )
