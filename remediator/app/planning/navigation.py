"""
Keyboard navigation specialist.

Handles keyboard access, tab order, the focus rules not claimed by the
focus-visibility specialist, bypass blocks and link/button names. Every
fix is a single attribute: `tabindex`, `role` or `aria-label`.
"""

from __future__ import annotations

import re
from typing import Final, Tuple

from remediator.app.planning.base import (
    BaseSpecialist,
    extract_attribute,
    extract_inner_text,
    rule_patterns,
)
from remediator.app.planning.confidence import ConfidenceScore, build_confidence
from remediator.app.schemas.fixes import AttributeFixInstruction
from remediator.app.schemas.violations import PageContext, Violation


MAX_LABEL_LENGTH = 50

_INTERACTIVE_RE: Final = re.compile(
    r"<button|<a\s|<input|<select|<textarea|onclick"
    r"|role\s*=\s*[\"'](?:button|link|tab|menuitem)[\"']",
    re.IGNORECASE,
)

# Keyword -> label for icon-only controls, checked in order.
_ICON_LABELS: Final = (
    ("search", "Search"),
    ("menu", "Menu"),
    ("close", "Close"),
    ("nav", "Navigation"),
    ("submit", "Submit"),
    ("cancel", "Cancel"),
    ("edit", "Edit"),
    ("delete", "Delete"),
    ("add", "Add"),
    ("remove", "Remove"),
)


def is_interactive_markup(html: str) -> bool:
    return bool(_INTERACTIVE_RE.search(html))


def label_from_markup(html: str) -> str:
    """
    Best-effort accessible name for a control.

    Preference: existing aria-label, title, short inner text, icon
    keyword, then a generic fallback.
    """
    for attribute in ("aria-label", "title"):
        value = extract_attribute(html, attribute)
        if value:
            return value

    text = extract_inner_text(html)
    if text and len(text) <= MAX_LABEL_LENGTH:
        return text

    lowered = html.lower()
    for keyword, label in _ICON_LABELS:
        if keyword in lowered:
            return label

    return "Interactive element"


class NavigationSpecialist(BaseSpecialist):
    name = "NavigationSpecialist"
    handled_rule_patterns = rule_patterns(
        r"focus",
        r"keyboard",
        r"tabindex",
        r"skip-link",
        r"bypass",
        r"link-name",
        r"button-name",
    )

    def plan_fix(
        self, violation: Violation, context: PageContext
    ) -> AttributeFixInstruction:
        attribute, value = self.strategy(violation)
        return self.attribute_fix(
            violation,
            attribute=attribute,
            value=value,
            reasoning=self._reasoning(violation, attribute, value),
        )

    def calculate_confidence(self, violation: Violation) -> ConfidenceScore:
        attribute, value = self.strategy(violation)
        factors = []
        score = 90

        if attribute == "aria-label" and value == "Interactive element":
            score -= 25
            factors.append("No usable label found in markup")
        elif attribute == "aria-label":
            factors.append("Label derived from existing markup")

        if attribute == "role":
            score -= 10
            factors.append("Role added without keyboard handler")

        return build_confidence(
            score,
            factors,
            default_factor="Standard keyboard navigation fix",
        )

    @staticmethod
    def strategy(violation: Violation) -> Tuple[str, str]:
        rule = violation.rule_id.lower()
        html = violation.html.lower()

        if "tabindex" in rule:
            # Positive tabindex and missing tabindex both become 0.
            return "tabindex", "0"

        if "focus" in rule:
            if "scrollable" in rule or is_interactive_markup(html):
                return "tabindex", "0"
            return "tabindex", "-1"

        if "keyboard" in rule:
            has_click = "onclick" in html or "click" in html
            native = "<button" in html or "<a " in html
            if has_click and not native:
                return "role", "button"
            return "tabindex", "0"

        if "link-name" in rule or "button-name" in rule:
            return "aria-label", label_from_markup(violation.html)

        if "skip" in rule or "bypass" in rule:
            return "aria-label", "Skip to main content"

        return "tabindex", "0"

    @staticmethod
    def _reasoning(violation: Violation, attribute: str, value: str) -> str:
        if attribute == "tabindex" and value == "0":
            detail = "include the element in keyboard navigation order"
        elif attribute == "tabindex":
            detail = "allow programmatic focus without adding a tab stop"
        elif attribute == "role":
            detail = "expose the element's purpose to assistive technologies"
        else:
            detail = "provide an accessible name for the element"

        return f'Adding {attribute}="{value}" to {detail}. Rule: {violation.rule_id}'
