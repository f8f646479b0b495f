"""
Generic ARIA fallback specialist.

Claims every violation no other specialist claims, so routing never
leaves a violation unplanned. Most fixes are a single ARIA attribute
inferred from the rule id and markup; empty headings get a content fix
guarded by a hash of the original text.
"""

from __future__ import annotations

import re
from typing import Final, Tuple

from remediator.app.planning.base import (
    BaseSpecialist,
    extract_inner_text,
)
from remediator.app.planning.confidence import ConfidenceScore, build_confidence
from remediator.app.schemas.fixes import (
    ContentFixInstruction,
    ContentFixParams,
    FixInstruction,
)
from remediator.app.schemas.violations import PageContext, Violation
from remediator.app.utils.hashing import compute_content_hash


MAX_LABEL_LENGTH = 50

_ENSURE_PREFIX_RE: Final = re.compile(r"^ensure\s+", re.IGNORECASE)

# Markup fragment -> fallback label, checked in order.
_ELEMENT_LABELS: Final = (
    ("<button", "Button"),
    ("<a ", "Link"),
    ("<input", "Input field"),
    ("<select", "Selection"),
    ("<nav", "Navigation"),
    ("<main", "Main content"),
    ("<aside", "Sidebar"),
    ("<footer", "Footer"),
    ("<header", "Header"),
)

# Markup fragment -> landmark or widget role, checked in order.
_ROLE_HINTS: Final = (
    ("<nav", "navigation"),
    ("navigation", "navigation"),
    ("<main", "main"),
    ("<aside", "complementary"),
    ("<footer", "contentinfo"),
    ("<header", "banner"),
    ("<form", "form"),
    ("<search", "search"),
    ("click", "button"),
    ("menu", "menu"),
    ("tab", "tab"),
    ("dialog", "dialog"),
    ("modal", "dialog"),
    ("alert", "alert"),
    ("list", "list"),
    ("table", "table"),
    ("img", "img"),
    ("image", "img"),
)

_STATE_ATTRIBUTES: Final = (
    "pressed",
    "checked",
    "selected",
    "expanded",
    "disabled",
)


def extract_label(violation: Violation) -> str:
    if violation.help:
        label = _ENSURE_PREFIX_RE.sub("", violation.help).strip()
        if label and len(label) <= MAX_LABEL_LENGTH:
            return label

    text = extract_inner_text(violation.html)
    if text and len(text) <= MAX_LABEL_LENGTH:
        return text

    html = violation.html.lower()
    for fragment, label in _ELEMENT_LABELS:
        if fragment in html:
            return label
    return "Interactive element"


def infer_role(violation: Violation) -> str:
    html = violation.html.lower()
    for fragment, role in _ROLE_HINTS:
        if fragment in html:
            return role
    return "region"


class GenericAriaSpecialist(BaseSpecialist):
    name = "GenericAriaHandler"

    def can_handle(self, violation: Violation) -> bool:
        return True

    def plan_fix(self, violation: Violation, context: PageContext) -> FixInstruction:
        rule = violation.rule_id.lower()

        if "empty-heading" in rule:
            return self._heading_text_fix(violation, context)

        attribute, value = self.determine_fix(violation)
        return self.attribute_fix(
            violation,
            attribute=attribute,
            value=value,
            reasoning=(
                f'Applying generic ARIA fix: {attribute}="{value}". '
                f"Rule: {violation.rule_id}"
            ),
        )

    def calculate_confidence(self, violation: Violation) -> ConfidenceScore:
        attribute, value = self.determine_fix(violation)
        factors = ["Generic fallback fix"]
        score = 75

        if attribute == "aria-label" and value == "Interactive element":
            score -= 20
            factors.append("No usable label found in markup")

        return build_confidence(
            score,
            factors,
            default_factor="Generic fallback fix",
        )

    @staticmethod
    def determine_fix(violation: Violation) -> Tuple[str, str]:
        rule = violation.rule_id.lower()

        if "label" in rule or "name" in rule:
            return "aria-label", extract_label(violation)

        if "role" in rule or "landmark" in rule:
            return "role", infer_role(violation)

        if "aria-" in rule and "state" in rule:
            for state in _STATE_ATTRIBUTES:
                if state in rule:
                    return f"aria-{state}", "false"
            return "aria-label", extract_label(violation)

        if "hidden" in rule or "visible" in rule:
            return "aria-hidden", "false"

        if "required" in rule:
            return "aria-required", "true"

        if "invalid" in rule or "error" in rule:
            return "aria-invalid", "true"

        if "expand" in rule:
            return "aria-expanded", "false"

        return "aria-label", extract_label(violation)

    @staticmethod
    def _heading_text_fix(
        violation: Violation, context: PageContext
    ) -> ContentFixInstruction:
        original = extract_inner_text(violation.html) or ""
        text = (context.surrounding_text or "").strip()[:MAX_LABEL_LENGTH]
        if not text:
            text = context.title or "Section heading"

        reasoning = (
            f'Replacing empty heading text with "{text}". '
            f"Rule: {violation.rule_id}"
        )
        return ContentFixInstruction(
            violation_id=violation.id,
            selector=violation.selector,
            reasoning=reasoning,
            params=ContentFixParams(
                selector=violation.selector,
                inner_text=text,
                original_text_hash=compute_content_hash(original),
            ),
        )
