"""
Colour-contrast specialist.

Emits a style fix that replaces the text colour with the nearest colour
meeting WCAG AA against the current background: 4.5:1 for normal text,
3:1 for large text, each with a 0.1 safety margin.
"""

from __future__ import annotations

import re
from typing import Final, Tuple

from remediator.app.planning.base import BaseSpecialist, rule_patterns
from remediator.app.planning.colors import (
    RGB,
    adjust_for_contrast,
    contrast_ratio,
    parse_color,
    rgb_to_hex,
)
from remediator.app.planning.confidence import ConfidenceScore, build_confidence
from remediator.app.schemas.fixes import StyleFixInstruction
from remediator.app.schemas.violations import PageContext, Violation


NORMAL_TEXT_RATIO = 4.5
LARGE_TEXT_RATIO = 3.0
RATIO_MARGIN = 0.1

# Light grey on white: the most common low-contrast pairing.
DEFAULT_FOREGROUND: Final[RGB] = (150, 150, 150)
DEFAULT_BACKGROUND: Final[RGB] = (255, 255, 255)

_DESCRIPTION_COLORS_RE: Final = re.compile(
    r"foreground(?:\s+colou?r)?[:\s]+([#\w(),.]+).*?"
    r"background(?:\s+colou?r)?[:\s]+([#\w(),.]+)",
    re.IGNORECASE,
)

_LARGE_TEXT_MARKERS: Final = (
    "font-size: 18",
    "font-size: 24",
    "<h1",
    "<h2",
    "<h3",
)


class ContrastSpecialist(BaseSpecialist):
    name = "ContrastSpecialist"
    handled_rule_patterns = rule_patterns(
        r"contrast",
        r"link-in-text-block",
    )

    def plan_fix(
        self, violation: Violation, context: PageContext
    ) -> StyleFixInstruction:
        foreground, background = self.extract_colors(violation, context)
        target = self.target_ratio(violation)

        if contrast_ratio(foreground, background) >= target:
            adjusted = foreground
        else:
            adjusted = adjust_for_contrast(foreground, background, target)

        adjusted_hex = rgb_to_hex(adjusted)
        ratio_kind = "normal text (4.5:1)" if target > 4 else "large text (3:1)"

        return self.style_fix(
            violation,
            css_class="a11y-contrast-fix",
            styles={"color": adjusted_hex},
            reasoning=(
                f"Adjusting text color from {rgb_to_hex(foreground)} to "
                f"{adjusted_hex} to meet WCAG AA {ratio_kind} contrast. "
                f"Original ratio was "
                f"{contrast_ratio(foreground, background):.2f}:1 against "
                f"background {rgb_to_hex(background)}. "
                f"Rule: {violation.rule_id}"
            ),
        )

    def calculate_confidence(self, violation: Violation) -> ConfidenceScore:
        if _DESCRIPTION_COLORS_RE.search(violation.description):
            return build_confidence(
                95,
                ["Measured colours available", "Deterministic WCAG calculation"],
                default_factor="Deterministic WCAG calculation",
            )
        return build_confidence(
            80,
            ["Colours assumed from defaults"],
            default_factor="Deterministic WCAG calculation",
        )

    @staticmethod
    def extract_colors(violation: Violation, context: PageContext) -> Tuple[RGB, RGB]:
        if context.current_colors:
            fg = parse_color(context.current_colors.foreground)
            bg = parse_color(context.current_colors.background)
            if fg and bg:
                return fg, bg

        match = _DESCRIPTION_COLORS_RE.search(violation.description)
        if match:
            fg = parse_color(match.group(1).rstrip(",."))
            bg = parse_color(match.group(2).rstrip(",."))
            if fg and bg:
                return fg, bg

        return DEFAULT_FOREGROUND, DEFAULT_BACKGROUND

    @staticmethod
    def target_ratio(violation: Violation) -> float:
        description = violation.description.lower()
        html = violation.html.lower()

        large = "large text" in description or any(
            marker in html for marker in _LARGE_TEXT_MARKERS
        )
        return (LARGE_TEXT_RATIO if large else NORMAL_TEXT_RATIO) + RATIO_MARGIN
