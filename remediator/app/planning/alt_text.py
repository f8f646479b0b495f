"""
Alternative-text specialist.

Claims the image-alt rule family and writes an `alt` attribute derived
from the best available context signal, in this order:

1. a descriptive image filename
2. surrounding page text
3. decorative markers (empty alt)
4. markup hints (logo, avatar, banner, thumbnail)
"""

from __future__ import annotations

import re
from typing import Final, Optional

from remediator.app.planning.base import BaseSpecialist, rule_patterns
from remediator.app.planning.confidence import ConfidenceScore, build_confidence
from remediator.app.schemas.fixes import AttributeFixInstruction
from remediator.app.schemas.violations import PageContext, Violation


MAX_SURROUNDING_TEXT = 125
MAX_FILENAME_ALT = 100

_EXTENSION_RE: Final = re.compile(r"\.[^/.]+$")
_CAMEL_RE: Final = re.compile(r"([a-z])([A-Z])")

_GENERIC_FILENAME_RE: Final = re.compile(
    r"^(img\d*|image\d*|photo\d*|picture\d*|untitled.*|dsc\d+|screenshot.*|\d+)$",
    re.IGNORECASE,
)

_DECORATIVE_MARKUP_RE: Final = (
    re.compile(r"role\s*=\s*[\"']presentation[\"']", re.IGNORECASE),
    re.compile(r"aria-hidden\s*=\s*[\"']true[\"']", re.IGNORECASE),
    re.compile(
        r"class\s*=\s*[\"'][^\"']*(?:icon|decoration|spacer|divider)[^\"']*[\"']",
        re.IGNORECASE,
    ),
)

_DECORATIVE_FILENAME_RE: Final = re.compile(
    r"spacer|divider|decoration|border|bullet|arrow|icon",
    re.IGNORECASE,
)


class AltTextSpecialist(BaseSpecialist):
    name = "AltTextSpecialist"
    handled_rule_patterns = rule_patterns(
        r"image-alt",
        r"img-alt",
        r"input-image-alt",
        r"area-alt",
        r"object-alt",
        r"svg-img-alt",
    )

    def plan_fix(
        self, violation: Violation, context: PageContext
    ) -> AttributeFixInstruction:
        alt = self.generate_alt_text(violation, context)
        return self.attribute_fix(
            violation,
            attribute="alt",
            value=alt,
            reasoning=self._reasoning(violation, context, alt),
        )

    def calculate_confidence(self, violation: Violation) -> ConfidenceScore:
        value = 85
        factors = []

        html = violation.html.lower()
        if "src=" not in html:
            value -= 10
            factors.append("Image source not visible in markup")
        if any(pattern.search(html) for pattern in _DECORATIVE_MARKUP_RE):
            value += 10
            factors.append("Decorative markers present")

        return build_confidence(
            value,
            factors,
            default_factor="Context-derived alternative text",
        )

    # ------------------------------------------------------------------
    # Alt text derivation
    # ------------------------------------------------------------------

    def generate_alt_text(self, violation: Violation, context: PageContext) -> str:
        if context.image_filename:
            from_filename = alt_from_filename(context.image_filename)
            if from_filename:
                return from_filename

        if context.surrounding_text and context.surrounding_text.strip():
            text = context.surrounding_text.strip()
            if len(text) > MAX_SURROUNDING_TEXT:
                text = text[: MAX_SURROUNDING_TEXT - 3] + "..."
            return f"Image related to: {text}"

        if self.is_likely_decorative(violation, context):
            return ""

        return self._generic_alt(violation, context)

    @staticmethod
    def is_likely_decorative(violation: Violation, context: PageContext) -> bool:
        if any(pattern.search(violation.html) for pattern in _DECORATIVE_MARKUP_RE):
            return True
        return bool(
            context.image_filename
            and _DECORATIVE_FILENAME_RE.search(context.image_filename)
        )

    @staticmethod
    def _generic_alt(violation: Violation, context: PageContext) -> str:
        html = violation.html.lower()

        if "logo" in html:
            return f"{context.title} logo" if context.title else "Company logo"
        if "avatar" in html or "profile" in html:
            return "User profile image"
        if "banner" in html or "hero" in html:
            return "Banner image"
        if "thumbnail" in html:
            return "Thumbnail image"
        return "Image"

    @staticmethod
    def _reasoning(violation: Violation, context: PageContext, alt: str) -> str:
        if alt == "":
            return (
                "Setting empty alt attribute to mark image as decorative. "
                f"Rule: {violation.rule_id}"
            )

        sources = []
        if context.image_filename:
            sources.append("filename analysis")
        if context.surrounding_text:
            sources.append("surrounding text context")
        if not sources:
            sources.append("HTML structure analysis")

        return (
            f'Generated alt text "{alt}" based on {" and ".join(sources)}. '
            f"Rule: {violation.rule_id}"
        )


def alt_from_filename(filename: str) -> Optional[str]:
    """
    Turn a descriptive filename into readable text.

    Returns None for generic camera or placeholder names.
    """
    stem = _EXTENSION_RE.sub("", filename)
    if _GENERIC_FILENAME_RE.match(stem):
        return None

    readable = _CAMEL_RE.sub(r"\1 \2", stem.replace("-", " ").replace("_", " "))
    readable = " ".join(readable.lower().split())

    if 0 < len(readable) <= MAX_FILENAME_ALT:
        return readable[0].upper() + readable[1:]
    return None
