"""
WCAG colour maths.

Relative luminance and contrast ratio follow WCAG 2.x definitions.
Colours are plain (r, g, b) tuples of 0-255 integers.
"""

from __future__ import annotations

import re
from typing import Final, Optional, Tuple

RGB = Tuple[int, int, int]

BLACK: Final[RGB] = (0, 0, 0)
WHITE: Final[RGB] = (255, 255, 255)

ADJUSTMENT_STEP = 5
MAX_ADJUSTMENT_ITERATIONS = 100

_HEX_RE: Final = re.compile(r"^#([0-9a-f]{3}|[0-9a-f]{6})$")
_RGB_RE: Final = re.compile(r"rgba?\s*\(\s*(\d+)\s*,\s*(\d+)\s*,\s*(\d+)")


def _clamp_channel(value: float) -> int:
    return max(0, min(255, int(round(value))))


def parse_color(color: str) -> Optional[RGB]:
    """
    Parse `#rgb`, `#rrggbb`, `rgb(...)` or `rgba(...)`.

    Returns None for anything else.
    """
    text = color.strip().lower()

    match = _HEX_RE.match(text)
    if match:
        digits = match.group(1)
        if len(digits) == 3:
            digits = "".join(ch * 2 for ch in digits)
        return (
            int(digits[0:2], 16),
            int(digits[2:4], 16),
            int(digits[4:6], 16),
        )

    match = _RGB_RE.search(text)
    if match:
        r, g, b = (int(part) for part in match.groups())
        return (_clamp_channel(r), _clamp_channel(g), _clamp_channel(b))

    return None


def rgb_to_hex(rgb: RGB) -> str:
    return "#" + "".join(f"{_clamp_channel(c):02x}" for c in rgb)


def relative_luminance(rgb: RGB) -> float:
    def linearize(channel: int) -> float:
        c = channel / 255
        return c / 12.92 if c <= 0.03928 else ((c + 0.055) / 1.055) ** 2.4

    r, g, b = (linearize(c) for c in rgb)
    return 0.2126 * r + 0.7152 * g + 0.0722 * b


def contrast_ratio(first: RGB, second: RGB) -> float:
    l1 = relative_luminance(first)
    l2 = relative_luminance(second)
    lighter, darker = max(l1, l2), min(l1, l2)
    return (lighter + 0.05) / (darker + 0.05)


def adjust_for_contrast(foreground: RGB, background: RGB, target_ratio: float) -> RGB:
    """
    Step the foreground away from the background's luminance until
    `target_ratio` is met.

    Falls back to whichever of black or white contrasts more with the
    background when stepping alone cannot reach the target.
    """
    darken = relative_luminance(foreground) <= relative_luminance(background)
    step = -ADJUSTMENT_STEP if darken else ADJUSTMENT_STEP

    adjusted = foreground
    for _ in range(MAX_ADJUSTMENT_ITERATIONS):
        if contrast_ratio(adjusted, background) >= target_ratio:
            return adjusted
        adjusted = tuple(_clamp_channel(c + step) for c in adjusted)  # type: ignore[assignment]

    if contrast_ratio(adjusted, background) >= target_ratio:
        return adjusted

    if contrast_ratio(BLACK, background) > contrast_ratio(WHITE, background):
        return BLACK
    return WHITE
