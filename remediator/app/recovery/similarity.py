"""
Approximate string matching and selector tokenisation.

`string_similarity` is a normalised Levenshtein similarity:

    1 - levenshtein(a, b) / max(len(a), len(b))

computed case-insensitively. It is symmetric, lies in [0, 1], is 1.0 for
identical strings and 0.0 when exactly one side is empty.
"""

from __future__ import annotations

import re
from typing import Dict, Final, List, Optional

_TAG_RE: Final = re.compile(r"^([a-zA-Z][a-zA-Z0-9]*)")
_ID_RE: Final = re.compile(r"#([a-zA-Z_][a-zA-Z0-9_-]*)")
_CLASS_RE: Final = re.compile(r"\.([a-zA-Z_][a-zA-Z0-9_-]*)")
_ATTRIBUTE_RE: Final = re.compile(
    r"\[([a-zA-Z_][a-zA-Z0-9_-]*)(?:\s*=\s*[\"']?([^\"'\]]*)[\"']?)?\]"
)


def levenshtein_distance(a: str, b: str) -> int:
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            current.append(
                min(
                    previous[j] + 1,
                    current[j - 1] + 1,
                    previous[j - 1] + (ca != cb),
                )
            )
        previous = current
    return previous[-1]


def string_similarity(a: str, b: str) -> float:
    if a == b:
        return 1.0
    if not a or not b:
        return 0.0

    distance = levenshtein_distance(a.lower(), b.lower())
    return 1.0 - distance / max(len(a), len(b))


# ----------------------------------------------------------------------
# Selector tokens
# ----------------------------------------------------------------------


def extract_tag(selector: str) -> Optional[str]:
    match = _TAG_RE.match(selector.strip())
    return match.group(1).lower() if match else None


def extract_ids(selector: str) -> List[str]:
    return _ID_RE.findall(selector)


def extract_id(selector: str) -> Optional[str]:
    ids = extract_ids(selector)
    return ids[0] if ids else None


def extract_classes(selector: str) -> List[str]:
    return _CLASS_RE.findall(selector)


def extract_attributes(selector: str) -> Dict[str, str]:
    return {
        name: value or ""
        for name, value in _ATTRIBUTE_RE.findall(selector)
    }
