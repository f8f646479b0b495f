"""
Content-integrity hashing utilities.

Content fixes carry a digest of the ORIGINAL element text so the
fix-injection capability can refuse to overwrite text that changed
between planning and execution.
"""

from __future__ import annotations

import hashlib

HASH_PREFIX = "SHA-256:"


def compute_content_hash(text: str) -> str:
    """Return the prefixed SHA-256 hex digest of UTF-8 encoded text."""
    return HASH_PREFIX + hashlib.sha256(text.encode("utf-8")).hexdigest()
