"""
Flat session-state representation (persistence boundary).

The Session State Tracker keeps native ordered lists in memory. Only at
the persistence boundary is the ledger flattened into a string map that
an external scheduler can store and hand back after a process restart.

Round-trip identity is the contract:
    SessionStateTracker.from_session_attributes(t.to_session_attributes())
reproduces the same observable ledger.
"""

from __future__ import annotations

import json
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic import ConfigDict


def _encode_ids(ids: List[str]) -> str:
    return json.dumps(list(ids))


def _decode_ids(raw: str) -> List[str]:
    decoded = json.loads(raw)
    if not isinstance(decoded, list) or not all(
        isinstance(item, str) for item in decoded
    ):
        raise ValueError("Violation id list must be a JSON array of strings")
    return decoded


class SessionAttributes(BaseModel):
    """
    Flat, restartable encoding of one remediation session's ledger.

    List-valued fields are JSON arrays serialized as strings.
    """

    current_url: str = Field(
        ...,
        description="URL being remediated",
    )

    pending_violations: str = Field(
        "[]",
        description="JSON array of pending violation ids, in priority order",
    )

    current_violation_id: Optional[str] = Field(
        None,
        description="Violation currently being processed",
    )

    retry_attempts: int = Field(
        0,
        ge=0,
        description="Failed attempts for the current violation",
    )

    human_handoff_reason: Optional[str] = Field(
        None,
        description="Reason recorded by the most recent skip",
    )

    fixed_violations: str = Field(
        "[]",
        description="JSON array of fixed violation ids",
    )

    skipped_violations: str = Field(
        "[]",
        description="JSON array of skipped violation ids",
    )

    @field_validator(
        "pending_violations",
        "fixed_violations",
        "skipped_violations",
    )
    @classmethod
    def validate_id_list(cls, v: str) -> str:
        _decode_ids(v)
        return v

    # ------------------------------------------------------------------
    # Native views
    # ------------------------------------------------------------------

    @property
    def pending(self) -> List[str]:
        return _decode_ids(self.pending_violations)

    @property
    def fixed(self) -> List[str]:
        return _decode_ids(self.fixed_violations)

    @property
    def skipped(self) -> List[str]:
        return _decode_ids(self.skipped_violations)

    # ------------------------------------------------------------------
    # String-map boundary
    # ------------------------------------------------------------------

    @classmethod
    def from_lists(
        cls,
        *,
        current_url: str,
        pending: List[str],
        fixed: List[str],
        skipped: List[str],
        current_violation_id: Optional[str],
        retry_attempts: int,
        human_handoff_reason: Optional[str],
    ) -> "SessionAttributes":
        return cls(
            current_url=current_url,
            pending_violations=_encode_ids(pending),
            fixed_violations=_encode_ids(fixed),
            skipped_violations=_encode_ids(skipped),
            current_violation_id=current_violation_id,
            retry_attempts=retry_attempts,
            human_handoff_reason=human_handoff_reason,
        )

    def to_string_map(self) -> Dict[str, str]:
        """
        Encode as a map of strings. Null values become empty strings.
        """
        return {
            "current_url": self.current_url,
            "pending_violations": self.pending_violations,
            "current_violation_id": self.current_violation_id or "",
            "retry_attempts": str(self.retry_attempts),
            "human_handoff_reason": self.human_handoff_reason or "",
            "fixed_violations": self.fixed_violations,
            "skipped_violations": self.skipped_violations,
        }

    @classmethod
    def from_string_map(cls, attrs: Dict[str, str]) -> "SessionAttributes":
        """
        Decode a string map produced by `to_string_map`.

        Missing keys fall back to empty defaults; empty strings for the
        nullable fields decode to None.
        """
        return cls(
            current_url=attrs.get("current_url", ""),
            pending_violations=attrs.get("pending_violations") or "[]",
            current_violation_id=attrs.get("current_violation_id") or None,
            retry_attempts=int(attrs.get("retry_attempts") or "0"),
            human_handoff_reason=attrs.get("human_handoff_reason") or None,
            fixed_violations=attrs.get("fixed_violations") or "[]",
            skipped_violations=attrs.get("skipped_violations") or "[]",
        )

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )
