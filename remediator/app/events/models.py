from __future__ import annotations

from typing import Any, Dict, Optional
from enum import Enum
from datetime import datetime, timezone
from uuid import uuid4, UUID

from pydantic import BaseModel, Field, ConfigDict


# ----------------------------------------------------------------------
# Event Types (Finite and Versioned)
# ----------------------------------------------------------------------
class RemediationEventType(str, Enum):
    """
    Progression events emitted while a remediation session runs.

    NOTE:
    This enum is finite and versioned.
    New entries must preserve observational semantics.
    """

    # ------------------------------------------------------------------
    # Session Lifecycle
    # ------------------------------------------------------------------
    REMEDIATION_STARTED = "remediation_started"
    REMEDIATION_COMPLETED = "remediation_completed"
    REMEDIATION_FAILED = "remediation_failed"
    REMEDIATION_CANCELLED = "remediation_cancelled"

    # ------------------------------------------------------------------
    # Scan Phase
    # ------------------------------------------------------------------
    SCAN_STARTED = "scan_started"
    SCAN_COMPLETED = "scan_completed"

    # ------------------------------------------------------------------
    # Plan / Execute / Verify
    # ------------------------------------------------------------------
    FIX_PLANNED = "fix_planned"
    FIX_APPLIED = "fix_applied"
    FIX_REJECTED = "fix_rejected"
    RECOVERY_ATTEMPTED = "recovery_attempted"
    VERIFICATION_PASSED = "verification_passed"
    VERIFICATION_FAILED = "verification_failed"

    # ------------------------------------------------------------------
    # Escalation and Reversal
    # ------------------------------------------------------------------
    VIOLATION_SKIPPED = "violation_skipped"
    HUMAN_HANDOFF = "human_handoff"
    ROLLBACK_PERFORMED = "rollback_performed"

    # ------------------------------------------------------------------
    # Presentation / Streaming Only (Non-terminal)
    # ------------------------------------------------------------------
    REPORT_READY = "report_ready"


TERMINAL_EVENT_TYPES = frozenset(
    {
        RemediationEventType.REMEDIATION_COMPLETED,
        RemediationEventType.REMEDIATION_FAILED,
        RemediationEventType.REMEDIATION_CANCELLED,
    }
)


# ----------------------------------------------------------------------
# Event Model
# ----------------------------------------------------------------------
class RemediationEvent(BaseModel):
    """
    An immutable observation of a phase transition within a session.

    Events are:
    - strictly observational
    - transport-agnostic
    - never consulted by the state machine
    """

    event_id: UUID = Field(default_factory=uuid4)
    session_id: str = Field(..., description="The remediation session identifier")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    event_type: RemediationEventType

    # Optional contextual metadata (violation_id, selector, counts, etc.)
    details: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )
