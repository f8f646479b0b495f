from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field
from pydantic import ConfigDict

from remediator.app.schemas.fixes import FixInstruction


class AuditLogResult(str, Enum):
    APPLIED = "applied"
    REJECTED = "rejected"
    ROLLED_BACK = "rolled_back"


class AuditLogEntry(BaseModel):
    """
    One append-only record of a fix-injection attempt.

    Entries are written by the coordinator and read, never written, by
    the Report Generator.
    """

    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
    session_id: str = Field(..., min_length=1)
    violation_id: str = Field(..., min_length=1)
    instruction: FixInstruction
    before_html: str
    after_html: str
    result: AuditLogResult

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )
