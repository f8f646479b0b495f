"""
RemediationReport schema.

Defines the report produced at the end of a remediation session.

The report captures:
- every fix that was applied and verified,
- every violation that was skipped, with the reason and attempt count,
- every violation escalated to a human, with a suggested action,
- summary counts that MUST reconcile exactly with those collections.

THIS SCHEMA IS A PUBLIC, FROZEN CONTRACT. A report that violates its
invariants is a programming defect: validation fails loudly and is never
coerced.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List

from pydantic import BaseModel, Field, model_validator
from pydantic import ConfigDict

from remediator.app.schemas.fixes import FixType


# ---------------------------------------------------------------------------
# Report items
# ---------------------------------------------------------------------------


class AppliedFix(BaseModel):
    violation_id: str = Field(..., min_length=1)
    rule_id: str = Field(..., min_length=1)
    selector: str = Field(..., min_length=1)
    fix_type: FixType
    before_html: str
    after_html: str
    reasoning: str

    model_config = ConfigDict(frozen=True, extra="forbid")


class SkippedViolation(BaseModel):
    violation_id: str = Field(..., min_length=1)
    rule_id: str = Field(..., min_length=1)
    selector: str = Field(..., min_length=1)
    reason: str = Field(..., min_length=1)
    attempts: int = Field(..., ge=0)

    model_config = ConfigDict(frozen=True, extra="forbid")


class HumanHandoffItem(BaseModel):
    violation_id: str = Field(..., min_length=1)
    rule_id: str = Field(..., min_length=1)
    selector: str = Field(..., min_length=1)
    reason: str = Field(..., min_length=1)
    suggested_action: str = Field(..., min_length=1)

    model_config = ConfigDict(frozen=True, extra="forbid")


class ReportSummary(BaseModel):
    total_violations: int = Field(..., ge=0)
    fixed_count: int = Field(..., ge=0)
    skipped_count: int = Field(..., ge=0)
    pending_count: int = Field(..., ge=0)

    @model_validator(mode="after")
    def enforce_total(self):
        expected = self.fixed_count + self.skipped_count + self.pending_count
        if self.total_violations != expected:
            raise ValueError(
                f"total_violations ({self.total_violations}) must equal "
                f"fixed + skipped + pending ({expected})"
            )
        return self

    model_config = ConfigDict(frozen=True, extra="forbid")


# ---------------------------------------------------------------------------
# Top-Level Report (PUBLIC, FROZEN CONTRACT)
# ---------------------------------------------------------------------------


class RemediationReport(BaseModel):
    """
    Final report of one remediation session.
    """

    schema_version: str = Field(
        "1.0",
        description="RemediationReport schema version",
    )

    session_id: str = Field(
        ...,
        min_length=1,
        description="Identifier of the remediation session",
    )

    url: str = Field(
        ...,
        description="URL that was remediated",
    )

    generated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Timestamp when the report was generated (UTC)",
    )

    summary: ReportSummary

    fixes: List[AppliedFix] = Field(default_factory=list)

    skipped: List[SkippedViolation] = Field(default_factory=list)

    human_handoff: List[HumanHandoffItem] = Field(default_factory=list)

    # ------------------------------------------------------------------
    # Cross-collection invariants
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def enforce_summary_reconciliation(self):
        """
        Summary counts must reconcile exactly with the collections:

        - fixed_count == len(fixes)
        - skipped_count == len(skipped)
        """
        if self.summary.fixed_count != len(self.fixes):
            raise ValueError(
                f"summary.fixed_count ({self.summary.fixed_count}) does not "
                f"match number of fixes ({len(self.fixes)})"
            )

        if self.summary.skipped_count != len(self.skipped):
            raise ValueError(
                f"summary.skipped_count ({self.summary.skipped_count}) does "
                f"not match number of skipped violations ({len(self.skipped)})"
            )

        return self

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )
