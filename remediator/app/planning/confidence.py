"""
Advisory confidence scoring for planned fixes.

Confidence never gates execution. It only decides whether a specialist
flags its own output for human review.
"""

from __future__ import annotations

from enum import Enum
from typing import List, Sequence

from pydantic import BaseModel, Field, field_validator
from pydantic import ConfigDict


HIGH_CONFIDENCE_THRESHOLD = 95
MEDIUM_CONFIDENCE_THRESHOLD = 80


class ConfidenceTier(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ConfidenceScore(BaseModel):
    value: int = Field(..., ge=0, le=100)
    tier: ConfidenceTier
    factors: List[str] = Field(..., min_length=1)
    requires_human_review: bool

    @field_validator("factors")
    @classmethod
    def validate_factors(cls, v: List[str]) -> List[str]:
        if any(not factor.strip() for factor in v):
            raise ValueError("Confidence factors must be non-empty strings")
        return v

    model_config = ConfigDict(frozen=True, extra="forbid")


def tier_for(value: int) -> ConfidenceTier:
    if value >= HIGH_CONFIDENCE_THRESHOLD:
        return ConfidenceTier.HIGH
    if value >= MEDIUM_CONFIDENCE_THRESHOLD:
        return ConfidenceTier.MEDIUM
    return ConfidenceTier.LOW


def build_confidence(
    value: int,
    factors: Sequence[str],
    *,
    default_factor: str,
) -> ConfidenceScore:
    """
    Clamp `value` into [0, 100] and derive tier and review flag.

    `default_factor` is used when no adjustment factor was recorded.
    """
    clamped = max(0, min(100, int(value)))
    tier = tier_for(clamped)
    return ConfidenceScore(
        value=clamped,
        tier=tier,
        factors=list(factors) or [default_factor],
        requires_human_review=tier is ConfidenceTier.LOW,
    )
