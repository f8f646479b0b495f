"""
Runtime configuration for the Remediator.

This module centralizes environment-driven configuration for the
remediation workflow engine: retry limits, recovery thresholds, and the
optional safety and snapshot gates around fix injection.

Configuration is read-only at runtime. Changing a default here is a
behavior change and must be accompanied by new test coverage.
"""

from __future__ import annotations

import os

from pydantic import BaseModel, Field, field_validator


DEFAULT_MAX_RETRY_ATTEMPTS = 3
DEFAULT_SELECTOR_CONFIDENCE_THRESHOLD = 0.3


class RemediatorConfig(BaseModel):
    """
    Runtime configuration for the remediation workflow engine.

    Configuration is environment-driven, read-only at runtime, and is
    injected explicitly into the orchestrator and coordinator. No
    process-wide configuration state exists.
    """

    # ------------------------------------------------------------------
    # Retry and recovery limits
    # ------------------------------------------------------------------

    MAX_RETRY_ATTEMPTS: int = Field(
        DEFAULT_MAX_RETRY_ATTEMPTS,
        ge=1,
        description=(
            "Number of failed verifications after which a violation is "
            "skipped (three-strike rule)"
        ),
    )

    SELECTOR_CONFIDENCE_THRESHOLD: float = Field(
        DEFAULT_SELECTOR_CONFIDENCE_THRESHOLD,
        description=(
            "Minimum fuzzy-match score a candidate element must exceed "
            "for selector recovery to succeed"
        ),
    )

    # ------------------------------------------------------------------
    # Injection gates
    # ------------------------------------------------------------------

    ENABLE_SAFETY_VALIDATION: bool = Field(
        True,
        description="Reject destructive fix instructions before injection",
    )

    ENABLE_SNAPSHOTS: bool = Field(
        True,
        description="Capture a DOM snapshot before every fix injection",
    )

    CACHE_PAGE_STRUCTURE: bool = Field(
        True,
        description=(
            "Reuse a single page structure per session for selector "
            "recovery instead of fetching it on every failure"
        ),
    )

    # ------------------------------------------------------------------
    # Scan defaults
    # ------------------------------------------------------------------

    DEFAULT_VIEWPORT_WIDTH: int = Field(
        1280,
        ge=1,
        description="Viewport width used when the caller supplies none",
    )

    DEFAULT_VIEWPORT_HEIGHT: int = Field(
        720,
        ge=1,
        description="Viewport height used when the caller supplies none",
    )

    # ------------------------------------------------------------------
    # Validators (Pydantic v2)
    # ------------------------------------------------------------------

    @field_validator("SELECTOR_CONFIDENCE_THRESHOLD")
    @classmethod
    def validate_confidence_threshold(cls, v: float) -> float:
        if not 0.0 < v < 1.0:
            raise ValueError(
                "SELECTOR_CONFIDENCE_THRESHOLD must be strictly between "
                f"0 and 1, got {v}"
            )
        return v

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_env(cls) -> "RemediatorConfig":
        """
        Load configuration from environment variables.

        All values are parsed once at startup and must remain immutable.
        """

        def env_bool(name: str, default: bool) -> bool:
            raw = os.getenv(name)
            if raw is None:
                return default
            return raw.lower() in {"1", "true", "yes", "on"}

        return cls(
            MAX_RETRY_ATTEMPTS=int(
                os.getenv(
                    "REMEDIATOR_MAX_RETRY_ATTEMPTS",
                    str(DEFAULT_MAX_RETRY_ATTEMPTS),
                )
            ),
            SELECTOR_CONFIDENCE_THRESHOLD=float(
                os.getenv(
                    "REMEDIATOR_SELECTOR_CONFIDENCE_THRESHOLD",
                    str(DEFAULT_SELECTOR_CONFIDENCE_THRESHOLD),
                )
            ),
            ENABLE_SAFETY_VALIDATION=env_bool(
                "REMEDIATOR_ENABLE_SAFETY_VALIDATION", True
            ),
            ENABLE_SNAPSHOTS=env_bool(
                "REMEDIATOR_ENABLE_SNAPSHOTS", True
            ),
            CACHE_PAGE_STRUCTURE=env_bool(
                "REMEDIATOR_CACHE_PAGE_STRUCTURE", True
            ),
            DEFAULT_VIEWPORT_WIDTH=int(
                os.getenv("REMEDIATOR_DEFAULT_VIEWPORT_WIDTH", "1280")
            ),
            DEFAULT_VIEWPORT_HEIGHT=int(
                os.getenv("REMEDIATOR_DEFAULT_VIEWPORT_HEIGHT", "720")
            ),
        )

    model_config = {
        "frozen": True,
    }
