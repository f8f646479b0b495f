"""
Violation and page-structure schemas.

Defines the records supplied by the external audit capability:

- Violation: one detected accessibility defect (immutable)
- PageContext: optional page signals that inform fix planning
- ElementSummary / PageStructure: known elements used for selector recovery
- Viewport / ScanResult: scan request and response shapes

The remediation engine never infers severity. Violations must arrive
already graded.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field
from pydantic import ConfigDict


# ---------------------------------------------------------------------------
# Enumerations (FROZEN CONTRACTS)
# ---------------------------------------------------------------------------


class Severity(str, Enum):
    """
    Impact level of a violation.

    Declaration order is the processing priority and MUST remain stable:
    critical first, minor last.
    """

    CRITICAL = "critical"
    SERIOUS = "serious"
    MODERATE = "moderate"
    MINOR = "minor"

    @property
    def priority(self) -> int:
        return SEVERITY_PRIORITY[self]


SEVERITY_PRIORITY: Dict[Severity, int] = {
    Severity.CRITICAL: 0,
    Severity.SERIOUS: 1,
    Severity.MODERATE: 2,
    Severity.MINOR: 3,
}


# ---------------------------------------------------------------------------
# Violation (PUBLIC, FROZEN)
# ---------------------------------------------------------------------------


class Violation(BaseModel):
    """
    A single accessibility defect detected by a page scan.

    Identity is `id`; uniqueness is assumed within one scan.
    """

    id: str = Field(
        ...,
        min_length=1,
        description="Identifier of the violation, unique within one scan",
    )

    rule_id: str = Field(
        ...,
        min_length=1,
        description="Identifier of the accessibility rule that failed (e.g. 'image-alt')",
    )

    impact: Severity = Field(
        ...,
        description="Severity of the violation",
    )

    selector: str = Field(
        ...,
        min_length=1,
        description="CSS-like selector of the affected element",
    )

    html: str = Field(
        "",
        description="Snippet of the affected markup",
    )

    description: str = Field(
        "",
        description="Human-readable description of the defect",
    )

    help: str = Field(
        "",
        description="Human-readable remediation help text",
    )

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )


# ---------------------------------------------------------------------------
# Planning context
# ---------------------------------------------------------------------------


class ColorPair(BaseModel):
    foreground: str
    background: str

    model_config = ConfigDict(frozen=True)


class PageContext(BaseModel):
    """
    Optional page signals supplied to specialists during planning.

    Only `url` is mandatory. Specialists treat every other field as a
    hint and must produce a fix without it.
    """

    url: str
    title: Optional[str] = None
    surrounding_text: Optional[str] = None
    parent_element: Optional[str] = None
    sibling_elements: Optional[List[str]] = None
    image_src: Optional[str] = None
    image_filename: Optional[str] = None
    current_colors: Optional[ColorPair] = None

    model_config = ConfigDict(frozen=True)


# ---------------------------------------------------------------------------
# Page structure (selector recovery input)
# ---------------------------------------------------------------------------


class ElementSummary(BaseModel):
    selector: str
    tag_name: str
    role: Optional[str] = None
    text: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class PageStructure(BaseModel):
    """
    Snapshot of the known elements of the live page.

    Used only as input to selector recovery and never persisted beyond
    the owning session.
    """

    interactive_elements: List[ElementSummary] = Field(default_factory=list)
    landmarks: List[ElementSummary] = Field(default_factory=list)
    headings: List[ElementSummary] = Field(default_factory=list)

    def all_elements(self) -> List[ElementSummary]:
        return [
            *self.interactive_elements,
            *self.landmarks,
            *self.headings,
        ]

    model_config = ConfigDict(frozen=True)


# ---------------------------------------------------------------------------
# Scan request / response
# ---------------------------------------------------------------------------


class Viewport(BaseModel):
    width: int = Field(1280, ge=1)
    height: int = Field(720, ge=1)

    model_config = ConfigDict(frozen=True)


class ScanResult(BaseModel):
    """
    Response of the external audit capability's scan operation.
    """

    violations: List[Violation] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)
