"""
Fix instruction and fix result schemas.

A FixInstruction is a tagged union over the three fix categories the
external fix-injection capability understands:

- attribute: set one attribute on the target element
- content:   replace the element's text, guarded by a hash of the original
- style:     attach a CSS class carrying a property map

Instructions are frozen. Correcting a selector or improving text always
yields a new instruction value (`model_copy(update=...)`), never an
in-place edit of the original.

FixResult carries the injector outcome. Failures are values, not
exceptions: the error codes below are returned verbatim by the injector
and the recovery logic branches on them.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, model_validator
from pydantic import ConfigDict


# ---------------------------------------------------------------------------
# Enumerations (FROZEN CONTRACTS)
# ---------------------------------------------------------------------------


class FixType(str, Enum):
    ATTRIBUTE = "attribute"
    CONTENT = "content"
    STYLE = "style"


class InjectorErrorCode(str, Enum):
    """
    Structured failure codes returned by the fix-injection capability.
    """

    SELECTOR_NOT_FOUND = "SELECTOR_NOT_FOUND"
    CONTENT_CHANGED = "CONTENT_CHANGED"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    DESTRUCTIVE_CHANGE = "DESTRUCTIVE_CHANGE"
    STYLE_CONFLICT = "STYLE_CONFLICT"


# Attributes whose value is human-readable text that verification can
# judge as vague or redundant.
TEXT_ATTRIBUTES = frozenset({"alt", "aria-label", "title"})


# ---------------------------------------------------------------------------
# Category parameters
# ---------------------------------------------------------------------------


class AttributeFixParams(BaseModel):
    selector: str = Field(..., min_length=1)
    attribute: str = Field(..., min_length=1)
    value: str
    reasoning: str = Field(..., min_length=1)

    model_config = ConfigDict(frozen=True, extra="forbid")


class ContentFixParams(BaseModel):
    selector: str = Field(..., min_length=1)
    inner_text: str
    original_text_hash: str = Field(
        ...,
        min_length=1,
        description="Content-integrity hash of the ORIGINAL text (SHA-256)",
    )

    model_config = ConfigDict(frozen=True, extra="forbid")


class StyleFixParams(BaseModel):
    selector: str = Field(..., min_length=1)
    css_class: str
    styles: Dict[str, str] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True, extra="forbid")


# ---------------------------------------------------------------------------
# Fix instruction (tagged union)
# ---------------------------------------------------------------------------


class _FixInstructionBase(BaseModel):
    violation_id: str = Field(
        ...,
        min_length=1,
        description="Identifier of the violation this instruction remediates",
    )

    selector: str = Field(
        ...,
        min_length=1,
        description="Selector of the element the fix targets",
    )

    reasoning: str = Field(
        ...,
        min_length=1,
        description="Human-readable justification for the fix",
    )

    model_config = ConfigDict(frozen=True, extra="forbid")

    @model_validator(mode="after")
    def enforce_selector_consistency(self):
        params_selector = getattr(self, "params").selector
        if params_selector != self.selector:
            raise ValueError(
                "Instruction selector and params selector must match "
                f"('{self.selector}' != '{params_selector}')"
            )
        return self


class AttributeFixInstruction(_FixInstructionBase):
    type: Literal[FixType.ATTRIBUTE] = FixType.ATTRIBUTE
    params: AttributeFixParams


class ContentFixInstruction(_FixInstructionBase):
    type: Literal[FixType.CONTENT] = FixType.CONTENT
    params: ContentFixParams


class StyleFixInstruction(_FixInstructionBase):
    type: Literal[FixType.STYLE] = FixType.STYLE
    params: StyleFixParams


FixInstruction = Annotated[
    Union[AttributeFixInstruction, ContentFixInstruction, StyleFixInstruction],
    Field(discriminator="type"),
]

_FIX_INSTRUCTION_ADAPTER: TypeAdapter = TypeAdapter(FixInstruction)


def validate_fix_instruction(data: Any) -> FixInstruction:
    """
    Validate raw data (dict or instruction) as a FixInstruction.

    Raises pydantic.ValidationError on schema violation.
    """
    if isinstance(data, _FixInstructionBase):
        data = data.model_dump()
    return _FIX_INSTRUCTION_ADAPTER.validate_python(data)


def instruction_text(instruction: FixInstruction) -> Optional[str]:
    """
    Return the human-readable text an instruction writes, if any.
    """
    if isinstance(instruction, ContentFixInstruction):
        return instruction.params.inner_text

    if isinstance(instruction, AttributeFixInstruction):
        if instruction.params.attribute in TEXT_ATTRIBUTES:
            return instruction.params.value

    return None


# ---------------------------------------------------------------------------
# Injector outcome
# ---------------------------------------------------------------------------


class InjectorError(BaseModel):
    code: InjectorErrorCode
    message: str = Field(..., min_length=1)
    selector: str
    details: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(frozen=True, extra="forbid")


class FixResult(BaseModel):
    """
    Outcome of one fix-injection call.
    """

    success: bool
    selector: str
    before_html: str = ""
    after_html: str = ""
    error: Optional[InjectorError] = None

    @model_validator(mode="after")
    def enforce_error_presence(self):
        if self.success and self.error is not None:
            raise ValueError("A successful FixResult must not carry an error")
        if not self.success and self.error is None:
            raise ValueError("A failed FixResult must carry a structured error")
        return self

    @classmethod
    def failed(
        cls,
        *,
        code: InjectorErrorCode,
        message: str,
        selector: str,
        details: Optional[Dict[str, Any]] = None,
        before_html: str = "",
    ) -> "FixResult":
        return cls(
            success=False,
            selector=selector,
            before_html=before_html,
            after_html=before_html,
            error=InjectorError(
                code=code,
                message=message,
                selector=selector,
                details=details,
            ),
        )

    model_config = ConfigDict(frozen=True, extra="forbid")


class VerificationOutcome(BaseModel):
    """
    Result of the audit capability re-checking a violation after a fix.
    """

    passed: bool
    reason: Optional[str] = None

    model_config = ConfigDict(frozen=True)
