"""
Pre-injection safety gate for fix instructions.

A fix is DESTRUCTIVE when it targets an interactive element (button,
link, form control or form) and would either empty one of the element's
critical attributes or clear its visible text.

Validation order is fixed:
1. schema validation (a malformed instruction is never inspected further)
2. destructive-change detection (error)
3. interactive-target notice (warning only)
"""

from __future__ import annotations

from typing import Any, List

from pydantic import BaseModel, Field, ValidationError
from pydantic import ConfigDict

from remediator.app.schemas.fixes import (
    AttributeFixInstruction,
    ContentFixInstruction,
    FixInstruction,
    InjectorError,
    InjectorErrorCode,
    validate_fix_instruction,
)


INTERACTIVE_TAGS = ("button", "a", "input", "select", "textarea", "form")

CRITICAL_ATTRIBUTES = frozenset({"href", "type", "name", "action", "method"})


class ValidationResult(BaseModel):
    valid: bool
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)


class SafetyValidator:
    @staticmethod
    def is_interactive_selector(selector: str) -> bool:
        normalized = selector.strip().lower()
        for tag in INTERACTIVE_TAGS:
            if normalized == tag:
                return True
            if any(normalized.startswith(tag + sep) for sep in (".", "[", "#", " ", ":")):
                return True
        return False

    def is_destructive(self, instruction: FixInstruction) -> bool:
        if not self.is_interactive_selector(instruction.selector):
            return False

        if isinstance(instruction, AttributeFixInstruction):
            return (
                instruction.params.attribute.lower() in CRITICAL_ATTRIBUTES
                and instruction.params.value == ""
            )

        if isinstance(instruction, ContentFixInstruction):
            return instruction.params.inner_text.strip() == ""

        return False

    def validate_schema(self, data: Any) -> ValidationResult:
        try:
            validate_fix_instruction(data)
        except ValidationError as exc:
            return ValidationResult(
                valid=False,
                errors=[
                    f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                    for err in exc.errors()
                ],
            )
        return ValidationResult(valid=True)

    def validate(self, data: Any) -> ValidationResult:
        schema_result = self.validate_schema(data)
        if not schema_result.valid:
            return schema_result

        instruction = validate_fix_instruction(data)
        errors: List[str] = []
        warnings: List[str] = []

        if self.is_destructive(instruction):
            errors.append(
                "Destructive change detected: fix would modify interactive "
                f'element "{instruction.selector}" in a way that could break '
                "functionality"
            )

        if self.is_interactive_selector(instruction.selector):
            warnings.append(
                f'Modifying interactive element "{instruction.selector}" - '
                "verify functionality after fix"
            )

        return ValidationResult(
            valid=not errors,
            errors=errors,
            warnings=warnings,
        )

    @staticmethod
    def create_destructive_change_error(instruction: FixInstruction) -> InjectorError:
        return InjectorError(
            code=InjectorErrorCode.DESTRUCTIVE_CHANGE,
            message=(
                "Fix would delete or break interactive element: "
                f"{instruction.selector}"
            ),
            selector=instruction.selector,
            details={
                "fix_type": instruction.type.value,
                "violation_id": instruction.violation_id,
            },
        )

    @staticmethod
    def create_validation_failed_error(selector: str, errors: List[str]) -> InjectorError:
        return InjectorError(
            code=InjectorErrorCode.VALIDATION_FAILED,
            message=f"Fix instruction validation failed: {'; '.join(errors)}",
            selector=selector,
            details={"validation_errors": list(errors)},
        )
