"""
Error-Recovery Service.

Two independent flows, both returning a uniform RecoveryResult so the
orchestrator can re-enter the fix/verify cycle without branching on the
error subtype:

1. Selector recovery (fix-injection returned SELECTOR_NOT_FOUND)
   Every element of a PageStructure is scored against the failed
   selector and the best candidate is accepted only when its score
   exceeds the confidence threshold.

2. Verification-failure recovery (fix applied but failed re-audit)
   The failure reason is classified by keyword into vague text,
   redundant text, a newly introduced violation, or other. The outcome
   is an improved-text instruction, a rollback, a plain retry, or a
   human handoff.

IMPORTANT:
Recovery never silently drops a failure. Whenever no strategy applies
the outcome is `handoff` with a human-readable detail string.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, Field
from pydantic import ConfigDict

from remediator.app.config import DEFAULT_SELECTOR_CONFIDENCE_THRESHOLD
from remediator.app.recovery.similarity import (
    extract_attributes,
    extract_id,
    extract_ids,
    extract_tag,
    string_similarity,
)
from remediator.app.rollback.rollback_manager import (
    PageHandle,
    RollbackError,
    RollbackManager,
)
from remediator.app.schemas.fixes import (
    AttributeFixInstruction,
    ContentFixInstruction,
    FixInstruction,
    InjectorError,
    InjectorErrorCode,
    TEXT_ATTRIBUTES,
    instruction_text,
)
from remediator.app.schemas.violations import ElementSummary, PageStructure

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Scoring weights
# ---------------------------------------------------------------------------

TAG_MATCH_WEIGHT = 0.3
ID_MATCH_WEIGHT = 0.4
SELECTOR_SIMILARITY_WEIGHT = 0.2
ROLE_MATCH_WEIGHT = 0.1
TEXT_SIMILARITY_WEIGHT = 0.1

# Phrases whose presence marks link or label text as vague.
VAGUE_PHRASES = (
    "click here",
    "read more",
    "learn more",
    "more",
    "here",
    "link",
    "button",
)

EMPTY_TEXT_REPLACEMENT = "Descriptive text for this element"


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


class RecoveryAction(str, Enum):
    SELECTOR_CORRECTED = "selector_corrected"
    TEXT_IMPROVED = "text_improved"
    RETRIED = "retried"
    ROLLED_BACK = "rolled_back"
    HANDOFF = "handoff"


class VerificationFailureType(str, Enum):
    VAGUE_TEXT = "vague_text"
    REDUNDANT_TEXT = "redundant_text"
    NEW_VIOLATION = "new_violation"
    OTHER = "other"


class SuggestedAction(str, Enum):
    IMPROVE_TEXT = "improve_text"
    ROLLBACK = "rollback"
    RETRY = "retry"
    HANDOFF = "handoff"


class SelectorRecoveryResult(BaseModel):
    success: bool
    original_selector: str
    corrected_selector: Optional[str] = None
    matched_element: Optional[ElementSummary] = None
    confidence: float = Field(..., ge=0.0, le=1.0)
    reason: str

    model_config = ConfigDict(frozen=True)


class VerificationFailureAnalysis(BaseModel):
    failure_type: VerificationFailureType
    reason: str
    suggested_action: SuggestedAction
    improved_text: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class RecoveryResult(BaseModel):
    success: bool
    action: RecoveryAction
    details: str = Field(..., min_length=1)
    corrected_instruction: Optional[FixInstruction] = None

    model_config = ConfigDict(frozen=True)


# ---------------------------------------------------------------------------
# Instruction rewriting
# ---------------------------------------------------------------------------


def with_selector(instruction: FixInstruction, selector: str) -> FixInstruction:
    """
    Return a copy of `instruction` targeting `selector`.

    Violation id, fix type and justification are preserved.
    """
    return instruction.model_copy(
        update={
            "selector": selector,
            "params": instruction.params.model_copy(update={"selector": selector}),
        }
    )


def with_text(instruction: FixInstruction, text: str) -> Optional[FixInstruction]:
    """
    Return a copy of `instruction` writing `text`, or None if the
    instruction carries no human-readable text.
    """
    if isinstance(instruction, ContentFixInstruction):
        return instruction.model_copy(
            update={
                "params": instruction.params.model_copy(update={"inner_text": text})
            }
        )

    if (
        isinstance(instruction, AttributeFixInstruction)
        and instruction.params.attribute in TEXT_ATTRIBUTES
    ):
        return instruction.model_copy(
            update={"params": instruction.params.model_copy(update={"value": text})}
        )

    return None


def improve_text(original: Optional[str], failure_type: VerificationFailureType) -> str:
    """
    Produce replacement text that differs from `original` and is never empty.
    """
    if not original:
        return EMPTY_TEXT_REPLACEMENT

    if failure_type is VerificationFailureType.REDUNDANT_TEXT:
        return f"{original} - unique identifier"

    lowered = original.lower()
    if any(phrase in lowered for phrase in VAGUE_PHRASES):
        return f"{original} - provides additional context and functionality"
    return f"{original} (detailed description)"


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class ErrorRecoveryService:
    def __init__(
        self,
        rollback_manager: Optional[RollbackManager] = None,
        *,
        confidence_threshold: float = DEFAULT_SELECTOR_CONFIDENCE_THRESHOLD,
    ) -> None:
        self._rollback_manager = rollback_manager or RollbackManager()
        self._confidence_threshold = confidence_threshold
        self._page_structure: Optional[PageStructure] = None

    @property
    def rollback_manager(self) -> RollbackManager:
        return self._rollback_manager

    @property
    def confidence_threshold(self) -> float:
        return self._confidence_threshold

    # ------------------------------------------------------------------
    # Page structure cache
    # ------------------------------------------------------------------

    def set_page_structure(self, structure: PageStructure) -> None:
        self._page_structure = structure

    def get_page_structure(self) -> Optional[PageStructure]:
        return self._page_structure

    def clear_page_structure_cache(self) -> None:
        self._page_structure = None

    # ------------------------------------------------------------------
    # Selector recovery
    # ------------------------------------------------------------------

    def score_element(self, failed_selector: str, element: ElementSummary) -> float:
        tag = extract_tag(failed_selector)
        failed_id = extract_id(failed_selector)
        attrs = extract_attributes(failed_selector)

        score = 0.0

        if tag and element.tag_name.lower() == tag:
            score += TAG_MATCH_WEIGHT

        if failed_id and failed_id in extract_ids(element.selector):
            score += ID_MATCH_WEIGHT

        score += (
            string_similarity(failed_selector, element.selector)
            * SELECTOR_SIMILARITY_WEIGHT
        )

        if element.role and attrs.get("role") == element.role:
            score += ROLE_MATCH_WEIGHT

        label = attrs.get("aria-label")
        if element.text and label:
            score += string_similarity(label, element.text) * TEXT_SIMILARITY_WEIGHT

        return min(score, 1.0)

    def recover_from_selector_error(
        self,
        failed_selector: str,
        structure: PageStructure,
    ) -> SelectorRecoveryResult:
        elements = structure.all_elements()

        if not elements:
            return SelectorRecoveryResult(
                success=False,
                original_selector=failed_selector,
                confidence=0.0,
                reason="No elements found in page structure",
            )

        scored: List[Tuple[float, ElementSummary]] = [
            (self.score_element(failed_selector, element), element)
            for element in elements
        ]
        # max() keeps the first of equal scores: page order breaks ties.
        best_score, best = max(scored, key=lambda pair: pair[0])

        if best_score <= self._confidence_threshold:
            return SelectorRecoveryResult(
                success=False,
                original_selector=failed_selector,
                confidence=best_score,
                reason=(
                    f"Best match score ({best_score:.2f}) does not exceed "
                    f"threshold ({self._confidence_threshold:.2f})"
                ),
            )

        return SelectorRecoveryResult(
            success=True,
            original_selector=failed_selector,
            corrected_selector=best.selector,
            matched_element=best,
            confidence=best_score,
            reason=f"Matched '{best.selector}' with score {best_score:.2f}",
        )

    def recover_from_injector_error(
        self,
        error: InjectorError,
        instruction: FixInstruction,
        structure: Optional[PageStructure] = None,
    ) -> RecoveryResult:
        """
        Recover from a structured fix-injection error.

        Only SELECTOR_NOT_FOUND is auto-recoverable. Every other code
        escalates to human handoff.
        """
        if error.code is not InjectorErrorCode.SELECTOR_NOT_FOUND:
            return self._handoff(_INJECTOR_HANDOFF_DETAILS.get(
                error.code,
                f"Unrecoverable error: {error.code.value} - {error.message}",
            ))

        structure = structure or self._page_structure
        if structure is None:
            return self._handoff(
                "SELECTOR_NOT_FOUND error but no page structure available "
                "for fuzzy matching"
            )

        recovery = self.recover_from_selector_error(instruction.selector, structure)
        if not recovery.success or recovery.corrected_selector is None:
            return self._handoff(f"Could not find matching element: {recovery.reason}")

        logger.info(
            "Recovered selector %s -> %s (confidence %.2f)",
            instruction.selector,
            recovery.corrected_selector,
            recovery.confidence,
        )

        return RecoveryResult(
            success=True,
            action=RecoveryAction.SELECTOR_CORRECTED,
            details=(
                f'Selector corrected from "{instruction.selector}" to '
                f'"{recovery.corrected_selector}" '
                f"(confidence: {recovery.confidence:.2f})"
            ),
            corrected_instruction=with_selector(
                instruction, recovery.corrected_selector
            ),
        )

    # ------------------------------------------------------------------
    # Verification-failure recovery
    # ------------------------------------------------------------------

    def analyze_verification_failure(
        self,
        failure_reason: str,
        original_text: Optional[str] = None,
    ) -> VerificationFailureAnalysis:
        reason = failure_reason.lower()

        if _mentions(reason, "vague", "generic", "non-descriptive", "unclear"):
            failure_type = VerificationFailureType.VAGUE_TEXT
        elif _mentions(reason, "redundant", "duplicate", "repetitive", "same as"):
            failure_type = VerificationFailureType.REDUNDANT_TEXT
        elif _mentions(reason, "new violation", "introduced", "caused", "broke"):
            return VerificationFailureAnalysis(
                failure_type=VerificationFailureType.NEW_VIOLATION,
                reason=failure_reason,
                suggested_action=SuggestedAction.ROLLBACK,
            )
        else:
            return VerificationFailureAnalysis(
                failure_type=VerificationFailureType.OTHER,
                reason=failure_reason,
                suggested_action=SuggestedAction.RETRY,
            )

        return VerificationFailureAnalysis(
            failure_type=failure_type,
            reason=failure_reason,
            suggested_action=SuggestedAction.IMPROVE_TEXT,
            improved_text=improve_text(original_text, failure_type),
        )

    async def trigger_rollback(self, page: PageHandle, snapshot_id: str) -> bool:
        try:
            await self._rollback_manager.rollback(page, snapshot_id)
        except RollbackError as exc:
            logger.warning("Rollback to %s failed: %s", snapshot_id, exc)
            return False
        return True

    async def recover_from_verification_failure(
        self,
        page: Optional[PageHandle],
        failure_reason: str,
        instruction: FixInstruction,
        snapshot_id: Optional[str] = None,
    ) -> RecoveryResult:
        analysis = self.analyze_verification_failure(
            failure_reason, instruction_text(instruction)
        )

        if analysis.suggested_action is SuggestedAction.IMPROVE_TEXT:
            improved = (
                with_text(instruction, analysis.improved_text)
                if analysis.improved_text
                else None
            )
            if improved is not None:
                return RecoveryResult(
                    success=True,
                    action=RecoveryAction.TEXT_IMPROVED,
                    details=f"Text improved for {analysis.failure_type.value} issue",
                    corrected_instruction=improved,
                )

        elif analysis.suggested_action is SuggestedAction.ROLLBACK:
            if snapshot_id and page is not None:
                if await self.trigger_rollback(page, snapshot_id):
                    return RecoveryResult(
                        success=True,
                        action=RecoveryAction.ROLLED_BACK,
                        details=f"Rolled back fix that caused: {analysis.reason}",
                    )

        elif analysis.suggested_action is SuggestedAction.RETRY:
            return RecoveryResult(
                success=True,
                action=RecoveryAction.RETRIED,
                details="Retrying with original instruction",
                corrected_instruction=instruction,
            )

        return self._handoff(
            f"Could not recover from verification failure: {analysis.reason}"
        )

    @staticmethod
    def _handoff(details: str) -> RecoveryResult:
        logger.warning("Recovery fell back to human handoff: %s", details)
        return RecoveryResult(
            success=False,
            action=RecoveryAction.HANDOFF,
            details=details,
        )


_INJECTOR_HANDOFF_DETAILS = {
    InjectorErrorCode.CONTENT_CHANGED: (
        "Content changed since audit - re-audit required"
    ),
    InjectorErrorCode.DESTRUCTIVE_CHANGE: (
        "Fix would cause destructive change - human review required"
    ),
}


def _mentions(text: str, *keywords: str) -> bool:
    return any(keyword in text for keyword in keywords)
