from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field
from pydantic import ConfigDict


class WorkflowState(str, Enum):
    IDLE = "IDLE"
    SCANNING = "SCANNING"
    PLANNING = "PLANNING"
    EXECUTING = "EXECUTING"
    VERIFYING = "VERIFYING"
    COMPLETE = "COMPLETE"


class WorkflowAction(str, Enum):
    START_SCAN = "START_SCAN"
    SCAN_COMPLETE = "SCAN_COMPLETE"
    START_PLANNING = "START_PLANNING"
    PLAN_COMPLETE = "PLAN_COMPLETE"
    START_EXECUTION = "START_EXECUTION"
    EXECUTION_COMPLETE = "EXECUTION_COMPLETE"
    START_VERIFICATION = "START_VERIFICATION"
    VERIFICATION_PASS = "VERIFICATION_PASS"
    VERIFICATION_FAIL = "VERIFICATION_FAIL"
    ALL_VIOLATIONS_PROCESSED = "ALL_VIOLATIONS_PROCESSED"
    RESET = "RESET"


class WorkflowEvent(BaseModel):
    """
    One entry of the orchestrator's append-only action history.
    """

    action: WorkflowAction
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
    payload: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(frozen=True)
