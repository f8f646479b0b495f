"""
Contracts of the external capabilities the coordinator drives.

The workflow engine is agnostic to transport: a capability may be a
local object, an RPC stub or a queue client, as long as it honours these
request/response shapes.
"""

from __future__ import annotations

from typing import Protocol

from remediator.app.schemas.fixes import FixInstruction, FixResult, VerificationOutcome
from remediator.app.schemas.violations import (
    PageStructure,
    ScanResult,
    Viewport,
    Violation,
)


class AuditCapability(Protocol):
    """
    Page-audit capability.

    Violations MUST already carry their impact. The engine never infers
    severity.
    """

    async def scan(self, url: str, viewport: Viewport) -> ScanResult:
        ...

    async def get_page_structure(self) -> PageStructure:
        ...

    async def verify_fix(
        self,
        violation: Violation,
        instruction: FixInstruction,
        result: FixResult,
    ) -> VerificationOutcome:
        ...


class FixInjector(Protocol):
    """
    Fix-injection capability.

    Failures are returned as FixResult values carrying one of the
    structured InjectorErrorCode values verbatim. They are not raised.
    """

    async def apply(self, instruction: FixInstruction) -> FixResult:
        ...
