"""
Workflow error taxonomy and the structured result returned to callers.

None of these errors is transient: each one ends the current call and needs
either a corrected request or a fresh read from the caller.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

NOT_FOUND = "NotFound"
INVALID_TRANSITION = "InvalidTransition"
MISSING_FIELD = "MissingField"
DUPLICATE_PAYMENT = "DuplicatePayment"


class WorkflowError(Exception):
    """Base class for workflow failures surfaced to the caller."""

    kind: str = "WorkflowError"

    def __init__(self, message: str, *, field_name: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field_name = field_name


class NotFound(WorkflowError):
    """A referenced entity does not exist."""

    kind = NOT_FOUND


class InvalidTransition(WorkflowError):
    """Status change not allowed from the current status (stale view or lost race)."""

    kind = INVALID_TRANSITION

    def __init__(self, message: str, *, current_status: Optional[str] = None, target_status: Optional[str] = None):
        super().__init__(message)
        self.current_status = current_status
        self.target_status = target_status


class MissingField(WorkflowError):
    """Caller omitted (or blanked) a required input."""

    kind = MISSING_FIELD

    def __init__(self, field_name: str, message: Optional[str] = None):
        super().__init__(message or f"{field_name} is required", field_name=field_name)


class DuplicatePayment(WorkflowError):
    """A ledger entry already exists for this (lawyer, case) pair."""

    kind = DUPLICATE_PAYMENT


@dataclass
class WorkflowResult:
    ok: bool
    entity: Any = None
    kind: Optional[str] = None
    message: Optional[str] = None
    field_name: Optional[str] = None
    # Best-effort secondary effects that did not apply (status change still stands)
    warnings: List[str] = field(default_factory=list)

    @classmethod
    def success(cls, entity: Any, warnings: Optional[List[str]] = None) -> "WorkflowResult":
        return cls(ok=True, entity=entity, warnings=list(warnings or []))

    @classmethod
    def failure(cls, error: WorkflowError) -> "WorkflowResult":
        return cls(ok=False, kind=error.kind, message=error.message, field_name=error.field_name)

    def to_dict(self) -> Dict[str, Any]:
        if self.ok:
            return {"ok": True, "entity": self.entity, "warnings": list(self.warnings)}
        payload: Dict[str, Any] = {"ok": False, "kind": self.kind, "message": self.message}
        if self.field_name:
            payload["field"] = self.field_name
        return payload
