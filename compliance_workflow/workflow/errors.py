from __future__ import annotations

from dataclasses import dataclass


class WorkflowError(Exception):
    """Base class for errors raised by the compliance workflow engine."""

    kind = "workflow_error"


class NotFound(WorkflowError):
    kind = "not_found"


@dataclass
class InvalidTransition(WorkflowError):
    status: str
    action: str
    reason: str | None = None
    subject: str = "step"

    kind = "invalid_transition"

    def __str__(self) -> str:
        message = f"Cannot {self.action} a {self.subject} in status '{self.status}'"
        if self.reason:
            message = f"{message}: {self.reason}"
        return message


class WorkflowValidationError(WorkflowError):
    kind = "validation_error"


@dataclass
class CapabilityError(WorkflowError):
    capability: str

    kind = "capability_error"

    def __str__(self) -> str:
        return f"Actor lacks the '{self.capability}' capability"


class PersistenceFailure(WorkflowError):
    kind = "persistence_failure"
