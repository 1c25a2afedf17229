"""
Domain: workflow error taxonomy.

Every failure an engine operation can produce is one of these types. Each
carries the notification severity used to surface it and whether repeating the
same operation may succeed.
"""

from __future__ import annotations

from typing import Mapping, Optional

from .notification import Severity


class WorkflowError(Exception):
    """Base class for typed engine failures."""

    severity: Severity = Severity.WARNING
    retryable: bool = False


class PermissionDenied(WorkflowError):
    """Actor lacks the capability (or ownership) required for the operation."""


class InvalidTransition(WorkflowError):
    """Requested status edge is not part of the lifecycle graph."""

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Invalid status transition {current} -> {target}")


class InvalidState(WorkflowError):
    """Operation is not allowed for the record in its current state."""


class ValidationError(WorkflowError):
    """Input rejected before any mutation; `errors` maps field name to message."""

    def __init__(self, message: str, errors: Optional[Mapping[str, str]] = None):
        self.errors = dict(errors or {})
        super().__init__(message)


class NotFound(WorkflowError):
    """Referenced record does not exist."""


class StoreError(WorkflowError):
    """Persistence failure that repeating the call will not fix."""


class StoreUnavailable(StoreError):
    """Transient persistence failure; the same operation is safe to retry."""

    retryable = True


__all__ = [
    "WorkflowError",
    "PermissionDenied",
    "InvalidTransition",
    "InvalidState",
    "ValidationError",
    "NotFound",
    "StoreError",
    "StoreUnavailable",
]
