"""Exception types raised at the seams of the autofill pipeline."""
from __future__ import annotations

from typing import Any, Dict, Optional


class ClaimfillError(RuntimeError):
    """Base class for errors raised by claimfill."""


class FillError(ClaimfillError):
    """Raised when a value cannot be committed into a field."""

    reason = "write_failed"

    def __init__(self, message: str, *, reason: Optional[str] = None, data: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        if reason is not None:
            self.reason = reason
        self.data = data or {}


class ValidationFailedError(FillError):
    """The candidate value was rejected by the key's validator."""

    reason = "validation_failed"


class CommitRejectedError(FillError):
    """The value is valid but the control cannot represent it (no matching option, file input)."""

    reason = "commit_rejected"


class TriageError(ClaimfillError):
    """Raised when the triage collaborator cannot be reached or returns garbage."""

    def __init__(self, message: str, *, recoverable: bool = True, data: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.recoverable = recoverable
        self.data = data or {}


__all__ = [
    "ClaimfillError",
    "CommitRejectedError",
    "FillError",
    "TriageError",
    "ValidationFailedError",
]
