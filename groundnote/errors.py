"""
GroundNote Errors
==================

Exception taxonomy shared by the pipeline.

Only two families are ever raised to callers:

- InputRejectedError: the request itself is unusable (unknown mode,
  notes too short, nothing citable). Raised before any external call.
- GenerationError and subclasses: the text-generation collaborator
  failed. `retryable` tells the caller whether trying again later
  makes sense; configuration errors carry a `remediation` hint.

Validation and citation failures are *not* exceptions: they are
reported on the run outcome together with the last raw output.
Retrieval and embedding failures degrade silently (with a log line).
"""

from __future__ import annotations

from typing import Optional


class GroundNoteError(Exception):
    """Base class for all GroundNote errors."""


class InputRejectedError(GroundNoteError, ValueError):
    """Raised when notes or mode are unusable; the message is user-facing."""


class GenerationError(GroundNoteError, RuntimeError):
    """Raised when the text-generation collaborator call fails."""

    retryable: bool = False

    def __init__(self, message: str, remediation: Optional[str] = None):
        super().__init__(message)
        self.remediation = remediation


class GenerationRateLimitError(GenerationError):
    """The provider answered 429; the caller may retry after a pause."""

    retryable = True


class GenerationTimeoutError(GenerationError):
    """The provider did not answer within the configured timeout."""

    retryable = True


class GenerationConfigError(GenerationError):
    """Missing or rejected credentials / configuration. Not retryable."""
