"""
Error taxonomy for the analysis workflow.

Validation errors are raised before a run exists and are surfaced to the
caller as a dismissible warning. Engine errors end a run in the ``failed``
state. Neither kind is fatal to the process and there is no automatic retry.
"""

from __future__ import annotations

from enum import Enum


class RejectionReason(str, Enum):
    EMPTY_INPUT = "EmptyInput"
    MISSING_FILE = "MissingFile"


class EngineErrorCode(str, Enum):
    ENGINE_UNAVAILABLE = "EngineUnavailable"
    NETWORK_UNREACHABLE = "NetworkUnreachable"
    TIMEOUT = "Timeout"


class AnalysisError(Exception):
    """Base class for every error the analysis core raises."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class SubmissionRejected(AnalysisError):
    """Raised by the validator; the submission never enters a run."""

    def __init__(self, reason: RejectionReason, message: str) -> None:
        super().__init__(message)
        self.reason = reason


class EngineError(AnalysisError):
    """Raised when scoring cannot produce a result for a run."""

    code: EngineErrorCode = EngineErrorCode.ENGINE_UNAVAILABLE

    def __init__(self, message: str) -> None:
        super().__init__(message)


class EngineUnavailable(EngineError):
    code = EngineErrorCode.ENGINE_UNAVAILABLE


class NetworkUnreachable(EngineError):
    code = EngineErrorCode.NETWORK_UNREACHABLE


class ScoringTimeout(EngineError):
    code = EngineErrorCode.TIMEOUT
