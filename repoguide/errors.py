"""Error taxonomy for the analysis pipeline and the model invocation layer."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional, Sequence

from .models import ModelCallAttempt


class AnalysisErrorKind(str, Enum):
    INVALID_REFERENCE = "invalid-reference"
    NOT_FOUND_OR_PRIVATE = "not-found-or-private"
    TOO_LARGE = "too-large"
    NO_FETCHABLE_CONTENT = "no-fetchable-content"
    INVALID_CREDENTIAL = "invalid-credential"
    ALL_MODELS_EXHAUSTED = "all-models-exhausted"
    MALFORMED_MODEL_OUTPUT = "malformed-model-output"
    UPSTREAM_ERROR = "upstream-error"


class AnalysisError(RuntimeError):
    """Raised when a repository cannot be turned into a setup guide."""

    def __init__(
        self,
        kind: AnalysisErrorKind,
        message: str,
        *,
        status_code: Optional[int] = None,
        payload: Any = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def __str__(self) -> str:
        return self.message


class ResponseParseError(AnalysisError):
    """Raised when model output does not contain a parseable JSON object."""

    def __init__(self, message: str, *, payload: Any = None) -> None:
        super().__init__(
            AnalysisErrorKind.MALFORMED_MODEL_OUTPUT, message, payload=payload
        )


class ModelInvocationError(AnalysisError):
    """Terminal failure of the model invocation engine."""

    def __init__(
        self,
        kind: AnalysisErrorKind,
        message: str,
        *,
        models: Sequence[str],
        attempts: Sequence[ModelCallAttempt],
        status_code: Optional[int] = None,
        payload: Any = None,
    ) -> None:
        super().__init__(kind, message, status_code=status_code, payload=payload)
        self.models: List[str] = list(models)
        self.attempts: List[ModelCallAttempt] = list(attempts)


class ModelErrorKind(str, Enum):
    INVALID_CREDENTIAL = "invalid-credential"
    MODEL_UNAVAILABLE = "model-unavailable"
    RATE_LIMITED = "rate-limited"
    TRANSIENT = "transient"
    TIMEOUT = "timeout"
    BLOCKED = "blocked"
    UNCLASSIFIED = "unclassified"


@dataclass
class ModelCallError(Exception):
    """A single failed model call, classified once at the transport boundary."""

    kind: ModelErrorKind
    message: str
    status_code: Optional[int] = None
    payload: Optional[Any] = None

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}"


__all__ = [
    "AnalysisError",
    "AnalysisErrorKind",
    "ModelCallError",
    "ModelErrorKind",
    "ModelInvocationError",
    "ResponseParseError",
]
