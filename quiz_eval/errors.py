"""
Error taxonomy for answer evaluation.

Every error records the pipeline stage and the collaborator that produced it,
so operators can tell "the model is down" apart from "the cache is down".

Propagation:
- ValidationError, UpstreamServiceError, InvariantViolationError fail the request.
- CacheUnavailableError is raised by stores but absorbed by the answer cache.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    INTERNAL = "INTERNAL_ERROR"
    INVALID_INPUT = "INVALID_INPUT"
    INVALID_ANSWER = "INVALID_ANSWER"
    LLM_SERVICE_ERROR = "LLM_SERVICE_ERROR"
    UPSTREAM_UNAVAILABLE = "UPSTREAM_UNAVAILABLE"
    RATE_LIMITED = "RATE_LIMITED"
    MALFORMED_RESPONSE = "MALFORMED_RESPONSE"
    CACHE_UNAVAILABLE = "CACHE_UNAVAILABLE"
    INVARIANT_VIOLATION = "INVARIANT_VIOLATION"
    DIMENSION_MISMATCH = "DIMENSION_MISMATCH"


class QuizEvalError(Exception):
    code: ErrorCode = ErrorCode.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        stage: Optional[str] = None,
        collaborator: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.stage = stage
        self.collaborator = collaborator

    def __str__(self) -> str:
        if self.__cause__ is not None:
            return f"{self.message}: {self.__cause__}"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """Payload safe to return to API clients (no chained cause)."""
        payload: Dict[str, Any] = {"code": self.code.value, "message": self.message}
        if self.stage:
            payload["stage"] = self.stage
        if self.collaborator:
            payload["collaborator"] = self.collaborator
        return payload


class ValidationError(QuizEvalError):
    """Empty or absent question id / answer text. Raised before any network call."""
    code = ErrorCode.INVALID_ANSWER


class UpstreamServiceError(QuizEvalError):
    """Embedding provider or evaluator failure."""
    code = ErrorCode.LLM_SERVICE_ERROR


class UpstreamUnavailableError(UpstreamServiceError):
    code = ErrorCode.UPSTREAM_UNAVAILABLE


class RateLimitedError(UpstreamServiceError):
    code = ErrorCode.RATE_LIMITED


class MalformedResponseError(UpstreamServiceError):
    code = ErrorCode.MALFORMED_RESPONSE


class CacheUnavailableError(QuizEvalError):
    code = ErrorCode.CACHE_UNAVAILABLE


class InvariantViolationError(QuizEvalError):
    """Data that would poison the cache, e.g. scores outside [0, 1]."""
    code = ErrorCode.INVARIANT_VIOLATION


class InvalidInputError(QuizEvalError, ValueError):
    code = ErrorCode.INVALID_INPUT


class DimensionMismatchError(InvalidInputError):
    code = ErrorCode.DIMENSION_MISMATCH
