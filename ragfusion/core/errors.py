"""Error hierarchy and error codes for ragfusion.

Only `NoSuccessfulResponses` is a hard failure of the aggregation core.
Technique-level failures are data: they travel inside a failed
`TechniqueResponse` as a `TechniqueError` carrying one of the `ErrorCode`s
below.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, Optional, Sequence


class ErrorCode(str, Enum):
    # Input validation (400)
    INVALID_QUERY = "INVALID_QUERY"
    INVALID_DOCUMENT_IDS = "INVALID_DOCUMENT_IDS"
    INVALID_PARAMETERS = "INVALID_PARAMETERS"

    # Authentication / authorization (401, 403)
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"

    # Resources (404)
    DOCUMENT_NOT_FOUND = "DOCUMENT_NOT_FOUND"
    DOMAIN_NOT_FOUND = "DOMAIN_NOT_FOUND"

    # Execution (500)
    EMBEDDING_GENERATION_FAILED = "EMBEDDING_GENERATION_FAILED"
    SEARCH_FAILED = "SEARCH_FAILED"
    RERANKING_FAILED = "RERANKING_FAILED"
    AGENT_EXECUTION_FAILED = "AGENT_EXECUTION_FAILED"

    # Timeouts (408, 504)
    TIMEOUT = "TIMEOUT"
    GATEWAY_TIMEOUT = "GATEWAY_TIMEOUT"

    # Rate limiting (429)
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"

    # External services (502, 503)
    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"

    UNKNOWN_ERROR = "UNKNOWN_ERROR"


_STATUS_CODES: Dict[ErrorCode, int] = {
    ErrorCode.INVALID_QUERY: 400,
    ErrorCode.INVALID_DOCUMENT_IDS: 400,
    ErrorCode.INVALID_PARAMETERS: 400,
    ErrorCode.UNAUTHORIZED: 401,
    ErrorCode.FORBIDDEN: 403,
    ErrorCode.DOCUMENT_NOT_FOUND: 404,
    ErrorCode.DOMAIN_NOT_FOUND: 404,
    ErrorCode.TIMEOUT: 408,
    ErrorCode.RATE_LIMIT_EXCEEDED: 429,
    ErrorCode.EMBEDDING_GENERATION_FAILED: 500,
    ErrorCode.SEARCH_FAILED: 500,
    ErrorCode.RERANKING_FAILED: 500,
    ErrorCode.AGENT_EXECUTION_FAILED: 500,
    ErrorCode.UNKNOWN_ERROR: 500,
    ErrorCode.EXTERNAL_SERVICE_ERROR: 502,
    ErrorCode.SERVICE_UNAVAILABLE: 503,
    ErrorCode.GATEWAY_TIMEOUT: 504,
}

_RETRYABLE = frozenset(
    {
        ErrorCode.TIMEOUT,
        ErrorCode.GATEWAY_TIMEOUT,
        ErrorCode.RATE_LIMIT_EXCEEDED,
        ErrorCode.EXTERNAL_SERVICE_ERROR,
        ErrorCode.SERVICE_UNAVAILABLE,
    }
)


def default_status_code(code: ErrorCode) -> int:
    return _STATUS_CODES.get(code, 500)


def is_retryable(code: ErrorCode) -> bool:
    return code in _RETRYABLE


class RAGFusionError(Exception):
    """Base error for ragfusion."""


# =============================================================================
# Aggregation Errors
# =============================================================================


class NoSuccessfulResponses(RAGFusionError):
    """Every technique response passed to the aggregator was unsuccessful.

    Attributes:
        total_responses: Number of responses the caller supplied
        statuses: Status of each supplied response, in input order

    Retry: Never retryable - the caller must supply at least one completed response.
    """

    def __init__(self, total_responses: int, statuses: Optional[Sequence[str]] = None) -> None:
        self.total_responses = total_responses
        self.statuses = list(statuses or [])
        if total_responses == 0:
            reason = "no technique responses were supplied"
        else:
            reason = f"0 of {total_responses} technique responses completed ({', '.join(self.statuses)})"
        super().__init__(f"No successful responses to aggregate: {reason}")


# =============================================================================
# Input Errors
# =============================================================================


class InvalidWeightsError(RAGFusionError, ValueError):
    """Semantic and lexical weights of a pair fusion do not sum to 1.0.

    Attributes:
        w_semantic: Weight given to the semantic list
        w_lexical: Weight given to the lexical list
    """

    def __init__(self, w_semantic: float, w_lexical: float) -> None:
        self.w_semantic = w_semantic
        self.w_lexical = w_lexical
        super().__init__(
            f"Semantic and lexical weights must sum to 1.0 (got {w_semantic} + {w_lexical})"
        )


class ConfigurationError(RAGFusionError, ValueError):
    """A configuration value is outside its allowed set or range.

    Attributes:
        field_name: The offending configuration field
        value: The rejected value
    """

    def __init__(self, field_name: str, value: object, reason: str) -> None:
        self.field_name = field_name
        self.value = value
        super().__init__(f"Invalid {field_name}={value!r}: {reason}")
