from __future__ import annotations

import time
from typing import Any, List, Optional, Protocol

from ragfusion.core.errors import ErrorCode
from ragfusion.core.types import (
    COMPLETED,
    FAILED,
    QueryConfig,
    SourceChunk,
    TechniqueError,
    TechniqueResponse,
)


class Technique(Protocol):
    """Anything that answers a QueryConfig with a TechniqueResponse, sync or async."""

    name: str

    def run(self, query_config: QueryConfig) -> TechniqueResponse: ...


def elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000.0


def completed_response(
    technique: str,
    chunks: List[SourceChunk],
    start: float,
    technique_name: str = "",
    answer: str = "",
    confidence_score: Optional[float] = None,
    **metadata: Any,
) -> TechniqueResponse:
    return TechniqueResponse(
        technique=technique,
        status=COMPLETED,
        answer=answer,
        source_chunks=chunks,
        metadata={"execution_time_ms": elapsed_ms(start), **metadata},
        technique_name=technique_name,
        confidence_score=confidence_score,
    )


def failed_response(
    technique: str,
    code: ErrorCode,
    message: str,
    start: Optional[float] = None,
    status: str = FAILED,
    **details: Any,
) -> TechniqueResponse:
    took = elapsed_ms(start) if start is not None else 0.0
    return TechniqueResponse(
        technique=technique,
        status=status,
        metadata={"execution_time_ms": took},
        error=TechniqueError.from_code(code, message, technique=technique, details=details),
    )


def mean_score(chunks: List[SourceChunk]) -> Optional[float]:
    # Confidence reported by a technique: mean of its (unit-scaled) chunk scores
    if not chunks:
        return None
    return max(0.0, min(1.0, sum(c.score for c in chunks) / len(chunks)))
