from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ragfusion.core.errors import ErrorCode, default_status_code, is_retryable


# Execution statuses of a technique run
PENDING = "pending"
RUNNING = "running"
COMPLETED = "completed"
FAILED = "failed"
TIMEOUT = "timeout"
CANCELLED = "cancelled"


def _as_float(value: Any) -> float:
    # Missing or unparsable numbers count as 0
    try:
        out = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(out) or math.isinf(out):
        return 0.0
    return out


def _as_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _as_str(value: Any) -> str:
    return "" if value is None else str(value)


@dataclass(frozen=True)
class SourceChunk:
    id: str
    document_id: str
    content: str
    chunk_index: int = 0
    score: float = 0.0          # technique-specific scale (similarity, BM25, ...)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SourceChunk":
        """Build a chunk from a loosely-typed payload without ever raising."""
        metadata = data.get("metadata")
        return cls(
            id=_as_str(data.get("id")),
            document_id=_as_str(data.get("document_id")),
            content=_as_str(data.get("content")),
            chunk_index=_as_int(data.get("chunk_index")),
            score=_as_float(data.get("score")),
            metadata=dict(metadata) if isinstance(metadata, dict) else {},
        )


@dataclass(frozen=True)
class TechniqueError:
    code: ErrorCode
    message: str
    status_code: int = 500
    retryable: bool = False
    technique: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)
    timestamp: str = ""         # ISO 8601
    retry_after_ms: Optional[int] = None

    @classmethod
    def from_code(
        cls,
        code: ErrorCode,
        message: str,
        technique: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> "TechniqueError":
        return cls(
            code=code,
            message=message,
            status_code=default_status_code(code),
            retryable=is_retryable(code),
            technique=technique,
            details=dict(details or {}),
            timestamp=datetime.now(timezone.utc).isoformat(),
        )


@dataclass(frozen=True)
class TechniqueResponse:
    technique: str
    status: str = COMPLETED
    answer: str = ""
    source_chunks: List[SourceChunk] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)   # always carries execution_time_ms
    technique_name: str = ""
    confidence_score: Optional[float] = None
    error: Optional[TechniqueError] = None

    @property
    def execution_time_ms(self) -> float:
        return _as_float(self.metadata.get("execution_time_ms"))

    @property
    def is_successful(self) -> bool:
        return self.status == COMPLETED and self.error is None


@dataclass(frozen=True)
class QueryConfig:
    query: str
    document_ids: List[str] = field(default_factory=list)
    user_id: str = ""
    domain_id: str = ""
    limit: Optional[int] = None
    threshold: Optional[float] = None
    timeout: Optional[int] = None          # milliseconds
    parameters: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RetrievedItem:
    chunk: SourceChunk
    source: str                 # "semantic" | "lexical"
    rank: int                   # 1-based rank in that list
    score: float = 0.0


@dataclass(frozen=True)
class HybridCandidate:
    chunk: SourceChunk
    hybrid_score: float
    semantic_score: float = 0.0
    lexical_score: float = 0.0
    semantic_rank: int = 0      # 0 => absent from the semantic list
    lexical_rank: int = 0       # 0 => absent from the lexical list


@dataclass(frozen=True)
class NormalizedMetadata:
    document_title: str = "Unknown"
    document_type: str = "unknown"
    relevance_tier: str = "low"     # "high" | "medium" | "low"
    confidence_level: float = 0.0


@dataclass(frozen=True)
class DuplicateInfo:
    canonical_id: str
    merged_ids: List[str] = field(default_factory=list)
    similarity_to_canonical: float = 0.0


@dataclass(frozen=True)
class AggregatedSourceChunk:
    chunk: SourceChunk
    aggregated_score: float
    technique_scores: Dict[str, float] = field(default_factory=dict)
    technique_ranks: Dict[str, int] = field(default_factory=dict)
    found_by_techniques: List[str] = field(default_factory=list)
    normalized_metadata: NormalizedMetadata = field(default_factory=NormalizedMetadata)
    duplicate_info: Optional[DuplicateInfo] = None

    @property
    def id(self) -> str:
        return self.chunk.id

    @property
    def document_id(self) -> str:
        return self.chunk.document_id

    @property
    def content(self) -> str:
        return self.chunk.content

    @property
    def chunk_index(self) -> int:
        return self.chunk.chunk_index

    @property
    def score(self) -> float:
        return self.chunk.score

    @property
    def metadata(self) -> Dict[str, Any]:
        return self.chunk.metadata

    @property
    def confidence_level(self) -> float:
        return self.normalized_metadata.confidence_level


@dataclass(frozen=True)
class AggregationMetadata:
    fusion_strategy: str
    confidence_algorithm: str
    total_chunks_before_dedup: int
    total_chunks_after_dedup: int
    duplicates_removed: int
    techniques_used: int
    successful_techniques: int
    failed_techniques: int
    aggregation_time_ms: float


@dataclass(frozen=True)
class AggregationInsights:
    best_performing_technique: str = "unknown"
    technique_agreement_score: float = 0.0
    coverage_overlap: float = 0.0
    diversity_score: float = 0.0


@dataclass(frozen=True)
class AggregatedRAGResult:
    aggregation_id: str
    query_config: QueryConfig
    technique_responses: List[TechniqueResponse]
    aggregated_chunks: List[AggregatedSourceChunk]
    fused_answer: str
    overall_confidence: float
    metadata: AggregationMetadata
    insights: AggregationInsights
