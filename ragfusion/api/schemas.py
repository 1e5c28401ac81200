from __future__ import annotations
from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any

from ragfusion.core.errors import ErrorCode
from ragfusion.core.types import (
    COMPLETED,
    QueryConfig,
    SourceChunk,
    TechniqueError,
    TechniqueResponse,
)


class SourceChunkIn(BaseModel):
    id: str
    document_id: str = ""
    content: str = ""
    chunk_index: int = 0
    score: float = 0.0
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def to_core(self) -> SourceChunk:
        return SourceChunk(
            id=self.id,
            document_id=self.document_id,
            content=self.content,
            chunk_index=self.chunk_index,
            score=self.score,
            metadata=dict(self.metadata),
        )


class TechniqueErrorIn(BaseModel):
    code: str = ErrorCode.UNKNOWN_ERROR.value
    message: str = ""
    details: Dict[str, Any] = Field(default_factory=dict)

    def to_core(self, technique: str) -> TechniqueError:
        try:
            code = ErrorCode(self.code)
        except ValueError:
            code = ErrorCode.UNKNOWN_ERROR
        return TechniqueError.from_code(code, self.message, technique=technique, details=self.details)


class TechniqueResponseIn(BaseModel):
    technique: str
    status: str = COMPLETED
    answer: str = ""
    # Malformed chunk fields are coerced by SourceChunk.from_dict
    source_chunks: List[Dict[str, Any]] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)
    technique_name: str = ""
    confidence_score: Optional[float] = None
    error: Optional[TechniqueErrorIn] = None

    def to_core(self) -> TechniqueResponse:
        return TechniqueResponse(
            technique=self.technique,
            status=self.status,
            answer=self.answer,
            source_chunks=[SourceChunk.from_dict(c) for c in self.source_chunks],
            metadata={"execution_time_ms": 0, **self.metadata},
            technique_name=self.technique_name,
            confidence_score=self.confidence_score,
            error=self.error.to_core(self.technique) if self.error else None,
        )


class QueryConfigIn(BaseModel):
    query: str
    document_ids: List[str] = Field(default_factory=list)
    user_id: str = ""
    domain_id: str = ""
    limit: Optional[int] = None
    threshold: Optional[float] = None
    timeout: Optional[int] = None
    parameters: Dict[str, Any] = Field(default_factory=dict)

    def to_core(self) -> QueryConfig:
        return QueryConfig(**self.model_dump())


class AggregationOptions(BaseModel):
    # Unset fields fall back to the service settings
    fusion_strategy: Optional[str] = None
    confidence_algorithm: Optional[str] = None
    enable_deduplication: Optional[bool] = None
    duplicate_threshold: Optional[float] = None
    max_results: Optional[int] = None
    min_confidence: Optional[float] = None
    technique_weights: Optional[Dict[str, float]] = None
    enable_insights: Optional[bool] = None


class AggregateRequest(BaseModel):
    query_config: QueryConfigIn
    responses: List[TechniqueResponseIn]
    options: AggregationOptions = Field(default_factory=AggregationOptions)


class AggregatedChunkOut(BaseModel):
    id: str
    document_id: str
    content: str
    chunk_index: int
    score: float
    metadata: Dict[str, Any]
    aggregated_score: float
    technique_scores: Dict[str, float]
    technique_ranks: Dict[str, int]
    found_by_techniques: List[str]
    normalized_metadata: Dict[str, Any]
    duplicate_info: Optional[Dict[str, Any]] = None


class TechniqueResponseOut(BaseModel):
    technique: str
    status: str
    answer: str
    source_chunks: List[Dict[str, Any]]
    metadata: Dict[str, Any]
    technique_name: str
    confidence_score: Optional[float] = None
    error: Optional[Dict[str, Any]] = None


class AggregateResponse(BaseModel):
    aggregation_id: str
    query_config: QueryConfigIn
    technique_responses: List[TechniqueResponseOut]
    fused_answer: str
    overall_confidence: float
    aggregated_chunks: List[AggregatedChunkOut]
    metadata: Dict[str, Any]
    insights: Dict[str, Any]


class HybridFuseRequest(BaseModel):
    semantic: List[SourceChunkIn] = Field(default_factory=list)
    lexical: List[SourceChunkIn] = Field(default_factory=list)
    w_semantic: float = 0.6
    w_lexical: float = 0.4
    method: str = "weighted_sum"
    normalize: bool = True
    normalization: str = "min_max"
    final_limit: int = 20


class HybridCandidateOut(BaseModel):
    id: str
    document_id: str
    content: str
    hybrid_score: float
    semantic_score: float
    lexical_score: float
    semantic_rank: int
    lexical_rank: int


class HybridFuseResponse(BaseModel):
    results: List[HybridCandidateOut]


class RankRequest(BaseModel):
    responses: List[TechniqueResponseIn]


class RankingOut(BaseModel):
    technique: str
    rank: int
    total_score: int
    performance_category: str
    is_top_performer: bool
    recommendation: str
    metrics: Dict[str, Dict[str, Any]]


class RankResponse(BaseModel):
    results: List[RankingOut]
    top_performer: Optional[str] = None
    average_score: float
    score_spread: float
    insights: List[str]
