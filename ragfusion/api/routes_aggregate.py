from __future__ import annotations

import logging
from dataclasses import asdict
from typing import List

from fastapi import APIRouter, HTTPException

from ragfusion.aggregation.orchestrator import aggregate
from ragfusion.aggregation.performance import rank_techniques
from ragfusion.api.schemas import (
    AggregatedChunkOut,
    AggregateRequest,
    AggregateResponse,
    HybridCandidateOut,
    HybridFuseRequest,
    HybridFuseResponse,
    QueryConfigIn,
    RankingOut,
    RankRequest,
    RankResponse,
    SourceChunkIn,
    TechniqueResponseOut,
)
from ragfusion.core.config import AggregationConfig
from ragfusion.core.errors import ConfigurationError, InvalidWeightsError, NoSuccessfulResponses
from ragfusion.core.types import AggregatedSourceChunk, RetrievedItem, TechniqueResponse
from ragfusion.retrieval.fusion import PairWeights, fuse_pair

logger = logging.getLogger(__name__)
router = APIRouter()


def _chunk_out(c: AggregatedSourceChunk) -> AggregatedChunkOut:
    return AggregatedChunkOut(
        id=c.id,
        document_id=c.document_id,
        content=c.content,
        chunk_index=c.chunk_index,
        score=c.score,
        metadata=c.metadata,
        aggregated_score=c.aggregated_score,
        technique_scores=c.technique_scores,
        technique_ranks=c.technique_ranks,
        found_by_techniques=c.found_by_techniques,
        normalized_metadata=asdict(c.normalized_metadata),
        duplicate_info=asdict(c.duplicate_info) if c.duplicate_info else None,
    )


def _response_out(r: TechniqueResponse) -> TechniqueResponseOut:
    error = None
    if r.error is not None:
        error = {**asdict(r.error), "code": r.error.code.value}
    return TechniqueResponseOut(
        technique=r.technique,
        status=r.status,
        answer=r.answer,
        source_chunks=[asdict(c) for c in r.source_chunks],
        metadata=r.metadata,
        technique_name=r.technique_name,
        confidence_score=r.confidence_score,
        error=error,
    )


def _ranked(items: List[SourceChunkIn], source: str) -> List[RetrievedItem]:
    return [
        RetrievedItem(chunk=it.to_core(), source=source, rank=rank, score=it.score)
        for rank, it in enumerate(items, start=1)
    ]


@router.post("/aggregate", response_model=AggregateResponse)
def aggregate_responses(req: AggregateRequest) -> AggregateResponse:
    try:
        config = AggregationConfig.from_settings(**req.options.model_dump())
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        result = aggregate(
            [r.to_core() for r in req.responses],
            req.query_config.to_core(),
            config,
        )
    except NoSuccessfulResponses as e:
        logger.info("aggregate rejected: %s", e)
        raise HTTPException(status_code=422, detail=str(e))

    return AggregateResponse(
        aggregation_id=result.aggregation_id,
        query_config=QueryConfigIn(**asdict(result.query_config)),
        technique_responses=[_response_out(r) for r in result.technique_responses],
        fused_answer=result.fused_answer,
        overall_confidence=result.overall_confidence,
        aggregated_chunks=[_chunk_out(c) for c in result.aggregated_chunks],
        metadata=asdict(result.metadata),
        insights=asdict(result.insights),
    )


@router.post("/hybrid/fuse", response_model=HybridFuseResponse)
def hybrid_fuse(req: HybridFuseRequest) -> HybridFuseResponse:
    try:
        weights = PairWeights(req.w_semantic, req.w_lexical)
        fused = fuse_pair(
            _ranked(req.semantic, "semantic"),
            _ranked(req.lexical, "lexical"),
            weights=weights,
            method=req.method,
            normalize=req.normalize,
            normalization=req.normalization,
        )
    except (InvalidWeightsError, ConfigurationError) as e:
        raise HTTPException(status_code=400, detail=str(e))

    return HybridFuseResponse(
        results=[
            HybridCandidateOut(
                id=f.chunk.id,
                document_id=f.chunk.document_id,
                content=f.chunk.content,
                hybrid_score=f.hybrid_score,
                semantic_score=f.semantic_score,
                lexical_score=f.lexical_score,
                semantic_rank=f.semantic_rank,
                lexical_rank=f.lexical_rank,
            )
            for f in fused[: req.final_limit]
        ]
    )


@router.post("/techniques/rank", response_model=RankResponse)
def rank(req: RankRequest) -> RankResponse:
    comparison = rank_techniques([r.to_core() for r in req.responses])
    return RankResponse(
        results=[
            RankingOut(
                technique=r.technique,
                rank=r.rank,
                total_score=r.total_score,
                performance_category=r.performance_category,
                is_top_performer=r.is_top_performer,
                recommendation=r.recommendation,
                metrics={k: asdict(m) for k, m in r.metrics.items()},
            )
            for r in comparison.results
        ],
        top_performer=comparison.top_performer.technique if comparison.top_performer else None,
        average_score=comparison.average_score,
        score_spread=comparison.score_spread,
        insights=comparison.insights,
    )
