"""
Top-level aggregation of several technique responses for one query.

The pipeline is a straight line with one stage per component:

    INIT -> DEDUPLICATING -> FUSING -> SCORING -> RANKING -> SUMMARIZING -> DONE

and ends in FAILED (raising NoSuccessfulResponses) when no response completed.
It owns no state between calls, performs no I/O and never blocks, so
independent queries can be aggregated concurrently without locking.
"""

from __future__ import annotations

import logging
import time
import uuid
from enum import Enum
from typing import Callable, Optional, Sequence

from ragfusion.aggregation.chunks import collect_chunks
from ragfusion.aggregation.confidence import apply_confidence
from ragfusion.aggregation.dedup import deduplicate
from ragfusion.aggregation.fusion import apply_fusion
from ragfusion.aggregation.insights import fuse_answer, generate_insights, overall_confidence
from ragfusion.aggregation.ranking import rank_and_filter
from ragfusion.core.config import AggregationConfig
from ragfusion.core.errors import NoSuccessfulResponses
from ragfusion.core.types import (
    AggregatedRAGResult,
    AggregationInsights,
    AggregationMetadata,
    QueryConfig,
    TechniqueResponse,
)

logger = logging.getLogger(__name__)


class AggregationState(str, Enum):
    INIT = "init"
    DEDUPLICATING = "deduplicating"
    FUSING = "fusing"
    SCORING = "scoring"
    RANKING = "ranking"
    SUMMARIZING = "summarizing"
    DONE = "done"
    FAILED = "failed"


StateListener = Callable[[AggregationState], None]


def new_aggregation_id() -> str:
    return f"agg_{uuid.uuid4().hex}"


def aggregate(
    responses: Sequence[TechniqueResponse],
    query_config: QueryConfig,
    config: Optional[AggregationConfig] = None,
    on_state: Optional[StateListener] = None,
) -> AggregatedRAGResult:
    """
    Fuse the responses of several retrieval techniques into one ranked result.

    Args:
        responses: One response per technique run, in input order. Unsuccessful
            ones are returned untouched but excluded from every computation.
        query_config: The query the techniques answered, echoed back in the result.
        config: Fusion strategy, confidence algorithm and filters (defaults when None).
        on_state: Optional callback invoked on every state transition.

    Raises:
        NoSuccessfulResponses: If no response has status "completed".
    """
    config = config or AggregationConfig()
    start = time.perf_counter()
    responses = list(responses)

    def enter(state: AggregationState) -> None:
        logger.debug("aggregation state -> %s", state.value)
        if on_state is not None:
            on_state(state)

    enter(AggregationState.INIT)
    successful = [r for r in responses if r.is_successful]
    if not successful:
        enter(AggregationState.FAILED)
        raise NoSuccessfulResponses(len(responses), [r.status for r in responses])

    all_chunks = collect_chunks(successful)

    enter(AggregationState.DEDUPLICATING)
    if config.enable_deduplication:
        unique = deduplicate(all_chunks, config.duplicate_threshold)
    else:
        unique = all_chunks

    enter(AggregationState.FUSING)
    fused = apply_fusion(
        unique,
        strategy=config.fusion_strategy,
        responses=successful,
        technique_weights=config.technique_weights,
    )

    enter(AggregationState.SCORING)
    scored = apply_confidence(fused, config.confidence_algorithm)

    enter(AggregationState.RANKING)
    ranked = rank_and_filter(scored, config.min_confidence, config.max_results)

    enter(AggregationState.SUMMARIZING)
    answer = fuse_answer(ranked, successful)
    confidence = overall_confidence(ranked, responses)
    insights = generate_insights(ranked, responses) if config.enable_insights else AggregationInsights()

    elapsed_ms = (time.perf_counter() - start) * 1000.0
    result = AggregatedRAGResult(
        aggregation_id=new_aggregation_id(),
        query_config=query_config,
        technique_responses=responses,
        aggregated_chunks=ranked,
        fused_answer=answer,
        overall_confidence=confidence,
        metadata=AggregationMetadata(
            fusion_strategy=config.fusion_strategy,
            confidence_algorithm=config.confidence_algorithm,
            total_chunks_before_dedup=len(all_chunks),
            total_chunks_after_dedup=len(unique),
            duplicates_removed=len(all_chunks) - len(unique),
            techniques_used=len(responses),
            successful_techniques=len(successful),
            failed_techniques=len(responses) - len(successful),
            aggregation_time_ms=elapsed_ms,
        ),
        insights=insights,
    )
    enter(AggregationState.DONE)

    logger.info(
        "aggregated %d/%d techniques: %d chunks -> %d unique -> %d ranked (%s, %s) in %.2fms",
        len(successful),
        len(responses),
        len(all_chunks),
        len(unique),
        len(ranked),
        config.fusion_strategy,
        config.confidence_algorithm,
        elapsed_ms,
    )
    return result
