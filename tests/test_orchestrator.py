from dataclasses import replace

import pytest

from ragfusion.aggregation.orchestrator import AggregationState, aggregate
from ragfusion.core.config import CONFIDENCE_ALGORITHMS, FUSION_STRATEGIES, AggregationConfig
from ragfusion.core.errors import ConfigurationError, ErrorCode, NoSuccessfulResponses
from ragfusion.core.types import (
    FAILED,
    TIMEOUT,
    QueryConfig,
    SourceChunk,
    TechniqueError,
    TechniqueResponse,
)

QUERY = QueryConfig(query="what law governs the agreement?", document_ids=["d1", "d2"])


def response(technique, *chunks, status="completed", error=None, answer=""):
    return TechniqueResponse(
        technique=technique,
        status=status,
        answer=answer,
        source_chunks=list(chunks),
        metadata={"execution_time_ms": 100},
        confidence_score=0.8,
        error=error,
    )


def failed(technique, status=FAILED):
    return response(technique, status=status, error=TechniqueError.from_code(ErrorCode.SEARCH_FAILED, "boom"))


def test_no_responses_raises():
    with pytest.raises(NoSuccessfulResponses):
        aggregate([], QUERY)


def test_all_failed_raises_with_statuses():
    with pytest.raises(NoSuccessfulResponses) as exc:
        aggregate([failed("semantic-search"), failed("agentic-rag", TIMEOUT)], QUERY)
    assert exc.value.total_responses == 2
    assert exc.value.statuses == ["failed", "timeout"]


def test_merge_then_fuse():
    responses = [
        response("semantic-search", SourceChunk("c1", "d1", "new york law governs", 4, 0.9)),
        response("lexical-search", SourceChunk("c2", "d1", "the governing law is new york", 5, 0.8)),
    ]
    config = AggregationConfig(fusion_strategy="weighted_sum", confidence_algorithm="score_based")

    result = aggregate(responses, QUERY, config)

    (chunk,) = result.aggregated_chunks
    assert chunk.id == "c1"
    assert chunk.found_by_techniques == ["semantic-search", "lexical-search"]
    assert chunk.aggregated_score == pytest.approx(0.85)
    assert chunk.duplicate_info.merged_ids == ["c2"]
    assert result.metadata.total_chunks_before_dedup == 2
    assert result.metadata.total_chunks_after_dedup == 1
    assert result.metadata.duplicates_removed == 1


def test_rrf_two_first_places_end_to_end():
    shared = SourceChunk("c1", "d1", "same passage", 0, 0.7)
    result = aggregate([response("a", shared), response("b", shared)], QUERY)
    (chunk,) = result.aggregated_chunks
    assert chunk.aggregated_score == pytest.approx(2 / 61)


def test_single_chunk_vote_based():
    result = aggregate(
        [response("semantic-search", SourceChunk("c1", "d1", "only", 0, 0.6))],
        QUERY,
        AggregationConfig(fusion_strategy="vote_based"),
    )
    assert result.aggregated_chunks[0].aggregated_score == pytest.approx((1.0 + 0.6) / 2)


def test_failed_responses_are_kept_but_not_scored():
    bad = failed("reranking")
    good = response("semantic-search", SourceChunk("c1", "d1", "text", 0, 0.9))

    result = aggregate([bad, good], QUERY)

    assert result.technique_responses == [bad, good]
    assert result.technique_responses[0] is bad
    assert all("reranking" not in c.found_by_techniques for c in result.aggregated_chunks)
    assert result.metadata.techniques_used == 2
    assert result.metadata.successful_techniques == 1
    assert result.metadata.failed_techniques == 1


def test_states_are_visited_in_order():
    seen = []
    aggregate(
        [response("semantic-search", SourceChunk("c1", "d1", "text", 0, 0.9))],
        QUERY,
        on_state=seen.append,
    )
    assert seen == [
        AggregationState.INIT,
        AggregationState.DEDUPLICATING,
        AggregationState.FUSING,
        AggregationState.SCORING,
        AggregationState.RANKING,
        AggregationState.SUMMARIZING,
        AggregationState.DONE,
    ]


def test_failed_state_on_no_success():
    seen = []
    with pytest.raises(NoSuccessfulResponses):
        aggregate([failed("a")], QUERY, on_state=seen.append)
    assert seen == [AggregationState.INIT, AggregationState.FAILED]


def _mixed_responses():
    return [
        response(
            "semantic-search",
            SourceChunk("c1", "d1", "new york law governs this agreement", 4, 0.91),
            SourceChunk("c3", "d2", "notices must be in writing", 10, 0.55),
            SourceChunk("c4", "d2", "termination on thirty days notice", 20, 0.42),
            answer="New York law.",
        ),
        response(
            "lexical-search",
            SourceChunk("c2", "d1", "governed by the laws of new york", 5, 0.77),
            SourceChunk("c5", "d3", "jurisdiction of new york courts", 1, 0.66),
            SourceChunk("c4", "d2", "termination on thirty days notice", 20, 0.35),
        ),
        failed("agentic-rag", TIMEOUT),
    ]


@pytest.mark.parametrize("strategy", FUSION_STRATEGIES)
@pytest.mark.parametrize("algorithm", CONFIDENCE_ALGORITHMS)
def test_deterministic_and_well_formed(strategy, algorithm):
    config = AggregationConfig(fusion_strategy=strategy, confidence_algorithm=algorithm, min_confidence=0.0)

    first = aggregate(_mixed_responses(), QUERY, config)
    second = aggregate(_mixed_responses(), QUERY, config)

    assert first.aggregation_id != second.aggregation_id
    assert first.aggregation_id.startswith("agg_")
    assert first.aggregated_chunks == second.aggregated_chunks
    assert first.fused_answer == second.fused_answer
    assert first.overall_confidence == second.overall_confidence
    assert first.insights == second.insights
    assert replace(first.metadata, aggregation_time_ms=0) == replace(second.metadata, aggregation_time_ms=0)

    scores = [c.aggregated_score for c in first.aggregated_chunks]
    assert scores == sorted(scores, reverse=True)
    for c in first.aggregated_chunks:
        assert 0.0 <= c.confidence_level <= 1.0

    chunks = first.aggregated_chunks
    for i in range(len(chunks)):
        for j in range(i + 1, len(chunks)):
            a, b = chunks[i], chunks[j]
            assert not (a.document_id == b.document_id and abs(a.chunk_index - b.chunk_index) <= 1)


def test_dedup_can_be_disabled():
    config = AggregationConfig(enable_deduplication=False, min_confidence=0.0)
    result = aggregate(_mixed_responses(), QUERY, config)
    assert result.metadata.total_chunks_after_dedup == 6
    assert result.metadata.duplicates_removed == 0


def test_max_results_and_insights_toggle():
    config = AggregationConfig(max_results=2, enable_insights=False, min_confidence=0.0)
    result = aggregate(_mixed_responses(), QUERY, config)
    assert len(result.aggregated_chunks) == 2
    assert result.insights.best_performing_technique == "unknown"


def test_insights_and_answer():
    result = aggregate(_mixed_responses(), QUERY, AggregationConfig(min_confidence=0.0))
    assert result.insights.best_performing_technique == "semantic-search"
    assert result.fused_answer.startswith("New York law.\n\nSupporting evidence:\n")
    assert 0.0 <= result.overall_confidence <= 1.0


def test_invalid_config_rejected():
    with pytest.raises(ConfigurationError):
        AggregationConfig(fusion_strategy="borda")
    with pytest.raises(ValueError):
        AggregationConfig(confidence_algorithm="bayesian")
    with pytest.raises(ConfigurationError):
        AggregationConfig(max_results=0)
