import asyncio

import pytest

from ragfusion.core.errors import ConfigurationError, ErrorCode
from ragfusion.core.types import FAILED, TIMEOUT, QueryConfig, SourceChunk, TechniqueResponse
from ragfusion.techniques.runner import TechniqueRunner, execution_plan

QUERY = QueryConfig(query="what law governs the agreement?")


def make_technique(name, score=0.8, delay=0.0, log=None):
    async def run(query_config):
        if log is not None:
            log.append(("start", name))
        await asyncio.sleep(delay)
        if log is not None:
            log.append(("end", name))
        return TechniqueResponse(
            technique=name,
            source_chunks=[SourceChunk(f"{name}-1", "d1", f"{name} passage about {query_config.query}", 0, score)],
            metadata={"execution_time_ms": delay * 1000},
            confidence_score=score,
        )

    return run


def boom(query_config):
    raise RuntimeError("index unavailable")


def test_parallel_keeps_request_order():
    runner = TechniqueRunner({
        "semantic-search": make_technique("semantic-search", delay=0.05),
        "lexical-search": make_technique("lexical-search", delay=0.0),
    }, mode="parallel")

    responses = asyncio.run(runner.run(["semantic-search", "lexical-search"], QUERY))

    assert [r.technique for r in responses] == ["semantic-search", "lexical-search"]
    assert all(r.is_successful for r in responses)


def test_sequential_runs_one_at_a_time():
    log = []
    runner = TechniqueRunner({
        "a": make_technique("a", delay=0.01, log=log),
        "b": make_technique("b", delay=0.0, log=log),
    })

    asyncio.run(runner.run(["a", "b"], QUERY, mode="sequential"))

    assert log == [("start", "a"), ("end", "a"), ("start", "b"), ("end", "b")]


def test_unknown_technique_becomes_failed_response():
    runner = TechniqueRunner({})

    (response,) = asyncio.run(runner.run(["graph-rag"], QUERY))

    assert response.status == FAILED
    assert response.error.code == ErrorCode.INVALID_PARAMETERS
    assert response.error.status_code == 400


def test_timeout_becomes_timeout_response():
    runner = TechniqueRunner({"slow": make_technique("slow", delay=1.0)}, timeout_ms=20)

    (response,) = asyncio.run(runner.run(["slow"], QUERY))

    assert response.status == TIMEOUT
    assert response.error.code == ErrorCode.TIMEOUT
    assert response.error.retryable
    assert response.source_chunks == []


def test_query_timeout_overrides_runner_default():
    runner = TechniqueRunner({"slow": make_technique("slow", delay=1.0)}, timeout_ms=60000)
    query = QueryConfig(query="q", timeout=20)

    (response,) = asyncio.run(runner.run(["slow"], query))

    assert response.status == TIMEOUT


def test_exception_becomes_failed_response_and_batch_continues():
    runner = TechniqueRunner({"broken": boom, "ok": make_technique("ok")})

    broken, ok = asyncio.run(runner.run(["broken", "ok"], QUERY))

    assert broken.status == FAILED
    assert broken.error.code == ErrorCode.SEARCH_FAILED
    assert "index unavailable" in broken.error.message
    assert ok.is_successful


def test_sync_technique_object_runs_in_thread():
    class Static:
        name = "static"

        def run(self, query_config):
            return TechniqueResponse(technique="something-else", metadata={"execution_time_ms": 1})

    (response,) = asyncio.run(TechniqueRunner({"static": Static()}).run(["static"], QUERY))

    assert response.is_successful
    assert response.technique == "static"


def test_execution_plan_stages():
    plan = execution_plan(["reranking", "lexical-search", "semantic-search", "query-preprocessing"])
    assert plan == [["lexical-search", "semantic-search", "query-preprocessing"], ["reranking"]]


def test_execution_plan_ignores_unrequested_dependencies():
    assert execution_plan(["reranking"]) == [["reranking"]]


def test_execution_plan_rejects_cycles():
    with pytest.raises(ConfigurationError):
        execution_plan(["a", "b"], graph={"a": ["b"], "b": ["a"]})


def test_dependency_resolved_waits_for_dependencies():
    log = []
    runner = TechniqueRunner({
        "reranking": make_technique("reranking", log=log),
        "lexical-search": make_technique("lexical-search", delay=0.02, log=log),
    })

    responses = asyncio.run(runner.run(["reranking", "lexical-search"], QUERY, mode="dependency-resolved"))

    assert [r.technique for r in responses] == ["reranking", "lexical-search"]
    assert log.index(("end", "lexical-search")) < log.index(("start", "reranking"))


def test_invalid_mode_rejected():
    with pytest.raises(ConfigurationError):
        TechniqueRunner({}, mode="round-robin")


def test_run_batch_summarizes_and_aggregates():
    runner = TechniqueRunner({
        "semantic-search": make_technique("semantic-search", score=0.9),
        "lexical-search": make_technique("lexical-search", score=0.7),
        "slow": make_technique("slow", delay=1.0),
        "broken": boom,
    }, timeout_ms=50, mode="parallel")

    batch = asyncio.run(runner.run_batch(["semantic-search", "lexical-search", "slow", "broken"], QUERY))

    assert batch.summary.total_techniques == 4
    assert batch.summary.successful == 2
    assert batch.summary.failed == 1
    assert batch.summary.timeout == 1
    assert batch.summary.cancelled == 0
    assert batch.execution_mode == "parallel"
    assert batch.request_id
    assert batch.aggregated_result is not None
    assert batch.aggregated_result.metadata.successful_techniques == 2


def test_run_batch_without_success_skips_aggregation():
    batch = asyncio.run(TechniqueRunner({"broken": boom}).run_batch(["broken"], QUERY))
    assert batch.summary.successful == 0
    assert batch.aggregated_result is None
