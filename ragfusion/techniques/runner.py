"""
Concurrent execution of retrieval techniques for one query.

Techniques are registered by tag. A registered technique is either an object
with a ``run(query_config)`` method or a bare callable; either may be sync or
async. Sync techniques are moved to a worker thread so a per-technique timeout
still applies.

Execution never raises for a technique failure: exceptions become ``failed``
responses, timeouts become ``timeout`` responses and unknown tags become
``failed`` responses with ``INVALID_PARAMETERS``.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

from ragfusion.aggregation.orchestrator import aggregate
from ragfusion.core.config import EXECUTION_MODES, AggregationConfig, settings
from ragfusion.core.errors import ConfigurationError, ErrorCode
from ragfusion.core.types import (
    CANCELLED,
    COMPLETED,
    FAILED,
    TIMEOUT,
    AggregatedRAGResult,
    QueryConfig,
    TechniqueResponse,
)
from ragfusion.techniques.base import Technique, failed_response

logger = logging.getLogger(__name__)

# technique -> techniques that must finish first (when both are requested)
DEPENDENCY_GRAPH: Dict[str, List[str]] = {
    "reranking": ["hybrid-search", "semantic-search", "lexical-search"],
    "contextual-retrieval": ["query-preprocessing"],
    "agentic-rag": ["hybrid-search"],
    "two-stage-retrieval": ["lexical-search", "semantic-search"],
}


@dataclass(frozen=True)
class BatchSummary:
    total_techniques: int
    successful: int
    failed: int
    cancelled: int
    timeout: int

    @classmethod
    def of(cls, responses: Sequence[TechniqueResponse]) -> "BatchSummary":
        statuses = [r.status for r in responses]
        return cls(
            total_techniques=len(responses),
            successful=sum(1 for r in responses if r.is_successful),
            failed=statuses.count(FAILED),
            cancelled=statuses.count(CANCELLED),
            timeout=statuses.count(TIMEOUT),
        )


@dataclass(frozen=True)
class BatchResult:
    request_id: str
    responses: List[TechniqueResponse]
    summary: BatchSummary
    execution_mode: str
    execution_time_ms: float
    timestamp: str
    aggregated_result: Optional[AggregatedRAGResult] = None


def execution_plan(
    techniques: Sequence[str],
    graph: Mapping[str, Sequence[str]] = DEPENDENCY_GRAPH,
) -> List[List[str]]:
    """
    Group techniques into stages; every stage depends only on earlier stages.

    Only dependencies that are themselves requested count. Within a stage the
    request order is kept.

    Raises:
        ConfigurationError: If the requested techniques form a dependency cycle.
    """
    requested = list(dict.fromkeys(techniques))
    in_degree = {t: 0 for t in requested}
    dependents: Dict[str, List[str]] = {t: [] for t in requested}
    for tech in requested:
        for dep in graph.get(tech, ()):
            if dep in in_degree:
                dependents[dep].append(tech)
                in_degree[tech] += 1

    plan: List[List[str]] = []
    stage = [t for t in requested if in_degree[t] == 0]
    while stage:
        plan.append(stage)
        ready = set()
        for tech in stage:
            for dependent in dependents[tech]:
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    ready.add(dependent)
        stage = [t for t in requested if t in ready]

    planned = {t for s in plan for t in s}
    missing = [t for t in requested if t not in planned]
    if missing:
        raise ConfigurationError("techniques", missing, "circular dependency between techniques")
    return plan


class TechniqueRunner:
    def __init__(
        self,
        techniques: Mapping[str, Union[Technique, Callable[[QueryConfig], Any]]],
        timeout_ms: Optional[int] = None,
        mode: Optional[str] = None,
    ):
        self.techniques = dict(techniques)
        self.timeout_ms = timeout_ms if timeout_ms is not None else settings.technique_timeout_ms
        self.mode = mode or settings.execution_mode
        if self.mode not in EXECUTION_MODES:
            raise ConfigurationError("execution_mode", self.mode, f"expected one of {EXECUTION_MODES}")

    def _callable(self, tag: str) -> Optional[Callable[[QueryConfig], Any]]:
        technique = self.techniques.get(tag)
        if technique is None:
            return None
        return getattr(technique, "run", technique)

    async def run_one(self, tag: str, query_config: QueryConfig) -> TechniqueResponse:
        fn = self._callable(tag)
        if fn is None:
            return failed_response(tag, ErrorCode.INVALID_PARAMETERS, f"Unknown technique: {tag}")

        timeout_ms = query_config.timeout or self.timeout_ms
        start = time.perf_counter()
        try:
            if inspect.iscoroutinefunction(fn):
                pending = fn(query_config)
            else:
                pending = asyncio.to_thread(fn, query_config)
            response = await asyncio.wait_for(pending, timeout=timeout_ms / 1000.0)
        except asyncio.TimeoutError:
            logger.warning("technique %s timed out after %dms", tag, timeout_ms)
            return failed_response(
                tag, ErrorCode.TIMEOUT, f"{tag} exceeded {timeout_ms}ms", start, status=TIMEOUT, timeout_ms=timeout_ms
            )
        except Exception as e:
            logger.exception("technique %s failed", tag)
            return failed_response(tag, ErrorCode.SEARCH_FAILED, str(e) or type(e).__name__, start)

        if response.technique != tag:
            response = replace(response, technique=tag)
        if "execution_time_ms" not in response.metadata:
            took = (time.perf_counter() - start) * 1000.0
            response = replace(response, metadata={**response.metadata, "execution_time_ms": took})
        return response

    async def _parallel(self, tags: Sequence[str], query_config: QueryConfig) -> List[TechniqueResponse]:
        return list(await asyncio.gather(*(self.run_one(t, query_config) for t in tags)))

    async def _sequential(self, tags: Sequence[str], query_config: QueryConfig) -> List[TechniqueResponse]:
        responses = []
        for tag in tags:
            responses.append(await self.run_one(tag, query_config))
        return responses

    async def _staged(self, tags: Sequence[str], query_config: QueryConfig) -> List[TechniqueResponse]:
        done: Dict[str, TechniqueResponse] = {}
        for stage in execution_plan(tags):
            logger.debug("running stage %s", ", ".join(stage))
            for tag, response in zip(stage, await self._parallel(stage, query_config)):
                done[tag] = response
                if response.status != COMPLETED:
                    logger.warning("technique %s ended %s; dependents still run", tag, response.status)
        return [done[t] for t in tags]

    async def run(
        self,
        tags: Sequence[str],
        query_config: QueryConfig,
        mode: Optional[str] = None,
    ) -> List[TechniqueResponse]:
        """Run the requested techniques; responses come back in request order."""
        mode = mode or self.mode
        if mode == "parallel":
            return await self._parallel(tags, query_config)
        if mode == "sequential":
            return await self._sequential(tags, query_config)
        if mode == "dependency-resolved":
            return await self._staged(tags, query_config)
        raise ConfigurationError("execution_mode", mode, f"expected one of {EXECUTION_MODES}")

    async def run_batch(
        self,
        tags: Sequence[str],
        query_config: QueryConfig,
        mode: Optional[str] = None,
        aggregation: Optional[AggregationConfig] = None,
        aggregate_results: bool = True,
    ) -> BatchResult:
        request_id = str(uuid.uuid4())
        mode = mode or self.mode
        start = time.perf_counter()
        logger.info("[%s] running %d techniques (%s)", request_id, len(tags), mode)

        responses = await self.run(tags, query_config, mode)
        summary = BatchSummary.of(responses)

        aggregated: Optional[AggregatedRAGResult] = None
        if aggregate_results:
            if summary.successful:
                aggregated = aggregate(responses, query_config, aggregation or AggregationConfig.from_settings())
            else:
                logger.warning("[%s] no technique completed; skipping aggregation", request_id)

        return BatchResult(
            request_id=request_id,
            responses=responses,
            summary=summary,
            execution_mode=mode,
            execution_time_ms=(time.perf_counter() - start) * 1000.0,
            timestamp=datetime.now(timezone.utc).isoformat(),
            aggregated_result=aggregated,
        )
