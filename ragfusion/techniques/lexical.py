from __future__ import annotations

import logging
import time
from dataclasses import replace
from typing import List

from ragfusion.core.errors import ErrorCode
from ragfusion.core.types import QueryConfig, SourceChunk, TechniqueResponse
from ragfusion.retrieval.bm25_retriever import BM25Retriever
from ragfusion.techniques.base import completed_response, failed_response, mean_score

logger = logging.getLogger(__name__)


class LexicalTechnique:
    """BM25 keyword search packaged as a `lexical-search` technique response."""

    name = "lexical-search"

    def __init__(self, retriever: BM25Retriever, top_k: int = 20, normalize: bool = True):
        self.retriever = retriever
        self.top_k = top_k
        self.normalize = normalize

    def run(self, query_config: QueryConfig) -> TechniqueResponse:
        start = time.perf_counter()
        if not query_config.query.strip():
            return failed_response(self.name, ErrorCode.INVALID_QUERY, "query must not be empty", start)

        top_k = query_config.limit or self.top_k
        items = self.retriever.retrieve(query_config.query, top_k, document_ids=query_config.document_ids or None)
        # Zero-score hits share no term with the query; they sort last so ranks stay contiguous
        items = [it for it in items if it.score > 0]

        scores = [it.score for it in items]
        if self.normalize:
            # BM25 is unbounded; divide by the best hit so scores land in [0, 1]
            top = max(scores, default=0.0)
            if top > 0:
                scores = [s / top for s in scores]

        chunks: List[SourceChunk] = [
            replace(it.chunk, score=s, metadata={**it.chunk.metadata, "bm25_score": it.score, "rank": it.rank})
            for it, s in zip(items, scores)
        ]
        if query_config.threshold is not None:
            chunks = [c for c in chunks if c.score >= query_config.threshold]

        logger.debug("lexical-search returned %d chunks for %r", len(chunks), query_config.query)
        return completed_response(
            self.name,
            chunks,
            start,
            technique_name="Lexical Search (BM25)",
            confidence_score=mean_score(chunks),
            search_type="bm25",
            total_results=len(chunks),
        )
