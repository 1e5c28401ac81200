from __future__ import annotations

import logging
import time

from ragfusion.core.config import Settings, settings
from ragfusion.core.errors import ErrorCode
from ragfusion.core.types import QueryConfig, TechniqueResponse
from ragfusion.retrieval.fusion import PairWeights, candidates_to_chunks
from ragfusion.retrieval.hybrid import HybridRetriever, LexicalRetriever, SemanticRetriever
from ragfusion.techniques.base import completed_response, failed_response, mean_score

logger = logging.getLogger(__name__)


class HybridTechnique:
    """Semantic + lexical retrieval fused into one `hybrid-search` response."""

    name = "hybrid-search"

    def __init__(
        self,
        retriever: HybridRetriever,
        semantic_top_k: int = 50,
        lexical_top_k: int = 50,
    ):
        self.retriever = retriever
        self.semantic_top_k = semantic_top_k
        self.lexical_top_k = lexical_top_k

    @classmethod
    def from_settings(
        cls,
        semantic: SemanticRetriever,
        lexical: LexicalRetriever,
        s: Settings = settings,
        lexical_threshold: float = 0.1,
    ) -> "HybridTechnique":
        # PairWeights raises InvalidWeightsError before any retrieval runs
        retriever = HybridRetriever(
            semantic,
            lexical,
            weights=PairWeights(s.w_semantic, s.w_lexical),
            method=s.hybrid_scoring_method,
            normalize=s.normalize_scores,
            normalization=s.score_normalization_method,
            lexical_threshold=lexical_threshold,
            final_limit=s.hybrid_final_limit,
        )
        return cls(retriever)

    def run(self, query_config: QueryConfig) -> TechniqueResponse:
        start = time.perf_counter()
        if not query_config.query.strip():
            return failed_response(self.name, ErrorCode.INVALID_QUERY, "query must not be empty", start)

        candidates, n_semantic, n_lexical = self.retriever.retrieve_with_counts(
            query_config.query,
            semantic_top_k=self.semantic_top_k,
            lexical_top_k=self.lexical_top_k,
            document_ids=query_config.document_ids or None,
        )
        if query_config.limit:
            candidates = candidates[: query_config.limit]
        chunks = candidates_to_chunks(candidates)

        r = self.retriever
        logger.debug(
            "hybrid-search fused %d semantic + %d lexical -> %d (%s)",
            n_semantic, n_lexical, len(chunks), r.method,
        )
        return completed_response(
            self.name,
            chunks,
            start,
            technique_name="Hybrid Search",
            confidence_score=mean_score(chunks),
            semantic_weight=r.weights.w_semantic,
            lexical_weight=r.weights.w_lexical,
            scoring_method=r.method,
            normalization=r.normalization if r.normalize else None,
            semantic_results=n_semantic,
            lexical_results=n_lexical,
            total_results=len(chunks),
        )
