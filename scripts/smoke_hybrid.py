import asyncio
import sys
from pathlib import Path
from typing import List, Optional

sys.path.insert(0, str(Path(__file__).parent.parent))

from ragfusion.core.config import settings
from ragfusion.core.logging import configure_logging
from ragfusion.core.types import QueryConfig, RetrievedItem, SourceChunk
from ragfusion.indexing.bm25_index import BM25Index, simple_tokenize
from ragfusion.retrieval.bm25_retriever import BM25Retriever
from ragfusion.techniques.hybrid import HybridTechnique
from ragfusion.techniques.lexical import LexicalTechnique
from ragfusion.techniques.runner import TechniqueRunner

configure_logging(settings.log_level)

CORPUS = [
    SourceChunk("c1", "doc-msa", "This Agreement shall be governed by the laws of the State of New York.", 41),
    SourceChunk("c2", "doc-msa", "Either party may terminate this Agreement upon thirty days written notice.", 30),
    SourceChunk("c3", "doc-nda", "Disputes are subject to the exclusive jurisdiction of courts in New York County.", 12),
    SourceChunk("c4", "doc-dpa", "Processor shall delete Customer Personal Data within thirty days of termination.", 7),
    SourceChunk("c5", "doc-dpa", "Backups are overwritten on a rolling ninety day cycle.", 11),
]


class TermOverlapRetriever:
    """Stand-in for an embedding retriever: fraction of query terms present in the chunk."""

    def __init__(self, chunks: List[SourceChunk]):
        self.chunks = chunks

    def retrieve(self, query: str, top_k: int, document_ids: Optional[List[str]] = None) -> List[RetrievedItem]:
        q = set(simple_tokenize(query))
        scored = []
        for c in self.chunks:
            if document_ids and c.document_id not in document_ids:
                continue
            overlap = len(q & set(simple_tokenize(c.content))) / len(q) if q else 0.0
            if overlap > 0:
                scored.append((c, overlap))
        scored.sort(key=lambda p: p[1], reverse=True)
        return [
            RetrievedItem(chunk=c, source="semantic", rank=i, score=s)
            for i, (c, s) in enumerate(scored[:top_k], start=1)
        ]


bm25 = BM25Retriever(BM25Index.build(CORPUS))
semantic = TermOverlapRetriever(CORPUS)

runner = TechniqueRunner({
    "lexical-search": LexicalTechnique(bm25),
    "hybrid-search": HybridTechnique.from_settings(semantic, bm25),
})

query = QueryConfig(query="What law governs the agreement in New York?")
batch = asyncio.run(runner.run_batch(["lexical-search", "hybrid-search"], query))

print("REQUEST:", batch.request_id, batch.execution_mode, round(batch.execution_time_ms, 2), "ms")
print("SUMMARY:", batch.summary)
for response in batch.responses:
    print(f"\n{response.technique} ({response.status}):")
    for i, c in enumerate(response.source_chunks, start=1):
        print(" ", i, c.id, "score=", round(c.score, 4), "|", c.content[:70])

if batch.aggregated_result:
    print("\nAGGREGATED:")
    for i, c in enumerate(batch.aggregated_result.aggregated_chunks, start=1):
        print(" ", i, c.id, round(c.aggregated_score, 4), ",".join(c.found_by_techniques))
