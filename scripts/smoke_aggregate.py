import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from ragfusion.aggregation.orchestrator import aggregate
from ragfusion.aggregation.performance import rank_techniques
from ragfusion.api.schemas import QueryConfigIn, TechniqueResponseIn
from ragfusion.core.config import AggregationConfig, settings
from ragfusion.core.logging import configure_logging
from ragfusion.eval.run_strategy_matrix import load_golden

configure_logging(settings.log_level)

scenario = load_golden(Path(__file__).parent.parent / "data" / "golden_responses.jsonl")[0]
responses = [TechniqueResponseIn.model_validate(r).to_core() for r in scenario["responses"]]
query_config = QueryConfigIn.model_validate(scenario["query_config"]).to_core()

result = aggregate(responses, query_config, AggregationConfig.from_settings())

print("QUERY:", query_config.query)
print("STRATEGY:", result.metadata.fusion_strategy, "/", result.metadata.confidence_algorithm)
print(
    "CHUNKS:", result.metadata.total_chunks_before_dedup,
    "-> unique", result.metadata.total_chunks_after_dedup,
    "-> ranked", len(result.aggregated_chunks),
)
for i, c in enumerate(result.aggregated_chunks, start=1):
    print(
        i, c.id, "score=", round(c.aggregated_score, 4),
        "conf=", round(c.confidence_level, 3),
        "| by:", ",".join(c.found_by_techniques),
        "|", c.content[:70],
    )

print("\nOVERALL CONFIDENCE:", round(result.overall_confidence, 3))
print("INSIGHTS:", result.insights)
print("\nFUSED ANSWER:\n" + result.fused_answer)

print("\nTECHNIQUE RANKING:")
comparison = rank_techniques(responses)
for r in comparison.results:
    print(r.rank, r.technique, r.total_score, r.performance_category)
for line in comparison.insights:
    print(" -", line)
