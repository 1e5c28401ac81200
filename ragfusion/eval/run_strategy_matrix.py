import json
from itertools import product
from pathlib import Path
from typing import Any, Dict, List, Set

import pandas as pd

from ragfusion.aggregation.orchestrator import aggregate
from ragfusion.api.schemas import QueryConfigIn, TechniqueResponseIn
from ragfusion.core.config import CONFIDENCE_ALGORITHMS, FUSION_STRATEGIES, AggregationConfig
from ragfusion.core.types import AggregatedSourceChunk

GOLDEN_PATH = Path("data/golden_responses.jsonl")
OUT_CSV = Path("data/strategy_matrix.csv")
TOP_K = 3


def load_golden(path: Path = GOLDEN_PATH) -> List[Dict[str, Any]]:
    if not path.exists():
        raise FileNotFoundError(f"{path} not found. Create it first.")
    rows = []
    with path.open("r", encoding="utf-8") as f:
        for line in f:
            if line.strip():
                rows.append(json.loads(line))
    return rows


def _ids(chunk: AggregatedSourceChunk) -> Set[str]:
    # A merged record answers for every chunk it absorbed
    ids = {chunk.id}
    if chunk.duplicate_info:
        ids.update(chunk.duplicate_info.merged_ids)
    return ids


def score_scenario(scenario: Dict[str, Any], fusion_strategy: str, confidence_algorithm: str) -> Dict[str, Any]:
    responses = [TechniqueResponseIn.model_validate(r).to_core() for r in scenario["responses"]]
    query_config = QueryConfigIn.model_validate(scenario["query_config"]).to_core()
    config = AggregationConfig(fusion_strategy=fusion_strategy, confidence_algorithm=confidence_algorithm)

    result = aggregate(responses, query_config, config)
    relevant = set(scenario.get("relevant_ids", []))
    chunks = result.aggregated_chunks

    top = chunks[:TOP_K]
    hits_at_k = sum(1 for c in top if _ids(c) & relevant)
    found = set().union(*(_ids(c) for c in chunks)) if chunks else set()

    return {
        "scenario": scenario.get("name", ""),
        "fusion_strategy": fusion_strategy,
        "confidence_algorithm": confidence_algorithm,
        "n_chunks": len(chunks),
        "duplicates_removed": result.metadata.duplicates_removed,
        "top_chunk": chunks[0].id if chunks else None,
        "hit_at_1": bool(chunks and _ids(chunks[0]) & relevant),
        f"precision_at_{TOP_K}": hits_at_k / len(top) if top else 0.0,
        "recall": len(found & relevant) / len(relevant) if relevant else 0.0,
        "overall_confidence": result.overall_confidence,
        "best_technique": result.insights.best_performing_technique,
    }


def run_matrix(rows: List[Dict[str, Any]]) -> pd.DataFrame:
    records = [
        score_scenario(scenario, strategy, algorithm)
        for scenario in rows
        for strategy, algorithm in product(FUSION_STRATEGIES, CONFIDENCE_ALGORITHMS)
    ]
    return pd.DataFrame.from_records(records)


def main(golden_path: Path = GOLDEN_PATH, out_csv: Path = OUT_CSV) -> pd.DataFrame:
    rows = load_golden(golden_path)
    df = run_matrix(rows)

    summary = (
        df.groupby(["fusion_strategy", "confidence_algorithm"])[["hit_at_1", f"precision_at_{TOP_K}", "recall"]]
        .mean()
        .sort_values(["hit_at_1", f"precision_at_{TOP_K}"], ascending=False)
    )
    print("\n=== STRATEGY MATRIX ===")
    print(summary)

    out_csv.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(out_csv, index=False)
    print("\nSaved:", out_csv)
    return df


if __name__ == "__main__":
    main()
