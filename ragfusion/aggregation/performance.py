"""
Multi-criteria ranking of technique runs.

Each completed response is scored on four normalized metrics, weighted into a
0-100 total:

    confidence        (0.35)  the technique's own confidence score
    execution speed   (0.25)  min-max over the batch, inverted (faster is better)
    source quality    (0.25)  mean score of the returned chunks
    cost efficiency   (0.15)  estimated token cost, min-max inverted

Speed and cost normalize to 1.0 when every run has the same value.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Sequence

from ragfusion.core.types import TechniqueResponse

DEFAULT_TOKENS_USED = 1000
COST_PER_TOKEN = 0.000002


@dataclass(frozen=True)
class RankingWeights:
    confidence: float = 0.35
    execution_time: float = 0.25
    source_quality: float = 0.25
    cost_efficiency: float = 0.15


@dataclass(frozen=True)
class MetricScore:
    value: float
    normalized: float
    weighted: float
    label: str
    explanation: str


@dataclass(frozen=True)
class RankingResult:
    technique: str
    rank: int
    total_score: int            # 0-100
    metrics: Dict[str, MetricScore]
    is_top_performer: bool
    performance_category: str   # excellent | good | fair | poor
    recommendation: str


@dataclass(frozen=True)
class RankingComparison:
    results: List[RankingResult] = field(default_factory=list)
    top_performer: Optional[RankingResult] = None
    average_score: float = 0.0
    score_spread: float = 0.0
    insights: List[str] = field(default_factory=list)


def _round_half_up(x: float, digits: int = 0) -> float:
    scale = 10 ** digits
    return math.floor(x * scale + 0.5) / scale


def _tokens_used(response: TechniqueResponse) -> float:
    usage = response.metadata.get("resource_usage") or {}
    tokens = usage.get("tokens_used") if isinstance(usage, dict) else None
    return tokens or DEFAULT_TOKENS_USED


def _inverted_min_max(value: float, values: Sequence[float]) -> float:
    lo, hi = min(values), max(values)
    if hi == lo:
        return 1.0
    return 1.0 - (value - lo) / (hi - lo)


def _score_confidence(response: TechniqueResponse, weight: float) -> MetricScore:
    value = response.confidence_score or 0.0
    if value >= 0.8:
        explanation = "Excellent confidence in results"
    elif value >= 0.6:
        explanation = "Good confidence level"
    elif value >= 0.4:
        explanation = "Moderate confidence"
    else:
        explanation = "Low confidence in results"
    return MetricScore(_round_half_up(value * 100), value, value * weight, "Confidence", explanation)


def _score_execution_time(response: TechniqueResponse, times: Sequence[float], weight: float) -> MetricScore:
    value = response.execution_time_ms
    normalized = _inverted_min_max(value, times)
    if value < 500:
        explanation = "Very fast execution"
    elif value < 1500:
        explanation = "Fast execution"
    elif value < 3000:
        explanation = "Moderate speed"
    else:
        explanation = "Slower execution time"
    return MetricScore(value, normalized, normalized * weight, "Execution Speed", explanation)


def _score_source_quality(response: TechniqueResponse, weight: float) -> MetricScore:
    chunks = response.source_chunks
    if not chunks:
        return MetricScore(0, 0.0, 0.0, "Source Quality", "No sources retrieved")

    value = sum(c.score for c in chunks) / len(chunks)
    if value >= 0.85:
        explanation = "Highly relevant sources"
    elif value >= 0.7:
        explanation = "Good source relevance"
    elif value >= 0.5:
        explanation = "Moderate relevance"
    else:
        explanation = "Low source relevance"
    return MetricScore(_round_half_up(value * 100), value, value * weight, "Source Quality", explanation)


def _score_cost(response: TechniqueResponse, costs: Sequence[float], weight: float) -> MetricScore:
    cost = _tokens_used(response) * COST_PER_TOKEN
    normalized = _inverted_min_max(cost, costs)
    if cost < 0.001:
        explanation = "Very cost-efficient"
    elif cost < 0.005:
        explanation = "Cost-efficient"
    elif cost < 0.01:
        explanation = "Moderate cost"
    else:
        explanation = "Higher cost"
    return MetricScore(_round_half_up(cost, 4), normalized, normalized * weight, "Cost Efficiency", explanation)


def performance_category(score: float) -> str:
    if score >= 80:
        return "excellent"
    if score >= 65:
        return "good"
    if score >= 50:
        return "fair"
    return "poor"


def _recommendation(technique: str, category: str) -> str:
    if category == "excellent":
        return (
            f"Highly recommended for production use. {technique} demonstrates "
            "excellent performance across all metrics."
        )
    if category == "good":
        return f"Recommended for most use cases. {technique} provides reliable performance with good balance."
    if category == "fair":
        return "Suitable for specific scenarios. Consider optimizing or using selectively based on requirements."
    return "Use with caution. Performance may not meet requirements for production workloads."


def _top_metric(result: RankingResult) -> str:
    best_key = "confidence"
    best_value = result.metrics["confidence"].normalized
    for key, metric in result.metrics.items():
        if metric.normalized > best_value:
            best_key, best_value = key, metric.normalized
    return result.metrics[best_key].label.lower()


def _insights(results: List[RankingResult], average: float, spread: float) -> List[str]:
    top = results[0]
    insights = [f"{top.technique} leads with {top.total_score} points, excelling in {_top_metric(top)}"]

    if spread > 20:
        insights.append(
            f"Significant performance variation ({_round_half_up(spread):.0f} point spread) - technique choice matters"
        )
    elif spread < 10:
        insights.append(
            f"Techniques show similar performance ({_round_half_up(spread):.0f} point spread) - consider other factors"
        )

    if average >= 75:
        insights.append(f"Overall excellent performance across all techniques (avg: {_round_half_up(average):.0f})")
    elif average < 60:
        insights.append(f"Room for optimization across techniques (avg: {_round_half_up(average):.0f})")

    fastest = results[0]
    most_confident = results[0]
    for r in results[1:]:
        if r.metrics["execution_time"].value < fastest.metrics["execution_time"].value:
            fastest = r
        if r.metrics["confidence"].value > most_confident.metrics["confidence"].value:
            most_confident = r

    insights.append(
        f"{fastest.technique} offers fastest execution ({fastest.metrics['execution_time'].value:g}ms)"
    )
    if most_confident.technique != top.technique:
        insights.append(
            f"{most_confident.technique} shows highest confidence ({most_confident.metrics['confidence'].value:g}%)"
        )
    return insights


def rank_techniques(
    responses: Sequence[TechniqueResponse],
    weights: Optional[RankingWeights] = None,
) -> RankingComparison:
    """Rank the completed responses of one batch, best first."""
    weights = weights or RankingWeights()
    completed = [r for r in responses if r.is_successful]
    if not completed:
        return RankingComparison(insights=["No completed results to rank"])

    times = [r.execution_time_ms for r in completed]
    costs = [_tokens_used(r) * COST_PER_TOKEN for r in completed]

    scored: List[RankingResult] = []
    for response in completed:
        metrics = {
            "confidence": _score_confidence(response, weights.confidence),
            "execution_time": _score_execution_time(response, times, weights.execution_time),
            "source_quality": _score_source_quality(response, weights.source_quality),
            "cost_efficiency": _score_cost(response, costs, weights.cost_efficiency),
        }
        total = int(_round_half_up(sum(m.weighted for m in metrics.values()) * 100))
        category = performance_category(total)
        scored.append(
            RankingResult(
                technique=response.technique,
                rank=0,
                total_score=total,
                metrics=metrics,
                is_top_performer=False,
                performance_category=category,
                recommendation=_recommendation(response.technique, category),
            )
        )

    scored.sort(key=lambda r: r.total_score, reverse=True)
    ranked = [replace(r, rank=i + 1, is_top_performer=(i == 0)) for i, r in enumerate(scored)]

    average = sum(r.total_score for r in ranked) / len(ranked)
    spread = ranked[0].total_score - ranked[-1].total_score
    return RankingComparison(
        results=ranked,
        top_performer=ranked[0],
        average_score=_round_half_up(average, 1),
        score_spread=_round_half_up(spread, 1),
        insights=_insights(ranked, average, spread),
    )
