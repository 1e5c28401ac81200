from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from ragfusion.core.errors import ConfigurationError


FUSION_STRATEGIES = (
    "reciprocal_rank_fusion",
    "weighted_sum",
    "comb_sum",
    "comb_max",
    "adaptive",
    "vote_based",
)
CONFIDENCE_ALGORITHMS = ("score_based", "technique_weighted", "consensus_based", "statistical")
HYBRID_SCORING_METHODS = ("weighted_sum", "reciprocal_rank_fusion", "comb_sum", "adaptive")
NORMALIZATION_METHODS = ("min_max", "z_score", "rank_based")
EXECUTION_MODES = ("parallel", "sequential", "dependency-resolved")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # N-way aggregation
    fusion_strategy: str = Field("reciprocal_rank_fusion", alias="FUSION_STRATEGY")
    confidence_algorithm: str = Field("consensus_based", alias="CONFIDENCE_ALGORITHM")
    enable_deduplication: bool = Field(True, alias="ENABLE_DEDUPLICATION")
    duplicate_threshold: float = Field(0.85, alias="DUPLICATE_THRESHOLD")
    max_results: int = Field(20, alias="MAX_RESULTS")
    min_confidence: float = Field(0.1, alias="MIN_CONFIDENCE")
    enable_insights: bool = Field(True, alias="ENABLE_INSIGHTS")

    # Hybrid (semantic + lexical) pair fusion
    w_semantic: float = Field(0.6, alias="W_SEMANTIC")
    w_lexical: float = Field(0.4, alias="W_LEXICAL")
    hybrid_scoring_method: str = Field("weighted_sum", alias="HYBRID_SCORING_METHOD")
    normalize_scores: bool = Field(True, alias="NORMALIZE_SCORES")
    score_normalization_method: str = Field("min_max", alias="SCORE_NORMALIZATION_METHOD")
    hybrid_final_limit: int = Field(20, alias="HYBRID_FINAL_LIMIT")

    # Technique execution
    execution_mode: str = Field("parallel", alias="EXECUTION_MODE")
    technique_timeout_ms: int = Field(30000, alias="TECHNIQUE_TIMEOUT_MS")

    log_level: str = Field("INFO", alias="LOG_LEVEL")


settings = Settings()


@dataclass(frozen=True)
class AggregationConfig:
    """Per-call aggregation options. Built fresh for each query; holds no state."""

    fusion_strategy: str = "reciprocal_rank_fusion"
    confidence_algorithm: str = "consensus_based"
    enable_deduplication: bool = True
    duplicate_threshold: float = 0.85
    max_results: int = 20
    min_confidence: float = 0.1
    technique_weights: Dict[str, float] = field(default_factory=dict)   # unlisted => 1.0
    enable_insights: bool = True

    def __post_init__(self) -> None:
        if self.fusion_strategy not in FUSION_STRATEGIES:
            raise ConfigurationError("fusion_strategy", self.fusion_strategy, f"expected one of {FUSION_STRATEGIES}")
        if self.confidence_algorithm not in CONFIDENCE_ALGORITHMS:
            raise ConfigurationError(
                "confidence_algorithm", self.confidence_algorithm, f"expected one of {CONFIDENCE_ALGORITHMS}"
            )
        if not 0.0 <= self.duplicate_threshold <= 1.0:
            raise ConfigurationError("duplicate_threshold", self.duplicate_threshold, "must lie in [0, 1]")
        if not 0.0 <= self.min_confidence <= 1.0:
            raise ConfigurationError("min_confidence", self.min_confidence, "must lie in [0, 1]")
        if self.max_results < 1:
            raise ConfigurationError("max_results", self.max_results, "must be at least 1")
        for technique, weight in self.technique_weights.items():
            if weight < 0:
                raise ConfigurationError("technique_weights", {technique: weight}, "weights cannot be negative")

    @classmethod
    def from_settings(cls, s: Optional[Settings] = None, **overrides) -> "AggregationConfig":
        s = s or settings
        values = dict(
            fusion_strategy=s.fusion_strategy,
            confidence_algorithm=s.confidence_algorithm,
            enable_deduplication=s.enable_deduplication,
            duplicate_threshold=s.duplicate_threshold,
            max_results=s.max_results,
            min_confidence=s.min_confidence,
            enable_insights=s.enable_insights,
        )
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
