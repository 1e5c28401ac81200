from __future__ import annotations

import statistics
from typing import List, Sequence

from ragfusion.core.config import NORMALIZATION_METHODS
from ragfusion.core.errors import ConfigurationError


def _positive(scores: Sequence[float]) -> List[tuple]:
    # Zero means "this source did not return the candidate"; never rescale it
    return [(i, s) for i, s in enumerate(scores) if s > 0]


def min_max(scores: Sequence[float]) -> List[float]:
    out = list(scores)
    present = _positive(scores)
    if not present:
        return out
    lo = min(s for _, s in present)
    hi = max(s for _, s in present)
    if hi == lo:
        return out
    for i, s in present:
        out[i] = (s - lo) / (hi - lo)
    return out


def z_score(scores: Sequence[float]) -> List[float]:
    out = list(scores)
    present = _positive(scores)
    if not present:
        return out
    values = [s for _, s in present]
    mean = statistics.fmean(values)
    std = statistics.pstdev(values)
    if std == 0:
        return out
    for i, s in present:
        out[i] = (s - mean) / std
    return out


def rank_based(scores: Sequence[float]) -> List[float]:
    out = list(scores)
    # sorted() is stable, so equal scores keep their input order
    ordered = sorted(_positive(scores), key=lambda p: p[1], reverse=True)
    for rank, (i, _) in enumerate(ordered, start=1):
        out[i] = 1.0 / rank
    return out


_METHODS = {
    "min_max": min_max,
    "z_score": z_score,
    "rank_based": rank_based,
}


def normalize_scores(scores: Sequence[float], method: str = "min_max") -> List[float]:
    """
    Rescale one column of scores (semantic or lexical, never both together).

    Returns a new list of the same length; non-positive entries are copied through.
    """
    fn = _METHODS.get(method)
    if fn is None:
        raise ConfigurationError("score_normalization_method", method, f"expected one of {NORMALIZATION_METHODS}")
    return fn(scores)
