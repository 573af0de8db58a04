"""Edge weights and path scoring.

Base weights rank relation types by how strongly they couple two
objects: call > read/write > produce/consume > depend_on.
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence

from archnav.domain.types import RelationType

DEFAULT_EDGE_WEIGHTS: dict[str, float] = {
    "call": 1.0,
    "read": 0.8,
    "write": 0.8,
    "produce": 0.6,
    "consume": 0.6,
    "depend_on": 0.4,
}

# expose mirrors a call from the callee side and borrows its weight.
_WEIGHT_ALIASES: dict[str, str] = {"expose": "call"}

HOP_PENALTY = 0.1
DEFAULT_CONFIDENCE = 1.0


def base_weight(
    relation_type: RelationType | str, weights: Mapping[str, float] | None = None
) -> float:
    """Base weight of *relation_type* under *weights* (defaults if omitted)."""
    table = weights if weights is not None else DEFAULT_EDGE_WEIGHTS
    key = str(relation_type)
    key = _WEIGHT_ALIASES.get(key, key)
    if key in table:
        return float(table[key])
    return DEFAULT_EDGE_WEIGHTS[key]


def mean_confidence(confidences: Sequence[float | None]) -> float | None:
    """Mean of the known confidences, or None when none are known."""
    known = [c for c in confidences if c is not None]
    if not known:
        return None
    return math.fsum(known) / len(known)


def path_score(avg_confidence: float, min_edge_weight: float, hops: int) -> float:
    """Score one path: ``avgConf * ln(1 + minW) / (1 + (hops - 1) * 0.1)``.

    Decreasing in *hops*, increasing in *avg_confidence* and
    *min_edge_weight*.
    """
    if hops < 1:
        msg = f"a path has at least one hop, got {hops}"
        raise ValueError(msg)
    return avg_confidence * math.log1p(min_edge_weight) / (1 + (hops - 1) * HOP_PENALTY)
