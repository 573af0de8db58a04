"""Affinity math for domain inference.

Raw per-domain scores are normalized into a probability distribution.
Purity is the largest normalized score, the primary domain its arg-max,
and secondary domains every other domain at or above a threshold.

All functions here are pure; nothing touches the database.
"""

from __future__ import annotations

import math
from collections.abc import Mapping

from pydantic import BaseModel, Field, field_validator

SUM_TOLERANCE = 1e-9


class AffinityDistribution(BaseModel):
    """A validated domain id -> affinity map whose values sum to 1.0."""

    model_config = {"frozen": True}

    scores: dict[str, float] = Field(min_length=1)

    @field_validator("scores")
    @classmethod
    def _check_distribution(cls, v: dict[str, float]) -> dict[str, float]:
        for domain_id, score in v.items():
            if not 0.0 <= score <= 1.0 or math.isnan(score):
                msg = f"affinity for {domain_id!r} out of range: {score}"
                raise ValueError(msg)
        total = math.fsum(v.values())
        if abs(total - 1.0) > SUM_TOLERANCE:
            msg = f"affinities must sum to 1.0, got {total}"
            raise ValueError(msg)
        return v

    @property
    def purity(self) -> float:
        return purity(self.scores)

    @property
    def primary(self) -> str:
        return primary_domain(self.scores)

    def secondary(self, threshold: float) -> list[str]:
        return secondary_domains(self.scores, threshold)


def normalize_affinity(raw: Mapping[str, float]) -> AffinityDistribution:
    """Normalize the nonzero entries of *raw* into a distribution.

    Zero entries are dropped. The largest entry is adjusted by the float
    residue so the result sums to exactly 1.0 within tolerance.

    Raises:
        ValueError: if *raw* is empty, all zero, or has negative entries.
    """
    if any(v < 0 for v in raw.values()):
        msg = "raw affinity scores must be non-negative"
        raise ValueError(msg)
    nonzero = {k: float(v) for k, v in raw.items() if v > 0}
    total = math.fsum(nonzero.values())
    if not nonzero or total <= 0:
        msg = "cannot normalize an all-zero score map"
        raise ValueError(msg)
    scores = {k: v / total for k, v in nonzero.items()}
    residue = 1.0 - math.fsum(scores.values())
    if residue:
        top = primary_domain(scores)
        scores[top] = min(1.0, scores[top] + residue)
    return AffinityDistribution(scores=scores)


def purity(scores: Mapping[str, float]) -> float:
    """Largest affinity in *scores* (0.0 for an empty map)."""
    return max(scores.values(), default=0.0)


def primary_domain(scores: Mapping[str, float]) -> str:
    """Arg-max of *scores*; ties go to the lexicographically smallest id."""
    if not scores:
        msg = "primary domain of an empty score map"
        raise ValueError(msg)
    return min(scores, key=lambda k: (-scores[k], k))


def secondary_domains(scores: Mapping[str, float], threshold: float) -> list[str]:
    """Domains other than the primary scoring at least *threshold*, best first."""
    if not scores:
        return []
    primary = primary_domain(scores)
    picked = [k for k, v in scores.items() if k != primary and v >= threshold]
    return sorted(picked, key=lambda k: (-scores[k], k))
