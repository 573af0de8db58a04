"""Tests for affinity normalization, purity and primary/secondary selection."""

from __future__ import annotations

import math

import pytest
from pydantic import ValidationError

from archnav.domain.affinity import (
    AffinityDistribution,
    normalize_affinity,
    primary_domain,
    purity,
    secondary_domains,
)


class TestNormalizeAffinity:
    def test_sums_to_one(self) -> None:
        dist = normalize_affinity({"orders": 0.3, "billing": 0.1, "search": 0.2})
        assert math.isclose(math.fsum(dist.scores.values()), 1.0, abs_tol=1e-9)
        assert dist.scores["orders"] == pytest.approx(0.5)

    def test_drops_zero_entries(self) -> None:
        dist = normalize_affinity({"orders": 0.15, "billing": 0.0})
        assert dist.scores == {"orders": 1.0}

    def test_single_domain_is_pure(self) -> None:
        dist = normalize_affinity({"orders": 0.15})
        assert dist.purity == 1.0
        assert dist.primary == "orders"
        assert dist.secondary(0.25) == []

    def test_all_zero_rejected(self) -> None:
        with pytest.raises(ValueError, match="all-zero"):
            normalize_affinity({"orders": 0.0})

    def test_empty_rejected(self) -> None:
        with pytest.raises(ValueError):
            normalize_affinity({})

    def test_negative_rejected(self) -> None:
        with pytest.raises(ValueError, match="non-negative"):
            normalize_affinity({"orders": 0.5, "billing": -0.1})

    def test_many_thirds_stay_within_tolerance(self) -> None:
        dist = normalize_affinity({f"d{i}": 1 / 3 for i in range(7)})
        assert abs(math.fsum(dist.scores.values()) - 1.0) <= 1e-9
        assert all(0.0 <= v <= 1.0 for v in dist.scores.values())


class TestAffinityDistribution:
    def test_rejects_bad_sum(self) -> None:
        with pytest.raises(ValidationError):
            AffinityDistribution(scores={"a": 0.5, "b": 0.4})

    def test_rejects_out_of_range(self) -> None:
        with pytest.raises(ValidationError):
            AffinityDistribution(scores={"a": 1.5, "b": -0.5})

    def test_rejects_empty(self) -> None:
        with pytest.raises(ValidationError):
            AffinityDistribution(scores={})


class TestSelection:
    def test_purity_is_max(self) -> None:
        assert purity({"a": 0.6, "b": 0.4}) == 0.6
        assert purity({}) == 0.0

    def test_primary_tie_breaks_on_id(self) -> None:
        assert primary_domain({"b": 0.5, "a": 0.5}) == "a"

    def test_primary_of_empty_raises(self) -> None:
        with pytest.raises(ValueError):
            primary_domain({})

    def test_secondary_threshold_inclusive(self) -> None:
        scores = {"a": 0.5, "b": 0.25, "c": 0.25 - 1e-6}
        assert secondary_domains(scores, 0.25) == ["b"]

    def test_secondary_excludes_primary_and_orders_best_first(self) -> None:
        scores = {"a": 0.4, "b": 0.27, "c": 0.33}
        assert secondary_domains(scores, 0.25) == ["c", "b"]
