"""Tests for edge weights and path scoring."""

from __future__ import annotations

import math

import pytest

from archnav.domain.scoring import (
    DEFAULT_EDGE_WEIGHTS,
    base_weight,
    mean_confidence,
    path_score,
)
from archnav.domain.types import RelationType


class TestBaseWeight:
    def test_default_ordering(self) -> None:
        w = DEFAULT_EDGE_WEIGHTS
        assert w["call"] > w["read"] == w["write"] > w["produce"] == w["consume"]
        assert w["consume"] > w["depend_on"]

    def test_enum_and_string_agree(self) -> None:
        assert base_weight(RelationType.READ) == base_weight("read") == 0.8

    def test_expose_borrows_call_weight(self) -> None:
        assert base_weight(RelationType.EXPOSE) == base_weight(RelationType.CALL)

    def test_override_table(self) -> None:
        assert base_weight("call", {"call": 2.0}) == 2.0

    def test_partial_override_falls_back_to_defaults(self) -> None:
        assert base_weight("read", {"call": 2.0}) == 0.8


class TestMeanConfidence:
    def test_ignores_unknown(self) -> None:
        assert mean_confidence([0.5, None, 1.0]) == pytest.approx(0.75)

    def test_all_unknown(self) -> None:
        assert mean_confidence([None, None]) is None


class TestPathScore:
    def test_single_hop(self) -> None:
        assert path_score(1.0, 1.0, 1) == pytest.approx(math.log(2))

    def test_call_chain_beats_read_chain(self) -> None:
        call = path_score(1.0, 1.0, 2)
        read = path_score(1.0, 0.8, 2)
        assert call == pytest.approx(math.log(2) / 1.1)
        assert read == pytest.approx(math.log(1.8) / 1.1)
        assert call > read

    def test_decreases_with_hops(self) -> None:
        assert path_score(1.0, 1.0, 1) > path_score(1.0, 1.0, 2) > path_score(1.0, 1.0, 5)

    def test_increases_with_confidence(self) -> None:
        assert path_score(0.9, 1.0, 2) > path_score(0.5, 1.0, 2)

    def test_zero_hops_rejected(self) -> None:
        with pytest.raises(ValueError):
            path_score(1.0, 1.0, 0)
