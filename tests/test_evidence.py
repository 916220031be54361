"""Tests for beliefflow/core/evidence.py."""

from __future__ import annotations

import pytest

from beliefflow.core.evidence import (
    as_soft_evidence,
    normalize_soft_evidence,
    prepare_evidence,
)
from beliefflow.core.exceptions import EvidenceError


class TestPrepareEvidence:
    """Validation and splitting into hard/soft maps."""

    def test_empty(self, sprinkler):
        split = prepare_evidence(sprinkler, None)
        assert split.hard == {}
        assert split.soft == {}
        assert split.soft_nodes == ()

    def test_split(self, sprinkler):
        split = prepare_evidence(
            sprinkler, {"GRASS_WET": "T", "RAIN": {"T": 3, "F": 7}}
        )
        assert split.hard == {"GRASS_WET": "T"}
        assert split.soft == {"RAIN": {"T": pytest.approx(0.3), "F": pytest.approx(0.7)}}
        assert split.soft_nodes == ("RAIN",)

    def test_caller_mapping_not_modified(self, sprinkler):
        given = {"RAIN": {"T": 3.0, "F": 7.0}}
        prepare_evidence(sprinkler, given)
        assert given == {"RAIN": {"T": 3.0, "F": 7.0}}

    def test_missing_states_get_zero(self, sprinkler):
        split = prepare_evidence(sprinkler, {"RAIN": {"T": 2.0}})
        assert split.soft["RAIN"] == {"T": 1.0, "F": 0.0}

    def test_unknown_node(self, sprinkler):
        with pytest.raises(EvidenceError, match="unknown node 'FOG'"):
            prepare_evidence(sprinkler, {"FOG": "T"})

    def test_unknown_hard_state(self, sprinkler):
        with pytest.raises(EvidenceError, match="Valid states"):
            prepare_evidence(sprinkler, {"RAIN": "maybe"})

    def test_wrong_value_type(self, sprinkler):
        with pytest.raises(EvidenceError, match="state label or a mapping"):
            prepare_evidence(sprinkler, {"RAIN": 1})

    def test_key_is_content_based(self, sprinkler):
        a = prepare_evidence(sprinkler, {"RAIN": {"T": 1, "F": 1}, "GRASS_WET": "T"})
        b = prepare_evidence(sprinkler, {"GRASS_WET": "T", "RAIN": {"F": 5, "T": 5}})
        assert a.key() == b.key()
        hash(a.key())


class TestSoftWeights:
    """Soft-evidence weight checks."""

    STATES = ("T", "F")

    def test_normalised(self):
        assert normalize_soft_evidence("X", self.STATES, {"T": 1, "F": 3}) == {
            "T": 0.25,
            "F": 0.75,
        }

    def test_zero_total(self):
        with pytest.raises(EvidenceError, match="zero total weight"):
            normalize_soft_evidence("X", self.STATES, {"T": 0.0, "F": 0.0})

    def test_negative_weight(self):
        with pytest.raises(EvidenceError, match="non-negative"):
            normalize_soft_evidence("X", self.STATES, {"T": -0.1, "F": 1.0})

    def test_nan_weight(self):
        with pytest.raises(EvidenceError, match="finite"):
            normalize_soft_evidence("X", self.STATES, {"T": float("nan"), "F": 1.0})

    def test_non_numeric_weight(self):
        with pytest.raises(EvidenceError, match="must be a number"):
            normalize_soft_evidence("X", self.STATES, {"T": "high", "F": 1.0})

    def test_unknown_state(self):
        with pytest.raises(EvidenceError, match="unknown state"):
            normalize_soft_evidence("X", self.STATES, {"T": 0.5, "MAYBE": 0.5})


def test_as_soft_evidence(sprinkler):
    soft = as_soft_evidence(sprinkler, {"GRASS_WET": "F", "RAIN": {"T": 1, "F": 1}})
    assert soft == {
        "GRASS_WET": {"T": 0.0, "F": 1.0},
        "RAIN": {"T": 0.5, "F": 0.5},
    }
