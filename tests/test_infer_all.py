"""Tests for beliefflow/inference/infer_all.py."""

from __future__ import annotations

import pytest

from beliefflow.core.config import InferAllOptions
from beliefflow.core.exceptions import EvidenceError
from beliefflow.inference.infer_all import clamp_network, infer_all
from beliefflow.inference.junction_tree import potential_cache_info


class TestInferAll:
    """Marginals of every node."""

    def test_shape_and_order(self, sprinkler):
        result = infer_all(sprinkler)
        assert list(result) == ["RAIN", "SPRINKLER", "GRASS_WET"]
        assert list(result["RAIN"]) == ["T", "F"]
        for dist in result.values():
            assert sum(dist.values()) == pytest.approx(1.0)

    def test_posteriors(self, sprinkler):
        result = infer_all(sprinkler, {"GRASS_WET": "T"})
        assert result["RAIN"]["T"] == pytest.approx(0.35769, abs=1e-5)
        assert result["GRASS_WET"] == {"T": 1.0, "F": 0.0}

    def test_precision(self, sprinkler):
        result = infer_all(sprinkler, {"GRASS_WET": "T"}, InferAllOptions(precision=2))
        assert result["RAIN"]["T"] == 0.36

    def test_soft_evidence(self, sprinkler):
        result = infer_all(sprinkler, {"RAIN": {"T": 0.3, "F": 0.7}})
        assert result["RAIN"]["T"] == pytest.approx(0.3)
        assert result["SPRINKLER"]["T"] == pytest.approx(0.283)

    def test_force_skips_cache(self, sprinkler):
        infer_all(sprinkler, {"GRASS_WET": "T"}, InferAllOptions(force=True))
        assert potential_cache_info().currsize == 0

    def test_invalid_evidence(self, sprinkler):
        with pytest.raises(EvidenceError):
            infer_all(sprinkler, {"NOPE": "T"})

    def test_negative_precision_rejected(self):
        with pytest.raises(ValueError, match="precision"):
            InferAllOptions(precision=-1)


class TestClamping:
    """Evidenced nodes clamped to their evidence distribution."""

    def test_clamped_hard_evidence_does_not_flow_upwards(self, sprinkler):
        clamped = infer_all(
            sprinkler, {"SPRINKLER": "T"}, InferAllOptions(clamp_soft_evidence=True)
        )
        plain = infer_all(sprinkler, {"SPRINKLER": "T"})
        assert clamped["RAIN"]["T"] == pytest.approx(0.2)
        assert plain["RAIN"]["T"] == pytest.approx(0.002 / 0.322, abs=1e-8)
        assert clamped["GRASS_WET"]["T"] == pytest.approx(0.2 * 0.99 + 0.8 * 0.9)

    def test_clamped_soft_evidence(self, sprinkler):
        result = infer_all(
            sprinkler,
            {"SPRINKLER": {"T": 1, "F": 1}},
            InferAllOptions(clamp_soft_evidence=True),
        )
        assert result["SPRINKLER"]["T"] == pytest.approx(0.5)
        assert result["RAIN"]["T"] == pytest.approx(0.2)

    def test_clamp_network(self, sprinkler):
        clamped = clamp_network(sprinkler, {"SPRINKLER": {"T": 1, "F": 3}})
        assert clamped.parents("SPRINKLER") == ()
        assert clamped["SPRINKLER"].cpt.probabilities == {"T": 0.25, "F": 0.75}
        assert clamped.parents("GRASS_WET") == ("SPRINKLER", "RAIN")
        assert sprinkler.parents("SPRINKLER") == ("RAIN",)

    def test_clamp_without_evidence_is_identity(self, sprinkler):
        assert clamp_network(sprinkler, None) is sprinkler
