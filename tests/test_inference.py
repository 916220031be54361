"""Tests for beliefflow/inference/junction_tree.py.

Covers:
- Known posteriors of the sprinkler network (hard and soft evidence)
- Agreement with brute-force enumeration on random networks
- Soft evidence semantics (normalisation, hard/soft equivalence,
  several soft nodes)
- Likelihood of the evidence
- Query and evidence errors, zero-probability evidence
"""

from __future__ import annotations

import logging
import math

import pytest

from beliefflow.core.config import IPFPOptions
from beliefflow.core.exceptions import EvidenceError, QueryError
from beliefflow.core.types import Node
from beliefflow.inference.ipfp import variable_marginal
from beliefflow.inference.junction_tree import (
    evidence_probability,
    find_big_clique,
    infer,
    query_probability,
    raw_infer,
)
from beliefflow.networks.dag import BayesianNetwork
from beliefflow.networks.graph import build_random_dag


# ------------------------------------------------------------------ #
#  Reference values
# ------------------------------------------------------------------ #

class TestSprinkler:
    """Known posteriors on the rain / sprinkler / wet grass network."""

    def test_prior(self, sprinkler):
        assert infer(sprinkler, {"RAIN": "T"}) == pytest.approx(0.2)
        assert infer(sprinkler, {"GRASS_WET": "T"}) == pytest.approx(0.44838)

    def test_rain_given_wet_grass(self, sprinkler):
        p = infer(sprinkler, {"RAIN": "T"}, {"GRASS_WET": "T"})
        assert p == pytest.approx(0.35769, abs=1e-5)

    def test_rain_given_sprinkler(self, sprinkler):
        p = infer(sprinkler, {"RAIN": "T"}, {"SPRINKLER": "T"})
        assert p == pytest.approx(0.002 / 0.322)

    def test_soft_rain(self, sprinkler):
        p = infer(sprinkler, {"SPRINKLER": "T"}, {"RAIN": {"T": 0.3, "F": 0.7}})
        assert p == pytest.approx(0.283, abs=1e-6)

    def test_soft_node_posterior_is_target(self, sprinkler):
        given = {"GRASS_WET": {"T": 0.6, "F": 0.4}}
        assert infer(sprinkler, {"GRASS_WET": "T"}, given) == pytest.approx(0.6, abs=1e-6)

    def test_joint_query(self, sprinkler):
        p = infer(sprinkler, {"RAIN": "F", "SPRINKLER": "T"}, {"GRASS_WET": "T"})
        assert p == pytest.approx(0.8 * 0.4 * 0.9 / 0.44838, abs=1e-6)

    def test_empty_query(self, sprinkler):
        assert infer(sprinkler, {}, {"GRASS_WET": "T"}) == 1.0

    def test_clique_rows(self, chain_abc):
        rows = raw_infer(chain_abc, {"C": "c0"}).clique_rows("1")
        assert [when for when, _ in rows] == [
            {"B": "b0", "C": "c0"}, {"B": "b0", "C": "c1"},
            {"B": "b1", "C": "c0"}, {"B": "b1", "C": "c1"},
        ]
        assert sum(then for _, then in rows) == pytest.approx(1.0)
        assert rows[1][1] == 0.0


class TestSoftEvidence:
    """Soft evidence semantics."""

    def test_certain_soft_equals_hard(self, sprinkler):
        hard = infer(sprinkler, {"RAIN": "T"}, {"GRASS_WET": "T"})
        soft = infer(sprinkler, {"RAIN": "T"}, {"GRASS_WET": {"T": 1.0, "F": 0.0}})
        assert soft == pytest.approx(hard, abs=1e-9)

    def test_weights_are_scale_invariant(self, sprinkler):
        a = infer(sprinkler, {"SPRINKLER": "T"}, {"RAIN": {"T": 0.3, "F": 0.7}})
        b = infer(sprinkler, {"SPRINKLER": "T"}, {"RAIN": {"T": 3, "F": 7}})
        assert a == pytest.approx(b, abs=1e-12)

    def test_uniform_soft_on_root_is_not_neutral(self, chain_abc):
        """Jeffrey's rule sets the marginal, so a uniform target moves it."""
        assert infer(chain_abc, {"A": "a0"}, {"A": {"a0": 1, "a1": 1}}) == pytest.approx(0.5)

    def test_several_soft_nodes(self, sprinkler):
        given = {
            "RAIN": {"T": 0.5, "F": 0.5},
            "GRASS_WET": {"T": 0.9, "F": 0.1},
        }
        raw = raw_infer(sprinkler, given)
        big = find_big_clique(raw.tree, ["RAIN", "GRASS_WET"])
        potential = raw.potentials[big.id]
        for node_id, target in given.items():
            marginal = variable_marginal(potential, node_id)
            for state, weight in target.items():
                assert marginal[state] == pytest.approx(weight, abs=1e-3)

    def test_soft_nodes_share_a_clique(self, chain_abc):
        raw = raw_infer(chain_abc, {"A": {"a0": 0.2, "a1": 0.8}, "C": {"c0": 0.5, "c1": 0.5}})
        assert raw.tree.cliques_containing(["A", "C"])
        assert infer(chain_abc, {"A": "a0"}, {"A": {"a0": 0.2, "a1": 0.8}}) == pytest.approx(0.2)

    def test_ipfp_options(self, sprinkler):
        raw = raw_infer(
            sprinkler,
            {"RAIN": {"T": 0.3, "F": 0.7}},
            ipfp_options=IPFPOptions(epsilon=1e-12, max_iterations=10),
        )
        assert query_probability(raw, {"RAIN": "T"}) == pytest.approx(0.3)


# ------------------------------------------------------------------ #
#  Against enumeration
# ------------------------------------------------------------------ #

class TestAgainstEnumeration:
    """Junction tree results equal brute-force enumeration."""

    @pytest.mark.parametrize("seed", range(6))
    def test_hard_evidence(self, seed, oracle):
        network = build_random_dag(8, edge_probability=0.4, num_states=2, seed=seed)
        nodes = network.nodes
        hard = {nodes[-1]: "s1", nodes[2]: "s0"}
        for node_id in nodes:
            if node_id in hard:
                continue
            for state in network.states(node_id):
                expected = oracle(network, {node_id: state}, hard=hard)
                got = infer(network, {node_id: state}, hard)
                assert got == pytest.approx(expected, abs=1e-9)

    @pytest.mark.parametrize("seed", range(6))
    def test_soft_and_hard_evidence(self, seed, oracle):
        network = build_random_dag(7, edge_probability=0.4, num_states=3, seed=seed)
        nodes = network.nodes
        soft = {nodes[3]: {"s0": 0.2, "s1": 0.5, "s2": 0.3}}
        hard = {nodes[-1]: "s2"}
        given = {**hard, **soft}
        for node_id in nodes:
            expected = oracle(network, {node_id: "s1"}, hard=hard, soft=soft)
            assert infer(network, {node_id: "s1"}, given) == pytest.approx(expected, abs=1e-6)

    def test_disconnected_components_stay_independent(self):
        network = BayesianNetwork([
            Node("A", ("a0", "a1"), cpt={"a0": 0.3, "a1": 0.7}),
            Node("B", ("b0", "b1"), cpt={"b0": 0.9, "b1": 0.1}),
        ])
        assert infer(network, {"B": "b0"}, {"A": "a1"}) == pytest.approx(0.9)
        assert infer(network, {"B": "b0"}, {"A": {"a0": 0.5, "a1": 0.5}}) == pytest.approx(0.9)


# ------------------------------------------------------------------ #
#  Evidence likelihood
# ------------------------------------------------------------------ #

def _kl(target, prior):
    return sum(t * math.log(t / p) for t, p in zip(target, prior) if t > 0)


class TestEvidenceProbability:
    """Likelihood of the evidence read from unnormalised potentials."""

    def test_hard_evidence(self, sprinkler):
        assert evidence_probability(sprinkler, {"GRASS_WET": "T"}) == pytest.approx(
            0.44838, abs=1e-6
        )

    def test_no_evidence(self, sprinkler):
        assert evidence_probability(sprinkler) == pytest.approx(1.0)
        assert raw_infer(sprinkler).log_evidence == pytest.approx(0.0, abs=1e-12)

    @pytest.mark.parametrize("seed", range(4))
    def test_matches_enumeration(self, seed, oracle):
        network = build_random_dag(8, edge_probability=0.4, num_states=2, seed=seed)
        nodes = network.nodes
        hard = {nodes[-1]: "s1", nodes[2]: "s0", nodes[4]: "s1"}
        assert evidence_probability(network, hard) == pytest.approx(
            oracle(network, hard), rel=1e-9
        )

    def test_components_multiply(self):
        network = BayesianNetwork([
            Node("A", ("a0", "a1"), cpt={"a0": 0.3, "a1": 0.7}),
            Node("B", ("b0", "b1"), cpt={"b0": 0.9, "b1": 0.1}),
        ])
        assert evidence_probability(network, {"A": "a1", "B": "b0"}) == pytest.approx(0.63)

    def test_soft_evidence_matching_prior_scores_one(self, sprinkler):
        given = {"RAIN": {"T": 0.2, "F": 0.8}}
        assert evidence_probability(sprinkler, given) == pytest.approx(1.0, abs=1e-9)

    def test_soft_evidence_is_penalised_by_divergence(self, sprinkler):
        got = evidence_probability(sprinkler, {"RAIN": {"T": 0.3, "F": 0.7}})
        assert got == pytest.approx(math.exp(-_kl([0.3, 0.7], [0.2, 0.8])), abs=1e-9)

    def test_soft_and_hard_in_one_component(self, sprinkler):
        wet = 0.44838
        rain = 0.16038 / wet
        got = evidence_probability(
            sprinkler, {"GRASS_WET": "T", "RAIN": {"T": 0.3, "F": 0.7}}
        )
        expected = wet * math.exp(-_kl([0.3, 0.7], [rain, 1 - rain]))
        assert got == pytest.approx(expected, rel=1e-6)

    def test_impossible_evidence(self, sprinkler):
        given = {"SPRINKLER": "F", "RAIN": "F", "GRASS_WET": "T"}
        assert evidence_probability(sprinkler, given) == 0.0
        assert raw_infer(sprinkler, given).log_evidence == -math.inf


# ------------------------------------------------------------------ #
#  Errors
# ------------------------------------------------------------------ #

class TestErrors:
    """Invalid queries and evidence."""

    def test_unknown_query_node(self, sprinkler):
        with pytest.raises(QueryError, match="unknown node"):
            infer(sprinkler, {"FOG": "T"})

    def test_unknown_query_state(self, sprinkler):
        with pytest.raises(QueryError, match="not a state"):
            infer(sprinkler, {"RAIN": "DRIZZLE"})

    def test_query_spanning_cliques(self, chain_abc):
        with pytest.raises(QueryError, match="No single clique"):
            infer(chain_abc, {"A": "a0", "C": "c0"})

    def test_invalid_evidence(self, sprinkler):
        with pytest.raises(EvidenceError):
            infer(sprinkler, {"RAIN": "T"}, {"GRASS_WET": "MAYBE"})
        with pytest.raises(EvidenceError):
            infer(sprinkler, {"RAIN": "T"}, {"GRASS_WET": {"T": 0, "F": 0}})

    def test_evidence_not_modified(self, sprinkler):
        given = {"RAIN": {"T": 3, "F": 7}, "GRASS_WET": "T"}
        infer(sprinkler, {"SPRINKLER": "T"}, given)
        assert given == {"RAIN": {"T": 3, "F": 7}, "GRASS_WET": "T"}

    def test_impossible_evidence_returns_zero(self, sprinkler, caplog):
        given = {"SPRINKLER": "F", "RAIN": "F", "GRASS_WET": "T"}
        with caplog.at_level(logging.WARNING, logger="beliefflow.inference.junction_tree"):
            p = infer(sprinkler, {"RAIN": "F"}, given)
        assert p == 0.0
        assert any("zero probability" in r.getMessage() for r in caplog.records)
