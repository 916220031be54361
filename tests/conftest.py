"""Shared fixtures: reference networks and a brute-force enumeration oracle."""

from __future__ import annotations

import itertools
from typing import Dict, Mapping, Optional

import pytest

from beliefflow.inference.junction_tree import clear_caches
from beliefflow.networks.dag import BayesianNetwork


def _build_sprinkler() -> BayesianNetwork:
    """Classic rain / sprinkler / wet grass network.

    P(RAIN=T) = 0.2
    P(SPRINKLER=T | RAIN) = 0.01 (T), 0.4 (F)
    P(GRASS_WET=T | SPRINKLER, RAIN) = 0.99 (T,T), 0.9 (T,F), 0.8 (F,T), 0 (F,F)
    """
    return BayesianNetwork.from_dict({
        "RAIN": {"states": ["T", "F"], "parents": [], "cpt": {"T": 0.2, "F": 0.8}},
        "SPRINKLER": {
            "states": ["T", "F"],
            "parents": ["RAIN"],
            "cpt": [
                {"when": {"RAIN": "T"}, "then": {"T": 0.01, "F": 0.99}},
                {"when": {"RAIN": "F"}, "then": {"T": 0.4, "F": 0.6}},
            ],
        },
        "GRASS_WET": {
            "states": ["T", "F"],
            "parents": ["SPRINKLER", "RAIN"],
            "cpt": [
                {"when": {"SPRINKLER": "T", "RAIN": "T"}, "then": {"T": 0.99, "F": 0.01}},
                {"when": {"SPRINKLER": "T", "RAIN": "F"}, "then": {"T": 0.9, "F": 0.1}},
                {"when": {"SPRINKLER": "F", "RAIN": "T"}, "then": {"T": 0.8, "F": 0.2}},
                {"when": {"SPRINKLER": "F", "RAIN": "F"}, "then": {"T": 0.0, "F": 1.0}},
            ],
        },
    })


def _build_chain_abc() -> BayesianNetwork:
    """3-node chain A -> B -> C.

    P(A) = [0.4, 0.6]
    P(B|A) = [[0.9, 0.1], [0.3, 0.7]]
    P(C|B) = [[0.8, 0.2], [0.4, 0.6]]
    """
    return BayesianNetwork.from_dict({
        "A": {"states": ["a0", "a1"], "cpt": {"a0": 0.4, "a1": 0.6}},
        "B": {
            "states": ["b0", "b1"],
            "parents": ["A"],
            "cpt": [
                {"when": {"A": "a0"}, "then": {"b0": 0.9, "b1": 0.1}},
                {"when": {"A": "a1"}, "then": {"b0": 0.3, "b1": 0.7}},
            ],
        },
        "C": {
            "states": ["c0", "c1"],
            "parents": ["B"],
            "cpt": [
                {"when": {"B": "b0"}, "then": {"c0": 0.8, "c1": 0.2}},
                {"when": {"B": "b1"}, "then": {"c0": 0.4, "c1": 0.6}},
            ],
        },
    })


def brute_force_probability(
    network: BayesianNetwork,
    query: Mapping[str, str],
    hard: Optional[Mapping[str, str]] = None,
    soft: Optional[Mapping[str, Mapping[str, float]]] = None,
) -> float:
    """P(query | hard evidence), with at most one soft node by Jeffrey's rule.

    Enumerates the full joint distribution.
    """
    hard = hard or {}
    soft = soft or {}
    if len(soft) > 1:
        raise ValueError("The oracle handles a single soft-evidence node")

    nodes = network.nodes
    joint: Dict[tuple, float] = {}
    for combo in itertools.product(*(network.states(n) for n in nodes)):
        assignment = dict(zip(nodes, combo))
        if any(assignment[n] != s for n, s in hard.items()):
            continue
        p = 1.0
        for n in nodes:
            factor = network.factor(n)
            index = tuple(factor.state_index(v, assignment[v]) for v in factor.variables)
            p *= factor.values[index]
        joint[combo] = p

    def matches(combo) -> bool:
        return all(combo[nodes.index(n)] == s for n, s in query.items())

    if not soft:
        total = sum(joint.values())
        return sum(p for c, p in joint.items() if matches(c)) / total

    (soft_node, weights), = soft.items()
    position = nodes.index(soft_node)
    weight_total = sum(weights.values())
    mass = {
        s: sum(p for c, p in joint.items() if c[position] == s)
        for s in network.states(soft_node)
    }
    result = 0.0
    for combo, p in joint.items():
        state = combo[position]
        if matches(combo) and mass[state] > 0:
            result += p / mass[state] * weights.get(state, 0.0) / weight_total
    return result


@pytest.fixture(autouse=True)
def _fresh_caches():
    clear_caches()
    yield
    clear_caches()


@pytest.fixture
def sprinkler() -> BayesianNetwork:
    return _build_sprinkler()


@pytest.fixture
def chain_abc() -> BayesianNetwork:
    return _build_chain_abc()


@pytest.fixture
def oracle():
    return brute_force_probability
