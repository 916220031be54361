"""Network construction utilities for BeliefFlow.

Random networks with Dirichlet-distributed CPTs, mainly for tests and
benchmarks.  Node ids are ``X0, X1, ...`` and states ``s0, s1, ...``.
"""

from __future__ import annotations

import itertools
from typing import Dict, List, Optional, Sequence

import numpy as np

from beliefflow.core.types import Node
from beliefflow.networks.dag import BayesianNetwork


def _random_network(
    parents: Dict[str, Sequence[str]],
    num_states: int,
    rng: np.random.Generator,
) -> BayesianNetwork:
    """Attach a Dirichlet-sampled CPT to every node of *parents*."""
    states = tuple(f"s{i}" for i in range(num_states))
    nodes = []
    for node_id, ps in parents.items():
        if not ps:
            cpt = dict(zip(states, rng.dirichlet(np.ones(num_states))))
        else:
            cpt = [
                {
                    "when": dict(zip(ps, combo)),
                    "then": dict(zip(states, rng.dirichlet(np.ones(num_states)))),
                }
                for combo in itertools.product(states, repeat=len(ps))
            ]
        nodes.append(Node(node_id, states, tuple(ps), cpt=cpt))
    return BayesianNetwork(nodes)


def build_tree(
    num_nodes: int,
    num_states: int = 2,
    seed: Optional[int] = None,
) -> BayesianNetwork:
    """Build a tree-structured Bayesian network.

    Node ``i``'s children are ``2i + 1`` and ``2i + 2``.
    """
    rng = np.random.default_rng(seed)
    parents: Dict[str, List[str]] = {f"X{i}": [] for i in range(num_nodes)}
    for i in range(1, num_nodes):
        parents[f"X{i}"].append(f"X{(i - 1) // 2}")
    return _random_network(parents, num_states, rng)


def build_chain(
    num_nodes: int,
    num_states: int = 2,
    seed: Optional[int] = None,
) -> BayesianNetwork:
    """Build a chain-structured Bayesian network (Markov chain)."""
    rng = np.random.default_rng(seed)
    parents: Dict[str, List[str]] = {f"X{i}": [] for i in range(num_nodes)}
    for i in range(1, num_nodes):
        parents[f"X{i}"].append(f"X{i - 1}")
    return _random_network(parents, num_states, rng)


def build_random_dag(
    num_nodes: int,
    edge_probability: float = 0.3,
    max_parents: int = 3,
    num_states: int = 2,
    seed: Optional[int] = None,
) -> BayesianNetwork:
    """Build a random DAG over ``X0..X{n-1}``.

    Edges only go from lower to higher index, so the graph is acyclic.
    Each candidate edge is kept with probability *edge_probability*, up
    to *max_parents* parents per node.  The result may be disconnected.
    """
    if not 0.0 <= edge_probability <= 1.0:
        raise ValueError(
            f"edge_probability must be in [0, 1], got {edge_probability}"
        )
    rng = np.random.default_rng(seed)
    parents: Dict[str, List[str]] = {}
    for i in range(num_nodes):
        candidates = [f"X{j}" for j in range(i) if rng.random() < edge_probability]
        if len(candidates) > max_parents:
            chosen = rng.choice(len(candidates), size=max_parents, replace=False)
            candidates = [candidates[k] for k in sorted(chosen)]
        parents[f"X{i}"] = candidates
    return _random_network(parents, num_states, rng)
