"""Undirected views of a Bayesian network.

* :func:`undirected_skeleton` – the DAG with edge directions dropped.
* :func:`moralize` – the skeleton plus an edge between every pair of
  co-parents, optionally made complete over a forced node set so that
  triangulation yields one clique holding all of them.
"""

from __future__ import annotations

from itertools import combinations
from typing import Iterable, Optional

import networkx as nx

from beliefflow.core.exceptions import NetworkValidationError
from beliefflow.networks.dag import BayesianNetwork


def undirected_skeleton(network: BayesianNetwork) -> nx.Graph:
    """Return an undirected graph with one edge per parent/child pair.

    Every node is present, isolated ones included, in network order.
    """
    graph = nx.Graph()
    graph.add_nodes_from(network.nodes)
    for node_id in network.nodes:
        for parent in network.parents(node_id):
            graph.add_edge(parent, node_id)
    return graph


def moralize(
    network: BayesianNetwork,
    forced_clique: Optional[Iterable[str]] = None,
) -> nx.Graph:
    """Return the moral graph of *network*.

    Parameters
    ----------
    network : BayesianNetwork
        Source network.
    forced_clique : iterable of str, optional
        Nodes that must end up together in a single clique (the soft
        evidence "big clique").  They are connected pairwise.

    Raises
    ------
    NetworkValidationError
        If a forced node is not in the network.
    """
    graph = undirected_skeleton(network)

    for node_id in network.nodes:
        for a, b in combinations(network.parents(node_id), 2):
            graph.add_edge(a, b)

    forced = list(forced_clique or ())
    for node_id in forced:
        if node_id not in graph:
            raise NetworkValidationError(
                f"Node '{node_id}' of the forced clique is not in the network"
            )
    for a, b in combinations(forced, 2):
        graph.add_edge(a, b)

    return graph
