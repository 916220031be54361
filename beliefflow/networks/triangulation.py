"""Triangulation by greedy min-fill elimination.

Vertices are eliminated one at a time.  At each step the vertex whose
elimination adds the fewest fill-in edges is picked; ties go to the vertex
with fewer remaining neighbours, then to the one inserted first.  The
neighbours of an eliminated vertex are connected pairwise, and the union
of the input graph with all fill-in edges is chordal.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from itertools import combinations
from typing import Dict, List, Tuple

import networkx as nx

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Triangulation:
    """Result of :func:`triangulate`.

    Attributes
    ----------
    graph : networkx.Graph
        The chordal graph (input edges plus fill-in edges).
    fill_in : list of (str, str)
        Edges added during elimination, in the order they were added.
    elimination_order : list of str
        Vertices in the order they were eliminated.
    elimination_cliques : list of tuple of str
        For each eliminated vertex, the vertex followed by its neighbours
        at the time of elimination.
    """

    graph: nx.Graph
    fill_in: List[Tuple[str, str]]
    elimination_order: List[str]
    elimination_cliques: List[Tuple[str, ...]]


def _fill_in_count(graph: nx.Graph, node: str) -> int:
    neighbors = list(graph.neighbors(node))
    return sum(
        1 for a, b in combinations(neighbors, 2) if not graph.has_edge(a, b)
    )


def triangulate(graph: nx.Graph) -> Triangulation:
    """Triangulate *graph* with the min-fill heuristic.

    The input graph is not modified.
    """
    rank: Dict[str, int] = {n: i for i, n in enumerate(graph.nodes)}
    work = graph.copy()
    chordal = graph.copy()
    fill_in: List[Tuple[str, str]] = []
    order: List[str] = []
    cliques: List[Tuple[str, ...]] = []

    while work.number_of_nodes():
        node = min(
            work.nodes,
            key=lambda n: (_fill_in_count(work, n), work.degree(n), rank[n]),
        )
        neighbors = sorted(work.neighbors(node), key=rank.__getitem__)
        for a, b in combinations(neighbors, 2):
            if not work.has_edge(a, b):
                work.add_edge(a, b)
                chordal.add_edge(a, b)
                fill_in.append((a, b))
        cliques.append((node, *neighbors))
        order.append(node)
        work.remove_node(node)

    logger.debug(
        "Triangulated %d vertices with %d fill-in edges",
        len(order), len(fill_in),
    )
    return Triangulation(chordal, fill_in, order, cliques)
