"""Clique extraction and junction-tree construction.

Pipeline for a network and an optional "big clique" node set:

1. :func:`~beliefflow.networks.moral.moralize` (forcing the big clique),
2. :func:`~beliefflow.networks.triangulation.triangulate`,
3. :func:`maximal_cliques` from the elimination cliques,
4. :func:`build_junction_tree` – a maximum-weight spanning forest over
   clique pairs weighted by the size of their intersection.

Tie-break: clique pairs are inserted in lexicographic order of their
clique indices and networkx's Kruskal sorts them stably by weight, so
among equally heavy candidate edges the one with the lowest index pair
wins.  This may change which separator is chosen, never correctness.

Results are memoised per ``(structure signature, big clique node set)``
since they depend only on the graph, not on CPT values or evidence.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from itertools import combinations
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple

import networkx as nx

from beliefflow.core.cache import ComputeOnceCache
from beliefflow.core.exceptions import JunctionTreeError
from beliefflow.networks.dag import BayesianNetwork
from beliefflow.networks.moral import moralize
from beliefflow.networks.triangulation import Triangulation, triangulate

logger = logging.getLogger(__name__)

_STRUCTURE_CACHE: ComputeOnceCache["JunctionTree"] = ComputeOnceCache(
    "junction tree", maxsize=64
)


@dataclass(frozen=True)
class Clique:
    """A maximal clique of the triangulated graph."""

    id: str
    node_ids: Tuple[str, ...]

    def __contains__(self, node_id: str) -> bool:
        return node_id in self.node_ids

    def contains_all(self, node_ids: Iterable[str]) -> bool:
        return all(n in self.node_ids for n in node_ids)

    def __len__(self) -> int:
        return len(self.node_ids)


@dataclass(frozen=True)
class SepSet:
    """Separator between two adjacent cliques of the junction tree."""

    clique_a: str
    clique_b: str
    shared_nodes: Tuple[str, ...]

    @property
    def key(self) -> FrozenSet[str]:
        return frozenset((self.clique_a, self.clique_b))


class JunctionTree:
    """A tree (or forest) of cliques satisfying running intersection.

    Parameters
    ----------
    cliques : list of Clique
        Cliques ordered by index; ``cliques[i].id == str(i)``.
    sepsets : list of SepSet
        One separator per tree edge.
    graph : networkx.Graph
        Tree/forest over clique ids.
    triangulation : Triangulation, optional
        The chordal graph the cliques were read from.
    big_clique_nodes : tuple of str
        Nodes forced into a common clique during moralization.
    """

    def __init__(
        self,
        cliques: Sequence[Clique],
        sepsets: Sequence[SepSet],
        graph: nx.Graph,
        triangulation: Optional[Triangulation] = None,
        big_clique_nodes: Tuple[str, ...] = (),
    ) -> None:
        self.cliques: List[Clique] = list(cliques)
        self.sepsets: List[SepSet] = list(sepsets)
        self.graph = graph
        self.triangulation = triangulation
        self.big_clique_nodes = tuple(big_clique_nodes)
        self._index: Dict[str, int] = {c.id: i for i, c in enumerate(self.cliques)}
        self._sepsets: Dict[FrozenSet[str], SepSet] = {s.key: s for s in self.sepsets}

    # ----- lookups ----------------------------------------------------------

    def clique(self, clique_id: str) -> Clique:
        return self.cliques[self._index[clique_id]]

    def neighbors(self, clique_id: str) -> List[str]:
        """Adjacent clique ids, ordered by clique index."""
        return sorted(self.graph.neighbors(clique_id), key=self._index.__getitem__)

    def sepset(self, clique_a: str, clique_b: str) -> SepSet:
        """Return the separator of an edge.

        Raises
        ------
        JunctionTreeError
            If the two cliques are not adjacent.
        """
        try:
            return self._sepsets[frozenset((clique_a, clique_b))]
        except KeyError:
            raise JunctionTreeError(
                f"SepSet not found for cliques '{clique_a}' and '{clique_b}'"
            ) from None

    def components(self) -> List[List[str]]:
        """Connected components as lists of clique ids (index order).

        Components are ordered by their lowest clique index, so the first
        id of each list is its default root.
        """
        components = [
            sorted(ids, key=self._index.__getitem__)
            for ids in nx.connected_components(self.graph)
        ]
        components.sort(key=lambda ids: self._index[ids[0]])
        return components

    def cliques_containing(self, node_ids: Iterable[str]) -> List[Clique]:
        node_ids = list(node_ids)
        return [c for c in self.cliques if c.contains_all(node_ids)]

    def smallest_clique_containing(self, node_ids: Iterable[str]) -> Optional[Clique]:
        """The clique with fewest nodes holding all *node_ids* (lowest index on ties)."""
        candidates = self.cliques_containing(node_ids)
        if not candidates:
            return None
        return min(candidates, key=lambda c: (len(c), self._index[c.id]))

    def __len__(self) -> int:
        return len(self.cliques)

    def __repr__(self) -> str:
        return (
            f"JunctionTree(cliques={[c.node_ids for c in self.cliques]}, "
            f"edges={[(s.clique_a, s.clique_b) for s in self.sepsets]})"
        )


# ------------------------------------------------------------------ #
#  Construction
# ------------------------------------------------------------------ #

def maximal_cliques(triangulation: Triangulation) -> List[Clique]:
    """Extract the maximal cliques of a triangulated graph.

    Every elimination clique that is not contained in another one is
    maximal.  Clique ids are ``"0"``, ``"1"``, ... in elimination order
    and each clique lists its nodes in graph insertion order.
    """
    rank = {n: i for i, n in enumerate(triangulation.graph.nodes)}
    candidates = [frozenset(c) for c in triangulation.elimination_cliques]

    kept: List[FrozenSet[str]] = []
    for candidate in candidates:
        if candidate in kept or any(candidate < other for other in candidates):
            continue
        kept.append(candidate)

    return [
        Clique(str(i), tuple(sorted(nodes, key=rank.__getitem__)))
        for i, nodes in enumerate(kept)
    ]


def build_junction_tree(
    cliques: Sequence[Clique],
    triangulation: Optional[Triangulation] = None,
    big_clique_nodes: Tuple[str, ...] = (),
) -> JunctionTree:
    """Connect *cliques* into a maximum-weight spanning forest.

    The weight of a clique pair is the number of nodes they share; pairs
    sharing nothing are never connected, so disconnected networks give
    one tree per component.
    """
    weighted = nx.Graph()
    weighted.add_nodes_from(c.id for c in cliques)
    for a, b in combinations(cliques, 2):
        shared = set(a.node_ids) & set(b.node_ids)
        if shared:
            weighted.add_edge(a.id, b.id, weight=len(shared))

    tree = nx.maximum_spanning_tree(weighted, weight="weight", algorithm="kruskal")

    index = {c.id: i for i, c in enumerate(cliques)}
    by_id = {c.id: c for c in cliques}
    sepsets: List[SepSet] = []
    for u, v in sorted(
        (tuple(sorted(edge, key=index.__getitem__)) for edge in tree.edges()),
        key=lambda edge: (index[edge[0]], index[edge[1]]),
    ):
        shared = set(by_id[u].node_ids) & set(by_id[v].node_ids)
        sepsets.append(SepSet(u, v, tuple(sorted(shared))))

    return JunctionTree(cliques, sepsets, tree, triangulation, big_clique_nodes)


def _create_junction_tree(
    network: BayesianNetwork, big_clique_nodes: Tuple[str, ...]
) -> JunctionTree:
    moral = moralize(network, big_clique_nodes)
    triangulation = triangulate(moral)
    cliques = maximal_cliques(triangulation)
    tree = build_junction_tree(cliques, triangulation, big_clique_nodes)
    logger.debug(
        "Built junction tree with %d cliques and %d separators "
        "(big clique nodes: %s)",
        len(tree.cliques), len(tree.sepsets), list(big_clique_nodes),
    )
    return tree


def create_junction_tree(
    network: BayesianNetwork,
    big_clique_nodes: Iterable[str] = (),
    use_cache: bool = True,
) -> JunctionTree:
    """Return the junction tree of *network*.

    Parameters
    ----------
    network : BayesianNetwork
        Source network.
    big_clique_nodes : iterable of str
        Nodes that must share one clique (the soft-evidence nodes).
    use_cache : bool
        Reuse a tree built earlier for the same structure and node set.

    Raises
    ------
    NetworkValidationError
        If a big clique node is not in the network.
    """
    nodes = tuple(n for n in dict.fromkeys(big_clique_nodes))
    if not use_cache:
        return _create_junction_tree(network, nodes)
    key = (network.structure_signature, frozenset(nodes))
    return _STRUCTURE_CACHE.get_or_compute(
        key, lambda: _create_junction_tree(network, nodes)
    )


def clear_structure_cache() -> None:
    _STRUCTURE_CACHE.clear()


def structure_cache_info():
    return _STRUCTURE_CACHE.cache_info()


def has_running_intersection(tree: JunctionTree) -> bool:
    """Check the running-intersection property of *tree*.

    For every node, the cliques containing it must form a connected
    subtree.
    """
    nodes = {n for c in tree.cliques for n in c.node_ids}
    for node_id in nodes:
        holding = [c.id for c in tree.cliques if node_id in c]
        if not nx.is_connected(tree.graph.subgraph(holding)):
            return False
    return True
