"""Initial clique potentials.

Every node's CPT factor is assigned to exactly one clique covering its
family (the node and its parents), preferring the smallest such clique.
A clique potential is the product of its assigned factors, broadcast over
the clique's nodes, with cells inconsistent with hard evidence set to 0.
"""

from __future__ import annotations

from typing import Dict, List, Mapping, Optional, Sequence

from beliefflow.core.exceptions import JunctionTreeError
from beliefflow.core.factor import FactorTable
from beliefflow.networks.dag import BayesianNetwork
from beliefflow.networks.junction_tree import Clique, JunctionTree

Potentials = Dict[str, FactorTable]


def assign_factors(
    cliques: Sequence[Clique],
    network: BayesianNetwork,
) -> Dict[str, List[str]]:
    """Map each clique id to the node ids whose CPT factor it holds.

    Ties between equally small covering cliques go to the lowest clique
    index.

    Raises
    ------
    JunctionTreeError
        If some node's family is not covered by any clique.
    """
    assignment: Dict[str, List[str]] = {c.id: [] for c in cliques}
    for node_id in network.nodes:
        family = network.family(node_id)
        covering = [
            (len(c), i, c.id) for i, c in enumerate(cliques) if c.contains_all(family)
        ]
        if not covering:
            raise JunctionTreeError(
                f"No clique contains the family {list(family)} of '{node_id}'"
            )
        assignment[min(covering)[2]].append(node_id)
    return assignment


def create_initial_potentials(
    tree: JunctionTree,
    network: BayesianNetwork,
    hard_evidence: Optional[Mapping[str, str]] = None,
) -> Potentials:
    """Build one potential per clique before any message passing.

    Parameters
    ----------
    tree : JunctionTree
        Cliques of *network*.
    network : BayesianNetwork
        Supplies the CPT factors.
    hard_evidence : mapping, optional
        ``{node_id: state}``; inconsistent cells are zeroed.

    Returns
    -------
    dict of str -> FactorTable
        Fresh potentials keyed by clique id, axes in clique node order.
    """
    hard_evidence = hard_evidence or {}
    assignment = assign_factors(tree.cliques, network)

    potentials: Potentials = {}
    for clique in tree.cliques:
        potential = FactorTable.ones(
            clique.node_ids, [network.states(n) for n in clique.node_ids]
        )
        for node_id in assignment[clique.id]:
            potential = potential.multiply(network.factor(node_id))
        for node_id, state in hard_evidence.items():
            if node_id in clique:
                potential = potential.restrict(node_id, state)
        potentials[clique.id] = potential
    return potentials
