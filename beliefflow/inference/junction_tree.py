"""Junction tree inference with hard and soft evidence.

:func:`raw_infer` runs the whole pipeline for one evidence set:

1. validate and split the evidence into hard and soft parts,
2. build (or reuse) the junction tree whose "big clique" holds every
   soft-evidenced node,
3. assemble the initial potentials with hard evidence folded in,
4. collect evidence towards the big clique,
5. fit the big clique to the soft evidence with IPFP,
6. distribute from the big clique and normalise every clique.

Soft evidence therefore acts as a target posterior for its variables
(Jeffrey's rule) rather than as an extra likelihood term.

The mass the potentials carry before normalisation gives the likelihood
of the evidence (:func:`evidence_probability`), which EM uses as its
stopping criterion.

:func:`infer` reads one probability out of the propagated state.
Results are memoised by network content and evidence value.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
from scipy.special import xlogy

from beliefflow.core.cache import ComputeOnceCache
from beliefflow.core.config import IPFPOptions
from beliefflow.core.evidence import prepare_evidence
from beliefflow.core.exceptions import JunctionTreeError, QueryError
from beliefflow.core.factor import FactorTable
from beliefflow.core.types import Combination, Evidence
from beliefflow.inference.ipfp import ipfp
from beliefflow.inference.potentials import Potentials, create_initial_potentials
from beliefflow.inference.propagation import (
    MessageCache,
    collect_evidence,
    component_roots,
    distribute_evidence,
)
from beliefflow.networks.dag import BayesianNetwork
from beliefflow.networks.junction_tree import (
    Clique,
    JunctionTree,
    clear_structure_cache,
    create_junction_tree,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RawInference:
    """Propagated, normalised clique potentials for one evidence set.

    Attributes
    ----------
    tree : JunctionTree
        The junction tree the evidence was propagated through.
    potentials : dict of str -> FactorTable
        Normalised clique potentials, keyed by clique id.
    log_evidence : float
        Log-likelihood of the evidence, ``-inf`` when it is impossible.
    """

    tree: JunctionTree
    potentials: Potentials
    log_evidence: float = 0.0

    @property
    def cliques(self):
        return self.tree.cliques

    @property
    def evidence_probability(self) -> float:
        return math.exp(self.log_evidence)

    def clique_rows(self, clique_id: str) -> List[Tuple[Dict[str, str], float]]:
        """Normalised potential of *clique_id* as ``(when, then)`` rows."""
        return list(self.potentials[clique_id].rows())


_POTENTIAL_CACHE: ComputeOnceCache[RawInference] = ComputeOnceCache(
    "clique potentials", maxsize=256
)


def find_big_clique(tree: JunctionTree, node_ids: Sequence[str]) -> Clique:
    """Return the first clique holding every node of *node_ids*.

    Raises
    ------
    JunctionTreeError
        If none does; the tree was not built for this node set.
    """
    candidates = tree.cliques_containing(node_ids)
    if not candidates:
        raise JunctionTreeError(
            f"No clique contains all soft-evidence nodes {list(node_ids)}"
        )
    return candidates[0]


def propagate(
    network: BayesianNetwork,
    given: Optional[Evidence] = None,
    ipfp_options: Optional[IPFPOptions] = None,
    structure_cache: bool = True,
) -> RawInference:
    """Run the full pipeline without memoising the resulting potentials.

    The junction tree is still shared through the structure cache unless
    *structure_cache* is false.
    """
    ipfp_options = ipfp_options or IPFPOptions()
    split = prepare_evidence(network, given)
    soft_nodes = split.soft_nodes
    tree = create_junction_tree(network, soft_nodes, use_cache=structure_cache)

    potentials = create_initial_potentials(tree, network, split.hard)
    messages = MessageCache()

    root = find_big_clique(tree, soft_nodes).id if soft_nodes else None
    potentials = collect_evidence(tree, potentials, messages, root)

    # After collect, each component root holds P(root clique, hard evidence)
    log_evidence = 0.0
    for component_root in component_roots(tree, root):
        if component_root != root:
            log_evidence += _log_mass(potentials[component_root])
    if root is not None:
        fitted = ipfp(
            potentials[root],
            split.soft,
            epsilon=ipfp_options.epsilon,
            max_iterations=ipfp_options.max_iterations,
        )
        log_evidence += soft_log_evidence(potentials[root], fitted, soft_nodes)
        potentials[root] = fitted
    potentials = distribute_evidence(tree, potentials, messages, root)

    normalized: Potentials = {}
    for clique_id, potential in potentials.items():
        potential = potential.normalize()
        potential.values.setflags(write=False)
        normalized[clique_id] = potential
    return RawInference(tree, normalized, log_evidence)


def _log_mass(potential: FactorTable) -> float:
    total = potential.total()
    return math.log(total) if total > 0 else -math.inf


def soft_log_evidence(
    collected: FactorTable,
    fitted: FactorTable,
    soft_nodes: Sequence[str],
) -> float:
    """Log-likelihood of the evidence held by the big clique.

    With ``p`` the collected mass of the soft nodes (joint with the hard
    evidence of their component) and ``q`` their fitted posterior, this
    is ``-KL(q || p) = sum(q * log(p / q))``.  Targets equal to the prior
    marginals reduce it to ``log P(hard evidence)``.  EM never decreases
    this quantity.
    """
    if collected.total() <= 0:
        return -math.inf
    prior = collected.marginalize_to(list(soft_nodes)).values
    posterior = fitted.marginalize_to(list(soft_nodes)).values
    return float(np.sum(xlogy(posterior, prior)) - np.sum(xlogy(posterior, posterior)))


def raw_infer(
    network: BayesianNetwork,
    given: Optional[Evidence] = None,
    use_cache: bool = True,
    ipfp_options: Optional[IPFPOptions] = None,
) -> RawInference:
    """Propagate *given* through *network* and return every clique potential.

    Parameters
    ----------
    network : BayesianNetwork
        Network to query.
    given : mapping, optional
        Hard (``{node: state}``) and/or soft (``{node: {state: weight}}``)
        evidence.  Not modified.
    use_cache : bool
        Reuse results computed earlier for an equal network and equal
        evidence.  Cached potentials are read-only.
    ipfp_options : IPFPOptions, optional
        Convergence settings for the soft-evidence fit.

    Returns
    -------
    RawInference
        The junction tree and its normalised clique potentials.

    Raises
    ------
    EvidenceError
        If *given* is invalid for *network*.
    """
    ipfp_options = ipfp_options or IPFPOptions()
    if not use_cache:
        return propagate(network, given, ipfp_options, structure_cache=False)

    # Validate first so bad evidence never reaches the cache
    split = prepare_evidence(network, given)
    key = (
        network.signature,
        split.key(),
        (ipfp_options.epsilon, ipfp_options.max_iterations),
    )
    return _POTENTIAL_CACHE.get_or_compute(
        key, lambda: propagate(network, given, ipfp_options)
    )


def query_probability(raw: RawInference, query: Combination) -> float:
    """Read ``P(query)`` out of propagated potentials.

    The smallest clique holding every queried node is used.

    Raises
    ------
    QueryError
        If a queried node or state is unknown, or no clique holds all the
        queried nodes.
    """
    if not query:
        return 1.0

    clique = raw.tree.smallest_clique_containing(query)
    if clique is None:
        known = {n for c in raw.tree.cliques for n in c.node_ids}
        unknown = [n for n in query if n not in known]
        if unknown:
            raise QueryError(f"Query refers to unknown node(s) {unknown}")
        raise QueryError(
            f"No single clique contains the query nodes {list(query)}"
        )

    potential = raw.potentials[clique.id]
    try:
        probability = potential.probability(query)
    except ValueError as exc:
        raise QueryError(str(exc)) from None
    if potential.total() <= 0:
        logger.warning(
            "Evidence has zero probability; returning 0 for query %s", dict(query)
        )
    return probability


def infer(
    network: BayesianNetwork,
    query: Combination,
    given: Optional[Evidence] = None,
    use_cache: bool = True,
) -> float:
    """Probability of the assignment *query* given the evidence.

    Examples
    --------
    >>> infer(sprinkler, {"RAIN": "T"}, {"GRASS_WET": "T"})  # doctest: +SKIP
    0.3577...
    """
    raw = raw_infer(network, given, use_cache=use_cache)
    return query_probability(raw, query)


def evidence_probability(
    network: BayesianNetwork,
    given: Optional[Evidence] = None,
    use_cache: bool = True,
) -> float:
    """Likelihood of *given* under *network*.

    For hard evidence this is ``P(given)``, the mass of the clique
    potentials before normalisation.  Each soft-evidenced group
    contributes ``exp(-KL(target || prior))`` on top, so evidence that
    only restates the prior scores 1.

    Examples
    --------
    >>> evidence_probability(sprinkler, {"GRASS_WET": "T"})  # doctest: +SKIP
    0.44838
    """
    return raw_infer(network, given, use_cache=use_cache).evidence_probability


def potential_cache_info():
    return _POTENTIAL_CACHE.cache_info()


def clear_caches() -> None:
    """Drop every memoised junction tree and propagation result."""
    _POTENTIAL_CACHE.clear()
    clear_structure_cache()
    logger.debug("Cleared inference caches")
