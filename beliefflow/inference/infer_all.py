"""Marginals of every node in one call."""

from __future__ import annotations

from typing import Dict, Optional

from beliefflow.core.config import InferAllOptions
from beliefflow.core.evidence import as_soft_evidence, prepare_evidence
from beliefflow.core.types import Evidence, Node, RootCpt
from beliefflow.inference.junction_tree import query_probability, raw_infer
from beliefflow.networks.dag import BayesianNetwork

NetworkMarginals = Dict[str, Dict[str, float]]


def clamp_network(network: BayesianNetwork, given: Optional[Evidence]) -> BayesianNetwork:
    """Return a copy of *network* with every evidenced node clamped.

    A clamped node loses its parents and its CPT becomes the evidence
    distribution (``{s: 1, others: 0}`` for hard evidence, normalised
    weights for soft evidence), so that distribution is taken as given
    rather than weighed against the rest of the network.
    """
    clamped = {
        node_id: Node(
            node_id,
            network.states(node_id),
            parents=(),
            cpt=RootCpt(distribution),
        )
        for node_id, distribution in as_soft_evidence(network, given).items()
    }
    if not clamped:
        return network
    return network.with_nodes(clamped)


def infer_all(
    network: BayesianNetwork,
    given: Optional[Evidence] = None,
    options: Optional[InferAllOptions] = None,
) -> NetworkMarginals:
    """Compute ``P(node = state | given)`` for every node and state.

    Parameters
    ----------
    network : BayesianNetwork
        Network to query.
    given : mapping, optional
        Hard and/or soft evidence.
    options : InferAllOptions, optional
        ``force`` recomputes instead of reading the caches, ``precision``
        sets the rounding and ``clamp_soft_evidence`` clamps evidenced
        nodes first (see :func:`clamp_network`).

    Returns
    -------
    dict
        ``{node_id: {state: probability}}`` in network and state order.
        Hard-evidenced nodes report exactly 1 for the observed state and
        0 elsewhere.
    """
    options = options or InferAllOptions()
    split = prepare_evidence(network, given)

    if options.clamp_soft_evidence:
        target = clamp_network(network, given)
        raw = raw_infer(target, {}, use_cache=not options.force)
    else:
        raw = raw_infer(network, given, use_cache=not options.force)

    result: NetworkMarginals = {}
    for node_id in network.nodes:
        states = network.states(node_id)
        if node_id in split.hard:
            observed = split.hard[node_id]
            result[node_id] = {s: (1.0 if s == observed else 0.0) for s in states}
            continue
        result[node_id] = {
            s: round(query_probability(raw, {node_id: s}), options.precision)
            for s in states
        }
    return result
