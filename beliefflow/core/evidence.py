"""Evidence validation and normalisation.

Evidence maps node ids either to a state label (hard evidence) or to a
``{state: weight}`` mapping (soft evidence).  :func:`prepare_evidence`
validates it against a network and splits it into new hard/soft maps;
the caller's mapping is never modified.

Hard evidence for state ``s`` is equivalent to soft evidence
``{s: 1, others: 0}``.  Soft weights are normalised to sum to one and
states missing from a soft mapping get weight zero.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from numbers import Real
from typing import TYPE_CHECKING, Dict, Hashable, Mapping, Optional, Tuple

from beliefflow.core.exceptions import EvidenceError
from beliefflow.core.types import Evidence

if TYPE_CHECKING:
    from beliefflow.networks.dag import BayesianNetwork


@dataclass(frozen=True)
class SplitEvidence:
    """Validated evidence split into hard and normalised soft parts."""

    hard: Dict[str, str] = field(default_factory=dict)
    soft: Dict[str, Dict[str, float]] = field(default_factory=dict)

    @property
    def soft_nodes(self) -> Tuple[str, ...]:
        return tuple(self.soft)

    def key(self) -> Hashable:
        """Return a hashable value identifying this evidence by content."""
        hard = tuple(sorted(self.hard.items()))
        soft = tuple(
            (node_id, tuple(sorted(weights.items())))
            for node_id, weights in sorted(self.soft.items())
        )
        return hard, soft


def normalize_soft_evidence(
    node_id: str,
    states: Tuple[str, ...],
    weights: Mapping[str, float],
) -> Dict[str, float]:
    """Validate one soft-evidence entry and normalise it over *states*.

    Raises
    ------
    EvidenceError
        If a weight belongs to an unknown state, is negative or not
        finite, or if the weights sum to zero.
    """
    unknown = [s for s in weights if s not in states]
    if unknown:
        raise EvidenceError(
            f"Soft evidence for '{node_id}' has unknown state(s) {unknown}. "
            f"Valid states: {list(states)}"
        )

    raw: Dict[str, float] = {}
    for state in states:
        value = weights.get(state, 0.0)
        if isinstance(value, bool) or not isinstance(value, Real):
            raise EvidenceError(
                f"Soft evidence for '{node_id}' state '{state}' must be a "
                f"number, got {value!r}"
            )
        value = float(value)
        if not math.isfinite(value) or value < 0:
            raise EvidenceError(
                f"Soft evidence for '{node_id}' state '{state}' must be a "
                f"non-negative finite number, got {value}"
            )
        raw[state] = value

    total = sum(raw.values())
    if total <= 0:
        raise EvidenceError(
            f"Soft evidence for '{node_id}' has zero total weight across states"
        )
    return {state: value / total for state, value in raw.items()}


def prepare_evidence(
    network: "BayesianNetwork",
    given: Optional[Evidence] = None,
) -> SplitEvidence:
    """Validate *given* against *network* and split it into hard/soft maps.

    Parameters
    ----------
    network : BayesianNetwork
        Network used to resolve node ids and state labels.
    given : mapping, optional
        ``{node_id: state}`` and/or ``{node_id: {state: weight}}`` entries.

    Returns
    -------
    SplitEvidence
        New hard and soft maps; soft maps hold normalised weights for
        every state of the node, in the node's state order.

    Raises
    ------
    EvidenceError
        On unknown node ids, unknown hard states or invalid soft weights.
    """
    hard: Dict[str, str] = {}
    soft: Dict[str, Dict[str, float]] = {}
    if not given:
        return SplitEvidence(hard, soft)

    for node_id, value in given.items():
        if node_id not in network:
            raise EvidenceError(f"Evidence refers to unknown node '{node_id}'")
        states = network.states(node_id)

        if isinstance(value, str):
            if value not in states:
                raise EvidenceError(
                    f"Hard evidence for '{node_id}' has unknown state "
                    f"'{value}'. Valid states: {list(states)}"
                )
            hard[node_id] = value
        elif isinstance(value, Mapping):
            soft[node_id] = normalize_soft_evidence(node_id, states, value)
        else:
            raise EvidenceError(
                f"Evidence for '{node_id}' must be a state label or a "
                f"mapping of state weights, got {type(value).__name__}"
            )

    return SplitEvidence(hard, soft)


def as_soft_evidence(
    network: "BayesianNetwork",
    given: Optional[Evidence] = None,
) -> Dict[str, Dict[str, float]]:
    """Return every evidence entry as a normalised soft distribution.

    Hard evidence ``s`` becomes ``{s: 1.0, others: 0.0}``.
    """
    split = prepare_evidence(network, given)
    result = {
        node_id: {s: (1.0 if s == state else 0.0) for s in network.states(node_id)}
        for node_id, state in split.hard.items()
    }
    result.update({node_id: dict(w) for node_id, w in split.soft.items()})
    return result
