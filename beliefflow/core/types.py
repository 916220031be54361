"""Core types for BeliefFlow Bayesian networks.

A node's conditional probability table is an explicit tagged variant:

* :class:`RootCpt` – a flat ``state -> probability`` mapping for nodes
  without parents.
* :class:`ConditionalCpt` – an ordered list of :class:`CptRow` entries,
  one per combination of parent states.

:func:`parse_cpt` converts the plain JSON-style union (a mapping or a list
of ``{"when": ..., "then": ...}`` rows) into the variant.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from beliefflow.core.exceptions import NetworkValidationError

# A (partial) assignment of states to nodes: {node_id: state}
Combination = Mapping[str, str]

# Hard evidence is a state label, soft evidence a {state: weight} mapping
EvidenceValue = Union[str, Mapping[str, float]]
Evidence = Mapping[str, EvidenceValue]


# ---------------------------------------------------------------------------
# Conditional probability tables
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RootCpt:
    """Prior distribution of a node without parents."""

    probabilities: Dict[str, float]

    def to_raw(self) -> Dict[str, float]:
        return dict(self.probabilities)


@dataclass(frozen=True)
class CptRow:
    """One parent context of a :class:`ConditionalCpt`."""

    when: Dict[str, str]
    then: Dict[str, float]


@dataclass(frozen=True)
class ConditionalCpt:
    """Distribution of a node for every combination of parent states."""

    rows: Tuple[CptRow, ...] = field(default_factory=tuple)

    def to_raw(self) -> List[Dict[str, Dict[str, Any]]]:
        return [
            {"when": dict(row.when), "then": dict(row.then)}
            for row in self.rows
        ]


Cpt = Union[RootCpt, ConditionalCpt]


def parse_cpt(raw: Any) -> Cpt:
    """Build a :class:`RootCpt` or :class:`ConditionalCpt` from plain data.

    Parameters
    ----------
    raw : RootCpt, ConditionalCpt, mapping or sequence
        A ``{state: probability}`` mapping yields a :class:`RootCpt`; a
        sequence of ``{"when": {...}, "then": {...}}`` rows (or
        :class:`CptRow` objects) yields a :class:`ConditionalCpt`.

    Raises
    ------
    NetworkValidationError
        If *raw* has neither shape.
    """
    if isinstance(raw, (RootCpt, ConditionalCpt)):
        return raw
    if isinstance(raw, Mapping):
        return RootCpt({str(k): float(v) for k, v in raw.items()})
    if isinstance(raw, Sequence) and not isinstance(raw, str):
        rows = []
        for entry in raw:
            if isinstance(entry, CptRow):
                rows.append(entry)
                continue
            if not isinstance(entry, Mapping) or "when" not in entry or "then" not in entry:
                raise NetworkValidationError(
                    f"CPT rows must have 'when' and 'then' keys, got {entry!r}"
                )
            rows.append(
                CptRow(
                    when={str(k): str(v) for k, v in entry["when"].items()},
                    then={str(k): float(v) for k, v in entry["then"].items()},
                )
            )
        return ConditionalCpt(tuple(rows))
    raise NetworkValidationError(
        f"Unsupported CPT of type {type(raw).__name__}"
    )


# ---------------------------------------------------------------------------
# Nodes
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Node:
    """A discrete random variable of a Bayesian network.

    Parameters
    ----------
    id : str
        Unique identifier.
    states : tuple of str
        Ordered state labels; the order fixes table indexing.
    parents : tuple of str
        Identifiers of the parent nodes.
    cpt : RootCpt or ConditionalCpt
        The node's conditional probability table.
    """

    id: str
    states: Tuple[str, ...]
    parents: Tuple[str, ...] = ()
    cpt: Cpt = field(default_factory=lambda: RootCpt({}))

    def __post_init__(self) -> None:
        object.__setattr__(self, "states", tuple(self.states))
        object.__setattr__(self, "parents", tuple(self.parents))
        object.__setattr__(self, "cpt", parse_cpt(self.cpt))

    @property
    def num_states(self) -> int:
        return len(self.states)

    @property
    def family(self) -> Tuple[str, ...]:
        """Parents followed by the node itself (CPT axis order)."""
        return self.parents + (self.id,)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "states": list(self.states),
            "parents": list(self.parents),
            "cpt": self.cpt.to_raw(),
        }

    @classmethod
    def from_dict(
        cls, data: Mapping[str, Any], node_id: Optional[str] = None
    ) -> "Node":
        """Build a node from its plain ``{id, states, parents, cpt}`` form."""
        try:
            return cls(
                id=str(data.get("id", node_id)),
                states=tuple(str(s) for s in data["states"]),
                parents=tuple(str(p) for p in data.get("parents", ())),
                cpt=data["cpt"],
            )
        except KeyError as exc:
            raise NetworkValidationError(
                f"Node '{data.get('id', node_id)}' is missing field {exc}"
            ) from exc
