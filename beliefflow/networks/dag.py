"""Directed acyclic graph (DAG) based Bayesian network.

Provides :class:`BayesianNetwork`, an immutable, validated mapping of
node ids to :class:`~beliefflow.core.types.Node` objects.  The graph
structure is stored in a :class:`networkx.DiGraph`; every CPT is also
expanded once into a numpy table with axes ``[parent_0, ..., parent_k,
node]`` which the inference engine consumes through :meth:`factor`.

Networks never change after construction.  Methods such as
:meth:`BayesianNetwork.with_cpts` return a new network.
"""

from __future__ import annotations

import hashlib
import itertools
import json
import math
from collections import OrderedDict
from collections.abc import Mapping as MappingABC
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Tuple, Union

import networkx as nx
import numpy as np

from beliefflow.core.config import PROBABILITY_TOLERANCE
from beliefflow.core.exceptions import NetworkValidationError
from beliefflow.core.factor import FactorTable
from beliefflow.core.types import ConditionalCpt, Cpt, CptRow, Node, RootCpt


class BayesianNetwork(MappingABC):
    """Bayesian network backed by a :class:`networkx.DiGraph`.

    Parameters
    ----------
    nodes : iterable of Node, or mapping of id -> Node
        The network's nodes.  Parents may be listed after their children;
        insertion order is kept for iteration and tie-breaking.

    Raises
    ------
    NetworkValidationError
        If ids are duplicated, a parent is missing, the graph has a cycle,
        or a CPT is malformed (missing/duplicated parent contexts, unknown
        states, distributions not summing to one).

    Examples
    --------
    >>> bn = BayesianNetwork([
    ...     Node("A", ("a0", "a1"), cpt={"a0": 0.4, "a1": 0.6}),
    ...     Node("B", ("b0", "b1"), parents=("A",), cpt=[
    ...         {"when": {"A": "a0"}, "then": {"b0": 0.9, "b1": 0.1}},
    ...         {"when": {"A": "a1"}, "then": {"b0": 0.3, "b1": 0.7}},
    ...     ]),
    ... ])
    >>> bn.factor("B").variables
    ['A', 'B']
    """

    def __init__(self, nodes: Union[Iterable[Node], Mapping[str, Node]]) -> None:
        if isinstance(nodes, MappingABC):
            nodes = nodes.values()

        self._nodes: "OrderedDict[str, Node]" = OrderedDict()
        for node in nodes:
            if not isinstance(node, Node):
                raise NetworkValidationError(
                    f"Expected Node, got {type(node).__name__}"
                )
            if node.id in self._nodes:
                raise NetworkValidationError(f"Node '{node.id}' already exists")
            self._nodes[node.id] = node

        self._graph: nx.DiGraph = nx.DiGraph()
        self._graph.add_nodes_from(self._nodes)
        for node in self._nodes.values():
            self._validate_node_shape(node)
            for p in node.parents:
                self._graph.add_edge(p, node.id)

        if not nx.is_directed_acyclic_graph(self._graph):
            cycle = nx.find_cycle(self._graph)
            raise NetworkValidationError(
                f"Network contains a cycle: {[edge[0] for edge in cycle]}"
            )

        self._tables: Dict[str, np.ndarray] = {
            node_id: self._expand_cpt(node)
            for node_id, node in self._nodes.items()
        }
        self._signature: Union[str, None] = None

    # ------------------------------------------------------------------ #
    #  Construction helpers
    # ------------------------------------------------------------------ #

    @classmethod
    def from_dict(cls, data: Union[Mapping[str, Any], Iterable[Any]]) -> "BayesianNetwork":
        """Build a network from plain data.

        *data* is either ``{node_id: {"states", "parents", "cpt"}}`` or a
        list of ``{"id", "states", "parents", "cpt"}`` mappings.
        """
        if isinstance(data, MappingABC):
            return cls(
                Node.from_dict(spec, node_id=node_id)
                for node_id, spec in data.items()
            )
        return cls(Node.from_dict(spec) for spec in data)

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        """Return the plain ``{node_id: node_dict}`` form of the network."""
        return {node_id: node.to_dict() for node_id, node in self._nodes.items()}

    def with_cpts(self, cpts: Mapping[str, Cpt]) -> "BayesianNetwork":
        """Return a new network with the CPTs of some nodes replaced."""
        unknown = [n for n in cpts if n not in self._nodes]
        if unknown:
            raise NetworkValidationError(f"Unknown node(s) {unknown}")
        return BayesianNetwork(
            Node(node.id, node.states, node.parents, cpts[node.id])
            if node.id in cpts else node
            for node in self._nodes.values()
        )

    def with_nodes(self, replacements: Mapping[str, Node]) -> "BayesianNetwork":
        """Return a new network with some nodes replaced (same ids)."""
        unknown = [n for n in replacements if n not in self._nodes]
        if unknown:
            raise NetworkValidationError(f"Unknown node(s) {unknown}")
        return BayesianNetwork(
            replacements.get(node_id, node)
            for node_id, node in self._nodes.items()
        )

    def cpt_from_values(self, node_id: str, values: np.ndarray) -> Cpt:
        """Convert a table with axes ``[parents..., node]`` into a CPT."""
        node = self._nodes[node_id]
        values = np.asarray(values, dtype=np.float64)
        expected = tuple(len(self.states(p)) for p in node.parents) + (
            node.num_states,
        )
        if values.shape != expected:
            raise NetworkValidationError(
                f"Table for '{node_id}' has shape {values.shape}, "
                f"expected {expected}"
            )
        if not node.parents:
            return RootCpt(
                {s: float(v) for s, v in zip(node.states, values)}
            )

        rows = []
        parent_states = [self.states(p) for p in node.parents]
        for combo in itertools.product(*(range(len(s)) for s in parent_states)):
            when = {
                p: parent_states[i][combo[i]]
                for i, p in enumerate(node.parents)
            }
            then = {s: float(v) for s, v in zip(node.states, values[combo])}
            rows.append(CptRow(when=when, then=then))
        return ConditionalCpt(tuple(rows))

    # ------------------------------------------------------------------ #
    #  Validation
    # ------------------------------------------------------------------ #

    def _validate_node_shape(self, node: Node) -> None:
        if len(node.states) < 2:
            raise NetworkValidationError(
                f"Node '{node.id}' needs at least two states, got {list(node.states)}"
            )
        if len(set(node.states)) != len(node.states):
            raise NetworkValidationError(
                f"Node '{node.id}' has duplicate states {list(node.states)}"
            )
        if len(set(node.parents)) != len(node.parents):
            raise NetworkValidationError(
                f"Node '{node.id}' lists a parent more than once"
            )
        for p in node.parents:
            if p == node.id:
                raise NetworkValidationError(
                    f"Node '{node.id}' cannot be its own parent"
                )
            if p not in self._nodes:
                raise NetworkValidationError(
                    f"Parent '{p}' of node '{node.id}' is not in the network"
                )

    def _distribution_vector(
        self, node: Node, then: Mapping[str, float], context: str
    ) -> np.ndarray:
        unknown = [s for s in then if s not in node.states]
        if unknown:
            raise NetworkValidationError(
                f"CPT of '{node.id}'{context} has unknown state(s) {unknown}"
            )
        vector = np.array([then.get(s, 0.0) for s in node.states], dtype=np.float64)
        if not np.all(np.isfinite(vector)) or np.any(vector < 0):
            raise NetworkValidationError(
                f"CPT of '{node.id}'{context} must hold non-negative finite "
                f"probabilities, got {dict(then)}"
            )
        if abs(vector.sum() - 1.0) > PROBABILITY_TOLERANCE:
            raise NetworkValidationError(
                f"CPT of '{node.id}'{context} sums to {vector.sum():.6f}, "
                f"expected 1"
            )
        return vector

    def _expand_cpt(self, node: Node) -> np.ndarray:
        """Validate *node*'s CPT and return it as a dense table."""
        if not node.parents:
            if not isinstance(node.cpt, RootCpt):
                raise NetworkValidationError(
                    f"Node '{node.id}' has no parents and needs a flat "
                    f"state -> probability CPT"
                )
            table = self._distribution_vector(node, node.cpt.probabilities, "")
            table.setflags(write=False)
            return table

        if not isinstance(node.cpt, ConditionalCpt):
            raise NetworkValidationError(
                f"Node '{node.id}' has parents and needs a CPT made of "
                f"when/then rows"
            )

        parent_states = [self.states(p) for p in node.parents]
        shape = tuple(len(s) for s in parent_states) + (node.num_states,)
        table = np.zeros(shape, dtype=np.float64)
        seen = set()
        for row in node.cpt.rows:
            if set(row.when) != set(node.parents):
                raise NetworkValidationError(
                    f"CPT row of '{node.id}' must specify exactly the parents "
                    f"{list(node.parents)}, got {dict(row.when)}"
                )
            index = []
            for p, states in zip(node.parents, parent_states):
                state = row.when[p]
                if state not in states:
                    raise NetworkValidationError(
                        f"CPT row of '{node.id}' uses unknown state '{state}' "
                        f"of parent '{p}'"
                    )
                index.append(states.index(state))
            index = tuple(index)
            if index in seen:
                raise NetworkValidationError(
                    f"CPT of '{node.id}' lists context {dict(row.when)} twice"
                )
            seen.add(index)
            table[index] = self._distribution_vector(
                node, row.then, f" given {dict(row.when)}"
            )

        expected = math.prod(len(s) for s in parent_states)
        if len(seen) != expected:
            raise NetworkValidationError(
                f"CPT of '{node.id}' covers {len(seen)} of {expected} parent "
                f"contexts"
            )
        table.setflags(write=False)
        return table

    # ------------------------------------------------------------------ #
    #  Mapping protocol
    # ------------------------------------------------------------------ #

    def __getitem__(self, node_id: str) -> Node:
        return self._nodes[node_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._nodes)

    def __len__(self) -> int:
        return len(self._nodes)

    # ------------------------------------------------------------------ #
    #  Queries
    # ------------------------------------------------------------------ #

    @property
    def nodes(self) -> List[str]:
        """Return node ids in insertion order."""
        return list(self._nodes)

    @property
    def edges(self) -> List[Tuple[str, str]]:
        """Return directed edges as (parent, child) tuples."""
        return list(self._graph.edges())

    @property
    def graph(self) -> nx.DiGraph:
        """Return a copy of the underlying directed graph."""
        return self._graph.copy()

    def topological_order(self) -> List[str]:
        return list(nx.topological_sort(self._graph))

    def states(self, node_id: str) -> Tuple[str, ...]:
        """Return the state labels for a node."""
        return self._nodes[node_id].states

    def parents(self, node_id: str) -> Tuple[str, ...]:
        return self._nodes[node_id].parents

    def children(self, node_id: str) -> List[str]:
        return list(self._graph.successors(node_id))

    def family(self, node_id: str) -> Tuple[str, ...]:
        """Return ``(parents..., node_id)``, the CPT factor's scope."""
        return self._nodes[node_id].family

    def factor(self, node_id: str) -> FactorTable:
        """Return the CPT of *node_id* as a factor over its family."""
        family = self.family(node_id)
        return FactorTable(
            family,
            [self.states(n) for n in family],
            self._tables[node_id],
        )

    @property
    def signature(self) -> str:
        """Content hash of the network (structure, states and CPTs)."""
        if self._signature is None:
            payload = json.dumps(self.to_dict(), sort_keys=True)
            self._signature = hashlib.sha256(payload.encode("utf-8")).hexdigest()
        return self._signature

    @property
    def structure_signature(self) -> str:
        """Hash of node ids and parent lists only.

        Networks that differ only in their CPTs share this value, and so
        share a junction tree.
        """
        payload = json.dumps(
            [[node_id, list(node.parents)] for node_id, node in self._nodes.items()]
        )
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()

    def __repr__(self) -> str:
        return (
            f"BayesianNetwork(nodes={self.nodes}, "
            f"edges={self.edges})"
        )
