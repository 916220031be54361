"""Two-pass (collect / distribute) message passing over a junction tree.

A message from clique *src* to clique *trg* is *src*'s potential summed
onto their separator.  If a message already crossed that edge (in either
direction) the new one is divided by it before being multiplied into
*trg*, so evidence absorbed earlier is not counted twice.  Division by a
zero cell yields zero.

Traversals use an explicit stack, and every connected component of a
junction forest is processed on its own.
"""

from __future__ import annotations

import logging
from typing import Dict, FrozenSet, List, Optional, Tuple

from beliefflow.core.factor import FactorTable
from beliefflow.inference.potentials import Potentials
from beliefflow.networks.junction_tree import JunctionTree

logger = logging.getLogger(__name__)


class MessageCache:
    """Last message sent over each junction tree edge.

    Keyed by the unordered clique pair; a fresh cache is used for every
    inference call.
    """

    def __init__(self) -> None:
        self._messages: Dict[FrozenSet[str], FactorTable] = {}

    def get(self, clique_a: str, clique_b: str) -> Optional[FactorTable]:
        return self._messages.get(frozenset((clique_a, clique_b)))

    def set(self, clique_a: str, clique_b: str, message: FactorTable) -> None:
        self._messages[frozenset((clique_a, clique_b))] = message

    def __contains__(self, pair) -> bool:
        return frozenset(pair) in self._messages

    def __len__(self) -> int:
        return len(self._messages)


# ------------------------------------------------------------------ #
#  Single message
# ------------------------------------------------------------------ #

def pass_message(
    tree: JunctionTree,
    potentials: Potentials,
    messages: MessageCache,
    src: str,
    trg: str,
) -> None:
    """Send a message from *src* to *trg*, updating *potentials* in place.

    Raises
    ------
    JunctionTreeError
        If *src* and *trg* are not adjacent.
    """
    sepset = tree.sepset(src, trg)
    marginal = potentials[src].marginalize_to(sepset.shared_nodes)

    prior = messages.get(src, trg)
    message = marginal.divide(prior) if prior is not None else marginal

    potentials[trg] = potentials[trg].multiply(message)
    messages.set(src, trg, marginal)


# ------------------------------------------------------------------ #
#  Traversals
# ------------------------------------------------------------------ #

def _preorder(tree: JunctionTree, root: str) -> List[Tuple[str, Optional[str]]]:
    """Depth-first ``(clique, parent)`` pairs reachable from *root*."""
    order: List[Tuple[str, Optional[str]]] = []
    stack: List[Tuple[str, Optional[str]]] = [(root, None)]
    while stack:
        clique_id, parent = stack.pop()
        order.append((clique_id, parent))
        # Reversed so the lowest-index neighbour is visited first
        for neighbor in reversed(tree.neighbors(clique_id)):
            if neighbor != parent:
                stack.append((neighbor, clique_id))
    return order


def component_roots(tree: JunctionTree, root: Optional[str]) -> List[str]:
    """First clique of every component, or *root* in the one holding it."""
    roots = []
    for component in tree.components():
        roots.append(root if root is not None and root in component else component[0])
    return roots


def collect_evidence(
    tree: JunctionTree,
    potentials: Potentials,
    messages: MessageCache,
    root: Optional[str] = None,
) -> Potentials:
    """Leaves-to-root pass in every component.

    Parameters
    ----------
    tree : JunctionTree
        Tree or forest to traverse.
    potentials : dict of str -> FactorTable
        Current clique potentials; not modified.
    messages : MessageCache
        Updated with the messages sent.
    root : str, optional
        Root of the component containing it; other components use their
        lowest-index clique.

    Returns
    -------
    dict of str -> FactorTable
        New potentials after the pass.
    """
    result = dict(potentials)
    for component_root in component_roots(tree, root):
        logger.debug("Collecting evidence towards clique %s", component_root)
        for clique_id, parent in reversed(_preorder(tree, component_root)):
            if parent is not None:
                pass_message(tree, result, messages, clique_id, parent)
    return result


def distribute_evidence(
    tree: JunctionTree,
    potentials: Potentials,
    messages: MessageCache,
    root: Optional[str] = None,
) -> Potentials:
    """Root-to-leaves pass in every component (see :func:`collect_evidence`)."""
    result = dict(potentials)
    for component_root in component_roots(tree, root):
        logger.debug("Distributing evidence from clique %s", component_root)
        for clique_id, parent in _preorder(tree, component_root):
            if parent is not None:
                pass_message(tree, result, messages, parent, clique_id)
    return result
