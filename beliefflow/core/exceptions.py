"""Error taxonomy for BeliefFlow.

Input problems subclass :class:`ValueError` so callers can keep catching
the builtin; broken junction-tree invariants subclass :class:`RuntimeError`
because they point at a bug rather than at bad input.
"""


class BeliefFlowError(Exception):
    """Base class for every error raised by the library."""


class NetworkValidationError(BeliefFlowError, ValueError):
    """The network structure or one of its CPTs is malformed."""


class EvidenceError(BeliefFlowError, ValueError):
    """Hard or soft evidence does not fit the network."""


class QueryError(BeliefFlowError, ValueError):
    """A query references unknown nodes/states or cannot be answered."""


class JunctionTreeError(BeliefFlowError, RuntimeError):
    """An internal junction-tree or learning invariant does not hold."""
