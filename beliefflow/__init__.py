"""BeliefFlow: exact inference and parameter learning for discrete Bayesian networks.

Networks are immutable :class:`BayesianNetwork` objects.  Queries run on a
junction tree with hard evidence folded into the clique potentials and
soft evidence fitted into a "big clique" by iterative proportional
fitting; :func:`learning_from_evidence` estimates CPTs from (partially
hidden, possibly soft) observations with EM.
"""

try:
    from beliefflow._version import version as __version__
except ImportError:
    __version__ = "0.1.0"

from .core.exceptions import (
    BeliefFlowError,
    EvidenceError,
    JunctionTreeError,
    NetworkValidationError,
    QueryError,
)
from .core.types import ConditionalCpt, CptRow, Node, RootCpt
from .networks.dag import BayesianNetwork
from .inference.junction_tree import (
    clear_caches,
    evidence_probability,
    infer,
    raw_infer,
)
from .inference.infer_all import clamp_network, infer_all
from .learning.em import learn_in_epochs, learn_parameters, learning_from_evidence

__all__ = [
    "BayesianNetwork",
    "Node",
    "RootCpt",
    "ConditionalCpt",
    "CptRow",
    "infer",
    "raw_infer",
    "infer_all",
    "clamp_network",
    "clear_caches",
    "evidence_probability",
    "learning_from_evidence",
    "learn_parameters",
    "learn_in_epochs",
    "BeliefFlowError",
    "NetworkValidationError",
    "EvidenceError",
    "QueryError",
    "JunctionTreeError",
]
