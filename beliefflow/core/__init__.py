"""Core module for BeliefFlow.

Data model, evidence handling, option objects, potential tables and the
error taxonomy shared by every other sub-package.
"""

from .config import InferAllOptions, IPFPOptions, LearningOptions
from .evidence import SplitEvidence, as_soft_evidence, prepare_evidence
from .factor import FactorTable
from .types import ConditionalCpt, CptRow, Node, RootCpt, parse_cpt

__all__ = [
    "ConditionalCpt",
    "CptRow",
    "FactorTable",
    "InferAllOptions",
    "IPFPOptions",
    "LearningOptions",
    "Node",
    "RootCpt",
    "SplitEvidence",
    "as_soft_evidence",
    "parse_cpt",
    "prepare_evidence",
]
