"""Inference algorithms for BeliefFlow."""

from beliefflow.inference.infer_all import clamp_network, infer_all
from beliefflow.inference.ipfp import ipfp, variable_marginal
from beliefflow.inference.junction_tree import (
    RawInference,
    clear_caches,
    evidence_probability,
    infer,
    query_probability,
    raw_infer,
)

__all__ = [
    "RawInference",
    "clamp_network",
    "clear_caches",
    "evidence_probability",
    "infer",
    "infer_all",
    "ipfp",
    "query_probability",
    "raw_infer",
    "variable_marginal",
]
