"""Network structure: the DAG, its moral graph, triangulation and junction tree."""

from beliefflow.networks.dag import BayesianNetwork
from beliefflow.networks.junction_tree import (
    Clique,
    JunctionTree,
    SepSet,
    create_junction_tree,
    has_running_intersection,
)
from beliefflow.networks.moral import moralize, undirected_skeleton
from beliefflow.networks.triangulation import Triangulation, triangulate

__all__ = [
    "BayesianNetwork",
    "Clique",
    "JunctionTree",
    "SepSet",
    "Triangulation",
    "create_junction_tree",
    "has_running_intersection",
    "moralize",
    "triangulate",
    "undirected_skeleton",
]
