"""Graphviz rendering of Bayesian networks and their junction trees.

:func:`plot_network` draws the DAG.

Node types
----------
* **observed** (hard evidence) – gray filled box.
* **soft** (soft evidence) – dashed light-blue box.
* **query** – bold outline.
* **latent** – ellipse (default Graphviz shape).

Edge labels can optionally show the number of parent contexts of the
child's CPT, and the *critical path* (longest dependency chain) can be
highlighted in red.

:func:`plot_junction_tree` draws the clique tree with separator labels
and can highlight one clique (typically the soft-evidence "big clique").
"""

from __future__ import annotations

import os
from typing import Dict, Iterable, Optional, Set, Tuple, Union

import graphviz
import networkx as nx

from beliefflow.core.evidence import prepare_evidence
from beliefflow.core.types import Evidence
from beliefflow.networks.dag import BayesianNetwork
from beliefflow.networks.junction_tree import JunctionTree


def _node_id(name: str) -> str:
    """Return a sanitised Graphviz node identifier."""
    return name.replace(" ", "_").replace("-", "_")


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------

def _output_format(output: str) -> Tuple[bool, str]:
    """Return ``(write_dot_source, render_format)`` for *output*."""
    _, ext = os.path.splitext(output)
    ext = ext.lstrip(".").lower()
    return ext in ("dot", "gv"), (ext if ext in ("png", "svg") else "png")


def _render(dot: Union[graphviz.Digraph, graphviz.Graph], output: str) -> None:
    is_dot_format, render_format = _output_format(output)
    if is_dot_format:
        # Write raw DOT source
        with open(output, "w") as fh:
            fh.write(dot.source)
        return
    # graphviz appends the format extension itself
    base = output
    if output.endswith(f".{render_format}"):
        base = output[: -len(render_format) - 1]
    dot.render(filename=base, cleanup=True)


def _add_legend(dot: graphviz.Digraph) -> None:
    """Append a legend sub-graph explaining node types."""
    with dot.subgraph(name="cluster_legend") as legend:
        legend.attr(label="Legend", style="dashed", fontsize="10")
        legend.node(
            "_legend_observed",
            "Observed",
            shape="box",
            style="filled",
            fillcolor="lightgray",
        )
        legend.node(
            "_legend_soft",
            "Soft evidence",
            shape="box",
            style="filled,dashed",
            fillcolor="lightblue",
        )
        legend.node(
            "_legend_query",
            "Query",
            shape="ellipse",
            style="bold",
            penwidth="3",
        )
        legend.node("_legend_latent", "Latent", shape="ellipse")
        # Invisible edges to stack legend items vertically
        legend.edge("_legend_observed", "_legend_soft", style="invis")
        legend.edge("_legend_soft", "_legend_query", style="invis")
        legend.edge("_legend_query", "_legend_latent", style="invis")


# ---------------------------------------------------------------------------
# Main public API
# ---------------------------------------------------------------------------

def plot_network(
    network: BayesianNetwork,
    evidence: Optional[Evidence] = None,
    query: Iterable[str] = (),
    output: str = "graph.png",
    highlight_critical_path: bool = False,
    show_contexts: bool = False,
) -> graphviz.Digraph:
    """Render a Bayesian network as a Graphviz DAG.

    Parameters
    ----------
    network : BayesianNetwork
        The network to draw.
    evidence : mapping, optional
        Hard-evidenced nodes are drawn as observed, soft-evidenced ones
        as soft.
    query : iterable of str
        Nodes drawn as query nodes.
    output : str, default ``"graph.png"``
        File path for the rendered output.  The extension determines the
        format: ``.png``, ``.svg``, or ``.dot`` / ``.gv``.
    highlight_critical_path : bool, default ``False``
        When ``True``, the longest dependency chain is drawn in red.
    show_contexts : bool, default ``False``
        Label each edge with the number of parent contexts in the child's
        CPT.

    Returns
    -------
    graphviz.Digraph
        The Graphviz Digraph object (also saved to *output*).
    """
    split = prepare_evidence(network, evidence)
    query = set(query)
    _, render_format = _output_format(output)

    dot = graphviz.Digraph(format=render_format, engine="dot")
    dot.attr(rankdir="TB")
    dot.attr("graph", nodesep="0.5", ranksep="0.75")

    crit_nodes: Set[str] = set()
    crit_edges: Set[Tuple[str, str]] = set()
    if highlight_critical_path and network.edges:
        path = nx.dag_longest_path(network.graph)
        crit_nodes = set(path)
        crit_edges = {(path[i], path[i + 1]) for i in range(len(path) - 1)}

    # --- Nodes ---
    for name in network.nodes:
        attrs: Dict[str, str] = {"label": name}
        if name in split.hard:
            attrs.update(shape="box", style="filled", fillcolor="lightgray")
            attrs["label"] = f"{name}\n= {split.hard[name]}"
        elif name in split.soft:
            attrs.update(shape="box", style="filled,dashed", fillcolor="lightblue")
        elif name in query:
            attrs.update(shape="ellipse", style="bold", penwidth="3")
        else:
            attrs["shape"] = "ellipse"

        if name in crit_nodes:
            attrs["color"] = "red"
            attrs["style"] = attrs["style"] + ",bold" if "style" in attrs else "bold"

        dot.node(_node_id(name), **attrs)

    # --- Edges ---
    for parent, child in network.edges:
        edge_attrs: Dict[str, str] = {}
        if show_contexts:
            contexts = 1
            for p in network.parents(child):
                contexts *= len(network.states(p))
            edge_attrs["label"] = f" {contexts} "
        if (parent, child) in crit_edges:
            edge_attrs["color"] = "red"
            edge_attrs["penwidth"] = "2.5"
        dot.edge(_node_id(parent), _node_id(child), **edge_attrs)

    _add_legend(dot)
    _render(dot, output)
    return dot


def plot_junction_tree(
    tree: JunctionTree,
    output: str = "junction_tree.png",
    highlight: Optional[str] = None,
) -> graphviz.Graph:
    """Render a junction tree (or forest).

    Cliques are boxes listing their nodes; edges are labelled with the
    separator nodes.

    Parameters
    ----------
    tree : JunctionTree
        Tree to draw.
    output : str
        File path; see :func:`plot_network` for supported extensions.
    highlight : str, optional
        Clique id drawn in red.  Defaults to the clique holding the
        tree's big clique nodes, if any.
    """
    if highlight is None and tree.big_clique_nodes:
        holding = tree.cliques_containing(tree.big_clique_nodes)
        highlight = holding[0].id if holding else None

    _, render_format = _output_format(output)
    dot = graphviz.Graph(format=render_format, engine="dot")
    dot.attr("graph", nodesep="0.5", ranksep="0.75")

    for clique in tree.cliques:
        attrs: Dict[str, str] = {
            "label": f"C{clique.id}: {', '.join(clique.node_ids)}",
            "shape": "box",
            "style": "rounded",
        }
        if clique.id == highlight:
            attrs.update(color="red", style="rounded,bold", penwidth="2.5")
        dot.node(f"clique_{clique.id}", **attrs)

    for sepset in tree.sepsets:
        dot.edge(
            f"clique_{sepset.clique_a}",
            f"clique_{sepset.clique_b}",
            label=f" {', '.join(sepset.shared_nodes)} ",
        )

    _render(dot, output)
    return dot
