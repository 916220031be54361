"""Bar charts of posterior marginals.

:func:`plot_marginals` takes the ``{node: {state: probability}}`` output
of :func:`~beliefflow.inference.infer_all.infer_all` and draws one small
bar chart per node.  An optional second set of marginals (for example
the prior) is drawn next to it for comparison.

Two back-ends are supported: static *matplotlib* (default) and an
interactive *plotly* backend for web dashboards.
"""

from __future__ import annotations

import math
from typing import Any, List, Mapping, Optional, Sequence, Tuple

import numpy as np

# ---------------------------------------------------------------------------
# Colorblind-safe palette (Wong 2011, widely recommended for accessibility)
# ---------------------------------------------------------------------------
COLORBLIND_SAFE_PALETTE: List[str] = [
    "#0072B2",  # blue
    "#E69F00",  # orange
    "#009E73",  # green
    "#CC79A7",  # pink
    "#56B4E9",  # sky blue
    "#D55E00",  # vermilion
    "#F0E442",  # yellow
    "#000000",  # black
]


def _get_color(index: int) -> str:
    """Return a color from the colorblind-safe palette (wraps around)."""
    return COLORBLIND_SAFE_PALETTE[index % len(COLORBLIND_SAFE_PALETTE)]


# ---------------------------------------------------------------------------
# plot_marginals  (matplotlib + plotly)
# ---------------------------------------------------------------------------


def plot_marginals(
    marginals: Mapping[str, Mapping[str, float]],
    nodes: Optional[Sequence[str]] = None,
    *,
    reference: Optional[Mapping[str, Mapping[str, float]]] = None,
    labels: Tuple[str, str] = ("posterior", "prior"),
    ncols: int = 3,
    interactive: bool = False,
    title: Optional[str] = None,
    figsize_per_plot: Tuple[float, float] = (3.0, 2.5),
    save_path: Optional[str] = None,
) -> Any:
    """Plot per-node marginal distributions as bar charts.

    Parameters
    ----------
    marginals : mapping
        ``{node: {state: probability}}``.
    nodes : sequence of str, optional
        Nodes to draw, in order.  Defaults to every node of *marginals*.
    reference : mapping, optional
        Second set of marginals drawn as a paired bar.
    labels : (str, str)
        Legend labels for *marginals* and *reference*.
    ncols : int
        Number of subplot columns.
    interactive : bool
        If *True*, produce a Plotly figure instead of matplotlib.
    title : str, optional
        Figure title.
    figsize_per_plot : tuple
        Size of one subplot (matplotlib only).
    save_path : str, optional
        If given, save the figure to this path (matplotlib only).

    Returns
    -------
    matplotlib Figure **or** plotly Figure, depending on *interactive*.
    """
    nodes = list(nodes) if nodes is not None else list(marginals)
    if not nodes:
        raise ValueError("No nodes to plot")
    unknown = [n for n in nodes if n not in marginals]
    if unknown:
        raise ValueError(f"No marginals for node(s) {unknown}")

    ncols = max(1, min(ncols, len(nodes)))
    nrows = math.ceil(len(nodes) / ncols)

    if interactive:
        return _plot_marginals_plotly(
            marginals, nodes, reference, labels, nrows, ncols, title
        )
    return _plot_marginals_mpl(
        marginals, nodes, reference, labels, nrows, ncols, title,
        figsize_per_plot, save_path,
    )


# ---------------------------------------------------------------------------
# matplotlib backend
# ---------------------------------------------------------------------------


def _plot_marginals_mpl(
    marginals, nodes, reference, labels, nrows, ncols, title,
    figsize_per_plot, save_path,
):
    import matplotlib
    matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    fig, axes = plt.subplots(
        nrows,
        ncols,
        figsize=(figsize_per_plot[0] * ncols, figsize_per_plot[1] * nrows),
        squeeze=False,
    )

    width = 0.4 if reference is not None else 0.6
    for idx, node in enumerate(nodes):
        ax = axes[idx // ncols][idx % ncols]
        states = list(marginals[node])
        xs = np.arange(len(states))
        values = [marginals[node][s] for s in states]

        if reference is not None and node in reference:
            ref_values = [reference[node].get(s, 0.0) for s in states]
            ax.bar(xs - width / 2, values, width, color=_get_color(0), label=labels[0])
            ax.bar(xs + width / 2, ref_values, width, color=_get_color(1), label=labels[1])
        else:
            ax.bar(xs, values, width, color=_get_color(0), label=labels[0])

        ax.set_xticks(xs)
        ax.set_xticklabels(states)
        ax.set_ylim(0.0, 1.0)
        ax.set_title(node)
        ax.spines["top"].set_visible(False)
        ax.spines["right"].set_visible(False)

    # Hide unused cells of the grid
    for idx in range(len(nodes), nrows * ncols):
        axes[idx // ncols][idx % ncols].set_visible(False)

    if reference is not None:
        axes[0][0].legend(frameon=False, fontsize="small")
    if title:
        fig.suptitle(title)
    fig.tight_layout()

    if save_path is not None:
        fig.savefig(save_path, dpi=150, bbox_inches="tight")
    return fig


# ---------------------------------------------------------------------------
# plotly backend
# ---------------------------------------------------------------------------


def _plot_marginals_plotly(marginals, nodes, reference, labels, nrows, ncols, title):
    try:
        import plotly.graph_objects as go
        from plotly.subplots import make_subplots
    except ImportError as exc:
        raise ImportError(
            "plotly is required for interactive mode. "
            "Install it with: pip install beliefflow[interactive]"
        ) from exc

    fig = make_subplots(rows=nrows, cols=ncols, subplot_titles=list(nodes))
    for idx, node in enumerate(nodes):
        row, col = idx // ncols + 1, idx % ncols + 1
        states = list(marginals[node])
        fig.add_trace(
            go.Bar(
                x=states,
                y=[marginals[node][s] for s in states],
                name=labels[0],
                marker_color=_get_color(0),
                showlegend=(idx == 0),
            ),
            row=row, col=col,
        )
        if reference is not None and node in reference:
            fig.add_trace(
                go.Bar(
                    x=states,
                    y=[reference[node].get(s, 0.0) for s in states],
                    name=labels[1],
                    marker_color=_get_color(1),
                    showlegend=(idx == 0),
                ),
                row=row, col=col,
            )
        fig.update_yaxes(range=[0.0, 1.0], row=row, col=col)

    fig.update_layout(title=title, barmode="group", template="plotly_white")
    return fig
