"""Plotting utilities for prevalence curves and net transitions."""

from typing import Any, Dict, Optional, Sequence, Tuple
import numpy as np
import matplotlib.pyplot as plt
import seaborn as sns
import networkx as nx
from matplotlib.figure import Figure
from matplotlib.axes import Axes


def plot_prevalence(
    model: Any,
    ages: Optional[Sequence[float]] = None,
    counts: Any = None,
    bootstrap: Any = None,
    ax: Optional[plt.Axes] = None,
    figsize: Tuple[int, int] = (10, 6),
    alpha: float = 0.2,
) -> plt.Axes:
    """Plot smoothed prevalence curves by age.

    Parameters
    ----------
    model : SmoothModel
        Fitted prevalence model
    ages : Optional[Sequence[float]], optional
        Ages at which to draw the curves; defaults to 200 points over the fitted range
    counts : CountTable, optional
        Raw counts; observed proportions are drawn as points
    bootstrap : BootstrapResult, optional
        Bootstrap result whose prevalence bands are shaded
    ax : plt.Axes, optional
        Matplotlib axes to plot on. If None, creates a new figure
    figsize : tuple, optional
        Figure size if creating a new figure
    alpha : float, optional
        Alpha for band shading

    Returns
    -------
    plt.Axes
        The matplotlib axes with the plot
    """
    if ax is None:
        _, ax = plt.subplots(figsize=figsize)

    if ages is None:
        ages = np.linspace(*model.age_range, 200)
    ages = np.asarray(ages, dtype=float)
    proba = model.predict_proba(ages)
    colors = sns.color_palette(n_colors=model.n_categories)

    for k, category in enumerate(model.categories):
        ax.plot(ages, proba[:, k], color=colors[k], label=str(category), linewidth=2)
        if bootstrap is not None:
            ax.fill_between(bootstrap.ages, bootstrap.prevalence_lower[:, k], bootstrap.prevalence_upper[:, k],
                            color=colors[k], alpha=alpha)
        if counts is not None:
            observed = counts.totals > 0
            ax.scatter(counts.ages[observed], counts.proportions()[observed, k], color=colors[k], s=12, alpha=0.6)

    ax.set_xlabel("Age")
    ax.set_ylabel("Prevalence")
    ax.set_ylim(0, 1)
    ax.set_title("Smoothed prevalence by age")
    ax.grid(True, alpha=0.3)
    ax.legend()
    return ax


def plot_transition_probabilities(
    estimate: Any,
    from_category: Any,
    bootstrap: Any = None,
    to_categories: Optional[Sequence[Any]] = None,
    ax: Optional[plt.Axes] = None,
    figsize: Tuple[int, int] = (10, 6),
    alpha: float = 0.2,
) -> plt.Axes:
    """Plot net transition probabilities out of one category over age.

    Parameters
    ----------
    estimate : TransitionEstimate
        Point estimates
    from_category : Hashable
        Category the transitions start from
    bootstrap : BootstrapResult, optional
        Bootstrap result whose percentile bands are shaded
    to_categories : Optional[Sequence], optional
        Destination categories to draw; defaults to all others
    ax : plt.Axes, optional
        Matplotlib axes to plot on. If None, creates a new figure
    figsize : tuple, optional
        Figure size if creating a new figure
    alpha : float, optional
        Alpha for band shading

    Returns
    -------
    plt.Axes
        The matplotlib axes with the plot
    """
    if ax is None:
        _, ax = plt.subplots(figsize=figsize)

    categories = list(estimate.categories)
    i = categories.index(from_category)
    if to_categories is None:
        to_categories = [c for c in categories if c != from_category]
    colors = sns.color_palette(n_colors=len(categories))
    ages = estimate.ages[:-1]

    for to_category in to_categories:
        j = categories.index(to_category)
        ax.step(ages, estimate.probabilities[:, i, j], where="post", color=colors[j],
                label=f"{from_category} → {to_category}", linewidth=2)
        if bootstrap is not None:
            ax.fill_between(ages, bootstrap.lower[:, i, j], bootstrap.upper[:, i, j],
                            step="post", color=colors[j], alpha=alpha)

    ax.set_xlabel("Age")
    ax.set_ylabel("Net annual transition probability")
    ax.set_title(f"Net transitions from {from_category}")
    ax.grid(True, alpha=0.3)
    ax.legend()
    return ax


def plot_transition_heatmap(
    estimate: Any,
    age: float,
    ax: Optional[plt.Axes] = None,
    figsize: Tuple[int, int] = (8, 6),
    cmap: str = 'YlGnBu',
    annot: bool = True,
) -> plt.Axes:
    """Plot the net transition probability matrix of the step starting at `age`.

    Parameters
    ----------
    estimate : TransitionEstimate
        Point estimates
    age : float
        Start age of the step; the closest grid age is used
    ax : plt.Axes, optional
        Matplotlib axes to plot on. If None, creates a new figure
    figsize : tuple, optional
        Figure size if creating a new figure
    cmap : str, optional
        Colormap for heatmap
    annot : bool, optional
        Whether to annotate cells with values

    Returns
    -------
    plt.Axes
        The matplotlib axes with the heatmap
    """
    if ax is None:
        _, ax = plt.subplots(figsize=figsize)

    step = int(np.argmin(np.abs(estimate.ages[:-1] - age)))
    labels = [str(c) for c in estimate.categories]
    sns.heatmap(estimate.probabilities[step], ax=ax, cmap=cmap, annot=annot, fmt=".3f",
                xticklabels=labels, yticklabels=labels, vmin=0, vmax=1)
    ax.set_title(f"Net transition probabilities, age {estimate.ages[step]:g} → {estimate.ages[step + 1]:g}")
    ax.set_xlabel("To category")
    ax.set_ylabel("From category")
    return ax


def plot_transition_graph(
    estimate: Any,
    age: float,
    threshold: float = 0.001,
    figsize: Tuple[int, int] = (10, 8),
    node_size: int = 2000,
    font_size: int = 12,
    cmap: str = 'YlOrRd',
) -> Tuple[Figure, Axes]:
    """Plot a directed graph of the net transitions of one age step.

    Categories are placed on a line in their natural order; self-loops
    (staying in place) are left out.

    Parameters
    ----------
    estimate : TransitionEstimate
        Point estimates
    age : float
        Start age of the step; the closest grid age is used
    threshold : float, optional
        Minimum transition probability to include in graph
    figsize : Tuple[int, int], optional
        Figure size
    node_size : int, optional
        Size of nodes in graph
    font_size : int, optional
        Font size for labels
    cmap : str, optional
        Colormap for edge colors

    Returns
    -------
    Tuple[Figure, Axes]
        Figure and axes with the graph plot
    """
    step = int(np.argmin(np.abs(estimate.ages[:-1] - age)))
    probabilities = estimate.probabilities[step]
    categories = list(estimate.categories)

    G = nx.DiGraph()
    for k, category in enumerate(categories):
        G.add_node(category, prevalence=float(estimate.prevalence[step, k]))

    edges = []
    for i, source in enumerate(categories):
        for j, target in enumerate(categories):
            p = float(probabilities[i, j])
            if i != j and p > threshold:
                G.add_edge(source, target, weight=p)
                edges.append((source, target, p))
    max_prob = max((p for _, _, p in edges), default=0.0)

    fig, ax = plt.subplots(figsize=figsize)
    pos: Dict[Any, Tuple[float, float]] = {c: (float(k), 0.0) for k, c in enumerate(categories)}

    nx.draw_networkx_nodes(G, pos, node_size=node_size, node_color='lightblue', ax=ax)
    nx.draw_networkx_labels(G, pos, labels={c: str(c) for c in categories}, font_size=font_size, ax=ax)

    colormap = plt.get_cmap(cmap)
    for u, v, p in edges:
        scale = p / max_prob if max_prob > 0 else 0
        nx.draw_networkx_edges(G, pos, edgelist=[(u, v)], width=1 + 5 * scale, edge_color=[colormap(scale)],
                               alpha=0.7, arrows=True, arrowsize=20, node_size=node_size,
                               connectionstyle="arc3,rad=0.3", ax=ax)

    edge_labels = {(u, v): f"{G[u][v]['weight']:.3f}" for u, v in G.edges()}
    # Off-centre labels keep the two directions of a category pair apart
    nx.draw_networkx_edge_labels(G, pos, edge_labels=edge_labels, font_size=font_size - 2, label_pos=0.3, ax=ax)

    ax.set_title(f"Net transitions, age {estimate.ages[step]:g} → {estimate.ages[step + 1]:g}")
    ax.axis('off')
    return fig, ax
