"""Balanced transportation problems between consecutive prevalence vectors."""

from typing import Hashable, Sequence

import networkx as nx
import numpy as np

from .costs import CostMatrix
from .exceptions import InfeasibleProblem, InvalidConfig

__all__ = [
    "DEFAULT_TOL",
    "check_prevalence",
    "solve_transport",
    "transport_cost",
]

DEFAULT_TOL = 1e-6

# Network simplex runs on integers: masses and costs are scaled and rounded.
# The largest finite cost maps to COST_RESOLUTION units.
MASS_SCALE = 10 ** 12
COST_RESOLUTION = 10 ** 12


def check_prevalence(
    vector: np.ndarray,
    name: str,
    categories: Sequence[Hashable],
    tol: float = DEFAULT_TOL,
) -> np.ndarray:
    """Validate a prevalence vector used as a transport marginal.

    Raises
    ------
    InvalidConfig
        If the length does not match the number of categories
    InfeasibleProblem
        If an entry is negative or not finite, or the sum differs from one
    """
    vector = np.asarray(vector, dtype=float)
    if vector.shape != (len(categories),):
        raise InvalidConfig(
            f"{name} has shape {vector.shape}, expected ({len(categories)},) to match the cost matrix"
        )
    for label, value in zip(categories, vector):
        if not np.isfinite(value):
            raise InfeasibleProblem(f"{name} entry for {label!r} is not finite ({value})")
        if value < 0:
            raise InfeasibleProblem(f"{name} entry for {label!r} is negative ({value:g}), expected >= 0")
    total = float(vector.sum())
    if abs(total - 1.0) > tol:
        raise InfeasibleProblem(f"{name} sums to {total:.6g}, expected 1.0 ± {tol:g}")
    return vector


def _to_units(vector: np.ndarray) -> np.ndarray:
    """Integer masses summing exactly to MASS_SCALE (largest remainder rounding)."""
    scaled = vector / vector.sum() * MASS_SCALE
    units = np.floor(scaled).astype(np.int64)
    shortfall = MASS_SCALE - int(units.sum())
    if shortfall > 0:
        # Stable sort: ties go to the lower category index
        order = np.argsort(-(scaled - units), kind="stable")
        units[order[:shortfall]] += 1
    return units


def _cost_units(cost: CostMatrix) -> np.ndarray:
    """Integer arc costs, scaled relative to the largest finite cost.

    Raises
    ------
    InvalidConfig
        If two distinct finite costs round to the same integer
    """
    finite = cost.allowed
    largest = float(cost.values[finite].max())
    scale = COST_RESOLUTION / largest if largest > 0 else 1.0
    units = np.zeros(cost.values.shape, dtype=np.int64)
    units[finite] = np.rint(cost.values[finite] * scale).astype(np.int64)

    distinct = np.unique(cost.values[finite])
    if len(np.unique(np.rint(distinct * scale))) != len(distinct):
        raise InvalidConfig(
            f"cost values {distinct.tolist()} are too close to tell apart at a relative "
            f"resolution of 1/{COST_RESOLUTION:g}"
        )
    return units


def solve_transport(
    supply: np.ndarray,
    demand: np.ndarray,
    cost: CostMatrix,
    tol: float = DEFAULT_TOL,
) -> np.ndarray:
    """Minimum-cost flow moving prevalence `supply` onto prevalence `demand`.

    The problem is solved as a min-cost flow on the bipartite graph of
    source and destination categories with the network simplex algorithm,
    so the solution is an optimal vertex. The graph is always built in the
    same order, which makes repeated solves on identical inputs identical.

    Parameters
    ----------
    supply : np.ndarray
        Prevalence at age a, length K, summing to one
    demand : np.ndarray
        Prevalence at age a + 1, length K, summing to one
    cost : CostMatrix
        Transition costs; infinite entries are forbidden moves
    tol : float, optional
        Tolerance on the marginal sums

    Returns
    -------
    np.ndarray
        K x K flow matrix: entry (i, j) is the prevalence mass moving from
        category i to category j. Row sums match `supply` and column sums
        match `demand`.

    Raises
    ------
    InfeasibleProblem
        If a marginal is invalid or the forbidden moves leave no feasible flow
    InvalidConfig
        If distinct costs are too close to be told apart after integer scaling
    """
    categories = cost.categories
    supply = check_prevalence(supply, "supply", categories, tol)
    demand = check_prevalence(demand, "demand", categories, tol)
    k = len(categories)

    supply_units = _to_units(supply)
    demand_units = _to_units(demand)
    cost_units = _cost_units(cost)

    G = nx.DiGraph()
    for i in range(k):
        G.add_node(("from", i), demand=-int(supply_units[i]))
    for j in range(k):
        G.add_node(("to", j), demand=int(demand_units[j]))
    for i in range(k):
        for j in range(k):
            if np.isfinite(cost.values[i, j]):
                G.add_edge(("from", i), ("to", j), weight=int(cost_units[i, j]))

    try:
        _, flow_dict = nx.network_simplex(G)
    except nx.NetworkXUnfeasible as e:
        raise InfeasibleProblem(
            f"no flow with the permitted transitions maps supply {np.round(supply, 6).tolist()} "
            f"onto demand {np.round(demand, 6).tolist()}"
        ) from e

    flow = np.zeros((k, k))
    for i in range(k):
        for (_, j), units in flow_dict[("from", i)].items():
            flow[i, j] = units / MASS_SCALE
    return flow


def transport_cost(flow: np.ndarray, cost: CostMatrix) -> float:
    """Total cost of a flow matrix under `cost`."""
    flow = np.asarray(flow, dtype=float)
    moved = flow > 0
    if (moved & ~cost.allowed).any():
        return float("inf")
    return float((flow[moved] * cost.values[moved]).sum())
