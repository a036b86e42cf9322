"""Net transition probabilities between consecutive ages."""

from dataclasses import dataclass
from typing import Hashable, Optional, Sequence, Tuple
import logging

import numpy as np
import pandas as pd

from .costs import CostMatrix, build_cost_matrix
from .exceptions import InfeasibleProblem
from .models import SmoothModel
from .transport import DEFAULT_TOL, solve_transport, transport_cost
from .utils.age_grid import AgeGrid

__all__ = [
    "TransitionEstimate",
    "estimate_transitions",
    "net_transition_probabilities",
    "transitions_from_prevalence",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class TransitionEstimate:
    """Net transitions for every consecutive pair of ages in a grid.

    Attributes
    ----------
    categories : tuple
        Ordered category labels
    ages : np.ndarray
        Age grid, shape (n_ages,)
    prevalence : np.ndarray
        Prevalence vectors at each age, shape (n_ages, K)
    flows : np.ndarray
        Optimal transport flows, shape (n_ages - 1, K, K); row sums equal
        the prevalence at the earlier age, column sums the later one
    probabilities : np.ndarray
        Net transition probability matrices, shape (n_ages - 1, K, K); rows sum to one
    degenerate : np.ndarray
        Rows whose supply was below tolerance and were set to the identity,
        shape (n_ages - 1, K)
    costs : np.ndarray
        Total transport cost of each step, shape (n_ages - 1,)
    """
    categories: Tuple[Hashable, ...]
    ages: np.ndarray
    prevalence: np.ndarray
    flows: np.ndarray
    probabilities: np.ndarray
    degenerate: np.ndarray
    costs: np.ndarray

    def __post_init__(self):
        for name in ["ages", "prevalence", "flows", "probabilities", "degenerate", "costs"]:
            getattr(self, name).setflags(write=False)

    @property
    def age_pairs(self):
        return list(zip(self.ages[:-1], self.ages[1:]))

    def probability(self, from_category: Hashable, to_category: Hashable) -> np.ndarray:
        """Net transition probability between two categories at every age step."""
        i = self.categories.index(from_category)
        j = self.categories.index(to_category)
        return self.probabilities[:, i, j]

    def to_frame(self) -> pd.DataFrame:
        """Tidy DataFrame with one row per age step and category pair.

        Columns: age_from, age_to, from_category, to_category, flow,
        probability, degenerate.
        """
        n_steps, k, _ = self.probabilities.shape
        step, i, j = np.meshgrid(np.arange(n_steps), np.arange(k), np.arange(k), indexing="ij")
        step, i, j = step.ravel(), i.ravel(), j.ravel()
        labels = np.array(self.categories, dtype=object)
        return pd.DataFrame({
            "age_from": self.ages[step],
            "age_to": self.ages[step + 1],
            "from_category": labels[i],
            "to_category": labels[j],
            "flow": self.flows[step, i, j],
            "probability": self.probabilities[step, i, j],
            "degenerate": self.degenerate[step, i],
        })


def net_transition_probabilities(
    flow: np.ndarray,
    supply: np.ndarray,
    tol: float = DEFAULT_TOL,
) -> Tuple[np.ndarray, np.ndarray]:
    """Row-normalise a transport flow into transition probabilities.

    Rows whose supply is below `tol` carry no outflow information; they are
    set to the identity (no movement) instead of dividing by almost zero.

    Returns
    -------
    Tuple[np.ndarray, np.ndarray]
        Transition probability matrix with rows summing to one, and the
        boolean mask of degenerate rows
    """
    flow = np.asarray(flow, dtype=float)
    supply = np.asarray(supply, dtype=float)
    degenerate = supply < tol
    row_sums = flow.sum(axis=1)
    probabilities = np.eye(len(supply))
    ok = ~degenerate
    probabilities[ok] = flow[ok] / row_sums[ok, None]
    return probabilities, degenerate


def transitions_from_prevalence(
    ages: np.ndarray,
    prevalence: np.ndarray,
    cost: CostMatrix,
    tol: float = DEFAULT_TOL,
) -> TransitionEstimate:
    """Solve one transport problem per consecutive pair of prevalence vectors.

    Raises
    ------
    InfeasibleProblem
        Re-raised with the offending age pair attached
    """
    ages = np.asarray(ages, dtype=float)
    prevalence = np.asarray(prevalence, dtype=float)
    n_steps, k = len(ages) - 1, prevalence.shape[1]

    flows = np.zeros((n_steps, k, k))
    probabilities = np.zeros((n_steps, k, k))
    degenerate = np.zeros((n_steps, k), dtype=bool)
    costs = np.zeros(n_steps)

    for step in range(n_steps):
        age_pair = (float(ages[step]), float(ages[step + 1]))
        try:
            flows[step] = solve_transport(prevalence[step], prevalence[step + 1], cost, tol)
        except InfeasibleProblem as e:
            raise e.with_age_pair(age_pair) from e
        probabilities[step], degenerate[step] = net_transition_probabilities(flows[step], prevalence[step], tol)
        costs[step] = transport_cost(flows[step], cost)
        if degenerate[step].any():
            labels = [c for c, d in zip(cost.categories, degenerate[step]) if d]
            logger.debug(
                "age %g -> %g: no prevalence in %s, transition rows set to identity",
                age_pair[0], age_pair[1], labels,
            )

    return TransitionEstimate(
        categories=cost.categories,
        ages=ages,
        prevalence=prevalence,
        flows=flows,
        probabilities=probabilities,
        degenerate=degenerate,
        costs=costs,
    )


def estimate_transitions(
    model: SmoothModel,
    ages: Optional[Sequence[float]] = None,
    cost: Optional[CostMatrix] = None,
    tol: float = DEFAULT_TOL,
) -> TransitionEstimate:
    """Estimate net transition probabilities over an age grid.

    Parameters
    ----------
    model : SmoothModel
        Fitted prevalence model
    ages : Optional[Sequence[float]]
        Increasing ages inside the model's range; defaults to every integer
        age in the fitted range
    cost : Optional[CostMatrix]
        Transition costs; defaults to quadratic cost in categorical distance
    tol : float, optional
        Tolerance on prevalence sums and for degenerate rows

    Returns
    -------
    TransitionEstimate
        Prevalence, transport flows and net transition probabilities

    Raises
    ------
    InvalidConfig
        If the cost matrix categories differ from the model's or the grid is invalid
    InfeasibleProblem
        If any age step has no valid transport solution
    """
    if cost is None:
        cost = build_cost_matrix(model.categories)
    cost.check_categories(model.categories)
    grid = AgeGrid.for_model(model, ages)

    prevalence = model.predict_proba(grid.ages)
    estimate = transitions_from_prevalence(grid.ages, prevalence, cost, tol)
    logger.info(
        "Estimated net transitions for %d age steps (%g to %g), %d degenerate rows",
        len(grid.ages) - 1, grid.ages[0], grid.ages[-1], int(estimate.degenerate.sum()),
    )
    return estimate
