"""Synthetic cross-sectional prevalence data with known truth."""

from typing import Hashable, Optional, Sequence, Union
import numpy as np
import pandas as pd


BMI_CATEGORIES = ("normal", "overweight", "obese")


def logistic_prevalence(
    ages: Sequence[float],
    intercepts: Sequence[float],
    slopes: Sequence[float],
    curvatures: Optional[Sequence[float]] = None,
    reference: int = 0,
) -> np.ndarray:
    """Prevalence curves with polynomial log-odds against a reference category.

    Parameters
    ----------
    ages : Sequence[float]
        Ages at which to evaluate the curves
    intercepts : Sequence[float]
        Log-odds at age 0 of each non-reference category (length K-1)
    slopes : Sequence[float]
        Change of log-odds per year (length K-1)
    curvatures : Optional[Sequence[float]], optional
        Quadratic log-odds terms per year squared (length K-1)
    reference : int, optional
        Position of the reference category

    Returns
    -------
    np.ndarray
        Prevalence of shape (len(ages), K); rows sum to one
    """
    ages = np.asarray(ages, dtype=float)
    intercepts = np.asarray(intercepts, dtype=float)
    slopes = np.asarray(slopes, dtype=float)
    if curvatures is None:
        curvatures = np.zeros_like(intercepts)
    curvatures = np.asarray(curvatures, dtype=float)

    eta = intercepts[None, :] + slopes[None, :] * ages[:, None] + curvatures[None, :] * ages[:, None] ** 2
    eta = np.insert(eta, reference, 0.0, axis=1)
    eta -= eta.max(axis=1, keepdims=True)
    weights = np.exp(eta)
    return weights / weights.sum(axis=1, keepdims=True)


def bmi_prevalence(ages: Sequence[float], lower: float = 0.0, upper: float = 10.0) -> np.ndarray:
    """Normal/overweight/obese prevalence shifting away from 'normal' with age.

    At `lower` nearly everyone is normal weight; by `upper` overweight is the
    most common category and obesity is frequent.
    """
    span = upper - lower
    ages = np.asarray(ages, dtype=float) - lower
    return logistic_prevalence(
        ages,
        intercepts=[-2.5, -4.0],
        slopes=[3.0 / span, 3.5 / span],
    )


def generate_cross_sectional_counts(
    ages: Sequence[float],
    prevalence: np.ndarray,
    n_per_age: Union[int, Sequence[int]] = 1000,
    categories: Optional[Sequence[Hashable]] = None,
    random_seed: Optional[int] = None,
) -> pd.DataFrame:
    """Draw multinomial category counts at each age.

    Parameters
    ----------
    ages : Sequence[float]
        Survey ages
    prevalence : np.ndarray
        True prevalence at each age, shape (len(ages), K)
    n_per_age : Union[int, Sequence[int]], optional
        Sample size at each age; zero gives an age without observations
    categories : Optional[Sequence[Hashable]], optional
        Category labels; defaults to 0..K-1
    random_seed : Optional[int], optional
        Random seed for reproducibility

    Returns
    -------
    pd.DataFrame
        Long table with columns age, category, count
    """
    rng = np.random.default_rng(random_seed)
    ages = np.asarray(ages, dtype=float)
    prevalence = np.asarray(prevalence, dtype=float)
    k = prevalence.shape[1]
    if categories is None:
        categories = list(range(k))
    sizes = np.broadcast_to(np.asarray(n_per_age, dtype=int), ages.shape)

    rows = []
    for age, p, n in zip(ages, prevalence, sizes):
        counts = rng.multinomial(int(n), p / p.sum())
        for category, count in zip(categories, counts):
            rows.append({"age": age, "category": category, "count": int(count)})
    return pd.DataFrame(rows, columns=["age", "category", "count"])


def true_net_transitions(ages: Sequence[float], prevalence: np.ndarray, cost=None):
    """Net transitions implied by known prevalence curves.

    Parameters
    ----------
    ages : Sequence[float]
        Increasing ages
    prevalence : np.ndarray
        Prevalence at each age, shape (len(ages), K)
    cost : Optional[CostMatrix]
        Transition costs; defaults to quadratic cost over categories 0..K-1

    Returns
    -------
    TransitionEstimate
        Ground-truth flows and net transition probabilities
    """
    from ..costs import build_cost_matrix
    from ..estimation import transitions_from_prevalence

    prevalence = np.asarray(prevalence, dtype=float)
    if cost is None:
        cost = build_cost_matrix(list(range(prevalence.shape[1])))
    return transitions_from_prevalence(np.asarray(ages, dtype=float), prevalence, cost)
