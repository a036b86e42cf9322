"""B-spline bases and difference penalties for P-spline smoothing."""

from typing import Tuple

import numpy as np

from .exceptions import InvalidConfig

__all__ = [
    "equispaced_knots",
    "bspline_basis",
    "difference_penalty",
]


def equispaced_knots(lower: float, upper: float, basis_size: int, degree: int = 3) -> np.ndarray:
    """Knot sequence for `basis_size` B-splines of `degree` on [lower, upper].

    The sequence extends `degree` knots beyond each end of the range so that
    every point of [lower, upper] is covered by `degree + 1` bases.
    """
    if basis_size < degree + 1:
        raise InvalidConfig(f"basis_size must be at least degree + 1 = {degree + 1}, got {basis_size}")
    if not upper > lower:
        raise InvalidConfig(f"spline range must have positive width, got [{lower:g}, {upper:g}]")
    n_segments = basis_size - degree
    step = (upper - lower) / n_segments
    return lower + step * np.arange(-degree, n_segments + degree + 1)


def bspline_basis(x: np.ndarray, knots: np.ndarray, degree: int = 3) -> np.ndarray:
    """Evaluate B-spline basis functions by the Cox-de Boor recursion.

    Parameters
    ----------
    x : np.ndarray
        Evaluation points, all inside [knots[degree], knots[-degree - 1]]
    knots : np.ndarray
        Equally spaced knot sequence from `equispaced_knots`
    degree : int, optional
        Polynomial degree

    Returns
    -------
    np.ndarray
        Basis matrix of shape (len(x), len(knots) - degree - 1); rows sum to 1
    """
    x = np.atleast_1d(np.asarray(x, dtype=float))
    lower, upper = knots[degree], knots[-degree - 1]
    tol = 1e-9 * (upper - lower)
    if np.any(x < lower - tol) or np.any(x > upper + tol):
        bad = x[(x < lower - tol) | (x > upper + tol)][0]
        raise InvalidConfig(f"age {bad:g} lies outside the fitted range [{lower:g}, {upper:g}]")
    x = np.clip(x, lower, upper)

    n_intervals = len(knots) - 1
    step = knots[1] - knots[0]

    # Degree 0: indicator of the knot interval; the upper end belongs to the last interval
    interval = np.floor((x - knots[0]) / step).astype(int)
    interval = np.clip(interval, degree, n_intervals - degree - 1)
    basis = np.zeros((len(x), n_intervals))
    basis[np.arange(len(x)), interval] = 1.0

    for k in range(1, degree + 1):
        n_bases = n_intervals - k
        left = (x[:, None] - knots[None, :n_bases]) / (k * step)
        right = (knots[None, k + 1:k + 1 + n_bases] - x[:, None]) / (k * step)
        basis = left * basis[:, :n_bases] + right * basis[:, 1:n_bases + 1]

    return basis


def difference_penalty(basis_size: int, order: int = 2) -> Tuple[np.ndarray, int]:
    """Roughness penalty S = D'D built from `order`-th differences.

    Returns
    -------
    Tuple[np.ndarray, int]
        Penalty matrix of shape (basis_size, basis_size) and its rank
    """
    if order < 1:
        raise InvalidConfig(f"penalty order must be positive, got {order}")
    if basis_size <= order:
        raise InvalidConfig(f"basis_size must exceed the penalty order {order}, got {basis_size}")
    diff = np.diff(np.eye(basis_size), n=order, axis=0)
    return diff.T @ diff, basis_size - order
