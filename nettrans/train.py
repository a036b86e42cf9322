"""Fitting of multinomial P-spline prevalence models."""

from typing import Hashable, Optional, Sequence, Tuple
from dataclasses import dataclass
import logging
import warnings

import numpy as np
import torch
from torch.autograd.functional import hessian, jacobian
from tqdm.auto import tqdm

from .data import CountTable, prepare_counts
from .exceptions import FitFailure, InvalidConfig
from .losses import MultinomialLoss, PenalizedMultinomialLoss
from .models import SmoothModel
from .splines import bspline_basis, difference_penalty, equispaced_knots

__all__ = [
    "SmoothConfig",
    "default_basis_size",
    "fit",
]

logger = logging.getLogger(__name__)

# Largest change of log(lambda) allowed in one Fellner-Schall update
_MAX_LOG_STEP = 5.0


@dataclass
class SmoothConfig:
    """Configuration for prevalence smoothing.

    Parameters
    ----------
    basis_size : Optional[int]
        Number of B-splines per non-reference category. If None, one basis
        function per five years of the age range plus `degree`.
    degree : int
        Degree of the B-splines (3 = cubic)
    penalty_order : int
        Order of the coefficient differences in the roughness penalty
    reference_category : Optional[Hashable]
        Baseline category of the multinomial logit; defaults to the first
    initial_smoothing : float
        Starting value of every smoothing parameter
    min_smoothing : float
        Lower bound of the smoothing parameters
    max_smoothing : float
        Upper bound of the smoothing parameters
    max_iter : int
        Maximum number of Newton iterations per smoothing parameter value
    tol : float
        Relative convergence tolerance of the penalized objective
    max_outer_iter : int
        Maximum number of smoothing parameter updates
    outer_tol : float
        Convergence tolerance on the change of log smoothing parameters
    show_progress : bool
        Whether to show a progress bar over smoothing parameter updates
    """
    basis_size: Optional[int] = None
    degree: int = 3
    penalty_order: int = 2
    reference_category: Optional[Hashable] = None
    initial_smoothing: float = 1.0
    min_smoothing: float = 1e-6
    max_smoothing: float = 1e8
    max_iter: int = 100
    tol: float = 1e-10
    max_outer_iter: int = 500
    outer_tol: float = 1e-3
    show_progress: bool = False

    def __post_init__(self):
        if self.basis_size is not None and self.basis_size <= 0:
            raise InvalidConfig(f"basis_size must be positive, got {self.basis_size}")
        if self.degree < 1:
            raise InvalidConfig(f"degree must be at least 1, got {self.degree}")
        if self.penalty_order < 1:
            raise InvalidConfig(f"penalty_order must be at least 1, got {self.penalty_order}")
        if not 0 < self.min_smoothing <= self.initial_smoothing <= self.max_smoothing:
            raise InvalidConfig(
                "smoothing bounds must satisfy 0 < min_smoothing <= initial_smoothing <= max_smoothing"
            )
        if self.max_iter < 1 or self.max_outer_iter < 1:
            raise InvalidConfig("max_iter and max_outer_iter must be positive")


def default_basis_size(lower: float, upper: float, degree: int = 3, penalty_order: int = 2) -> int:
    """One basis function per five years of age range, plus the degree."""
    return max(2 * degree, penalty_order + 1, int(np.ceil((upper - lower) / 5.0)) + degree)


def _reference_index(categories: Sequence[Hashable], reference: Optional[Hashable]) -> int:
    if reference is None:
        return 0
    if reference not in categories:
        raise InvalidConfig(f"reference category {reference!r} is not one of {list(categories)}")
    return list(categories).index(reference)


def _check_data(table: CountTable) -> None:
    totals = table.totals
    if totals.sum() == 0:
        raise FitFailure("no observations at any age: prevalence cannot be estimated")
    for category, total in zip(table.categories, table.counts.sum(axis=0)):
        if total == 0:
            raise FitFailure(f"category {category!r} has no observations at any age")
    observed = table.ages[totals > 0]
    if len(observed) < 2:
        raise FitFailure(
            f"observations only at age {observed[0]:g}: at least two distinct ages are needed"
        )


def _initial_coefficients(table: CountTable, reference: int, basis_size: int) -> torch.Tensor:
    # Constant log-odds of the overall proportions; B-splines sum to one
    column_totals = table.counts.sum(axis=0) + 0.5
    log_odds = np.log(column_totals / column_totals[reference])
    log_odds = np.delete(log_odds, reference)
    return torch.tensor(np.outer(log_odds, np.ones(basis_size)), dtype=torch.float64)


def _penalized_newton(
    loss: PenalizedMultinomialLoss,
    coefficients: torch.Tensor,
    max_iter: int,
    tol: float,
) -> Tuple[torch.Tensor, torch.Tensor, float, int]:
    """Minimise the penalized loss by Newton-Raphson with step halving.

    Returns
    -------
    Tuple[torch.Tensor, torch.Tensor, float, int]
        Coefficients, Cholesky factor of the penalized Hessian at the
        optimum, objective value and number of iterations used
    """
    shape = coefficients.shape

    def objective(flat: torch.Tensor) -> torch.Tensor:
        return loss(flat.reshape(shape))

    flat = coefficients.reshape(-1).clone()
    value = float(objective(flat))

    for iteration in range(1, max_iter + 1):
        grad = jacobian(objective, flat)
        hess = hessian(objective, flat)
        chol, info = torch.linalg.cholesky_ex(hess)
        if info.item() != 0:
            raise FitFailure(f"penalized Hessian is not positive definite at Newton iteration {iteration}")

        step = torch.cholesky_solve(grad.unsqueeze(1), chol).squeeze(1)
        decrement = float(grad @ step)
        if 0.5 * decrement <= tol * (abs(value) + tol):
            return flat.reshape(shape), chol, value, iteration

        alpha = 1.0
        for _ in range(40):
            candidate = flat - alpha * step
            candidate_value = float(objective(candidate))
            if np.isfinite(candidate_value) and candidate_value <= value:
                break
            alpha *= 0.5
        else:
            # No decrease possible along the Newton direction: at the optimum up to rounding
            return flat.reshape(shape), chol, value, iteration

        flat, value = candidate, candidate_value

    raise FitFailure(f"Newton iterations did not converge within {max_iter} iterations")


def fit(
    counts,
    categories: Optional[Sequence[Hashable]] = None,
    config: Optional[SmoothConfig] = None,
) -> SmoothModel:
    """Fit smooth age-specific prevalence curves to category counts.

    Each non-reference category's log-odds against the reference category is
    a P-spline in age. Coefficients are estimated by penalized maximum
    likelihood, and the smoothing parameters by maximising the Laplace
    approximate marginal likelihood with generalized Fellner-Schall updates.

    Parameters
    ----------
    counts : Union[CountTable, pd.DataFrame, Iterable[CategoryCount]]
        Per-age category counts, see `prepare_counts`
    categories : Optional[Sequence[Hashable]]
        Ordered category labels; required unless `counts` is a CountTable
    config : Optional[SmoothConfig]
        Smoothing configuration, defaults to standard parameters

    Returns
    -------
    SmoothModel
        Fitted model with coefficient covariance for resampling

    Raises
    ------
    FitFailure
        If the data are empty or the optimizer does not converge
    InvalidConfig
        If the configuration is inconsistent with the data
    """
    if config is None:
        config = SmoothConfig()

    table = prepare_counts(counts, categories)
    reference = _reference_index(table.categories, config.reference_category)
    _check_data(table)

    n_smooth = table.n_categories - 1
    lower, upper = float(table.ages[0]), float(table.ages[-1])
    basis_size = config.basis_size or default_basis_size(lower, upper, config.degree, config.penalty_order)
    knots = equispaced_knots(lower, upper, basis_size, config.degree)
    penalty, rank = difference_penalty(basis_size, config.penalty_order)

    basis_t = torch.tensor(bspline_basis(table.ages, knots, config.degree), dtype=torch.float64)
    counts_t = torch.tensor(table.counts, dtype=torch.float64)
    penalty_t = torch.tensor(penalty, dtype=torch.float64)

    coefficients = _initial_coefficients(table, reference, basis_size)
    smoothing = np.full(n_smooth, config.initial_smoothing)
    blocks = [slice(j * basis_size, (j + 1) * basis_size) for j in range(n_smooth)]

    logger.info(
        "Fitting %d smooths with %d B-splines each to %d observations at %d ages",
        n_smooth, basis_size, int(table.counts.sum()), len(table.ages),
    )

    converged = False
    progress = tqdm(range(1, config.max_outer_iter + 1), desc="Selecting smoothing parameters",
                    disable=not config.show_progress)
    for outer in progress:
        loss = PenalizedMultinomialLoss(basis_t, counts_t, reference, penalty_t, smoothing)
        coefficients, chol, value, n_newton = _penalized_newton(loss, coefficients, config.max_iter, config.tol)
        hess_inv = torch.cholesky_inverse(chol)

        roughness = loss.roughness(coefficients).numpy()
        traces = np.array([float(torch.trace(hess_inv[b, b] @ penalty_t)) for b in blocks])

        # Generalized Fellner-Schall update: tr(S_lambda^- S_j) = rank / lambda_j
        numerator = np.maximum(rank - smoothing * traces, 1e-12)
        proposal = numerator / np.maximum(roughness, 1e-300)
        log_step = np.clip(np.log(proposal) - np.log(smoothing), -_MAX_LOG_STEP, _MAX_LOG_STEP)
        updated = np.clip(smoothing * np.exp(log_step), config.min_smoothing, config.max_smoothing)
        change = float(np.max(np.abs(np.log(updated) - np.log(smoothing))))

        logger.debug(
            "Outer iteration %d: lambda=%s, penalized deviance=%.6f, Newton iterations=%d",
            outer, np.array2string(smoothing, precision=4), 2.0 * value, n_newton,
        )
        if change < config.outer_tol:
            converged = True
            break
        smoothing = updated

    if not converged:
        raise FitFailure(
            f"smoothing parameter selection did not converge within {config.max_outer_iter} iterations"
            f" (last lambda = {np.array2string(smoothing, precision=4)})"
        )

    smooth_categories = [c for k, c in enumerate(table.categories) if k != reference]
    for category, lam in zip(smooth_categories, smoothing):
        if lam >= config.max_smoothing:
            warnings.warn(
                f"smoothing parameter for category {category!r} reached its upper bound "
                f"{config.max_smoothing:g}; its log-odds curve is effectively polynomial in age"
            )

    with torch.no_grad():
        log_likelihood = -float(MultinomialLoss(basis_t, counts_t, reference)(coefficients))
        log_det_hessian = 2.0 * float(torch.log(torch.diagonal(chol)).sum())
    edf = basis_size - smoothing * traces
    # Up to an additive constant not depending on the smoothing parameters
    laml = -value + 0.5 * rank * float(np.sum(np.log(smoothing))) - 0.5 * log_det_hessian

    logger.info(
        "Smoothing converged after %d updates: lambda=%s, edf=%s",
        outer, np.array2string(smoothing, precision=4), np.array2string(edf, precision=2),
    )

    return SmoothModel(
        categories=table.categories,
        reference=reference,
        knots=knots,
        degree=config.degree,
        coefficients=coefficients.numpy(),
        covariance=hess_inv.numpy(),
        smoothing=smoothing,
        edf=edf,
        log_likelihood=log_likelihood,
        laml=laml,
        n_obs=int(table.counts.sum()),
    )
