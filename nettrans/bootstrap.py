"""Parametric bootstrap of net transition probabilities."""

from dataclasses import dataclass, field
from typing import Hashable, List, Optional, Sequence, Tuple
import logging
import math
import time

import numpy as np
import pandas as pd
from joblib import Parallel, delayed, effective_n_jobs
from tqdm.auto import tqdm

from .costs import CostMatrix, build_cost_matrix
from .estimation import transitions_from_prevalence
from .exceptions import InsufficientReplicates, InvalidConfig, NetTransError
from .models import SmoothModel
from .transport import DEFAULT_TOL
from .utils.age_grid import AgeGrid

__all__ = [
    "BootstrapConfig",
    "BootstrapResult",
    "bootstrap_transitions",
]

logger = logging.getLogger(__name__)


@dataclass
class BootstrapConfig:
    """Configuration for the parametric bootstrap.

    Parameters
    ----------
    replicates : int
        Number of coefficient draws
    random_seed : Optional[int]
        Seed for reproducible resampling
    confidence_level : float
        Coverage of the percentile bands
    n_jobs : int
        Number of parallel workers; 1 runs serially, -1 uses all cores
    time_limit : Optional[float]
        Seconds after which no further replicates are started
    min_success_fraction : float
        Fraction of attempted replicates that must succeed
    batch_size : int
        Replicates per task handed to a worker
    keep_samples : bool
        Whether to keep every replicate's transition probabilities
    show_progress : bool
        Whether to show a progress bar
    tol : float
        Tolerance on prevalence sums and for degenerate rows
    """
    replicates: int = 1000
    random_seed: Optional[int] = None
    confidence_level: float = 0.95
    n_jobs: int = 1
    time_limit: Optional[float] = None
    min_success_fraction: float = 0.9
    batch_size: int = 25
    keep_samples: bool = False
    show_progress: bool = False
    tol: float = DEFAULT_TOL

    def __post_init__(self):
        if self.replicates <= 0:
            raise InvalidConfig(f"replicates must be a positive integer, got {self.replicates}")
        if not 0 < self.confidence_level < 1:
            raise InvalidConfig(f"confidence_level must lie in (0, 1), got {self.confidence_level}")
        if not 0 <= self.min_success_fraction <= 1:
            raise InvalidConfig(f"min_success_fraction must lie in [0, 1], got {self.min_success_fraction}")
        if self.time_limit is not None and self.time_limit <= 0:
            raise InvalidConfig(f"time_limit must be positive, got {self.time_limit}")
        if self.n_jobs == 0:
            raise InvalidConfig("n_jobs must not be 0")
        if self.batch_size <= 0:
            raise InvalidConfig(f"batch_size must be positive, got {self.batch_size}")


@dataclass(frozen=True, eq=False)
class BootstrapResult:
    """Percentile bands of net transition probabilities.

    Band arrays have shape (n_ages - 1, K, K) for transitions and
    (n_ages, K) for prevalence.
    """
    categories: Tuple[Hashable, ...]
    ages: np.ndarray
    confidence_level: float
    lower: np.ndarray
    upper: np.ndarray
    median: np.ndarray
    prevalence_lower: np.ndarray
    prevalence_upper: np.ndarray
    requested: int
    attempted: int
    successes: int
    failures: List[Tuple[int, str]] = field(default_factory=list)
    interrupted: bool = False
    samples: Optional[np.ndarray] = None

    def to_frame(self) -> pd.DataFrame:
        """Tidy DataFrame of the bands, one row per age step and category pair."""
        n_steps, k, _ = self.lower.shape
        step, i, j = np.meshgrid(np.arange(n_steps), np.arange(k), np.arange(k), indexing="ij")
        step, i, j = step.ravel(), i.ravel(), j.ravel()
        labels = np.array(self.categories, dtype=object)
        return pd.DataFrame({
            "age_from": self.ages[step],
            "age_to": self.ages[step + 1],
            "from_category": labels[i],
            "to_category": labels[j],
            "lower": self.lower[step, i, j],
            "median": self.median[step, i, j],
            "upper": self.upper[step, i, j],
        })


def _run_replicates(
    model: SmoothModel,
    basis: np.ndarray,
    ages: np.ndarray,
    cost: CostMatrix,
    factor: np.ndarray,
    seeds: Sequence[Tuple[int, np.random.SeedSequence]],
    tol: float,
) -> List[Tuple[int, Optional[np.ndarray], Optional[np.ndarray], Optional[str]]]:
    """Run a batch of replicates; each writes only its own result slot."""
    results = []
    for index, seed in seeds:
        rng = np.random.default_rng(seed)
        try:
            replicate = model.resample(rng, factor)
            prevalence = replicate.predict_proba(ages, basis)
            estimate = transitions_from_prevalence(ages, prevalence, cost, tol)
        except NetTransError as e:
            results.append((index, None, None, str(e)))
            continue
        results.append((index, np.array(estimate.probabilities), prevalence, None))
    return results


def bootstrap_transitions(
    model: SmoothModel,
    ages: Optional[Sequence[float]] = None,
    cost: Optional[CostMatrix] = None,
    config: Optional[BootstrapConfig] = None,
) -> BootstrapResult:
    """Parametric bootstrap of net transition probabilities.

    Each replicate draws coefficients from the fitted model's approximate
    normal distribution, recomputes prevalence on the age grid and solves
    the transport problems again. Replicates use independent random streams
    spawned from the seed, so the result does not depend on execution order
    or on the number of workers.

    Parameters
    ----------
    model : SmoothModel
        Fitted prevalence model
    ages : Optional[Sequence[float]]
        Age grid; defaults to every integer age in the fitted range
    cost : Optional[CostMatrix]
        Transition costs; defaults to quadratic cost in categorical distance
    config : Optional[BootstrapConfig]
        Bootstrap configuration, defaults to standard parameters

    Returns
    -------
    BootstrapResult
        Percentile bands per age step and category pair

    Raises
    ------
    InsufficientReplicates
        If too few replicates produced usable results
    """
    if config is None:
        config = BootstrapConfig()
    if cost is None:
        cost = build_cost_matrix(model.categories)
    cost.check_categories(model.categories)
    grid = AgeGrid.for_model(model, ages)

    basis = model.design_matrix(grid.ages)
    factor = model.covariance_factor()
    seeds = list(enumerate(np.random.SeedSequence(config.random_seed).spawn(config.replicates)))
    batches = [seeds[s:s + config.batch_size] for s in range(0, len(seeds), config.batch_size)]

    n_workers = 1 if config.n_jobs == 1 else effective_n_jobs(config.n_jobs)
    rounds = [batches[r:r + n_workers] for r in range(0, len(batches), n_workers)]
    logger.info(
        "Bootstrapping %d replicates over %d age steps with %d worker(s)",
        config.replicates, grid.n_ages - 1, n_workers,
    )

    start = time.monotonic()
    results = []
    interrupted = False
    parallel = Parallel(n_jobs=n_workers) if n_workers > 1 else None
    with tqdm(total=config.replicates, desc="Bootstrap replicates", disable=not config.show_progress) as progress:
        for round_batches in rounds:
            if config.time_limit is not None and time.monotonic() - start > config.time_limit:
                interrupted = True
                break
            args = (model, basis, grid.ages, cost, factor)
            if parallel is None:
                outputs = [_run_replicates(*args, batch, config.tol) for batch in round_batches]
            else:
                outputs = parallel(delayed(_run_replicates)(*args, batch, config.tol) for batch in round_batches)
            for output in outputs:
                results.extend(output)
                progress.update(len(output))

    results.sort(key=lambda r: r[0])
    failures = [(index, message) for index, _, _, message in results if message is not None]
    for index, message in failures:
        logger.warning("Bootstrap replicate %d excluded: %s", index, message)
    successful = [r for r in results if r[3] is None]

    attempted = len(results)
    if interrupted:
        logger.warning(
            "Bootstrap stopped after %.1f s time limit: %d of %d replicates attempted",
            config.time_limit, attempted, config.replicates,
        )
    required = max(1, math.ceil(config.min_success_fraction * attempted))
    if len(successful) < required:
        raise InsufficientReplicates(len(successful), required, failures)

    samples = np.stack([r[1] for r in successful])
    prevalence = np.stack([r[2] for r in successful])
    alpha = 1.0 - config.confidence_level
    percentiles = [100.0 * alpha / 2, 50.0, 100.0 * (1 - alpha / 2)]
    lower, median, upper = np.percentile(samples, percentiles, axis=0)
    prevalence_lower, prevalence_upper = np.percentile(prevalence, [percentiles[0], percentiles[2]], axis=0)

    logger.info(
        "Bootstrap finished: %d of %d attempted replicates used, %d excluded",
        len(successful), attempted, len(failures),
    )
    return BootstrapResult(
        categories=cost.categories,
        ages=np.array(grid.ages),
        confidence_level=config.confidence_level,
        lower=lower,
        upper=upper,
        median=median,
        prevalence_lower=prevalence_lower,
        prevalence_upper=prevalence_upper,
        requested=config.replicates,
        attempted=attempted,
        successes=len(successful),
        failures=failures,
        interrupted=interrupted,
        samples=samples if config.keep_samples else None,
    )
