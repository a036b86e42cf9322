"""End-to-end estimation: counts to net transitions with uncertainty bands."""

from dataclasses import dataclass
from typing import Any, Hashable, Optional, Sequence
import logging

import pandas as pd

from .bootstrap import BootstrapConfig, BootstrapResult, bootstrap_transitions
from .costs import CostConfig, CostMatrix, build_cost_matrix
from .estimation import TransitionEstimate, estimate_transitions
from .models import SmoothModel
from .train import SmoothConfig, fit

__all__ = [
    "NetTransitionResult",
    "estimate_net_transitions",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class NetTransitionResult:
    """Everything produced by `estimate_net_transitions`."""
    model: SmoothModel
    cost: CostMatrix
    estimate: TransitionEstimate
    bootstrap: Optional[BootstrapResult] = None

    def to_frame(self) -> pd.DataFrame:
        """Point estimates joined with bootstrap bands, one row per age step and category pair."""
        frame = self.estimate.to_frame()
        if self.bootstrap is None:
            return frame
        bands = self.bootstrap.to_frame()
        keys = ["age_from", "age_to", "from_category", "to_category"]
        return frame.merge(bands, on=keys, how="left")


def estimate_net_transitions(
    counts: Any,
    categories: Optional[Sequence[Hashable]] = None,
    smooth_config: Optional[SmoothConfig] = None,
    cost_config: Optional[CostConfig] = None,
    bootstrap_config: Optional[BootstrapConfig] = None,
    ages: Optional[Sequence[float]] = None,
    run_bootstrap: bool = True,
) -> NetTransitionResult:
    """Smooth prevalence, estimate net transitions and bootstrap their uncertainty.

    Parameters
    ----------
    counts : CountTable, DataFrame or iterable of CategoryCount
        Cross-sectional category counts by age
    categories : Optional[Sequence[Hashable]]
        Ordered category labels; required unless `counts` is a CountTable
    smooth_config : Optional[SmoothConfig]
        Prevalence smoothing configuration
    cost_config : Optional[CostConfig]
        Transition cost configuration
    bootstrap_config : Optional[BootstrapConfig]
        Bootstrap configuration
    ages : Optional[Sequence[float]]
        Age grid; defaults to every integer age in the fitted range
    run_bootstrap : bool
        Whether to compute uncertainty bands

    Returns
    -------
    NetTransitionResult
        Fitted model, cost matrix, point estimates and (optionally) bands
    """
    model = fit(counts, categories, smooth_config)
    cost = build_cost_matrix(model.categories, cost_config)
    estimate = estimate_transitions(model, ages, cost)

    bootstrap = None
    if run_bootstrap:
        bootstrap = bootstrap_transitions(model, estimate.ages, cost, bootstrap_config)
    else:
        logger.info("Skipping bootstrap; no uncertainty bands computed")

    return NetTransitionResult(model=model, cost=cost, estimate=estimate, bootstrap=bootstrap)
