"""Cost matrices encoding which category transitions are plausible."""

from dataclasses import dataclass
from typing import Callable, Hashable, Optional, Sequence, Tuple, Union
import logging

import numpy as np
import pandas as pd

from .exceptions import InvalidConfig

__all__ = [
    "CostConfig",
    "CostMatrix",
    "build_cost_matrix",
    "COST_FUNCTIONS",
]

logger = logging.getLogger(__name__)

CostFunction = Callable[[int, int], float]


def _quadratic(i: int, j: int) -> float:
    return float((i - j) ** 2)


def _linear(i: int, j: int) -> float:
    return float(abs(i - j))


def _adjacent(i: int, j: int) -> float:
    # Moves of more than one category are forbidden
    distance = abs(i - j)
    return float(distance) if distance <= 1 else np.inf


COST_FUNCTIONS = {
    "quadratic": _quadratic,
    "linear": _linear,
    "adjacent": _adjacent,
}


@dataclass
class CostConfig:
    """Configuration of the category transition costs.

    Parameters
    ----------
    cost_function : Union[str, Callable[[int, int], float]]
        Cost of moving from category position i to position j. One of
        'quadratic' (default, ``|i-j|**2``), 'linear' (``|i-j|``), 'power'
        (``|i-j|**exponent``), 'adjacent' (``|i-j|`` for neighbours, other
        moves forbidden), or a callable of the two positions.
    exponent : float
        Exponent of the 'power' cost function
    matrix : Optional[np.ndarray]
        Explicit K x K cost matrix; takes precedence over `cost_function`
    category_order : Optional[Sequence[Hashable]]
        Category order the costs were designed for; checked against the
        categories of the data
    """
    cost_function: Union[str, CostFunction] = "quadratic"
    exponent: float = 2.0
    matrix: Optional[np.ndarray] = None
    category_order: Optional[Sequence[Hashable]] = None

    def __post_init__(self):
        if isinstance(self.cost_function, str) and self.cost_function not in {*COST_FUNCTIONS, "power"}:
            raise InvalidConfig(
                f"Unknown cost function: {self.cost_function}. "
                f"Expected one of {sorted({*COST_FUNCTIONS, 'power'})} or a callable"
            )
        if self.cost_function == "power" and self.exponent <= 0:
            raise InvalidConfig(f"exponent of the power cost must be positive, got {self.exponent}")

    def resolve(self) -> CostFunction:
        """Return the cost function as a callable of category positions."""
        if callable(self.cost_function):
            return self.cost_function
        if self.cost_function == "power":
            exponent = self.exponent
            return lambda i, j: float(abs(i - j) ** exponent)
        return COST_FUNCTIONS[self.cost_function]


@dataclass(frozen=True, eq=False)
class CostMatrix:
    """Immutable K x K matrix of transition costs between ordered categories.

    Entry (i, j) is the cost per unit of prevalence moving from category i
    to category j between consecutive ages; ``inf`` forbids the move.
    """
    categories: Tuple[Hashable, ...]
    values: np.ndarray

    def __post_init__(self):
        categories = tuple(self.categories)
        values = np.array(self.values, dtype=float)
        k = len(categories)
        if values.shape != (k, k):
            raise InvalidConfig(f"cost matrix has shape {values.shape}, expected ({k}, {k}) for categories {list(categories)}")
        if np.isnan(values).any():
            raise InvalidConfig("cost matrix contains NaN entries")
        if (values < 0).any():
            i, j = np.argwhere(values < 0)[0]
            raise InvalidConfig(f"cost of {categories[i]!r} -> {categories[j]!r} is negative: {values[i, j]:g}")
        diagonal = np.diag(values)
        if not np.isfinite(diagonal).all():
            raise InvalidConfig("staying in the same category must have a finite cost")
        for i in range(k):
            if diagonal[i] > values[i].min():
                raise InvalidConfig(
                    f"staying in {categories[i]!r} costs {diagonal[i]:g}, more than the cheapest move "
                    f"out of it ({values[i].min():g}); the diagonal must be minimal"
                )
        values.setflags(write=False)
        object.__setattr__(self, "categories", categories)
        object.__setattr__(self, "values", values)

    @property
    def n_categories(self) -> int:
        return len(self.categories)

    @property
    def allowed(self) -> np.ndarray:
        """Boolean mask of permitted transitions."""
        return np.isfinite(self.values)

    def check_categories(self, categories: Sequence[Hashable]) -> None:
        """Raise InvalidConfig unless `categories` match this matrix's order."""
        if tuple(categories) != self.categories:
            raise InvalidConfig(
                f"cost matrix was built for categories {list(self.categories)}, "
                f"but the model uses {list(categories)}"
            )

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(self.values, index=list(self.categories), columns=list(self.categories))


def build_cost_matrix(categories: Sequence[Hashable], config: Optional[CostConfig] = None) -> CostMatrix:
    """Build the cost matrix for an ordered sequence of categories.

    Parameters
    ----------
    categories : Sequence[Hashable]
        Ordered category labels
    config : Optional[CostConfig]
        Cost configuration, defaults to quadratic cost in categorical distance

    Returns
    -------
    CostMatrix
        Costs for every ordered pair of categories

    Raises
    ------
    InvalidConfig
        If the category order disagrees with the configuration or the
        resulting matrix is invalid
    """
    if config is None:
        config = CostConfig()
    categories = tuple(categories)
    if len(categories) < 2:
        raise InvalidConfig(f"at least two categories are required, got {list(categories)}")
    if config.category_order is not None and tuple(config.category_order) != categories:
        raise InvalidConfig(
            f"category order {list(categories)} does not match the configured order "
            f"{list(config.category_order)}"
        )

    if config.matrix is not None:
        values = np.asarray(config.matrix, dtype=float)
    else:
        cost_function = config.resolve()
        k = len(categories)
        values = np.array([[cost_function(i, j) for j in range(k)] for i in range(k)], dtype=float)

    cost = CostMatrix(categories=categories, values=values)
    logger.debug("Cost matrix for %s:\n%s", list(categories), cost.values)
    return cost
