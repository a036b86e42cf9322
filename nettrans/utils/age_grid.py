"""Age grids on which prevalence and transitions are evaluated."""

from typing import List, Optional, Sequence, Tuple, Union
import numpy as np

from ..exceptions import InvalidConfig


class AgeGrid:
    """Strictly increasing ages with index lookups.

    Parameters
    ----------
    ages : Sequence[float]
        Ages in increasing order; transitions are computed between
        consecutive entries

    Attributes
    ----------
    ages : np.ndarray
        The grid ages
    age_to_idx : dict
        Mapping from age to position in the grid
    n_ages : int
        Number of ages in the grid
    """

    def __init__(self, ages: Sequence[float]):
        ages = np.asarray(ages, dtype=float).ravel()
        if len(ages) < 2:
            raise InvalidConfig(f"an age grid needs at least two ages, got {ages.tolist()}")
        if not np.isfinite(ages).all():
            raise InvalidConfig("age grid contains non-finite ages")
        steps = np.diff(ages)
        if (steps <= 0).any():
            k = int(np.argmax(steps <= 0))
            raise InvalidConfig(
                f"age grid must be strictly increasing, but age {ages[k + 1]:g} follows {ages[k]:g}"
            )
        ages.setflags(write=False)
        self.ages = ages
        self.age_to_idx = {float(a): i for i, a in enumerate(ages)}
        self.n_ages = len(ages)

    @classmethod
    def from_range(cls, lower: float, upper: float, step: float = 1.0) -> "AgeGrid":
        """Grid from `lower` to `upper` (inclusive when reached exactly) in steps of `step`."""
        if step <= 0:
            raise InvalidConfig(f"age step must be positive, got {step}")
        n = int(np.floor((upper - lower) / step + 1e-9)) + 1
        return cls(lower + step * np.arange(n))

    @classmethod
    def for_model(cls, model, ages: Optional[Sequence[float]] = None) -> "AgeGrid":
        """Grid inside the fitted range of `model`.

        Defaults to every integer age in the fitted range.
        """
        lower, upper = model.age_range
        if ages is None:
            tol = 1e-9 * max(1.0, upper - lower)
            grid = cls.from_range(np.ceil(lower - tol), np.floor(upper + tol))
        elif isinstance(ages, AgeGrid):
            grid = ages
        else:
            grid = cls(ages)
        grid.check_within(lower, upper)
        return grid

    def check_within(self, lower: float, upper: float) -> None:
        """Raise InvalidConfig for ages outside [lower, upper]."""
        tol = 1e-9 * max(1.0, upper - lower)
        outside = self.ages[(self.ages < lower - tol) | (self.ages > upper + tol)]
        if len(outside):
            raise InvalidConfig(
                f"age {outside[0]:g} lies outside the fitted range [{lower:g}, {upper:g}]"
            )

    def pairs(self) -> List[Tuple[float, float]]:
        """Consecutive age pairs (a_k, a_k+1)."""
        return [(float(a), float(b)) for a, b in zip(self.ages[:-1], self.ages[1:])]

    def to_idx(self, age: Union[float, Sequence[float], np.ndarray]) -> Union[int, np.ndarray]:
        """Index of the grid age closest to `age`."""
        if isinstance(age, (int, float, np.number)):
            idx = self.age_to_idx.get(float(age))
            if idx is not None:
                return idx
            return int(np.argmin(np.abs(self.ages - float(age))))
        values = np.asarray(age, dtype=float)
        return np.abs(self.ages[None, :] - values.reshape(-1, 1)).argmin(axis=1).reshape(values.shape)

    def to_age(self, idx: Union[int, Sequence[int], np.ndarray]) -> Union[float, np.ndarray]:
        """Grid age at index `idx`, clamped to the valid range."""
        if isinstance(idx, (int, np.integer)):
            return float(self.ages[max(0, min(int(idx), self.n_ages - 1))])
        indices = np.clip(np.asarray(idx, dtype=int), 0, self.n_ages - 1)
        return self.ages[indices]

    def __len__(self) -> int:
        return self.n_ages

    def __repr__(self) -> str:
        return f"AgeGrid({self.ages[0]:g} to {self.ages[-1]:g}, {self.n_ages} ages)"
