"""Exception hierarchy for net transition estimation."""

from typing import List, Optional, Tuple

__all__ = [
    "NetTransError",
    "FitFailure",
    "InvalidConfig",
    "InfeasibleProblem",
    "InsufficientReplicates",
]


class NetTransError(Exception):
    """Base class for all errors raised by nettrans."""


class FitFailure(NetTransError, RuntimeError):
    """The prevalence smoother could not produce a fitted model."""


class InvalidConfig(NetTransError, ValueError):
    """Configuration is inconsistent with the data or with itself."""


class InfeasibleProblem(NetTransError, ValueError):
    """A transportation problem has invalid marginals or no feasible flow.

    Parameters
    ----------
    message : str
        Description of the violated invariant
    age_pair : Optional[Tuple[float, float]]
        Age step the problem belongs to, when known
    """

    def __init__(self, message: str, age_pair: Optional[Tuple[float, float]] = None):
        self.message = message
        self.age_pair = age_pair
        super().__init__(self._format())

    def _format(self) -> str:
        if self.age_pair is None:
            return self.message
        a, b = self.age_pair
        return f"age {a:g} -> {b:g}: {self.message}"

    def with_age_pair(self, age_pair: Tuple[float, float]) -> "InfeasibleProblem":
        """Return a copy of this error attached to an age step."""
        return InfeasibleProblem(self.message, age_pair=age_pair)


class InsufficientReplicates(NetTransError, RuntimeError):
    """Too many bootstrap replicates failed to give usable results."""

    def __init__(self, successes: int, required: int, failures: Optional[List[Tuple[int, str]]] = None):
        self.successes = successes
        self.required = required
        self.failures = list(failures or [])
        message = (
            f"only {successes} bootstrap replicates succeeded, at least {required} required"
            f" ({len(self.failures)} failed)"
        )
        if self.failures:
            index, reason = self.failures[0]
            message += f"; first failure in replicate {index}: {reason}"
        super().__init__(message)
