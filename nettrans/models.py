"""Fitted prevalence model."""

from dataclasses import dataclass, replace
from typing import Any, Dict, Hashable, Optional, Sequence, Tuple
import json
import os

import numpy as np
import pandas as pd
import torch

from .exceptions import InvalidConfig
from .losses import multinomial_log_proba
from .splines import bspline_basis

__all__ = [
    "SmoothModel",
]


def _frozen(array: Any) -> np.ndarray:
    array = np.array(array, dtype=float)
    array.setflags(write=False)
    return array


@dataclass(frozen=True, eq=False)
class SmoothModel:
    """Multinomial-logit P-spline model of prevalence by age.

    Each non-reference category k has linear predictor
    ``eta_k(age) = B(age) @ coefficients[k]``; the reference category has
    ``eta = 0``. Probabilities are the softmax of the K linear predictors, so
    they lie in [0, 1] and sum to one at every age.

    Instances are immutable; resampling returns a new model.

    Attributes
    ----------
    categories : tuple
        Ordered category labels
    reference : int
        Index of the reference category
    knots : np.ndarray
        B-spline knot sequence
    degree : int
        B-spline degree
    coefficients : np.ndarray
        Basis coefficients, shape (K-1, basis_size), non-reference categories in order
    covariance : np.ndarray
        Covariance of the flattened coefficients, shape ((K-1)*basis_size,)*2
    smoothing : np.ndarray
        Smoothing parameter of each non-reference category smooth
    edf : np.ndarray
        Effective degrees of freedom of each smooth
    log_likelihood : float
        Multinomial log-likelihood at the fitted coefficients
    laml : float
        Laplace approximate marginal likelihood at the chosen smoothing parameters
    n_obs : int
        Number of individuals the model was fitted on
    """
    categories: Tuple[Hashable, ...]
    reference: int
    knots: np.ndarray
    degree: int
    coefficients: np.ndarray
    covariance: np.ndarray
    smoothing: np.ndarray
    edf: np.ndarray
    log_likelihood: float = float("nan")
    laml: float = float("nan")
    n_obs: int = 0

    def __post_init__(self):
        object.__setattr__(self, "categories", tuple(self.categories))
        for name in ["knots", "coefficients", "covariance", "smoothing", "edf"]:
            object.__setattr__(self, name, _frozen(getattr(self, name)))

        n_smooth = len(self.categories) - 1
        if self.coefficients.shape != (n_smooth, self.basis_size):
            raise InvalidConfig(
                f"coefficients have shape {self.coefficients.shape}, expected ({n_smooth}, {self.basis_size})"
            )
        n_params = self.coefficients.size
        if self.covariance.shape != (n_params, n_params):
            raise InvalidConfig(
                f"covariance has shape {self.covariance.shape}, expected ({n_params}, {n_params})"
            )
        if not 0 <= self.reference < len(self.categories):
            raise InvalidConfig(f"reference index {self.reference} out of range")

    @property
    def n_categories(self) -> int:
        return len(self.categories)

    @property
    def basis_size(self) -> int:
        return len(self.knots) - self.degree - 1

    @property
    def age_range(self) -> Tuple[float, float]:
        """Ages covered by the spline basis."""
        return float(self.knots[self.degree]), float(self.knots[-self.degree - 1])

    @property
    def reference_category(self) -> Hashable:
        return self.categories[self.reference]

    @property
    def coefficient_vector(self) -> np.ndarray:
        """Coefficients flattened category by category."""
        return self.coefficients.reshape(-1)

    def design_matrix(self, ages: Sequence[float]) -> np.ndarray:
        """B-spline basis evaluated at `ages`, shape (n, basis_size)."""
        return bspline_basis(np.asarray(ages, dtype=float), self.knots, self.degree)

    def linear_predictor(self, ages: Sequence[float], basis: Optional[np.ndarray] = None) -> np.ndarray:
        """Linear predictors of the non-reference categories, shape (n, K-1)."""
        if basis is None:
            basis = self.design_matrix(ages)
        return basis @ self.coefficients.T

    @torch.no_grad()
    def predict_proba(self, ages: Sequence[float], basis: Optional[np.ndarray] = None) -> np.ndarray:
        """Prevalence vectors at the given ages.

        Parameters
        ----------
        ages : Sequence[float]
            Ages inside the fitted range
        basis : Optional[np.ndarray]
            Precomputed design matrix for `ages`

        Returns
        -------
        np.ndarray
            Probabilities of shape (n, K); rows are non-negative and sum to one
        """
        eta = torch.from_numpy(np.ascontiguousarray(self.linear_predictor(ages, basis)))
        return multinomial_log_proba(eta, self.reference).exp().numpy()

    def prevalence_frame(self, ages: Sequence[float]) -> pd.DataFrame:
        """Prevalence in long format with columns age, category, prevalence."""
        ages = np.asarray(ages, dtype=float)
        proba = self.predict_proba(ages)
        return pd.DataFrame({
            "age": np.repeat(ages, self.n_categories),
            "category": list(self.categories) * len(ages),
            "prevalence": proba.reshape(-1),
        })

    def with_coefficients(self, coefficients: np.ndarray) -> "SmoothModel":
        """Return a copy of the model with different coefficients."""
        coefficients = np.asarray(coefficients, dtype=float).reshape(self.coefficients.shape)
        return replace(self, coefficients=coefficients)

    def covariance_factor(self) -> np.ndarray:
        """Factor L with L @ L.T equal to the covariance."""
        try:
            return np.linalg.cholesky(self.covariance)
        except np.linalg.LinAlgError:
            # Semi-definite up to rounding: use the clipped eigendecomposition
            values, vectors = np.linalg.eigh(self.covariance)
            return vectors * np.sqrt(np.clip(values, 0.0, None))

    def resample(self, rng: np.random.Generator, factor: Optional[np.ndarray] = None) -> "SmoothModel":
        """Draw a model with coefficients from N(coefficients, covariance).

        Parameters
        ----------
        rng : np.random.Generator
            Source of randomness
        factor : Optional[np.ndarray]
            Precomputed `covariance_factor()`

        Returns
        -------
        SmoothModel
            New model; this one is left unchanged
        """
        if factor is None:
            factor = self.covariance_factor()
        draw = self.coefficient_vector + factor @ rng.standard_normal(self.coefficients.size)
        return self.with_coefficients(draw)

    def summary(self, print_fn=print) -> Dict[str, Any]:
        """Print and return a summary of the fitted model.

        Parameters
        ----------
        print_fn : callable
            Function used for printing the summary (default: print)

        Returns
        -------
        Dict[str, Any]
            Dictionary containing model summary information
        """
        model_type = self.__class__.__name__
        lower, upper = self.age_range
        print_fn(f"==== {model_type} Summary ====")
        print_fn(f"Categories: {list(self.categories)} (reference: {self.reference_category!r})")
        print_fn(f"Age range: {lower:g} to {upper:g}")
        print_fn(f"Basis: {self.basis_size} B-splines of degree {self.degree}")
        print_fn(f"Observations: {self.n_obs:,}")
        smooth_categories = [c for k, c in enumerate(self.categories) if k != self.reference]
        for category, lam, edf in zip(smooth_categories, self.smoothing, self.edf):
            print_fn(f"  {category!r}: lambda = {lam:.4g}, edf = {edf:.2f}")
        print_fn(f"Log-likelihood: {self.log_likelihood:.3f}")
        print_fn(f"Laplace marginal likelihood: {self.laml:.3f}")
        print_fn("=" * (len(model_type) + 14))

        return {
            "model_type": model_type,
            "categories": list(self.categories),
            "reference_category": self.reference_category,
            "age_range": (lower, upper),
            "basis_size": self.basis_size,
            "degree": self.degree,
            "n_obs": self.n_obs,
            "smoothing": self.smoothing.tolist(),
            "edf": self.edf.tolist(),
            "log_likelihood": self.log_likelihood,
            "laml": self.laml,
        }

    def save(self, directory: str, filename: str = "model") -> str:
        """Save the model to disk.

        The configuration goes to ``<filename>_config.json`` and the arrays
        to ``<filename>_state_dict.pt``.

        Parameters
        ----------
        directory : str
            Directory path where model will be saved
        filename : str, optional
            Base filename for saved model files, default is "model"

        Returns
        -------
        str
            Path to the state dictionary file
        """
        os.makedirs(directory, exist_ok=True)

        config = {
            "model_type": self.__class__.__name__,
            "categories": list(self.categories),
            "reference": self.reference,
            "degree": self.degree,
            "log_likelihood": self.log_likelihood,
            "laml": self.laml,
            "n_obs": self.n_obs,
        }
        config_path = os.path.join(directory, f"{filename}_config.json")
        with open(config_path, "w") as f:
            json.dump(config, f, indent=2)

        state_dict = {
            name: torch.from_numpy(np.array(getattr(self, name)))
            for name in ["knots", "coefficients", "covariance", "smoothing", "edf"]
        }
        state_dict_path = os.path.join(directory, f"{filename}_state_dict.pt")
        torch.save(state_dict, state_dict_path)
        return state_dict_path

    @classmethod
    def load(cls, directory: str, filename: str = "model") -> "SmoothModel":
        """Load a model saved with `save`.

        Raises
        ------
        FileNotFoundError
            If the configuration or state file is missing
        ValueError
            If the saved model is of another type
        """
        config_path = os.path.join(directory, f"{filename}_config.json")
        state_dict_path = os.path.join(directory, f"{filename}_state_dict.pt")
        for path in [config_path, state_dict_path]:
            if not os.path.exists(path):
                raise FileNotFoundError(f"Model file not found at {path}")

        with open(config_path, "r") as f:
            config = json.load(f)
        if config["model_type"] != cls.__name__:
            raise ValueError(f"Saved model is of type {config['model_type']}, not {cls.__name__}")

        state_dict = torch.load(state_dict_path, map_location="cpu")
        return cls(
            categories=tuple(config["categories"]),
            reference=config["reference"],
            degree=config["degree"],
            log_likelihood=config["log_likelihood"],
            laml=config["laml"],
            n_obs=config["n_obs"],
            **{name: tensor.numpy() for name, tensor in state_dict.items()},
        )
