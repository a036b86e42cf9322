"""Shared fixtures for the nettrans test suite."""

import matplotlib
matplotlib.use("Agg")

import numpy as np
import pytest

from nettrans.models import SmoothModel
from nettrans.splines import equispaced_knots
from nettrans.train import SmoothConfig, fit
from nettrans.utils.simulation import BMI_CATEGORIES, bmi_prevalence, generate_cross_sectional_counts


def pytest_configure(config):
    config.addinivalue_line("markers", "slow: long-running statistical tests")


def make_linear_model(coefficients, covariance=None, categories=("low", "high")):
    """Two-age model on [0, 1] with linear B-splines; coefficient k is eta at age k."""
    coefficients = np.atleast_2d(np.asarray(coefficients, dtype=float))
    n_params = coefficients.size
    if covariance is None:
        covariance = np.eye(n_params)
    return SmoothModel(
        categories=categories,
        reference=0,
        knots=equispaced_knots(0.0, 1.0, 2, degree=1),
        degree=1,
        coefficients=coefficients,
        covariance=covariance,
        smoothing=np.ones(len(categories) - 1),
        edf=np.full(len(categories) - 1, 2.0),
    )


@pytest.fixture(scope="session")
def bmi_ages():
    return np.arange(0, 11)


@pytest.fixture(scope="session")
def bmi_counts(bmi_ages):
    """Normal/overweight/obese counts shifting away from normal with age."""
    return generate_cross_sectional_counts(
        bmi_ages, bmi_prevalence(bmi_ages), n_per_age=3000, categories=BMI_CATEGORIES, random_seed=42
    )


@pytest.fixture(scope="session")
def bmi_model(bmi_counts):
    return fit(bmi_counts, BMI_CATEGORIES, SmoothConfig())


@pytest.fixture
def linear_model():
    """Factory for small hand-built models with a known coefficient distribution."""
    return make_linear_model
