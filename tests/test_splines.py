"""Tests for B-spline bases and difference penalties."""

import numpy as np
import pytest

from nettrans.exceptions import InvalidConfig
from nettrans.splines import bspline_basis, difference_penalty, equispaced_knots


def test_knots_cover_range():
    knots = equispaced_knots(0.0, 10.0, basis_size=8, degree=3)
    assert len(knots) == 8 + 3 + 1
    assert knots[3] == pytest.approx(0.0)
    assert knots[-4] == pytest.approx(10.0)
    assert np.allclose(np.diff(knots), np.diff(knots)[0])


def test_basis_partition_of_unity():
    knots = equispaced_knots(20.0, 80.0, basis_size=10)
    x = np.linspace(20.0, 80.0, 101)
    basis = bspline_basis(x, knots)

    assert basis.shape == (101, 10)
    assert (basis >= -1e-12).all()
    assert np.allclose(basis.sum(axis=1), 1.0)


def test_basis_local_support():
    knots = equispaced_knots(0.0, 10.0, basis_size=8, degree=3)
    basis = bspline_basis(np.array([5.0]), knots)
    # A cubic B-spline basis has at most four non-zero functions at any point
    assert (basis[0] > 1e-12).sum() <= 4


def test_linear_basis_interpolates_coefficients():
    knots = equispaced_knots(0.0, 1.0, basis_size=2, degree=1)
    basis = bspline_basis(np.array([0.0, 0.25, 1.0]), knots, degree=1)
    np.testing.assert_allclose(basis, [[1.0, 0.0], [0.75, 0.25], [0.0, 1.0]], atol=1e-12)


def test_basis_outside_range_raises():
    knots = equispaced_knots(0.0, 10.0, basis_size=6)
    with pytest.raises(InvalidConfig, match="age 12 lies outside the fitted range"):
        bspline_basis(np.array([5.0, 12.0]), knots)


def test_knots_validation():
    with pytest.raises(InvalidConfig):
        equispaced_knots(0.0, 10.0, basis_size=3, degree=3)
    with pytest.raises(InvalidConfig):
        equispaced_knots(5.0, 5.0, basis_size=6)


def test_difference_penalty_rank_and_null_space():
    penalty, rank = difference_penalty(8, order=2)

    assert penalty.shape == (8, 8)
    assert rank == 6
    assert np.allclose(penalty, penalty.T)
    assert np.linalg.matrix_rank(penalty) == 6
    # Constant and linear coefficient sequences are not penalized
    assert np.allclose(penalty @ np.ones(8), 0.0)
    assert np.allclose(penalty @ np.arange(8.0), 0.0)
    assert np.arange(8.0) ** 2 @ penalty @ np.arange(8.0) ** 2 > 0


def test_difference_penalty_validation():
    with pytest.raises(InvalidConfig):
        difference_penalty(2, order=2)
    with pytest.raises(InvalidConfig):
        difference_penalty(5, order=0)
