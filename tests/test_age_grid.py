"""Tests for age grids."""

import numpy as np
import pytest

from nettrans.exceptions import InvalidConfig
from nettrans.utils.age_grid import AgeGrid


def test_age_grid_initialization():
    grid = AgeGrid([20, 25, 30, 40])

    np.testing.assert_array_equal(grid.ages, [20.0, 25.0, 30.0, 40.0])
    assert grid.n_ages == len(grid) == 4
    assert grid.age_to_idx == {20.0: 0, 25.0: 1, 30.0: 2, 40.0: 3}
    assert repr(grid) == "AgeGrid(20 to 40, 4 ages)"


def test_from_range():
    np.testing.assert_array_equal(AgeGrid.from_range(0, 10).ages, np.arange(11.0))
    np.testing.assert_allclose(AgeGrid.from_range(0, 1, 0.25).ages, [0, 0.25, 0.5, 0.75, 1.0])
    # The upper end is only included when reached exactly
    np.testing.assert_array_equal(AgeGrid.from_range(0, 10, 3).ages, [0.0, 3.0, 6.0, 9.0])


def test_pairs():
    assert AgeGrid([0, 1, 3]).pairs() == [(0.0, 1.0), (1.0, 3.0)]


def test_conversions():
    grid = AgeGrid(np.arange(0, 25, 5))

    assert grid.to_idx(10) == 2
    assert grid.to_idx(11.9) == 2
    assert grid.to_idx(13) == 3
    np.testing.assert_array_equal(grid.to_idx([0, 7, 20]), [0, 1, 4])
    assert grid.to_age(3) == 15.0
    assert grid.to_age(-1) == 0.0
    assert grid.to_age(10) == 20.0
    np.testing.assert_array_equal(grid.to_age([0, 4, 9]), [0.0, 20.0, 20.0])


@pytest.mark.parametrize("ages, message", [
    ([5], "at least two"),
    ([1, 1, 2], "strictly increasing"),
    ([3, 2], "age 2 follows 3"),
    ([0, np.inf], "non-finite"),
])
def test_invalid_grids(ages, message):
    with pytest.raises(InvalidConfig, match=message):
        AgeGrid(ages)


def test_invalid_step():
    with pytest.raises(InvalidConfig):
        AgeGrid.from_range(0, 10, 0)


def test_grid_is_read_only():
    grid = AgeGrid([0, 1])
    with pytest.raises(ValueError):
        grid.ages[0] = 3


def test_for_model(linear_model):
    model = linear_model([[0.0, 0.0]])

    np.testing.assert_array_equal(AgeGrid.for_model(model).ages, [0.0, 1.0])
    np.testing.assert_allclose(AgeGrid.for_model(model, [0, 0.5, 1]).ages, [0, 0.5, 1])
    grid = AgeGrid([0.2, 0.8])
    assert AgeGrid.for_model(model, grid) is grid
    with pytest.raises(InvalidConfig, match="outside the fitted range"):
        AgeGrid.for_model(model, [0.0, 1.5])
