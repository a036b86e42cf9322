"""Tests for transition cost matrices."""

import numpy as np
import pytest

from nettrans.costs import CostConfig, CostMatrix, build_cost_matrix
from nettrans.exceptions import InvalidConfig

CATEGORIES = ("normal", "overweight", "obese")


def test_default_cost_is_quadratic():
    cost = build_cost_matrix(CATEGORIES)

    assert cost.categories == CATEGORIES
    np.testing.assert_array_equal(cost.values, [[0, 1, 4], [1, 0, 1], [4, 1, 0]])
    assert cost.allowed.all()


@pytest.mark.parametrize("config, expected", [
    (CostConfig("linear"), [[0, 1, 2], [1, 0, 1], [2, 1, 0]]),
    (CostConfig("power", exponent=3.0), [[0, 1, 8], [1, 0, 1], [8, 1, 0]]),
    (CostConfig(lambda i, j: 2.0 * abs(i - j) if j > i else abs(i - j)), [[0, 2, 4], [1, 0, 2], [2, 1, 0]]),
])
def test_cost_functions(config, expected):
    np.testing.assert_allclose(build_cost_matrix(CATEGORIES, config).values, expected)


def test_adjacent_cost_forbids_jumps():
    cost = build_cost_matrix(CATEGORIES, CostConfig("adjacent"))

    assert np.isinf(cost.values[0, 2]) and np.isinf(cost.values[2, 0])
    np.testing.assert_array_equal(cost.allowed, [[True, True, False], [True, True, True], [False, True, True]])


def test_explicit_matrix():
    matrix = np.array([[0.0, 1.0], [np.inf, 0.0]])
    cost = build_cost_matrix(["a", "b"], CostConfig(matrix=matrix))

    np.testing.assert_array_equal(cost.values, matrix)
    assert cost.to_frame().loc["b", "a"] == np.inf


def test_cost_matrix_is_immutable():
    cost = build_cost_matrix(CATEGORIES)
    with pytest.raises(ValueError):
        cost.values[0, 1] = 10.0


@pytest.mark.parametrize("matrix, message", [
    (np.zeros((2, 2)), "shape"),
    (np.array([[0, 1, np.nan], [1, 0, 1], [1, 1, 0]]), "NaN"),
    (np.array([[0, -1, 1], [1, 0, 1], [1, 1, 0]]), "negative"),
    (np.array([[2, 1, 3], [1, 0, 1], [1, 1, 0]]), "diagonal must be minimal"),
    (np.array([[np.inf, 1, 1], [1, 0, 1], [1, 1, 0]]), "finite cost"),
])
def test_invalid_matrix(matrix, message):
    with pytest.raises(InvalidConfig, match=message):
        build_cost_matrix(CATEGORIES, CostConfig(matrix=matrix))


def test_category_order_mismatch():
    config = CostConfig(category_order=("obese", "overweight", "normal"))
    with pytest.raises(InvalidConfig, match="does not match"):
        build_cost_matrix(CATEGORIES, config)


def test_check_categories():
    cost = build_cost_matrix(CATEGORIES)
    cost.check_categories(list(CATEGORIES))
    with pytest.raises(InvalidConfig, match="built for categories"):
        cost.check_categories(("normal", "obese", "overweight"))


def test_config_validation():
    with pytest.raises(InvalidConfig, match="Unknown cost function"):
        CostConfig("cubic")
    with pytest.raises(InvalidConfig):
        CostConfig("power", exponent=0.0)
    with pytest.raises(InvalidConfig, match="at least two"):
        build_cost_matrix(["only"])


def test_direct_construction_validates():
    with pytest.raises(InvalidConfig):
        CostMatrix(categories=("a", "b"), values=[[0.0, 1.0], [-1.0, 0.0]])
