"""Tests for the count input boundary."""

import numpy as np
import pandas as pd
import pytest

from nettrans.data import CategoryCount, CountTable, prepare_counts
from nettrans.exceptions import FitFailure, InvalidConfig

CATEGORIES = ("normal", "overweight", "obese")


def test_prepare_counts_from_records():
    records = [
        CategoryCount(age=1, category="normal", count=5),
        CategoryCount(age=0, category="normal", count=8),
        CategoryCount(age=1, category="obese", count=2),
        CategoryCount(age=0, category="overweight", count=1),
        CategoryCount(age=1, category="normal", count=3),
    ]
    table = prepare_counts(records, CATEGORIES)

    assert table.categories == CATEGORIES
    np.testing.assert_array_equal(table.ages, [0.0, 1.0])
    np.testing.assert_array_equal(table.counts, [[8, 1, 0], [8, 0, 2]])
    np.testing.assert_array_equal(table.totals, [9, 10])


def test_prepare_counts_long_frame_without_count_column():
    df = pd.DataFrame({
        "age": [30, 30, 30, 31],
        "category": ["normal", "obese", "normal", "overweight"],
    })
    table = prepare_counts(df, CATEGORIES)

    np.testing.assert_array_equal(table.counts, [[2, 0, 1], [0, 1, 0]])


def test_prepare_counts_long_frame_custom_columns():
    df = pd.DataFrame({"years": [2.5, 2.5], "bmi": ["obese", "normal"], "n": [4, 6]})
    table = prepare_counts(df, CATEGORIES, age_col="years", category_col="bmi", count_col="n")

    np.testing.assert_array_equal(table.ages, [2.5])
    np.testing.assert_array_equal(table.counts, [[6, 0, 4]])


def test_prepare_counts_wide_frame():
    df = pd.DataFrame({"age": [1, 0], "normal": [7, 9], "overweight": [2, 1], "obese": [1, 0]})
    table = prepare_counts(df, CATEGORIES)

    np.testing.assert_array_equal(table.ages, [0.0, 1.0])
    np.testing.assert_array_equal(table.counts, [[9, 1, 0], [7, 2, 1]])


def test_count_table_is_read_only():
    table = prepare_counts([CategoryCount(0, "normal", 1)], CATEGORIES)
    with pytest.raises(ValueError):
        table.counts[0, 0] = 5


def test_proportions_nan_for_empty_age():
    table = CountTable(ages=[0, 1], categories=("a", "b"), counts=[[1, 3], [0, 0]])
    proportions = table.proportions()

    np.testing.assert_allclose(proportions[0], [0.25, 0.75])
    assert np.isnan(proportions[1]).all()


def test_count_table_passthrough():
    table = CountTable(ages=[0], categories=("a", "b"), counts=[[1, 1]])
    assert prepare_counts(table) is table
    with pytest.raises(InvalidConfig, match="does not match"):
        prepare_counts(table, ("b", "a"))


@pytest.mark.parametrize("record, message", [
    (CategoryCount(0, "underweight", 1), "not one of"),
    (CategoryCount(0, "normal", -1), "negative count"),
    (CategoryCount(0, "normal", 1.5), "not an integer"),
    (CategoryCount(0, "normal", np.inf), "not finite"),
    (CategoryCount(0, "normal", "3"), "not a number"),
    (CategoryCount("ten", "normal", 1), "age 'ten' is not a number"),
    (CategoryCount(None, "underweight", 1), "age None is not a number"),
    (CategoryCount(np.nan, "normal", 1), "non-finite age"),
])
def test_invalid_records(record, message):
    with pytest.raises(InvalidConfig, match=message):
        prepare_counts([record], CATEGORIES)


def test_category_declaration_required():
    records = [CategoryCount(0, "normal", 1)]
    with pytest.raises(InvalidConfig):
        prepare_counts(records)
    with pytest.raises(InvalidConfig, match="at least two"):
        prepare_counts(records, ["normal"])
    with pytest.raises(InvalidConfig, match="unique"):
        prepare_counts(records, ["normal", "normal"])


def test_missing_wide_column():
    df = pd.DataFrame({"age": [0], "normal": [1], "overweight": [1]})
    with pytest.raises(InvalidConfig, match="obese"):
        prepare_counts(df, CATEGORIES)


def test_no_records_is_fit_failure():
    with pytest.raises(FitFailure):
        prepare_counts([], CATEGORIES)
    with pytest.raises(FitFailure):
        prepare_counts(pd.DataFrame({"age": [], "category": []}), CATEGORIES)
