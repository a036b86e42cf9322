"""Input boundary: per-age category counts."""

from dataclasses import dataclass
from typing import Hashable, Iterable, Optional, Sequence, Union
import logging

import numpy as np
import pandas as pd

from .exceptions import FitFailure, InvalidConfig

__all__ = [
    "CategoryCount",
    "CountTable",
    "prepare_counts",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CategoryCount:
    """Number of individuals of a given age observed in one category.

    Parameters
    ----------
    age : float
        Age in years, or the midpoint of an age interval
    category : Hashable
        Category label, one of the ordered labels of the risk factor
    count : int
        Non-negative number of individuals
    """
    age: float
    category: Hashable
    count: int = 1


@dataclass(frozen=True)
class CountTable:
    """Aggregated counts, one row per distinct age.

    Attributes
    ----------
    ages : np.ndarray
        Sorted unique ages, shape (n_ages,)
    categories : tuple
        Ordered category labels
    counts : np.ndarray
        Integer counts, shape (n_ages, n_categories)
    """
    ages: np.ndarray
    categories: tuple
    counts: np.ndarray

    def __post_init__(self):
        ages = np.asarray(self.ages, dtype=float)
        counts = np.asarray(self.counts, dtype=np.int64)
        if counts.shape != (len(ages), len(self.categories)):
            raise InvalidConfig(
                f"counts has shape {counts.shape}, expected ({len(ages)}, {len(self.categories)})"
            )
        ages.setflags(write=False)
        counts.setflags(write=False)
        object.__setattr__(self, "ages", ages)
        object.__setattr__(self, "counts", counts)
        object.__setattr__(self, "categories", tuple(self.categories))

    @property
    def n_categories(self) -> int:
        return len(self.categories)

    @property
    def totals(self) -> np.ndarray:
        """Total number of observations at each age."""
        return self.counts.sum(axis=1)

    def proportions(self) -> np.ndarray:
        """Raw (unsmoothed) prevalence; NaN at ages without observations."""
        totals = self.totals.astype(float)
        with np.errstate(invalid="ignore", divide="ignore"):
            return self.counts / totals[:, None]

    def to_frame(self) -> pd.DataFrame:
        """Return the table as a wide DataFrame indexed by age."""
        return pd.DataFrame(self.counts, index=pd.Index(self.ages, name="age"), columns=list(self.categories))


def _check_count(age: float, category: Hashable, count) -> int:
    if pd.isna(count):
        raise InvalidConfig(f"missing count for age {age:g}, category {category!r}")
    # Strings and other non-numbers are rejected rather than parsed
    if isinstance(count, (str, bytes)) or not isinstance(count, (int, float, np.number)):
        raise InvalidConfig(f"count for age {age:g}, category {category!r} is not a number: {count!r}")
    value = float(count)
    if not np.isfinite(value):
        raise InvalidConfig(f"count for age {age:g}, category {category!r} is not finite: {count}")
    if value != int(value):
        raise InvalidConfig(f"count for age {age:g}, category {category!r} is not an integer: {count}")
    if value < 0:
        raise InvalidConfig(f"negative count for age {age:g}, category {category!r}: {count}")
    return int(value)


def _check_age(age) -> float:
    try:
        value = float(age)
    except (TypeError, ValueError) as e:
        raise InvalidConfig(f"age {age!r} is not a number") from e
    if not np.isfinite(value):
        raise InvalidConfig(f"non-finite age {age!r}")
    return value


def _from_records(records: Iterable[CategoryCount], categories: Sequence[Hashable]) -> CountTable:
    index = {c: k for k, c in enumerate(categories)}
    totals = {}
    for record in records:
        age = _check_age(record.age)
        if record.category not in index:
            raise InvalidConfig(
                f"category {record.category!r} at age {age:g} is not one of {list(categories)}"
            )
        row = totals.setdefault(age, np.zeros(len(categories), dtype=np.int64))
        row[index[record.category]] += _check_count(age, record.category, record.count)

    ages = sorted(totals)
    counts = np.array([totals[a] for a in ages], dtype=np.int64).reshape(len(ages), len(categories))
    return CountTable(ages=np.array(ages, dtype=float), categories=tuple(categories), counts=counts)


def _from_long_frame(
    df: pd.DataFrame,
    categories: Sequence[Hashable],
    age_col: str,
    category_col: str,
    count_col: Optional[str],
) -> CountTable:
    for col in [age_col, category_col]:
        if col not in df.columns:
            raise InvalidConfig(f"Required column '{col}' is missing from counts")

    if count_col is not None and count_col in df.columns:
        counts = df[count_col].values
    else:
        # One row per individual
        counts = np.ones(len(df), dtype=np.int64)

    records = (
        CategoryCount(age=age, category=category, count=count)
        for age, category, count in zip(df[age_col].values, df[category_col].values, counts)
    )
    return _from_records(records, categories)


def _from_wide_frame(df: pd.DataFrame, categories: Sequence[Hashable], age_col: str) -> CountTable:
    missing = [c for c in categories if c not in df.columns]
    if missing:
        raise InvalidConfig(f"categories {missing} have no column in the counts table")

    if age_col in df.columns:
        ages = df[age_col].values
    else:
        ages = df.index.values

    records = []
    for age, row in zip(ages, df[list(categories)].itertuples(index=False)):
        for category, count in zip(categories, row):
            records.append(CategoryCount(age=age, category=category, count=count))
    return _from_records(records, categories)


def prepare_counts(
    counts: Union[CountTable, pd.DataFrame, Iterable[CategoryCount]],
    categories: Optional[Sequence[Hashable]] = None,
    age_col: str = "age",
    category_col: str = "category",
    count_col: Optional[str] = "count",
) -> CountTable:
    """Aggregate input counts into a CountTable.

    Parameters
    ----------
    counts : Union[CountTable, pd.DataFrame, Iterable[CategoryCount]]
        Either an existing table (returned as-is), a sequence of CategoryCount
        records, a long DataFrame with age and category columns (and an
        optional count column; without it every row is one individual), or a
        wide DataFrame with one column per category
    categories : Optional[Sequence[Hashable]]
        Ordered category labels. Required unless `counts` is a CountTable.
    age_col : str, optional
        Name of the age column
    category_col : str, optional
        Name of the category column for long input
    count_col : Optional[str], optional
        Name of the count column for long input

    Returns
    -------
    CountTable
        Aggregated counts

    Raises
    ------
    InvalidConfig
        If labels, counts or the category order are invalid
    FitFailure
        If there are no records at all
    """
    if isinstance(counts, CountTable):
        if categories is not None and tuple(categories) != counts.categories:
            raise InvalidConfig(
                f"category order {list(categories)} does not match the table's {list(counts.categories)}"
            )
        return counts

    if categories is None:
        raise InvalidConfig("categories must be given to aggregate raw counts")
    categories = tuple(categories)
    if len(categories) < 2:
        raise InvalidConfig(f"at least two categories are required, got {list(categories)}")
    if len(set(categories)) != len(categories):
        raise InvalidConfig(f"category labels must be unique, got {list(categories)}")

    if isinstance(counts, pd.DataFrame):
        if category_col in counts.columns:
            table = _from_long_frame(counts, categories, age_col, category_col, count_col)
        else:
            table = _from_wide_frame(counts, categories, age_col)
    else:
        table = _from_records(counts, categories)

    if len(table.ages) == 0:
        raise FitFailure("no count records were supplied")

    logger.debug("Aggregated %d observations over %d ages", int(table.counts.sum()), len(table.ages))
    return table
