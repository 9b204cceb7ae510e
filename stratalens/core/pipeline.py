"""View pipeline: filter -> search -> sort over the working dataset.

The output keeps the working dataset's index labels, so a row picked in a
filtered or sorted view can still be addressed in the underlying data.
"""

import math
import logging
from functools import cmp_to_key
from typing import Any, Optional

import numpy as np
import pandas as pd

from stratalens.core.coercion import is_blank, natural_key, stringify, to_number
from stratalens.core.filters import FilterMap, apply_filters, apply_search
from stratalens.core.state import PreviewMode, SortDirection, SortSpec

logger = logging.getLogger(__name__)


def _cell_number(value: Any) -> float:
    if is_blank(value):
        return math.nan
    return to_number(value)


def compare_cells(a: Any, b: Any) -> int:
    """Ascending comparison of two cells.

    Numbers compare numerically when both cells coerce; otherwise the
    display strings compare in natural order. Equal cells return 0.
    """
    num_a, num_b = _cell_number(a), _cell_number(b)
    if not math.isnan(num_a) and not math.isnan(num_b):
        if num_a < num_b:
            return -1
        if num_a > num_b:
            return 1
        return 0

    key_a, key_b = natural_key(stringify(a)), natural_key(stringify(b))
    if key_a < key_b:
        return -1
    if key_a > key_b:
        return 1
    return 0


def sort_rows(df: pd.DataFrame, sort: Optional[SortSpec]) -> pd.DataFrame:
    """Stable sort of *df* by one column; ``None`` or an unknown key is a no-op."""
    if sort is None or sort.key not in df.columns or len(df) < 2:
        return df

    sign = -1 if sort.direction == SortDirection.DESCENDING else 1
    values = df[sort.key].tolist()
    # sorted() is stable, ties keep their incoming order in both directions.
    order = sorted(
        range(len(values)),
        key=cmp_to_key(lambda i, j: sign * compare_cells(values[i], values[j])),
    )
    return df.iloc[order]


def build_view(
    df: pd.DataFrame,
    filters: Optional[FilterMap] = None,
    query: str = "",
    sort: Optional[SortSpec] = None,
) -> pd.DataFrame:
    """Derive the ordered working view: filter, then search, then sort.

    Pure with respect to its inputs; the order of the three steps matters
    (search only sees rows that passed the filters).
    """
    view = apply_filters(df, filters or {})
    view = apply_search(view, query, list(df.columns))
    return sort_rows(view, sort)


def next_sort(current: Optional[SortSpec], key: str) -> SortSpec:
    """Sort spec after clicking *key*: toggles direction on the active key."""
    if current is not None and current.key == key and current.direction == SortDirection.ASCENDING:
        return SortSpec(key=key, direction=SortDirection.DESCENDING)
    return SortSpec(key=key, direction=SortDirection.ASCENDING)


def preview(
    view: pd.DataFrame,
    size: int,
    mode: PreviewMode | str = PreviewMode.FIRST,
    random_state: int | np.random.Generator | None = None,
) -> pd.DataFrame:
    """First, last, or random *size* rows of the view.

    Random mode ignores the view's sort order and is non-deterministic
    unless *random_state* is given.
    """
    mode = PreviewMode(mode)
    size = min(max(int(size), 0), len(view))
    if size <= 0:
        return view.iloc[0:0]

    if mode == PreviewMode.FIRST:
        return view.iloc[:size]
    if mode == PreviewMode.LAST:
        return view.iloc[-size:]
    return view.sample(n=size, random_state=random_state)
