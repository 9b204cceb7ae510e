"""Filter engine: per-column filters combined with AND, plus free-text search."""

import math
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

import pandas as pd

from stratalens.core.coercion import display_series, natural_key, numeric_series, stringify, value_key
from stratalens.core.state import CategoricalFilter, NumericCondition, NumericFilter

logger = logging.getLogger(__name__)

FilterMap = Mapping[str, Optional[CategoricalFilter | NumericFilter]]


def _as_number(raw: Any) -> Optional[float]:
    if raw is None:
        return None
    if isinstance(raw, str):
        raw = raw.strip()
        if raw == "":
            return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    return None if math.isnan(value) else value


def build_numeric_filter(
    condition: NumericCondition | str,
    value1: Any,
    value2: Any = None,
) -> Tuple[Optional[NumericFilter], Optional[str]]:
    """Validate a numeric filter draft.

    Returns ``(filter, None)`` when the draft is usable, ``(None, None)``
    when the primary value is missing (meaning "clear the filter"), and
    ``(None, message)`` when the draft is inconsistent and must be rejected.
    """
    condition = NumericCondition(condition)
    num1 = _as_number(value1)
    num2 = _as_number(value2)

    if num1 is None:
        return None, None

    if condition == NumericCondition.BETWEEN:
        if num2 is None:
            return None, "Enter a valid upper bound for 'between'."
        if num1 > num2:
            return None, "The lower bound must be less than or equal to the upper bound."

    return NumericFilter(
        condition=condition,
        value1=num1,
        value2=num2 if condition == NumericCondition.BETWEEN else None,
    ), None


def _numeric_mask(values: pd.Series, flt: NumericFilter) -> pd.Series:
    parsed = numeric_series(values)
    valid = parsed.notna()
    v1, v2 = flt.value1, flt.value2

    if flt.condition == NumericCondition.EQUALS:
        cond = parsed == v1 if v1 is not None else pd.Series(False, index=values.index)
    elif flt.condition == NumericCondition.NOT_EQUALS:
        cond = parsed != v1 if v1 is not None else pd.Series(True, index=values.index)
    elif flt.condition == NumericCondition.GREATER_THAN:
        cond = parsed > v1 if v1 is not None else pd.Series(False, index=values.index)
    elif flt.condition == NumericCondition.LESS_THAN:
        cond = parsed < v1 if v1 is not None else pd.Series(False, index=values.index)
    elif flt.condition == NumericCondition.BETWEEN:
        if v1 is None or v2 is None or v1 > v2:
            # Inconsistent bounds never narrow silently.
            logger.warning(f"Ignoring 'between' filter with bounds {v1!r}..{v2!r}")
            return pd.Series(True, index=values.index)
        cond = (parsed >= v1) & (parsed <= v2)
    else:
        cond = pd.Series(True, index=values.index)

    # Unparsable cells never pass a numeric filter, whatever the comparator.
    return valid & cond


def _categorical_mask(values: pd.Series, flt: CategoricalFilter) -> pd.Series:
    allowed = {value_key(v) for v in flt.values}
    return values.map(lambda cell: value_key(cell) in allowed).astype(bool)


def filter_mask(df: pd.DataFrame, column: str, flt: CategoricalFilter | NumericFilter) -> pd.Series:
    """Boolean mask of rows of *df* passing a single column filter."""
    if column not in df.columns:
        return pd.Series(True, index=df.index)
    values = df[column]
    if isinstance(flt, CategoricalFilter):
        return _categorical_mask(values, flt)
    return _numeric_mask(values, flt)


def apply_filters(df: pd.DataFrame, filters: FilterMap) -> pd.DataFrame:
    """Keep rows passing every active filter (AND across columns).

    ``None`` entries and filters on columns that no longer exist impose no
    constraint.
    """
    active = {col: f for col, f in filters.items() if f is not None}
    if not active or df.empty:
        return df

    mask = pd.Series(True, index=df.index)
    for column, flt in active.items():
        mask &= filter_mask(df, column, flt)
    return df[mask]


def apply_search(df: pd.DataFrame, query: str, headers: Optional[Iterable[str]] = None) -> pd.DataFrame:
    """Case-insensitive substring search across every header (OR across columns)."""
    if not query or not query.strip() or df.empty:
        return df

    needle = query.lower()
    columns = [h for h in (headers if headers is not None else df.columns) if h in df.columns]
    if not columns:
        return df.iloc[0:0]

    mask = pd.Series(False, index=df.index)
    for column in columns:
        mask |= display_series(df[column]).str.lower().str.contains(needle, regex=False)
    return df[mask]


def distinct_values(df: pd.DataFrame, column: str) -> List[Dict[str, Any]]:
    """Distinct raw values of *column* with their counts, in natural display order.

    Used to build a categorical filter: the default allow-list is every value.
    """
    if column not in df.columns:
        return []

    counts: Dict[tuple, Dict[str, Any]] = {}
    for value in df[column].tolist():
        key = value_key(value)
        entry = counts.get(key)
        if entry is None:
            counts[key] = {"value": value, "label": stringify(value), "count": 1}
        else:
            entry["count"] += 1

    return sorted(counts.values(), key=lambda e: natural_key(e["label"]))
