"""Shared cell coercion rules and column type inference.

Cells are loosely typed scalars (text, numbers, or an empty marker). Every
numeric, date and display-string decision in the engine goes through the
helpers below so that filters, sorting, stratification and the UI agree on
how a value is read.
"""

import math
import re
import logging
from datetime import date, datetime
from numbers import Number
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd

from stratalens.config import settings
from stratalens.core.state import ColumnType

logger = logging.getLogger(__name__)

_DATE_PREFIX = re.compile(r"^\d{4}-\d{2}-\d{2}")
_NUMBER_LITERAL = re.compile(r"^[+-]?(?:Infinity|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)$")
_FLOAT_PREFIX = re.compile(r"^\s*([+-]?(?:Infinity|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?))")


def is_blank(value: Any) -> bool:
    """True for ``None``, NaN/NA and the empty string (no trimming)."""
    if value is None:
        return True
    if isinstance(value, str):
        return value == ""
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def is_blank_or_whitespace(value: Any) -> bool:
    """Blank check used by the cleanup helpers, which also treat '   ' as empty."""
    return is_blank(value) or (isinstance(value, str) and value.strip() == "")


def js_round(x: float) -> int:
    """Round half up (2.5 -> 3), the rounding used for percentage sizes."""
    return int(math.floor(x + 0.5))


def _timestamp_ms(value: Any) -> float:
    ts = pd.Timestamp(value)
    if pd.isna(ts):
        return math.nan
    return ts.value / 1_000_000


def to_number(value: Any) -> float:
    """Whole-value numeric coercion; NaN when the value is not a number.

    Booleans read as 0/1 and datetimes as epoch milliseconds. Strings must be
    a complete numeric literal once surrounding whitespace is stripped.
    """
    if isinstance(value, (bool, np.bool_)):
        return float(value)
    if isinstance(value, Number):
        return float(value)
    if isinstance(value, (datetime, date, pd.Timestamp, np.datetime64)):
        return _timestamp_ms(value)
    if isinstance(value, str):
        text = value.strip()
        if text == "":
            return 0.0
        if _NUMBER_LITERAL.match(text):
            return float(text)
        return math.nan
    return math.nan


def parse_float(value: Any) -> float:
    """Leading-prefix float parse ('12kg' -> 12.0, 'abc' -> NaN)."""
    if isinstance(value, (bool, np.bool_)):
        return math.nan
    if isinstance(value, Number):
        return float(value)
    if value is None:
        return math.nan
    match = _FLOAT_PREFIX.match(str(value))
    if not match:
        return math.nan
    return float(match.group(1))


def stringify(value: Any) -> str:
    """Display form of a cell, used for search and categorical grouping."""
    if is_blank(value):
        return ""
    if isinstance(value, (bool, np.bool_)):
        return "true" if value else "false"
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, float):
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer():
            return str(int(value))
    return str(value)


def _inference_value(value: Any) -> float:
    if isinstance(value, str) and _DATE_PREFIX.match(value):
        parsed = pd.to_datetime(value, errors="coerce")
        if pd.isna(parsed):
            return math.nan
        return parsed.value / 1_000_000
    return to_number(value)


def is_numeric_column(df: pd.DataFrame, column: str, threshold: Optional[float] = None) -> bool:
    """Decide whether *column* is numeric.

    More than *threshold* (strictly) of the column's non-blank values must
    coerce to a number, where ISO-date-prefixed strings count via date
    parsing. Callers pass the unfiltered working dataset so the answer does
    not depend on active filters.
    """
    if threshold is None:
        threshold = settings.numeric_inference_threshold
    if not column or column not in df.columns or df.empty:
        return False

    values = [v for v in df[column].tolist() if not is_blank(v)]
    if not values:
        return False

    coercible = sum(1 for v in values if not math.isnan(_inference_value(v)))
    return coercible / len(values) > threshold


def column_type(df: pd.DataFrame, column: str) -> ColumnType:
    return ColumnType.NUMERIC if is_numeric_column(df, column) else ColumnType.CATEGORICAL


def column_types(df: pd.DataFrame) -> Dict[str, ColumnType]:
    """Inferred type for every column of *df*."""
    return {col: column_type(df, col) for col in df.columns}


def numeric_series(series: pd.Series) -> pd.Series:
    """Vector form of :func:`parse_float` (NaN where a cell does not parse)."""
    return series.map(parse_float).astype(float)


def display_series(series: pd.Series) -> pd.Series:
    """Vector form of :func:`stringify`."""
    return series.map(stringify).astype(object)


def value_key(value: Any) -> tuple:
    """Hashable identity of a raw cell for exact-match set membership.

    Numbers match numbers by value, text matches text, and ``1`` never
    matches ``"1"`` or ``True``. All NaN-like markers share one key.
    """
    if value is None:
        return ("none",)
    if isinstance(value, str):
        return ("str", value)
    if isinstance(value, (bool, np.bool_)):
        return ("bool", bool(value))
    if isinstance(value, Number):
        number = float(value)
        return ("nan",) if math.isnan(number) else ("num", number)
    if is_blank(value):
        return ("nan",)
    return (type(value).__name__, stringify(value))


_DIGIT_RUNS = re.compile(r"(\d+)")


def natural_key(text: str) -> List[tuple]:
    """Numeric-aware, case-insensitive sort key ('item2' < 'item10')."""
    parts = _DIGIT_RUNS.split(text)
    key = []
    for i, part in enumerate(parts):
        if i % 2 == 1:
            key.append((0, int(part), ""))
        elif part:
            key.append((1, 0, part.casefold()))
    return key
