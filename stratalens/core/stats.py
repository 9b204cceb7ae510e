"""Descriptive statistics, outlier fences, correlation and KPI counts."""

import math
import logging
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from stratalens.core.coercion import is_blank, is_numeric_column, numeric_series, to_number
from stratalens.core.state import ColumnInfo, ColumnSummary, ColumnType, KpiSummary

logger = logging.getLogger(__name__)


def quartiles(sorted_values: Sequence[float]) -> Tuple[float, float]:
    """Q1/Q3 by position in the sorted values.

    When the length is a multiple of four the two straddling values are
    averaged; otherwise the value at ``floor(n/4)`` (``floor(3n/4)``) is used.
    """
    n = len(sorted_values)
    i1, i3 = n // 4, (3 * n) // 4
    if n % 4 == 0:
        return (
            (sorted_values[i1 - 1] + sorted_values[i1]) / 2,
            (sorted_values[i3 - 1] + sorted_values[i3]) / 2,
        )
    return sorted_values[i1], sorted_values[i3]


def iqr_bounds(q1: float, q3: float, multiplier: float = 1.5) -> Tuple[float, float]:
    """Return (lower_bound, upper_bound) fences around the interquartile range."""
    iqr = q3 - q1
    return q1 - multiplier * iqr, q3 + multiplier * iqr


def _modes(values: Sequence[float]) -> List[float]:
    counts: Dict[float, int] = {}
    for v in values:
        counts[v] = counts.get(v, 0) + 1
    top = max(counts.values())
    modes = [v for v, c in counts.items() if c == top]
    # Every value equally frequent means there is no mode.
    return [] if len(modes) == len(counts) else modes


def column_summary(values: Sequence[float]) -> Optional[ColumnSummary]:
    """Summary statistics of already-numeric *values*; None when empty."""
    data = [float(v) for v in values]
    if not data:
        return None

    ordered = sorted(data)
    n = len(ordered)
    mean = sum(data) / n
    mid = n // 2
    median = ordered[mid] if n % 2 else (ordered[mid - 1] + ordered[mid]) / 2
    std_dev = float(np.std(data, ddof=1)) if n > 1 else None
    q1, q3 = quartiles(ordered)

    return ColumnSummary(
        mean=mean,
        median=median,
        mode=_modes(data),
        std_dev=std_dev,
        min=ordered[0],
        max=ordered[-1],
        q1=q1,
        q3=q3,
        iqr=q3 - q1,
    )


def column_info(view: pd.DataFrame, column: str) -> ColumnInfo:
    """Profile *column* over the rows of *view*.

    Numeric detection here runs on the view itself (more than 80% of the
    non-blank values read as numbers). Outliers are the index labels of rows
    whose parsed value falls outside the 1.5×IQR fences.
    """
    cells = view[column].tolist() if column in view.columns else []
    present = [v for v in cells if not is_blank(v)]
    missing = len(cells) - len(present)

    numbers = [x for x in (to_number(v) for v in present) if not math.isnan(x)]
    if not present or len(numbers) / len(present) <= 0.8:
        return ColumnInfo(missing_count=missing, type=ColumnType.CATEGORICAL)

    stats = column_summary(numbers)
    lower, upper = iqr_bounds(stats.q1, stats.q3)
    parsed = numeric_series(view[column])
    outliers = parsed[parsed.notna() & ((parsed < lower) | (parsed > upper))]

    return ColumnInfo(
        missing_count=missing,
        type=ColumnType.NUMERIC,
        stats=stats,
        outlier_labels=outliers.index.tolist(),
    )


def column_infos(view: pd.DataFrame) -> Dict[str, ColumnInfo]:
    return {column: column_info(view, column) for column in view.columns}


def correlation_matrix(view: pd.DataFrame, df: Optional[pd.DataFrame] = None) -> Optional[pd.DataFrame]:
    """Pairwise Pearson correlation between the numeric columns of *view*.

    Column types are inferred on *df* (the full dataset) when given. Each
    pair uses only rows where both values parse; an undefined coefficient
    is reported as 0. Returns None with fewer than two numeric columns.
    """
    reference = view if df is None else df
    numeric_cols = [c for c in view.columns if is_numeric_column(reference, c)]
    if len(numeric_cols) < 2:
        return None

    parsed = pd.DataFrame({c: numeric_series(view[c]) for c in numeric_cols})
    matrix = parsed.corr(method="pearson", min_periods=1).fillna(0.0)
    for column in numeric_cols:
        matrix.loc[column, column] = 1.0
    logger.debug(f"Correlation matrix over {len(numeric_cols)} numeric columns")
    return matrix


def kpi_summary(view: pd.DataFrame, df: pd.DataFrame) -> KpiSummary:
    """Headline counts for the current view; numeric-ness is judged on *df*."""
    missing = sum(
        int(view[c].map(is_blank).sum()) for c in view.columns
    ) if len(view) else 0
    return KpiSummary(
        total_records=len(view),
        total_columns=len(df.columns),
        numeric_columns=sum(1 for c in df.columns if is_numeric_column(df, c)),
        missing_values=missing,
    )
