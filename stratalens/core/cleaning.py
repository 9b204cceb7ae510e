"""Structural edits on the working dataset.

Each function returns a new DataFrame; the caller commits it to the
mutation log.
"""

import logging
from typing import Any, Dict, List, Sequence, Tuple

import pandas as pd

from stratalens.core.coercion import is_blank, is_blank_or_whitespace, value_key
from stratalens.core.errors import MutationError
from stratalens.core.state import BlankSummary, DuplicateGroup, DuplicateReport

logger = logging.getLogger(__name__)


def delete_column(df: pd.DataFrame, column: str) -> pd.DataFrame:
    """Drop *column*. The last remaining column can never be removed."""
    if column not in df.columns:
        raise MutationError(f"Unknown column: {column!r}")
    if len(df.columns) <= 1:
        raise MutationError("Cannot delete the last remaining column")
    return df.drop(columns=[column])


def move_column(df: pd.DataFrame, column: str, position: int) -> pd.DataFrame:
    """Reorder so *column* sits at *position* (clamped to the valid range)."""
    if column not in df.columns:
        raise MutationError(f"Unknown column: {column!r}")
    headers = [h for h in df.columns if h != column]
    position = max(0, min(int(position), len(headers)))
    headers.insert(position, column)
    return df[headers]


def delete_row(df: pd.DataFrame, label: Any) -> pd.DataFrame:
    """Drop the row with index *label* (as seen in any derived view)."""
    if label not in df.index:
        raise MutationError(f"Unknown row: {label!r}")
    return df.drop(index=[label])


def _row_keys(df: pd.DataFrame, headers: Sequence[str]) -> List[Tuple]:
    # Blank cells compare as "" so None, NaN and "" count as the same value.
    columns = [df[h].tolist() for h in headers]
    return [
        tuple(value_key("" if is_blank(v) else v) for v in row)
        for row in zip(*columns)
    ] if columns else [() for _ in range(len(df))]


def find_duplicates(df: pd.DataFrame) -> DuplicateReport:
    """Groups of fully identical rows and how many rows removal would drop."""
    headers = list(df.columns)
    groups: Dict[Tuple, Dict[str, Any]] = {}
    for key, (_, row) in zip(_row_keys(df, headers), df.iterrows()):
        entry = groups.get(key)
        if entry is None:
            groups[key] = {"row": {h: row[h] for h in headers}, "count": 1}
        else:
            entry["count"] += 1

    duplicate_groups = [DuplicateGroup(**g) for g in groups.values() if g["count"] > 1]
    return DuplicateReport(
        groups=duplicate_groups,
        total_to_remove=sum(g.count - 1 for g in duplicate_groups),
    )


def duplicate_rows(df: pd.DataFrame) -> pd.DataFrame:
    """Every row belonging to a duplicate group (for export before removal)."""
    keys = _row_keys(df, list(df.columns))
    counts: Dict[Tuple, int] = {}
    for key in keys:
        counts[key] = counts.get(key, 0) + 1
    return df[[counts[key] > 1 for key in keys]]


def remove_duplicates(df: pd.DataFrame) -> pd.DataFrame:
    """Keep the first occurrence of every fully identical row."""
    seen = set()
    keep = []
    for key in _row_keys(df, list(df.columns)):
        keep.append(key not in seen)
        seen.add(key)
    result = df[keep]
    logger.info(f"Removed {len(df) - len(result)} duplicate rows")
    return result


def _empty_columns(df: pd.DataFrame) -> List[str]:
    return [c for c in df.columns if df[c].map(is_blank_or_whitespace).all()]


def _empty_row_mask(df: pd.DataFrame) -> pd.Series:
    if df.columns.empty:
        return pd.Series(True, index=df.index)
    return df.map(is_blank_or_whitespace).all(axis=1)


def blank_summary(df: pd.DataFrame) -> BlankSummary:
    """Columns and rows that are entirely empty (blank or whitespace-only)."""
    return BlankSummary(
        empty_columns=_empty_columns(df),
        empty_rows=int(_empty_row_mask(df).sum()) if len(df) else 0,
    )


def clean_blanks(df: pd.DataFrame, rows: bool = True, columns: bool = True) -> pd.DataFrame:
    """Drop fully empty columns and/or rows. Columns are removed first."""
    result = df
    if columns:
        empty = _empty_columns(result)
        if empty and len(empty) < len(result.columns):
            result = result.drop(columns=empty)
        elif empty:
            logger.warning("Every column is empty; keeping columns")
    if rows and len(result):
        result = result[~_empty_row_mask(result)]
    logger.info(f"Blank cleanup: {df.shape} → {result.shape}")
    return result
