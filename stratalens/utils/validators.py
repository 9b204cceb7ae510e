"""Data validation utilities."""

import math
import re
import pandas as pd
from typing import Any, List, Tuple
import logging

from stratalens.core.coercion import js_round
from stratalens.core.errors import DatasetError

logger = logging.getLogger(__name__)

# Plain decimal only: no exponent, digit separators, nan or inf.
_SIZE_NUMBER = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)$")


def _parse_size(size_str: str) -> Tuple[bool, float]:
    """Split a size string into (is_percentage, number); number is nan when unparsable."""
    is_percentage = size_str.endswith("%")
    text = size_str[:-1].strip() if is_percentage else size_str
    if not _SIZE_NUMBER.match(text):
        return is_percentage, math.nan
    return is_percentage, float(text)


def validate_sample_size(requested: Any, available: int) -> str | None:
    """
    Check a requested stratum size against the stratum's population.

    Accepts an absolute count or an "N%" string. Blank input is valid and
    means nothing is drawn from the stratum.

    Returns:
        An error message, or None when the request is valid
    """
    size_str = "" if requested is None else str(requested).strip()
    if size_str == "":
        return None

    is_percentage, number = _parse_size(size_str)
    if is_percentage:
        if math.isnan(number) or number < 0 or number > 100:
            return "Percentage must be between 0 and 100."
        requested_count = js_round(number / 100 * available)
    else:
        if math.isnan(number) or number < 0:
            return "Enter a non-negative number."
        if not number.is_integer():
            return "Sample size must be a whole number."
        requested_count = int(number)

    if requested_count > available:
        return f"Size exceeds the available count ({available})."

    return None


def resolve_sample_size(requested: Any, available: int) -> int:
    """
    Convert a requested stratum size to a row count at draw time.

    Reads the size exactly as validate_sample_size does. Percentages resolve
    against *available*; absolute sizes use their integer part. Blank or
    unparsable input resolves to 0.
    """
    size_str = "" if requested is None else str(requested).strip()
    if size_str == "":
        return 0

    is_percentage, number = _parse_size(size_str)
    if math.isnan(number):
        return 0
    if is_percentage:
        return js_round(number / 100 * available)
    return max(int(number), 0)


def validate_headers(headers: List[str]) -> Tuple[bool, List[str]]:
    """
    Validate a header list handed over by the file reader.

    Returns:
        Tuple of (is_valid, messages)
    """
    messages = []

    if not headers:
        return False, ["Dataset has no columns"]

    seen = set()
    duplicates = []
    for header in headers:
        if header in seen and header not in duplicates:
            duplicates.append(header)
        seen.add(header)
    if duplicates:
        messages.append(f"Duplicate column names: {duplicates}")
        return False, messages

    return True, messages


def validate_dataset(df: pd.DataFrame) -> pd.DataFrame:
    """
    Guard the core against a malformed dataset payload.

    Raises:
        DatasetError: when the frame is missing or its headers are invalid
    """
    if df is None:
        raise DatasetError("DataFrame is None")

    is_valid, messages = validate_headers([str(c) for c in df.columns])
    if not is_valid:
        raise DatasetError("; ".join(messages))

    return df
