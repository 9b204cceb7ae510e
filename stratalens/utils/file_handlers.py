"""File handling utilities for CSV and Excel files."""

import pandas as pd
import os
import hashlib
from datetime import date
from pathlib import Path
from typing import Optional, Sequence
from openpyxl.utils import get_column_letter
from stratalens.config import settings
from stratalens.core.coercion import is_blank_or_whitespace, stringify
from stratalens.core.errors import DatasetError
from stratalens.core.state import SamplingConfig, SamplingMethod
from stratalens.core.stratification import strata_summary
from stratalens.utils.pdf_generator import generate_table_pdf
from stratalens.utils.validators import validate_dataset
import logging

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = [".csv", ".xlsx", ".xls"]
EXPORT_FORMATS = {"csv": ".csv", "excel": ".xlsx", "pdf": ".pdf"}


def compute_file_hash(file_path: str) -> str:
    """Compute SHA-256 hash of a file for the upload log.

    Args:
        file_path: Path to the file.

    Returns:
        Hex-digest string.
    """
    h = hashlib.sha256()
    with open(file_path, "rb") as f:
        for chunk in iter(lambda: f.read(8192), b""):
            h.update(chunk)
    return h.hexdigest()


def validate_file(file_path: str) -> tuple[bool, str]:
    """
    Validate that file exists and is a supported format.

    Returns:
        Tuple of (is_valid, message)
    """
    if not os.path.exists(file_path):
        return False, "File not found"

    size_mb = os.path.getsize(file_path) / (1024 * 1024)
    if size_mb > settings.max_upload_size_mb:
        return False, f"File size exceeds {settings.max_upload_size_mb}MB limit"

    ext = Path(file_path).suffix.lower()
    if ext not in SUPPORTED_EXTENSIONS:
        return False, "File must be CSV or Excel format"

    return True, "File valid"


def _drop_empty_rows(df: pd.DataFrame) -> pd.DataFrame:
    if df.empty:
        return df
    keep = ~df.map(is_blank_or_whitespace).all(axis=1)
    return df[keep].reset_index(drop=True)


def load_file(file_path: str) -> tuple[Optional[pd.DataFrame], str]:
    """
    Load a CSV or Excel file into a DataFrame of loosely typed cells.

    CSV cells stay text; Excel keeps the sheet's typed values. Blank cells
    are the empty string in both cases, and rows with no non-blank cell
    are dropped.

    Returns:
        Tuple of (DataFrame or None, message)
    """
    is_valid, message = validate_file(file_path)
    if not is_valid:
        return None, message

    try:
        ext = Path(file_path).suffix.lower()

        if ext == ".csv":
            df = pd.read_csv(file_path, dtype=str, keep_default_na=False, encoding="utf-8-sig")
        else:
            df = pd.read_excel(file_path, sheet_name=0)
            df = df.astype(object).where(df.notna(), "")

        df.columns = [str(c) for c in df.columns]
        df = validate_dataset(_drop_empty_rows(df))

        if df.empty:
            return None, "File contains no data rows"

        logger.info(f"Loaded {ext} file: {file_path} ({len(df)} rows, {len(df.columns)} columns)")
        return df, "File loaded successfully"

    except DatasetError as e:
        logger.error(f"Rejected file {file_path}: {e}")
        return None, f"Error loading file: {str(e)}"
    except (ValueError, OSError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        error_msg = f"Error loading file: {str(e)}"
        logger.error(error_msg)
        return None, error_msg


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------

def suggested_filename(kind: str, source_name: str) -> str:
    """``filtered_<stem>``, ``sample_<stem>`` or ``duplicates_<stem>``."""
    return f"{kind}_{Path(source_name).stem}"


def config_filename(source_name: str, on: Optional[date] = None) -> str:
    on = on or date.today()
    return f"sampling_config_{Path(source_name).stem}_{on.isoformat()}"


def _export_path(filename: str, ext: str, export_dir: Optional[str]) -> Path:
    directory = Path(export_dir or settings.export_dir)
    directory.mkdir(parents=True, exist_ok=True)
    return directory / f"{filename}{ext}"


def _autofit(worksheet, frame: pd.DataFrame, minimum: int = 0) -> None:
    """Size each column to its longest rendered cell (header included) + 2."""
    for i, column in enumerate(frame.columns, start=1):
        longest = max([len(str(column))] + [len(stringify(v)) for v in frame[column].tolist()])
        worksheet.column_dimensions[get_column_letter(i)].width = max(longest, minimum) + 2


def export_rows(
    df: pd.DataFrame,
    headers: Sequence[str],
    filename: str,
    fmt: str = "csv",
    export_dir: Optional[str] = None,
) -> Optional[str]:
    """
    Export *df* restricted to *headers* in the requested format.

    Returns:
        Path to the written file, or None when there are no rows to export
    """
    if df is None or df.empty:
        logger.info(f"Nothing to export for {filename}")
        return None
    if fmt not in EXPORT_FORMATS:
        raise ValueError(f"Unsupported export format: {fmt}")

    frame = df.reindex(columns=list(headers))
    path = _export_path(filename, EXPORT_FORMATS[fmt], export_dir)

    if fmt == "csv":
        frame.to_csv(path, index=False, encoding="utf-8-sig")
    elif fmt == "excel":
        with pd.ExcelWriter(path, engine="openpyxl") as writer:
            frame.to_excel(writer, index=False, sheet_name="Data")
            _autofit(writer.sheets["Data"], frame)
    else:
        return generate_table_pdf(frame, list(headers), filename, str(path))

    logger.info(f"Exported {len(frame)} rows to {path}")
    return str(path)


def export_config_to_excel(
    config: SamplingConfig,
    filename: str,
    export_dir: Optional[str] = None,
) -> str:
    """Write a sampling configuration as a summary sheet plus a strata sheet."""
    summary = [("Sampling method", config.method.value)]
    if config.method == SamplingMethod.RANDOM:
        summary.append(("Sample size", config.sample_size))
        summary.append(("Is percentage?", "Yes" if config.is_percentage else "No"))
    elif config.method == SamplingMethod.SYSTEMATIC:
        summary.append(("Interval", config.systematic_interval))
    summary_df = pd.DataFrame(summary, columns=["Setting", "Value"])

    strata_df = None
    if config.method == SamplingMethod.STRATIFIED:
        rows = strata_summary(config.levels)
        if rows:
            strata_df = pd.DataFrame(rows).rename(columns={
                "level": "Level",
                "column": "Column",
                "stratum": "Stratum value / rule",
                "count": "Record count",
                "sample_size": "Requested sample size",
            })

    path = _export_path(filename, ".xlsx", export_dir)
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        summary_df.to_excel(writer, index=False, sheet_name="Configuration summary")
        _autofit(writer.sheets["Configuration summary"], summary_df, minimum=10)
        if strata_df is not None:
            strata_df.to_excel(writer, index=False, sheet_name="Stratification details")
            _autofit(writer.sheets["Stratification details"], strata_df, minimum=15)

    logger.info(f"Exported sampling configuration to {path}")
    return str(path)
