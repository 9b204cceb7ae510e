"""Session workspace: owns the mutable state behind one loaded dataset.

The engine modules are pure functions over DataFrames. This class keeps the
live pieces together (undo history, filters, search, sort, the sampling
setup, the drawn sample and AI results) and resets whatever a change
invalidates.
"""

import os
import logging
from typing import Any, Callable, Dict, List, Optional

import numpy as np
import pandas as pd

from stratalens.config import settings
from stratalens.core import cleaning, stratification
from stratalens.core.coercion import column_types, is_blank
from stratalens.core.errors import DatasetError, MutationError
from stratalens.core.filters import build_numeric_filter, distinct_values
from stratalens.core.history import MutationLog, SampleLog
from stratalens.core.pipeline import build_view, next_sort, preview
from stratalens.core.sampling import draw_sample
from stratalens.core.state import (
    AnalysisRequest, AnalysisResult, BlankSummary, ChartConfig, ChatMessage,
    ColumnInfo, DuplicateReport, Filter, KpiSummary, NumericCondition,
    NumericOperator, PreviewMode, SampleSize, SamplingConfig, SamplingMethod,
    SortSpec, StratificationLevel,
)
from stratalens.core.stats import column_info, column_infos, correlation_matrix, kpi_summary
from stratalens.core.viz import aggregate_chart_data, default_chart, new_chart
from stratalens.utils.file_handlers import (
    compute_file_hash, config_filename, export_config_to_excel, export_rows,
    load_file, suggested_filename,
)
from stratalens.utils.logger import audit
from stratalens.utils.validators import validate_dataset

logger = logging.getLogger(__name__)


class Workspace:
    """Everything the UI needs for one dataset, with explicit invalidation rules.

    * Structural edits push a snapshot onto the mutation log and drop
      filters or sort keys on columns that no longer exist.
    * Undo restores the previous snapshot and resets filters, search,
      sort, the drawn sample and the AI analysis.
    * Strata counts are recomputed whenever the view's row set changes.
    """

    def __init__(
        self,
        data: pd.DataFrame,
        source_name: str = "dataset",
        store=None,
        random_state: Optional[int] = None,
    ):
        data = validate_dataset(data).copy()
        data.columns = [str(c) for c in data.columns]
        self.source_name = source_name
        self._log = MutationLog(data, list(data.columns))
        self._store = store
        seed = random_state if random_state is not None else settings.random_seed
        self._rng = np.random.default_rng(seed)

        # view
        self.filters: Dict[str, Filter] = {}
        self.search_query = ""
        self.sort: Optional[SortSpec] = None
        self.preview_size = settings.default_preview_size
        self.preview_mode = PreviewMode.FIRST

        # sampling setup
        self.method = SamplingMethod.RANDOM
        self.sample_size = 10
        self.is_percentage = False
        self.systematic_interval = 5
        self.levels: List[StratificationLevel] = []

        # drawn sample
        self.sample: Optional[pd.DataFrame] = None
        self.sample_headers: List[str] = []
        self.sample_filters: Dict[str, Filter] = {}
        self.sample_sort: Optional[SortSpec] = None
        self._sample_log = SampleLog()

        # analysis and dashboard
        self.analysis: Optional[AnalysisResult] = None
        self.chat_history: List[ChatMessage] = []
        self.charts: List[ChartConfig] = []

    @classmethod
    def from_file(cls, file_path: str, store=None, random_state: Optional[int] = None) -> "Workspace":
        """Load *file_path* and open a workspace on it (logged to *store* when given).

        Raises:
            DatasetError: when the file cannot be read as a dataset
        """
        df, message = load_file(file_path)
        if df is None:
            raise DatasetError(message)
        workspace = cls(df, source_name=os.path.basename(file_path), store=store, random_state=random_state)
        if store is not None:
            store.record_upload(
                filename=workspace.source_name,
                file_hash=compute_file_hash(file_path),
                column_types=workspace.column_types,
                row_count=len(df),
                file_size_bytes=os.path.getsize(file_path),
            )
        audit("Workspace opened", filename=workspace.source_name, rows=len(df), columns=len(df.columns))
        return workspace

    @property
    def store(self):
        if self._store is None:
            from stratalens.database.config_store import ConfigStore
            self._store = ConfigStore()
        return self._store

    # ------------------------------------------------------------------
    # Dataset and history
    # ------------------------------------------------------------------

    @property
    def data(self) -> pd.DataFrame:
        return self._log.current.data

    @property
    def headers(self) -> List[str]:
        return list(self._log.current.headers)

    @property
    def column_types(self):
        return column_types(self.data)

    @property
    def can_undo(self) -> bool:
        return self._log.can_undo

    @property
    def view(self) -> pd.DataFrame:
        """Filtered, searched and sorted rows of the current dataset."""
        return build_view(self.data, self.filters, self.search_query, self.sort)

    def _reset_derived(self) -> None:
        self.filters = {}
        self.sort = None
        self.search_query = ""
        self.clear_sample()
        self.analysis = None

    def _commit(self, df: pd.DataFrame, reset_view: bool = False) -> None:
        headers = [str(c) for c in df.columns]
        self._log.push(df, headers)
        if reset_view:
            self._reset_derived()
        else:
            self.filters = {k: v for k, v in self.filters.items() if k in headers}
            if self.sort is not None and self.sort.key not in headers:
                self.sort = None
            self.analysis = None
        self.charts = [c for c in self.charts if c.x_col in headers]
        self.levels = stratification.rehydrate_levels(self.levels, headers, self.view)

    def undo(self) -> bool:
        """Step back one edit. Returns False when there is nothing to undo."""
        if not self._log.undo():
            return False
        self._reset_derived()
        self.charts = [c for c in self.charts if c.x_col in self.headers]
        self.levels = stratification.rehydrate_levels(self.levels, self.headers, self.view)
        audit("Undo", rows=len(self.data), columns=len(self.headers))
        return True

    def delete_column(self, column: str) -> None:
        """Remove *column* from the dataset (the last column is refused).

        Raises:
            MutationError: for an unknown or the last remaining column
        """
        self._commit(cleaning.delete_column(self.data, column))
        audit("Column deleted", column=column)

    def move_column(self, column: str, position: int) -> None:
        """Reorder the dataset so *column* sits at *position*."""
        if column in self.headers and self.headers.index(column) == position:
            return
        self._commit(cleaning.move_column(self.data, column, position))

    def delete_row(self, label: Any) -> None:
        """Remove one row by its index label (as shown in any view)."""
        self._commit(cleaning.delete_row(self.data, label))
        audit("Row deleted", label=label)

    def find_duplicates(self) -> DuplicateReport:
        return cleaning.find_duplicates(self.data)

    def remove_duplicates(self) -> int:
        """Drop repeated rows (first occurrence kept); returns the number removed."""
        before = len(self.data)
        deduplicated = cleaning.remove_duplicates(self.data)
        removed = before - len(deduplicated)
        if removed:
            self._commit(deduplicated, reset_view=True)
            audit("Duplicates removed", rows=removed)
        return removed

    def blank_summary(self) -> BlankSummary:
        return cleaning.blank_summary(self.data)

    def clean_blanks(self, rows: bool = True, columns: bool = True) -> bool:
        """Drop fully empty rows and/or columns. Returns False when nothing changed."""
        cleaned = cleaning.clean_blanks(self.data, rows=rows, columns=columns)
        if cleaned.shape == self.data.shape:
            return False
        self._commit(cleaned, reset_view=True)
        audit("Blank cleanup", shape=cleaned.shape)
        return True

    # ------------------------------------------------------------------
    # View
    # ------------------------------------------------------------------

    def refresh_strata(self) -> None:
        """Recount every stratum against the current view."""
        if self.levels:
            self.levels = stratification.recompute_levels(self.levels, self.view)

    def set_filter(self, column: str, flt: Optional[Filter]) -> None:
        if flt is None:
            self.filters.pop(column, None)
        else:
            self.filters[column] = flt
        self.refresh_strata()

    def apply_numeric_filter(
        self,
        column: str,
        condition: NumericCondition | str,
        value1: Any,
        value2: Any = None,
    ) -> Optional[str]:
        """Validate and apply a numeric filter draft; returns an error message or None."""
        flt, error = build_numeric_filter(condition, value1, value2)
        if error:
            return error
        self.set_filter(column, flt)
        return None

    def distinct_values(self, column: str) -> List[Dict[str, Any]]:
        return distinct_values(self.data, column)

    def set_search(self, query: str) -> None:
        self.search_query = query or ""
        self.refresh_strata()

    def request_sort(self, key: str) -> SortSpec:
        self.sort = next_sort(self.sort, key)
        return self.sort

    def preview(self, size: Optional[int] = None, mode: Optional[PreviewMode | str] = None) -> pd.DataFrame:
        if size is not None:
            self.preview_size = size
        if mode is not None:
            self.preview_mode = PreviewMode(mode)
        return preview(self.view, self.preview_size, self.preview_mode, random_state=self._rng)

    # ------------------------------------------------------------------
    # Sampling setup
    # ------------------------------------------------------------------

    def set_method(self, method: SamplingMethod | str) -> None:
        """Switch sampling method; stratified starts with one level on the first column."""
        method = SamplingMethod(method)
        if method == SamplingMethod.STRATIFIED and not self.levels:
            self.levels = stratification.add_level([], self.data, self.view)
        elif method != SamplingMethod.STRATIFIED:
            self.levels = []
        self.method = method

    def _update_level(self, level_id: str, change: Callable[[StratificationLevel], StratificationLevel]) -> None:
        self.levels = [change(level) if level.id == level_id else level for level in self.levels]

    def add_level(self) -> None:
        self.levels = stratification.add_level(self.levels, self.data, self.view)

    def remove_level(self, level_id: str) -> None:
        self.levels = stratification.remove_level(self.levels, level_id)

    def change_level_column(self, level_id: str, column: str) -> None:
        self._update_level(
            level_id,
            lambda level: stratification.change_level_column(level, self.data, self.view, column),
        )

    def add_numeric_rule(self, level_id: str, operator: NumericOperator | str, threshold: Any) -> None:
        self._update_level(
            level_id,
            lambda level: stratification.add_numeric_rule(level, self.view, operator, threshold),
        )

    def remove_numeric_rule(self, level_id: str, rule_id: str) -> None:
        self._update_level(
            level_id,
            lambda level: stratification.remove_numeric_rule(level, self.view, rule_id),
        )

    def set_stratum_size(self, level_id: str, key: str, size: SampleSize) -> None:
        self._update_level(level_id, lambda level: stratification.set_stratum_size(level, key, size))

    def autofill_categorical(self, level_id: str, percentage: float) -> None:
        self._update_level(level_id, lambda level: stratification.autofill_categorical(level, percentage))

    @property
    def has_sampling_errors(self) -> bool:
        return stratification.has_errors(self.levels)

    @property
    def current_config(self) -> SamplingConfig:
        return SamplingConfig(
            method=self.method,
            sample_size=self.sample_size,
            is_percentage=self.is_percentage,
            systematic_interval=self.systematic_interval,
            levels=self.levels if self.method == SamplingMethod.STRATIFIED else [],
        )

    def generate_sample(self) -> Optional[pd.DataFrame]:
        """Draw from the current view. Returns None while a stratum size is invalid."""
        config = self.current_config
        if config.method == SamplingMethod.STRATIFIED and stratification.has_errors(config.levels):
            logger.warning("Stratified draw blocked: fix the invalid stratum sizes first")
            return None

        sample = draw_sample(config, self.view, self.headers, random_state=self._rng)
        self.sample = sample
        self.sample_headers = self.headers
        self.sample_filters = {}
        self.sample_sort = None
        self._sample_log.clear()
        audit("Sample drawn", method=config.method.value, rows=len(sample))
        return sample

    # ------------------------------------------------------------------
    # Drawn sample
    # ------------------------------------------------------------------

    def clear_sample(self) -> None:
        self.sample = None
        self.sample_headers = []
        self.sample_filters = {}
        self.sample_sort = None
        self._sample_log.clear()

    @property
    def sample_view(self) -> Optional[pd.DataFrame]:
        """The drawn sample under its own filters and sort."""
        if self.sample is None:
            return None
        return build_view(self.sample[self.sample_headers], self.sample_filters, "", self.sample_sort)

    def set_sample_filter(self, column: str, flt: Optional[Filter]) -> None:
        if flt is None:
            self.sample_filters.pop(column, None)
        else:
            self.sample_filters[column] = flt

    def request_sample_sort(self, key: str) -> SortSpec:
        self.sample_sort = next_sort(self.sample_sort, key)
        return self.sample_sort

    @property
    def can_undo_sample(self) -> bool:
        return self._sample_log.can_undo

    def delete_sample_column(self, column: str) -> None:
        """Hide *column* from the drawn sample only (undoable separately).

        Raises:
            MutationError: for the last remaining sample column
        """
        if self.sample is None:
            return
        if column not in self.sample_headers:
            raise MutationError(f"Unknown column: {column!r}")
        if len(self.sample_headers) <= 1:
            raise MutationError("Cannot delete the last remaining column")
        self._sample_log.push(self.sample, self.sample_headers)
        self.sample = self.sample.drop(columns=[column])
        self.sample_headers = [h for h in self.sample_headers if h != column]
        self.sample_filters.pop(column, None)
        if self.sample_sort is not None and self.sample_sort.key == column:
            self.sample_sort = None

    def undo_sample(self) -> bool:
        previous = self._sample_log.undo()
        if previous is None:
            return False
        self.sample = previous.data
        self.sample_headers = list(previous.headers)
        return True

    # ------------------------------------------------------------------
    # Saved configurations
    # ------------------------------------------------------------------

    def config_names(self) -> List[str]:
        return self.store.names()

    def save_config(self, name: str) -> Optional[str]:
        return self.store.save(name, self.current_config)

    def rename_config(self, old: str, new: str) -> Optional[str]:
        return self.store.rename(old, new)

    def delete_config(self, name: str) -> bool:
        return self.store.delete(name)

    def load_config(self, name: str) -> Optional[pd.DataFrame]:
        """Apply a saved configuration to this dataset and draw a sample with it.

        Levels whose column is missing here come back with no column; other
        levels are recounted against the current view with their saved sizes.
        Returns the new sample, or None when the name is unknown or a
        stratum size is invalid for this data.
        """
        config = self.store.get(name)
        if config is None:
            logger.warning(f"No saved configuration named '{name}'")
            return None

        self.method = config.method
        self.sample_size = config.sample_size
        self.is_percentage = config.is_percentage
        self.systematic_interval = config.systematic_interval
        if config.method == SamplingMethod.STRATIFIED:
            self.levels = stratification.rehydrate_levels(config.levels, self.headers, self.view)
        else:
            self.levels = []
        logger.info(f"Loaded sampling configuration '{name}' ({config.method.value})")
        return self.generate_sample()

    # ------------------------------------------------------------------
    # Statistics and charts
    # ------------------------------------------------------------------

    def column_stats(self) -> Dict[str, ColumnInfo]:
        return column_infos(self.view)

    def column_info(self, column: str) -> ColumnInfo:
        return column_info(self.view, column)

    def correlation(self) -> Optional[pd.DataFrame]:
        return correlation_matrix(self.view, self.data)

    def kpis(self) -> KpiSummary:
        return kpi_summary(self.view, self.data)

    def ensure_default_chart(self) -> List[ChartConfig]:
        if not self.charts:
            chart = default_chart(self.data)
            if chart is not None:
                self.charts.append(chart)
        return self.charts

    def add_chart(self) -> Optional[ChartConfig]:
        chart = new_chart(self.data)
        if chart is not None:
            self.charts.append(chart)
        return chart

    def update_chart(self, chart_id: str, **changes) -> None:
        self.charts = [
            ChartConfig.model_validate({**c.model_dump(), **changes}) if c.id == chart_id else c
            for c in self.charts
        ]

    def remove_chart(self, chart_id: str) -> None:
        self.charts = [c for c in self.charts if c.id != chart_id]

    def chart_data(self, chart: ChartConfig) -> List[Dict[str, Any]]:
        return aggregate_chart_data(self.view, chart)

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def export_view(self, fmt: str = "csv", export_dir: Optional[str] = None) -> Optional[str]:
        return export_rows(self.view, self.headers, suggested_filename("filtered", self.source_name), fmt, export_dir)

    def export_sample(self, fmt: str = "csv", export_dir: Optional[str] = None) -> Optional[str]:
        sample = self.sample_view
        if sample is None:
            return None
        return export_rows(sample, self.sample_headers, suggested_filename("sample", self.source_name), fmt, export_dir)

    def export_duplicates(self, export_dir: Optional[str] = None) -> Optional[str]:
        rows = cleaning.duplicate_rows(self.data)
        return export_rows(rows, self.headers, suggested_filename("duplicates", self.source_name), "excel", export_dir)

    def export_config(self, export_dir: Optional[str] = None) -> str:
        return export_config_to_excel(self.current_config, config_filename(self.source_name), export_dir)

    # ------------------------------------------------------------------
    # AI analysis
    # ------------------------------------------------------------------

    def _records(self, limit: int) -> List[Dict[str, Any]]:
        rows = self.view.head(limit)
        return [
            {h: (None if is_blank(v) else v) for h, v in record.items()}
            for record in rows.to_dict(orient="records")
        ]

    def run_analysis(self, agent=None) -> AnalysisResult:
        """Ask the insights agent about the first rows of the current view."""
        if agent is None:
            from stratalens.agents.insights_agent import InsightsAgent
            agent = InsightsAgent()
        request = AnalysisRequest(headers=self.headers, rows=self._records(settings.ai_sample_rows))
        self.analysis = agent.execute(request)
        return self.analysis

    def ask(self, question: str, agent=None) -> Optional[ChatMessage]:
        """Send a chat question; the user turn and the reply join the history."""
        question = (question or "").strip()
        if not question:
            return None
        if agent is None:
            from stratalens.agents.chat_agent import ChatAgent
            agent = ChatAgent()
        request = AnalysisRequest(
            headers=self.headers,
            rows=self._records(settings.chat_sample_rows),
            question=question,
            history=list(self.chat_history),
        )
        self.chat_history.append(ChatMessage(sender="user", text=question))
        reply = agent.execute(request)
        self.chat_history.append(reply)
        return reply
