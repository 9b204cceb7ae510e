"""Tests for the session workspace: edits, undo, sampling flow, saved configs and AI hand-off."""

import os
import sys
import pytest
import pandas as pd
from unittest.mock import MagicMock

# Ensure project root is on path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from stratalens.core.errors import DatasetError, MutationError
from stratalens.core.state import (
    AnalysisResult, CategoricalFilter, ChatMessage, NumericCondition,
    SamplingMethod, SortDirection,
)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def audit_df():
    return pd.DataFrame({
        "region": ["A", "A", "A", "B", "B", "C", "C", "C", "C", "C"],
        "id": [f"t{i}" for i in range(10)],
        "amount": ["100", "250", "", "40", "900", "15", "60", "75", "1200", "5"],
    })


@pytest.fixture
def store(tmp_path):
    from stratalens.database.config_store import ConfigStore
    return ConfigStore(f"sqlite:///{tmp_path / 'workspace.db'}")


@pytest.fixture
def ws(audit_df, store):
    from stratalens.workspace import Workspace
    return Workspace(audit_df, source_name="audit.csv", store=store, random_state=11)


def _stratify_regions(ws, sizes):
    ws.set_method(SamplingMethod.STRATIFIED)
    level = ws.levels[0]
    for key, size in sizes.items():
        ws.set_stratum_size(level.id, key, size)
    return ws.levels[0]


# ---------------------------------------------------------------------------
# 1. Edits and undo
# ---------------------------------------------------------------------------

class TestEdits:
    def test_delete_column_prunes_filters_and_undo_restores(self, ws):
        ws.set_filter("id", CategoricalFilter(values=["t1"]))
        ws.request_sort("id")
        ws.delete_column("id")
        assert ws.headers == ["region", "amount"]
        assert "id" not in ws.filters
        assert ws.sort is None
        assert ws.can_undo

        assert ws.undo() is True
        assert ws.headers == ["region", "id", "amount"]
        assert ws.filters == {} and ws.search_query == ""
        assert ws.undo() is False

    def test_last_column_is_kept(self, audit_df):
        from stratalens.workspace import Workspace
        ws = Workspace(audit_df[["region"]])
        with pytest.raises(MutationError):
            ws.delete_column("region")
        with pytest.raises(MutationError):
            ws.delete_column("missing")

    def test_non_string_column_labels(self):
        from stratalens.workspace import Workspace
        raw = pd.DataFrame({0: ["A", "B", "A"], 1: ["x", "y", "z"]})
        ws = Workspace(raw, random_state=3)
        assert ws.headers == ["0", "1"]
        assert list(ws.data.columns) == ["0", "1"]
        assert list(raw.columns) == [0, 1]

        ws.set_filter("0", CategoricalFilter(values=["A"]))
        assert ws.view["1"].tolist() == ["x", "z"]

        ws.set_method("stratified")
        ws.change_level_column(ws.levels[0].id, "0")
        assert [(s.value, s.count) for s in ws.levels[0].strata] == [("A", 2)]

    def test_move_column(self, ws):
        ws.move_column("amount", 0)
        assert ws.headers == ["amount", "region", "id"]
        ws.move_column("region", 99)
        assert ws.headers == ["amount", "id", "region"]
        ws.undo()
        assert ws.headers == ["amount", "region", "id"]

    def test_delete_row_by_view_label(self, ws):
        ws.set_search("t7")
        label = ws.view.index[0]
        ws.delete_row(label)
        assert len(ws.data) == 9
        assert "t7" not in ws.data["id"].tolist()

    def test_history_is_bounded(self, ws):
        for position in [0, 1, 2, 0, 1, 2, 0, 1]:
            ws.move_column("id", position)
        undone = 0
        while ws.undo():
            undone += 1
        assert undone == 5

    def test_duplicates(self, audit_df):
        from stratalens.workspace import Workspace
        df = pd.concat([audit_df, audit_df.iloc[[0, 0, 3]]], ignore_index=True)
        ws = Workspace(df)
        report = ws.find_duplicates()
        assert len(report.groups) == 2
        assert report.total_to_remove == 3
        ws.set_search("A")
        assert ws.remove_duplicates() == 3
        assert len(ws.data) == 10
        assert ws.search_query == ""
        assert ws.remove_duplicates() == 0

    def test_clean_blanks(self):
        from stratalens.workspace import Workspace
        df = pd.DataFrame({"a": ["1", " ", "2"], "empty": ["", None, "  "], "b": ["x", "", "y"]})
        ws = Workspace(df)
        summary = ws.blank_summary()
        assert summary.empty_columns == ["empty"] and summary.empty_rows == 1
        assert ws.clean_blanks() is True
        assert ws.headers == ["a", "b"]
        assert len(ws.data) == 2
        assert ws.clean_blanks() is False


# ---------------------------------------------------------------------------
# 2. View state
# ---------------------------------------------------------------------------

class TestView:
    def test_numeric_filter_draft(self, ws):
        assert ws.apply_numeric_filter("amount", NumericCondition.BETWEEN, "500", "50") is not None
        assert ws.filters == {}
        assert ws.apply_numeric_filter("amount", "greaterThan", "200") is None
        assert ws.view["id"].tolist() == ["t1", "t4", "t8"]
        assert ws.apply_numeric_filter("amount", "greaterThan", "") is None
        assert "amount" not in ws.filters

    def test_sort_toggle(self, ws):
        ws.request_sort("amount")
        assert ws.view["amount"].tolist()[:3] == ["", "5", "15"]
        assert ws.request_sort("amount").direction == SortDirection.DESCENDING
        assert ws.view["amount"].tolist()[:2] == ["1200", "900"]

    def test_preview_remembers_settings(self, ws):
        assert len(ws.preview(3, "last")) == 3
        assert ws.preview_size == 3
        assert ws.preview().index.tolist() == [7, 8, 9]

    def test_kpis_follow_view(self, ws):
        ws.set_filter("region", CategoricalFilter(values=["B"]))
        kpis = ws.kpis()
        assert kpis.total_records == 2
        assert kpis.total_columns == 3


# ---------------------------------------------------------------------------
# 3. Sampling
# ---------------------------------------------------------------------------

class TestSamplingFlow:
    def test_stratified_draw(self, ws):
        _stratify_regions(ws, {"A": 2, "B": 1, "C": "50%"})
        sample = ws.generate_sample()
        assert len(sample) == 6
        assert ws.sample_headers == ["region", "id", "amount"]

    def test_blocked_draw_returns_none(self, ws):
        _stratify_regions(ws, {"B": 5})
        assert ws.has_sampling_errors
        assert ws.generate_sample() is None
        assert ws.sample is None

    def test_filter_refreshes_strata(self, ws):
        level = _stratify_regions(ws, {"A": 3})
        assert [s.value for s in level.strata] == ["A", "B", "C"]
        ws.set_filter("region", CategoricalFilter(values=["A", "B"]))
        assert [(s.value, s.count) for s in ws.levels[0].strata] == [("A", 3), ("B", 2)]
        ws.set_filter("amount", CategoricalFilter(values=["100", "40"]))
        assert ws.levels[0].strata[0].error is not None
        assert ws.generate_sample() is None

    def test_numeric_level(self, ws):
        ws.set_method("stratified")
        level_id = ws.levels[0].id
        ws.change_level_column(level_id, "amount")
        assert ws.levels[0].column_type.value == "numeric"
        ws.add_numeric_rule(level_id, "gte", 500)
        big = ws.levels[0].strata[0]
        assert big.count == 2
        ws.set_stratum_size(level_id, big.id, "100%")
        sample = ws.generate_sample()
        assert sorted(sample["amount"].tolist()) == ["1200", "900"]

    def test_leaving_stratified_clears_levels(self, ws):
        ws.set_method("stratified")
        assert len(ws.levels) == 1
        ws.set_method("systematic")
        assert ws.levels == []
        ws.systematic_interval = 4
        assert ws.generate_sample()["id"].tolist() == ["t0", "t4", "t8"]

    def test_random_draw_from_view(self, ws):
        ws.set_filter("region", CategoricalFilter(values=["C"]))
        ws.sample_size = 3
        sample = ws.generate_sample()
        assert len(sample) == 3
        assert set(sample["region"]) == {"C"}

    def test_sample_column_delete_and_undo(self, ws):
        ws.generate_sample()
        ws.request_sample_sort("amount")
        ws.delete_sample_column("amount")
        assert ws.sample_headers == ["region", "id"]
        assert list(ws.sample_view.columns) == ["region", "id"]
        assert ws.sample_sort is None
        assert ws.undo_sample() is True
        assert ws.sample_headers == ["region", "id", "amount"]
        assert ws.undo_sample() is False

    def test_sample_filter(self, ws):
        _stratify_regions(ws, {"A": 2, "B": 1, "C": "50%"})
        ws.generate_sample()
        ws.set_sample_filter("region", CategoricalFilter(values=["A"]))
        assert ws.sample_view["region"].tolist() == ["A", "A"]
        assert len(ws.sample) == 6
        ws.set_sample_filter("region", None)
        assert len(ws.sample_view) == 6

    def test_sample_keeps_one_column(self, audit_df):
        from stratalens.workspace import Workspace
        ws = Workspace(audit_df[["id"]], random_state=1)
        ws.generate_sample()
        with pytest.raises(MutationError):
            ws.delete_sample_column("id")

    def test_undo_clears_sample(self, ws):
        ws.generate_sample()
        ws.delete_column("amount")
        assert ws.sample is not None
        ws.undo()
        assert ws.sample is None


# ---------------------------------------------------------------------------
# 4. Saved configurations
# ---------------------------------------------------------------------------

class TestConfigs:
    def test_save_load_draws(self, ws):
        _stratify_regions(ws, {"A": 2, "B": 1, "C": "50%"})
        assert ws.save_config("regions") is None
        ws.set_method("random")
        sample = ws.load_config("regions")
        assert ws.method == SamplingMethod.STRATIFIED
        assert len(sample) == 6

    def test_load_on_other_dataset_clears_missing_column(self, ws, store):
        from stratalens.workspace import Workspace
        _stratify_regions(ws, {"A": 1})
        ws.save_config("regions")
        other = Workspace(pd.DataFrame({"city": ["x", "y"]}), store=store)
        sample = other.load_config("regions")
        assert other.levels[0].column == ""
        assert sample is not None and sample.empty

    def test_rename_delete(self, ws):
        ws.save_config("a")
        ws.save_config("b")
        assert ws.rename_config("a", "b") == "This name is already in use."
        assert ws.rename_config("a", "c") is None
        assert ws.delete_config("c") is True
        assert ws.config_names() == ["b"]
        assert ws.load_config("missing") is None

    def test_exports(self, ws, tmp_path):
        assert ws.export_sample("csv", str(tmp_path)) is None
        ws.generate_sample()
        assert ws.export_sample("csv", str(tmp_path)).endswith("sample_audit.csv")
        assert ws.export_view("excel", str(tmp_path)).endswith("filtered_audit.xlsx")
        assert ws.export_duplicates(str(tmp_path)) is None
        assert os.path.exists(ws.export_config(str(tmp_path)))


# ---------------------------------------------------------------------------
# 5. Loading, charts and AI
# ---------------------------------------------------------------------------

class TestWorkspaceIntegration:
    def test_from_file_records_upload(self, tmp_path, store):
        from stratalens.workspace import Workspace
        path = tmp_path / "audit.csv"
        path.write_text("region,amount\nA,1\nB,2\n", encoding="utf-8")
        ws = Workspace.from_file(str(path), store=store)
        assert ws.headers == ["region", "amount"]
        assert store.uploads()[0]["filename"] == "audit.csv"

    def test_from_file_raises(self, tmp_path):
        from stratalens.workspace import Workspace
        with pytest.raises(DatasetError):
            Workspace.from_file(str(tmp_path / "nope.csv"))

    def test_charts_follow_columns(self, ws):
        charts = ws.ensure_default_chart()
        assert len(charts) == 1 and charts[0].x_col == "region"
        chart = ws.add_chart()
        ws.update_chart(chart.id, x_col="id", title="By id")
        assert ws.charts[1].title == "By id"
        assert len(ws.chart_data(ws.charts[1])) == 10
        ws.delete_column("id")
        assert [c.x_col for c in ws.charts] == ["region"]

    def test_run_analysis(self, ws):
        agent = MagicMock()
        agent.execute.return_value = AnalysisResult(lines=["ok"])
        result = ws.run_analysis(agent=agent)
        assert result.lines == ["ok"] and ws.analysis is result
        request = agent.execute.call_args[0][0]
        assert request.headers == ["region", "id", "amount"]
        assert len(request.rows) == 10
        assert request.rows[2]["amount"] is None

    def test_ask(self, ws):
        agent = MagicMock()
        agent.execute.return_value = ChatMessage(sender="ai", text="Ten rows.")
        assert ws.ask("   ", agent=agent) is None
        reply = ws.ask("How many rows?", agent=agent)
        assert reply.text == "Ten rows."
        assert [m.sender for m in ws.chat_history] == ["user", "ai"]
        assert agent.execute.call_args[0][0].history == []

    def test_edit_clears_analysis(self, ws):
        ws.analysis = AnalysisResult(lines=["stale"])
        ws.move_column("id", 0)
        assert ws.analysis is None
