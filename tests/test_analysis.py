"""Tests for statistics, chart aggregation, chart rendering and the LLM agents."""

import os
import sys
import pytest
import pandas as pd
from unittest.mock import patch

# Ensure project root is on path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from stratalens.core.state import (
    Aggregation, AnalysisRequest, ChartConfig, ChartType, ChatMessage, ColumnType,
)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def txn_df():
    return pd.DataFrame({
        "branch": ["north", "south", "north", "", "east"],
        "amount": ["10", "5kg", "20", "x", "7"],
        "score": [1, 2, 3, 4, 5],
        "double": [2, 4, 6, 8, 10],
    })


@pytest.fixture
def request_payload():
    rows = [{"branch": f"b{i}", "amount": i} for i in range(80)]
    return AnalysisRequest(headers=["branch", "amount"], rows=rows)


def _chart(**kwargs):
    return ChartConfig(id="c1", **kwargs)


# ---------------------------------------------------------------------------
# 1. Statistics
# ---------------------------------------------------------------------------

class TestStats:
    def test_quartiles(self):
        from stratalens.core.stats import quartiles
        assert quartiles([1, 2, 3, 4]) == (1.5, 3.5)
        assert quartiles([1, 2, 3, 4, 5]) == (2, 4)

    def test_iqr_bounds(self):
        from stratalens.core.stats import iqr_bounds
        assert iqr_bounds(2, 4) == (-1, 7)

    def test_column_summary(self):
        from stratalens.core.stats import column_summary
        summary = column_summary([1, 2, 2, 3])
        assert summary.mean == 2
        assert summary.median == 2
        assert summary.mode == [2]
        assert summary.std_dev == pytest.approx(0.8165, abs=1e-4)
        assert (summary.q1, summary.q3, summary.iqr) == (1.5, 2.5, 1.0)
        assert (summary.min, summary.max) == (1, 3)

    def test_no_mode_when_all_tie(self):
        from stratalens.core.stats import column_summary
        assert column_summary([3, 1, 2]).mode == []

    def test_single_value_has_no_std(self):
        from stratalens.core.stats import column_summary
        assert column_summary([4]).std_dev is None
        assert column_summary([]) is None

    def test_column_info_outliers_and_missing(self):
        from stratalens.core.stats import column_info
        view = pd.DataFrame({"v": ["1", "2", "3", "4", "100", ""]})
        info = column_info(view, "v")
        assert info.type == ColumnType.NUMERIC
        assert info.missing_count == 1
        assert info.outlier_labels == [4]

    def test_column_info_categorical(self, txn_df):
        from stratalens.core.stats import column_info
        info = column_info(txn_df, "branch")
        assert info.type == ColumnType.CATEGORICAL
        assert info.stats is None
        assert info.missing_count == 1

    def test_correlation_matrix(self, txn_df):
        from stratalens.core.stats import correlation_matrix
        matrix = correlation_matrix(txn_df)
        assert list(matrix.columns) == ["score", "double"]
        assert matrix.loc["score", "double"] == pytest.approx(1.0)

    def test_constant_column_correlates_as_zero(self):
        from stratalens.core.stats import correlation_matrix
        df = pd.DataFrame({"a": [1, 2, 3], "flat": [5, 5, 5]})
        matrix = correlation_matrix(df)
        assert matrix.loc["a", "flat"] == 0
        assert matrix.loc["flat", "flat"] == 1

    def test_correlation_needs_two_numeric_columns(self):
        from stratalens.core.stats import correlation_matrix
        assert correlation_matrix(pd.DataFrame({"a": [1, 2], "b": ["x", "y"]})) is None

    def test_kpi_summary(self, txn_df):
        from stratalens.core.stats import kpi_summary
        kpis = kpi_summary(txn_df.iloc[:2], txn_df)
        assert kpis.total_records == 2
        assert kpis.total_columns == 4
        assert kpis.numeric_columns == 2
        assert kpis.missing_values == 0
        assert kpi_summary(txn_df, txn_df).missing_values == 1


# ---------------------------------------------------------------------------
# 2. Chart aggregation
# ---------------------------------------------------------------------------

class TestChartData:
    def test_count_groups_blank_as_na(self, txn_df):
        from stratalens.core.viz import aggregate_chart_data
        points = aggregate_chart_data(txn_df, _chart(x_col="branch"))
        assert points[0] == {"name": "north", "value": 2}
        assert {p["name"] for p in points} == {"north", "south", "N/A", "east"}

    def test_sum_uses_prefix_parse(self, txn_df):
        from stratalens.core.viz import aggregate_chart_data
        points = aggregate_chart_data(txn_df, _chart(x_col="branch", y_col="amount", agg=Aggregation.SUM))
        values = {p["name"]: p["value"] for p in points}
        assert values == {"north": 30, "east": 7, "south": 5, "N/A": 0}
        assert [p["name"] for p in points][:2] == ["north", "east"]

    def test_avg_and_distinct(self, txn_df):
        from stratalens.core.viz import aggregate_chart_data
        avg = aggregate_chart_data(txn_df, _chart(x_col="branch", y_col="amount", agg=Aggregation.AVG))
        assert avg[0] == {"name": "north", "value": 15}
        distinct = aggregate_chart_data(txn_df, _chart(x_col="branch", y_col="amount", agg="distinct"))
        assert distinct[0] == {"name": "north", "value": 2}

    def test_zero_reads_as_missing(self):
        from stratalens.core.viz import aggregate_chart_data
        df = pd.DataFrame({"flag": [0, 1, 0]})
        points = aggregate_chart_data(df, _chart(x_col="flag"))
        assert points == [{"name": "N/A", "value": 2}, {"name": "1", "value": 1}]

    def test_top_twenty(self):
        from stratalens.core.viz import aggregate_chart_data
        df = pd.DataFrame({"k": [f"k{i}" for i in range(25)]})
        assert len(aggregate_chart_data(df, _chart(x_col="k"))) == 20

    def test_ticket(self, txn_df):
        from stratalens.core.viz import aggregate_chart_data
        ticket = _chart(type=ChartType.TICKET, title="Rows", x_col="branch")
        assert aggregate_chart_data(txn_df, ticket) == [{"name": "Rows", "value": 5}]
        total = _chart(type=ChartType.TICKET, title="Total", x_col="branch", y_col="score", agg=Aggregation.SUM)
        assert aggregate_chart_data(txn_df, total) == [{"name": "Total", "value": 15}]

    def test_missing_x_column(self, txn_df):
        from stratalens.core.viz import aggregate_chart_data
        assert aggregate_chart_data(txn_df, _chart()) == []
        assert aggregate_chart_data(txn_df, _chart(x_col="gone")) == []

    def test_default_chart(self, txn_df):
        from stratalens.core.viz import default_chart
        chart = default_chart(txn_df)
        assert (chart.x_col, chart.y_col, chart.agg) == ("branch", "score", Aggregation.COUNT)
        assert chart.title == "Distribution of score"

        numeric_first = default_chart(txn_df[["score", "branch"]])
        assert (numeric_first.x_col, numeric_first.y_col) == ("score", "")
        assert default_chart(pd.DataFrame()) is None


# ---------------------------------------------------------------------------
# 3. Chart rendering
# ---------------------------------------------------------------------------

class TestChartUtils:
    POINTS = [{"name": "a", "value": 3}, {"name": "b", "value": 1}]

    def test_chart_types(self):
        from stratalens.utils.chart_utils import create_chart
        assert create_chart("bar", self.POINTS).data[0].type == "bar"
        assert create_chart("bar-horizontal", self.POINTS).data[0].orientation == "h"
        assert create_chart("donut", self.POINTS).data[0].hole == 0.5
        assert create_chart("line", self.POINTS).data[0].type == "scatter"
        assert create_chart("ticket", self.POINTS).data[0].type == "indicator"

    def test_unknown_type_falls_back_to_bar(self):
        from stratalens.utils.chart_utils import create_chart
        assert create_chart("radar", self.POINTS).data[0].type == "bar"

    def test_figures_from_specs_skips_bad_entries(self):
        from stratalens.utils.chart_utils import figures_from_specs
        specs = [
            {"type": "pie", "title": "Share", "data": self.POINTS},
            {"type": "bar", "title": "Empty", "data": []},
            {"type": "bar", "title": "Broken"},
        ]
        figures = figures_from_specs(specs)
        assert len(figures) == 1
        assert figures[0].data[0].type == "pie"

    def test_correlation_heatmap(self, txn_df):
        from stratalens.core.stats import correlation_matrix
        from stratalens.utils.chart_utils import create_correlation_heatmap
        fig = create_correlation_heatmap(correlation_matrix(txn_df))
        assert fig.data[0].type == "heatmap"


# ---------------------------------------------------------------------------
# 4. LLM reply parsing
# ---------------------------------------------------------------------------

class TestLLMUtils:
    def test_split_analysis_response(self):
        from stratalens.utils.llm_utils import split_analysis_response
        content = (
            "<think>draft</think>\n**Summary**\n\n* point one\n"
            '```json\n[{"type": "bar", "title": "T", "data": [{"name": "x", "value": 1}]}]\n```'
        )
        lines, charts = split_analysis_response(content)
        assert lines == ["**Summary**", "* point one"]
        assert charts[0]["title"] == "T"

    def test_malformed_json_yields_no_charts(self):
        from stratalens.utils.llm_utils import split_analysis_response
        lines, charts = split_analysis_response("Text\n```json\n[{oops\n```")
        assert lines == ["Text"]
        assert charts == []

    def test_single_object_is_wrapped(self):
        from stratalens.utils.llm_utils import split_analysis_response
        _, charts = split_analysis_response('A\n```json\n{"type": "pie", "data": []}\n```')
        assert charts == [{"type": "pie", "data": []}]

    def test_no_fence(self):
        from stratalens.utils.llm_utils import split_analysis_response
        assert split_analysis_response("only text") == (["only text"], [])

    def test_rows_payload_stringifies(self):
        from stratalens.utils.llm_utils import rows_payload
        assert '"when": "2024-01-01 00:00:00"' in rows_payload([{"when": pd.Timestamp("2024-01-01")}])


# ---------------------------------------------------------------------------
# 5. Agents
# ---------------------------------------------------------------------------

class TestInsightsAgent:
    REPLY = "Line one\nLine two\n```json\n[{\"type\": \"bar\", \"data\": [{\"name\": \"a\", \"value\": 1}]}]\n```"

    def test_execute(self, request_payload):
        from stratalens.agents.insights_agent import InsightsAgent
        agent = InsightsAgent()
        with patch.object(InsightsAgent, "invoke", return_value=self.REPLY) as mock_invoke:
            result = agent.execute(request_payload)

        assert result.error is None
        assert result.lines == ["Line one", "Line two"]
        assert len(result.charts) == 1
        payload = mock_invoke.call_args[0][1]
        assert payload["row_count"] == 50
        assert payload["headers"] == "branch, amount"

    def test_timeout_sets_error(self, request_payload):
        from stratalens.agents.insights_agent import InsightsAgent
        agent = InsightsAgent()
        with patch.object(InsightsAgent, "invoke", side_effect=TimeoutError("slow")):
            result = agent.execute(request_payload)
        assert result.error == "The AI analysis timed out. Please try again."
        assert result.lines == []

    def test_missing_api_key(self, request_payload):
        from stratalens.agents.insights_agent import InsightsAgent
        from stratalens.config import settings
        with patch.object(settings, "nvidia_api_key", ""):
            result = InsightsAgent().execute(request_payload)
        assert result.error == "Analysis failed: API key is not configured."


class TestChatAgent:
    def test_execute(self, request_payload):
        from stratalens.agents.chat_agent import ChatAgent
        request = request_payload.model_copy(update={
            "question": "How many branches?",
            "history": [ChatMessage(sender="user", text="hi"), ChatMessage(sender="ai", text="hello")],
        })
        with patch.object(ChatAgent, "invoke", return_value="  **80** branches.  ") as mock_invoke:
            reply = ChatAgent().execute(request)

        assert reply == ChatMessage(sender="ai", text="**80** branches.")
        payload = mock_invoke.call_args[0][1]
        assert payload["history"] == "User: hi\nAssistant: hello"
        assert payload["row_count"] == 80

    def test_failure_becomes_reply(self, request_payload):
        from stratalens.agents.chat_agent import ChatAgent, FAILURE_REPLY
        with patch.object(ChatAgent, "invoke", side_effect=RuntimeError("boom")):
            reply = ChatAgent().execute(request_payload)
        assert reply.sender == "ai"
        assert reply.text == FAILURE_REPLY


# ---------------------------------------------------------------------------
# 6. Logging helpers
# ---------------------------------------------------------------------------

class TestLoggingHelpers:
    def test_step_timer_accumulates_and_summarises(self, caplog):
        import logging
        from stratalens.utils.logger import StepTimer
        timer = StepTimer("StratifiedSample", logging.getLogger("test.timer"))
        with caplog.at_level(logging.DEBUG, logger="test.timer"):
            with timer.step("draw"):
                pass
            with timer.step("draw"):
                pass
            with pytest.raises(RuntimeError):
                with timer.step("dedupe"):
                    raise RuntimeError("boom")
            breakdown = timer.summary()
        assert set(breakdown) == {"draw", "dedupe"}
        assert "[StratifiedSample] draw:" in caplog.text
        assert "[StratifiedSample] finished in" in caplog.text

    def test_audit_formats_details(self, caplog):
        import logging
        from stratalens.utils.logger import audit
        with caplog.at_level(logging.INFO, logger="stratalens.audit"):
            audit("Column deleted", column="amount")
            audit("Undo")
        messages = [r.getMessage() for r in caplog.records if r.name == "stratalens.audit"]
        assert messages == ["Column deleted (column=amount)", "Undo"]
