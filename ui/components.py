"""Reusable Streamlit UI components for StrataLens."""

import os
import streamlit as st
from stratalens.core.coercion import value_key
from stratalens.core.state import (
    Aggregation, CategoricalFilter, ChartType, ColumnType, NumericCondition,
    NumericOperator, NumericStratum, OPERATOR_SYMBOLS,
)
from stratalens.utils.chart_utils import figure_from_config, figures_from_specs
from ui.styles import (
    BRAND_PRIMARY, BRAND_ACCENT, BRAND_SUCCESS, BRAND_WARNING,
    kpi_card,
)

_CONDITION_LABELS = {
    NumericCondition.EQUALS: "=",
    NumericCondition.NOT_EQUALS: "≠",
    NumericCondition.GREATER_THAN: ">",
    NumericCondition.LESS_THAN: "<",
    NumericCondition.BETWEEN: "between",
}


# ───────────────────────────────────────────────────────────────
# KPIs
# ───────────────────────────────────────────────────────────────
def kpi_row(kpis) -> None:
    c1, c2, c3, c4 = st.columns(4)
    with c1:
        st.markdown(kpi_card("Records shown", f"{kpis.total_records:,}", "📋", BRAND_PRIMARY), unsafe_allow_html=True)
    with c2:
        st.markdown(kpi_card("Columns", kpis.total_columns, "📊", BRAND_ACCENT), unsafe_allow_html=True)
    with c3:
        st.markdown(kpi_card("Numeric columns", kpis.numeric_columns, "#️⃣", BRAND_SUCCESS), unsafe_allow_html=True)
    with c4:
        colour = BRAND_WARNING if kpis.missing_values else BRAND_SUCCESS
        st.markdown(kpi_card("Missing values", f"{kpis.missing_values:,}", "⚠️", colour), unsafe_allow_html=True)


# ───────────────────────────────────────────────────────────────
# Filters
# ───────────────────────────────────────────────────────────────
def filter_editor(ws, column: str, key: str) -> None:
    """Categorical allow-list or numeric comparator for one column of the view."""
    current = ws.filters.get(column)

    if ws.column_types.get(column) == ColumnType.NUMERIC:
        c1, c2, c3 = st.columns([1, 1, 1])
        condition = c1.selectbox(
            "Condition", list(NumericCondition),
            format_func=lambda c: _CONDITION_LABELS[c], key=f"{key}_cond",
        )
        value1 = c2.text_input("Value", key=f"{key}_v1")
        value2 = c3.text_input("Upper bound", key=f"{key}_v2",
                               disabled=condition != NumericCondition.BETWEEN)
        b1, b2 = st.columns(2)
        if b1.button("Apply", key=f"{key}_apply", use_container_width=True):
            error = ws.apply_numeric_filter(column, condition, value1, value2)
            if error:
                st.error(error)
            else:
                st.rerun()
        if b2.button("Clear", key=f"{key}_clear", use_container_width=True, disabled=current is None):
            ws.set_filter(column, None)
            st.rerun()
        return

    options = ws.distinct_values(column)
    selected = set()
    if isinstance(current, CategoricalFilter):
        selected = {value_key(v) for v in current.values}
    chosen = st.multiselect(
        "Values",
        list(range(len(options))),
        default=[i for i, o in enumerate(options) if value_key(o["value"]) in selected],
        format_func=lambda i: f"{options[i]['label'] or '(blank)'} ({options[i]['count']})",
        key=f"{key}_values",
    )
    b1, b2 = st.columns(2)
    if b1.button("Apply", key=f"{key}_apply", use_container_width=True):
        ws.set_filter(column, CategoricalFilter(values=[options[i]["value"] for i in chosen]))
        st.rerun()
    if b2.button("Clear", key=f"{key}_clear", use_container_width=True, disabled=current is None):
        ws.set_filter(column, None)
        st.rerun()


# ───────────────────────────────────────────────────────────────
# Stratification
# ───────────────────────────────────────────────────────────────
def strata_editor(ws, level, index: int) -> None:
    """Column picker, rule builder and per-stratum size inputs for one level."""
    key = f"level_{level.id}"
    c1, c2 = st.columns([4, 1])
    headers = [""] + ws.headers
    column = c1.selectbox(
        f"Level {index + 1} column", headers,
        index=headers.index(level.column) if level.column in headers else 0,
        key=f"{key}_column",
    )
    if column != level.column:
        ws.change_level_column(level.id, column)
        st.rerun()
    if c2.button("🗑️", key=f"{key}_remove", help="Remove level"):
        ws.remove_level(level.id)
        st.rerun()

    if not level.column:
        st.caption("Pick a column to stratify on.")
        return

    if level.column_type == ColumnType.NUMERIC:
        r1, r2, r3 = st.columns([1, 2, 1])
        operator = r1.selectbox("Rule", list(NumericOperator),
                                format_func=lambda o: OPERATOR_SYMBOLS[o], key=f"{key}_op")
        threshold = r2.number_input("Threshold", key=f"{key}_threshold", value=0.0)
        if r3.button("Add rule", key=f"{key}_add_rule", use_container_width=True):
            ws.add_numeric_rule(level.id, operator, threshold)
            st.rerun()
    else:
        a1, a2 = st.columns([3, 1])
        pct = a1.number_input("Fill every stratum with %", min_value=0.0, max_value=100.0,
                              value=10.0, key=f"{key}_autofill_pct")
        if a2.button("Auto-fill", key=f"{key}_autofill", use_container_width=True):
            ws.autofill_categorical(level.id, pct)
            st.rerun()

    for stratum in level.strata:
        s1, s2, s3 = st.columns([3, 2, 1])
        label = stratum.label if isinstance(stratum, NumericStratum) else (stratum.value or "(blank)")
        s1.write(f"**{label}** · {stratum.count:,} rows")
        size = s2.text_input(
            "Sample size", value=str(stratum.sample_size),
            key=f"{key}_size_{stratum.key}", label_visibility="collapsed",
            placeholder="e.g. 10 or 25%",
        )
        if size != str(stratum.sample_size):
            ws.set_stratum_size(level.id, stratum.key, size)
            st.rerun()
        if isinstance(stratum, NumericStratum) and not stratum.is_remainder:
            if s3.button("✕", key=f"{key}_drop_{stratum.key}", help="Remove rule"):
                ws.remove_numeric_rule(level.id, stratum.key)
                st.rerun()
        if stratum.error:
            st.markdown(f'<div class="stratum-error">{stratum.error}</div>', unsafe_allow_html=True)


# ───────────────────────────────────────────────────────────────
# Dashboard
# ───────────────────────────────────────────────────────────────
def chart_card(ws, chart) -> None:
    """One dashboard chart with its settings expander."""
    with st.expander(f"⚙️ {chart.title or 'Chart'} settings", expanded=False):
        c1, c2 = st.columns(2)
        title = c1.text_input("Title", value=chart.title, key=f"{chart.id}_title")
        chart_type = c2.selectbox("Type", list(ChartType), index=list(ChartType).index(chart.type),
                                  format_func=lambda t: t.value, key=f"{chart.id}_type")
        c3, c4, c5 = st.columns(3)
        x_col = c3.selectbox("X axis", ws.headers,
                             index=ws.headers.index(chart.x_col) if chart.x_col in ws.headers else 0,
                             key=f"{chart.id}_x")
        y_options = [""] + ws.headers
        y_col = c4.selectbox("Value", y_options,
                             index=y_options.index(chart.y_col) if chart.y_col in y_options else 0,
                             format_func=lambda h: h or "(count only)", key=f"{chart.id}_y")
        agg = c5.selectbox("Aggregation", list(Aggregation), index=list(Aggregation).index(chart.agg),
                           format_func=lambda a: a.value, key=f"{chart.id}_agg")
        b1, b2 = st.columns(2)
        if b1.button("Update", key=f"{chart.id}_update", use_container_width=True):
            ws.update_chart(chart.id, title=title, type=chart_type, x_col=x_col, y_col=y_col, agg=agg)
            st.rerun()
        if b2.button("Remove", key=f"{chart.id}_remove", use_container_width=True):
            ws.remove_chart(chart.id)
            st.rerun()

    points = ws.chart_data(chart)
    if points:
        st.plotly_chart(figure_from_config(chart, points), use_container_width=True, key=f"{chart.id}_fig")
    else:
        st.info("No data for this chart.")


# ───────────────────────────────────────────────────────────────
# AI analysis
# ───────────────────────────────────────────────────────────────
def analysis_panel(result) -> None:
    if result is None:
        return
    if result.error:
        st.error(f"❌ {result.error}")
        return
    st.markdown("\n".join(result.lines))
    for i, fig in enumerate(figures_from_specs(result.charts)):
        st.plotly_chart(fig, use_container_width=True, key=f"ai_chart_{i}")


def download_button(path: str | None, label: str, key: str) -> None:
    """Offer a file written by an export function for download."""
    if not path:
        st.warning("Nothing to export.")
        return
    with open(path, "rb") as f:
        st.download_button(label, f.read(), file_name=os.path.basename(path), key=key)
