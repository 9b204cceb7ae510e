"""Main Streamlit application for StrataLens — data exploration and audit sampling."""

import os
import tempfile
import streamlit as st
from stratalens.core.errors import DatasetError, MutationError
from stratalens.core.filters import distinct_values
from stratalens.core.state import CategoricalFilter, PreviewMode, SamplingMethod, SortDirection
from stratalens.database.config_store import ConfigStore
from stratalens.utils.chart_utils import create_box_plot, create_correlation_heatmap
from stratalens.core.coercion import numeric_series
from stratalens.workspace import Workspace
from ui.styles import inject_global_css, hero_banner, section_header, status_badge
from ui.components import (
    kpi_row, filter_editor, strata_editor, chart_card, analysis_panel, download_button,
)


# ── Page config ────────────────────────────────────────────────
st.set_page_config(
    page_title="StrataLens",
    page_icon="🧮",
    layout="wide",
    initial_sidebar_state="expanded",
)


# ── Session state ──────────────────────────────────────────────
def init_session_state():
    if "workspace" not in st.session_state:
        st.session_state.workspace = None
    if "store" not in st.session_state:
        st.session_state.store = ConfigStore()


def _workspace() -> Workspace:
    return st.session_state.workspace


# ───────────────────────────────────────────────────────────────
#  SIDEBAR
# ───────────────────────────────────────────────────────────────
def sidebar():
    with st.sidebar:
        st.markdown("""<div style="text-align:center;padding:16px 0 8px 0;">
<div style="font-size:40px;">🧮</div>
<div style="font-size:20px;font-weight:800;color:#1a1a2e;">StrataLens</div>
</div>""", unsafe_allow_html=True)
        st.divider()

        ws = _workspace()
        if ws is None:
            st.caption("Load a CSV or Excel file to begin.")
            return

        st.caption("ACTIVE DATASET")
        st.write(f"📄 **{ws.source_name}**")
        st.write(f"{len(ws.data):,} rows × {len(ws.headers)} columns")
        if st.button("↩️ Undo last edit", disabled=not ws.can_undo, use_container_width=True):
            ws.undo()
            st.rerun()
        if st.button("📂 Load another file", use_container_width=True):
            st.session_state.workspace = None
            st.rerun()

        st.divider()
        with st.expander("📚 Recent uploads", expanded=False):
            uploads = st.session_state.store.uploads()
            if uploads:
                for item in uploads:
                    st.write(f"**{item['filename']}**")
                    st.caption(f"{item['rows']}×{item['columns']} — {item['uploaded_at']:%Y-%m-%d %H:%M}")
            else:
                st.caption("No uploads yet.")


# ───────────────────────────────────────────────────────────────
#  UPLOAD
# ───────────────────────────────────────────────────────────────
def upload_section():
    st.markdown(hero_banner(
        "StrataLens",
        "Filter, profile and sample your data for audit review",
    ), unsafe_allow_html=True)

    uploaded_file = st.file_uploader(
        "Upload dataset",
        type=["csv", "xlsx", "xls"],
        help="Maximum file size: 50MB",
        label_visibility="collapsed",
    )
    if uploaded_file is None:
        return

    suffix = os.path.splitext(uploaded_file.name)[1]
    tmp_dir = tempfile.mkdtemp()
    tmp_path = os.path.join(tmp_dir, uploaded_file.name if suffix else f"{uploaded_file.name}.csv")
    with open(tmp_path, "wb") as f:
        f.write(uploaded_file.getbuffer())

    try:
        st.session_state.workspace = Workspace.from_file(tmp_path, store=st.session_state.store)
    except DatasetError as e:
        st.error(f"❌ {e}")
        return
    st.rerun()


# ───────────────────────────────────────────────────────────────
#  DATA TAB
# ───────────────────────────────────────────────────────────────
def data_tab(ws: Workspace):
    kpi_row(ws.kpis())
    st.markdown("")

    c1, c2, c3 = st.columns([3, 2, 1])
    query = c1.text_input("🔎 Search all columns", value=ws.search_query)
    if query != ws.search_query:
        ws.set_search(query)
        st.rerun()
    sort_col = c2.selectbox("Sort by", [""] + ws.headers,
                            index=([""] + ws.headers).index(ws.sort.key) if ws.sort else 0)
    if c3.button("⇅ Sort", use_container_width=True, disabled=not sort_col):
        ws.request_sort(sort_col)
        st.rerun()
    if ws.sort:
        arrow = "▲" if ws.sort.direction == SortDirection.ASCENDING else "▼"
        st.markdown(status_badge(f"Sorted by {ws.sort.key} {arrow}"), unsafe_allow_html=True)

    with st.expander(f"🧰 Filters ({len(ws.filters)} active)", expanded=False):
        column = st.selectbox("Column", ws.headers, key="filter_column")
        filter_editor(ws, column, key=f"filter_{column}")

    view = ws.view
    st.caption(f"{len(view):,} of {len(ws.data):,} rows match")
    st.dataframe(view, use_container_width=True)

    with st.expander("👁️ Preview", expanded=False):
        p1, p2 = st.columns(2)
        size = p1.number_input("Rows", min_value=1, value=ws.preview_size, step=1)
        mode = p2.radio("Mode", list(PreviewMode), horizontal=True,
                        format_func=lambda m: m.value.title(),
                        index=list(PreviewMode).index(ws.preview_mode))
        st.dataframe(ws.preview(int(size), mode), use_container_width=True)

    st.markdown(section_header("✂️", "Edit dataset"), unsafe_allow_html=True)
    e1, e2, e3 = st.columns(3)
    with e1:
        col = st.selectbox("Delete column", ws.headers, key="delete_col")
        if st.button("Delete column", use_container_width=True):
            try:
                ws.delete_column(col)
                st.rerun()
            except MutationError as e:
                st.error(str(e))
    with e2:
        label = st.selectbox("Delete row (index)", list(view.index), key="delete_row")
        if st.button("Delete row", use_container_width=True, disabled=label is None):
            ws.delete_row(label)
            st.rerun()
    with e3:
        col_to_move = st.selectbox("Move column", ws.headers, key="move_col")
        position = st.number_input("To position", min_value=1, max_value=len(ws.headers), value=1)
        if st.button("Move", use_container_width=True):
            ws.move_column(col_to_move, int(position) - 1)
            st.rerun()

    x1, x2 = st.columns([1, 2])
    fmt = x1.selectbox("Export format", ["csv", "excel", "pdf"], key="view_fmt")
    if x2.button("⬇️ Export filtered rows", use_container_width=True):
        download_button(ws.export_view(fmt), "Download", key="dl_view")


# ───────────────────────────────────────────────────────────────
#  CLEANUP TAB
# ───────────────────────────────────────────────────────────────
def cleanup_tab(ws: Workspace):
    st.markdown(section_header("♻️", "Duplicate rows"), unsafe_allow_html=True)
    report = ws.find_duplicates()
    if not report.groups:
        st.success("No fully duplicated rows found.")
    else:
        st.warning(f"{len(report.groups)} duplicate groups; removing keeps the first row "
                   f"of each and drops {report.total_to_remove:,} rows.")
        st.dataframe(
            [{**g.row, "× count": g.count} for g in report.groups],
            use_container_width=True,
        )
        d1, d2 = st.columns(2)
        if d1.button("Remove duplicates", use_container_width=True):
            ws.remove_duplicates()
            st.rerun()
        if d2.button("Export duplicates", use_container_width=True):
            download_button(ws.export_duplicates(), "Download duplicates", key="dl_dups")

    st.markdown(section_header("🧹", "Empty rows and columns"), unsafe_allow_html=True)
    blanks = ws.blank_summary()
    if blanks.is_clean:
        st.success("No completely empty rows or columns.")
        return
    if blanks.empty_columns:
        st.write(f"Empty columns: {', '.join(blanks.empty_columns)}")
    if blanks.empty_rows:
        st.write(f"Empty rows: {blanks.empty_rows:,}")
    c1, c2 = st.columns(2)
    drop_rows = c1.checkbox("Drop empty rows", value=True)
    drop_cols = c2.checkbox("Drop empty columns", value=True)
    if st.button("Clean up", use_container_width=True):
        ws.clean_blanks(rows=drop_rows, columns=drop_cols)
        st.rerun()


# ───────────────────────────────────────────────────────────────
#  SAMPLING TAB
# ───────────────────────────────────────────────────────────────
def _saved_configs(ws: Workspace):
    with st.expander("💾 Saved configurations", expanded=False):
        n1, n2 = st.columns([3, 1])
        name = n1.text_input("Name", key="config_name")
        if n2.button("Save", use_container_width=True):
            error = ws.save_config(name)
            if error:
                st.error(error)
            else:
                st.success(f"Saved '{name.strip()}'")

        names = ws.config_names()
        if not names:
            st.caption("No saved configurations.")
            return
        selected = st.selectbox("Configuration", names, key="config_selected")
        l1, l2, l3 = st.columns(3)
        if l1.button("Load & draw", use_container_width=True):
            if ws.load_config(selected) is None:
                st.warning("Loaded, but the sample could not be drawn. Check the stratum sizes.")
            else:
                st.rerun()
        if l2.button("Delete", use_container_width=True):
            ws.delete_config(selected)
            st.rerun()
        new_name = l3.text_input("Rename to", key="config_rename", label_visibility="collapsed",
                                 placeholder="New name")
        if new_name and st.button("Rename", use_container_width=True):
            error = ws.rename_config(selected, new_name)
            if error:
                st.error(error)
            else:
                st.rerun()


def sampling_tab(ws: Workspace):
    st.caption(f"Sampling from the current view ({len(ws.view):,} rows).")
    methods = list(SamplingMethod)
    method = st.radio("Method", methods, index=methods.index(ws.method), horizontal=True,
                      format_func=lambda m: m.value.title())
    if method != ws.method:
        ws.set_method(method)
        st.rerun()

    if ws.method == SamplingMethod.RANDOM:
        r1, r2 = st.columns(2)
        ws.sample_size = int(r1.number_input("Sample size", min_value=0, value=ws.sample_size, step=1))
        ws.is_percentage = r2.checkbox("Percentage of rows", value=ws.is_percentage)
    elif ws.method == SamplingMethod.SYSTEMATIC:
        ws.systematic_interval = int(st.number_input("Every k-th row", min_value=1,
                                                     value=ws.systematic_interval, step=1))
    else:
        for i, level in enumerate(ws.levels):
            with st.container(border=True):
                strata_editor(ws, level, i)
        if st.button("➕ Add level", disabled=len(ws.levels) >= 4):
            ws.add_level()
            st.rerun()

    g1, g2 = st.columns(2)
    if g1.button("🎲 Generate sample", use_container_width=True, disabled=ws.has_sampling_errors):
        ws.generate_sample()
        st.rerun()
    if g2.button("📑 Export configuration", use_container_width=True):
        download_button(ws.export_config(), "Download configuration", key="dl_config")

    _saved_configs(ws)
    sample_section(ws)


def sample_section(ws: Workspace):
    sample = ws.sample_view
    if sample is None:
        return
    st.markdown(section_header("🎯", "Drawn sample", f"{len(sample):,} rows"), unsafe_allow_html=True)
    st.dataframe(sample, use_container_width=True)

    with st.expander(f"🧰 Filter sample ({len(ws.sample_filters)} active)", expanded=False):
        column = st.selectbox("Column", ws.sample_headers, key="sample_filter_col")
        options = distinct_values(ws.sample, column)
        chosen = st.multiselect(
            "Values", list(range(len(options))),
            format_func=lambda i: f"{options[i]['label'] or '(blank)'} ({options[i]['count']})",
            key=f"sample_filter_{column}",
        )
        f1, f2 = st.columns(2)
        if f1.button("Apply", key="sample_filter_apply", use_container_width=True, disabled=not chosen):
            ws.set_sample_filter(column, CategoricalFilter(values=[options[i]["value"] for i in chosen]))
            st.rerun()
        if f2.button("Clear", key="sample_filter_clear", use_container_width=True):
            ws.set_sample_filter(column, None)
            st.rerun()

    s1, s2, s3 = st.columns(3)
    with s1:
        col = st.selectbox("Hide column", ws.sample_headers, key="sample_delete_col")
        if st.button("Hide", use_container_width=True):
            try:
                ws.delete_sample_column(col)
                st.rerun()
            except MutationError as e:
                st.error(str(e))
    with s2:
        sort_col = st.selectbox("Sort sample by", ws.sample_headers, key="sample_sort_col")
        if st.button("⇅ Sort sample", use_container_width=True):
            ws.request_sample_sort(sort_col)
            st.rerun()
    with s3:
        if st.button("↩️ Undo sample edit", use_container_width=True, disabled=not ws.can_undo_sample):
            ws.undo_sample()
            st.rerun()
        fmt = st.selectbox("Format", ["csv", "excel", "pdf"], key="sample_fmt")
        if st.button("⬇️ Export sample", use_container_width=True):
            download_button(ws.export_sample(fmt), "Download sample", key="dl_sample")


# ───────────────────────────────────────────────────────────────
#  STATISTICS TAB
# ───────────────────────────────────────────────────────────────
def stats_tab(ws: Workspace):
    view = ws.view
    rows = []
    for column, info in ws.column_stats().items():
        row = {"Column": column, "Type": info.type.value, "Missing": info.missing_count,
               "Outliers": len(info.outlier_labels)}
        if info.stats:
            s = info.stats
            row.update({"Mean": round(s.mean, 2), "Median": round(s.median, 2),
                        "Std dev": None if s.std_dev is None else round(s.std_dev, 2),
                        "Min": s.min, "Max": s.max, "Q1": s.q1, "Q3": s.q3, "IQR": s.iqr,
                        "Mode": ", ".join(f"{m:g}" for m in s.mode)})
        rows.append(row)
    st.dataframe(rows, use_container_width=True, hide_index=True)

    numeric = [r["Column"] for r in rows if r["Type"] == "numeric"]
    if numeric:
        col = st.selectbox("Distribution", numeric)
        st.plotly_chart(create_box_plot(numeric_series(view[col]), col, title=f"{col} distribution"),
                        use_container_width=True)
        info = ws.column_info(col)
        if info.outlier_labels:
            with st.expander(f"🚩 {len(info.outlier_labels)} outlier rows"):
                st.dataframe(view.loc[info.outlier_labels], use_container_width=True)

    matrix = ws.correlation()
    if matrix is not None:
        st.plotly_chart(create_correlation_heatmap(matrix), use_container_width=True)
    else:
        st.caption("Correlation needs at least two numeric columns.")


# ───────────────────────────────────────────────────────────────
#  DASHBOARD TAB
# ───────────────────────────────────────────────────────────────
def dashboard_tab(ws: Workspace):
    charts = ws.ensure_default_chart()
    if st.button("➕ Add chart"):
        ws.add_chart()
        st.rerun()
    cols = st.columns(2)
    for i, chart in enumerate(charts):
        with cols[i % 2]:
            chart_card(ws, chart)


# ───────────────────────────────────────────────────────────────
#  AI TAB
# ───────────────────────────────────────────────────────────────
def ai_tab(ws: Workspace):
    st.markdown(section_header("🧠", "AI analysis", "Audit-focused review of the first 50 rows of the view"),
                unsafe_allow_html=True)
    if st.button("Analyse data", use_container_width=True):
        with st.spinner("Analysing…"):
            ws.run_analysis()
    analysis_panel(ws.analysis)

    st.divider()
    st.markdown(section_header("💬", "Chat with your data"), unsafe_allow_html=True)
    for message in ws.chat_history:
        with st.chat_message("user" if message.sender == "user" else "assistant"):
            st.markdown(message.text)
    question = st.chat_input("Ask a question about this dataset")
    if question:
        with st.spinner("Thinking…"):
            ws.ask(question)
        st.rerun()


# ───────────────────────────────────────────────────────────────
#  MAIN
# ───────────────────────────────────────────────────────────────
def main():
    init_session_state()
    inject_global_css()
    sidebar()

    ws = _workspace()
    if ws is None:
        upload_section()
        return

    tabs = st.tabs(["📋 Data", "🧹 Cleanup", "🎯 Sampling", "📐 Statistics", "📊 Dashboard", "🧠 AI"])
    with tabs[0]:
        data_tab(ws)
    with tabs[1]:
        cleanup_tab(ws)
    with tabs[2]:
        sampling_tab(ws)
    with tabs[3]:
        stats_tab(ws)
    with tabs[4]:
        dashboard_tab(ws)
    with tabs[5]:
        ai_tab(ws)


if __name__ == "__main__":
    main()
