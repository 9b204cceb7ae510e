"""Plotly figure factory functions for dashboard charts and column profiles."""

import plotly.graph_objects as go
import pandas as pd
from typing import Any, Dict, List, Sequence
import logging

from stratalens.core.state import ChartConfig, ChartType

logger = logging.getLogger(__name__)

# ── Power BI-inspired theme ──────────────────────────────────────────
_PBI_FONT = "Segoe UI, Roboto, Helvetica Neue, Arial, sans-serif"

DARK_LAYOUT = dict(
    template="plotly_dark",
    paper_bgcolor="#0e1117",
    plot_bgcolor="#111827",
    font=dict(family=_PBI_FONT, color="#e2e8f0", size=13),
    title_font=dict(family=_PBI_FONT, size=18, color="#f8fafc"),
    margin=dict(l=60, r=30, t=70, b=55),
    hoverlabel=dict(
        bgcolor="#1e293b",
        font_size=13,
        font_family=_PBI_FONT,
        font_color="#f1f5f9",
        bordercolor="#334155",
    ),
    legend=dict(
        orientation="h",
        yanchor="bottom", y=1.02,
        xanchor="center", x=0.5,
        font=dict(size=12),
        bgcolor="rgba(0,0,0,0)",
    ),
)

PBI_CATEGORICAL = ["#636EFA", "#EF553B", "#00CC96", "#AB63FA",
                   "#FFA15A", "#19D3F3", "#FF6692", "#B6E880"]

_AXIS_STYLE = dict(showgrid=True, gridcolor="rgba(255,255,255,0.06)",
                   zeroline=False, showline=True, linewidth=1, linecolor="#334155")


def apply_dark_theme(fig: go.Figure) -> go.Figure:
    """Apply the Power BI-inspired dark theme to any Plotly figure."""
    fig.update_layout(**DARK_LAYOUT)
    fig.update_xaxes(**_AXIS_STYLE)
    fig.update_yaxes(**_AXIS_STYLE)
    return fig


def _split(points: Sequence[Dict[str, Any]]) -> tuple[list, list]:
    names = [str(p.get("name", "")) for p in points]
    values = [p.get("value", 0) for p in points]
    return names, values


def create_bar_chart(points: Sequence[Dict[str, Any]], title: str = "", horizontal: bool = False) -> go.Figure:
    names, values = _split(points)
    if horizontal:
        # Largest bar on top.
        bar = go.Bar(x=values[::-1], y=names[::-1], orientation="h",
                     marker_color=PBI_CATEGORICAL[0],
                     hovertemplate="%{y}: %{x:,.2f}<extra></extra>")
    else:
        bar = go.Bar(x=names, y=values, marker_color=PBI_CATEGORICAL[0],
                     hovertemplate="%{x}: %{y:,.2f}<extra></extra>")
    fig = go.Figure(bar)
    fig.update_layout(title=dict(text=title, x=0.5, xanchor="center"))
    return apply_dark_theme(fig)


def create_pie_chart(points: Sequence[Dict[str, Any]], title: str = "", hole: float = 0.0) -> go.Figure:
    names, values = _split(points)
    fig = go.Figure(go.Pie(
        labels=names, values=values, hole=hole,
        marker=dict(colors=PBI_CATEGORICAL),
        textinfo="percent",
        hovertemplate="%{label}: %{value:,.2f}<extra></extra>",
    ))
    fig.update_layout(title=dict(text=title, x=0.5, xanchor="center"), **DARK_LAYOUT)
    return fig


def create_line_chart(points: Sequence[Dict[str, Any]], title: str = "") -> go.Figure:
    names, values = _split(points)
    fig = go.Figure(go.Scatter(
        x=names, y=values, mode="lines+markers",
        line=dict(color=PBI_CATEGORICAL[2], width=2.5),
        hovertemplate="%{x}: %{y:,.2f}<extra></extra>",
    ))
    fig.update_layout(title=dict(text=title, x=0.5, xanchor="center"), hovermode="x unified")
    return apply_dark_theme(fig)


def create_indicator(value: float, title: str = "") -> go.Figure:
    """Single-number KPI tile."""
    fig = go.Figure(go.Indicator(
        mode="number",
        value=value,
        number=dict(valueformat=",.2f", font=dict(size=48, color="#f8fafc")),
        title=dict(text=title),
    ))
    fig.update_layout(height=180, **DARK_LAYOUT)
    return fig


def create_chart(chart_type: ChartType | str, points: Sequence[Dict[str, Any]], title: str = "") -> go.Figure:
    """Render aggregated ``{"name", "value"}`` points as the requested chart type."""
    try:
        chart_type = ChartType(chart_type)
    except ValueError:
        logger.warning(f"Unknown chart type {chart_type!r}; falling back to bar")
        chart_type = ChartType.BAR

    if chart_type == ChartType.TICKET:
        value = points[0].get("value", 0) if points else 0
        return create_indicator(value, title)
    if chart_type == ChartType.PIE:
        return create_pie_chart(points, title)
    if chart_type == ChartType.DONUT:
        return create_pie_chart(points, title, hole=0.5)
    if chart_type == ChartType.LINE:
        return create_line_chart(points, title)
    return create_bar_chart(points, title, horizontal=chart_type == ChartType.BAR_HORIZONTAL)


def figure_from_config(config: ChartConfig, points: Sequence[Dict[str, Any]]) -> go.Figure:
    return create_chart(config.type, points, config.title)


def figures_from_specs(specs: List[Dict[str, Any]]) -> List[go.Figure]:
    """Build figures for chart specs proposed by the AI analysis.

    Specs look like ``{"type": "bar", "title": ..., "data": [{"name", "value"}]}``;
    entries without a usable data list are skipped.
    """
    figures = []
    for spec in specs:
        data = spec.get("data") if isinstance(spec, dict) else None
        if not isinstance(data, list) or not data:
            continue
        points = [p for p in data if isinstance(p, dict)]
        figures.append(create_chart(spec.get("type", "bar"), points, str(spec.get("title", ""))))
    return figures


def create_box_plot(
    series: pd.Series,
    name: str,
    title: str = "Box Plot",
) -> go.Figure:
    """Power BI-styled box plot of one parsed numeric column."""
    fig = go.Figure(go.Box(
        y=series.dropna(), name=name,
        marker_color=PBI_CATEGORICAL[0],
        line_color=PBI_CATEGORICAL[0],
        boxpoints="outliers",
        fillcolor="rgba(99,110,250,0.3)",
    ))
    fig.update_layout(title=dict(text=title, x=0.5, xanchor="center"))
    return apply_dark_theme(fig)


def create_correlation_heatmap(
    corr_matrix: pd.DataFrame,
    title: str = "Correlation Matrix",
    colorscale: str = "RdYlBu",
) -> go.Figure:
    """Create a Power BI-styled heatmap from a correlation matrix."""
    fig = go.Figure(data=go.Heatmap(
        z=corr_matrix.values,
        x=corr_matrix.columns.tolist(),
        y=corr_matrix.index.tolist(),
        colorscale=colorscale,
        zmin=-1, zmax=1,
        text=corr_matrix.round(2).values,
        texttemplate="%{text}",
        textfont=dict(size=11, family=_PBI_FONT),
        hovertemplate="%{x} vs %{y}: %{z:.3f}<extra></extra>",
        colorbar=dict(title="r", thickness=15, len=0.7),
    ))
    fig.update_layout(
        title=dict(text=title, x=0.5, xanchor="center"),
        height=560,
        **DARK_LAYOUT,
    )
    fig.update_xaxes(side="bottom", tickangle=45)
    return fig

