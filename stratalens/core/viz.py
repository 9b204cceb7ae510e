"""Dashboard chart configurations and the data behind them."""

import math
import logging
from numbers import Number
from typing import Any, Dict, List, Optional

import pandas as pd

from stratalens.core.coercion import is_blank, is_numeric_column, parse_float, stringify, value_key
from stratalens.core.state import Aggregation, ChartConfig, ChartType
from stratalens.core.stratification import new_id

logger = logging.getLogger(__name__)

MAX_CATEGORIES = 20
MISSING_LABEL = "N/A"


def _group_label(value: Any) -> str:
    if is_blank(value) or value is False:
        return MISSING_LABEL
    if isinstance(value, Number) and not isinstance(value, bool) and value == 0:
        return MISSING_LABEL
    return stringify(value)


def _ticket_value(view: pd.DataFrame, config: ChartConfig) -> float:
    if not config.y_col or config.y_col not in view.columns:
        return float(len(view))

    present = [v for v in view[config.y_col].tolist() if not is_blank(v)]
    numbers = [x for x in (parse_float(v) for v in present) if not math.isnan(x)]

    if config.agg == Aggregation.SUM:
        return sum(numbers)
    if config.agg == Aggregation.AVG:
        return sum(numbers) / len(numbers) if numbers else 0.0
    if config.agg == Aggregation.DISTINCT:
        return float(len({value_key(v) for v in present}))
    return float(len(present))


def aggregate_chart_data(view: pd.DataFrame, config: ChartConfig) -> List[Dict[str, Any]]:
    """Reduce *view* to ``[{"name", "value"}]`` points for *config*.

    Rows are grouped by the display form of the x column (missing values
    as "N/A"). Values are rounded to two decimals, sorted largest first and
    capped at the top 20 groups. A ticket chart yields one point for the
    whole view.
    """
    if not config.x_col or config.x_col not in view.columns:
        return []

    if config.type == ChartType.TICKET:
        return [{"name": config.title, "value": round(_ticket_value(view, config), 2)}]

    has_y = bool(config.y_col) and config.y_col in view.columns
    groups: Dict[str, Dict[str, Any]] = {}
    y_values = view[config.y_col].tolist() if has_y else [None] * len(view)

    for x, y in zip(view[config.x_col].tolist(), y_values):
        group = groups.setdefault(_group_label(x), {"sum": 0.0, "count": 0, "values": set()})
        group["count"] += 1
        if has_y:
            group["values"].add(value_key(y))
            number = parse_float(y)
            if not math.isnan(number):
                group["sum"] += number

    points = []
    for name, g in groups.items():
        if has_y and config.agg == Aggregation.SUM:
            value = g["sum"]
        elif has_y and config.agg == Aggregation.AVG:
            value = g["sum"] / g["count"]
        elif has_y and config.agg == Aggregation.DISTINCT:
            value = len(g["values"])
        else:
            value = g["count"]
        points.append({"name": name, "value": round(float(value), 2)})

    points.sort(key=lambda p: p["value"], reverse=True)
    return points[:MAX_CATEGORIES]


def default_chart(df: pd.DataFrame) -> Optional[ChartConfig]:
    """Initial dashboard chart: the first column, valued by the first numeric one."""
    headers = [str(c) for c in df.columns]
    if not headers:
        return None
    numeric_col = next((h for h in headers if is_numeric_column(df, h)), headers[0])
    return ChartConfig(
        id=new_id(),
        type=ChartType.BAR,
        title=f"Distribution of {numeric_col}",
        x_col=headers[0],
        y_col="" if numeric_col == headers[0] else numeric_col,
        agg=Aggregation.COUNT,
    )


def new_chart(df: pd.DataFrame) -> Optional[ChartConfig]:
    """A blank bar chart on the first column, for the "add chart" action."""
    headers = [str(c) for c in df.columns]
    if not headers:
        return None
    return ChartConfig(id=new_id(), title="New chart", x_col=headers[0])
