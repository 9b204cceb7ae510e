"""Stratification model: partition levels over the current view.

Levels are parallel, not nested. Every level partitions the same
population independently, and the stratified draw unions the per-stratum
draws of all levels.

* Categorical levels hold one stratum per distinct stringified value.
* Numeric levels hold an ordered rule list plus a trailing remainder. Rules
  claim rows by priority: a row belongs to the first rule it satisfies, and
  rows no rule claims (including unparsable cells) fall to the remainder.

All operations return new level objects; nothing is mutated in place.
"""

import math
import uuid
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from stratalens.config import settings
from stratalens.core.coercion import column_type, display_series, numeric_series, stringify
from stratalens.core.state import (
    OPERATOR_SYMBOLS, REMAINDER_ID, REMAINDER_LABEL,
    CategoricalStratum, ColumnType, NumericOperator, NumericStratum,
    SampleSize, StratificationLevel, Stratum,
)
from stratalens.utils.validators import validate_sample_size

logger = logging.getLogger(__name__)

_OPERATORS = {
    NumericOperator.EQ: np.equal,
    NumericOperator.NEQ: np.not_equal,
    NumericOperator.GT: np.greater,
    NumericOperator.GTE: np.greater_equal,
    NumericOperator.LT: np.less,
    NumericOperator.LTE: np.less_equal,
}


def new_id() -> str:
    return uuid.uuid4().hex[:12]


def rule_label(operator: NumericOperator, threshold: float) -> str:
    return f"{OPERATOR_SYMBOLS[NumericOperator(operator)]} {stringify(float(threshold))}"


def remainder_stratum(count: int = 0, sample_size: SampleSize = "") -> NumericStratum:
    return NumericStratum(
        id=REMAINDER_ID,
        label=REMAINDER_LABEL,
        count=count,
        sample_size=sample_size,
        error=validate_sample_size(sample_size, count),
    )


def _validated(stratum: Stratum) -> Stratum:
    return stratum.model_copy(update={"error": validate_sample_size(stratum.sample_size, stratum.count)})


# ---------------------------------------------------------------------------
# Partitioning
# ---------------------------------------------------------------------------

def categorical_strata(population: pd.DataFrame, column: str) -> List[CategoricalStratum]:
    """One stratum per distinct stringified value, in first-appearance order."""
    if not column or column not in population.columns or population.empty:
        return []

    counts: Dict[str, int] = {}
    for key in display_series(population[column]).tolist():
        counts[key] = counts.get(key, 0) + 1
    return [CategoricalStratum(value=value, count=count) for value, count in counts.items()]


def numeric_partition(
    population: pd.DataFrame,
    column: str,
    rules: Sequence[NumericStratum],
) -> Tuple[List[np.ndarray], np.ndarray]:
    """Priority-claim rows of *population* against the ordered *rules*.

    Returns one array of row positions per rule plus the remainder
    positions. Every row lands in exactly one group.
    """
    n = len(population)
    if column in population.columns:
        values = numeric_series(population[column]).to_numpy(dtype=float)
    else:
        values = np.full(n, np.nan)

    parsed = ~np.isnan(values)
    unclaimed = np.ones(n, dtype=bool)
    groups: List[np.ndarray] = []

    for rule in rules:
        if rule.operator is None or rule.threshold is None:
            hit = np.zeros(n, dtype=bool)
        else:
            with np.errstate(invalid="ignore"):
                hit = unclaimed & parsed & _OPERATORS[rule.operator](values, rule.threshold)
        groups.append(np.flatnonzero(hit))
        unclaimed &= ~hit

    return groups, np.flatnonzero(unclaimed)


def _user_rules(level: StratificationLevel) -> List[NumericStratum]:
    return [s for s in level.strata if isinstance(s, NumericStratum) and not s.is_remainder]


def _remainder(level: StratificationLevel) -> Optional[NumericStratum]:
    for s in level.strata:
        if isinstance(s, NumericStratum) and s.is_remainder:
            return s
    return None


def level_members(level: StratificationLevel, population: pd.DataFrame) -> List[Tuple[Stratum, pd.DataFrame]]:
    """Pair each stratum of *level* with its member rows, derived from *population* now."""
    if not level.column:
        return []

    if level.column_type == ColumnType.CATEGORICAL:
        if level.column not in population.columns:
            return []
        keys = display_series(population[level.column])
        members = []
        for stratum in level.strata:
            group = population[(keys == stratum.value).to_numpy()]
            if len(group):
                members.append((stratum, group))
        return members

    rules = _user_rules(level)
    groups, rest = numeric_partition(population, level.column, rules)
    members = [(rule, population.iloc[positions]) for rule, positions in zip(rules, groups)]
    remainder = _remainder(level)
    if remainder is not None:
        members.append((remainder, population.iloc[rest]))
    return members


# ---------------------------------------------------------------------------
# Level lifecycle
# ---------------------------------------------------------------------------

def recompute_level(level: StratificationLevel, population: pd.DataFrame) -> StratificationLevel:
    """Refresh stratum counts against a new population.

    Requested sizes survive (categorical values merge by value, new values
    start at 0, vanished values drop; numeric rules keep their sizes). Every
    stratum is re-validated against its new count.
    """
    if not level.column:
        return level

    if level.column_type == ColumnType.CATEGORICAL:
        saved = {s.value: s.sample_size for s in level.strata if isinstance(s, CategoricalStratum)}
        strata = [
            _validated(s.model_copy(update={"sample_size": saved.get(s.value) or 0}))
            for s in categorical_strata(population, level.column)
        ]
        return level.model_copy(update={"strata": strata})

    rules = _user_rules(level)
    groups, rest = numeric_partition(population, level.column, rules)
    strata: List[Stratum] = [
        _validated(rule.model_copy(update={"count": len(positions)}))
        for rule, positions in zip(rules, groups)
    ]
    previous = _remainder(level)
    strata.append(remainder_stratum(count=len(rest), sample_size=previous.sample_size if previous else ""))
    return level.model_copy(update={"strata": strata})


def recompute_levels(levels: Sequence[StratificationLevel], population: pd.DataFrame) -> List[StratificationLevel]:
    return [recompute_level(level, population) for level in levels]


def new_level(
    df: pd.DataFrame,
    population: pd.DataFrame,
    column: str,
    level_id: Optional[str] = None,
) -> StratificationLevel:
    """Build a level from scratch; the type comes from the unfiltered dataset *df*."""
    ctype = column_type(df, column)
    if ctype == ColumnType.NUMERIC:
        strata: List[Stratum] = [remainder_stratum(count=len(population))]
    else:
        strata = list(categorical_strata(population, column))
    return StratificationLevel(
        id=level_id or new_id(),
        column=column,
        column_type=ctype,
        strata=strata,
    )


def add_level(
    levels: Sequence[StratificationLevel],
    df: pd.DataFrame,
    population: pd.DataFrame,
) -> List[StratificationLevel]:
    """Append a level on the first column no level uses yet (max levels enforced)."""
    if len(levels) >= settings.max_stratification_levels:
        logger.info(f"Stratification level limit reached ({settings.max_stratification_levels})")
        return list(levels)

    used = {level.column for level in levels}
    next_column = next((str(h) for h in df.columns if h not in used), "")
    return [*levels, new_level(df, population, next_column)]


def remove_level(levels: Sequence[StratificationLevel], level_id: str) -> List[StratificationLevel]:
    return [level for level in levels if level.id != level_id]


def change_level_column(
    level: StratificationLevel,
    df: pd.DataFrame,
    population: pd.DataFrame,
    column: str,
) -> StratificationLevel:
    """Retarget a level; strata are rebuilt and earlier sizes discarded."""
    return new_level(df, population, column, level_id=level.id)


def add_numeric_rule(
    level: StratificationLevel,
    population: pd.DataFrame,
    operator: NumericOperator | str,
    threshold: Any,
    rule_id: Optional[str] = None,
) -> StratificationLevel:
    """Insert a rule just before the remainder and recount the whole level."""
    if level.column_type != ColumnType.NUMERIC:
        logger.warning(f"Ignoring numeric rule on categorical level '{level.column}'")
        return level
    try:
        value = float(threshold)
    except (TypeError, ValueError):
        return level
    if math.isnan(value):
        return level

    operator = NumericOperator(operator)
    rule = NumericStratum(
        id=rule_id or new_id(),
        operator=operator,
        threshold=value,
        label=rule_label(operator, value),
    )
    strata = [*_user_rules(level), rule]
    remainder = _remainder(level)
    if remainder is not None:
        strata.append(remainder)
    return recompute_level(level.model_copy(update={"strata": strata}), population)


def remove_numeric_rule(
    level: StratificationLevel,
    population: pd.DataFrame,
    rule_id: str,
) -> StratificationLevel:
    """Drop a rule; later rules and the remainder may claim its rows."""
    if rule_id == REMAINDER_ID:
        return level
    strata = [s for s in level.strata if not (isinstance(s, NumericStratum) and s.id == rule_id)]
    return recompute_level(level.model_copy(update={"strata": strata}), population)


def set_stratum_size(level: StratificationLevel, key: str, size: SampleSize) -> StratificationLevel:
    """Record a requested size for one stratum and validate it (no recount)."""
    strata = [
        s.model_copy(update={"sample_size": size, "error": validate_sample_size(size, s.count)})
        if s.key == key else s
        for s in level.strata
    ]
    return level.model_copy(update={"strata": strata})


def autofill_categorical(level: StratificationLevel, percentage: float) -> StratificationLevel:
    """Set every categorical stratum's request to the same percentage string."""
    if level.column_type != ColumnType.CATEGORICAL:
        return level
    size = f"{stringify(float(percentage))}%"
    strata = [
        s.model_copy(update={"sample_size": size, "error": validate_sample_size(size, s.count)})
        for s in level.strata
    ]
    return level.model_copy(update={"strata": strata})


def rehydrate_levels(
    levels: Sequence[StratificationLevel],
    headers: Sequence[str],
    population: pd.DataFrame,
) -> List[StratificationLevel]:
    """Re-evaluate saved levels against a (possibly different) dataset.

    A level whose column is gone is reset to "column unset" with no strata;
    the user must pick a column again before drawing.
    """
    rehydrated = []
    for saved in levels:
        if saved.column not in headers:
            if saved.column:
                logger.info(f"Saved level column '{saved.column}' not in dataset; clearing it")
            rehydrated.append(saved.model_copy(update={"column": "", "strata": []}))
        else:
            rehydrated.append(recompute_level(saved, population))
    return rehydrated


def has_errors(levels: Sequence[StratificationLevel]) -> bool:
    return any(stratum.error for level in levels for stratum in level.strata)


def strata_summary(levels: Sequence[StratificationLevel]) -> List[Dict[str, Any]]:
    """Flat per-stratum rows, used when exporting a configuration."""
    rows = []
    for index, level in enumerate(levels, start=1):
        for stratum in level.strata:
            rows.append({
                "level": index,
                "column": level.column,
                "stratum": stratum.label if isinstance(stratum, NumericStratum) else stratum.value,
                "count": stratum.count,
                "sample_size": str(stratum.sample_size),
            })
    return rows
