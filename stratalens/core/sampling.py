"""Sampling engine: simple random, systematic and stratified draws."""

import logging
from typing import List, Optional, Sequence

import numpy as np
import pandas as pd

from stratalens.config import settings
from stratalens.core.coercion import js_round
from stratalens.core.errors import SamplingBlockedError
from stratalens.core.state import SamplingConfig, SamplingMethod
from stratalens.core.stratification import has_errors, level_members
from stratalens.utils.logger import StepTimer
from stratalens.utils.validators import resolve_sample_size

logger = logging.getLogger(__name__)

RandomState = int | np.random.Generator | None


def _rng(random_state: RandomState) -> np.random.Generator:
    if isinstance(random_state, np.random.Generator):
        return random_state
    if random_state is None:
        random_state = settings.random_seed
    return np.random.default_rng(random_state)


def random_sample(
    population: pd.DataFrame,
    size: int,
    is_percentage: bool = False,
    random_state: RandomState = None,
) -> pd.DataFrame:
    """Uniform draw without replacement.

    *size* is a row count, or a percentage of the population when
    *is_percentage* is set. The target is clamped to ``[0, len(population)]``.
    """
    total = len(population)
    target = js_round(size / 100 * total) if is_percentage else int(size)
    target = max(0, min(target, total))
    if target == 0:
        return population.iloc[0:0]
    sampled = population.sample(n=target, random_state=_rng(random_state))
    logger.info(f"Random sample: {total} → {len(sampled)} rows")
    return sampled


def systematic_sample(population: pd.DataFrame, interval: int) -> pd.DataFrame:
    """Every *interval*-th row (positions 0, k, 2k, …) in the population's current order.

    The result depends on the view's sort order. An interval below 1 yields
    an empty sample.
    """
    try:
        step = int(interval)
    except (TypeError, ValueError):
        step = 0
    if step < 1:
        logger.warning(f"Systematic interval {interval!r} is not a positive integer; empty sample")
        return population.iloc[0:0]
    sampled = population.iloc[::step]
    logger.info(f"Systematic sample (k={step}): {len(population)} → {len(sampled)} rows")
    return sampled


def stratified_sample(
    config: SamplingConfig,
    population: pd.DataFrame,
    headers: Sequence[str],
    random_state: RandomState = None,
) -> pd.DataFrame:
    """Union of per-stratum draws across all levels, deduplicated by content.

    Stratum membership is re-derived from *population* at draw time. Each
    stratum contributes ``resolve_sample_size(sample_size, members)`` rows,
    clamped to its member count. Duplicate rows (same values across the
    current *headers*) appear once, at their first position.
    """
    if has_errors(config.levels):
        raise SamplingBlockedError("A stratum has an invalid sample size")

    rng = _rng(random_state)
    timer = StepTimer("StratifiedSample", logger)
    draws: List[pd.DataFrame] = []

    with timer.step("per-stratum draws"):
        for level in config.levels:
            for stratum, members in level_members(level, population):
                target = min(resolve_sample_size(stratum.sample_size, len(members)), len(members))
                if target > 0:
                    draws.append(members.sample(n=target, random_state=rng))

    if not draws:
        return population.iloc[0:0]

    with timer.step("deduplicate"):
        candidates = pd.concat(draws)
        columns = [h for h in headers if h in candidates.columns]
        sampled = candidates.drop_duplicates(subset=columns or None, keep="first")

    logger.info(
        f"Stratified sample over {len(config.levels)} level(s): "
        f"{len(candidates)} drawn → {len(sampled)} unique rows"
    )
    timer.summary()
    return sampled


def draw_sample(
    config: SamplingConfig,
    population: pd.DataFrame,
    headers: Optional[Sequence[str]] = None,
    random_state: RandomState = None,
) -> pd.DataFrame:
    """Draw a sample from *population* (the current view) according to *config*.

    Raises:
        SamplingBlockedError: for a stratified draw while any stratum holds
            a validation error; callers check ``has_errors`` first.
    """
    headers = list(headers) if headers is not None else list(population.columns)

    if config.method == SamplingMethod.RANDOM:
        return random_sample(population, config.sample_size, config.is_percentage, random_state)
    if config.method == SamplingMethod.SYSTEMATIC:
        return systematic_sample(population, config.systematic_interval)
    return stratified_sample(config, population, headers, random_state)
