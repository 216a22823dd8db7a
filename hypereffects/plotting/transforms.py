"""Table transforms applied before a hyperparameter effect plot is assembled.

Each stage takes the working table and returns a new one; callers run them
in order: failure substitution, global optimum tracking, interpolation and
nested aggregation.
"""

from __future__ import annotations

from typing import Any, Callable, Iterable, Sequence, Tuple

import numpy as np
import pandas as pd

from ..effect_data import ITERATION_COLUMN, NESTED_COLUMN
from ..learners import fit_predict
from ..measures import Measure, MeasureRegistry
from ..utils import existing, get_logger

logger = get_logger("HyperParsEffect")

STATUS_COLUMN = "learner_status"
SUCCESS = "Success"
FAILURE = "Failure"
INTERPOLATED = "Interpolated Point"
EXEC_TIME_COLUMN = "exec.time"


def as_fold_labels(table: pd.DataFrame) -> pd.DataFrame:
    """Nested runs become categorical labels for grouping and coloring."""
    d = table.copy()
    d[NESTED_COLUMN] = d[NESTED_COLUMN].astype("category")
    return d


def mark_failures(
    table: pd.DataFrame,
    measures: Sequence[str],
    registry: MeasureRegistry,
    heatcontour: bool = False,
) -> Tuple[pd.DataFrame, bool]:
    """
    Tag learner crashes and backfill their missing performance values.

    Rows whose ``exec.time`` is missing are failures. Missing measure values
    are replaced with the measure's worst possible value for heatmaps and
    contours, otherwise with the worst value actually observed (column max
    when minimized, min when maximized). An infinite worst value falls back
    to the observed one; a measure never observed gets its worst value.
    Missing execution times become the column max.

    Returns:
        (table, na_flag) where na_flag tells whether any measure was missing
    """
    d = table.copy()
    measures = list(measures)
    na_flag = bool(d[measures].isna().to_numpy().any())

    if not na_flag:
        d[STATUS_COLUMN] = SUCCESS
        return d, False

    if EXEC_TIME_COLUMN in d.columns:
        failed = d[EXEC_TIME_COLUMN].isna()
    else:
        failed = d[measures].isna().any(axis=1)
    d[STATUS_COLUMN] = np.where(failed.to_numpy(), FAILURE, SUCCESS)

    for col in measures:
        missing = d[col].isna()
        if not missing.any():
            continue
        d.loc[missing, col] = _backfill_value(d[col], registry.resolve(col), heatcontour)

    if EXEC_TIME_COLUMN in d.columns:
        d[EXEC_TIME_COLUMN] = d[EXEC_TIME_COLUMN].fillna(d[EXEC_TIME_COLUMN].max())

    logger.info(
        "%d learner failure(s) found; missing performance values backfilled",
        int(failed.sum()),
    )
    return d, True


def _backfill_value(values: pd.Series, measure: Measure, heatcontour: bool) -> float:
    # an infinite worst cannot be drawn or regressed on
    if heatcontour and np.isfinite(measure.worst):
        return measure.worst
    observed = values.max() if measure.minimize else values.min()
    if pd.isna(observed):
        return measure.worst
    return observed


def track_global_optimum(
    table: pd.DataFrame,
    x: str,
    y: str,
    measures: Sequence[str],
    registry: MeasureRegistry,
    nested: bool = False,
) -> pd.DataFrame:
    """
    Replace every measure with its best value found so far.

    Only applies to an ``iteration`` vs measure plot; any other axes return the
    table unchanged. Nested runs are tracked independently.
    """
    d = table.copy()
    if x != ITERATION_COLUMN or y not in measures:
        return d

    by_run = nested and NESTED_COLUMN in d.columns
    order_cols = [NESTED_COLUMN, ITERATION_COLUMN] if by_run else [ITERATION_COLUMN]
    ordered = d.sort_values(order_cols, kind="stable")

    for col in measures:
        minimize = registry.resolve(col).minimize
        if by_run:
            grouped = ordered.groupby(NESTED_COLUMN, observed=True, sort=False)[col]
            best = grouped.cummin() if minimize else grouped.cummax()
        else:
            best = ordered[col].cummin() if minimize else ordered[col].cummax()
        # assignment aligns on the index, restoring the original row order
        d[col] = best
    return d


def make_grid(table: pd.DataFrame, x: str, y: str, resolution: int = 100) -> pd.DataFrame:
    """Regular grid over the observed x/y ranges, x varying fastest."""
    for col in (x, y):
        if not pd.api.types.is_numeric_dtype(table[col]):
            raise ValueError(f"Interpolation needs numeric axes; {col!r} is {table[col].dtype}")
    xo = np.linspace(table[x].min(), table[x].max(), resolution)
    yo = np.linspace(table[y].min(), table[y].max(), resolution)
    gx, gy = np.meshgrid(xo, yo)
    return pd.DataFrame({x: gx.ravel(), y: gy.ravel()})


def interpolate_grid(
    table: pd.DataFrame,
    x: str,
    y: str,
    z: str,
    learner: Any,
    nested: bool = False,
    resolution: int = 100,
) -> pd.DataFrame:
    """
    Fill a regular grid with ``z`` predicted by a regression learner.

    The learner is fit on the observed ``(x, y) -> z`` rows (per fold when
    nested) and predicts every grid point. The result stacks the observed rows
    and the ``Interpolated Point`` rows; all ``z`` values are clamped to the
    observed range since predictions can overshoot.
    """
    grid = make_grid(table, x, y, resolution)
    keep = existing(table.columns, list(dict.fromkeys([x, y, z, STATUS_COLUMN, ITERATION_COLUMN])))

    def _fit_run(d_run: pd.DataFrame) -> pd.DataFrame:
        train = d_run.dropna(subset=list(dict.fromkeys([x, y, z])))
        train = train[np.isfinite(train[z].to_numpy(dtype=float))]
        if train.empty:
            raise ValueError(f"No complete ({x}, {y}, {z}) observations to interpolate from")
        g = grid.copy()
        g[z] = fit_predict(learner, train, [x, y], z, g)
        g[STATUS_COLUMN] = INTERPOLATED
        g[ITERATION_COLUMN] = np.nan
        return pd.concat([d_run[keep], g], ignore_index=True, sort=False)

    if nested and NESTED_COLUMN in table.columns:
        parts = []
        for run in pd.unique(table[NESTED_COLUMN]):
            logger.debug("Interpolating %s over %s x %s for run %s", z, x, y, run)
            parts.append(_fit_run(table[table[NESTED_COLUMN] == run]))
        out = pd.concat(parts, ignore_index=True, sort=False)
    else:
        logger.debug("Interpolating %s over %s x %s", z, x, y)
        out = _fit_run(table)

    finite = table[z][np.isfinite(table[z].to_numpy(dtype=float))]
    out[z] = out[z].clip(lower=finite.min(), upper=finite.max())
    return out


def aggregate_nested(
    table: pd.DataFrame,
    hyperparams: Iterable[str],
    agg: Callable[[np.ndarray], Any] = np.mean,
    keep_status: bool = False,
) -> pd.DataFrame:
    """
    Collapse the outer folds into one row per hyperparameter combination.

    Rows are grouped by the hyperparameter values (and ``learner_status`` when
    ``keep_status``); every other numeric column is reduced with ``agg``. The
    aggregated rows get a fresh ``iteration`` index.
    """
    hyperparams = list(hyperparams)
    keys = existing(table.columns, hyperparams + ([STATUS_COLUMN] if keep_status else []))
    if not keys:
        raise ValueError("None of the hyperparameter columns are left to aggregate by")

    excluded = set(hyperparams) | {
        ITERATION_COLUMN,
        NESTED_COLUMN,
        STATUS_COLUMN,
        "eol",
        "error.message",
    }
    values = [
        c
        for c in table.columns
        if c not in excluded and pd.api.types.is_numeric_dtype(table[c])
    ]

    if values:
        out = (
            table.groupby(keys, sort=True, observed=True)[values]
            .agg(lambda s: agg(s.to_numpy()))
            .reset_index()
        )
    else:
        out = table[keys].drop_duplicates().sort_values(keys).reset_index(drop=True)

    out[ITERATION_COLUMN] = np.arange(1, len(out) + 1)
    return out
