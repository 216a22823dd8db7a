"""Hyperparameter effect data.

Turns the optimization path of a tuning run, or of every outer fold of a
nested cross-validation, into one tidy table that the effect plots (and any
custom analysis) can consume.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple, Union

import pandas as pd

from .tuning import ResampleResult, TuneResult
from .utils import get_logger, is_flag, type_convert

logger = get_logger("HyperParsEffect")

DIAGNOSTIC_COLUMNS = ("eol", "error.message")
NESTED_COLUMN = "nested_cv_run"
ITERATION_COLUMN = "iteration"


@dataclass(frozen=True, eq=False)
class HyperParsEffectData:
    """
    Cleaned hyperparameter effect table plus what is needed to read it.

    Attributes:
        table: one row per evaluated configuration (all folds stacked when nested)
        measures: performance measure columns
        hyperparams: hyperparameter columns
        optimizer_name: search strategy that produced the trace
        nested: True if the table stacks the traces of several outer folds
        diagnostics_included: True if ``eol``/``error.message`` were kept
    """

    table: pd.DataFrame
    measures: Tuple[str, ...]
    hyperparams: Tuple[str, ...]
    optimizer_name: str
    nested: bool = False
    diagnostics_included: bool = False

    def __post_init__(self):
        object.__setattr__(self, "table", self.table.copy())
        object.__setattr__(self, "measures", tuple(self.measures))
        object.__setattr__(self, "hyperparams", tuple(self.hyperparams))

        missing = [c for c in self.measures + self.hyperparams if c not in self.table.columns]
        if missing:
            raise ValueError(f"Columns missing from effect table: {missing}")
        if self.nested and NESTED_COLUMN not in self.table.columns:
            raise ValueError(f"Nested effect data needs a {NESTED_COLUMN!r} column")

    @property
    def columns(self) -> Tuple[str, ...]:
        return tuple(self.table.columns)

    def summary(self, n: int = 6) -> str:
        lines = [
            "HyperParsEffectData:",
            f"Hyperparameters: {','.join(self.hyperparams)}",
            f"Measures: {','.join(self.measures)}",
            f"Optimizer: {self.optimizer_name}",
            f"Nested CV Used: {self.nested}",
            "Snapshot of data:",
            self.table.head(n).to_string(),
        ]
        return "\n".join(lines)

    def __str__(self) -> str:
        return self.summary()


def generate_hyperpars_effect_data(
    tune_result: Union[TuneResult, ResampleResult],
    include_diagnostics: bool = False,
    trafo: bool = False,
) -> HyperParsEffectData:
    """
    Generate cleaned hyperparameter effect data.

    Args:
        tune_result: a ``TuneResult``, or a ``ResampleResult`` from nested
            cross-validation whose extract holds one ``TuneResult`` per fold.
            Every fold is treated as a separate run and stacked into the table.
        include_diagnostics: keep the ``eol`` and ``error.message`` columns
        trafo: report hyperparameters on the transformed scale

    Returns:
        HyperParsEffectData

    Example:
        >>> data = generate_hyperpars_effect_data(res)
        >>> spec = plot_hyperpars_effect(data, x="C", y="mmce.test.mean")
    """
    if not isinstance(tune_result, (TuneResult, ResampleResult)):
        raise TypeError(
            "tune_result must be a TuneResult or a ResampleResult from nested "
            f"cross-validation, got {type(tune_result).__name__}"
        )
    if not is_flag(include_diagnostics):
        raise TypeError("include_diagnostics must be a bool")
    if not is_flag(trafo):
        raise TypeError("trafo must be a bool")

    if isinstance(tune_result, ResampleResult):
        frames = []
        for i, res in enumerate(tune_result.extract, start=1):
            df = res.opt_path.to_frame(trafo=trafo)
            df["iter"] = i
            frames.append(df)
        d = pd.concat(frames, ignore_index=True, sort=False)
        d = d.rename(columns={"iter": NESTED_COLUMN})

        first = tune_result.extract[0]
        measures = first.measures
        hyperparams = first.hyperparams
        optimizer_name = first.control.name
        nested = True
    else:
        d = tune_result.opt_path.to_frame(trafo=trafo)
        measures = tune_result.measures
        hyperparams = tune_result.hyperparams
        optimizer_name = tune_result.control.name
        nested = False

    # numerics discretized upstream come back as text labels
    for hyp in hyperparams:
        d[hyp] = type_convert(d[hyp])

    if not include_diagnostics:
        d = d.drop(columns=list(DIAGNOSTIC_COLUMNS))

    d = d.rename(columns={"dob": ITERATION_COLUMN})

    logger.info(
        "Built effect data: %d rows, %d hyperparameter(s), %d measure(s), nested=%s",
        len(d),
        len(hyperparams),
        len(measures),
        nested,
    )
    return HyperParsEffectData(
        table=d,
        measures=measures,
        hyperparams=hyperparams,
        optimizer_name=optimizer_name,
        nested=nested,
        diagnostics_included=bool(include_diagnostics),
    )
