from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, Mapping, Optional, Union

INF = math.inf


@dataclass(frozen=True)
class Measure:
    id: str
    name: str
    minimize: bool = True
    worst: float = INF
    best: float = 0.0


class MeasureRegistry:
    """Lookup of measure properties keyed by measure id."""

    def __init__(self, measures: Optional[Iterable[Measure]] = None):
        self._measures: Dict[str, Measure] = {}
        for m in measures or ():
            self.register(m)

    def register(self, measure: Measure) -> Measure:
        if not isinstance(measure, Measure):
            raise TypeError(f"Expected Measure, got {type(measure).__name__}")
        self._measures[measure.id] = measure
        return measure

    def get(self, measure_id: str) -> Measure:
        try:
            return self._measures[measure_id]
        except KeyError:
            raise KeyError(
                f"Unknown measure {measure_id!r}; register it first "
                f"(known: {sorted(self._measures)})"
            ) from None

    def resolve(self, column: str) -> Measure:
        """Measure behind a performance column such as ``mmce.test.mean``."""
        return self.get(measure_id(column))

    def copy(self) -> "MeasureRegistry":
        return MeasureRegistry(self._measures.values())

    def __contains__(self, measure_id: object) -> bool:
        return measure_id in self._measures

    def __iter__(self) -> Iterator[Measure]:
        return iter(self._measures.values())

    def __len__(self) -> int:
        return len(self._measures)


def measure_id(column: str) -> str:
    """Strip the ``.test.<aggregation>`` suffix from a performance column."""
    return str(column).split(".test.", 1)[0]


def as_registry(
    measures: Union[None, MeasureRegistry, Mapping[str, Measure]] = None,
) -> MeasureRegistry:
    if measures is None:
        return default_registry()
    if isinstance(measures, MeasureRegistry):
        return measures
    if isinstance(measures, Mapping):
        registry = default_registry()
        for key, m in measures.items():
            if not isinstance(m, Measure):
                raise TypeError(f"measures[{key!r}] must be a Measure")
            registry.register(m if m.id == key else Measure(key, m.name, m.minimize, m.worst, m.best))
        return registry
    raise TypeError(
        f"measures must be a MeasureRegistry or a mapping, got {type(measures).__name__}"
    )


_DEFAULT_MEASURES = (
    # classification
    Measure("mmce", "Mean misclassification error", True, 1.0, 0.0),
    Measure("acc", "Accuracy", False, 0.0, 1.0),
    Measure("ber", "Balanced error rate", True, 1.0, 0.0),
    Measure("bac", "Balanced accuracy", False, 0.0, 1.0),
    Measure("auc", "Area under the curve", False, 0.0, 1.0),
    Measure("brier", "Brier score", True, 1.0, 0.0),
    Measure("logloss", "Logarithmic loss", True, INF, 0.0),
    Measure("f1", "F1 measure", False, 0.0, 1.0),
    Measure("kappa", "Cohen's kappa", False, -1.0, 1.0),
    # regression
    Measure("mse", "Mean of squared errors", True, INF, 0.0),
    Measure("rmse", "Root mean squared error", True, INF, 0.0),
    Measure("mae", "Mean of absolute errors", True, INF, 0.0),
    Measure("medae", "Median of absolute errors", True, INF, 0.0),
    Measure("rsq", "Coefficient of determination", False, -INF, 1.0),
    # timing
    Measure("timetrain", "Time of fitting the model", True, INF, 0.0),
    Measure("timepredict", "Time of predicting test set", True, INF, 0.0),
    Measure("timeboth", "timetrain + timepredict", True, INF, 0.0),
    # generic optimizer objective
    Measure("loss", "Loss", True, INF, -INF),
)


def default_registry() -> MeasureRegistry:
    return MeasureRegistry(_DEFAULT_MEASURES)
