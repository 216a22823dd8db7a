from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Union

import numpy as np
import pandas as pd

PARAM_TYPES = ("numeric", "integer", "discrete", "logical")

# Columns every optimization path frame carries after the params and measures
PATH_COLUMNS = ("dob", "eol", "error.message", "exec.time")

_CONTROL_NAMES = {
    "grid": "TuneControlGrid",
    "random": "TuneControlRandom",
    "mbo": "TuneControlMBO",
    "irace": "TuneControlIrace",
    "cmaes": "TuneControlCMAES",
    "design": "TuneControlDesign",
    "gensa": "TuneControlGenSA",
}


@dataclass
class Param:
    """Tuned hyperparameter definition"""

    name: str
    type: str = "numeric"  # 'numeric', 'integer', 'discrete', 'logical'
    values: Optional[List[Any]] = None
    trafo: Optional[Callable[[Any], Any]] = None

    def __post_init__(self):
        if self.type not in PARAM_TYPES:
            raise ValueError(
                f"Param {self.name}: type must be one of {PARAM_TYPES}, got {self.type!r}"
            )
        if self.type == "discrete" and not self.values:
            raise ValueError(f"Param {self.name}: values must be specified for discrete")

    def encode(self, value: Any, trafo: bool = False) -> Any:
        """Value as it appears in a path frame; discrete values are stored by label."""
        if value is None:
            return None
        if trafo and self.trafo is not None:
            value = self.trafo(value)
        if self.type == "discrete":
            return str(value)
        if self.type == "logical":
            return bool(value)
        if self.type == "integer" and not trafo:
            return int(value)
        return value


@dataclass
class PathEntry:
    x: Dict[str, Any]
    y: Dict[str, Optional[float]]
    dob: int
    eol: Optional[int] = None
    error_message: Optional[str] = None
    exec_time: Optional[float] = None
    extra: Dict[str, Any] = field(default_factory=dict)


class OptimizationPath:
    """
    Ordered trace of every configuration an optimizer evaluated.

    Params can be given as ``Param`` objects or plain names (numeric).
    """

    def __init__(
        self,
        params: Sequence[Union[Param, str]],
        y_names: Sequence[str],
        minimize: Optional[Sequence[bool]] = None,
    ):
        self.params: List[Param] = [p if isinstance(p, Param) else Param(str(p)) for p in params]
        self.y_names: List[str] = list(y_names)
        if not self.y_names:
            raise ValueError("OptimizationPath needs at least one y name")
        if minimize is None:
            minimize = [True] * len(self.y_names)
        if len(minimize) != len(self.y_names):
            raise ValueError("minimize must have one entry per y name")
        self.minimize: List[bool] = [bool(m) for m in minimize]
        self.entries: List[PathEntry] = []

    @property
    def param_names(self) -> List[str]:
        return [p.name for p in self.params]

    def __len__(self) -> int:
        return len(self.entries)

    def add(
        self,
        x: Dict[str, Any],
        y: Union[Dict[str, Optional[float]], float, None],
        dob: Optional[int] = None,
        eol: Optional[int] = None,
        error_message: Optional[str] = None,
        exec_time: Optional[float] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> "OptimizationPath":
        unknown = set(x) - set(self.param_names)
        if unknown:
            raise ValueError(f"Unknown params in x: {sorted(unknown)}")
        if not isinstance(y, dict):
            # a bare scalar (or None for a crash) is the single measure's value
            y = {self.y_names[0]: y}
        self.entries.append(
            PathEntry(
                x=dict(x),
                y=dict(y),
                dob=len(self.entries) + 1 if dob is None else int(dob),
                eol=eol,
                error_message=error_message,
                exec_time=exec_time,
                extra=dict(extra or {}),
            )
        )
        return self

    def to_frame(self, trafo: bool = False) -> pd.DataFrame:
        extra_cols: List[str] = []
        for e in self.entries:
            for k in e.extra:
                if k not in extra_cols:
                    extra_cols.append(k)

        rows = []
        for e in self.entries:
            row: Dict[str, Any] = {}
            for p in self.params:
                row[p.name] = p.encode(e.x.get(p.name), trafo=trafo)
            for name in self.y_names:
                row[name] = _as_float(e.y.get(name))
            row["dob"] = e.dob
            row["eol"] = np.nan if e.eol is None else e.eol
            row["error.message"] = e.error_message
            row["exec.time"] = _as_float(e.exec_time)
            for k in extra_cols:
                row[k] = e.extra.get(k)
            rows.append(row)

        columns = self.param_names + self.y_names + list(PATH_COLUMNS) + extra_cols
        return pd.DataFrame(rows, columns=columns)

    def transformed(self) -> "OptimizationPath":
        """Copy of the path with every param trafo applied to the stored x values."""
        params = [
            Param(p.name, "numeric" if p.type == "integer" and p.trafo else p.type, p.values, None)
            for p in self.params
        ]
        out = OptimizationPath(params, self.y_names, self.minimize)
        by_name = {p.name: p for p in self.params}
        for e in self.entries:
            x = {
                k: (by_name[k].trafo(v) if v is not None and by_name[k].trafo else v)
                for k, v in e.x.items()
            }
            out.entries.append(
                PathEntry(x, dict(e.y), e.dob, e.eol, e.error_message, e.exec_time, dict(e.extra))
            )
        return out


@dataclass
class TuneControl:
    method: str = "grid"

    def __post_init__(self):
        self.method = str(self.method).lower()
        if self.method not in _CONTROL_NAMES:
            raise ValueError(
                f"Unknown tuning method {self.method!r}; expected one of {sorted(_CONTROL_NAMES)}"
            )

    @property
    def name(self) -> str:
        return _CONTROL_NAMES[self.method]


@dataclass
class TuneResult:
    """Outcome of a single tuning run."""

    x: Dict[str, Any]
    y: Dict[str, float]
    opt_path: OptimizationPath
    control: TuneControl = field(default_factory=TuneControl)
    learner_id: str = ""

    @property
    def hyperparams(self) -> List[str]:
        return list(self.x.keys())

    @property
    def measures(self) -> List[str]:
        return list(self.opt_path.y_names)

    @classmethod
    def from_history(
        cls,
        history: Iterable[Dict[str, Any]],
        params: Optional[Sequence[Union[Param, str]]] = None,
        measure: str = "loss",
        method: str = "random",
        learner_id: str = "",
    ) -> "TuneResult":
        """
        Build a result from optimizer history records.

        Each record looks like ``{"config": {...}, "loss": float, ...}``.
        Records whose loss is missing or not finite are kept as crashed
        evaluations: the measure is missing and so is ``exec.time`` unless
        the record carries one. ``budget`` and ``bracket`` are kept as extra
        columns. Successful records without a timing get ``exec.time`` 0.
        """
        history = list(history)
        if not history:
            raise ValueError("history is empty")

        if params is None:
            params = _infer_params(h.get("config", {}) for h in history)
        y_name = f"{measure}.test.mean"
        path = OptimizationPath(params, [y_name])

        best_loss, best_cfg = math.inf, None
        for h in history:
            cfg = dict(h.get("config", {}))
            loss = _as_float(h.get("loss"))
            failed = not np.isfinite(loss)
            exec_time = h.get("exec_time", h.get("time"))
            if exec_time is None and not failed:
                exec_time = 0.0
            extra = {k: h[k] for k in ("budget", "bracket") if k in h}
            path.add(
                cfg,
                {y_name: None if failed else loss},
                error_message=h.get("error") if failed else None,
                exec_time=exec_time,
                extra=extra,
            )
            if not failed and loss < best_loss:
                best_loss, best_cfg = loss, cfg

        if best_cfg is None:
            best_cfg = {p: None for p in path.param_names}
        x = {p: best_cfg.get(p) for p in path.param_names}
        return cls(
            x=x,
            y={y_name: best_loss},
            opt_path=path,
            control=TuneControl(method),
            learner_id=learner_id,
        )


@dataclass
class ResampleResult:
    """Outer resampling result whose per-fold extract holds a ``TuneResult``."""

    extract: List[TuneResult]
    learner_id: str = ""

    def __post_init__(self):
        self.extract = list(self.extract)
        if not self.extract:
            raise ValueError("ResampleResult.extract is empty")
        for i, res in enumerate(self.extract, start=1):
            if not isinstance(res, TuneResult):
                raise TypeError(
                    f"extract of fold {i} is {type(res).__name__}, expected TuneResult; "
                    "resample with the tune result extracted"
                )

    def __len__(self) -> int:
        return len(self.extract)


def _as_float(value: Any) -> float:
    if value is None:
        return np.nan
    try:
        return float(value)
    except (TypeError, ValueError):
        return np.nan


def _infer_params(configs: Iterable[Dict[str, Any]]) -> List[Param]:
    seen: Dict[str, List[Any]] = {}
    for cfg in configs:
        for k, v in cfg.items():
            seen.setdefault(k, []).append(v)

    params = []
    for name, vals in seen.items():
        vals = [v for v in vals if v is not None]
        if vals and all(isinstance(v, (bool, np.bool_)) for v in vals):
            params.append(Param(name, "logical"))
        elif vals and all(isinstance(v, (int, np.integer)) and not isinstance(v, bool) for v in vals):
            params.append(Param(name, "integer"))
        elif all(isinstance(v, (int, float, np.number)) and not isinstance(v, bool) for v in vals):
            params.append(Param(name, "numeric"))
        else:
            params.append(Param(name, "discrete", sorted({str(v) for v in vals})))
    return params
