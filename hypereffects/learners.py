from __future__ import annotations

import copy
from typing import Any, Callable, Dict, Sequence

import numpy as np
import pandas as pd
from sklearn.base import clone, is_classifier
from sklearn.ensemble import GradientBoostingRegressor, RandomForestRegressor
from sklearn.gaussian_process import GaussianProcessRegressor
from sklearn.gaussian_process.kernels import ConstantKernel, Matern, WhiteKernel
from sklearn.linear_model import LinearRegression
from sklearn.neighbors import KNeighborsRegressor
from sklearn.pipeline import make_pipeline
from sklearn.preprocessing import StandardScaler
from sklearn.svm import SVR
from sklearn.tree import DecisionTreeRegressor


def _gp() -> GaussianProcessRegressor:
    kernel = ConstantKernel(1.0) * Matern(length_scale=1.0, nu=2.5) + WhiteKernel(1e-3)
    return GaussianProcessRegressor(kernel=kernel, normalize_y=True, random_state=0)


_REGRESSORS: Dict[str, Callable[[], Any]] = {
    "regr.lm": LinearRegression,
    "regr.randomForest": lambda: RandomForestRegressor(n_estimators=200, random_state=0),
    "regr.kknn": lambda: make_pipeline(StandardScaler(), KNeighborsRegressor(n_neighbors=7, weights="distance")),
    "regr.svm": lambda: make_pipeline(StandardScaler(), SVR()),
    "regr.gausspr": lambda: make_pipeline(StandardScaler(), _gp()),
    "regr.rpart": lambda: DecisionTreeRegressor(min_samples_leaf=2, random_state=0),
    "regr.gbm": lambda: GradientBoostingRegressor(random_state=0),
}

_ALIASES = {
    "linear": "regr.lm",
    "random_forest": "regr.randomForest",
    "knn": "regr.kknn",
    "svm": "regr.svm",
    "gp": "regr.gausspr",
    "tree": "regr.rpart",
    "gbm": "regr.gbm",
}


def available_regressors() -> Sequence[str]:
    return sorted(_REGRESSORS) + sorted(_ALIASES)


def resolve_regressor(learner: Any) -> Any:
    """
    Turn an interpolation learner into a fresh, unfitted regressor.

    Accepts a regressor name (``"regr.randomForest"`` or an alias such as
    ``"random_forest"``) or any estimator exposing ``fit``/``predict``.
    Classifiers are rejected.
    """
    if isinstance(learner, str):
        key = _ALIASES.get(learner, learner)
        if key not in _REGRESSORS:
            raise ValueError(
                f"Unknown regression learner {learner!r}; choose from {list(available_regressors())}"
            )
        return _REGRESSORS[key]()

    if not (callable(getattr(learner, "fit", None)) and callable(getattr(learner, "predict", None))):
        raise TypeError(
            f"interpolate must be a learner name or a regressor with fit/predict, "
            f"got {type(learner).__name__}"
        )
    if is_classifier(learner):
        raise TypeError(
            f"{type(learner).__name__} is a classifier; interpolation needs a regression learner"
        )
    if hasattr(learner, "get_params"):
        return clone(learner)
    return copy.deepcopy(learner)


def fit_predict(
    learner: Any,
    train: pd.DataFrame,
    features: Sequence[str],
    target: str,
    newdata: pd.DataFrame,
) -> np.ndarray:
    """Fit a copy of ``learner`` on ``train`` and predict ``target`` for ``newdata``."""
    model = resolve_regressor(learner)
    X = train.loc[:, list(features)].to_numpy(dtype=float)
    y = train[target].to_numpy(dtype=float)
    model.fit(X, y)
    pred = model.predict(newdata.loc[:, list(features)].to_numpy(dtype=float))
    return np.asarray(pred, dtype=float).reshape(-1)
