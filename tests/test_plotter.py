import logging

import numpy as np
import pandas as pd
import pytest
from sklearn.linear_model import LinearRegression

from hypereffects import (
    EffectPlotConfig,
    Measure,
    OptimizationPath,
    TuneResult,
    generate_hyperpars_effect_data,
    plot_hyperpars_effect,
)
from hypereffects.plotting import PlotFlags, PlotRequest, select_rules
from hypereffects.plotting.transforms import INTERPOLATED, STATUS_COLUMN

SMALL_GRID = EffectPlotConfig(grid_resolution=8)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def test_multi_valued_axes_not_supported(grid_data):
    with pytest.raises(NotImplementedError, match="not yet supported"):
        plot_hyperpars_effect(grid_data, x=["C", "sigma"], y="mmce.test.mean")
    with pytest.raises(NotImplementedError):
        plot_hyperpars_effect(grid_data, x="C", y="mmce.test.mean", facet=("C", "sigma"))


def test_single_element_selector_is_unwrapped(grid_data):
    spec = plot_hyperpars_effect(grid_data, x=["C"], y=("mmce.test.mean",))
    assert spec.mapping == {"x": "C", "y": "mmce.test.mean"}


@pytest.mark.parametrize(
    "kwargs",
    [
        {"x": "gamma", "y": "mmce.test.mean"},
        {"x": "C", "y": "mmce.test.mean", "z": "nope"},
        {"x": "C", "y": "mmce.test.mean", "facet": "nested_cv_run"},
        {"x": None, "y": "mmce.test.mean"},
        {"x": "C", "y": "mmce.test.mean", "plot_type": "bar"},
        {"x": "C", "y": "sigma", "z": "mmce.test.mean", "plot_type": "heatmap", "interpolate": "regr.nope"},
    ],
)
def test_invalid_requests_raise_value_error(grid_data, kwargs):
    with pytest.raises(ValueError):
        plot_hyperpars_effect(grid_data, **kwargs)


def test_invalid_option_types(grid_data):
    with pytest.raises(TypeError):
        plot_hyperpars_effect(grid_data, x="C", y="mmce.test.mean", global_only="yes")
    with pytest.raises(TypeError):
        plot_hyperpars_effect(grid_data, x="C", y="mmce.test.mean", nested_agg="mean")
    with pytest.raises(TypeError):
        plot_hyperpars_effect(grid_data.table, x="C", y="mmce.test.mean")


def test_request_validate_resolves_learner(grid_data):
    req = PlotRequest(x=["C"], y="sigma", z="mmce.test.mean", plot_type="heatmap", interpolate="linear")
    checked = req.validate(grid_data)
    assert checked.x == "C"
    assert isinstance(checked.interpolate, LinearRegression)
    # original request is left as it was
    assert req.x == ["C"]


# ---------------------------------------------------------------------------
# Assembly
# ---------------------------------------------------------------------------


def test_scatter_without_failures(grid_data):
    spec = plot_hyperpars_effect(grid_data, x="C", y="mmce.test.mean")
    assert spec.geoms == ["point"]
    assert spec.scales == {}
    assert set(spec.data[STATUS_COLUMN]) == {"Success"}


def test_line_smooth_and_facet(grid_data):
    spec = plot_hyperpars_effect(
        grid_data, x="C", y="mmce.test.mean", plot_type="line", loess_smooth=True, facet="sigma"
    )
    assert spec.geoms == ["point", "line", "smooth"]
    assert spec.facet == "sigma"


def test_scatter_with_failures_marks_status(crash_data):
    spec = plot_hyperpars_effect(crash_data, x="C", y="mmce.test.mean")
    assert spec.geoms == ["point"]
    assert spec.layers[0].mapping == {"shape": STATUS_COLUMN, "color": STATUS_COLUMN}
    assert spec.scales["shape"].values == {"Failure": "^", "Success": "s"}
    assert spec.scales["color"].values == {"Failure": "red", "Success": "black"}
    assert list(spec.data["mmce.test.mean"]) == [0.3, 0.3, 0.2]
    assert list(spec.data[STATUS_COLUMN]) == ["Success", "Failure", "Success"]


def test_z_scatter_colors_by_z(grid_data):
    spec = plot_hyperpars_effect(grid_data, x="C", y="sigma", z="mmce.test.mean", plot_type="line")
    assert spec.mapping == {"x": "C", "y": "sigma", "color": "mmce.test.mean"}
    assert spec.geoms == ["point", "line"]


def test_heatmap_without_interpolation(grid_data):
    spec = plot_hyperpars_effect(grid_data, x="C", y="sigma", z="mmce.test.mean", plot_type="heatmap")
    assert spec.geoms == ["tile"]
    assert spec.mapping["fill"] == "mmce.test.mean"
    assert spec.labels["fill"] == "Mean misclassification error"


def test_heatmap_with_experiments(grid_data):
    spec = plot_hyperpars_effect(
        grid_data, x="C", y="sigma", z="mmce.test.mean", plot_type="contour", show_experiments=True
    )
    assert spec.geoms == ["tile", "point", "contour"]
    points = spec.layers[1]
    assert points.params == {"fill": "red"}
    assert set(points.data[STATUS_COLUMN]) <= {"Success", "Failure"}


def test_interpolated_contour(random_data):
    spec = plot_hyperpars_effect(
        random_data,
        x="C",
        y="sigma",
        z="mmce.test.mean",
        plot_type="contour",
        interpolate=LinearRegression(),
        show_interpolated=True,
        config=SMALL_GRID,
    )
    assert spec.geoms == ["raster", "point", "contour"]
    assert set(spec.data[STATUS_COLUMN]) == {INTERPOLATED}
    assert len(spec.data) == 64
    assert spec.scales["shape"].values == {INTERPOLATED: "v"}

    observed = random_data.table["mmce.test.mean"]
    assert spec.data["mmce.test.mean"].between(observed.min(), observed.max()).all()


def test_interpolated_heatmap_with_failures_shows_every_point(random_result):
    random_result.opt_path.add({"C": 2.0, "sigma": 2.0}, None, exec_time=None)
    data = generate_hyperpars_effect_data(random_result)
    spec = plot_hyperpars_effect(
        data,
        x="C",
        y="sigma",
        z="mmce.test.mean",
        plot_type="heatmap",
        interpolate="regr.lm",
        show_interpolated=True,
        config=SMALL_GRID,
    )
    assert spec.geoms == ["raster", "point"]
    assert set(spec.scales["shape"].values) == {"Failure", "Success", INTERPOLATED}
    assert len(spec.layers[1].data) == len(data.table) + 64
    # heatmaps backfill crashes with the measure's worst value, then clamp
    assert spec.layers[1].data["mmce.test.mean"].max() == 1.0


def test_interpolate_ignored_for_scatter(random_data):
    spec = plot_hyperpars_effect(random_data, x="C", y="sigma", z="mmce.test.mean", interpolate="regr.lm")
    assert INTERPOLATED not in set(spec.data[STATUS_COLUMN])


def test_pretty_names(grid_data):
    spec = plot_hyperpars_effect(grid_data, x="iteration", y="acc.test.mean")
    assert spec.labels == {"y": "Accuracy"}
    assert spec.label_for("x") == "iteration"

    raw = plot_hyperpars_effect(grid_data, x="iteration", y="acc.test.mean", pretty_names=False)
    assert raw.labels == {}
    assert raw.label_for("y") == "acc.test.mean"


def test_custom_measure_registry(grid_data):
    measures = {"acc": Measure("acc", "Hit rate", minimize=False, worst=0.0, best=1.0)}
    spec = plot_hyperpars_effect(grid_data, x="iteration", y="acc.test.mean", measures=measures)
    assert spec.labels["y"] == "Hit rate"


def test_global_only_plot_is_best_so_far(random_data):
    spec = plot_hyperpars_effect(random_data, x="iteration", y="mmce.test.mean", plot_type="line")
    assert np.all(np.diff(spec.data["mmce.test.mean"].to_numpy()) <= 0)

    raw = plot_hyperpars_effect(random_data, x="iteration", y="mmce.test.mean", global_only=False)
    pd.testing.assert_series_equal(raw.data["mmce.test.mean"], random_data.table["mmce.test.mean"])


def test_global_only_guard_leaves_measures(random_data):
    spec = plot_hyperpars_effect(random_data, x="iteration", y="C", global_only=True)
    pd.testing.assert_series_equal(spec.data["mmce.test.mean"], random_data.table["mmce.test.mean"])


def test_nested_without_z_colors_by_fold(make_nested):
    data = generate_hyperpars_effect_data(make_nested(n_folds=3))
    spec = plot_hyperpars_effect(data, x="iteration", y="mmce.test.mean", plot_type="line")
    assert spec.mapping["color"] == "nested_cv_run"
    assert isinstance(spec.data["nested_cv_run"].dtype, pd.CategoricalDtype)
    # not aggregated
    assert len(spec.data) == 15


def test_nested_with_z_is_aggregated(make_nested):
    data = generate_hyperpars_effect_data(make_nested(n_folds=3))
    spec = plot_hyperpars_effect(data, x="C", y="sigma", z="mmce.test.mean", plot_type="heatmap")
    assert len(spec.data) == 5
    assert "nested_cv_run" not in spec.data.columns
    assert list(spec.data["iteration"]) == [1, 2, 3, 4, 5]


def test_nested_interpolation_with_custom_agg(make_nested):
    data = generate_hyperpars_effect_data(make_nested(n_folds=2))
    spec = plot_hyperpars_effect(
        data,
        x="C",
        y="sigma",
        z="mmce.test.mean",
        plot_type="heatmap",
        interpolate="regr.lm",
        nested_agg=np.median,
        config=SMALL_GRID,
    )
    # both folds share one grid, so aggregation leaves one row per grid cell
    assert len(spec.data) == 64
    assert spec.geoms == ["raster"]


# ---------------------------------------------------------------------------
# Decision table
# ---------------------------------------------------------------------------


def _names(**flags):
    return [rule.name for rule in select_rules(PlotFlags(**flags))]


def test_rule_selection_without_z():
    assert _names() == ["base_xy", "plain_points"]
    assert _names(na=True, line=True, smooth=True, facet=True) == [
        "base_xy",
        "status_points",
        "connect_line",
        "smooth",
        "facet",
    ]
    # heatmap without z falls back to points
    assert _names(heatcontour=True) == ["base_xy", "plain_points"]


def test_rule_selection_with_z():
    assert _names(has_z=True, smooth=True, facet=True) == ["base_xyz", "plain_points"]
    assert _names(has_z=True, na=True, line=True) == ["base_xyz", "status_points", "connect_line"]


def test_rule_selection_for_surfaces():
    surface = dict(has_z=True, heatcontour=True)
    assert _names(**surface) == ["base_tile"]
    assert _names(**surface, contour=True, show_experiments=True) == [
        "base_tile",
        "experiment_points",
        "contour",
    ]
    assert _names(**surface, interpolate=True, show_interpolated=True) == [
        "base_raster",
        "interpolated_points",
    ]
    assert _names(**surface, interpolate=True, show_interpolated=True, na=True) == [
        "base_raster",
        "all_points",
    ]
    # interpolated markers need interpolation
    assert _names(**surface, show_interpolated=True) == ["base_tile"]


# ---------------------------------------------------------------------------
# Failure backfill and ignored options
# ---------------------------------------------------------------------------


def test_measure_missing_on_every_row_is_backfilled():
    path = OptimizationPath(["C"], ["mmce.test.mean", "acc.test.mean"], minimize=[True, False])
    path.add({"C": 0.25}, {"mmce.test.mean": 0.3, "acc.test.mean": None}, exec_time=1.0)
    path.add({"C": 1.0}, {"mmce.test.mean": None, "acc.test.mean": None})
    path.add({"C": 4.0}, {"mmce.test.mean": 0.2, "acc.test.mean": None}, exec_time=1.0)
    data = generate_hyperpars_effect_data(TuneResult(x={"C": 4.0}, y={}, opt_path=path))

    spec = plot_hyperpars_effect(data, x="C", y="mmce.test.mean")
    measures = list(data.measures)
    assert not spec.data[measures].isna().any().any()
    assert list(spec.data["acc.test.mean"]) == [0.0, 0.0, 0.0]


def test_history_failure_on_interpolated_heatmap():
    history = [
        {"config": {"lr": 0.01, "depth": 2}, "loss": 0.9, "time": 1.0},
        {"config": {"lr": 0.05, "depth": 4}, "loss": 0.4, "time": 1.0},
        {"config": {"lr": 0.10, "depth": 6}, "loss": float("nan")},
        {"config": {"lr": 0.20, "depth": 3}, "loss": 0.6, "time": 1.0},
        {"config": {"lr": 0.30, "depth": 5}, "loss": 0.7, "time": 1.0},
    ]
    data = generate_hyperpars_effect_data(TuneResult.from_history(history))
    spec = plot_hyperpars_effect(
        data,
        x="lr",
        y="depth",
        z="loss.test.mean",
        plot_type="heatmap",
        interpolate="regr.lm",
        config=SMALL_GRID,
    )
    assert spec.geoms == ["raster", "point"]
    assert np.isfinite(spec.data["loss.test.mean"]).all()

    observed = spec.layers[1].data
    failed = observed[observed[STATUS_COLUMN] == "Failure"]
    # loss has no finite worst, so the crash shows the worst loss seen
    assert list(failed["loss.test.mean"]) == [0.9]


def test_facet_and_smooth_ignored_with_z(grid_data, caplog):
    with caplog.at_level(logging.WARNING, logger="HyperParsEffect"):
        spec = plot_hyperpars_effect(
            grid_data, x="C", y="sigma", z="mmce.test.mean", facet="C", loess_smooth=True
        )
    assert spec.facet is None
    assert "smooth" not in spec.geoms
    messages = [r.getMessage() for r in caplog.records if r.levelno == logging.WARNING]
    assert any("facet is only applied" in m for m in messages)
    assert any("loess_smooth is only applied" in m for m in messages)
