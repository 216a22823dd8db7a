from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Callable, Mapping, Optional, Union

import numpy as np

from ..config import EffectPlotConfig
from ..effect_data import HyperParsEffectData, NESTED_COLUMN
from ..learners import resolve_regressor
from ..measures import Measure, MeasureRegistry, as_registry
from ..utils import get_logger, is_flag, single_name
from .rules import PlotContext, PlotFlags, assemble, select_rules
from .spec import PlotSpec
from .transforms import (
    aggregate_nested,
    as_fold_labels,
    interpolate_grid,
    mark_failures,
    track_global_optimum,
)

logger = get_logger("HyperParsEffect")

PLOT_TYPES = ("scatter", "line", "heatmap", "contour")


@dataclass(frozen=True)
class PlotRequest:
    """
    What to draw from a ``HyperParsEffectData`` table.

    Attributes:
        x, y: columns for the axes
        z: column for the extra axis (fill of a heatmap, color of points)
        facet: column to facet by; ``"nested_cv_run"`` gives one panel per outer fold
        plot_type: 'scatter', 'line', 'heatmap' or 'contour'
        loess_smooth: add a smoothing curve (scatter/line plots)
        pretty_names: label measure axes with the measure's display name
        global_only: for iteration vs measure plots, show the best value so far
        interpolate: regressor (or its name) used to fill non-complete grids
            of heatmaps and contours
        show_experiments: mark the points that were actually evaluated
        show_interpolated: mark the points that were interpolated
        nested_agg: reducer used to merge outer folds when z is set
    """

    x: Any
    y: Any
    z: Any = None
    facet: Any = None
    plot_type: str = "scatter"
    loess_smooth: bool = False
    pretty_names: bool = True
    global_only: bool = True
    interpolate: Any = None
    show_experiments: bool = False
    show_interpolated: bool = False
    nested_agg: Callable[[np.ndarray], Any] = np.mean

    def validate(self, effect_data: HyperParsEffectData) -> "PlotRequest":
        """
        Check the request against the table's columns.

        Returns a copy whose axis selectors are plain column names and whose
        ``interpolate`` is a fresh regressor (or None).
        """
        if not isinstance(effect_data, HyperParsEffectData):
            raise TypeError(
                f"Expected HyperParsEffectData, got {type(effect_data).__name__}"
            )
        x = single_name(self.x, "x")
        y = single_name(self.y, "y")
        z = single_name(self.z, "z")
        facet = single_name(self.facet, "facet")

        columns = effect_data.columns
        for what, name, required in (("x", x, True), ("y", y, True), ("z", z, False), ("facet", facet, False)):
            if name is None:
                if required:
                    raise ValueError(f"{what} must name a column of the effect data")
                continue
            if name not in columns:
                raise ValueError(
                    f"{what}={name!r} is not a column of the effect data; choose from {list(columns)}"
                )

        if self.plot_type not in PLOT_TYPES:
            raise ValueError(f"plot_type must be one of {PLOT_TYPES}, got {self.plot_type!r}")
        for flag in ("loess_smooth", "pretty_names", "global_only", "show_experiments", "show_interpolated"):
            if not is_flag(getattr(self, flag)):
                raise TypeError(f"{flag} must be a bool")
        if not callable(self.nested_agg):
            raise TypeError("nested_agg must be a function")

        learner = None if self.interpolate is None else resolve_regressor(self.interpolate)
        return replace(self, x=x, y=y, z=z, facet=facet, interpolate=learner)


def plot_hyperpars_effect(
    effect_data: HyperParsEffectData,
    x: Any = None,
    y: Any = None,
    z: Any = None,
    plot_type: str = "scatter",
    loess_smooth: bool = False,
    facet: Any = None,
    pretty_names: bool = True,
    global_only: bool = True,
    interpolate: Any = None,
    show_experiments: bool = False,
    show_interpolated: bool = False,
    nested_agg: Callable[[np.ndarray], Any] = np.mean,
    measures: Union[None, MeasureRegistry, Mapping[str, Measure]] = None,
    config: Optional[EffectPlotConfig] = None,
) -> PlotSpec:
    """
    Plot the hyperparameter effects data.

    Useful for judging the importance or effect of a hyperparameter on a
    performance measure, or the behaviour of an optimizer over iterations.
    Failed evaluations (missing performance) are marked and replaced with the
    worst value of their measure; interpolation fills incomplete grids of
    heatmaps and contours with predicted values, so use it with caution.

    Args:
        effect_data: result of ``generate_hyperpars_effect_data``
        measures: registry (or mapping) of measure definitions; the default
            registry when omitted
        config: marker/color/grid choices
        Remaining arguments are the fields of ``PlotRequest``.

    Returns:
        PlotSpec ready for ``render_plot``
    """
    request = PlotRequest(
        x=x,
        y=y,
        z=z,
        facet=facet,
        plot_type=plot_type,
        loess_smooth=loess_smooth,
        pretty_names=pretty_names,
        global_only=global_only,
        interpolate=interpolate,
        show_experiments=show_experiments,
        show_interpolated=show_interpolated,
        nested_agg=nested_agg,
    )
    return build_plot(effect_data, request, measures=measures, config=config)


def build_plot(
    effect_data: HyperParsEffectData,
    request: PlotRequest,
    measures: Union[None, MeasureRegistry, Mapping[str, Measure]] = None,
    config: Optional[EffectPlotConfig] = None,
) -> PlotSpec:
    req = request.validate(effect_data)
    registry = as_registry(measures)
    config = config or EffectPlotConfig()

    heatcontour = req.plot_type in ("heatmap", "contour")
    has_z = req.z is not None
    interpolating = req.interpolate is not None and has_z and heatcontour

    d = effect_data.table.copy()
    if effect_data.nested:
        d = as_fold_labels(d)

    d, na_flag = mark_failures(d, effect_data.measures, registry, heatcontour)

    if req.global_only:
        d = track_global_optimum(
            d, req.x, req.y, effect_data.measures, registry, nested=effect_data.nested
        )

    if interpolating:
        d = interpolate_grid(
            d,
            req.x,
            req.y,
            req.z,
            req.interpolate,
            nested=effect_data.nested,
            resolution=config.grid_resolution,
        )
    elif req.interpolate is not None:
        logger.warning("interpolate is only used for heatmap/contour plots with z; ignored")

    if effect_data.nested and has_z:
        keep_status = na_flag or req.interpolate is not None or req.show_experiments
        d = aggregate_nested(d, effect_data.hyperparams, req.nested_agg, keep_status=keep_status)

    if has_z and req.facet is not None:
        logger.warning("facet is only applied to plots without z; ignored")
    if has_z and req.loess_smooth:
        logger.warning("loess_smooth is only applied to plots without z; ignored")

    flags = PlotFlags(
        has_z=has_z,
        heatcontour=heatcontour,
        line=req.plot_type == "line",
        contour=req.plot_type == "contour",
        smooth=req.loess_smooth,
        facet=req.facet is not None,
        nested=effect_data.nested and NESTED_COLUMN in d.columns,
        na=na_flag,
        interpolate=req.interpolate is not None,
        show_experiments=req.show_experiments,
        show_interpolated=req.show_interpolated,
    )
    logger.debug("Plot rules: %s", [r.name for r in select_rules(flags)])

    ctx = PlotContext(data=d, x=req.x, y=req.y, z=req.z, facet=req.facet, config=config)
    spec = assemble(ctx, flags)

    if req.pretty_names:
        for aesthetic, column in (("x", req.x), ("y", req.y), ("fill", req.z)):
            if column is not None and column in effect_data.measures:
                spec.set_label(aesthetic, registry.resolve(column).name)
    return spec
