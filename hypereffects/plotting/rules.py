"""Decision table that turns plot flags into layers.

Every rule is a named predicate over ``PlotFlags`` plus the function that adds
its layers, scales or facet to the ``PlotSpec``. Rules run in table order, so
each flag combination can be audited by listing the rules it selects.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Optional

import pandas as pd

from ..config import EffectPlotConfig
from ..effect_data import NESTED_COLUMN
from .spec import Layer, PlotSpec
from .transforms import FAILURE, INTERPOLATED, STATUS_COLUMN, SUCCESS


@dataclass(frozen=True)
class PlotFlags:
    has_z: bool = False
    heatcontour: bool = False
    line: bool = False
    contour: bool = False
    smooth: bool = False
    facet: bool = False
    nested: bool = False
    na: bool = False
    interpolate: bool = False
    show_experiments: bool = False
    show_interpolated: bool = False

    @property
    def surface(self) -> bool:
        """Heatmap or contour over a z column."""
        return self.has_z and self.heatcontour

    @property
    def mark_experiments(self) -> bool:
        # learner crashes always get their experiment markers
        return self.na or self.show_experiments


@dataclass
class PlotContext:
    data: pd.DataFrame
    x: str
    y: str
    z: Optional[str] = None
    facet: Optional[str] = None
    config: Optional[EffectPlotConfig] = None

    def __post_init__(self):
        if self.config is None:
            self.config = EffectPlotConfig()


@dataclass(frozen=True)
class LayerRule:
    name: str
    applies: Callable[[PlotFlags], bool]
    build: Callable[[PlotSpec, PlotContext, PlotFlags], None]


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def _base_xy(spec: PlotSpec, ctx: PlotContext, flags: PlotFlags) -> None:
    spec.mapping = {"x": ctx.x, "y": ctx.y}
    if flags.nested:
        spec.mapping["color"] = NESTED_COLUMN


def _base_xyz(spec: PlotSpec, ctx: PlotContext, flags: PlotFlags) -> None:
    spec.mapping = {"x": ctx.x, "y": ctx.y, "color": ctx.z}


def _base_raster(spec: PlotSpec, ctx: PlotContext, flags: PlotFlags) -> None:
    d = ctx.data
    spec.data = d[d[STATUS_COLUMN] == INTERPOLATED].reset_index(drop=True)
    spec.mapping = {"x": ctx.x, "y": ctx.y, "fill": ctx.z, "z": ctx.z}
    spec.add_layer(Layer("raster"))


def _base_tile(spec: PlotSpec, ctx: PlotContext, flags: PlotFlags) -> None:
    spec.mapping = {"x": ctx.x, "y": ctx.y, "fill": ctx.z, "z": ctx.z}
    spec.add_layer(Layer("tile"))


def _status_points(spec: PlotSpec, ctx: PlotContext, flags: PlotFlags) -> None:
    cfg = ctx.config
    spec.add_layer(Layer("point", {"shape": STATUS_COLUMN, "color": STATUS_COLUMN}))
    spec.set_scale("shape", {FAILURE: cfg.failure_marker, SUCCESS: cfg.success_marker})
    spec.set_scale("color", {FAILURE: cfg.failure_color, SUCCESS: cfg.success_color})


def _plain_points(spec: PlotSpec, ctx: PlotContext, flags: PlotFlags) -> None:
    spec.add_layer(Layer("point"))


def _connect_line(spec: PlotSpec, ctx: PlotContext, flags: PlotFlags) -> None:
    spec.add_layer(Layer("line"))


def _smooth(spec: PlotSpec, ctx: PlotContext, flags: PlotFlags) -> None:
    spec.add_layer(Layer("smooth"))


def _facet(spec: PlotSpec, ctx: PlotContext, flags: PlotFlags) -> None:
    spec.facet = ctx.facet


def _interpolated_points(spec: PlotSpec, ctx: PlotContext, flags: PlotFlags) -> None:
    spec.add_layer(Layer("point", {"shape": STATUS_COLUMN}))
    spec.set_scale("shape", {INTERPOLATED: ctx.config.interpolated_marker})


def _experiment_points(spec: PlotSpec, ctx: PlotContext, flags: PlotFlags) -> None:
    cfg = ctx.config
    d = ctx.data
    observed = d[d[STATUS_COLUMN].isin([SUCCESS, FAILURE])].reset_index(drop=True)
    spec.add_layer(
        Layer("point", {"shape": STATUS_COLUMN}, data=observed, params={"fill": cfg.experiment_fill})
    )
    spec.set_scale("shape", {FAILURE: cfg.failure_marker, SUCCESS: cfg.success_marker})


def _all_points(spec: PlotSpec, ctx: PlotContext, flags: PlotFlags) -> None:
    cfg = ctx.config
    spec.add_layer(
        Layer("point", {"shape": STATUS_COLUMN}, data=ctx.data, params={"fill": cfg.experiment_fill})
    )
    spec.set_scale(
        "shape",
        {
            FAILURE: cfg.failure_marker,
            SUCCESS: cfg.success_marker,
            INTERPOLATED: cfg.interpolated_marker,
        },
    )


def _contour(spec: PlotSpec, ctx: PlotContext, flags: PlotFlags) -> None:
    spec.add_layer(Layer("contour"))


# ---------------------------------------------------------------------------
# Decision table
# ---------------------------------------------------------------------------

LAYER_RULES: List[LayerRule] = [
    LayerRule("base_xy", lambda f: not f.has_z, _base_xy),
    LayerRule("base_xyz", lambda f: f.has_z and not f.heatcontour, _base_xyz),
    LayerRule("base_raster", lambda f: f.surface and f.interpolate, _base_raster),
    LayerRule("base_tile", lambda f: f.surface and not f.interpolate, _base_tile),
    LayerRule("status_points", lambda f: not f.surface and f.na, _status_points),
    LayerRule("plain_points", lambda f: not f.surface and not f.na, _plain_points),
    LayerRule("connect_line", lambda f: not f.surface and f.line, _connect_line),
    LayerRule("smooth", lambda f: not f.has_z and f.smooth, _smooth),
    LayerRule("facet", lambda f: not f.has_z and f.facet, _facet),
    LayerRule(
        "interpolated_points",
        lambda f: f.surface and f.interpolate and f.show_interpolated and not f.mark_experiments,
        _interpolated_points,
    ),
    LayerRule(
        "experiment_points",
        lambda f: f.surface and f.mark_experiments and not f.show_interpolated,
        _experiment_points,
    ),
    LayerRule(
        "all_points",
        lambda f: f.surface and f.mark_experiments and f.show_interpolated,
        _all_points,
    ),
    LayerRule("contour", lambda f: f.surface and f.contour, _contour),
]


def select_rules(flags: PlotFlags) -> List[LayerRule]:
    return [rule for rule in LAYER_RULES if rule.applies(flags)]


def assemble(ctx: PlotContext, flags: PlotFlags) -> PlotSpec:
    spec = PlotSpec(data=ctx.data)
    for rule in select_rules(flags):
        rule.build(spec, ctx, flags)
    return spec
