from .plotter import PLOT_TYPES, PlotRequest, build_plot, plot_hyperpars_effect
from .render import render_plot
from .rules import LAYER_RULES, LayerRule, PlotFlags, select_rules
from .spec import Layer, PlotSpec, Scale

__all__ = [
    "PLOT_TYPES",
    "PlotRequest",
    "plot_hyperpars_effect",
    "build_plot",
    "render_plot",
    "PlotFlags",
    "LayerRule",
    "LAYER_RULES",
    "select_rules",
    "PlotSpec",
    "Layer",
    "Scale",
]
