from .config import EffectPlotConfig, PlotStyle
from .effect_data import HyperParsEffectData, generate_hyperpars_effect_data
from .learners import resolve_regressor
from .measures import Measure, MeasureRegistry, default_registry
from .plotting import PlotRequest, PlotSpec, plot_hyperpars_effect, render_plot
from .tuning import OptimizationPath, Param, ResampleResult, TuneControl, TuneResult

# Define what gets imported with "from hypereffects import *"
__all__ = [
    "Param",
    "OptimizationPath",
    "TuneControl",
    "TuneResult",
    "ResampleResult",
    "Measure",
    "MeasureRegistry",
    "default_registry",
    "resolve_regressor",
    "HyperParsEffectData",
    "generate_hyperpars_effect_data",
    "PlotRequest",
    "PlotSpec",
    "plot_hyperpars_effect",
    "render_plot",
    "EffectPlotConfig",
    "PlotStyle",
]
