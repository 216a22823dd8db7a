from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple


@dataclass
class EffectPlotConfig:
    """Fixed choices used while assembling a hyperparameter effect plot."""

    grid_resolution: int = 100

    # Marker shapes are matplotlib marker codes
    failure_marker: str = "^"
    success_marker: str = "s"
    interpolated_marker: str = "v"

    failure_color: str = "red"
    success_color: str = "black"
    experiment_fill: str = "red"

    def __post_init__(self):
        if int(self.grid_resolution) < 2:
            raise ValueError("grid_resolution must be >= 2")
        self.grid_resolution = int(self.grid_resolution)


@dataclass
class PlotStyle:
    dpi: int = 150
    figsize: Tuple[float, float] = (6.4, 4.0)
    grid: bool = True
    cmap: str = "viridis"
    alpha: float = 0.9
    point_size: float = 28.0
    line_width: float = 1.2
    smooth_color: str = "#1f77b4"
    contour_color: str = "#222222"
