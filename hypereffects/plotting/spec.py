from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import pandas as pd

GEOMS = ("point", "line", "smooth", "tile", "raster", "contour")


@dataclass
class Layer:
    """One drawing instruction; ``data`` of None means the plot's own data."""

    geom: str
    mapping: Dict[str, str] = field(default_factory=dict)
    data: Optional[pd.DataFrame] = None
    params: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.geom not in GEOMS:
            raise ValueError(f"Unknown geom {self.geom!r}; expected one of {GEOMS}")


@dataclass
class Scale:
    """Manual mapping from data values to an aesthetic (shape markers, colors)."""

    aesthetic: str
    values: Dict[Any, Any]


@dataclass
class PlotSpec:
    """Declarative plot: data, default aesthetics, layers, scales and labels."""

    data: pd.DataFrame
    mapping: Dict[str, str] = field(default_factory=dict)
    layers: List[Layer] = field(default_factory=list)
    scales: Dict[str, Scale] = field(default_factory=dict)
    labels: Dict[str, str] = field(default_factory=dict)
    facet: Optional[str] = None

    def add_layer(self, layer: Layer) -> "PlotSpec":
        self.layers.append(layer)
        return self

    def set_scale(self, aesthetic: str, values: Dict[Any, Any]) -> "PlotSpec":
        # a later scale for the same aesthetic replaces the earlier one
        self.scales[aesthetic] = Scale(aesthetic, dict(values))
        return self

    def set_label(self, aesthetic: str, text: str) -> "PlotSpec":
        self.labels[aesthetic] = text
        return self

    def layer_data(self, layer: Layer) -> pd.DataFrame:
        return self.data if layer.data is None else layer.data

    def layer_mapping(self, layer: Layer) -> Dict[str, str]:
        merged = dict(self.mapping)
        merged.update(layer.mapping)
        return merged

    def label_for(self, aesthetic: str) -> Optional[str]:
        if aesthetic in self.labels:
            return self.labels[aesthetic]
        return self.mapping.get(aesthetic)

    @property
    def geoms(self) -> List[str]:
        return [layer.geom for layer in self.layers]
