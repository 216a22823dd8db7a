from __future__ import annotations

import math
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
import pandas as pd
from statsmodels.nonparametric.smoothers_lowess import lowess

from ..config import PlotStyle
from .spec import PlotSpec

try:
    import matplotlib.pyplot as plt
except Exception:  # pragma: no cover - optional dependency
    plt = None


def render_plot(
    spec: PlotSpec,
    ax: Optional[Any] = None,
    style: Optional[PlotStyle] = None,
    title: Optional[str] = None,
    save_path: Optional[str] = None,
) -> Any:
    """
    Draw a ``PlotSpec`` with matplotlib and return the figure.

    A faceted spec gets its own grid of panels, one per facet value, and
    ignores ``ax``.
    """
    _ensure_matplotlib()
    style = style or PlotStyle()

    if spec.facet:
        values = _levels(spec.data[spec.facet])
        ncols = int(math.ceil(math.sqrt(len(values)))) or 1
        nrows = int(math.ceil(len(values) / ncols)) or 1
        w, h = style.figsize
        fig, axes = plt.subplots(
            nrows,
            ncols,
            figsize=(w * ncols * 0.6, h * nrows * 0.6),
            dpi=style.dpi,
            squeeze=False,
            sharex=True,
            sharey=True,
        )
        flat = list(axes.flat)
        for panel, value in zip(flat, values):
            _draw(spec, panel, style, facet_value=value)
            panel.set_title(f"{spec.facet} = {value}", fontsize=9)
        for panel in flat[len(values):]:
            panel.set_visible(False)
    else:
        if ax is None:
            fig, ax = plt.subplots(figsize=style.figsize, dpi=style.dpi)
        else:
            fig = ax.figure
        _draw(spec, ax, style)

    if title:
        fig.suptitle(title)
    if save_path:
        fig.savefig(save_path, bbox_inches="tight")
    return fig


# ---------------------------------------------------------------------------
# Layer drawing
# ---------------------------------------------------------------------------


def _draw(spec: PlotSpec, ax: Any, style: PlotStyle, facet_value: Any = None) -> None:
    for layer in spec.layers:
        data = spec.layer_data(layer)
        if facet_value is not None and spec.facet in data.columns:
            data = data[data[spec.facet] == facet_value]
        if data.empty:
            continue
        mapping = spec.layer_mapping(layer)
        _GEOM_DRAWERS[layer.geom](ax, data, mapping, layer, spec, style)

    ax.set_xlabel(spec.label_for("x") or "")
    ax.set_ylabel(spec.label_for("y") or "")
    handles, labels = ax.get_legend_handles_labels()
    if labels:
        ax.legend(handles, labels, loc="best", fontsize=8)
    if style.grid:
        ax.grid(True, alpha=0.25)


def _draw_points(ax, data, mapping, layer, spec, style) -> None:
    x, y = mapping["x"], mapping["y"]
    color_col = mapping.get("color")
    shape_col = mapping.get("shape")
    fill = layer.params.get("fill")

    if color_col and _is_continuous(data[color_col]):
        sc = ax.scatter(
            data[x], data[y], c=data[color_col], cmap=style.cmap, s=style.point_size, alpha=style.alpha
        )
        ax.figure.colorbar(sc, ax=ax, label=spec.label_for("color"))
        return

    group_cols = [c for c in dict.fromkeys([shape_col, color_col]) if c]
    if not group_cols:
        ax.scatter(data[x], data[y], s=style.point_size, color="black", alpha=style.alpha)
        return

    shapes = _scale(spec, "shape")
    colors = _scale(spec, "color")
    palette = _palette(data[color_col]) if color_col and not colors else {}
    for key, sub in data.groupby(group_cols, observed=True, sort=True):
        key = key if isinstance(key, tuple) else (key,)
        values = dict(zip(group_cols, key))
        marker = shapes.get(values.get(shape_col), "o")
        color = colors.get(values.get(color_col), palette.get(values.get(color_col), "black"))
        ax.scatter(
            sub[x],
            sub[y],
            marker=marker,
            s=style.point_size,
            facecolors=fill if fill else color,
            edgecolors=color if not fill else "black",
            alpha=style.alpha,
            label=" / ".join(str(v) for v in dict.fromkeys(key)),
        )


def _draw_line(ax, data, mapping, layer, spec, style) -> None:
    x, y = mapping["x"], mapping["y"]
    color_col = mapping.get("color")
    if color_col and not _is_continuous(data[color_col]):
        palette = _palette(data[color_col])
        for value, sub in data.groupby(color_col, observed=True, sort=True):
            sub = sub.sort_values(x)
            ax.plot(sub[x], sub[y], color=palette.get(value, "black"), linewidth=style.line_width)
        return
    d = data.sort_values(x)
    ax.plot(d[x], d[y], color="#444444", linewidth=style.line_width, alpha=0.8)


def _draw_smooth(ax, data, mapping, layer, spec, style) -> None:
    x, y = mapping["x"], mapping["y"]
    color_col = mapping.get("color")
    groups: List[Tuple[Any, pd.DataFrame]]
    if color_col and not _is_continuous(data[color_col]):
        groups = list(data.groupby(color_col, observed=True, sort=True))
        palette = _palette(data[color_col])
    else:
        groups, palette = [(None, data)], {}
    for value, sub in groups:
        sub = sub[[x, y]].dropna()
        if len(sub) < 3 or not _is_continuous(sub[x]):
            continue
        fitted = lowess(sub[y].to_numpy(float), sub[x].to_numpy(float), frac=0.75, return_sorted=True)
        ax.plot(
            fitted[:, 0],
            fitted[:, 1],
            color=palette.get(value, style.smooth_color),
            linewidth=2.0,
        )


def _draw_surface(ax, data, mapping, layer, spec, style) -> None:
    X, Y, Z, xticks, yticks = _pivot(data, mapping["x"], mapping["y"], mapping["fill"])
    if len(X) < 2 or len(Y) < 2:
        sc = ax.scatter(
            data[mapping["x"]], data[mapping["y"]], c=data[mapping["fill"]], marker="s", cmap=style.cmap
        )
    else:
        sc = ax.pcolormesh(X, Y, Z, shading="nearest", cmap=style.cmap)
    _set_ticks(ax, xticks, yticks)
    ax.figure.colorbar(sc, ax=ax, label=spec.label_for("fill"))


def _draw_contour(ax, data, mapping, layer, spec, style) -> None:
    X, Y, Z, xticks, yticks = _pivot(data, mapping["x"], mapping["y"], mapping.get("z", mapping.get("fill")))
    if len(X) < 2 or len(Y) < 2 or Z.count() < 4:
        return
    ax.contour(X, Y, Z, colors=style.contour_color, linewidths=0.8)
    _set_ticks(ax, xticks, yticks)


_GEOM_DRAWERS = {
    "point": _draw_points,
    "line": _draw_line,
    "smooth": _draw_smooth,
    "tile": _draw_surface,
    "raster": _draw_surface,
    "contour": _draw_contour,
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _pivot(data: pd.DataFrame, x: str, y: str, value: str):
    xs, xticks = _positions(data[x])
    ys, yticks = _positions(data[y])
    frame = pd.DataFrame({"x": xs, "y": ys, "v": data[value].to_numpy(dtype=float)})
    piv = frame.pivot_table(index="y", columns="x", values="v", aggfunc="mean", dropna=False)
    X = piv.columns.to_numpy(dtype=float)
    Y = piv.index.to_numpy(dtype=float)
    Z = np.ma.masked_invalid(piv.to_numpy(dtype=float))
    return X, Y, Z, xticks, yticks


def _positions(values: pd.Series) -> Tuple[np.ndarray, Optional[List[str]]]:
    """Numeric positions of an axis column; text columns get category codes."""
    if _is_continuous(values):
        return values.to_numpy(dtype=float), None
    labels = _levels(values)
    index = {v: i for i, v in enumerate(labels)}
    return np.asarray([index.get(v, np.nan) for v in values], dtype=float), [str(v) for v in labels]


def _set_ticks(ax, xticks, yticks) -> None:
    if xticks is not None:
        ax.set_xticks(range(len(xticks)))
        ax.set_xticklabels(xticks, rotation=30, ha="right")
    if yticks is not None:
        ax.set_yticks(range(len(yticks)))
        ax.set_yticklabels(yticks)


def _is_continuous(values: pd.Series) -> bool:
    return (
        pd.api.types.is_numeric_dtype(values)
        and not pd.api.types.is_bool_dtype(values)
        and not isinstance(values.dtype, pd.CategoricalDtype)
    )


def _levels(values: pd.Series) -> List[Any]:
    if isinstance(values.dtype, pd.CategoricalDtype):
        present = set(values.dropna())
        return [c for c in values.cat.categories if c in present]
    uniq = list(pd.unique(values.dropna()))
    try:
        return sorted(uniq)
    except TypeError:
        return sorted(uniq, key=str)


def _palette(values: pd.Series) -> Dict[Any, Any]:
    cmap = plt.get_cmap("tab10")
    return {v: cmap(i % 10) for i, v in enumerate(_levels(values))}


def _scale(spec: PlotSpec, aesthetic: str) -> Dict[Any, Any]:
    scale = spec.scales.get(aesthetic)
    return dict(scale.values) if scale else {}


def _ensure_matplotlib() -> None:
    if plt is None:
        raise RuntimeError("matplotlib is required for plotting.")
