from __future__ import annotations
import colorsys
from typing import Any, Dict, List, Mapping, MutableMapping, Optional, Sequence

from ..core.constants import (
    _BOXPLOT_SIZE,
    _HEATMAP_HUE_RANGE,
    _HEATMAP_LIGHTNESS,
    _HEATMAP_SATURATION,
    _HEATMAP_SIZE,
    _IMAGE_DPI,
    _MAX_HEATMAP_COLUMNS,
)
from ..core.state import _with_phase, _emit_callback
from ..core.types import AggregationResult, AnalysisConfig
from ..core.utils import _figure_to_png, _get_pyplot, pearson_correlation


def correlation_matrix(series: Sequence[Sequence[float]]) -> List[List[float]]:
    size = len(series)
    matrix = [[0.0 for _ in range(size)] for _ in range(size)]
    for i in range(size):
        for j in range(i, size):
            corr = pearson_correlation(series[i], series[j])
            matrix[i][j] = corr
            matrix[j][i] = corr
    return matrix


def correlation_color(value: float) -> tuple:
    """RGB on the fixed hue ramp: blue at -1 through green to red at +1."""
    start, end = _HEATMAP_HUE_RANGE
    fraction = (max(-1.0, min(1.0, value)) + 1.0) / 2.0
    hue = (start + (end - start) * fraction) / 360.0
    return colorsys.hls_to_rgb(hue, _HEATMAP_LIGHTNESS, _HEATMAP_SATURATION)


def _hue_ramp_colormap():
    from matplotlib.colors import ListedColormap

    steps = 256
    colors = [correlation_color(-1.0 + 2.0 * idx / (steps - 1)) for idx in range(steps)]
    return ListedColormap(colors, name="correlation_hue_ramp")


def boxplot_summaries(grouped: Mapping[str, Sequence[float]], max_groups: int) -> List[Dict[str, Any]]:
    """Order-statistic box summaries per group, groups sorted by label and capped.

    Quartiles use plain indexing into the sorted values (n//4, n//2, 3n//4), not
    interpolated quantiles.
    """
    summaries: List[Dict[str, Any]] = []
    for label, values in sorted(grouped.items())[: max(max_groups, 0)]:
        ordered = sorted(values)
        if not ordered:
            continue
        count = len(ordered)
        summaries.append(
            {
                "label": label,
                "whislo": ordered[0],
                "q1": ordered[count // 4],
                "med": ordered[count // 2],
                "q3": ordered[(count * 3) // 4],
                "whishi": ordered[-1],
                "fliers": [],
                "n": count,
            }
        )
    return summaries


def _render_correlation_heatmap(matrix: List[List[float]], labels: Sequence[str]) -> bytes:
    plt = _get_pyplot()
    width, height = _HEATMAP_SIZE
    fig, ax = plt.subplots(figsize=(width / _IMAGE_DPI, height / _IMAGE_DPI))
    heatmap = ax.imshow(matrix, cmap=_hue_ramp_colormap(), vmin=-1, vmax=1)
    ax.set_xticks(range(len(labels)))
    ax.set_xticklabels(labels, rotation=45, ha="right")
    ax.set_yticks(range(len(labels)))
    ax.set_yticklabels(labels)
    ax.set_title("Correlation Heatmap")
    fig.colorbar(heatmap, ax=ax, fraction=0.046, pad=0.04, label="Correlation")
    fig.tight_layout()
    return _figure_to_png(fig)


def _render_box_plot(summaries: List[Dict[str, Any]], group_label: str, value_label: str) -> bytes:
    plt = _get_pyplot()
    width, height = _BOXPLOT_SIZE
    fig, ax = plt.subplots(figsize=(width / _IMAGE_DPI, height / _IMAGE_DPI))
    box = ax.bxp(
        [{key: value for key, value in item.items() if key != "n"} for item in summaries],
        showfliers=False,
        patch_artist=True,
    )
    for patch in box["boxes"]:
        patch.set(facecolor="#2563eb", alpha=0.3)
    for median in box["medians"]:
        median.set(color="#1d4ed8", linewidth=1.5)
    ax.set_title("Box Plot by Group")
    ax.set_xlabel(group_label)
    ax.set_ylabel(value_label)
    ax.grid(True, axis="y", linestyle="--", linewidth=0.5, alpha=0.5)
    fig.tight_layout()
    return _figure_to_png(fig)


def render_heatmap(aggregation: AggregationResult) -> Optional[Dict[str, Any]]:
    columns = aggregation.columns[:_MAX_HEATMAP_COLUMNS]
    if not any(column.values for column in columns):
        return None
    labels = [column.name for column in columns]
    matrix = correlation_matrix([column.values for column in columns])
    return {"labels": labels, "matrix": matrix, "png": _render_correlation_heatmap(matrix, labels)}


def render_boxplot(aggregation: AggregationResult, config: AnalysisConfig) -> Optional[Dict[str, Any]]:
    resolution = aggregation.resolution
    if resolution.group_index is None or resolution.boxplot_index is None:
        return None
    summaries = boxplot_summaries(aggregation.boxplot_values, config.max_groups)
    if not summaries:
        return None
    png = _render_box_plot(
        summaries,
        resolution.name_at(resolution.group_index),
        resolution.name_at(resolution.boxplot_index),
    )
    return {"groups": summaries, "png": png}


def visualize_node(state: MutableMapping[str, Any]) -> Dict[str, Any]:
    aggregation: AggregationResult = state["aggregation"]
    config: AnalysisConfig = state["config"]

    rendered: Dict[str, bytes] = {}
    payload: Dict[str, Any] = {"heatmap": None, "boxplot": None}

    heatmap = render_heatmap(aggregation)
    if heatmap is not None:
        rendered["heatmap"] = heatmap["png"]
        payload["heatmap"] = {"labels": heatmap["labels"], "matrix": heatmap["matrix"]}

    boxplot = render_boxplot(aggregation, config)
    if boxplot is not None:
        rendered["boxplot"] = boxplot["png"]
        payload["boxplot"] = {"groups": boxplot["groups"]}

    update = _with_phase(state, "visualize", payload, rendered_images=rendered)
    _emit_callback(state, "visualize", payload)
    return update
