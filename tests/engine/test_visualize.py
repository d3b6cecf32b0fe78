import pytest

from services.workers.analysis import AnalysisConfig, inspect_dataset
from services.workers.analysis.io.ingest import aggregate_dataset
from services.workers.analysis.nodes.visualize import (
    boxplot_summaries,
    correlation_color,
    correlation_matrix,
    render_boxplot,
    render_heatmap,
)


def test_boxplot_summaries_use_order_statistics():
    summaries = boxplot_summaries({"B": [8.0, 1.0, 5.0, 3.0, 2.0], "A": [4.0]}, max_groups=20)
    assert [s["label"] for s in summaries] == ["A", "B"]
    single = summaries[0]
    assert single["whislo"] == single["q1"] == single["med"] == single["q3"] == single["whishi"] == 4.0
    b = summaries[1]
    # sorted: 1 2 3 5 8 -> indices 1, 2, 3
    assert (b["whislo"], b["q1"], b["med"], b["q3"], b["whishi"]) == (1.0, 2.0, 3.0, 5.0, 8.0)
    assert b["n"] == 5


def test_boxplot_summaries_cap_groups():
    grouped = {label: [1.0] for label in "EDCBA"}
    assert [s["label"] for s in boxplot_summaries(grouped, max_groups=2)] == ["A", "B"]


def test_correlation_matrix_is_symmetric():
    matrix = correlation_matrix([[1.0, 2.0, 3.0], [3.0, 1.0, 2.0], [5.0, 5.0, 5.0]])
    assert matrix[0][0] == pytest.approx(1.0)
    assert matrix[0][1] == pytest.approx(matrix[1][0])
    assert matrix[2][2] == 0.0


def test_correlation_color_ramp_endpoints():
    low = correlation_color(-1.0)
    high = correlation_color(1.0)
    assert low[2] > low[0]  # blue end
    assert high[0] > high[2]  # red end
    assert correlation_color(5.0) == high


def test_heatmap_png_dimensions(write_dataset, png_size):
    rows = [[f"c{i}" for i in range(25)]] + [[str((r * (i + 3)) % 11) for i in range(25)] for r in range(6)]
    handle = inspect_dataset(write_dataset(rows), "viz")
    rendered = render_heatmap(aggregate_dataset(handle, AnalysisConfig()))
    assert rendered is not None
    assert len(rendered["labels"]) == 20
    assert png_size(rendered["png"]) == (800, 800)


def test_heatmap_skipped_without_values(write_dataset):
    handle = inspect_dataset(write_dataset([["a", "b"], ["x", "y"]]), "empty")
    assert render_heatmap(aggregate_dataset(handle, AnalysisConfig())) is None


def test_boxplot_png_dimensions(scenario_path, png_size):
    handle = inspect_dataset(scenario_path, "box")
    config = AnalysisConfig(group_column="cell_type", boxplot_column="marker_1")
    rendered = render_boxplot(aggregate_dataset(handle, config), config)
    assert rendered is not None
    assert [g["label"] for g in rendered["groups"]] == ["A", "B"]
    assert png_size(rendered["png"]) == (900, 500)


def test_boxplot_requires_group_and_value_columns(scenario_path):
    handle = inspect_dataset(scenario_path, "box")
    config = AnalysisConfig(group_column="cell_type")
    assert render_boxplot(aggregate_dataset(handle, config), config) is None
