import math

import numpy as np
import pytest

from services.workers.analysis import AnalysisConfig, inspect_dataset
from services.workers.analysis.core.utils import pearson_correlation
from services.workers.analysis.io.ingest import aggregate_dataset
from services.workers.analysis.nodes.biomarker import rank_biomarkers
from services.workers.analysis.nodes.descriptive import (
    build_descriptive_stats,
    median_of_sorted,
    sample_std_dev,
)
from services.workers.analysis.nodes.novelty import build_novelty_scores
from services.workers.analysis.nodes.regression import build_regressions, fit_ols


def _aggregate(write_dataset, rows, **config):
    handle = inspect_dataset(write_dataset(rows), "stats")
    return aggregate_dataset(handle, AnalysisConfig(**config))


def test_sample_std_dev_edge_cases():
    assert sample_std_dev([], 0.0) == 0.0
    assert sample_std_dev([5.0], 5.0) == 0.0
    assert sample_std_dev([0.1, 0.1, 0.1], 0.1) == 0.0
    assert sample_std_dev([1.0, 2.0, 3.0, 4.0], 2.5) == pytest.approx(math.sqrt(5.0 / 3.0))


def test_median_of_sorted():
    assert median_of_sorted([1.0, 2.0, 3.0]) == 2.0
    assert median_of_sorted([1.0, 2.0, 3.0, 4.0]) == 2.5


def test_descriptive_stats_invariants(write_dataset):
    rows = [["a", "b", "c"]] + [[str(i), str(i * i % 7), "x" if i % 2 else "1"] for i in range(1, 12)]
    stats = build_descriptive_stats(_aggregate(write_dataset, rows))
    assert [s.column for s in stats] == ["a", "b", "c"]
    for stat in stats:
        assert stat.min <= stat.median <= stat.max
        assert stat.std_dev >= 0.0
        assert not math.isnan(stat.std_dev)


def test_descriptive_stats_skip_columns_without_values(write_dataset):
    stats = build_descriptive_stats(_aggregate(write_dataset, [["a", "b"], ["1", "x"], ["2", ""]]))
    assert [s.column for s in stats] == ["a"]
    assert stats[0].count == 2


def test_pearson_correlation_properties():
    x = [1.0, 2.0, 4.0, 7.0]
    y = [3.0, 1.0, 5.0, 2.0]
    assert pearson_correlation(x, y) == pytest.approx(pearson_correlation(y, x))
    assert pearson_correlation(x, x) == pytest.approx(1.0)
    assert pearson_correlation(x, [2.0, 2.0, 2.0, 2.0]) == 0.0
    assert pearson_correlation([1.0], [1.0]) == 0.0
    assert -1.0 <= pearson_correlation(x, y) <= 1.0


def test_fit_ols_recovers_exact_line():
    x = np.array([1.0, 2.0, 3.0, 4.0, 5.0])
    design = np.column_stack([np.ones(5), x])
    intercept, coefficients, r2 = fit_ols(design, 3.0 * x - 2.0)
    assert intercept == pytest.approx(-2.0)
    assert coefficients == pytest.approx([3.0])
    assert r2 == pytest.approx(1.0)


def test_fit_ols_returns_none_for_singular_design():
    x = np.array([2.0, 2.0, 2.0])
    design = np.column_stack([np.ones(3), x])
    assert fit_ols(design, np.array([1.0, 2.0, 3.0])) is None


def test_multivariate_regression_uses_resolved_covariates(write_dataset):
    rows = [["x1", "x2", "y"]]
    for x1, x2 in [(1, 0), (2, 1), (3, 5), (4, 2), (5, 7), (6, 3)]:
        rows.append([str(x1), str(x2), str(1 + 2 * x1 - 0.5 * x2)])
    aggregation = _aggregate(write_dataset, rows, target_column="y", covariates=("x1", "missing", "x2"))
    regressions = build_regressions(aggregation)
    assert len(regressions) == 1
    model = regressions[0]
    assert model.predictors == ("x1", "x2")
    assert model.intercept == pytest.approx(1.0)
    assert model.coefficients == pytest.approx((2.0, -0.5))
    assert model.r2 == pytest.approx(1.0)
    assert model.n == 6


def test_multivariate_regression_skips_collinear_covariates(write_dataset):
    rows = [["x1", "x2", "y"]] + [[str(i), str(2 * i), str(i + 1)] for i in range(1, 6)]
    aggregation = _aggregate(write_dataset, rows, target_column="y", covariates=("x1", "x2"))
    assert build_regressions(aggregation) == []


def test_univariate_regression_skips_target_and_constant_columns(write_dataset):
    rows = [["flat", "m", "age"], ["5", "1", "2"], ["5", "2", "4"], ["5", "3", "6"]]
    regressions = build_regressions(_aggregate(write_dataset, rows, target_column="age"))
    assert [r.predictors for r in regressions] == [("m",)]
    assert regressions[0].coefficients[0] == pytest.approx(2.0)


def test_regressions_need_a_target(write_dataset):
    rows = [["a", "b"], ["1", "2"], ["2", "3"]]
    assert build_regressions(_aggregate(write_dataset, rows)) == []
    assert build_regressions(_aggregate(write_dataset, rows, target_column="nope")) == []


def test_novelty_scores_are_bounded(write_dataset):
    rows = [["v", "flat", "g"]]
    rows += [["1", "3", "A"]] * 5 + [["100", "3", "B"]]
    scores = {s.column: s.score for s in build_novelty_scores(_aggregate(write_dataset, rows, group_column="g"))}
    assert 0.0 <= scores["v"] <= 1.0
    assert scores["v"] > 0.0
    assert scores["flat"] == 0.0


def test_novelty_score_for_two_groups(write_dataset):
    rows = [["m", "g"], ["1", "A"], ["2", "A"], ["3", "B"], ["4", "B"]]
    (score,) = build_novelty_scores(_aggregate(write_dataset, rows, group_column="g"))
    assert score.score == pytest.approx(1.0 / (3.0 * math.sqrt(1.25)))
    assert score.rationale == "Scaled deviation of group means from overall mean (0-1)"


def test_novelty_without_groups_is_zero(write_dataset):
    rows = [["m"], ["1"], ["2"], ["9"]]
    (score,) = build_novelty_scores(_aggregate(write_dataset, rows))
    assert score.score == 0.0


def test_biomarker_ranking_sorted_and_signed(write_dataset):
    rows = [["up", "down", "noise", "flat", "age"]]
    for i, noise in enumerate([3, 1, 4, 1, 5, 9]):
        rows.append([str(i), str(-2 * i), str(noise), "7", str(10 * i)])
    candidates = rank_biomarkers(_aggregate(write_dataset, rows, target_column="age"))
    names = [c.column for c in candidates]
    assert "flat" not in names
    assert "age" not in names
    assert names[:2] == ["up", "down"]
    assert candidates[0].direction == "positive"
    assert candidates[1].direction == "negative"
    assert candidates[1].correlation == pytest.approx(-1.0)
    scores = [c.score for c in candidates]
    assert scores == sorted(scores, reverse=True)
    assert "Pearson correlation with target (age)" in candidates[0].notes


def test_biomarker_ranking_requires_three_pairs(write_dataset):
    rows = [["m", "age"], ["1", "10"], ["2", "20"]]
    assert rank_biomarkers(_aggregate(write_dataset, rows, target_column="age")) == []


def test_biomarker_ranking_caps_at_fifty(write_dataset):
    header = [f"m{i}" for i in range(60)] + ["age"]
    rows = [header]
    for r in range(5):
        rows.append([str(r * (i + 1) + (i % 3) * (r % 2)) for i in range(60)] + [str(r)])
    candidates = rank_biomarkers(_aggregate(write_dataset, rows, target_column="age", max_columns=100))
    assert len(candidates) == 50


def test_constant_target_yields_zero_r2(write_dataset):
    rows = [["m", "n", "age"], ["1", "4", "30"], ["2", "7", "30"], ["3", "5", "30"], ["4", "9", "30"]]
    regressions = build_regressions(_aggregate(write_dataset, rows, target_column="age"))
    assert [r.predictors for r in regressions] == [("m",), ("n",)]
    for model in regressions:
        assert model.r2 == 0.0
        assert model.intercept == pytest.approx(30.0)
        assert model.coefficients[0] == pytest.approx(0.0, abs=1e-9)


def test_fit_ols_keeps_ill_conditioned_but_invertible_design():
    x = np.array([1.0, 1.0 + 1e-6, 1.0 + 2e-6, 1.0 + 3e-6])
    design = np.column_stack([np.ones(4), x])
    fit = fit_ols(design, 5.0 + 2.0 * x)
    assert fit is not None


def test_biomarker_ties_keep_header_order(write_dataset):
    rows = [["z", "a", "b", "age"]]
    for i in range(5):
        rows.append([str(i), str(-i), str(2 * i), str(10 * i)])
    candidates = rank_biomarkers(_aggregate(write_dataset, rows, target_column="age"))
    assert [c.column for c in candidates] == ["z", "a", "b"]
    assert [c.score for c in candidates] == pytest.approx([1.0, 1.0, 1.0])
