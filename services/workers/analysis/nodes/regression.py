from __future__ import annotations
import logging
from typing import Any, Dict, List, MutableMapping, Optional, Sequence, Tuple

import numpy as np

from ..core.constants import _MIN_REGRESSION_PAIRS
from ..core.state import _with_phase, _emit_callback
from ..core.types import AggregationResult, RegressionResult

logger = logging.getLogger(__name__)


def fit_ols(design: np.ndarray, target: np.ndarray) -> Optional[Tuple[float, List[float], float]]:
    """Ordinary least squares via the normal equations, beta = (XtX)^-1 Xt y.

    ``design`` must already carry the intercept column. Returns
    ``(intercept, coefficients, r2)`` or None when XtX is not invertible.
    """
    if np.linalg.matrix_rank(design) < design.shape[1]:
        return None
    xtx = design.T @ design
    if not np.all(np.isfinite(xtx)):
        return None
    try:
        xtx_inv = np.linalg.inv(xtx)
    except np.linalg.LinAlgError:
        return None
    beta = xtx_inv @ design.T @ target
    if not np.all(np.isfinite(beta)):
        return None

    fitted = design @ beta
    mean_y = float(target.mean())
    ss_tot = float(((target - mean_y) ** 2).sum())
    ss_res = float(((target - fitted) ** 2).sum())
    r2 = 1.0 - (ss_res / ss_tot) if ss_tot > 0.0 else 0.0
    return float(beta[0]), [float(value) for value in beta[1:]], r2


def _design_matrix(rows: Sequence[Sequence[float]]) -> np.ndarray:
    predictors = np.asarray(rows, dtype=float)
    if predictors.ndim == 1:
        predictors = predictors.reshape(-1, 1)
    return np.column_stack([np.ones(len(predictors)), predictors])


def build_multivariate_regression(aggregation: AggregationResult) -> List[RegressionResult]:
    target_name = aggregation.target_name
    covariates = aggregation.resolution.covariates
    rows = aggregation.regression_rows
    if target_name is None or not covariates or not rows or len(rows) != len(aggregation.regression_targets):
        return []

    fit = fit_ols(_design_matrix(rows), np.asarray(aggregation.regression_targets, dtype=float))
    if fit is None:
        logger.debug("multivariate design matrix for %s is singular, skipping", target_name)
        return []
    intercept, coefficients, r2 = fit
    return [
        RegressionResult(
            target=target_name,
            predictors=tuple(name for _, name in covariates),
            intercept=intercept,
            coefficients=tuple(coefficients),
            r2=r2,
            n=len(rows),
        )
    ]


def build_univariate_regressions(aggregation: AggregationResult) -> List[RegressionResult]:
    target_name = aggregation.target_name
    if target_name is None:
        return []

    results: List[RegressionResult] = []
    for column in aggregation.columns:
        if column.index == aggregation.resolution.target_index:
            continue
        xs, ys = column.target_x, column.target_y
        if len(xs) < _MIN_REGRESSION_PAIRS or len(xs) != len(ys):
            continue
        fit = fit_ols(_design_matrix(xs), np.asarray(ys, dtype=float))
        if fit is None:
            logger.debug("design matrix for %s ~ %s is singular, skipping", target_name, column.name)
            continue
        intercept, coefficients, r2 = fit
        results.append(
            RegressionResult(
                target=target_name,
                predictors=(column.name,),
                intercept=intercept,
                coefficients=tuple(coefficients),
                r2=r2,
                n=len(xs),
            )
        )
    return results


def build_regressions(aggregation: AggregationResult) -> List[RegressionResult]:
    if aggregation.resolution.covariates:
        return build_multivariate_regression(aggregation)
    return build_univariate_regressions(aggregation)


def regression_node(state: MutableMapping[str, Any]) -> Dict[str, Any]:
    aggregation: AggregationResult = state["aggregation"]
    regressions = build_regressions(aggregation)

    payload = {
        "mode": "multivariate" if aggregation.resolution.covariates else "univariate",
        "models": len(regressions),
        "regressions": [reg.to_dict() for reg in regressions],
    }
    update = _with_phase(state, "regression", payload, regressions=regressions)
    _emit_callback(state, "regression", payload)
    return update
