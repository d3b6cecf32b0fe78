from __future__ import annotations
import math
from typing import Any, Dict, List, MutableMapping

from ..core.constants import _MIN_NOVELTY_VALUES, _NOVELTY_RATIONALE, _NOVELTY_STD_MULTIPLIER
from ..core.state import _with_phase, _emit_callback
from ..core.types import AggregationResult, NoveltyScore


def build_novelty_scores(aggregation: AggregationResult) -> List[NoveltyScore]:
    """Score each column by how far its most extreme group mean sits from the global mean.

    score = min(max |group_mean - mean| / (3 * std), 1.0), with std taken from the
    running sums (population form, clamped at zero) and 0 when std is 0.
    """
    scores: List[NoveltyScore] = []
    for pos, column in enumerate(aggregation.columns):
        if column.count < _MIN_NOVELTY_VALUES:
            continue
        mean = column.total / column.count
        variance = (column.total_sq / column.count) - mean * mean
        std = math.sqrt(max(variance, 0.0))

        max_delta = 0.0
        for sums in aggregation.group_sums.values():
            group_total, group_count = sums[pos]
            if group_count > 0:
                max_delta = max(max_delta, abs(group_total / group_count - mean))

        if std > 0.0 and column.min_value != column.max_value:
            score = min(max_delta / (_NOVELTY_STD_MULTIPLIER * std), 1.0)
        else:
            score = 0.0
        scores.append(NoveltyScore(column=column.name, score=score, rationale=_NOVELTY_RATIONALE))
    return scores


def novelty_node(state: MutableMapping[str, Any]) -> Dict[str, Any]:
    aggregation: AggregationResult = state["aggregation"]
    scores = build_novelty_scores(aggregation)

    payload = {
        "groups": len(aggregation.group_sums),
        "scoredColumns": len(scores),
        "noveltyScores": [score.to_dict() for score in scores],
    }
    update = _with_phase(state, "novelty", payload, novelty_scores=scores)
    _emit_callback(state, "novelty", payload)
    return update
