from __future__ import annotations
from typing import Any, Dict, List, MutableMapping

from ..core.constants import _BIOMARKER_NOTES, _MAX_BIOMARKER_CANDIDATES, _MIN_BIOMARKER_PAIRS
from ..core.state import _with_phase, _emit_callback
from ..core.types import AggregationResult, BiomarkerCandidate
from ..core.utils import pearson_correlation


def _has_spread(values: List[float]) -> bool:
    return min(values) != max(values)


def rank_biomarkers(aggregation: AggregationResult) -> List[BiomarkerCandidate]:
    target_name = aggregation.target_name
    if target_name is None:
        return []

    notes = _BIOMARKER_NOTES.format(target=target_name)
    candidates: List[BiomarkerCandidate] = []
    for column in aggregation.columns:
        if column.index == aggregation.resolution.target_index:
            continue
        xs, ys = column.target_x, column.target_y
        if len(xs) < _MIN_BIOMARKER_PAIRS or len(xs) != len(ys):
            continue
        # zero-variance series have no defined correlation; leave them out of the ranking
        if not _has_spread(xs) or not _has_spread(ys):
            continue
        corr = pearson_correlation(xs, ys)
        candidates.append(
            BiomarkerCandidate(
                column=column.name,
                score=abs(corr),
                correlation=corr,
                direction="positive" if corr >= 0 else "negative",
                notes=notes,
            )
        )

    # list.sort is stable: equal scores keep header order
    candidates.sort(key=lambda item: item.score, reverse=True)
    return candidates[:_MAX_BIOMARKER_CANDIDATES]


def biomarker_ranking_node(state: MutableMapping[str, Any]) -> Dict[str, Any]:
    aggregation: AggregationResult = state["aggregation"]
    candidates = rank_biomarkers(aggregation)

    payload = {
        "targetColumn": aggregation.target_name,
        "candidates": len(candidates),
        "biomarkerCandidates": [candidate.to_dict() for candidate in candidates],
    }
    update = _with_phase(state, "biomarker_ranking", payload, biomarker_candidates=candidates)
    _emit_callback(state, "biomarker_ranking", payload)
    return update
