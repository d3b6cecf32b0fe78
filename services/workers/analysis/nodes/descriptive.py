from __future__ import annotations
import math
from typing import Any, Dict, List, MutableMapping, Optional

from ..core.state import _with_phase, _emit_callback
from ..core.types import AggregationResult, ColumnAccumulator, DescriptiveStat


def sample_std_dev(values: List[float], mean: float) -> float:
    """Bessel-corrected standard deviation; 0.0 for fewer than two values."""
    if len(values) < 2 or min(values) == max(values):
        return 0.0
    variance = sum((v - mean) ** 2 for v in values) / (len(values) - 1)
    return math.sqrt(variance)


def median_of_sorted(values: List[float]) -> float:
    count = len(values)
    if count % 2 == 0:
        return (values[count // 2 - 1] + values[count // 2]) / 2.0
    return values[count // 2]


def _descriptive_for(column: ColumnAccumulator) -> Optional[DescriptiveStat]:
    if not column.values:
        return None
    ordered = sorted(column.values)
    mean = column.mean
    return DescriptiveStat(
        column=column.name,
        count=column.count,
        mean=mean,
        std_dev=sample_std_dev(ordered, mean),
        min=column.min_value if column.min_value is not None else ordered[0],
        median=median_of_sorted(ordered),
        max=column.max_value if column.max_value is not None else ordered[-1],
    )


def build_descriptive_stats(aggregation: AggregationResult) -> List[DescriptiveStat]:
    stats: List[DescriptiveStat] = []
    for column in aggregation.columns:
        stat = _descriptive_for(column)
        if stat is not None:
            stats.append(stat)
    return stats


def descriptive_stats_node(state: MutableMapping[str, Any]) -> Dict[str, Any]:
    aggregation: AggregationResult = state["aggregation"]
    stats = build_descriptive_stats(aggregation)

    payload = {
        "numericColumns": len(stats),
        "descriptiveTable": [stat.to_dict() for stat in stats],
    }
    update = _with_phase(state, "descriptive_stats", payload, descriptive_stats=stats)
    _emit_callback(state, "descriptive_stats", payload)
    return update
