from __future__ import annotations
import logging
from typing import Any, Dict, MutableMapping

from ..core.state import _with_phase, _emit_callback
from ..core.types import AnalysisConfig, DatasetHandle
from ..io.ingest import aggregate_dataset

logger = logging.getLogger(__name__)


def aggregate_node(state: MutableMapping[str, Any]) -> Dict[str, Any]:
    dataset: DatasetHandle = state["dataset"]
    config: AnalysisConfig = state["config"]

    aggregation = aggregate_dataset(dataset, config)
    resolution = aggregation.resolution
    logger.info(
        "aggregated dataset %s: %d rows, %d selected columns",
        dataset.dataset_id,
        aggregation.row_count,
        len(resolution.selected),
    )

    payload = {
        "rows": aggregation.row_count,
        "columns": list(resolution.headers),
        "selectedColumns": resolution.selected_names,
        "targetColumn": aggregation.target_name,
        "groupColumn": (
            resolution.name_at(resolution.group_index) if resolution.group_index is not None else None
        ),
        "covariates": [name for _, name in resolution.covariates],
        "groups": len(aggregation.group_sums),
        "regressionRows": len(aggregation.regression_rows),
    }
    update = _with_phase(state, "aggregate", payload, aggregation=aggregation)
    _emit_callback(state, "aggregate", payload)
    return update
