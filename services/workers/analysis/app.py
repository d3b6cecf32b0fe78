from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Union

from langgraph.graph import END, StateGraph

from .nodes import (
    aggregate_node, descriptive_stats_node, regression_node, novelty_node,
    biomarker_ranking_node, visualize_node, report_node, finalize_node
)
from .core.constants import PHASE_ORDER
from .core.types import (
    AnalysisArtifacts,
    AnalysisConfig,
    AnalysisRun,
    AnalysisState,
    DatasetHandle,
    PhaseCallback,
)

logger = logging.getLogger(__name__)

_NODES = {
    "aggregate": aggregate_node,
    "descriptive_stats": descriptive_stats_node,
    "regression": regression_node,
    "novelty": novelty_node,
    "biomarker_ranking": biomarker_ranking_node,
    "visualize": visualize_node,
    "report": report_node,
    "finalize": finalize_node,
}


def build_graph():
    g = StateGraph(AnalysisState)
    for phase in PHASE_ORDER:
        g.add_node(phase, _NODES[phase])

    g.set_entry_point(PHASE_ORDER[0])
    for current, following in zip(PHASE_ORDER, PHASE_ORDER[1:]):
        g.add_edge(current, following)
    g.add_edge(PHASE_ORDER[-1], END)
    # no checkpointer: every invocation recomputes from the dataset
    return g.compile()


def run_analysis(
    handle: DatasetHandle,
    config: AnalysisConfig,
    output_dir: Union[str, Path],
    *,
    on_phase: PhaseCallback = None,
) -> AnalysisRun:
    """Run every analysis phase over ``handle`` and write artifact files to ``output_dir``.

    Structural failures (unreadable dataset, unwritable output directory) propagate
    unchanged; imperfect data only ever yields partial results.
    """
    initial_state: Dict[str, Any] = {
        "dataset": handle,
        "config": config,
        "output_dir": str(output_dir),
        "phase_outputs": {},
    }
    if on_phase:
        initial_state["_callback"] = on_phase

    logger.info(
        "starting analysis for %s (%d rows, %d columns)",
        handle.dataset_id,
        handle.row_count,
        len(handle.columns),
    )
    app = build_graph()
    final_state = app.invoke(initial_state)

    return AnalysisRun(
        artifacts=final_state.get("artifacts") or AnalysisArtifacts(),
        manuscript=final_state.get("manuscript", ""),
        files=list(final_state.get("files", []) or []),
        phases=final_state.get("phase_outputs", {}) or {},
    )
