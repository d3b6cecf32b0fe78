from __future__ import annotations
import logging
from typing import Any, Dict, MutableMapping, Optional, Sequence

from ..core.constants import (
    _DEFAULT_REPORT_GROUP,
    _DEFAULT_REPORT_TARGET,
    _MANUSCRIPT_TEMPLATE_NAME,
    _MAX_REPORT_BIOMARKERS,
    _PROJECT_ID_PREFIX,
)
from ..core.state import _with_phase, _emit_callback
from ..core.types import (
    AnalysisConfig,
    BiomarkerCandidate,
    DatasetHandle,
    DescriptiveStat,
    NoveltyScore,
    RegressionResult,
)
from ..core.utils import _JINJA_ENV

logger = logging.getLogger(__name__)


def build_summary(
    descriptive_stats: Sequence[DescriptiveStat],
    regressions: Sequence[RegressionResult],
    novelty_scores: Sequence[NoveltyScore],
    biomarker_candidates: Sequence[BiomarkerCandidate],
) -> str:
    return (
        f"Computed descriptive statistics for {len(descriptive_stats)} columns. "
        f"Generated {len(regressions)} regression model(s). "
        f"Novelty scores computed for {len(novelty_scores)} columns. "
        f"Biomarker candidates ranked for {len(biomarker_candidates)} columns."
    )


def format_top_biomarkers(candidates: Sequence[BiomarkerCandidate]) -> str:
    top = [
        f"{item.column} (r={item.correlation:.3f}, {item.direction})"
        for item in list(candidates)[:_MAX_REPORT_BIOMARKERS]
    ]
    if not top:
        return "No biomarker candidates were identified."
    return ", ".join(top)


def build_manuscript(
    dataset: DatasetHandle,
    *,
    descriptive_stats: Sequence[DescriptiveStat],
    regressions: Sequence[RegressionResult],
    novelty_scores: Sequence[NoveltyScore],
    biomarker_candidates: Sequence[BiomarkerCandidate],
    target: Optional[str] = None,
    group: Optional[str] = None,
) -> str:
    """Render the manuscript-style narrative from already computed results."""
    template = _JINJA_ENV.get_template(_MANUSCRIPT_TEMPLATE_NAME)
    return template.render(
        project_id=f"{_PROJECT_ID_PREFIX}{dataset.dataset_id}",
        rows=dataset.row_count,
        cols=len(dataset.columns),
        target=target or _DEFAULT_REPORT_TARGET,
        group=group or _DEFAULT_REPORT_GROUP,
        stat_count=len(descriptive_stats),
        reg_count=len(regressions),
        novelty_count=len(novelty_scores),
        top_list=format_top_biomarkers(biomarker_candidates),
    )


def report_node(state: MutableMapping[str, Any]) -> Dict[str, Any]:
    dataset: DatasetHandle = state["dataset"]
    config: AnalysisConfig = state["config"]
    descriptive_stats = state.get("descriptive_stats", []) or []
    regressions = state.get("regressions", []) or []
    novelty_scores = state.get("novelty_scores", []) or []
    biomarker_candidates = state.get("biomarker_candidates", []) or []

    summary = build_summary(descriptive_stats, regressions, novelty_scores, biomarker_candidates)
    manuscript = build_manuscript(
        dataset,
        descriptive_stats=descriptive_stats,
        regressions=regressions,
        novelty_scores=novelty_scores,
        biomarker_candidates=biomarker_candidates,
        target=config.target_column,
        group=config.group_column,
    )
    logger.debug("rendered manuscript for %s (%d chars)", dataset.dataset_id, len(manuscript))

    payload = {"summary": summary, "manuscript": manuscript}
    update = _with_phase(state, "report", payload, summary=summary, manuscript=manuscript)
    _emit_callback(state, "report", payload)
    return update
