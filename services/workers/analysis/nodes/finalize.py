from __future__ import annotations
import logging
from pathlib import Path
from typing import Any, Dict, List, MutableMapping, Optional

from services.common.artifacts import csv_artifacts, describe_artifact, optional_path, write_artifact

from ..core.constants import (
    BIOMARKER_CANDIDATES_FILE,
    BOXPLOT_FILE,
    DESCRIPTIVE_STATS_FILE,
    HEATMAP_FILE,
    NOVELTY_SCORES_FILE,
    REGRESSIONS_FILE,
)
from ..core.state import _with_phase, _emit_callback
from ..core.types import AnalysisArtifacts, ArtifactFile, DatasetHandle

logger = logging.getLogger(__name__)

_FILE_NAMES: Dict[str, str] = {
    "descriptive_stats": DESCRIPTIVE_STATS_FILE,
    "regressions": REGRESSIONS_FILE,
    "novelty_scores": NOVELTY_SCORES_FILE,
    "biomarker_candidates": BIOMARKER_CANDIDATES_FILE,
    "heatmap": HEATMAP_FILE,
    "boxplot": BOXPLOT_FILE,
}


def _artifact_file(artifact_id: str, path: Path) -> ArtifactFile:
    return ArtifactFile(
        id=artifact_id,
        name=path.name,
        description=describe_artifact(artifact_id),
        path=str(path),
    )


def finalize_node(state: MutableMapping[str, Any]) -> Dict[str, Any]:
    dataset: DatasetHandle = state["dataset"]
    output_dir = Path(state["output_dir"])
    descriptive_stats = list(state.get("descriptive_stats", []) or [])
    regressions = list(state.get("regressions", []) or [])
    novelty_scores = list(state.get("novelty_scores", []) or [])
    biomarker_candidates = list(state.get("biomarker_candidates", []) or [])
    rendered_images: Dict[str, bytes] = state.get("rendered_images", {}) or {}

    # write failures are structural: let them propagate to the caller
    output_dir.mkdir(parents=True, exist_ok=True)

    files: List[ArtifactFile] = []
    for artifact_id, data in csv_artifacts(
        descriptive_stats=descriptive_stats,
        regressions=regressions,
        novelty_scores=novelty_scores,
        biomarker_candidates=biomarker_candidates,
    ):
        path = write_artifact(output_dir, _FILE_NAMES[artifact_id], data)
        files.append(_artifact_file(artifact_id, path))

    image_paths: Dict[str, Optional[Path]] = {"heatmap": None, "boxplot": None}
    for artifact_id in ("heatmap", "boxplot"):
        data = rendered_images.get(artifact_id)
        if data is None:
            continue
        path = write_artifact(output_dir, _FILE_NAMES[artifact_id], data)
        image_paths[artifact_id] = path
        files.append(_artifact_file(artifact_id, path))

    artifacts = AnalysisArtifacts(
        descriptive_stats=tuple(descriptive_stats),
        regressions=tuple(regressions),
        novelty_scores=tuple(novelty_scores),
        biomarker_candidates=tuple(biomarker_candidates),
        summary=state.get("summary", ""),
        heatmap_path=optional_path(image_paths["heatmap"]),
        boxplot_path=optional_path(image_paths["boxplot"]),
    )
    logger.info(
        "analysis for %s finished: %d artifact files in %s",
        dataset.dataset_id,
        len(files),
        output_dir,
    )

    payload = {
        "outputDir": str(output_dir),
        "files": [f.to_dict() for f in files],
        "summary": artifacts.summary,
    }
    update = _with_phase(state, "finalize", payload, artifacts=artifacts, files=files)
    _emit_callback(state, "finalize", payload)
    return update
