"""Helpers for serialising analysis results into on-disk artifacts."""
from __future__ import annotations

import csv
import io
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)


DESCRIPTIVE_STATS_HEADERS = ("column", "count", "mean", "std_dev", "min", "median", "max")
REGRESSIONS_HEADERS = ("target", "predictors", "intercept", "coefficients", "r2", "n")
NOVELTY_SCORES_HEADERS = ("column", "score", "rationale")
BIOMARKER_CANDIDATES_HEADERS = ("column", "score", "correlation", "direction", "notes")

# artifact id -> human readable description
ARTIFACT_DESCRIPTIONS: Dict[str, str] = {
    "descriptive_stats": "Descriptive statistics per numeric column",
    "regressions": "Linear regression results",
    "novelty_scores": "Novelty scoring based on group mean deviation",
    "biomarker_candidates": "Ranked biomarker candidates by correlation",
    "heatmap": "Correlation heatmap",
    "boxplot": "Box plot by group",
}


def _csv_bytes(headers: Iterable[str], rows: Iterable[Mapping[str, Any]]) -> bytes:
    output = io.StringIO()
    fieldnames = list(headers)
    writer = csv.DictWriter(output, fieldnames=fieldnames, lineterminator="\n")
    writer.writeheader()
    for row in rows:
        writer.writerow({name: row.get(name, "") for name in fieldnames})
    return output.getvalue().encode("utf-8")


def _join(values: Sequence[Any]) -> str:
    return ";".join(str(value) for value in values)


def regression_rows(regressions: Iterable[Any]) -> List[Dict[str, Any]]:
    rows: List[Dict[str, Any]] = []
    for item in regressions:
        row = item.to_dict()
        row["predictors"] = _join(row["predictors"])
        row["coefficients"] = _join(row["coefficients"])
        rows.append(row)
    return rows


def csv_artifacts(
    *,
    descriptive_stats: Iterable[Any],
    regressions: Iterable[Any],
    novelty_scores: Iterable[Any],
    biomarker_candidates: Iterable[Any],
) -> List[Tuple[str, bytes]]:
    """Return ``(artifact id, csv bytes)`` pairs in artifact order."""
    return [
        (
            "descriptive_stats",
            _csv_bytes(DESCRIPTIVE_STATS_HEADERS, (s.to_dict() for s in descriptive_stats)),
        ),
        ("regressions", _csv_bytes(REGRESSIONS_HEADERS, regression_rows(regressions))),
        (
            "novelty_scores",
            _csv_bytes(NOVELTY_SCORES_HEADERS, (n.to_dict() for n in novelty_scores)),
        ),
        (
            "biomarker_candidates",
            _csv_bytes(BIOMARKER_CANDIDATES_HEADERS, (b.to_dict() for b in biomarker_candidates)),
        ),
    ]


def write_artifact(output_dir: Path, name: str, data: bytes) -> Path:
    path = output_dir / name
    path.write_bytes(data)
    logger.debug("wrote artifact %s (%d bytes)", path, len(data))
    return path


def describe_artifact(artifact_id: str) -> str:
    return ARTIFACT_DESCRIPTIONS.get(artifact_id, artifact_id)


def optional_path(path: Optional[Path]) -> Optional[str]:
    return str(path) if path is not None else None
