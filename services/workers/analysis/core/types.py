from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, TypedDict

from .constants import DEFAULT_MAX_COLUMNS, DEFAULT_MAX_GROUPS


@dataclass(frozen=True)
class DatasetHandle:
    """Read-only reference to a parsed CSV/TSV file owned by the caller."""

    dataset_id: str
    local_path: str
    delimiter: str = ","
    has_headers: bool = True
    columns: Tuple[str, ...] = ()
    row_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "datasetId": self.dataset_id,
            "localPath": self.local_path,
            "delimiter": self.delimiter,
            "hasHeaders": self.has_headers,
            "columns": list(self.columns),
            "rowCount": self.row_count,
        }


@dataclass(frozen=True)
class AnalysisConfig:
    target_column: Optional[str] = None
    group_column: Optional[str] = None
    covariates: Tuple[str, ...] = ()
    boxplot_column: Optional[str] = None
    max_columns: int = DEFAULT_MAX_COLUMNS
    max_groups: int = DEFAULT_MAX_GROUPS

    @classmethod
    def from_request(cls, payload: Mapping[str, Any]) -> "AnalysisConfig":
        covariates = payload.get("covariates") or ()
        max_columns = payload.get("max_columns")
        max_groups = payload.get("max_groups")
        return cls(
            target_column=payload.get("target_column"),
            group_column=payload.get("group_column"),
            covariates=tuple(str(name) for name in covariates),
            boxplot_column=payload.get("boxplot_column"),
            max_columns=DEFAULT_MAX_COLUMNS if max_columns is None else int(max_columns),
            max_groups=DEFAULT_MAX_GROUPS if max_groups is None else int(max_groups),
        )


@dataclass(frozen=True)
class ColumnResolution:
    """Positions of the configured columns within the parsed header row.

    Attributes:
        headers: Normalised header names, in file order.
        selected: Header positions chosen for analysis (header order).
        target_index: Position of the target column, if it resolved.
        group_index: Position of the group column, if it resolved.
        covariates: ``(position, name)`` for every covariate that resolved, in
            configured order.
        boxplot_index: Position of the box-plot column, if it resolved.
    """

    headers: Tuple[str, ...]
    selected: Tuple[int, ...]
    target_index: Optional[int] = None
    group_index: Optional[int] = None
    covariates: Tuple[Tuple[int, str], ...] = ()
    boxplot_index: Optional[int] = None

    def name_at(self, index: int) -> str:
        if 0 <= index < len(self.headers):
            return self.headers[index]
        return f"column_{index + 1}"

    @property
    def selected_names(self) -> List[str]:
        return [self.name_at(idx) for idx in self.selected]


@dataclass
class ColumnAccumulator:
    """Running sums plus the retained value vector for one selected column.

    Memory is O(rows): ``values`` keeps every parsed cell because median and
    pairwise correlation need the full series.
    """

    name: str
    index: int
    count: int = 0
    total: float = 0.0
    total_sq: float = 0.0
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    values: List[float] = field(default_factory=list)
    target_x: List[float] = field(default_factory=list)
    target_y: List[float] = field(default_factory=list)

    def update(self, value: float) -> None:
        self.count += 1
        self.total += value
        self.total_sq += value * value
        self.min_value = value if self.min_value is None else min(self.min_value, value)
        self.max_value = value if self.max_value is None else max(self.max_value, value)
        self.values.append(value)

    def add_target_pair(self, value: float, target: float) -> None:
        self.target_x.append(value)
        self.target_y.append(target)

    @property
    def mean(self) -> float:
        if self.count == 0:
            return 0.0
        return self.total / self.count


@dataclass
class AggregationResult:
    resolution: ColumnResolution
    row_count: int
    columns: List[ColumnAccumulator]
    # group label -> per selected column [sum, count]
    group_sums: Dict[str, List[List[float]]] = field(default_factory=dict)
    regression_rows: List[List[float]] = field(default_factory=list)
    regression_targets: List[float] = field(default_factory=list)
    boxplot_values: Dict[str, List[float]] = field(default_factory=dict)

    @property
    def target_name(self) -> Optional[str]:
        if self.resolution.target_index is None:
            return None
        return self.resolution.name_at(self.resolution.target_index)


@dataclass(frozen=True)
class DescriptiveStat:
    column: str
    count: int
    mean: float
    std_dev: float
    min: float
    median: float
    max: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "column": self.column,
            "count": self.count,
            "mean": self.mean,
            "std_dev": self.std_dev,
            "min": self.min,
            "median": self.median,
            "max": self.max,
        }


@dataclass(frozen=True)
class RegressionResult:
    target: str
    predictors: Tuple[str, ...]
    intercept: float
    coefficients: Tuple[float, ...]
    r2: float
    n: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target": self.target,
            "predictors": list(self.predictors),
            "intercept": self.intercept,
            "coefficients": list(self.coefficients),
            "r2": self.r2,
            "n": self.n,
        }


@dataclass(frozen=True)
class NoveltyScore:
    column: str
    score: float
    rationale: str

    def to_dict(self) -> Dict[str, Any]:
        return {"column": self.column, "score": self.score, "rationale": self.rationale}


@dataclass(frozen=True)
class BiomarkerCandidate:
    column: str
    score: float
    correlation: float
    direction: str
    notes: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "column": self.column,
            "score": self.score,
            "correlation": self.correlation,
            "direction": self.direction,
            "notes": self.notes,
        }


@dataclass(frozen=True)
class AnalysisArtifacts:
    descriptive_stats: Tuple[DescriptiveStat, ...] = ()
    regressions: Tuple[RegressionResult, ...] = ()
    novelty_scores: Tuple[NoveltyScore, ...] = ()
    biomarker_candidates: Tuple[BiomarkerCandidate, ...] = ()
    summary: str = ""
    heatmap_path: Optional[str] = None
    boxplot_path: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "descriptive_stats": [s.to_dict() for s in self.descriptive_stats],
            "regressions": [r.to_dict() for r in self.regressions],
            "novelty_scores": [n.to_dict() for n in self.novelty_scores],
            "biomarker_candidates": [b.to_dict() for b in self.biomarker_candidates],
            "summary": self.summary,
            "heatmap_path": self.heatmap_path,
            "boxplot_path": self.boxplot_path,
        }


@dataclass(frozen=True)
class ArtifactFile:
    id: str
    name: str
    description: str
    path: str
    artifact_type: str = "FILE"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "description": self.description,
            "artifact_type": self.artifact_type,
            "name": self.name,
            "path": self.path,
        }


@dataclass
class AnalysisRun:
    artifacts: AnalysisArtifacts
    manuscript: str
    files: List[ArtifactFile]
    phases: Dict[str, Dict[str, Any]]


class AnalysisState(TypedDict, total=False):
    dataset: DatasetHandle
    config: AnalysisConfig
    output_dir: str
    phase_outputs: Dict[str, Dict[str, Any]]
    aggregation: AggregationResult
    descriptive_stats: List[DescriptiveStat]
    regressions: List[RegressionResult]
    novelty_scores: List[NoveltyScore]
    biomarker_candidates: List[BiomarkerCandidate]
    rendered_images: Dict[str, bytes]
    summary: str
    manuscript: str
    artifacts: AnalysisArtifacts
    files: List[ArtifactFile]
    _callback: Callable[..., None]


PhaseCallback = Optional[Callable[[str, Mapping[str, Any], int, int], None]]
