from .app import build_graph, run_analysis
from .core.types import (
    AnalysisArtifacts,
    AnalysisConfig,
    AnalysisRun,
    ArtifactFile,
    BiomarkerCandidate,
    DatasetHandle,
    DescriptiveStat,
    NoveltyScore,
    RegressionResult,
)
from .io.ingest import inspect_dataset

__all__ = [
    "build_graph",
    "run_analysis",
    "inspect_dataset",
    "AnalysisArtifacts",
    "AnalysisConfig",
    "AnalysisRun",
    "ArtifactFile",
    "BiomarkerCandidate",
    "DatasetHandle",
    "DescriptiveStat",
    "NoveltyScore",
    "RegressionResult",
]
