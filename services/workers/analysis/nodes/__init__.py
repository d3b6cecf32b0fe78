from .aggregate import aggregate_node
from .descriptive import descriptive_stats_node
from .regression import regression_node
from .novelty import novelty_node
from .biomarker import biomarker_ranking_node
from .visualize import visualize_node
from .report import report_node
from .finalize import finalize_node

__all__ = [
    "aggregate_node",
    "descriptive_stats_node",
    "regression_node",
    "novelty_node",
    "biomarker_ranking_node",
    "visualize_node",
    "report_node",
    "finalize_node",
]
