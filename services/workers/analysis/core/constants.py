from pathlib import Path

PHASE_ORDER = [
    "aggregate",
    "descriptive_stats",
    "regression",
    "novelty",
    "biomarker_ranking",
    "visualize",
    "report",
    "finalize",
]

DEFAULT_MAX_COLUMNS = 50
DEFAULT_MAX_GROUPS = 20

_MAX_HEATMAP_COLUMNS = 20
_MAX_BIOMARKER_CANDIDATES = 50
_MAX_REPORT_BIOMARKERS = 10
_MIN_BIOMARKER_PAIRS = 3
_MIN_REGRESSION_PAIRS = 2
_MIN_NOVELTY_VALUES = 2
_NOVELTY_STD_MULTIPLIER = 3.0

# pixels; rendered at _IMAGE_DPI so figsize = size / dpi
_IMAGE_DPI = 100
_HEATMAP_SIZE = (800, 800)
_BOXPLOT_SIZE = (900, 500)
# HSL hue (degrees) at correlation -1 and +1
_HEATMAP_HUE_RANGE = (240.0, 0.0)
_HEATMAP_SATURATION = 0.7
_HEATMAP_LIGHTNESS = 0.5

_NULL_SENTINELS = {"", "null", "NULL", "NaN", "nan", "NA", "N/A"}
_TSV_EXTENSIONS = {".tsv", ".tab"}

_NOVELTY_RATIONALE = "Scaled deviation of group means from overall mean (0-1)"
_BIOMARKER_NOTES = (
    "Pearson correlation with target ({target}). Higher absolute correlation suggests "
    "stronger biomarker signal."
)

_DEFAULT_REPORT_TARGET = "age"
_DEFAULT_REPORT_GROUP = "cell_type"
_PROJECT_ID_PREFIX = "OXBIO-"

_TEMPLATE_DIR = Path(__file__).resolve().parents[1] / "templates"
_MANUSCRIPT_TEMPLATE_NAME = "manuscript.txt.j2"

DESCRIPTIVE_STATS_FILE = "descriptive_stats.csv"
REGRESSIONS_FILE = "regressions.csv"
NOVELTY_SCORES_FILE = "novelty_scores.csv"
BIOMARKER_CANDIDATES_FILE = "biomarker_candidates.csv"
HEATMAP_FILE = "heatmap.png"
BOXPLOT_FILE = "boxplot.png"
