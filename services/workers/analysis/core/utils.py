from __future__ import annotations
import io
import math
from typing import Any, Optional, Sequence

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from .constants import _IMAGE_DPI, _NULL_SENTINELS, _TEMPLATE_DIR


_JINJA_ENV = Environment(
    loader=FileSystemLoader(str(_TEMPLATE_DIR)),
    autoescape=False,
    keep_trailing_newline=True,
    undefined=StrictUndefined,
)

_MATPLOTLIB_SETUP = False
_PYLAB: Any = None


def _get_pyplot():
    global _MATPLOTLIB_SETUP, _PYLAB
    if _PYLAB is not None:
        return _PYLAB
    import matplotlib

    if not _MATPLOTLIB_SETUP:
        matplotlib.use("Agg")
        _MATPLOTLIB_SETUP = True
    import matplotlib.pyplot as plt

    _PYLAB = plt
    return plt


def _figure_to_png(fig: Any) -> bytes:
    plt = _get_pyplot()
    buffer = io.BytesIO()
    # no bbox_inches: the figure size in pixels must stay exact
    fig.savefig(buffer, format="png", dpi=_IMAGE_DPI)
    plt.close(fig)
    buffer.seek(0)
    return buffer.getvalue()


def _parse_float(value: Optional[str]) -> Optional[float]:
    """Parse a CSV cell as a finite float, or None when it is missing/non-numeric."""
    if value is None:
        return None
    trimmed = value.strip()
    if trimmed in _NULL_SENTINELS:
        return None
    try:
        parsed = float(trimmed)
    except ValueError:
        return None
    if not math.isfinite(parsed):
        return None
    return parsed


def pearson_correlation(x: Sequence[float], y: Sequence[float]) -> float:
    """Pearson r over the common prefix of ``x`` and ``y``.

    Returns 0.0 for fewer than two points or when either series has zero variance.
    """
    n = min(len(x), len(y))
    if n < 2:
        return 0.0
    xs = x[:n]
    ys = y[:n]
    if min(xs) == max(xs) or min(ys) == max(ys):
        return 0.0
    mean_x = sum(xs) / n
    mean_y = sum(ys) / n
    num = 0.0
    sxx = 0.0
    syy = 0.0
    for i in range(n):
        dx = xs[i] - mean_x
        dy = ys[i] - mean_y
        num += dx * dy
        sxx += dx * dx
        syy += dy * dy
    if sxx == 0.0 or syy == 0.0:
        return 0.0
    # sqrt(sxx * syy) keeps corr(x, x) exactly 1.0
    denominator = math.sqrt(sxx * syy)
    if not math.isfinite(denominator) or denominator == 0.0:
        denominator = math.sqrt(sxx) * math.sqrt(syy)
    return max(-1.0, min(1.0, num / denominator))
