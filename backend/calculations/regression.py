"""
Least-squares line fit for injector flow characterization.

Provides:
- Ordinary least-squares simple linear regression (pure Python, no numpy dependency)
- A degenerate (all-NaN) fit instead of an exception when the line is undefined
"""

import logging
import math
from dataclasses import dataclass
from typing import Iterable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FitResult:
    """
    Fitted line mass_per_pulse_mg = slope * pulse_width_ms + intercept.

    slope is the flow rate in g/s (mg/ms), intercept is the mass-per-pulse
    in mg at zero pulse width. Both are NaN for a degenerate fit.
    """
    slope: float
    intercept: float
    r_squared: float
    n_points: int

    @property
    def is_degenerate(self) -> bool:
        return math.isnan(self.slope) or math.isnan(self.intercept)

    def predict(self, x: float) -> float:
        """Evaluate the line at x; extrapolation outside the data is allowed."""
        return self.slope * x + self.intercept


def degenerate_fit(n_points: int = 0) -> FitResult:
    return FitResult(math.nan, math.nan, math.nan, n_points)


def fit_linear(points: Iterable[tuple[float, float]]) -> FitResult:
    """
    Fit a straight line through (x, y) points.

    Uses least-squares method: y = slope * x + intercept

    Args:
        points: (pulse_width_ms, mass_per_pulse_mg) pairs

    Returns:
        FitResult. Fewer than 2 points, or all x values identical, give a
        degenerate fit with NaN slope, intercept and r_squared.
    """
    pairs = list(points)
    n = len(pairs)
    if n < 2:
        logger.debug(f"Degenerate fit: need at least 2 points, got {n}")
        return degenerate_fit(n)

    xs = [p[0] for p in pairs]
    ys = [p[1] for p in pairs]

    # Compared directly: the centered sum of identical non-binary widths
    # (0.1, 2.7, ...) rounds to a tiny non-zero value
    if all(x == xs[0] for x in xs):
        logger.debug("Degenerate fit: all pulse widths are identical")
        return degenerate_fit(n)

    mean_x = sum(xs) / n
    mean_y = sum(ys) / n

    # Centered sums
    s_xx = sum((x - mean_x) ** 2 for x in xs)
    s_xy = sum((x - mean_x) * (y - mean_y) for x, y in pairs)

    if s_xx == 0:
        logger.debug("Degenerate fit: pulse width variance underflows")
        return degenerate_fit(n)

    slope = s_xy / s_xx
    intercept = mean_y - slope * mean_x

    # R-squared (coefficient of determination)
    ss_res = sum((y - (slope * x + intercept)) ** 2 for x, y in pairs)
    ss_tot = sum((y - mean_y) ** 2 for y in ys)

    r_squared = 1 - (ss_res / ss_tot) if ss_tot != 0 else math.nan

    return FitResult(slope=slope, intercept=intercept, r_squared=r_squared, n_points=n)
