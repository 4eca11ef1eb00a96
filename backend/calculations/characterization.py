"""
Injector characterization from a fitted flow line.

Combines a FitResult with the measured rows to produce:
  - the summary: flow rate (g/s, cc/min) and deadtime (ms)
  - per-row model metrics: modeled mass-per-pulse, percent error,
    modeled pulse width and the small-pulse adder

Undefined results (degenerate fit, zero slope) come back as NaN; nothing
here raises for data conditions.
"""

import math
from dataclasses import dataclass

from calculations.metrics import average_flow_g_per_s, mass_per_pulse_mg
from calculations.regression import FitResult

# g/s -> cc/min at the fixed fuel density
CC_PER_MIN_PER_G_PER_S = 83.333


@dataclass(frozen=True)
class InjectorSummary:
    flow_rate_g_per_s: float
    flow_rate_cc_per_min: float
    deadtime_ms: float
    r_squared: float
    n_points: int


@dataclass(frozen=True)
class DerivedRowMetrics:
    """Computed values for one valid row (NaN where the fit is undefined)."""
    actual_mass_per_pulse_mg: float
    average_flow_g_per_s: float
    modeled_mass_per_pulse_mg: float
    percent_error: float
    modeled_pulse_width_ms: float
    small_pulse_adder_ms: float


def safe_div(numerator: float, denominator: float) -> float:
    """numerator / denominator, or NaN when the denominator is zero or NaN."""
    if denominator == 0 or math.isnan(denominator):
        return math.nan
    return numerator / denominator


def summarize(fit: FitResult) -> InjectorSummary:
    """
    Flow rate is the slope; deadtime is the x-intercept of the line,
    i.e. the pulse width at which modeled mass-per-pulse reaches zero.
    """
    flow = fit.slope
    return InjectorSummary(
        flow_rate_g_per_s=flow,
        flow_rate_cc_per_min=CC_PER_MIN_PER_G_PER_S * flow,
        deadtime_ms=safe_div(-fit.intercept, flow),
        r_squared=fit.r_squared,
        n_points=fit.n_points,
    )


def derive_row_metrics(row, fit: FitResult, summary: InjectorSummary) -> DerivedRowMetrics:
    """
    Model metrics for a valid row.

    modeled_pulse_width_ms is the pulse width a pure flow (no deadtime)
    would need to deliver the row's actual mass-per-pulse. The adder is
    whatever is left of the commanded pulse width after subtracting the
    deadtime and that modeled width.
    """
    actual = mass_per_pulse_mg(row)
    modeled = fit.predict(row.pulse_width_ms)
    modeled_pulse_width = safe_div(actual, summary.flow_rate_g_per_s)

    return DerivedRowMetrics(
        actual_mass_per_pulse_mg=actual,
        average_flow_g_per_s=average_flow_g_per_s(row),
        modeled_mass_per_pulse_mg=modeled,
        percent_error=100 * safe_div(modeled - actual, actual),
        modeled_pulse_width_ms=modeled_pulse_width,
        small_pulse_adder_ms=row.pulse_width_ms - summary.deadtime_ms - modeled_pulse_width,
    )
