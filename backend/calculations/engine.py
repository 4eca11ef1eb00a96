"""
Recompute pipeline for injector characterization.

Every change to the row store is followed by a full, synchronous
recomputation: validate -> derive mass-per-pulse -> fit -> characterize.
compute_snapshot() is a pure function of the row tuple, so the same rows
always give the same snapshot.
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional

from calculations.characterization import (
    DerivedRowMetrics,
    InjectorSummary,
    derive_row_metrics,
    summarize,
)
from calculations.formatting import SMALL_PULSE_DECIMALS, format_value
from calculations.metrics import average_flow_g_per_s, mass_per_pulse_mg
from calculations.regression import FitResult, fit_linear
from calculations.rows import MeasurementRow, RowStore
from calculations.validation import is_valid

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TableRow:
    """A stored row plus its metrics (None while the row is incomplete)."""
    row: MeasurementRow
    metrics: Optional[DerivedRowMetrics]


@dataclass(frozen=True)
class MeasuredPoint:
    pulse_width_ms: float
    mass_per_pulse_mg: float
    included: bool


@dataclass(frozen=True)
class FittedPoint:
    pulse_width_ms: float
    mass_per_pulse_mg: float


@dataclass(frozen=True)
class AverageFlowPoint:
    pulse_width_ms: float
    average_flow_g_per_s: float


@dataclass(frozen=True)
class CharacterizationSnapshot:
    """Everything a presentation layer needs, computed in one pass."""
    fit: FitResult
    summary: InjectorSummary
    table: tuple[TableRow, ...]
    measured_series: tuple[MeasuredPoint, ...]
    fitted_series: tuple[FittedPoint, ...]
    average_flow_series: tuple[AverageFlowPoint, ...]


def compute_snapshot(rows: tuple[MeasurementRow, ...]) -> CharacterizationSnapshot:
    """
    Run the whole pipeline on a row snapshot.

    Excluded rows still get metrics and chart points; only the fit ignores them.
    """
    valid_rows = [row for row in rows if is_valid(row)]

    fit = fit_linear(
        (row.pulse_width_ms, mass_per_pulse_mg(row))
        for row in valid_rows
        if row.include_in_fit
    )
    summary = summarize(fit)

    table = tuple(
        TableRow(
            row=row,
            metrics=derive_row_metrics(row, fit, summary) if is_valid(row) else None,
        )
        for row in rows
    )

    measured = tuple(
        MeasuredPoint(row.pulse_width_ms, mass_per_pulse_mg(row), row.include_in_fit)
        for row in valid_rows
    )
    average_flow = tuple(
        AverageFlowPoint(row.pulse_width_ms, average_flow_g_per_s(row))
        for row in valid_rows
    )

    # Line at every distinct observed pulse width, extended to the x-intercept
    fitted: tuple[FittedPoint, ...] = ()
    if not fit.is_degenerate:
        widths = {row.pulse_width_ms for row in valid_rows}
        if math.isfinite(summary.deadtime_ms):
            widths.add(summary.deadtime_ms)
        fitted = tuple(FittedPoint(x, fit.predict(x)) for x in sorted(widths))

    return CharacterizationSnapshot(
        fit=fit,
        summary=summary,
        table=table,
        measured_series=measured,
        fitted_series=fitted,
        average_flow_series=average_flow,
    )


def render_display(snapshot: CharacterizationSnapshot) -> dict:
    """
    Format a snapshot for display: blanks for undefined values, one decimal
    for table and summary values, three for the small-pulse columns.
    """
    summary = snapshot.summary
    rows = []
    for entry in snapshot.table:
        m = entry.metrics
        rows.append({
            "id": entry.row.id,
            "actual_mass_per_pulse_mg": format_value(m.actual_mass_per_pulse_mg) if m else "",
            "modeled_mass_per_pulse_mg": format_value(m.modeled_mass_per_pulse_mg) if m else "",
            "percent_error": format_value(m.percent_error) if m else "",
            "average_flow_g_per_s": format_value(m.average_flow_g_per_s) if m else "",
            "modeled_pulse_width_ms": (
                format_value(m.modeled_pulse_width_ms, SMALL_PULSE_DECIMALS) if m else ""
            ),
            "small_pulse_adder_ms": (
                format_value(m.small_pulse_adder_ms, SMALL_PULSE_DECIMALS) if m else ""
            ),
        })

    return {
        "rows": rows,
        "summary": {
            "flow_rate_g_per_s": format_value(summary.flow_rate_g_per_s),
            "flow_rate_cc_per_min": format_value(summary.flow_rate_cc_per_min),
            "deadtime_ms": format_value(summary.deadtime_ms),
        },
    }


class CharacterizationEngine:
    """
    Row store plus recompute pipeline.

    Mutators forward to the RowStore and then recompute, so `snapshot`
    always reflects the current rows. Mutators return False for an
    unknown row id; append returns the new row id.
    """

    def __init__(self):
        self.store = RowStore()
        self.snapshot = compute_snapshot(self.store.rows)

    def _recompute(self) -> None:
        self.snapshot = compute_snapshot(self.store.rows)
        if self.snapshot.fit.is_degenerate:
            logger.debug(f"Fit undefined with {self.snapshot.fit.n_points} included point(s)")

    def append(self) -> int:
        row_id = self.store.append()
        self._recompute()
        return row_id

    def update(self, row_id: int, field: str, raw_value: Optional[str]) -> bool:
        found = self.store.update(row_id, field, raw_value)
        if found:
            self._recompute()
        return found

    def set_include(self, row_id: int, included: bool) -> bool:
        found = self.store.set_include(row_id, included)
        if found:
            self._recompute()
        return found

    def remove(self, row_id: int) -> bool:
        found = self.store.remove(row_id)
        if found:
            self._recompute()
        return found

    def display(self) -> dict:
        return render_display(self.snapshot)
