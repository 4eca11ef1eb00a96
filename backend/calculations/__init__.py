"""
Calculations module for the injector calibration service.
Provides the row store, regression and characterization pipeline for injector flow data.
"""

from calculations.engine import CharacterizationEngine, CharacterizationSnapshot, compute_snapshot
from calculations.regression import FitResult, fit_linear
from calculations.rows import MeasurementRow, RowStore
from calculations.validation import is_valid

__all__ = [
    "CharacterizationEngine",
    "CharacterizationSnapshot",
    "compute_snapshot",
    "FitResult",
    "fit_linear",
    "MeasurementRow",
    "RowStore",
    "is_valid",
]
