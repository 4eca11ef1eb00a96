"""
Display formatting for computed values.

Non-finite or missing numbers render as an empty string, never "NaN".
Finite numbers are rounded for display only; stored values keep full precision.
"""

import math
from typing import Optional

DEFAULT_DECIMALS = 1
SMALL_PULSE_DECIMALS = 3


def format_value(value: Optional[float], decimals: int = DEFAULT_DECIMALS) -> str:
    if value is None or not math.isfinite(value):
        return ""
    return f"{value:.{decimals}f}"


def finite_or_none(value: Optional[float]) -> Optional[float]:
    """Replace NaN/inf with None, e.g. before JSON serialization."""
    if value is None or not math.isfinite(value):
        return None
    return value
