"""
Row validity check for injector calibration data.

A row is usable for any calculation only when all three measured fields
are present, non-zero and finite. Zero counts as missing: it would divide
by zero when deriving mass-per-pulse or average flow.
"""

import math
from typing import Optional


MEASURED_FIELDS = ("injections", "pulse_width_ms", "total_mass_g")


def _is_usable(value: Optional[float]) -> bool:
    return value is not None and value != 0 and math.isfinite(value)


def is_valid(row) -> bool:
    """True iff injections, pulse_width_ms and total_mass_g are all usable."""
    return all(_is_usable(getattr(row, name)) for name in MEASURED_FIELDS)
