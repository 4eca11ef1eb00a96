"""
Row store for injector calibration measurements.

The store is the single owner of all measurement rows. Rows are frozen
dataclasses; an edit swaps in a new row object so any snapshot handed to
the calculation pipeline can never change underneath it.

Lifecycle rules:
  - There is always at least one row.
  - Row ids are assigned from a counter and never reused.
  - When an update turns the last row from incomplete into complete,
    a fresh blank row is appended so there is always an open row to type into.
"""

import logging
import math
import re
from dataclasses import dataclass, replace
from typing import Optional

from calculations.validation import is_valid

logger = logging.getLogger(__name__)


# External (camelCase) names accepted alongside the Python field names
FIELD_ALIASES = {
    "injections": "injections",
    "pulse_width_ms": "pulse_width_ms",
    "pulseWidthMs": "pulse_width_ms",
    "total_mass_g": "total_mass_g",
    "totalMassG": "total_mass_g",
}

# Longest leading numeric prefix, as lenient browser number parsing does
_NUMBER_PREFIX = re.compile(r"^[+-]?(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?")
_INFINITY = re.compile(r"^([+-]?)Infinity")


@dataclass(frozen=True)
class MeasurementRow:
    """One calibration data point. Any field may still be missing or NaN."""
    id: int
    injections: Optional[float] = None
    pulse_width_ms: Optional[float] = None
    total_mass_g: Optional[float] = None
    include_in_fit: bool = True


def parse_raw_value(raw: Optional[str]) -> float:
    """
    Parse user-entered text into a float.

    Uses the longest numeric prefix of the stripped text ("12abc" -> 12.0).
    Anything without a numeric prefix parses to NaN, which is a legal
    stored state (the validator treats it as missing).
    """
    if raw is None:
        return math.nan
    text = str(raw).strip()

    match = _NUMBER_PREFIX.match(text)
    if match:
        return float(match.group(0))

    match = _INFINITY.match(text)
    if match:
        return -math.inf if match.group(1) == "-" else math.inf

    return math.nan


def resolve_field(field: str) -> str:
    """
    Map an external field name onto the MeasurementRow attribute.

    Raises:
        ValueError: If the field is not one of the three measured fields
    """
    try:
        return FIELD_ALIASES[field]
    except KeyError:
        raise ValueError(
            f"Unknown field '{field}'. Must be one of: {sorted(FIELD_ALIASES)}"
        ) from None


class RowStore:
    """
    Ordered, mutable collection of MeasurementRow values.

    Mutators return False when the row id is unknown rather than raising,
    so callers decide whether that is an error at their boundary.
    """

    def __init__(self):
        self._rows: list[MeasurementRow] = []
        self._next_id = 1
        self.append()

    def __len__(self) -> int:
        return len(self._rows)

    @property
    def rows(self) -> tuple[MeasurementRow, ...]:
        """Immutable snapshot of the current rows, in display order."""
        return tuple(self._rows)

    def _index_of(self, row_id: int) -> Optional[int]:
        for index, row in enumerate(self._rows):
            if row.id == row_id:
                return index
        return None

    def append(self) -> int:
        """Add a blank row and return its id."""
        row = MeasurementRow(id=self._next_id)
        self._next_id += 1
        self._rows.append(row)
        logger.debug(f"Appended row {row.id}")
        return row.id

    def update(self, row_id: int, field: str, raw_value: Optional[str]) -> bool:
        """
        Parse raw_value and store it in the named field of a row.

        If this edit turns the last row from incomplete into complete, a new
        blank row is appended. The check compares validity before and after
        the edit, so further edits to an already-complete last row never
        append again.

        Raises:
            ValueError: If field is not a measured field name
        """
        attr = resolve_field(field)
        index = self._index_of(row_id)
        if index is None:
            return False

        before = self._rows[index]
        after = replace(before, **{attr: parse_raw_value(raw_value)})
        self._rows[index] = after
        logger.debug(f"Row {row_id}: {attr} = {getattr(after, attr)!r}")

        is_last = index == len(self._rows) - 1
        if is_last and not is_valid(before) and is_valid(after):
            self.append()
        return True

    def set_include(self, row_id: int, included: bool) -> bool:
        index = self._index_of(row_id)
        if index is None:
            return False
        self._rows[index] = replace(self._rows[index], include_in_fit=bool(included))
        logger.debug(f"Row {row_id}: include_in_fit = {bool(included)}")
        return True

    def remove(self, row_id: int) -> bool:
        """
        Delete a row. Removing the only remaining row is a no-op.

        Returns False only when the row id is unknown.
        """
        index = self._index_of(row_id)
        if index is None:
            return False
        if len(self._rows) == 1:
            logger.debug(f"Refusing to remove row {row_id}: it is the only row")
            return True
        del self._rows[index]
        logger.debug(f"Removed row {row_id}")
        return True
