"""
Unit tests for the measurement row store and raw value parsing.
"""

import math

import pytest

from calculations.rows import MeasurementRow, RowStore, parse_raw_value, resolve_field
from calculations.validation import is_valid


def _complete(store: RowStore, row_id: int, injections="10", pulse_width="2", mass="0.02"):
    store.update(row_id, "injections", injections)
    store.update(row_id, "pulse_width_ms", pulse_width)
    store.update(row_id, "total_mass_g", mass)


def _find(store: RowStore, row_id: int) -> MeasurementRow:
    return next(row for row in store.rows if row.id == row_id)


# ─── parse_raw_value tests ────────────────────────────────────────────────────

class TestParseRawValue:
    """Lenient number parsing of user-entered text."""

    def test_plain_number(self):
        assert parse_raw_value("2.5") == 2.5

    def test_surrounding_whitespace(self):
        assert parse_raw_value("  3.5 ") == 3.5

    def test_numeric_prefix_is_used(self):
        """Trailing junk is ignored, like browser number parsing."""
        assert parse_raw_value("12abc") == 12.0

    def test_exponent(self):
        assert parse_raw_value("1.5e-2") == pytest.approx(0.015)

    def test_leading_dot_and_sign(self):
        assert parse_raw_value("-.5") == -0.5

    @pytest.mark.parametrize("raw", ["", "abc", "-", ".", None])
    def test_unparseable_is_nan(self, raw):
        """Parse failure is a stored NaN, not an error."""
        assert math.isnan(parse_raw_value(raw))

    @pytest.mark.parametrize("raw", ["٣", "٣.٥", "１２", "१०"])
    def test_non_ascii_digits_are_nan(self, raw):
        """Only ASCII digits count, as in browser number parsing."""
        assert math.isnan(parse_raw_value(raw))

    def test_ascii_prefix_stops_at_non_ascii_digit(self):
        assert parse_raw_value("2٣") == 2.0

    def test_infinity(self):
        assert parse_raw_value("Infinity") == math.inf
        assert parse_raw_value("-Infinity") == -math.inf


class TestResolveField:
    """Field name mapping."""

    def test_snake_and_camel_names(self):
        assert resolve_field("pulse_width_ms") == "pulse_width_ms"
        assert resolve_field("pulseWidthMs") == "pulse_width_ms"
        assert resolve_field("totalMassG") == "total_mass_g"

    def test_unknown_field_raises(self):
        with pytest.raises(ValueError):
            resolve_field("include_in_fit")


# ─── RowStore tests ───────────────────────────────────────────────────────────

class TestRowStoreBasics:
    """Append, update, include flag and snapshots."""

    def test_starts_with_one_blank_row(self):
        store = RowStore()
        assert len(store) == 1
        row = store.rows[0]
        assert row.injections is None
        assert row.include_in_fit is True

    def test_append_returns_fresh_ids(self):
        store = RowStore()
        first = store.rows[0].id
        second = store.append()
        third = store.append()
        assert len({first, second, third}) == 3

    def test_ids_never_reused_after_remove(self):
        store = RowStore()
        removed = store.append()
        store.remove(removed)
        assert store.append() != removed

    def test_update_parses_into_field(self):
        store = RowStore()
        row_id = store.rows[0].id
        assert store.update(row_id, "pulseWidthMs", "4.25") is True
        assert _find(store, row_id).pulse_width_ms == 4.25

    def test_update_garbage_stores_nan(self):
        store = RowStore()
        row_id = store.rows[0].id
        store.update(row_id, "injections", "ten")
        assert math.isnan(_find(store, row_id).injections)

    def test_update_unknown_row(self):
        store = RowStore()
        assert store.update(999, "injections", "10") is False
        assert len(store) == 1

    def test_update_unknown_field_raises(self):
        store = RowStore()
        with pytest.raises(ValueError):
            store.update(store.rows[0].id, "mass", "1")

    def test_set_include(self):
        store = RowStore()
        row_id = store.rows[0].id
        assert store.set_include(row_id, False) is True
        assert _find(store, row_id).include_in_fit is False
        assert store.set_include(999, True) is False

    def test_snapshot_is_unaffected_by_later_edits(self):
        """Rows handed out are immutable values, not live references."""
        store = RowStore()
        row_id = store.rows[0].id
        snapshot = store.rows
        store.update(row_id, "injections", "10")
        assert snapshot[0].injections is None
        with pytest.raises(Exception):
            snapshot[0].injections = 5


class TestAutoAppend:
    """A blank row appears when the last row becomes complete."""

    def test_completing_first_row_adds_one_blank_row(self):
        store = RowStore()
        _complete(store, store.rows[0].id)
        assert len(store) == 2
        assert not is_valid(store.rows[1])
        assert store.rows[1].injections is None

    def test_completing_second_row_adds_third(self):
        store = RowStore()
        _complete(store, store.rows[0].id)
        _complete(store, store.rows[1].id, pulse_width="4", mass="0.06")
        assert len(store) == 3

    def test_edits_to_complete_row_do_not_append_again(self):
        store = RowStore()
        row_id = store.rows[0].id
        _complete(store, row_id)
        store.update(row_id, "total_mass_g", "0.03")
        store.update(row_id, "total_mass_g", "0.04")
        assert len(store) == 2

    def test_partial_row_does_not_append(self):
        store = RowStore()
        row_id = store.rows[0].id
        store.update(row_id, "injections", "10")
        store.update(row_id, "pulse_width_ms", "2")
        store.update(row_id, "total_mass_g", "0")
        assert len(store) == 1

    def test_completing_non_last_row_does_not_append(self):
        store = RowStore()
        first = store.rows[0].id
        store.append()
        _complete(store, first)
        assert len(store) == 2

    def test_trigger_is_edge_not_level(self):
        """An already-complete last row only appends after going incomplete and back."""
        store = RowStore()
        first = store.rows[0].id
        _complete(store, first)
        store.remove(store.rows[1].id)
        assert len(store) == 1

        store.update(first, "injections", "20")
        assert len(store) == 1

        store.update(first, "injections", "")
        store.update(first, "injections", "20")
        assert len(store) == 2


class TestRemove:
    """Row removal keeps at least one row."""

    def test_remove_row(self):
        store = RowStore()
        extra = store.append()
        assert store.remove(extra) is True
        assert len(store) == 1
        assert extra not in [row.id for row in store.rows]

    def test_remove_only_row_is_noop(self):
        store = RowStore()
        only = store.rows[0].id
        assert store.remove(only) is True
        assert len(store) == 1
        assert store.rows[0].id == only

    def test_repeated_removal_never_empties_store(self):
        store = RowStore()
        for _ in range(4):
            store.append()
        for _ in range(10):
            store.remove(store.rows[0].id)
            assert len(store) >= 1
        assert len(store) == 1

    def test_remove_unknown_row(self):
        store = RowStore()
        assert store.remove(999) is False


def test_measurement_row_defaults():
    row = MeasurementRow(id=1)
    assert (row.injections, row.pulse_width_ms, row.total_mass_g) == (None, None, None)
    assert row.include_in_fit
