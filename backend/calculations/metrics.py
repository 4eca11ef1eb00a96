"""
Per-row measured quantities derived from a valid MeasurementRow.

Callers must only pass rows that pass calculations.validation.is_valid();
the non-zero checks there rule out division by zero here.
"""

# g -> mg
MG_PER_G = 1000.0
# ms -> s
MS_PER_S = 1000.0


def mass_per_pulse_mg(row) -> float:
    """Dispensed mass per injection pulse (mg)."""
    return MG_PER_G * row.total_mass_g / row.injections


def average_flow_g_per_s(row) -> float:
    """
    Mean flow over the total open time of the test (g/s).

    Open time = injections * pulse_width_ms, so this ignores deadtime and
    reads low for short pulses.
    """
    total_open_time_ms = row.injections * row.pulse_width_ms
    return MS_PER_S * row.total_mass_g / total_open_time_ms
