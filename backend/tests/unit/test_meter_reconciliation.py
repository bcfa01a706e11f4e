from decimal import Decimal
from types import SimpleNamespace

import pytest

from app.core.exceptions import InvariantViolationException, ValidationException
from app.models.aircraft import MeterBasis, TotalTimeMethod
from app.services.meter_reconciliation import (
    MeterReadings,
    calculate_applied_delta,
    calculate_flight_delta,
    flight_times_by_basis,
    parse_billing_basis,
    plan_correction,
    resolve_total_time_method,
)


def _aircraft(method=None, hobbs=False, tacho=False, airswitch=False):
    return SimpleNamespace(
        total_time_method=method,
        record_hobbs=hobbs,
        record_tacho=tacho,
        record_airswitch=airswitch,
    )


def test_flight_delta_on_hobbs_basis():
    readings = MeterReadings.build(hobbs_start=100.2, hobbs_end=101.7)

    assert calculate_flight_delta(readings, "hobbs") == Decimal("1.50")


def test_flight_delta_accepts_tacho_alias():
    readings = MeterReadings.build(tach_start="80.0", tach_end="81.25")

    assert calculate_flight_delta(readings, "Tacho") == Decimal("1.25")


def test_zero_delta_is_an_invariant_violation():
    readings = MeterReadings.build(hobbs_start=100.0, hobbs_end=100.0)

    with pytest.raises(InvariantViolationException) as exc_info:
        calculate_flight_delta(readings, "hobbs")
    assert exc_info.value.code == "NON_POSITIVE_FLIGHT_TIME"


def test_negative_delta_is_an_invariant_violation():
    readings = MeterReadings.build(hobbs_start=100.0, hobbs_end=99.5)

    with pytest.raises(InvariantViolationException):
        calculate_flight_delta(readings, "hobbs")


def test_missing_reading_on_billing_basis():
    readings = MeterReadings.build(hobbs_start=100.0)

    with pytest.raises(ValidationException) as exc_info:
        calculate_flight_delta(readings, "hobbs")
    assert exc_info.value.code == "MISSING_METER_READING"


def test_unknown_billing_basis():
    with pytest.raises(ValidationException) as exc_info:
        parse_billing_basis("sundial")
    assert exc_info.value.code == "INVALID_BILLING_BASIS"


def test_flight_times_by_basis_only_for_complete_pairs():
    readings = MeterReadings.build(
        hobbs_start=100.2, hobbs_end=101.7, tach_start=80.0, tach_end=None
    )

    times = flight_times_by_basis(readings)

    assert times[MeterBasis.HOBBS] == Decimal("1.50")
    assert times[MeterBasis.TACH] is None
    assert times[MeterBasis.AIRSWITCH] is None


def test_reducing_method_wins_over_record_flags():
    aircraft = _aircraft(method="hobbs less 10%", hobbs=True, tacho=True)

    assert resolve_total_time_method(aircraft, "tach") == TotalTimeMethod.HOBBS_LESS_10


def test_record_flags_take_precedence_hobbs_first():
    assert resolve_total_time_method(_aircraft(hobbs=True, tacho=True), "tach") == (
        TotalTimeMethod.HOBBS
    )
    assert resolve_total_time_method(_aircraft(tacho=True, airswitch=True), "hobbs") == (
        TotalTimeMethod.TACHO
    )
    assert resolve_total_time_method(_aircraft(airswitch=True), "hobbs") == (
        TotalTimeMethod.AIRSWITCH
    )


def test_plain_configured_method_without_flags():
    assert resolve_total_time_method(_aircraft(method="tacho"), "hobbs") == TotalTimeMethod.TACHO


def test_billing_basis_is_the_last_resort():
    assert resolve_total_time_method(_aircraft(), "tacho") == TotalTimeMethod.TACHO
    assert resolve_total_time_method(_aircraft(method="bogus"), "hobbs") == TotalTimeMethod.HOBBS


def test_applied_delta_with_reduction():
    readings = MeterReadings.build(hobbs_start=100.2, hobbs_end=101.7)

    assert calculate_applied_delta(readings, TotalTimeMethod.HOBBS_LESS_10) == Decimal("1.35")
    assert calculate_applied_delta(readings, TotalTimeMethod.HOBBS_LESS_5) == Decimal("1.43")
    assert calculate_applied_delta(readings, TotalTimeMethod.HOBBS) == Decimal("1.50")


def test_applied_delta_uses_the_method_basis_not_the_billing_basis():
    readings = MeterReadings.build(
        hobbs_start=100.0, hobbs_end=101.5, tach_start=80.0, tach_end=81.2
    )

    assert calculate_applied_delta(readings, TotalTimeMethod.TACHO) == Decimal("1.20")


def test_with_end_readings_replaces_only_supplied_values():
    readings = MeterReadings.build(
        hobbs_start=100.2, hobbs_end=101.7, tach_start=80.0, tach_end=81.0
    )

    corrected = readings.with_end_readings(hobbs_end=Decimal("101.5"))

    assert corrected.hobbs_end == Decimal("101.5")
    assert corrected.tach_end == Decimal("81.0")
    assert corrected.hobbs_start == readings.hobbs_start


def test_correction_plan_uses_recorded_delta():
    readings = MeterReadings.build(hobbs_start=100.2, hobbs_end=101.5)

    plan = plan_correction(readings, TotalTimeMethod.HOBBS, Decimal("1.50"))

    assert plan.old_applied_delta == Decimal("1.50")
    assert plan.new_applied_delta == Decimal("1.30")
    assert plan.correction_delta == Decimal("-0.20")


def test_correction_plan_applies_reduction_to_new_readings():
    readings = MeterReadings.build(hobbs_start=100.0, hobbs_end=102.0)

    plan = plan_correction(readings, TotalTimeMethod.HOBBS_LESS_10, Decimal("1.35"))

    assert plan.new_applied_delta == Decimal("1.80")
    assert plan.correction_delta == Decimal("0.45")


def test_correction_to_non_positive_delta_is_rejected():
    readings = MeterReadings.build(hobbs_start=100.2, hobbs_end=100.1)

    with pytest.raises(InvariantViolationException):
        plan_correction(readings, TotalTimeMethod.HOBBS, Decimal("1.50"))
