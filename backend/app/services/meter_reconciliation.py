"""
Meter reconciliation: from raw instrument readings to flight time and to
the amount an aircraft's total time in service moves by.

Two numbers come out of a flight:

* the flight delta, ``end - start`` on the booking's billing basis, which
  is what the member is charged for;
* the applied aircraft delta, the delta on the basis the aircraft records
  total time with, scaled by the retention factor of its total time method.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Any, Optional

from ..core.exceptions import InvariantViolationException, ValidationException
from ..models.aircraft import MeterBasis, TotalTimeMethod
from .invoice_calculator import Number, round_to_two_decimals, to_decimal

_PLAIN_METHODS = {
    MeterBasis.HOBBS: TotalTimeMethod.HOBBS,
    MeterBasis.TACH: TotalTimeMethod.TACHO,
    MeterBasis.AIRSWITCH: TotalTimeMethod.AIRSWITCH,
}


def _optional_decimal(value: Optional[Number]) -> Optional[Decimal]:
    return None if value is None else to_decimal(value)


@dataclass(frozen=True)
class MeterReadings:
    hobbs_start: Optional[Decimal] = None
    hobbs_end: Optional[Decimal] = None
    tach_start: Optional[Decimal] = None
    tach_end: Optional[Decimal] = None
    airswitch_start: Optional[Decimal] = None
    airswitch_end: Optional[Decimal] = None

    @classmethod
    def build(cls, **values: Optional[Number]) -> "MeterReadings":
        return cls(**{key: _optional_decimal(value) for key, value in values.items()})

    @classmethod
    def from_booking(cls, booking: Any) -> "MeterReadings":
        return cls.build(
            hobbs_start=booking.hobbs_start,
            hobbs_end=booking.hobbs_end,
            tach_start=booking.tach_start,
            tach_end=booking.tach_end,
            airswitch_start=booking.airswitch_start,
            airswitch_end=booking.airswitch_end,
        )

    def with_end_readings(
        self,
        hobbs_end: Optional[Number] = None,
        tach_end: Optional[Number] = None,
        airswitch_end: Optional[Number] = None,
    ) -> "MeterReadings":
        """Replace only the end readings that are supplied."""
        changes = {
            key: to_decimal(value)
            for key, value in (
                ("hobbs_end", hobbs_end),
                ("tach_end", tach_end),
                ("airswitch_end", airswitch_end),
            )
            if value is not None
        }
        return replace(self, **changes)

    def start(self, basis: MeterBasis) -> Optional[Decimal]:
        return getattr(self, f"{basis.value}_start")

    def end(self, basis: MeterBasis) -> Optional[Decimal]:
        return getattr(self, f"{basis.value}_end")

    def delta(self, basis: MeterBasis) -> Optional[Decimal]:
        """Raw ``end - start`` for a basis, None when either reading is missing."""
        start, end = self.start(basis), self.end(basis)
        if start is None or end is None:
            return None
        return end - start


def parse_billing_basis(billing_basis: str) -> MeterBasis:
    basis = MeterBasis.parse(billing_basis)
    if basis is None:
        raise ValidationException(
            f"Unsupported billing basis: {billing_basis}",
            code="INVALID_BILLING_BASIS",
            details={"billing_basis": billing_basis},
        )
    return basis


def _positive_delta(readings: MeterReadings, basis: MeterBasis) -> Decimal:
    delta = readings.delta(basis)
    if delta is None:
        raise ValidationException(
            f"Start and end {basis.value} readings are required",
            code="MISSING_METER_READING",
            details={"basis": basis.value},
        )
    if delta <= 0:
        raise InvariantViolationException(
            f"{basis.value} end reading must be greater than the start reading",
            code="NON_POSITIVE_FLIGHT_TIME",
            details={
                "basis": basis.value,
                "start": str(readings.start(basis)),
                "end": str(readings.end(basis)),
            },
        )
    return delta


def calculate_flight_delta(readings: MeterReadings, billing_basis: str) -> Decimal:
    """Chargeable flight time on the billing basis; strictly positive."""
    return round_to_two_decimals(_positive_delta(readings, parse_billing_basis(billing_basis)))


def flight_times_by_basis(readings: MeterReadings) -> dict[MeterBasis, Optional[Decimal]]:
    """Per-basis flight time for every basis that has both readings."""
    times: dict[MeterBasis, Optional[Decimal]] = {}
    for basis in MeterBasis:
        delta = readings.delta(basis)
        times[basis] = round_to_two_decimals(delta) if delta is not None else None
    return times


def resolve_total_time_method(aircraft: Any, billing_basis: str) -> TotalTimeMethod:
    """
    Decide how a flight feeds the aircraft's total time in service.

    A reducing method ("hobbs less 10%") wins outright. Otherwise the
    record flags pick the basis with precedence hobbs, tach, airswitch;
    a plain configured method comes next and the billing basis is the
    last resort.
    """
    method: Optional[TotalTimeMethod] = None
    if aircraft.total_time_method:
        try:
            method = TotalTimeMethod(aircraft.total_time_method.strip().lower())
        except ValueError:
            method = None

    if method is not None and method.retention_factor < 1:
        return method
    if aircraft.record_hobbs:
        return TotalTimeMethod.HOBBS
    if aircraft.record_tacho:
        return TotalTimeMethod.TACHO
    if aircraft.record_airswitch:
        return TotalTimeMethod.AIRSWITCH
    if method is not None:
        return method
    return _PLAIN_METHODS[parse_billing_basis(billing_basis)]


def calculate_applied_delta(readings: MeterReadings, method: TotalTimeMethod) -> Decimal:
    """Delta on the method's basis times its retention factor, to the hundredth."""
    delta = _positive_delta(readings, method.basis)
    return round_to_two_decimals(delta * method.retention_factor)


@dataclass(frozen=True)
class CorrectionPlan:
    old_applied_delta: Decimal
    new_applied_delta: Decimal
    correction_delta: Decimal


def plan_correction(
    readings: MeterReadings, method: TotalTimeMethod, old_applied_delta: Number
) -> CorrectionPlan:
    """
    Incremental change to total time in service for revised end readings.

    The old value is the delta recorded at approval (or at the previous
    correction); it is never re-derived from the old readings.
    """
    old = round_to_two_decimals(old_applied_delta)
    new = calculate_applied_delta(readings, method)
    return CorrectionPlan(
        old_applied_delta=old,
        new_applied_delta=new,
        correction_delta=round_to_two_decimals(new - old),
    )
