# backend/app/schemas/checkin.py
"""Check-in approval and post-approval correction schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Annotated, List, Optional

from pydantic import AfterValidator, Field, field_validator, model_validator

from ..core.config import settings
from ..core.timezone_utils import ensure_utc
from ._strict_base import StrictModel, StrictRequestModel
from .base import Amount, Money, Quantity, Rate


def _check_tax_rate(value: Optional[Decimal]) -> Optional[Decimal]:
    if value is not None and not (Decimal("0") <= value <= Decimal("1")):
        raise ValueError("tax_rate must be between 0 and 1")
    return value


TaxRate = Annotated[Rate, AfterValidator(_check_tax_rate)]


class CheckinItem(StrictRequestModel):
    """One invoice line supplied at check-in."""

    chargeable_id: Optional[str] = None
    description: str = Field(..., min_length=1, max_length=400)
    quantity: Quantity
    unit_price: Amount
    tax_rate: Optional[TaxRate] = None
    notes: Optional[str] = Field(None, max_length=2000)

    @field_validator("quantity")
    @classmethod
    def _positive_quantity(cls, value: Decimal) -> Decimal:
        if value <= 0:
            raise ValueError("quantity must be greater than zero")
        return value

    @field_validator("unit_price")
    @classmethod
    def _non_negative_price(cls, value: Decimal) -> Decimal:
        if value < 0:
            raise ValueError("unit_price cannot be negative")
        return value


class CheckinApprovalRequest(StrictRequestModel):
    """Final readings, billing and invoice lines for a flying booking."""

    checked_out_aircraft_id: str
    checked_out_instructor_id: Optional[str] = None
    flight_type_id: str

    hobbs_start: Optional[Amount] = None
    hobbs_end: Optional[Amount] = None
    tach_start: Optional[Amount] = None
    tach_end: Optional[Amount] = None
    airswitch_start: Optional[Amount] = None
    airswitch_end: Optional[Amount] = None

    solo_end_hobbs: Optional[Amount] = None
    solo_end_tach: Optional[Amount] = None
    dual_time: Optional[Amount] = None
    solo_time: Optional[Amount] = None

    billing_basis: str = Field(..., min_length=1)
    billing_hours: Amount
    tax_rate: Optional[TaxRate] = None
    due_date: Optional[datetime] = None
    reference: Optional[str] = Field(None, max_length=200)
    notes: Optional[str] = Field(None, max_length=2000)
    items: List[CheckinItem] = Field(..., min_length=1)

    @field_validator("billing_hours")
    @classmethod
    def _positive_hours(cls, value: Decimal) -> Decimal:
        if value <= 0:
            raise ValueError("billing_hours must be greater than zero")
        return value

    @field_validator("due_date", mode="after")
    @classmethod
    def _due_date_to_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value) if value is not None else None


class CheckinCorrectionRequest(StrictRequestModel):
    """Revised end readings for an approved booking, with an audit reason."""

    hobbs_end: Optional[Amount] = None
    tach_end: Optional[Amount] = None
    airswitch_end: Optional[Amount] = None
    correction_reason: str

    @field_validator("correction_reason")
    @classmethod
    def _reason_length(cls, value: str) -> str:
        minimum = settings.correction_reason_min_length
        maximum = settings.correction_reason_max_length
        if len(value) < minimum:
            raise ValueError(f"correction_reason must be at least {minimum} characters")
        if len(value) > maximum:
            raise ValueError(f"correction_reason must be at most {maximum} characters")
        return value

    @model_validator(mode="after")
    def _requires_reading(self) -> "CheckinCorrectionRequest":
        if self.hobbs_end is None and self.tach_end is None and self.airswitch_end is None:
            raise ValueError("At least one corrected end reading is required")
        return self


class InvoiceSummary(StrictModel):
    id: str
    invoice_number: str
    subtotal: Money
    tax_total: Money
    total_amount: Money


class CheckinApprovalResponse(StrictModel):
    booking_id: str
    invoice: InvoiceSummary
    applied_aircraft_delta: Money
    total_hours_start: Money
    total_hours_end: Money


class CheckinCorrectionResponse(StrictModel):
    booking_id: str
    correction_delta: Money
    new_applied_delta: Money
    aircraft_total_time_in_service: Money
    updated_current_meters: bool
