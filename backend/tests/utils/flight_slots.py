"""Shared instants and payload builders for booking and check-in tests."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Dict

from app.principal import AuthContext
from app.schemas.checkin import CheckinApprovalRequest, CheckinItem

TENANT_TIMEZONE = "Pacific/Auckland"

# Wednesday 2030-01-16 10:00-11:00 UTC (23:00-00:00 NZDT); used where the roster does not matter
SLOT_START = datetime(2030, 1, 16, 10, 0, tzinfo=timezone.utc)
SLOT_END = datetime(2030, 1, 16, 11, 0, tzinfo=timezone.utc)
FIXED_NOW = datetime(2030, 1, 16, 12, 0, tzinfo=timezone.utc)


def nzdt(day: int, hour: int, minute: int = 0) -> datetime:
    """UTC instant for a January 2030 wall-clock time in Auckland (UTC+13)."""
    return datetime(2030, 1, day, hour, minute, tzinfo=timezone.utc) - timedelta(hours=13)


def auth_headers_for(ctx: AuthContext) -> Dict[str, str]:
    return {
        "X-User-Id": ctx.user_id,
        "X-User-Role": ctx.role.value,
        "X-Tenant-Id": ctx.tenant_id,
    }


def approval_request(aircraft_id: str, flight_type_id: str, **overrides) -> CheckinApprovalRequest:
    """1.5 hobbs hours (100.2 -> 101.7) billed as one line of 2 x 100.00 at 15% tax."""
    values = dict(
        checked_out_aircraft_id=aircraft_id,
        flight_type_id=flight_type_id,
        hobbs_end=Decimal("101.7"),
        billing_basis="hobbs",
        billing_hours=Decimal("1.5"),
        tax_rate=Decimal("0.15"),
        items=[CheckinItem(description="C172 dual", quantity=Decimal("2"), unit_price=Decimal("100"))],
    )
    values.update(overrides)
    return CheckinApprovalRequest(**values)
