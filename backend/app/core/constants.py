# backend/app/core/constants.py
"""
Application-wide constants for the booking engine.
"""

BRAND_NAME = "FlightDesk"

API_TITLE = f"{BRAND_NAME} API"
API_DESCRIPTION = (
    f"Backend API for {BRAND_NAME} - flight school bookings, check-in and metered billing"
)
API_VERSION = "1.0.0"

# Gateway-forwarded identity headers
USER_ID_HEADER = "X-User-Id"
USER_ROLE_HEADER = "X-User-Role"
TENANT_ID_HEADER = "X-Tenant-Id"
