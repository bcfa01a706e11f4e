# backend/app/repositories/invoice_repository.py
"""
Invoice Repository.

Invoice numbers are sequential per tenant (``{prefix}-000001``). The next
number is derived from the highest existing one inside the caller's
transaction; the unique (tenant_id, invoice_number) constraint rejects a
racing duplicate.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.invoice import Invoice
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)

INVOICE_NUMBER_DIGITS = 6


class InvoiceRepository(BaseRepository[Invoice]):
    def __init__(self, db: Session):
        super().__init__(db, Invoice)

    def next_invoice_number(self, tenant_id: str, prefix: str) -> str:
        try:
            numbers = (
                self.db.query(Invoice.invoice_number)
                .filter(
                    Invoice.tenant_id == tenant_id,
                    Invoice.invoice_number.like(f"{prefix}-%"),
                )
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error reading invoice numbers: {str(e)}")
            raise RepositoryException(f"Failed to allocate invoice number: {str(e)}")

        highest = 0
        for (number,) in numbers:
            suffix = number[len(prefix) + 1 :]
            if suffix.isdigit():
                highest = max(highest, int(suffix))
        return f"{prefix}-{highest + 1:0{INVOICE_NUMBER_DIGITS}d}"

    def count_for_booking(self, booking_id: str) -> int:
        return self.count(booking_id=booking_id)
