# backend/app/models/invoice.py
"""
Invoice and invoice item models.

Money is stored as ``Numeric(12, 2)``. Each item keeps the three derived
figures (amount, tax_amount, line_total) next to its inputs so that
``amount + tax_amount == line_total`` can be checked on the stored row.
"""

from decimal import Decimal
from enum import Enum

from sqlalchemy import (
    CheckConstraint,
    Column,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..database import Base
from .types import UTCDateTime, generate_ulid


class InvoiceStatus(str, Enum):
    DRAFT = "draft"
    PENDING = "pending"
    OVERDUE = "overdue"
    PAID = "paid"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class Invoice(Base):
    """Tenant and member scoped invoice. Check-in approval creates one per booking."""

    __tablename__ = "invoices"

    id = Column(String(26), primary_key=True, index=True, default=generate_ulid)
    tenant_id = Column(String(26), ForeignKey("tenants.id"), nullable=False, index=True)
    user_id = Column(String(26), ForeignKey("users.id"), nullable=True)
    booking_id = Column(String(26), ForeignKey("bookings.id"), nullable=True, unique=True)
    invoice_number = Column(String(32), nullable=False)
    status = Column(String(20), nullable=False, default=InvoiceStatus.DRAFT.value)
    reference = Column(String(200), nullable=True)
    notes = Column(Text, nullable=True)
    issue_date = Column(UTCDateTime, nullable=False)
    due_date = Column(UTCDateTime, nullable=True)
    tax_rate = Column(Numeric(6, 4), nullable=True)

    subtotal = Column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    tax_total = Column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    total_amount = Column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    total_paid = Column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    balance_due = Column(Numeric(12, 2), nullable=False, default=Decimal("0"))

    created_at = Column(UTCDateTime, server_default=func.now())

    booking = relationship("Booking", foreign_keys=[booking_id])
    items = relationship(
        "InvoiceItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceItem.position",
    )

    __table_args__ = (
        UniqueConstraint("tenant_id", "invoice_number", name="uq_invoices_tenant_number"),
        CheckConstraint(
            "status IN ('draft', 'pending', 'overdue', 'paid', 'cancelled', 'refunded')",
            name="ck_invoices_status",
        ),
    )

    def __repr__(self) -> str:
        return f"<Invoice {self.id}: {self.invoice_number} total={self.total_amount} ({self.status})>"


class InvoiceItem(Base):
    """Single invoice line. Soft-deleted lines are ignored by invoice totals."""

    __tablename__ = "invoice_items"

    id = Column(String(26), primary_key=True, index=True, default=generate_ulid)
    invoice_id = Column(String(26), ForeignKey("invoices.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    chargeable_id = Column(String(26), nullable=True)
    description = Column(String(400), nullable=False)
    quantity = Column(Numeric(12, 4), nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False)
    tax_rate = Column(Numeric(6, 4), nullable=False, default=Decimal("0"))
    rate_inclusive = Column(Numeric(12, 2), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    tax_amount = Column(Numeric(12, 2), nullable=False)
    line_total = Column(Numeric(12, 2), nullable=False)
    notes = Column(Text, nullable=True)
    deleted_at = Column(UTCDateTime, nullable=True)

    invoice = relationship("Invoice", back_populates="items")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_invoice_items_quantity_positive"),
        CheckConstraint("unit_price >= 0", name="ck_invoice_items_unit_price_non_negative"),
        CheckConstraint("tax_rate >= 0 AND tax_rate <= 1", name="ck_invoice_items_tax_rate"),
    )
