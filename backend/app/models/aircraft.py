# backend/app/models/aircraft.py
"""
Aircraft model.

The booking engine does not own aircraft master data; it only reads the
meter configuration and mutates the live meter snapshot and the cumulative
total time in service during check-in approval and correction.
"""

from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import Boolean, Column, ForeignKey, Integer, Numeric, String
from sqlalchemy.sql import func

from ..database import Base
from .types import UTCDateTime, generate_ulid


class MeterBasis(str, Enum):
    """Instrument that measures elapsed operating time."""

    HOBBS = "hobbs"
    TACH = "tach"
    AIRSWITCH = "airswitch"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["MeterBasis"]:
        """Accept ``tacho`` as an alias for ``tach``; None for anything unknown."""
        if not value:
            return None
        normalized = value.strip().lower()
        if normalized == "tacho":
            normalized = cls.TACH.value
        try:
            return cls(normalized)
        except ValueError:
            return None


class TotalTimeMethod(str, Enum):
    """How a flight's meter delta feeds the aircraft's total time in service."""

    HOBBS = "hobbs"
    TACHO = "tacho"
    AIRSWITCH = "airswitch"
    HOBBS_LESS_5 = "hobbs less 5%"
    HOBBS_LESS_10 = "hobbs less 10%"
    TACHO_LESS_5 = "tacho less 5%"
    TACHO_LESS_10 = "tacho less 10%"

    @property
    def basis(self) -> MeterBasis:
        if self.value.startswith("hobbs"):
            return MeterBasis.HOBBS
        if self.value.startswith("tacho"):
            return MeterBasis.TACH
        return MeterBasis.AIRSWITCH

    @property
    def retention_factor(self) -> Decimal:
        if self.value.endswith("less 5%"):
            return Decimal("0.95")
        if self.value.endswith("less 10%"):
            return Decimal("0.90")
        return Decimal("1")


class Aircraft(Base):
    """
    Aircraft meter state.

    ``version`` is the optimistic concurrency token: every ORM update is
    issued as ``UPDATE ... WHERE version = :loaded_version`` and a lost race
    surfaces as ``StaleDataError``.
    """

    __tablename__ = "aircraft"

    id = Column(String(26), primary_key=True, index=True, default=generate_ulid)
    tenant_id = Column(String(26), ForeignKey("tenants.id"), nullable=False, index=True)
    registration = Column(String(20), nullable=False)
    type = Column(String(100), nullable=True)
    on_line = Column(Boolean, nullable=False, default=True)

    current_hobbs = Column(Numeric(12, 2), nullable=True)
    current_tach = Column(Numeric(12, 2), nullable=True)
    current_airswitch = Column(Numeric(12, 2), nullable=True)
    total_time_in_service = Column(Numeric(12, 2), nullable=False, default=Decimal("0"))

    record_hobbs = Column(Boolean, nullable=False, default=True)
    record_tacho = Column(Boolean, nullable=False, default=False)
    record_airswitch = Column(Boolean, nullable=False, default=False)
    total_time_method = Column(String(30), nullable=True)

    version = Column(Integer, nullable=False)

    created_at = Column(UTCDateTime, server_default=func.now())
    updated_at = Column(UTCDateTime, onupdate=func.now())

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return (
            f"<Aircraft {self.id}: {self.registration} "
            f"ttis={self.total_time_in_service} v{self.version}>"
        )
