# backend/app/repositories/aircraft_repository.py
"""Aircraft Repository: read fleet state, lock rows for meter updates."""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..models.aircraft import Aircraft
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class AircraftRepository(BaseRepository[Aircraft]):
    def __init__(self, db: Session):
        super().__init__(db, Aircraft)

    def get_on_line(self, aircraft_id: str, tenant_id: str) -> Optional[Aircraft]:
        """Aircraft that exists in the tenant and is available for booking."""
        aircraft = self.get_by_id(aircraft_id, tenant_id=tenant_id)
        if aircraft is None or not aircraft.on_line:
            return None
        return aircraft
