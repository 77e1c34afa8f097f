"""
Inventory Repository - Database access layer for stock locations.
"""

import logging
from typing import List, Dict

from sqlalchemy.orm import Session

from database.models import InventoryLocation
from validators import ValidationError, parse_bool, sanitize_string

logger = logging.getLogger(__name__)


class InventoryRepository:
    """Repository for inventory database operations."""

    def __init__(self, session: Session, account_id: str):
        self.session = session
        self.account_id = account_id

    def list_locations(self) -> List[InventoryLocation]:
        """Locations with the default one first, then by name."""
        return self.session.query(InventoryLocation).filter(
            InventoryLocation.account_id == self.account_id
        ).order_by(InventoryLocation.is_default.desc(), InventoryLocation.name).all()

    def create_location(self, data: Dict) -> InventoryLocation:
        """Create a location. A new default replaces the previous one."""
        name = sanitize_string(data.get('name') or '', 255)
        if not name:
            raise ValidationError('name is required', 'name')

        is_default = parse_bool(data.get('is_default'))
        if is_default:
            self.session.query(InventoryLocation).filter(
                InventoryLocation.account_id == self.account_id,
                InventoryLocation.is_default == True  # noqa: E712
            ).update({'is_default': False}, synchronize_session=False)

        location = InventoryLocation(
            account_id=self.account_id,
            name=name,
            address=data.get('address'),
            is_default=is_default
        )
        self.session.add(location)
        self.session.flush()
        logger.info(f"Created inventory location: {location.id}")
        return location
