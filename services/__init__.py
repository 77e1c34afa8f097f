"""
Services package for the Field Service CRM.
Contains repository classes for database access and the domain logic
used by the route handlers.
"""

from services.billing_repository import BillingRepository
from services.crm_repository import CRMRepository
from services.inventory_repository import InventoryRepository
from services.scheduling_repository import SchedulingRepository
from services.users_repository import UsersRepository

__all__ = [
    'BillingRepository',
    'CRMRepository',
    'InventoryRepository',
    'SchedulingRepository',
    'UsersRepository'
]
