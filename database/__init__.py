"""
Database package for the Field Service CRM.
Provides SQLAlchemy models, connection management, and session handling.
"""

from database.connection import (
    Base,
    init_engine,
    get_engine,
    get_session_factory,
    get_db_session,
    init_db,
    check_db_connection
)

from database.models import (
    Account,
    User,
    Contact,
    Job,
    Resource,
    ResourceAssignment,
    WorkingHours,
    Geofence,
    Conversation,
    CalendarEvent,
    InventoryLocation,
    Estimate,
    Invoice,
    EventLog,
    Notification
)

__all__ = [
    # Connection
    'Base',
    'init_engine',
    'get_engine',
    'get_session_factory',
    'get_db_session',
    'init_db',
    'check_db_connection',
    # Models
    'Account',
    'User',
    'Contact',
    'Job',
    'Resource',
    'ResourceAssignment',
    'WorkingHours',
    'Geofence',
    'Conversation',
    'CalendarEvent',
    'InventoryLocation',
    'Estimate',
    'Invoice',
    'EventLog',
    'Notification'
]
