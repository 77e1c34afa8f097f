"""
API Blueprints Package

All HTTP route handlers for the application, organized by domain.
Each module defines a Flask Blueprint registered in app/__init__.py.

BLUEPRINT REFERENCE:
====================

CRM:
- contacts.py      : Contacts, search, history
- jobs.py          : Jobs, technician job requests, dispatch review
- estimates.py     : Estimates and their versions
- invoices.py      : Invoices

Dispatch:
- schedule.py      : Resources, working hours, assignments, availability,
                     conflicts, travel time, route optimization
- calendar.py      : Personal calendar events and conflicts
- geofencing.py    : Job-site geofences

Other:
- auth_routes.py   : Authentication (/api/auth/*)
- inbox.py         : Inbox SLA and bulk actions
- notifications.py : In-app notifications
- inventory.py     : Inventory locations
- analytics.py     : Owner/admin reports
- scheduler.py     : Background scheduler status
"""

# All blueprints are imported and registered in app/__init__.py
# This file serves as documentation only

__all__ = []
