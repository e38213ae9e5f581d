# slotbook/routes/v1/__init__.py
"""
API v1 Routes

Versioned API endpoints under /api/v1.
"""

from . import alerts, availability, block_bookings, bookings, health, members

__all__ = ["alerts", "availability", "block_bookings", "bookings", "health", "members"]
