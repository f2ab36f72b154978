# backend/passdesk/routes/v1/__init__.py
"""
API v1 Routes

Versioned API endpoints under /api/v1.
"""

from . import batches, checkout, enrollments, health, reservations

__all__ = [
    "batches",
    "checkout",
    "enrollments",
    "health",
    "reservations",
]
