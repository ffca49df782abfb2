"""
API route modules.

Each module defines routes for one domain area.
"""

from routes.reconciliation import router as reconciliation_router
from routes.reports import router as reports_router

__all__ = [
    "reconciliation_router",
    "reports_router",
]
