"""API routes."""

from ph_payroll.api.routes.adjustments import router as adjustments_router
from ph_payroll.api.routes.contributions import router as contributions_router
from ph_payroll.api.routes.entries import router as entries_router
from ph_payroll.api.routes.health import router as health_router
from ph_payroll.api.routes.periods import router as periods_router

__all__ = [
    "adjustments_router",
    "contributions_router",
    "entries_router",
    "health_router",
    "periods_router",
]
