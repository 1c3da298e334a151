"""API routes."""

from shiftpay.api.routes.health import router as health_router
from shiftpay.api.routes.payroll import router as payroll_router

__all__ = ["health_router", "payroll_router"]
