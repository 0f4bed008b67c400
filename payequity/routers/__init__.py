"""API routers."""

from .employees import router as employees_router
from .imports import router as imports_router
from .risk import router as risk_router

__all__ = ["employees_router", "imports_router", "risk_router"]
