"""
API Routes Package

This module exports all FastAPI routers for the citation registry.
"""

from .driver_routes import router as driver_router

__all__ = [
    "driver_router",
]
