"""
API v1 Router

Aggregates all v1 endpoint routers.
"""

from fastapi import APIRouter

from app.api.v1.endpoints import admin, route_access

router = APIRouter()

# Include route step-up verification routes
router.include_router(route_access.router)

# Include admin routes
router.include_router(admin.router)
