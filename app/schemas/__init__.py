"""
Salary Path Backend - Schemas Module

Pydantic models for request/response validation.
"""

from app.schemas.user import SessionUser
from app.schemas.route_access import (
    RouteAccessSendRequest,
    RouteAccessSendResponse,
    RouteAccessStatusResponse,
    RouteAccessVerifyRequest,
    RouteAccessVerifyResponse,
)

__all__ = [
    # User
    "SessionUser",
    # Route access
    "RouteAccessSendRequest",
    "RouteAccessSendResponse",
    "RouteAccessStatusResponse",
    "RouteAccessVerifyRequest",
    "RouteAccessVerifyResponse",
]
