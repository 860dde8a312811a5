"""
Salary Path Backend - Models Module

This module exports all SQLAlchemy models for the application.
Import Base for Alembic migrations.
"""

from app.core.database import Base

# Enums
from app.models.enums import (
    UserRole,
    RouteKey,
    StepUpMethod,
    ChallengeStatus,
)

# Models
from app.models.user import User
from app.models.route_access import RouteEmailOtpChallenge, RouteAccessGrant

__all__ = [
    # Base
    "Base",
    # Enums
    "UserRole",
    "RouteKey",
    "StepUpMethod",
    "ChallengeStatus",
    # Models
    "User",
    "RouteEmailOtpChallenge",
    "RouteAccessGrant",
]
