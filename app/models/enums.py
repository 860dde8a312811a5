"""
Database Enums

Python Enums shared by models, schemas and services.
"""

import enum


class UserRole(str, enum.Enum):
    """User role enumeration."""
    USER = "USER"
    ADMIN = "ADMIN"


class RouteKey(str, enum.Enum):
    """Application routes a step-up policy can be attached to."""
    COMPARISON = "comparison"
    PERSONAL_PATH = "personalPath"
    COMPANIES = "companies"
    PROFILE = "profile"
    SETTINGS = "settings"


class StepUpMethod(str, enum.Enum):
    """Verification method used to satisfy a route step-up."""
    EMAIL_OTP = "EMAIL_OTP"


class ChallengeStatus(str, enum.Enum):
    """Resolved state of an OTP challenge at a given instant."""
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    INVALIDATED = "INVALIDATED"
    CONSUMED = "CONSUMED"
    ATTEMPTS_EXHAUSTED = "ATTEMPTS_EXHAUSTED"
