"""
Salary Path Backend - Services Module

Business logic layer. Submodules are imported directly; the schemas
depend on otp_service, and route_access_service depends on the schemas.
"""

__all__ = [
    "otp_service",
    "email_service",
    "route_access_service",
]
