"""
Salary Path Backend - Repositories Module

Database access behind the service layer.
"""

from app.repositories.route_access import (
    RouteAccessRepository,
    SqlAlchemyRouteAccessRepository,
)

__all__ = ["RouteAccessRepository", "SqlAlchemyRouteAccessRepository"]
