"""
API Dependencies

Reusable dependencies for API routes including authentication and the
route step-up gate.
"""

import uuid
from typing import Annotated, Awaitable, Callable

from fastapi import Depends, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.errors import ApiError
from app.core.security import decode_access_token, parse_role_tokens
from app.models.enums import RouteKey
from app.repositories.route_access import SqlAlchemyRouteAccessRepository
from app.schemas.user import SessionUser
from app.services.email_service import EmailSender
from app.services.route_access_service import RouteAccessService


# Bearer token extraction; missing tokens are reported through ApiError
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/token", auto_error=False)


def _unauthorized(message: str) -> ApiError:
    return ApiError(
        status.HTTP_401_UNAUTHORIZED,
        "UNAUTHORIZED",
        message,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    token: Annotated[str | None, Depends(oauth2_scheme)],
) -> SessionUser:
    """
    Dependency to get the current authenticated user.

    This dependency:
    1. Extracts the JWT token from the Authorization header
    2. Decodes and validates the token
    3. Builds the session user from its claims
    4. Raises 401 if the token is missing or invalid

    Raises:
        ApiError: 401 UNAUTHORIZED if authentication fails.
    """
    if not token:
        raise _unauthorized("Authentication required")

    payload = decode_access_token(token)
    if payload is None:
        raise _unauthorized("Invalid bearer token")

    user_id_str: str | None = payload.get("id") or payload.get("sub")
    email = payload.get("email")
    if not user_id_str or not isinstance(email, str) or not email:
        raise _unauthorized("Token does not identify a user")

    try:
        user_id = uuid.UUID(str(user_id_str))
    except ValueError:
        raise _unauthorized("Token does not identify a user")

    name = payload.get("name")
    return SessionUser(
        id=user_id,
        email=email,
        name=name if isinstance(name, str) and name else email,
        roles=parse_role_tokens(payload.get("role")),
    )


async def require_admin(
    current_user: Annotated[SessionUser, Depends(get_current_user)],
) -> SessionUser:
    """Dependency that only lets administrators through."""
    if not current_user.is_admin:
        raise ApiError(status.HTTP_403_FORBIDDEN, "FORBIDDEN", "Administrator role required")
    return current_user


def get_email_sender(request: Request) -> EmailSender:
    """The process-wide sender built during application startup."""
    return request.app.state.email_sender


async def get_route_access_service(
    db: Annotated[AsyncSession, Depends(get_db)],
    email_sender: Annotated[EmailSender, Depends(get_email_sender)],
) -> RouteAccessService:
    return RouteAccessService(
        repository=SqlAlchemyRouteAccessRepository(db),
        email_sender=email_sender,
    )


def require_route_access(
    route_key: RouteKey,
) -> Callable[..., Awaitable[SessionUser]]:
    """
    Build a dependency that gates a handler behind route step-up.

    Usage:
        @router.get("/comparison/personas")
        async def list_personas(
            user: Annotated[SessionUser, Depends(require_route_access(RouteKey.COMPARISON))],
        ):
            ...
    """

    async def dependency(
        current_user: Annotated[SessionUser, Depends(get_current_user)],
        service: Annotated[RouteAccessService, Depends(get_route_access_service)],
    ) -> SessionUser:
        await service.assert_route_access(current_user.id, route_key)
        return current_user

    return dependency
