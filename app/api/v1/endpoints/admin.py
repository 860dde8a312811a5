"""
Admin Routes

Administrative controls over other users' route access.
"""

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Response, status

from app.api.deps import get_route_access_service, require_admin
from app.core.errors import ApiError
from app.models.enums import RouteKey
from app.schemas.user import SessionUser
from app.services.route_access_service import RouteAccessService


router = APIRouter(prefix="/admin", tags=["Admin"])


@router.delete(
    "/users/{user_id}/route-access/{route_key}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Revoke a user's verified access to a route",
)
async def revoke_user_route_access(
    user_id: uuid.UUID,
    route_key: RouteKey,
    admin: Annotated[SessionUser, Depends(require_admin)],
    service: Annotated[RouteAccessService, Depends(get_route_access_service)],
) -> Response:
    """
    Revoke the user's grant so the next request must verify again.

    Raises:
        ApiError: 404 ROUTE_ACCESS_GRANT_NOT_FOUND if no unrevoked grant exists.
    """
    revoked = await service.revoke_route_access(user_id, route_key)
    if not revoked:
        raise ApiError(
            status.HTTP_404_NOT_FOUND,
            "ROUTE_ACCESS_GRANT_NOT_FOUND",
            "No active route access grant to revoke",
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
