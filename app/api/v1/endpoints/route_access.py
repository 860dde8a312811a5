"""
Route Access Routes

Step-up email verification for protected routes: status, send and verify.
"""

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query, Request

from app.api.deps import get_current_user, get_route_access_service
from app.models.enums import RouteKey
from app.schemas.route_access import (
    RouteAccessSendRequest,
    RouteAccessSendResponse,
    RouteAccessStatusResponse,
    RouteAccessVerifyRequest,
    RouteAccessVerifyResponse,
)
from app.schemas.user import SessionUser
from app.services.route_access_service import RouteAccessService


router = APIRouter(prefix="/route-access", tags=["Route Access"])


def read_request_ip(request: Request) -> Optional[str]:
    """First X-Forwarded-For hop, then X-Real-IP, then the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()

    return request.client.host if request.client else None


@router.get(
    "/status",
    response_model=RouteAccessStatusResponse,
    summary="Get step-up verification status for a route",
)
async def get_route_access_status(
    current_user: Annotated[SessionUser, Depends(get_current_user)],
    service: Annotated[RouteAccessService, Depends(get_route_access_service)],
    route_key: Annotated[RouteKey, Query(alias="routeKey")],
) -> RouteAccessStatusResponse:
    """
    Report whether the route needs verification and where the caller stands.

    Used by the UI gate to decide between rendering the route, the code
    form, or a disabled resend button.
    """
    return await service.get_status(current_user.id, route_key)


@router.post(
    "/email-otp/send",
    response_model=RouteAccessSendResponse,
    summary="Email a verification code for a route",
)
async def send_route_email_otp(
    data: RouteAccessSendRequest,
    request: Request,
    current_user: Annotated[SessionUser, Depends(get_current_user)],
    service: Annotated[RouteAccessService, Depends(get_route_access_service)],
) -> RouteAccessSendResponse:
    """
    Issue a new code and send it to the caller's email.

    **Flow:**
    1. Enforce the rolling 24h send cap and the resend cooldown
    2. Invalidate the previous code for this route
    3. Store the hashed code and email the plain one

    Raises:
        ApiError: 429 ROUTE_OTP_DAILY_LIMIT or ROUTE_OTP_COOLDOWN.
        ApiError: 500 EMAIL_DELIVERY_FAILED if the email could not be sent.
    """
    return await service.send_email_otp(
        owner_user_id=current_user.id,
        email=current_user.email,
        route_key=data.route_key,
        ip_address=read_request_ip(request),
        user_agent=request.headers.get("user-agent"),
    )


@router.post(
    "/email-otp/verify",
    response_model=RouteAccessVerifyResponse,
    summary="Verify a route verification code",
)
async def verify_route_email_otp(
    data: RouteAccessVerifyRequest,
    current_user: Annotated[SessionUser, Depends(get_current_user)],
    service: Annotated[RouteAccessService, Depends(get_route_access_service)],
) -> RouteAccessVerifyResponse:
    """
    Check the submitted code and unlock the route on success.

    Raises:
        ApiError: 400 ROUTE_OTP_INVALID_OR_EXPIRED, with remainingAttempts
            in details while attempts are left.
    """
    return await service.verify_email_otp(current_user.id, data.route_key, data.code)
