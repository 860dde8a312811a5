"""
Route Access Service

Step-up email OTP verification for protected routes.

Flow:
    send    -> issue a code, invalidate the previous one, email it
    verify  -> check the code, consume the challenge, grant access
    status  -> read-only summary for the UI gate
    assert  -> allow or deny a protected request
"""

import logging
import math
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from fastapi import status

from app.core.errors import ApiError
from app.core.route_protection import RouteProtectionPolicy, get_route_protection_policy
from app.models.enums import ChallengeStatus, RouteKey
from app.repositories.route_access import RouteAccessRepository
from app.schemas.route_access import (
    RouteAccessSendResponse,
    RouteAccessStatusResponse,
    RouteAccessVerifyResponse,
)
from app.services.email_service import EmailSender, RouteOtpEmail
from app.services.otp_service import generate_otp, generate_salt, hash_otp, normalize_otp, verify_otp


logger = logging.getLogger(__name__)

SEND_WINDOW = timedelta(hours=24)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _retry_after_seconds(until: datetime, now: datetime) -> str:
    return str(max(1, math.ceil((until - now).total_seconds())))


def invalid_or_expired(remaining_attempts: Optional[int] = None) -> ApiError:
    details = None
    if remaining_attempts:
        details = {"remainingAttempts": remaining_attempts}
    return ApiError(
        status.HTTP_400_BAD_REQUEST,
        "ROUTE_OTP_INVALID_OR_EXPIRED",
        "Invalid or expired verification code",
        details=details,
    )


class RouteAccessService:
    """
    Issues and checks route verification codes for one request.

    Args:
        repository: Storage for challenges and grants.
        email_sender: Delivers codes to the user.
        now: Clock, injectable for tests.
        policies: Policy table override, defaults to the application table.
    """

    def __init__(
        self,
        repository: RouteAccessRepository,
        email_sender: EmailSender,
        now: Callable[[], datetime] = utcnow,
        policies: Optional[dict] = None,
    ):
        self.repository = repository
        self.email_sender = email_sender
        self.now = now
        self.policies = policies

    def get_policy(self, route_key: RouteKey) -> Optional[RouteProtectionPolicy]:
        return get_route_protection_policy(route_key, self.policies)

    def require_policy(self, route_key: RouteKey) -> RouteProtectionPolicy:
        policy = self.get_policy(route_key)
        if policy is None:
            raise ApiError(
                status.HTTP_400_BAD_REQUEST,
                "ROUTE_OTP_NOT_CONFIGURED",
                "Route does not support email verification",
            )
        return policy

    # ============== Status ==============

    async def get_status(
        self, owner_user_id: uuid.UUID, route_key: RouteKey
    ) -> RouteAccessStatusResponse:
        """Summarise grant, challenge and send budget without changing anything."""
        policy = self.get_policy(route_key)
        if policy is None:
            return RouteAccessStatusResponse(
                route_key=route_key,
                required=False,
                verified=False,
                challenge_active=False,
                remaining_sends_24h=0,
            )

        now = self.now()
        grant = await self.repository.get_grant(owner_user_id, route_key, policy.method)
        latest = await self.repository.get_latest_challenge(owner_user_id, route_key)
        sent_in_window = await self.repository.count_challenges_since(
            owner_user_id, route_key, now - SEND_WINDOW
        )

        verified = grant is not None and grant.is_valid_at(now)
        challenge_active = latest is not None and latest.is_active_at(now)

        resend_available_at = None
        if latest is not None:
            candidate = latest.created_at + policy.resend_cooldown
            if candidate > now:
                resend_available_at = candidate

        return RouteAccessStatusResponse(
            route_key=route_key,
            required=True,
            verified=verified,
            verification_expires_at=grant.expires_at if verified else None,
            challenge_active=challenge_active,
            challenge_expires_at=latest.expires_at if challenge_active else None,
            remaining_sends_24h=max(0, policy.max_sends_per_24_hours - sent_in_window),
            resend_available_at=resend_available_at,
        )

    # ============== Send ==============

    async def send_email_otp(
        self,
        owner_user_id: uuid.UUID,
        email: str,
        route_key: RouteKey,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> RouteAccessSendResponse:
        """
        Issue a new code for the route and email it.

        Raises:
            ApiError: ROUTE_OTP_NOT_CONFIGURED, ROUTE_OTP_DAILY_LIMIT,
                ROUTE_OTP_COOLDOWN, or a delivery error from the sender.
        """
        policy = self.require_policy(route_key)
        now = self.now()
        window_start = now - SEND_WINDOW

        sent_in_window = await self.repository.count_challenges_since(
            owner_user_id, route_key, window_start
        )
        if sent_in_window >= policy.max_sends_per_24_hours:
            oldest = await self.repository.get_oldest_challenge_since(
                owner_user_id, route_key, window_start
            )
            resets_at = (oldest.created_at if oldest else now) + SEND_WINDOW
            logger.info(
                "Daily OTP limit reached for user %s on route %s",
                owner_user_id, route_key.value,
            )
            raise ApiError(
                status.HTTP_429_TOO_MANY_REQUESTS,
                "ROUTE_OTP_DAILY_LIMIT",
                "Daily verification email limit reached",
                details={"limitResetsAt": resets_at.isoformat()},
                headers={"Retry-After": _retry_after_seconds(resets_at, now)},
            )

        latest = await self.repository.get_latest_challenge(owner_user_id, route_key)
        if latest is not None:
            resend_available_at = latest.created_at + policy.resend_cooldown
            if resend_available_at > now:
                raise ApiError(
                    status.HTTP_429_TOO_MANY_REQUESTS,
                    "ROUTE_OTP_COOLDOWN",
                    "Please wait before requesting another verification code",
                    details={"resendAvailableAt": resend_available_at.isoformat()},
                    headers={"Retry-After": _retry_after_seconds(resend_available_at, now)},
                )

        code = generate_otp()
        salt = generate_salt()
        challenge_expires_at = now + policy.challenge_ttl

        await self.repository.invalidate_active_challenges(owner_user_id, route_key, now)
        challenge = await self.repository.create_challenge(
            owner_user_id=owner_user_id,
            route_key=route_key,
            code_hash=hash_otp(salt, code),
            code_salt=salt,
            max_attempts=policy.max_attempts,
            expires_at=challenge_expires_at,
            now=now,
            ip_address=ip_address,
            user_agent=user_agent,
        )

        try:
            await self.email_sender.send_route_otp(
                RouteOtpEmail(
                    owner_user_id=owner_user_id,
                    email=email,
                    route_key=route_key,
                    challenge_id=challenge.id,
                    code=code,
                    expires_in_hours=policy.ttl_hours,
                )
            )
        except Exception:
            # Undo the invalidate + insert so the previous code stays usable
            await self.repository.rollback()
            raise

        await self.repository.commit()
        logger.info(
            "Issued route OTP challenge %s for user %s on route %s",
            challenge.id, owner_user_id, route_key.value,
        )

        return RouteAccessSendResponse(
            route_key=route_key,
            challenge_expires_at=challenge_expires_at,
            resend_available_at=now + policy.resend_cooldown,
            remaining_sends_24h=max(0, policy.max_sends_per_24_hours - (sent_in_window + 1)),
        )

    # ============== Verify ==============

    async def verify_email_otp(
        self, owner_user_id: uuid.UUID, route_key: RouteKey, code: str
    ) -> RouteAccessVerifyResponse:
        """
        Check a submitted code and grant access to the route on success.

        Raises:
            ApiError: ROUTE_OTP_NOT_CONFIGURED or ROUTE_OTP_INVALID_OR_EXPIRED.
        """
        policy = self.require_policy(route_key)
        normalized = normalize_otp(code)
        if normalized is None:
            raise invalid_or_expired()

        now = self.now()
        challenge = await self.repository.get_latest_challenge(owner_user_id, route_key)
        if challenge is None:
            raise invalid_or_expired()

        challenge_status = challenge.status_at(now)
        if challenge_status is not ChallengeStatus.ACTIVE:
            logger.info(
                "Rejected OTP for user %s on route %s: challenge %s is %s",
                owner_user_id, route_key.value, challenge.id, challenge_status.value,
            )
            raise invalid_or_expired()

        if not verify_otp(challenge.code_salt, normalized, challenge.code_hash):
            attempt_count = await self.repository.register_failed_attempt(challenge.id, now)
            # Persist the attempt before the error response rolls the request back
            await self.repository.commit()
            if attempt_count is None:
                raise invalid_or_expired()
            logger.info(
                "Wrong OTP for challenge %s (attempt %d/%d)",
                challenge.id, attempt_count, challenge.max_attempts,
            )
            raise invalid_or_expired(max(0, challenge.max_attempts - attempt_count))

        if not await self.repository.consume_challenge(challenge.id, now):
            await self.repository.rollback()
            raise invalid_or_expired()

        grant = await self.repository.upsert_grant(
            owner_user_id=owner_user_id,
            route_key=route_key,
            method=policy.method,
            verified_at=now,
            expires_at=now + policy.grant_ttl,
        )
        await self.repository.commit()
        logger.info(
            "User %s verified route %s until %s",
            owner_user_id, route_key.value, grant.expires_at.isoformat(),
        )

        return RouteAccessVerifyResponse(
            route_key=route_key,
            verified=True,
            verification_expires_at=grant.expires_at,
        )

    # ============== Access ==============

    async def assert_route_access(self, owner_user_id: uuid.UUID, route_key: RouteKey) -> None:
        """
        Allow the request or raise ROUTE_VERIFICATION_REQUIRED.

        Routes without an enabled policy are always allowed. Expiry is
        judged now; an expired grant is treated exactly like a missing one.
        """
        policy = self.get_policy(route_key)
        if policy is None:
            return

        grant = await self.repository.get_grant(owner_user_id, route_key, policy.method)
        if grant is None or not grant.is_valid_at(self.now()):
            raise ApiError(
                status.HTTP_403_FORBIDDEN,
                "ROUTE_VERIFICATION_REQUIRED",
                "Route requires additional email verification",
                details={"routeKey": route_key.value},
            )

    async def revoke_route_access(self, owner_user_id: uuid.UUID, route_key: RouteKey) -> bool:
        """
        Revoke a user's grant for the route.

        Returns:
            bool: False if there was no unrevoked grant to revoke.
        """
        policy = self.require_policy(route_key)
        revoked = await self.repository.revoke_grant(
            owner_user_id, route_key, policy.method, self.now()
        )
        if revoked:
            await self.repository.commit()
            logger.info("Revoked route %s access for user %s", route_key.value, owner_user_id)
        return revoked
