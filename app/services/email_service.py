"""
Email Service

Delivers route verification codes through the Resend HTTP API.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Protocol

import httpx
from fastapi import status

from app.core.config import Settings
from app.core.errors import ApiError
from app.core.http_client import RETRYABLE_STATUS_CODES, request_with_retry
from app.models.enums import RouteKey


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RouteOtpEmail:
    """Everything needed to send one route verification code."""
    owner_user_id: uuid.UUID
    email: str
    route_key: RouteKey
    challenge_id: uuid.UUID
    code: str
    expires_in_hours: int

    @property
    def idempotency_key(self) -> str:
        """Stable per challenge, so provider-side retries deliver once."""
        return f"route-otp/{self.owner_user_id}/{self.route_key.value}/{self.challenge_id}"


class EmailSender(Protocol):
    async def send_route_otp(self, message: RouteOtpEmail) -> None: ...


def delivery_failed() -> ApiError:
    return ApiError(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "EMAIL_DELIVERY_FAILED",
        "Unable to deliver verification email",
    )


def provider_not_configured() -> ApiError:
    return ApiError(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "EMAIL_PROVIDER_NOT_CONFIGURED",
        "Email provider is not configured",
    )


# ============== Templates ==============

def get_route_otp_email_subject() -> str:
    return "Salary Path verification code"


def get_route_otp_email_html(message: RouteOtpEmail) -> str:
    """Generate HTML content for a route verification email."""
    return f"""
    <!DOCTYPE html>
    <html>
    <head>
        <meta charset="utf-8">
        <style>
            body {{ font-family: Arial, sans-serif; line-height: 1.6; color: #374151; }}
            .container {{ max-width: 560px; margin: 32px auto; padding: 32px; border-radius: 12px; background: #ffffff; }}
            .otp-code {{ font-size: 28px; font-weight: 700; letter-spacing: 6px; font-family: monospace; }}
        </style>
    </head>
    <body>
        <div class="container">
            <h2>Verify access to {message.route_key.value}</h2>
            <p>Your verification code is:</p>
            <p class="otp-code">{message.code}</p>
            <p>This code expires in <strong>{message.expires_in_hours} hours</strong>.</p>
            <p>If you did not request this, you can ignore this email.</p>
        </div>
    </body>
    </html>
    """


def get_route_otp_email_text(message: RouteOtpEmail) -> str:
    """Generate plain text content for a route verification email."""
    return (
        f"Verify access to {message.route_key.value}. "
        f"Your verification code is {message.code}. "
        f"This code expires in {message.expires_in_hours} hours.\n\n"
        "If you did not request this, you can ignore this email."
    )


# ============== Senders ==============

class ResendEmailSender:
    """
    Sends verification emails via Resend.

    Rate limiting (429) and server errors (5xx) are retried with
    exponential backoff; any other failure is final. Provider responses are
    logged but never surfaced to the caller.
    """

    def __init__(self, client: httpx.AsyncClient, settings: Settings):
        self.client = client
        self.settings = settings

    async def send_route_otp(self, message: RouteOtpEmail) -> None:
        if not self.settings.email_provider_configured:
            raise provider_not_configured()

        payload = {
            "from": self.settings.RESEND_FROM_EMAIL.strip(),
            "to": [message.email],
            "subject": get_route_otp_email_subject(),
            "html": get_route_otp_email_html(message),
            "text": get_route_otp_email_text(message),
        }
        reply_to = self.settings.RESEND_REPLY_TO.strip()
        if reply_to:
            payload["reply_to"] = [reply_to]

        url = f"{self.settings.RESEND_API_URL.rstrip('/')}/emails"
        headers = {
            "Authorization": f"Bearer {self.settings.RESEND_API_KEY.strip()}",
            "Idempotency-Key": message.idempotency_key,
        }

        try:
            response = await request_with_retry(
                self.client,
                "POST",
                url,
                max_attempts=self.settings.EMAIL_SEND_MAX_ATTEMPTS,
                backoff_base=self.settings.EMAIL_RETRY_BACKOFF_SECONDS,
                retry_statuses=RETRYABLE_STATUS_CODES,
                json=payload,
                headers=headers,
            )
        except httpx.HTTPError as e:
            logger.error(
                "Route OTP email for challenge %s failed at transport level: %s",
                message.challenge_id, e,
            )
            raise delivery_failed() from e

        if response.status_code >= 400:
            logger.error(
                "Route OTP email for challenge %s rejected by provider: %s %s",
                message.challenge_id, response.status_code, response.text,
            )
            raise delivery_failed()

        logger.info(
            "Route OTP email sent for challenge %s (route=%s)",
            message.challenge_id, message.route_key.value,
        )


class LoggingEmailSender:
    """Development sender: writes the code to the log instead of emailing it."""

    async def send_route_otp(self, message: RouteOtpEmail) -> None:
        logger.info(
            "[DEV MODE] Route OTP for %s (route=%s): %s",
            message.email, message.route_key.value, message.code,
        )


def build_email_sender(settings: Settings, client: httpx.AsyncClient) -> EmailSender:
    """
    Choose the sender for this process.

    Development without Resend credentials logs codes instead; every other
    environment uses Resend and fails loudly if it is not configured.
    """
    if settings.is_development and not settings.email_provider_configured:
        logger.warning("Resend is not configured; route OTP codes will be logged")
        return LoggingEmailSender()
    return ResendEmailSender(client, settings)
