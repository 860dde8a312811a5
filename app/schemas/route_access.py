"""
Route Access Schemas

Pydantic models for the route step-up endpoints. Field names are
snake_case in Python and camelCase on the wire.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from app.models.enums import RouteKey
from app.services.otp_service import normalize_otp


class CamelModel(BaseModel):
    """Base model serialising to camelCase and accepting either form."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RouteAccessSendRequest(CamelModel):
    """Schema for requesting a verification code."""

    route_key: RouteKey = Field(..., description="Protected route to unlock")


class RouteAccessVerifyRequest(CamelModel):
    """Schema for submitting a verification code."""

    route_key: RouteKey = Field(..., description="Protected route to unlock")
    code: str = Field(..., description="6-digit verification code")

    @field_validator("code")
    @classmethod
    def code_must_be_six_digits(cls, value: str) -> str:
        normalized = normalize_otp(value)
        if normalized is None:
            raise ValueError("Verification code must contain exactly 6 digits")
        return normalized


class RouteAccessSendResponse(CamelModel):
    """Schema for a successfully issued verification code."""

    route_key: RouteKey
    challenge_expires_at: datetime
    resend_available_at: datetime
    remaining_sends_24h: int = Field(..., alias="remainingSends24h")


class RouteAccessVerifyResponse(CamelModel):
    """Schema for a successful verification."""

    route_key: RouteKey
    verified: Literal[True] = True
    verification_expires_at: datetime


class RouteAccessStatusResponse(CamelModel):
    """Schema for the current step-up state of a route."""

    route_key: RouteKey
    required: bool
    verified: bool
    verification_expires_at: Optional[datetime] = None
    challenge_active: bool
    challenge_expires_at: Optional[datetime] = None
    remaining_sends_24h: int = Field(..., alias="remainingSends24h")
    resend_available_at: Optional[datetime] = None
