"""
Route Access Models

OTP challenges issued for step-up protected routes, and the grants a
successful verification produces.
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base
from app.models.enums import ChallengeStatus, StepUpMethod

if TYPE_CHECKING:
    from app.models.user import User


class RouteEmailOtpChallenge(Base):
    """
    One issued email verification code for a (user, route) pair.

    Attributes:
        id: UUID primary key.
        owner_user_id: User the code was sent to.
        route_key: Protected route the code unlocks.
        code_hash: SHA-256 hex digest of "salt:code" (never the plain code).
        code_salt: Random per-challenge salt.
        attempt_count: Failed verification attempts so far.
        max_attempts: Failed attempts allowed before the code is unusable.
        expires_at: When the code stops being accepted.
        invalidated_at: Set when a newer code superseded this one.
        consumed_at: Set when the code was verified.
        ip_address: Requester IP (diagnostic only).
        user_agent: Requester user agent (diagnostic only).
    """

    __tablename__ = "route_email_otp_challenges"
    __table_args__ = (
        Index(
            "route_email_otp_challenges_owner_route_created_idx",
            "owner_user_id",
            "route_key",
            "created_at",
        ),
        Index(
            "route_email_otp_challenges_owner_route_expires_idx",
            "owner_user_id",
            "route_key",
            "expires_at",
        ),
        Index("route_email_otp_challenges_expires_idx", "expires_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    owner_user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    route_key: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
    )
    code_hash: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
    )
    code_salt: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
    )
    attempt_count: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
    )
    max_attempts: Mapped[int] = mapped_column(
        Integer,
        default=5,
        nullable=False,
    )
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    invalidated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    consumed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    ip_address: Mapped[Optional[str]] = mapped_column(
        String(64),
        nullable=True,
    )
    user_agent: Mapped[Optional[str]] = mapped_column(
        String(512),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    owner: Mapped["User"] = relationship(
        "User",
        back_populates="route_otp_challenges",
        lazy="raise",
    )

    def status_at(self, now: datetime) -> ChallengeStatus:
        """
        Resolve the challenge state at the given instant.

        Terminal markers take precedence over passive expiry, so a code
        that was used and then ran out of time still reads as CONSUMED.
        """
        if self.consumed_at is not None:
            return ChallengeStatus.CONSUMED
        if self.invalidated_at is not None:
            return ChallengeStatus.INVALIDATED
        if self.attempt_count >= self.max_attempts:
            return ChallengeStatus.ATTEMPTS_EXHAUSTED
        if self.expires_at <= now:
            return ChallengeStatus.EXPIRED
        return ChallengeStatus.ACTIVE

    def is_active_at(self, now: datetime) -> bool:
        return self.status_at(now) is ChallengeStatus.ACTIVE

    @property
    def remaining_attempts(self) -> int:
        return max(0, self.max_attempts - self.attempt_count)

    def __repr__(self) -> str:
        return (
            f"<RouteEmailOtpChallenge(id={self.id}, owner_user_id={self.owner_user_id}, "
            f"route_key={self.route_key})>"
        )


class RouteAccessGrant(Base):
    """
    Proof that a user passed step-up verification for a route.

    There is at most one row per (owner, route, method); verifying again
    overwrites it in place.
    """

    __tablename__ = "route_access_grants"
    __table_args__ = (
        UniqueConstraint(
            "owner_user_id",
            "route_key",
            "method",
            name="route_access_grants_owner_route_method_unique",
        ),
        Index("route_access_grants_expires_idx", "expires_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    owner_user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    route_key: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
    )
    method: Mapped[StepUpMethod] = mapped_column(
        Enum(StepUpMethod, name="route_step_up_method", create_constraint=True),
        nullable=False,
    )
    verified_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    revoked_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    owner: Mapped["User"] = relationship(
        "User",
        back_populates="route_access_grants",
        lazy="raise",
    )

    def is_valid_at(self, now: datetime) -> bool:
        """A grant unlocks the route while unrevoked and unexpired."""
        return self.revoked_at is None and self.expires_at > now

    def __repr__(self) -> str:
        return (
            f"<RouteAccessGrant(id={self.id}, owner_user_id={self.owner_user_id}, "
            f"route_key={self.route_key}, expires_at={self.expires_at})>"
        )
