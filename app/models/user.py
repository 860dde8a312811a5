"""
User Model

Identity row owned by the identity provider. Route access records
reference it and are removed with it.
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import String, DateTime, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base

if TYPE_CHECKING:
    from app.models.route_access import RouteAccessGrant, RouteEmailOtpChallenge


class User(Base):
    """
    User model.

    Attributes:
        id: UUID primary key, also the JWT subject.
        email: Unique email address, indexed for fast lookups.
        name: Display name.
        role: Role claim exactly as the identity provider stores it
            (a delimited token list); parse it with parse_role_tokens.
        created_at: Account creation timestamp.
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        index=True,
        nullable=False,
    )
    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    role: Mapped[str] = mapped_column(
        String(255),
        default="user",
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    # Relationships
    route_otp_challenges: Mapped[list["RouteEmailOtpChallenge"]] = relationship(
        "RouteEmailOtpChallenge",
        back_populates="owner",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="raise",
    )
    route_access_grants: Mapped[list["RouteAccessGrant"]] = relationship(
        "RouteAccessGrant",
        back_populates="owner",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="raise",
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email})>"
