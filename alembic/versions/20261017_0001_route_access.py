"""create users and route access tables

Revision ID: 0001_route_access
Revises:
Create Date: 2026-10-17 12:00:00
"""

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql


revision = "0001_route_access"
down_revision = None
branch_labels = None
depends_on = None


step_up_method = postgresql.ENUM("EMAIL_OTP", name="route_step_up_method", create_type=False)


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("role", sa.String(255), nullable=False, server_default="user"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "route_email_otp_challenges",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "owner_user_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("route_key", sa.String(64), nullable=False),
        sa.Column("code_hash", sa.String(64), nullable=False),
        sa.Column("code_salt", sa.String(64), nullable=False),
        sa.Column("attempt_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("max_attempts", sa.Integer(), nullable=False, server_default="5"),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("invalidated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("consumed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("ip_address", sa.String(64), nullable=True),
        sa.Column("user_agent", sa.String(512), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index(
        "route_email_otp_challenges_owner_route_created_idx",
        "route_email_otp_challenges",
        ["owner_user_id", "route_key", "created_at"],
    )
    op.create_index(
        "route_email_otp_challenges_owner_route_expires_idx",
        "route_email_otp_challenges",
        ["owner_user_id", "route_key", "expires_at"],
    )
    op.create_index(
        "route_email_otp_challenges_expires_idx",
        "route_email_otp_challenges",
        ["expires_at"],
    )

    step_up_method.create(op.get_bind(), checkfirst=True)
    op.create_table(
        "route_access_grants",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "owner_user_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("route_key", sa.String(64), nullable=False),
        sa.Column("method", step_up_method, nullable=False),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint(
            "owner_user_id",
            "route_key",
            "method",
            name="route_access_grants_owner_route_method_unique",
        ),
    )
    op.create_index("route_access_grants_expires_idx", "route_access_grants", ["expires_at"])


def downgrade() -> None:
    op.drop_index("route_access_grants_expires_idx", table_name="route_access_grants")
    op.drop_table("route_access_grants")
    step_up_method.drop(op.get_bind(), checkfirst=True)

    op.drop_index("route_email_otp_challenges_expires_idx", table_name="route_email_otp_challenges")
    op.drop_index("route_email_otp_challenges_owner_route_expires_idx", table_name="route_email_otp_challenges")
    op.drop_index("route_email_otp_challenges_owner_route_created_idx", table_name="route_email_otp_challenges")
    op.drop_table("route_email_otp_challenges")

    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
