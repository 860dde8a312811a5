"""
Route Access Repository

All queries against route_email_otp_challenges and route_access_grants.

State transitions are single conditional UPDATE statements so that two
requests racing on the same challenge cannot both win.
"""

import uuid
from datetime import datetime
from typing import Optional, Protocol

from sqlalchemy import and_, func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import RouteKey, StepUpMethod
from app.models.route_access import RouteAccessGrant, RouteEmailOtpChallenge


class RouteAccessRepository(Protocol):
    """Storage operations the route access service depends on."""

    async def get_latest_challenge(
        self, owner_user_id: uuid.UUID, route_key: RouteKey
    ) -> Optional[RouteEmailOtpChallenge]: ...

    async def count_challenges_since(
        self, owner_user_id: uuid.UUID, route_key: RouteKey, since: datetime
    ) -> int: ...

    async def get_oldest_challenge_since(
        self, owner_user_id: uuid.UUID, route_key: RouteKey, since: datetime
    ) -> Optional[RouteEmailOtpChallenge]: ...

    async def invalidate_active_challenges(
        self, owner_user_id: uuid.UUID, route_key: RouteKey, now: datetime
    ) -> int: ...

    async def create_challenge(
        self,
        *,
        owner_user_id: uuid.UUID,
        route_key: RouteKey,
        code_hash: str,
        code_salt: str,
        max_attempts: int,
        expires_at: datetime,
        now: datetime,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> RouteEmailOtpChallenge: ...

    async def register_failed_attempt(
        self, challenge_id: uuid.UUID, now: datetime
    ) -> Optional[int]: ...

    async def consume_challenge(self, challenge_id: uuid.UUID, now: datetime) -> bool: ...

    async def get_grant(
        self, owner_user_id: uuid.UUID, route_key: RouteKey, method: StepUpMethod
    ) -> Optional[RouteAccessGrant]: ...

    async def upsert_grant(
        self,
        *,
        owner_user_id: uuid.UUID,
        route_key: RouteKey,
        method: StepUpMethod,
        verified_at: datetime,
        expires_at: datetime,
    ) -> RouteAccessGrant: ...

    async def revoke_grant(
        self,
        owner_user_id: uuid.UUID,
        route_key: RouteKey,
        method: StepUpMethod,
        now: datetime,
    ) -> bool: ...

    async def commit(self) -> None: ...

    async def rollback(self) -> None: ...


def _owned_by(owner_user_id: uuid.UUID, route_key: RouteKey):
    return and_(
        RouteEmailOtpChallenge.owner_user_id == owner_user_id,
        RouteEmailOtpChallenge.route_key == route_key.value,
    )


class SqlAlchemyRouteAccessRepository:
    """RouteAccessRepository backed by an async SQLAlchemy session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ============== Challenges ==============

    async def get_latest_challenge(
        self, owner_user_id: uuid.UUID, route_key: RouteKey
    ) -> Optional[RouteEmailOtpChallenge]:
        result = await self.db.execute(
            select(RouteEmailOtpChallenge)
            .where(_owned_by(owner_user_id, route_key))
            .order_by(RouteEmailOtpChallenge.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def count_challenges_since(
        self, owner_user_id: uuid.UUID, route_key: RouteKey, since: datetime
    ) -> int:
        total = await self.db.scalar(
            select(func.count())
            .select_from(RouteEmailOtpChallenge)
            .where(
                and_(
                    _owned_by(owner_user_id, route_key),
                    RouteEmailOtpChallenge.created_at >= since,
                )
            )
        )
        return int(total or 0)

    async def get_oldest_challenge_since(
        self, owner_user_id: uuid.UUID, route_key: RouteKey, since: datetime
    ) -> Optional[RouteEmailOtpChallenge]:
        result = await self.db.execute(
            select(RouteEmailOtpChallenge)
            .where(
                and_(
                    _owned_by(owner_user_id, route_key),
                    RouteEmailOtpChallenge.created_at >= since,
                )
            )
            .order_by(RouteEmailOtpChallenge.created_at.asc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def invalidate_active_challenges(
        self, owner_user_id: uuid.UUID, route_key: RouteKey, now: datetime
    ) -> int:
        result = await self.db.execute(
            update(RouteEmailOtpChallenge)
            .where(
                and_(
                    _owned_by(owner_user_id, route_key),
                    RouteEmailOtpChallenge.invalidated_at.is_(None),
                    RouteEmailOtpChallenge.consumed_at.is_(None),
                    RouteEmailOtpChallenge.expires_at > now,
                )
            )
            .values(invalidated_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    async def create_challenge(
        self,
        *,
        owner_user_id: uuid.UUID,
        route_key: RouteKey,
        code_hash: str,
        code_salt: str,
        max_attempts: int,
        expires_at: datetime,
        now: datetime,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> RouteEmailOtpChallenge:
        challenge = RouteEmailOtpChallenge(
            id=uuid.uuid4(),
            owner_user_id=owner_user_id,
            route_key=route_key.value,
            code_hash=code_hash,
            code_salt=code_salt,
            attempt_count=0,
            max_attempts=max_attempts,
            expires_at=expires_at,
            ip_address=ip_address,
            user_agent=user_agent,
            created_at=now,
            updated_at=now,
        )
        self.db.add(challenge)
        await self.db.flush()
        return challenge

    async def register_failed_attempt(
        self, challenge_id: uuid.UUID, now: datetime
    ) -> Optional[int]:
        """
        Count one failed attempt against a still-usable challenge.

        Returns:
            The new attempt count, or None if the challenge was no longer
            usable (consumed, superseded or already exhausted).
        """
        result = await self.db.execute(
            update(RouteEmailOtpChallenge)
            .where(
                and_(
                    RouteEmailOtpChallenge.id == challenge_id,
                    RouteEmailOtpChallenge.consumed_at.is_(None),
                    RouteEmailOtpChallenge.invalidated_at.is_(None),
                    RouteEmailOtpChallenge.attempt_count < RouteEmailOtpChallenge.max_attempts,
                )
            )
            .values(
                attempt_count=RouteEmailOtpChallenge.attempt_count + 1,
                updated_at=now,
            )
            .returning(RouteEmailOtpChallenge.attempt_count)
            .execution_options(synchronize_session=False)
        )
        return result.scalar_one_or_none()

    async def consume_challenge(self, challenge_id: uuid.UUID, now: datetime) -> bool:
        result = await self.db.execute(
            update(RouteEmailOtpChallenge)
            .where(
                and_(
                    RouteEmailOtpChallenge.id == challenge_id,
                    RouteEmailOtpChallenge.consumed_at.is_(None),
                    RouteEmailOtpChallenge.invalidated_at.is_(None),
                    RouteEmailOtpChallenge.attempt_count < RouteEmailOtpChallenge.max_attempts,
                    RouteEmailOtpChallenge.expires_at > now,
                )
            )
            .values(consumed_at=now, updated_at=now)
            .returning(RouteEmailOtpChallenge.id)
            .execution_options(synchronize_session=False)
        )
        return result.scalar_one_or_none() is not None

    # ============== Grants ==============

    async def get_grant(
        self, owner_user_id: uuid.UUID, route_key: RouteKey, method: StepUpMethod
    ) -> Optional[RouteAccessGrant]:
        result = await self.db.execute(
            select(RouteAccessGrant).where(
                and_(
                    RouteAccessGrant.owner_user_id == owner_user_id,
                    RouteAccessGrant.route_key == route_key.value,
                    RouteAccessGrant.method == method,
                )
            )
        )
        return result.scalar_one_or_none()

    async def upsert_grant(
        self,
        *,
        owner_user_id: uuid.UUID,
        route_key: RouteKey,
        method: StepUpMethod,
        verified_at: datetime,
        expires_at: datetime,
    ) -> RouteAccessGrant:
        stmt = (
            pg_insert(RouteAccessGrant)
            .values(
                id=uuid.uuid4(),
                owner_user_id=owner_user_id,
                route_key=route_key.value,
                method=method,
                verified_at=verified_at,
                expires_at=expires_at,
                revoked_at=None,
                created_at=verified_at,
                updated_at=verified_at,
            )
            .on_conflict_do_update(
                constraint="route_access_grants_owner_route_method_unique",
                set_={
                    "verified_at": verified_at,
                    "expires_at": expires_at,
                    "revoked_at": None,
                    "updated_at": verified_at,
                },
            )
            .returning(RouteAccessGrant)
        )
        result = await self.db.scalars(
            stmt, execution_options={"populate_existing": True}
        )
        return result.one()

    async def revoke_grant(
        self,
        owner_user_id: uuid.UUID,
        route_key: RouteKey,
        method: StepUpMethod,
        now: datetime,
    ) -> bool:
        result = await self.db.execute(
            update(RouteAccessGrant)
            .where(
                and_(
                    RouteAccessGrant.owner_user_id == owner_user_id,
                    RouteAccessGrant.route_key == route_key.value,
                    RouteAccessGrant.method == method,
                    RouteAccessGrant.revoked_at.is_(None),
                )
            )
            .values(revoked_at=now, updated_at=now)
            .returning(RouteAccessGrant.id)
            .execution_options(synchronize_session=False)
        )
        return result.scalar_one_or_none() is not None

    # ============== Unit of work ==============

    async def commit(self) -> None:
        await self.db.commit()

    async def rollback(self) -> None:
        await self.db.rollback()
