"""
Route Access Repository Tests

Checks the SQL the repository hands to the session, compiled for PostgreSQL.
"""

import uuid
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest
from sqlalchemy.dialects import postgresql

from app.models.enums import RouteKey, StepUpMethod
from app.models.route_access import RouteEmailOtpChallenge
from app.repositories.route_access import SqlAlchemyRouteAccessRepository


NOW = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)
OWNER = uuid.UUID("5b1f3c0e-6a44-4b8e-9a63-2f7f0e3b8d11")


def compiled(statement) -> str:
    return " ".join(str(statement.compile(dialect=postgresql.dialect())).split())


def executed_sql(session) -> str:
    return compiled(session.execute.await_args.args[0])


def result_returning(value) -> MagicMock:
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    return result


@pytest.fixture
def repository(mock_async_session) -> SqlAlchemyRouteAccessRepository:
    return SqlAlchemyRouteAccessRepository(mock_async_session)


class TestChallengeQueries:
    @pytest.mark.asyncio
    async def test_latest_challenge_is_newest_for_owner_and_route(self, repository, mock_async_session):
        mock_async_session.execute.return_value = result_returning(None)

        assert await repository.get_latest_challenge(OWNER, RouteKey.COMPARISON) is None

        sql = executed_sql(mock_async_session)
        assert "FROM route_email_otp_challenges" in sql
        assert "route_email_otp_challenges.owner_user_id = " in sql
        assert "route_email_otp_challenges.route_key = " in sql
        assert "ORDER BY route_email_otp_challenges.created_at DESC" in sql
        assert "LIMIT" in sql

    @pytest.mark.asyncio
    async def test_count_since(self, repository, mock_async_session):
        mock_async_session.scalar.return_value = 2

        count = await repository.count_challenges_since(OWNER, RouteKey.COMPARISON, NOW - timedelta(hours=24))

        assert count == 2
        sql = compiled(mock_async_session.scalar.await_args.args[0])
        assert sql.startswith("SELECT count(*) AS count_1 FROM route_email_otp_challenges")
        assert "route_email_otp_challenges.created_at >= " in sql

    @pytest.mark.asyncio
    async def test_count_since_handles_null(self, repository, mock_async_session):
        mock_async_session.scalar.return_value = None

        assert await repository.count_challenges_since(OWNER, RouteKey.COMPARISON, NOW) == 0

    @pytest.mark.asyncio
    async def test_oldest_since_orders_ascending(self, repository, mock_async_session):
        mock_async_session.execute.return_value = result_returning(None)

        await repository.get_oldest_challenge_since(OWNER, RouteKey.COMPARISON, NOW)

        assert "ORDER BY route_email_otp_challenges.created_at ASC" in executed_sql(mock_async_session)

    @pytest.mark.asyncio
    async def test_invalidate_only_touches_live_challenges(self, repository, mock_async_session):
        result = MagicMock()
        result.rowcount = 1
        mock_async_session.execute.return_value = result

        assert await repository.invalidate_active_challenges(OWNER, RouteKey.COMPARISON, NOW) == 1

        sql = executed_sql(mock_async_session)
        assert sql.startswith("UPDATE route_email_otp_challenges SET invalidated_at=")
        assert "route_email_otp_challenges.invalidated_at IS NULL" in sql
        assert "route_email_otp_challenges.consumed_at IS NULL" in sql
        assert "route_email_otp_challenges.expires_at > " in sql

    @pytest.mark.asyncio
    async def test_create_challenge_adds_and_flushes(self, repository, mock_async_session):
        challenge = await repository.create_challenge(
            owner_user_id=OWNER,
            route_key=RouteKey.COMPARISON,
            code_hash="a" * 64,
            code_salt="b" * 32,
            max_attempts=5,
            expires_at=NOW + timedelta(hours=5),
            now=NOW,
            ip_address="203.0.113.9",
        )

        assert isinstance(challenge, RouteEmailOtpChallenge)
        assert challenge.route_key == "comparison"
        assert challenge.attempt_count == 0
        assert challenge.created_at == NOW
        mock_async_session.add.assert_called_once_with(challenge)
        mock_async_session.flush.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failed_attempt_is_a_guarded_increment(self, repository, mock_async_session):
        mock_async_session.execute.return_value = result_returning(3)

        assert await repository.register_failed_attempt(uuid.uuid4(), NOW) == 3

        sql = executed_sql(mock_async_session)
        assert "SET attempt_count=(route_email_otp_challenges.attempt_count + " in sql
        assert (
            "route_email_otp_challenges.attempt_count < route_email_otp_challenges.max_attempts" in sql
        )
        assert sql.endswith("RETURNING route_email_otp_challenges.attempt_count")

    @pytest.mark.asyncio
    async def test_consume_requires_unexpired_unused_challenge(self, repository, mock_async_session):
        mock_async_session.execute.return_value = result_returning(None)

        assert await repository.consume_challenge(uuid.uuid4(), NOW) is False

        sql = executed_sql(mock_async_session)
        assert "SET consumed_at=" in sql
        assert "route_email_otp_challenges.consumed_at IS NULL" in sql
        assert "route_email_otp_challenges.expires_at > " in sql
        assert sql.endswith("RETURNING route_email_otp_challenges.id")


class TestGrantQueries:
    @pytest.mark.asyncio
    async def test_upsert_targets_unique_constraint(self, repository, mock_async_session):
        grant = MagicMock()
        scalars = MagicMock()
        scalars.one.return_value = grant
        mock_async_session.scalars.return_value = scalars

        result = await repository.upsert_grant(
            owner_user_id=OWNER,
            route_key=RouteKey.COMPARISON,
            method=StepUpMethod.EMAIL_OTP,
            verified_at=NOW,
            expires_at=NOW + timedelta(hours=5),
        )

        assert result is grant
        call = mock_async_session.scalars.await_args
        assert call.kwargs["execution_options"] == {"populate_existing": True}
        sql = compiled(call.args[0])
        assert sql.startswith("INSERT INTO route_access_grants")
        assert "ON CONFLICT ON CONSTRAINT route_access_grants_owner_route_method_unique DO UPDATE SET" in sql
        assert "RETURNING route_access_grants.id" in sql

    @pytest.mark.asyncio
    async def test_revoke_only_unrevoked(self, repository, mock_async_session):
        mock_async_session.execute.return_value = result_returning(uuid.uuid4())

        assert await repository.revoke_grant(OWNER, RouteKey.COMPARISON, StepUpMethod.EMAIL_OTP, NOW) is True

        sql = executed_sql(mock_async_session)
        assert sql.startswith("UPDATE route_access_grants SET revoked_at=")
        assert "route_access_grants.revoked_at IS NULL" in sql
        assert "route_access_grants.method = " in sql


class TestUnitOfWork:
    @pytest.mark.asyncio
    async def test_commit_and_rollback_delegate_to_session(self, repository, mock_async_session):
        await repository.commit()
        await repository.rollback()

        mock_async_session.commit.assert_awaited_once()
        mock_async_session.rollback.assert_awaited_once()
