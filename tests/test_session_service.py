"""SessionService: issuing, resolving and revoking login sessions."""

import re
from datetime import timedelta

import pytest

from cinema_api.core.security import as_utc, utcnow
from cinema_api.repositories.session_repo import SessionRepository
from cinema_api.repositories.user_repo import UserRepository
from cinema_api.services.account_service import AccountService
from cinema_api.services.session_service import SessionService


@pytest.fixture
def accounts():
    return AccountService(UserRepository())


@pytest.fixture
def sessions():
    return SessionService(SessionRepository())


@pytest.fixture
async def user(accounts, session):
    return await accounts.create_user(session, email="viewer@example.com", password="correct-horse")


class TestCreateSession:
    async def test_defaults_to_thirty_days(self, sessions, session, user):
        before = utcnow()
        created = await sessions.create_session(
            session, user.id, ip_address="203.0.113.7", user_agent="pytest"
        )

        assert re.fullmatch(r"[0-9a-f]{64}", created.token)
        expires_at = as_utc(created.expires_at)
        assert before + timedelta(days=30) <= expires_at <= utcnow() + timedelta(days=30)
        assert created.ip_address == "203.0.113.7"
        assert created.user_agent == "pytest"

    async def test_each_session_gets_its_own_token(self, sessions, session, user):
        a = await sessions.create_session(session, user.id)
        b = await sessions.create_session(session, user.id)
        assert a.token != b.token


class TestFindSession:
    async def test_resolves_to_session_and_user(self, sessions, session, user):
        created = await sessions.create_session(session, user.id)
        found = await sessions.find_session_by_token(session, created.token)

        assert found is not None
        assert found.session.id == created.id
        assert found.user.id == user.id

    async def test_unknown_and_empty_tokens(self, sessions, session, user):
        assert await sessions.find_session_by_token(session, "f" * 64) is None
        assert await sessions.find_session_by_token(session, "") is None

    async def test_expired_session_is_deleted_on_lookup(self, sessions, session, user):
        created = await sessions.create_session(session, user.id, expires_in=timedelta(seconds=-1))

        assert await sessions.find_session_by_token(session, created.token) is None
        assert await sessions.repo.get_by_token(session, created.token) is None

    async def test_session_of_deleted_user_is_invalid(self, sessions, accounts, session, user):
        created = await sessions.create_session(session, user.id)
        await accounts.delete_user(session, user.id)

        assert await sessions.find_session_by_token(session, created.token) is None
        assert await sessions.repo.get_by_token(session, created.token) is None


class TestRevocation:
    async def test_delete_session(self, sessions, session, user):
        keep = await sessions.create_session(session, user.id)
        drop = await sessions.create_session(session, user.id)

        await sessions.delete_session(session, drop.token)

        assert await sessions.find_session_by_token(session, drop.token) is None
        assert await sessions.find_session_by_token(session, keep.token) is not None

    async def test_delete_unknown_session_is_a_no_op(self, sessions, session, user):
        await sessions.delete_session(session, "unknown")

    async def test_delete_all_user_sessions(self, sessions, accounts, session, user):
        other = await accounts.create_user(session, email="other@example.com", password="pw-123456")
        tokens = [(await sessions.create_session(session, user.id)).token for _ in range(3)]
        other_session = await sessions.create_session(session, other.id)

        assert await sessions.delete_all_user_sessions(session, user.id) == 3
        for token in tokens:
            assert await sessions.find_session_by_token(session, token) is None
        assert await sessions.find_session_by_token(session, other_session.token) is not None

    async def test_cleanup_expired_sessions(self, sessions, session, user):
        await sessions.create_session(session, user.id, expires_in=timedelta(minutes=-5))
        await sessions.create_session(session, user.id, expires_in=timedelta(minutes=-1))
        live = await sessions.create_session(session, user.id)

        assert await sessions.cleanup_expired_sessions(session) == 2
        assert await sessions.find_session_by_token(session, live.token) is not None
