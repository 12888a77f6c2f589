# cinema_api/services/session_service.py
import logging
import uuid
from datetime import timedelta
from typing import NamedTuple

from sqlmodel.ext.asyncio.session import AsyncSession

from cinema_api.core.config import get_settings
from cinema_api.core.security import as_utc, generate_session_token, get_expiration, utcnow
from cinema_api.models.session import UserSession
from cinema_api.models.user import User
from cinema_api.repositories.session_repo import SessionRepository

logger = logging.getLogger(__name__)


class SessionWithUser(NamedTuple):
    session: UserSession
    user: User


class SessionService:
    """
    Login sessions (one row per device/browser).

    Expiry is lazy: an expired row is deleted the moment someone tries to
    use it. cleanup_expired_sessions() exists for periodic hygiene but
    nothing depends on it running.
    """

    def __init__(self, repo: SessionRepository):
        self.repo = repo

    async def create_session(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        ip_address: str | None = None,
        user_agent: str | None = None,
        expires_in: timedelta | None = None,
    ) -> UserSession:
        """
        Issue a new bearer token for a user.

        expires_in defaults to SESSION_TTL_DAYS.
        """
        if expires_in is None:
            expires_in = timedelta(days=get_settings().SESSION_TTL_DAYS)

        user_session = UserSession(
            user_id=user_id,
            token=generate_session_token(),
            expires_at=get_expiration(expires_in),
            ip_address=ip_address,
            user_agent=user_agent,
        )
        return await self.repo.create(session, user_session)

    async def find_session_by_token(
        self, session: AsyncSession, token: str
    ) -> SessionWithUser | None:
        """
        Resolve a bearer token to (session, user).

        Expired sessions and sessions of soft-deleted users are deleted
        and reported as not found.
        """
        if not token:
            return None

        found = await self.repo.get_with_user(session, token)
        if found is None:
            return None

        user_session, user = found
        if as_utc(user_session.expires_at) <= utcnow() or user.deleted_at is not None:
            await self.repo.delete(session, user_session)
            return None

        return SessionWithUser(session=user_session, user=user)

    async def delete_session(self, session: AsyncSession, token: str) -> None:
        """Logout one session. Unknown tokens are a no-op."""
        user_session = await self.repo.get_by_token(session, token)
        if user_session is not None:
            await self.repo.delete(session, user_session)

    async def delete_all_user_sessions(
        self, session: AsyncSession, user_id: uuid.UUID
    ) -> int:
        """Logout everywhere. Returns how many sessions were removed."""
        rows = await self.repo.list_for_user(session, user_id)
        return await self.repo.delete_many(session, rows)

    async def cleanup_expired_sessions(self, session: AsyncSession) -> int:
        rows = await self.repo.list_expired(session, utcnow())
        removed = await self.repo.delete_many(session, rows)
        if removed:
            logger.info("Removed %s expired sessions", removed)
        return removed
