# cinema_api/services/token_service.py
import uuid
from datetime import timedelta
from typing import Generic, NamedTuple, TypeVar

from sqlmodel.ext.asyncio.session import AsyncSession

from cinema_api.core.config import get_settings
from cinema_api.core.security import as_utc, generate_token, get_expiration, utcnow
from cinema_api.models.tokens import (
    EmailVerificationToken,
    PasswordResetToken,
    SingleUseTokenBase,
)
from cinema_api.models.user import User
from cinema_api.repositories.token_repo import SingleUseTokenRepository

TokenT = TypeVar("TokenT", bound=SingleUseTokenBase)


class TokenWithUser(NamedTuple):
    token: SingleUseTokenBase
    user: User


class SingleUseTokenService(Generic[TokenT]):
    """
    issued -> consumed | expired, never back.

    Responsibilities:
      - at most one outstanding token per user (issuing replaces)
      - "not found", "expired" and "already used" all look the same to
        callers (None)
      - consumption happens once, even under concurrent requests
    """

    def __init__(self, repo: SingleUseTokenRepository[TokenT], ttl: timedelta):
        self.repo = repo
        self.ttl = ttl

    async def create(self, session: AsyncSession, user_id: uuid.UUID) -> TokenT:
        token = self.repo.model(
            user_id=user_id,
            token=generate_token(),
            expires_at=get_expiration(self.ttl),
        )
        return await self.repo.replace_for_user(session, user_id, token)

    async def find_valid(self, session: AsyncSession, token: str) -> TokenWithUser | None:
        if not token:
            return None

        found = await self.repo.get_with_user(session, token)
        if found is None:
            return None

        row, user = found
        if row.used_at is not None:
            return None
        if as_utc(row.expires_at) < utcnow():
            return None
        if user.deleted_at is not None:
            return None
        return TokenWithUser(token=row, user=user)

    async def mark_used(self, session: AsyncSession, token_id: uuid.UUID) -> bool:
        """True if this call consumed the token, False if it was already used or missing."""
        return await self.repo.mark_used(session, token_id, utcnow())

    async def purge_user_tokens(self, session: AsyncSession, user_id: uuid.UUID) -> int:
        rows = await self.repo.list_for_user(session, user_id)
        return await self.repo.delete_many(session, rows)

    async def cleanup_expired_tokens(self, session: AsyncSession) -> int:
        rows = await self.repo.list_expired(session, utcnow())
        return await self.repo.delete_many(session, rows)


class PasswordResetService(SingleUseTokenService[PasswordResetToken]):
    """Forgot-password tokens (PASSWORD_RESET_TOKEN_TTL_MINUTES, 1 hour by default)."""

    def __init__(self, repo: SingleUseTokenRepository[PasswordResetToken] | None = None):
        super().__init__(
            repo or SingleUseTokenRepository(PasswordResetToken),
            timedelta(minutes=get_settings().PASSWORD_RESET_TOKEN_TTL_MINUTES),
        )

    async def create_password_reset_token(
        self, session: AsyncSession, user_id: uuid.UUID
    ) -> PasswordResetToken:
        return await self.create(session, user_id)

    async def find_valid_password_reset_token(
        self, session: AsyncSession, token: str
    ) -> TokenWithUser | None:
        return await self.find_valid(session, token)

    async def mark_password_reset_token_used(
        self, session: AsyncSession, token_id: uuid.UUID
    ) -> bool:
        return await self.mark_used(session, token_id)


class EmailVerificationService(SingleUseTokenService[EmailVerificationToken]):
    """Email ownership tokens (EMAIL_VERIFICATION_TOKEN_TTL_HOURS, 24 hours by default)."""

    def __init__(
        self, repo: SingleUseTokenRepository[EmailVerificationToken] | None = None
    ):
        super().__init__(
            repo or SingleUseTokenRepository(EmailVerificationToken),
            timedelta(hours=get_settings().EMAIL_VERIFICATION_TOKEN_TTL_HOURS),
        )

    async def create_email_verification_token(
        self, session: AsyncSession, user_id: uuid.UUID
    ) -> EmailVerificationToken:
        return await self.create(session, user_id)

    async def find_valid_email_verification_token(
        self, session: AsyncSession, token: str
    ) -> TokenWithUser | None:
        return await self.find_valid(session, token)

    async def mark_email_verification_token_used(
        self, session: AsyncSession, token_id: uuid.UUID
    ) -> bool:
        return await self.mark_used(session, token_id)

    async def verify_user_email(
        self, session: AsyncSession, token_id: uuid.UUID, user_id: uuid.UUID
    ) -> User | None:
        """
        Consume the token and mark the user's email verified, together.

        Returns None if neither was applied.
        """
        return await self.repo.mark_used_and_verify_email(
            session, token_id, user_id, utcnow()
        )
