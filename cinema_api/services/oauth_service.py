# cinema_api/services/oauth_service.py
import logging
import uuid
from datetime import datetime, timedelta
from typing import NamedTuple

from sqlalchemy.exc import IntegrityError
from sqlmodel.ext.asyncio.session import AsyncSession

from cinema_api.core.exceptions import OAuthAccountConflictError
from cinema_api.core.oauth import OAuthProvider
from cinema_api.core.security import utcnow
from cinema_api.models.oauth_account import OAuthAccount
from cinema_api.models.user import User
from cinema_api.repositories.oauth_repo import OAuthAccountRepository
from cinema_api.services.account_service import AccountService

logger = logging.getLogger(__name__)


class OAuthAccountWithUser(NamedTuple):
    account: OAuthAccount
    user: User


class OAuthService:
    """
    Links between local users and external identity providers.

    Responsibilities:
      - (provider, provider_account_id) links to exactly one user
      - storing/refreshing provider tokens
      - the sign-in orchestration after a provider callback

    Unlinking never deletes the user; callers make sure a user keeps at
    least one way to log in.
    """

    def __init__(self, repo: OAuthAccountRepository, accounts: AccountService):
        self.repo = repo
        self.accounts = accounts

    async def link_oauth_account(
        self,
        session: AsyncSession,
        *,
        user_id: uuid.UUID,
        provider: str,
        provider_account_id: str,
        access_token: str | None = None,
        refresh_token: str | None = None,
        expires_at: datetime | None = None,
    ) -> OAuthAccount:
        """
        Link a provider identity to a user.

        Linking the same identity to the same user again refreshes the
        stored tokens.

        Raises:
            OAuthAccountConflictError: the identity belongs to another user.
        """
        existing = await self.repo.get_by_provider_id(session, provider, provider_account_id)
        if existing is not None:
            if existing.user_id != user_id:
                raise OAuthAccountConflictError(
                    "This provider account is already linked to another user"
                )
            return await self.update_oauth_tokens(
                session, existing.id, access_token, refresh_token, expires_at
            ) or existing

        link = OAuthAccount(
            user_id=user_id,
            provider=provider,
            provider_account_id=provider_account_id,
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=expires_at,
        )
        try:
            return await self.repo.create(session, link)
        except IntegrityError:
            await session.rollback()
            raise OAuthAccountConflictError(
                "This provider account is already linked to another user"
            )

    async def find_oauth_account(
        self, session: AsyncSession, provider: str, provider_account_id: str
    ) -> OAuthAccountWithUser | None:
        found = await self.repo.get_with_user(session, provider, provider_account_id)
        if found is None:
            return None
        return OAuthAccountWithUser(account=found[0], user=found[1])

    async def list_user_oauth_accounts(
        self, session: AsyncSession, user_id: uuid.UUID
    ) -> list[OAuthAccount]:
        return await self.repo.list_for_user(session, user_id)

    async def update_oauth_tokens(
        self,
        session: AsyncSession,
        link_id: uuid.UUID,
        access_token: str | None,
        refresh_token: str | None = None,
        expires_at: datetime | None = None,
    ) -> OAuthAccount | None:
        """Providers often omit the refresh token on repeat sign-ins; None keeps the stored one."""
        link = await self.repo.get_by_id(session, link_id)
        if link is None:
            return None
        link.access_token = access_token
        if refresh_token is not None:
            link.refresh_token = refresh_token
        if expires_at is not None:
            link.expires_at = expires_at
        link.updated_at = utcnow()
        return await self.repo.update(session, link)

    async def unlink_oauth_account(self, session: AsyncSession, link_id: uuid.UUID) -> None:
        link = await self.repo.get_by_id(session, link_id)
        if link is not None:
            await self.repo.delete(session, link)

    async def unlink_all_for_user(self, session: AsyncSession, user_id: uuid.UUID) -> int:
        return await self.repo.clear_for_user(session, user_id)

    # ----- Sign-in flow -----

    async def complete_sign_in(
        self,
        session: AsyncSession,
        provider: OAuthProvider,
        code: str,
        redirect_uri: str,
    ) -> User | None:
        """
        Finish an authorization-code flow and return the local user.

        Steps:
          1. Exchange the code for provider tokens.
          2. Fetch the provider identity.
          3. Known identity => refresh its tokens, use its user.
          4. Otherwise reuse the live user with the same email, or create
             an OAuth-only user, then link the identity.

        Returns None if the linked account was soft-deleted.
        """
        tokens = await provider.exchange_code_for_tokens(code, redirect_uri)
        info = await provider.get_user_info(tokens.access_token)
        expires_at = utcnow() + timedelta(seconds=tokens.expires_in)

        found = await self.find_oauth_account(session, provider.name, info.provider_id)
        if found is not None:
            if found.user.deleted_at is not None:
                return None
            await self.update_oauth_tokens(
                session,
                found.account.id,
                tokens.access_token,
                tokens.refresh_token,
                expires_at,
            )
            await self.accounts.update_last_login(session, found.user.id)
            return found.user

        user = await self.accounts.find_user_by_email(session, info.email)
        if user is None:
            user = await self.accounts.create_oauth_user(
                session,
                email=info.email,
                display_name=info.name,
                profile_image_url=info.picture,
            )
            logger.info("Created OAuth-only account via %s", provider.name)

        await self.link_oauth_account(
            session,
            user_id=user.id,
            provider=provider.name,
            provider_account_id=info.provider_id,
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            expires_at=expires_at,
        )
        await self.accounts.update_last_login(session, user.id)
        return user
