# cinema_api/services/account_service.py
import logging
import secrets
import uuid
from functools import lru_cache

from fastapi.concurrency import run_in_threadpool
from sqlalchemy.exc import IntegrityError
from sqlmodel.ext.asyncio.session import AsyncSession

from cinema_api.core.config import get_settings
from cinema_api.core.exceptions import DuplicateEmailError
from cinema_api.core.security import hash_password, utcnow, verify_password
from cinema_api.models.user import User
from cinema_api.repositories.user_repo import UserRepository

logger = logging.getLogger(__name__)

DELETED_DISPLAY_NAME = "Deleted User"
DELETED_EMAIL_DOMAIN = "deleted.local"


def normalize_email(email: str) -> str:
    return email.strip().lower()


def anonymized_email() -> str:
    """Placeholder address for a soft-deleted account."""
    return f"deleted_{secrets.token_hex(16)}@{DELETED_EMAIL_DOMAIN}"


@lru_cache
def dummy_password_hash() -> str:
    """Hash that failed lookups are checked against, so they cost one scrypt like a real login."""
    return hash_password(secrets.token_hex(16))


class AccountService:
    """
    Business logic for user accounts.

    Responsibilities:
      - email normalization and the "one live user per email" rule
      - password hashing (off the event loop)
      - soft deletion / anonymization
      - password authentication without user enumeration

    Lookups return None when nothing matches; only conflicts raise.
    """

    def __init__(self, repo: UserRepository):
        self.repo = repo

    # ----- Creation -----

    async def _insert(self, session: AsyncSession, user: User) -> User:
        if await self.repo.get_live_by_email(session, user.email):
            logger.info("Registration rejected: email already in use")
            raise DuplicateEmailError("User with this email already exists")
        try:
            return await self.repo.create(session, user)
        except IntegrityError:
            # Lost a race with a concurrent registration for the same email.
            await session.rollback()
            raise DuplicateEmailError("User with this email already exists")

    async def create_user(
        self,
        session: AsyncSession,
        *,
        email: str,
        password: str,
        display_name: str | None = None,
    ) -> User:
        """
        Register an email/password account.

        Raises:
            DuplicateEmailError: a live user already owns the email.
        """
        password_hash = await run_in_threadpool(hash_password, password)
        user = User(
            email=normalize_email(email),
            password_hash=password_hash,
            display_name=display_name,
            timezone=get_settings().DEFAULT_TIMEZONE,
            role="user",
            email_verified=False,
        )
        return await self._insert(session, user)

    async def create_oauth_user(
        self,
        session: AsyncSession,
        *,
        email: str,
        display_name: str | None = None,
        profile_image_url: str | None = None,
    ) -> User:
        """
        Create an account backed only by an OAuth provider.

        No password; the provider already verified the address.
        """
        user = User(
            email=normalize_email(email),
            password_hash=None,
            display_name=display_name,
            profile_image_url=profile_image_url,
            timezone=get_settings().DEFAULT_TIMEZONE,
            role="user",
            email_verified=True,
        )
        return await self._insert(session, user)

    # ----- Lookups -----

    async def find_user_by_email(self, session: AsyncSession, email: str) -> User | None:
        """Case-insensitive lookup; soft-deleted users are never returned."""
        return await self.repo.get_live_by_email(session, normalize_email(email))

    async def find_user_by_id(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        include_deleted: bool = True,
    ) -> User | None:
        """
        Lookup by primary key.

        Soft-deleted users are returned by default (admin views need to see
        them); pass include_deleted=False for authentication paths.
        """
        user = await self.repo.get_by_id(session, user_id)
        if user is None:
            return None
        if not include_deleted and user.deleted_at is not None:
            return None
        return user

    async def is_user_deleted(self, session: AsyncSession, user_id: uuid.UUID) -> bool:
        user = await self.repo.get_by_id(session, user_id)
        return user is not None and user.deleted_at is not None

    async def list_users(
        self, session: AsyncSession, skip: int = 0, limit: int = 50
    ) -> list[User]:
        return await self.repo.list(session, skip=skip, limit=limit)

    # ----- Updates -----

    async def update_user(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        *,
        display_name: str | None = None,
        profile_image_url: str | None = None,
        timezone: str | None = None,
    ) -> User | None:
        """Partial profile update: only the arguments that are not None change."""
        user = await self.repo.get_by_id(session, user_id)
        if user is None:
            return None

        if display_name is not None:
            user.display_name = display_name
        if profile_image_url is not None:
            user.profile_image_url = profile_image_url
        if timezone is not None:
            user.timezone = timezone

        user.updated_at = utcnow()
        return await self.repo.update(session, user)

    async def update_user_password(
        self, session: AsyncSession, user_id: uuid.UUID, new_password: str
    ) -> None:
        """
        Replace the stored hash.

        Sessions are left alone; password-reset callers invalidate them
        separately.
        """
        user = await self.repo.get_by_id(session, user_id)
        if user is None:
            return
        user.password_hash = await run_in_threadpool(hash_password, new_password)
        user.updated_at = utcnow()
        await self.repo.update(session, user)

    async def update_user_email(
        self, session: AsyncSession, user_id: uuid.UUID, new_email: str
    ) -> User | None:
        """
        Change the login email. The new address starts unverified.

        Raises:
            DuplicateEmailError: another live user owns the address.
        """
        user = await self.repo.get_by_id(session, user_id)
        if user is None:
            return None

        email = normalize_email(new_email)
        if email == user.email:
            return user

        owner = await self.repo.get_live_by_email(session, email)
        if owner is not None and owner.id != user.id:
            raise DuplicateEmailError("User with this email already exists")

        user.email = email
        user.email_verified = False
        user.updated_at = utcnow()
        try:
            return await self.repo.update(session, user)
        except IntegrityError:
            await session.rollback()
            raise DuplicateEmailError("User with this email already exists")

    async def update_role(
        self, session: AsyncSession, user_id: uuid.UUID, role: str
    ) -> User | None:
        """Change a user's role (admin only). Role validity is enforced by the schema."""
        user = await self.repo.get_by_id(session, user_id)
        if user is None:
            return None
        user.role = role
        user.updated_at = utcnow()
        return await self.repo.update(session, user)

    async def update_last_login(self, session: AsyncSession, user_id: uuid.UUID) -> None:
        user = await self.repo.get_by_id(session, user_id)
        if user is None:
            return
        user.last_login_at = utcnow()
        await self.repo.update(session, user)

    # ----- Deletion -----

    async def delete_user(self, session: AsyncSession, user_id: uuid.UUID) -> User | None:
        """
        Soft-delete: anonymize PII and keep the row.

        Rentals, audit entries and other references keep pointing at the
        same id. Sessions, OAuth links and outstanding tokens belong to
        their own services; the account-deletion workflow clears them too.
        """
        user = await self.repo.get_by_id(session, user_id)
        if user is None:
            return None
        if user.deleted_at is not None:
            return user

        now = utcnow()
        user.email = anonymized_email()
        user.password_hash = None
        user.display_name = DELETED_DISPLAY_NAME
        user.profile_image_url = None
        user.deleted_at = now
        user.updated_at = now
        return await self.repo.update(session, user)

    # ----- Authentication -----

    async def check_password(self, user: User, password: str) -> bool:
        """False for OAuth-only accounts and for a wrong password."""
        if not user.password_hash:
            return False
        return await run_in_threadpool(verify_password, password, user.password_hash)

    async def authenticate_user(
        self, session: AsyncSession, email: str, password: str
    ) -> User | None:
        """
        Email/password login.

        Returns None for an unknown email, an OAuth-only account, a
        soft-deleted account and a wrong password alike, so callers cannot
        tell which one happened.
        """
        user = await self.find_user_by_email(session, email)
        if user is None or user.deleted_at is not None or not user.password_hash:
            await run_in_threadpool(verify_password, password, dummy_password_hash())
            return None

        if not await self.check_password(user, password):
            return None

        await self.update_last_login(session, user.id)
        return user
