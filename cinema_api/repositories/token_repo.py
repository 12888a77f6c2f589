# cinema_api/repositories/token_repo.py
import uuid
from datetime import datetime
from typing import Generic, TypeVar

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from cinema_api.models.tokens import SingleUseTokenBase
from cinema_api.models.user import User

TokenT = TypeVar("TokenT", bound=SingleUseTokenBase)


class SingleUseTokenRepository(Generic[TokenT]):
    """
    Data access for one single-use token table.

    Instantiate once per table:

        SingleUseTokenRepository(PasswordResetToken)
        SingleUseTokenRepository(EmailVerificationToken)
    """

    def __init__(self, model: type[TokenT]):
        self.model = model

    async def get_with_user(
        self, session: AsyncSession, token: str
    ) -> tuple[TokenT, User] | None:
        stmt = (
            select(self.model, User)
            .join(User, self.model.user_id == User.id)
            .where(self.model.token == token)
        )
        row = (await session.exec(stmt)).first()
        if row is None:
            return None
        return row[0], row[1]

    async def get_for_update(
        self, session: AsyncSession, token_id: uuid.UUID
    ) -> TokenT | None:
        stmt = (
            select(self.model)
            .where(self.model.id == token_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return (await session.exec(stmt)).first()

    async def list_for_user(self, session: AsyncSession, user_id: uuid.UUID) -> list[TokenT]:
        stmt = select(self.model).where(self.model.user_id == user_id)
        return list((await session.exec(stmt)).all())

    async def replace_for_user(
        self, session: AsyncSession, user_id: uuid.UUID, token: TokenT
    ) -> TokenT:
        """
        Delete every existing token of the user and insert `token`, in one
        transaction.

        The owning user row is locked first, so two concurrent issuers for
        the same user run one after the other and only the last token
        survives.
        """
        await session.exec(
            select(User.id).where(User.id == user_id).with_for_update()
        )
        for row in await self.list_for_user(session, user_id):
            await session.delete(row)
        await session.flush()

        session.add(token)
        await session.commit()
        await session.refresh(token)
        return token

    async def mark_used(
        self, session: AsyncSession, token_id: uuid.UUID, now: datetime
    ) -> bool:
        """
        Transition an unused token to consumed.

        Returns True only for the call that performed the transition.
        """
        row = await self.get_for_update(session, token_id)
        if row is None or row.used_at is not None:
            # Ends the transaction (and the row lock) without expiring loaded objects.
            await session.commit()
            return False
        row.used_at = now
        session.add(row)
        await session.commit()
        return True

    async def mark_used_and_verify_email(
        self,
        session: AsyncSession,
        token_id: uuid.UUID,
        user_id: uuid.UUID,
        now: datetime,
    ) -> User | None:
        """
        Consume the token and set users.email_verified in a single commit.

        Returns the updated User, or None when nothing was applied (token
        missing, already used, or owned by someone else).
        """
        row = await self.get_for_update(session, token_id)
        if row is None or row.used_at is not None or row.user_id != user_id:
            await session.commit()
            return None

        user = await session.get(User, user_id)
        if user is None:
            await session.commit()
            return None

        row.used_at = now
        user.email_verified = True
        user.updated_at = now
        session.add(row)
        session.add(user)
        await session.commit()
        await session.refresh(user)
        return user

    async def list_expired(self, session: AsyncSession, now: datetime) -> list[TokenT]:
        stmt = select(self.model).where(self.model.expires_at < now)
        return list((await session.exec(stmt)).all())

    async def delete_many(self, session: AsyncSession, rows: list[TokenT]) -> int:
        for row in rows:
            await session.delete(row)
        await session.commit()
        return len(rows)
