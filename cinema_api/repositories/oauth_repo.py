# cinema_api/repositories/oauth_repo.py
import uuid

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from cinema_api.models.oauth_account import OAuthAccount
from cinema_api.models.user import User


class OAuthAccountRepository:

    async def get_by_id(self, session: AsyncSession, link_id: uuid.UUID) -> OAuthAccount | None:
        return await session.get(OAuthAccount, link_id)

    async def get_by_provider_id(
        self, session: AsyncSession, provider: str, provider_account_id: str
    ) -> OAuthAccount | None:
        stmt = select(OAuthAccount).where(
            OAuthAccount.provider == provider,
            OAuthAccount.provider_account_id == provider_account_id,
        )
        return (await session.exec(stmt)).first()

    async def get_with_user(
        self, session: AsyncSession, provider: str, provider_account_id: str
    ) -> tuple[OAuthAccount, User] | None:
        stmt = (
            select(OAuthAccount, User)
            .join(User, OAuthAccount.user_id == User.id)
            .where(
                OAuthAccount.provider == provider,
                OAuthAccount.provider_account_id == provider_account_id,
            )
        )
        row = (await session.exec(stmt)).first()
        if row is None:
            return None
        return row[0], row[1]

    async def list_for_user(
        self, session: AsyncSession, user_id: uuid.UUID
    ) -> list[OAuthAccount]:
        stmt = select(OAuthAccount).where(OAuthAccount.user_id == user_id)
        return list((await session.exec(stmt)).all())

    # CRUD
    async def create(self, session: AsyncSession, link: OAuthAccount) -> OAuthAccount:
        session.add(link)
        await session.commit()
        await session.refresh(link)
        return link

    async def update(self, session: AsyncSession, link: OAuthAccount) -> OAuthAccount:
        session.add(link)
        await session.commit()
        await session.refresh(link)
        return link

    async def delete(self, session: AsyncSession, link: OAuthAccount) -> None:
        await session.delete(link)
        await session.commit()

    async def clear_for_user(self, session: AsyncSession, user_id: uuid.UUID) -> int:
        rows = await self.list_for_user(session, user_id)
        for row in rows:
            await session.delete(row)
        await session.commit()
        return len(rows)
