# cinema_api/repositories/session_repo.py
import uuid
from datetime import datetime

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from cinema_api.models.session import UserSession
from cinema_api.models.user import User


class SessionRepository:

    async def get_with_user(
        self, session: AsyncSession, token: str
    ) -> tuple[UserSession, User] | None:
        stmt = (
            select(UserSession, User)
            .join(User, UserSession.user_id == User.id)
            .where(UserSession.token == token)
        )
        row = (await session.exec(stmt)).first()
        if row is None:
            return None
        return row[0], row[1]

    async def get_by_token(self, session: AsyncSession, token: str) -> UserSession | None:
        stmt = select(UserSession).where(UserSession.token == token)
        return (await session.exec(stmt)).first()

    async def list_for_user(
        self, session: AsyncSession, user_id: uuid.UUID
    ) -> list[UserSession]:
        stmt = select(UserSession).where(UserSession.user_id == user_id)
        return list((await session.exec(stmt)).all())

    async def list_expired(self, session: AsyncSession, now: datetime) -> list[UserSession]:
        stmt = select(UserSession).where(UserSession.expires_at <= now)
        return list((await session.exec(stmt)).all())

    # CRUD
    async def create(self, session: AsyncSession, user_session: UserSession) -> UserSession:
        session.add(user_session)
        await session.commit()
        await session.refresh(user_session)
        return user_session

    async def delete(self, session: AsyncSession, user_session: UserSession) -> None:
        await session.delete(user_session)
        await session.commit()

    async def delete_many(self, session: AsyncSession, rows: list[UserSession]) -> int:
        for row in rows:
            await session.delete(row)
        await session.commit()
        return len(rows)
