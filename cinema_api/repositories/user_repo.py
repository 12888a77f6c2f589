# cinema_api/repositories/user_repo.py
import uuid

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from cinema_api.models.user import User


class UserRepository:
    """
    Data access layer for User.

    Responsibilities:
      - Pure DB operations (CRUD + queries)
      - No FastAPI, no HTTP, no business logic
    """

    # ----- Queries -----

    async def get_by_id(self, session: AsyncSession, user_id: uuid.UUID) -> User | None:
        """Return a User by primary key (deleted or not), or None."""
        return await session.get(User, user_id)

    async def get_live_by_email(self, session: AsyncSession, email: str) -> User | None:
        """Return the non-deleted User owning an already-normalized email."""
        stmt = select(User).where(User.email == email, User.deleted_at == None)  # noqa: E711
        return (await session.exec(stmt)).first()

    async def get_for_update(self, session: AsyncSession, user_id: uuid.UUID) -> User | None:
        """
        Load a User with a row lock (SELECT ... FOR UPDATE).

        Used to serialize concurrent writers touching rows owned by this
        user. SQLite ignores the lock clause.
        """
        stmt = (
            select(User)
            .where(User.id == user_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return (await session.exec(stmt)).first()

    async def list(
        self, session: AsyncSession, skip: int = 0, limit: int = 50
    ) -> list[User]:
        """
        Paginated user listing, oldest first.

        Args:
            skip: offset rows (for paging)
            limit: max number of rows returned
        """
        stmt = select(User).order_by(User.created_at).offset(skip).limit(limit)
        return list((await session.exec(stmt)).all())

    # ----- Writes -----

    async def create(self, session: AsyncSession, user: User) -> User:
        """Insert a new User and return the persisted row."""
        session.add(user)
        await session.commit()
        await session.refresh(user)
        return user

    async def update(self, session: AsyncSession, user: User) -> User:
        """Persist changes to an existing User."""
        session.add(user)
        await session.commit()
        await session.refresh(user)
        return user
