# cinema_api/database.py
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from cinema_api.core.config import get_settings

settings = get_settings()

# ---------------------------------------------------------
# Async engine
#
# - postgresql:// and postgres:// URLs are switched to the async psycopg
#   (v3) driver; sslmode=require is appended unless the URL sets it.
# - SQLite (local dev, tests) uses aiosqlite.
# - pool_pre_ping=True: validate pooled connections before use
#
# Every request runs as its own task with its own AsyncSession; the only
# coordination between concurrent requests is the database's own
# transactions and row locks.
# ---------------------------------------------------------


def make_async_url(url: str) -> str:
    """Convert a DB URL to its async driver form."""
    for prefix in ("postgres://", "postgresql://"):
        if url.startswith(prefix):
            url = url.replace(prefix, "postgresql+psycopg://", 1)
            break

    if url.startswith("postgresql") and "sslmode=" not in url:
        url = url + ("&" if "?" in url else "?") + "sslmode=require"

    return url


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    async_url = make_async_url(url)
    kwargs: dict = {"echo": echo, "pool_pre_ping": True}
    if not async_url.startswith("sqlite"):
        kwargs.update(pool_size=5, max_overflow=5)
    return create_async_engine(async_url, **kwargs)


engine = build_engine(settings.DATABASE_URL, echo=settings.DATABASE_ECHO)

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def create_db_and_tables(bind: AsyncEngine | None = None) -> None:
    """
    Create all tables defined in SQLModel metadata if they do not exist.

    This is called once on application startup.
    """
    # Register every table on SQLModel.metadata before create_all().
    from cinema_api.models import oauth_account, session, tokens, user  # noqa: F401

    async with (bind or engine).begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that yields an AsyncSession.

    Usage:

        from fastapi import Depends

        @router.get("/example")
        async def example_endpoint(session: AsyncSession = Depends(get_session)):
            ...
    """
    async with AsyncSessionLocal() as session:
        yield session
