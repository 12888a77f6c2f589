"""
Shared fixtures.

Every test gets its own in-memory SQLite database. StaticPool keeps the
single connection alive so that all sessions (the test's and the app's)
see the same tables.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel.ext.asyncio.session import AsyncSession

from cinema_api.core.auth import get_oauth_providers, get_rate_limiter
from cinema_api.core.email_client import get_mailer
from cinema_api.core.oauth import OAuthProviderRegistry, OAuthTokens, OAuthUserInfo
from cinema_api.core.rate_limiter import RateLimiter
from cinema_api.database import create_db_and_tables, get_session
from cinema_api.main import app

API = "/api/v1"


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await create_db_and_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


# -------- Fakes --------


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@dataclass
class SentEmail:
    kind: str
    to_email: str
    token: str
    locale: str


@dataclass
class RecordingMailer:
    sent: list[SentEmail] = field(default_factory=list)
    fail: bool = False

    def _record(self, kind: str, to_email: str, token: str, locale: str) -> None:
        if self.fail:
            raise RuntimeError("SMTP is not configured")
        self.sent.append(SentEmail(kind, to_email, token, locale))

    def send_password_reset_email(self, to_email: str, token: str, locale: str = "en") -> None:
        self._record("reset", to_email, token, locale)

    def send_verification_email(self, to_email: str, token: str, locale: str = "en") -> None:
        self._record("verify", to_email, token, locale)


class FakeOAuthProvider:
    """Provider double: every code maps to the configured identity."""

    def __init__(self, name: str = "google", user_info: OAuthUserInfo | None = None):
        self.name = name
        self.issue_refresh_token = True
        self.user_info = user_info or OAuthUserInfo(
            provider_id="g-123",
            email="oauth.user@example.com",
            name="OAuth User",
            picture="https://img.example.com/u.png",
        )
        self.exchanged: list[tuple[str, str]] = []

    def get_authorization_url(self, redirect_uri: str, state: str) -> str:
        return f"https://accounts.example.com/auth?redirect_uri={redirect_uri}&state={state}"

    async def exchange_code_for_tokens(self, code: str, redirect_uri: str) -> OAuthTokens:
        self.exchanged.append((code, redirect_uri))
        return OAuthTokens(
            access_token=f"access-{code}",
            expires_in=3600,
            refresh_token=f"refresh-{code}" if self.issue_refresh_token else None,
        )

    async def get_user_info(self, access_token: str) -> OAuthUserInfo:
        return self.user_info


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def mailer():
    return RecordingMailer()


@pytest.fixture
def rate_limiter():
    return RateLimiter()


@pytest.fixture
def oauth_provider():
    return FakeOAuthProvider()


@pytest.fixture
def oauth_registry(oauth_provider):
    registry = OAuthProviderRegistry()
    registry.register(oauth_provider)
    return registry


# -------- App client --------


@pytest.fixture
async def client(session_factory, mailer, rate_limiter, oauth_registry):
    """
    httpx client wired to the app with the DB, limiter, mailer and OAuth
    registry swapped for per-test instances.
    """

    async def _get_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = _get_session
    app.dependency_overrides[get_rate_limiter] = lambda: rate_limiter
    app.dependency_overrides[get_mailer] = lambda: mailer
    app.dependency_overrides[get_oauth_providers] = lambda: oauth_registry

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


async def register(
    client: AsyncClient,
    email: str = "viewer@example.com",
    password: str = "correct-horse",
    display_name: str | None = "Viewer",
) -> dict:
    """
    Register through the API and return the JSON body.

    The cookie jar is cleared so later requests authenticate only with the
    bearer token the caller passes.
    """
    response = await client.post(
        f"{API}/auth/register",
        json={"email": email, "password": password, "display_name": display_name},
    )
    assert response.status_code == 201, response.text
    client.cookies.clear()
    return response.json()


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
