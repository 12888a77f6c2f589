# cinema_api/core/auth.py
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlmodel.ext.asyncio.session import AsyncSession

from cinema_api.core.config import get_settings
from cinema_api.core.oauth import OAuthProviderRegistry
from cinema_api.core.rate_limiter import RateLimiter
from cinema_api.database import get_session
from cinema_api.models.user import User
from cinema_api.repositories.session_repo import SessionRepository
from cinema_api.services.session_service import SessionService

settings = get_settings()

# HTTP Bearer scheme:
# - auto_error=False => missing Authorization header will NOT raise immediately
#   so we can support anonymous browsing and cookie-based sessions.
bearer_scheme = HTTPBearer(auto_error=False)

session_service = SessionService(SessionRepository())


def get_session_token(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> str | None:
    """
    Extract the session token from the request.

    Priority:
      1. HttpOnly session cookie (web)
      2. Authorization: Bearer <token> (mobile)
    """
    cookie_token = request.cookies.get(settings.SESSION_COOKIE_NAME)
    if cookie_token:
        return cookie_token
    if credentials is not None and credentials.credentials:
        return credentials.credentials
    return None


async def get_current_user(
    token: str | None = Depends(get_session_token),
    session: AsyncSession = Depends(get_session),
) -> User | None:
    """
    Resolve the current user from the session token.

    Returns:
        User instance if the token maps to a live session, else None
        (anonymous).
    """
    if token is None:
        return None

    found = await session_service.find_session_by_token(session, token)
    if found is None:
        return None
    return found.user


def require_auth(user: User | None = Depends(get_current_user)) -> User:
    """
    Enforce authentication.

    Raises:
        HTTPException(401): no token, or the session is unknown/expired.
    """
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    return user


def require_admin(user: User = Depends(require_auth)) -> User:
    """
    Enforce admin role.

    Raises:
        HTTPException(403): if role is not admin.
    """
    if user.role != "admin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return user


def require_editor(user: User = Depends(require_auth)) -> User:
    """
    Enforce editor role or higher (editors and admins pass).

    Use this for catalog editing endpoints.
    """
    if user.role not in ("editor", "admin"):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Editor access required",
        )
    return user


def get_rate_limiter(request: Request) -> RateLimiter:
    """The application-owned rate limiter (see main.py)."""
    return request.app.state.rate_limiter


def get_oauth_providers(request: Request) -> OAuthProviderRegistry:
    return request.app.state.oauth_providers


def client_ip(request: Request) -> str:
    """Identifier used for per-client rate limiting."""
    return request.client.host if request.client else ""
