# cinema_api/core/responses.py
"""
HTTP helpers shared by the auth routers: session cookies, the 429 payload
and the {user, session} envelope.
"""
import math

from fastapi import HTTPException, Response, status

from cinema_api.core.config import get_settings
from cinema_api.core.rate_limiter import RateLimitResult
from cinema_api.core.security import as_utc, utcnow
from cinema_api.models.session import UserSession
from cinema_api.models.user import User
from cinema_api.schemas.auth import AuthResponse, SessionRead
from cinema_api.schemas.user import UserRead


def set_session_cookie(response: Response, user_session: UserSession) -> None:
    """HttpOnly cookie for web clients; mobile clients use the token in the body."""
    settings = get_settings()
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=user_session.token,
        expires=as_utc(user_session.expires_at),
        path="/",
        httponly=True,
        samesite="lax",
        secure=settings.COOKIE_SECURE,
    )


def clear_session_cookie(response: Response) -> None:
    settings = get_settings()
    response.delete_cookie(
        key=settings.SESSION_COOKIE_NAME,
        path="/",
        httponly=True,
        samesite="lax",
        secure=settings.COOKIE_SECURE,
    )


def auth_response(user: User, user_session: UserSession) -> AuthResponse:
    return AuthResponse(
        user=UserRead.model_validate(user),
        session=SessionRead(
            token=user_session.token,
            expires_at=as_utc(user_session.expires_at),
        ),
    )


def rate_limit_exceeded(result: RateLimitResult, message: str) -> HTTPException:
    """
    Build the 429 raised when a RateLimiter refuses a request.

    detail carries code="RATE_LIMIT_EXCEEDED" and the ISO retryAfter; the
    Retry-After header holds the remaining seconds.
    """
    retry_after = result.retry_after or utcnow()
    seconds = max(0, math.ceil((retry_after - utcnow()).total_seconds()))
    return HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail={
            "message": message,
            "code": "RATE_LIMIT_EXCEEDED",
            "retryAfter": retry_after.isoformat(),
        },
        headers={"Retry-After": str(seconds)},
    )
