# cinema_api/routers/oauth.py
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import RedirectResponse
from sqlmodel.ext.asyncio.session import AsyncSession

from cinema_api.core.auth import client_ip, get_oauth_providers
from cinema_api.core.config import get_settings
from cinema_api.core.exceptions import DuplicateEmailError, OAuthAccountConflictError
from cinema_api.core.oauth import OAuthProvider, OAuthProviderRegistry
from cinema_api.core.responses import set_session_cookie
from cinema_api.core.security import generate_oauth_state, verify_oauth_state
from cinema_api.database import get_session
from cinema_api.repositories.oauth_repo import OAuthAccountRepository
from cinema_api.repositories.session_repo import SessionRepository
from cinema_api.repositories.user_repo import UserRepository
from cinema_api.services.account_service import AccountService
from cinema_api.services.oauth_service import OAuthService
from cinema_api.services.session_service import SessionService

router = APIRouter(prefix="/auth/oauth", tags=["OAuth"])

logger = logging.getLogger(__name__)
settings = get_settings()

accounts = AccountService(UserRepository())
sessions = SessionService(SessionRepository())
oauth = OAuthService(OAuthAccountRepository(), accounts)

STATE_COOKIE_MAX_AGE = 600


def _provider_or_404(registry: OAuthProviderRegistry, name: str) -> OAuthProvider:
    provider = registry.get(name)
    if provider is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"OAuth provider '{name}' is not available",
        )
    return provider


def _callback_url(provider: str) -> str:
    return (
        f"{settings.API_BASE_URL.rstrip('/')}{settings.API_V1_STR}"
        f"/auth/oauth/{provider}/callback"
    )


@router.get("/{provider}/authorize")
async def oauth_authorize(
    provider: str,
    registry: OAuthProviderRegistry = Depends(get_oauth_providers),
):
    """
    Start an authorization-code flow.

    A fresh state value goes both to the provider (in the URL) and to the
    browser (short-lived HttpOnly cookie); the callback checks they match.
    """
    impl = _provider_or_404(registry, provider)
    state = generate_oauth_state()

    response = RedirectResponse(
        impl.get_authorization_url(_callback_url(provider), state),
        status_code=status.HTTP_302_FOUND,
    )
    response.set_cookie(
        key=settings.OAUTH_STATE_COOKIE_NAME,
        value=state,
        max_age=STATE_COOKIE_MAX_AGE,
        path="/",
        httponly=True,
        samesite="lax",
        secure=settings.COOKIE_SECURE,
    )
    return response


@router.get("/{provider}/callback")
async def oauth_callback(
    provider: str,
    code: str,
    state: str,
    request: Request,
    session: AsyncSession = Depends(get_session),
    registry: OAuthProviderRegistry = Depends(get_oauth_providers),
):
    """
    Finish the flow: check state, sign the user in, redirect to the frontend.

    Errors:
      - 400 state missing or mismatched
      - 401 the linked account was deleted
      - 409 the provider identity or email conflicts with another account
    """
    impl = _provider_or_404(registry, provider)

    expected = request.cookies.get(settings.OAUTH_STATE_COOKIE_NAME)
    if not expected or not verify_oauth_state(state, expected):
        logger.info("OAuth callback for %s rejected: state mismatch", provider)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid OAuth state",
        )

    try:
        user = await oauth.complete_sign_in(session, impl, code, _callback_url(provider))
    except (OAuthAccountConflictError, DuplicateEmailError) as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=exc.message)

    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="This account has been deleted",
        )

    user_session = await sessions.create_session(
        session,
        user.id,
        ip_address=client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )

    response = RedirectResponse(settings.FRONTEND_BASE_URL, status_code=status.HTTP_302_FOUND)
    set_session_cookie(response, user_session)
    response.delete_cookie(settings.OAUTH_STATE_COOKIE_NAME, path="/")
    logger.info("User %s signed in with %s", user.id, provider)
    return response
