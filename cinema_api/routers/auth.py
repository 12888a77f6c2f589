# cinema_api/routers/auth.py
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlmodel.ext.asyncio.session import AsyncSession

from cinema_api.core.auth import client_ip, get_rate_limiter, get_session_token, require_auth
from cinema_api.core.exceptions import DuplicateEmailError
from cinema_api.core.rate_limiter import LOGIN, RateLimiter, login_rate_limit
from cinema_api.core.responses import (
    auth_response,
    clear_session_cookie,
    rate_limit_exceeded,
    set_session_cookie,
)
from cinema_api.database import get_session
from cinema_api.models.user import User
from cinema_api.repositories.oauth_repo import OAuthAccountRepository
from cinema_api.repositories.session_repo import SessionRepository
from cinema_api.repositories.user_repo import UserRepository
from cinema_api.schemas.auth import (
    AuthResponse,
    ChangeEmailRequest,
    ChangePasswordRequest,
    DeleteAccountRequest,
    LoginRequest,
    MeResponse,
    MessageResponse,
    RegisterRequest,
)
from cinema_api.schemas.user import UserRead, UserUpdate
from cinema_api.services.account_service import AccountService, normalize_email
from cinema_api.services.oauth_service import OAuthService
from cinema_api.services.session_service import SessionService
from cinema_api.services.token_service import EmailVerificationService, PasswordResetService

router = APIRouter(prefix="/auth", tags=["Auth"])

logger = logging.getLogger(__name__)

accounts = AccountService(UserRepository())
sessions = SessionService(SessionRepository())
oauth = OAuthService(OAuthAccountRepository(), accounts)
password_resets = PasswordResetService()
email_verifications = EmailVerificationService()


# -------- Registration / login --------


@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
)
async def register(
    payload: RegisterRequest,
    request: Request,
    response: Response,
    session: AsyncSession = Depends(get_session),
):
    """
    Create an email/password account and log it in.

    Returns the profile plus a session token; web clients also get the
    HttpOnly session cookie.
    """
    try:
        user = await accounts.create_user(
            session,
            email=payload.email,
            password=payload.password,
            display_name=payload.display_name,
        )
    except DuplicateEmailError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=exc.message)

    user_session = await sessions.create_session(
        session,
        user.id,
        ip_address=client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )
    set_session_cookie(response, user_session)
    logger.info("Registered user %s", user.id)
    return auth_response(user, user_session)


@router.post("/login", response_model=AuthResponse)
async def login(
    payload: LoginRequest,
    request: Request,
    response: Response,
    session: AsyncSession = Depends(get_session),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    """
    Email/password login, rate limited per client IP.

    Every failure (unknown email, OAuth-only account, deleted account,
    wrong password) gets the same 401.
    """
    ip = client_ip(request)
    config = login_rate_limit()

    check = limiter.check_rate_limit(LOGIN, ip, config)
    if not check.allowed:
        logger.info("Login rate limit hit for %s", ip)
        raise rate_limit_exceeded(check, "Too many login attempts. Please try again later.")

    user = await accounts.authenticate_user(session, payload.email, payload.password)
    if user is None:
        limiter.record_attempt(LOGIN, ip, config)
        logger.info("Failed login from %s", ip)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )

    limiter.reset_rate_limit(LOGIN, ip)
    user_session = await sessions.create_session(
        session,
        user.id,
        ip_address=ip,
        user_agent=request.headers.get("user-agent"),
    )
    set_session_cookie(response, user_session)
    logger.info("User %s logged in", user.id)
    return auth_response(user, user_session)


@router.post("/logout", response_model=MessageResponse)
async def logout(
    response: Response,
    token: str | None = Depends(get_session_token),
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """Delete the session that made this request."""
    if token:
        await sessions.delete_session(session, token)
    clear_session_cookie(response)
    return MessageResponse(message="Logged out successfully")


@router.post("/logout-all", response_model=MessageResponse)
async def logout_all(
    response: Response,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """Delete every session of the current user (all devices)."""
    removed = await sessions.delete_all_user_sessions(session, current_user.id)
    clear_session_cookie(response)
    logger.info("User %s logged out of %s sessions", current_user.id, removed)
    return MessageResponse(message="Logged out from all devices")


# -------- Self profile --------


@router.get("/me", response_model=MeResponse)
async def read_me(current_user: User = Depends(require_auth)):
    return MeResponse(user=UserRead.model_validate(current_user))


@router.patch("/me", response_model=MeResponse)
async def update_me(
    payload: UserUpdate,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    Partial profile update.

    Editable: display_name, profile_image_url, timezone.
    """
    user = await accounts.update_user(
        session,
        current_user.id,
        display_name=payload.display_name,
        profile_image_url=payload.profile_image_url,
        timezone=payload.timezone,
    )
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return MeResponse(user=UserRead.model_validate(user))


@router.patch("/me/password", response_model=MessageResponse)
async def change_password(
    payload: ChangePasswordRequest,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    Change the password of an email/password account.

    Errors:
      - 400 for OAuth-only accounts (nothing to change)
      - 401 when current_password does not match
    """
    if not current_user.password_hash:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot change password for OAuth-only accounts",
        )
    if not await accounts.check_password(current_user, payload.current_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Current password is incorrect",
        )

    await accounts.update_user_password(session, current_user.id, payload.new_password)
    return MessageResponse(message="Password changed successfully")


@router.patch("/me/email", response_model=MeResponse)
async def change_email(
    payload: ChangeEmailRequest,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    Change the login email (password confirmation required).

    The new address starts unverified.
    """
    if not current_user.password_hash:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot change email for OAuth-only accounts",
        )
    if not await accounts.check_password(current_user, payload.password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Password is incorrect",
        )
    if normalize_email(payload.email) == current_user.email:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="New email must be different from current email",
        )

    try:
        user = await accounts.update_user_email(session, current_user.id, payload.email)
    except DuplicateEmailError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email is already in use",
        )
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    # The old verification tokens were addressed to the old email.
    await email_verifications.purge_user_tokens(session, user.id)
    return MeResponse(user=UserRead.model_validate(user))


@router.delete("/me", response_model=MessageResponse)
async def delete_me(
    response: Response,
    payload: DeleteAccountRequest | None = None,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    Delete (anonymize) the current account.

    Password accounts must confirm with their password. Afterwards the
    account has no sessions, no OAuth links and no outstanding tokens.
    """
    password = payload.password if payload else None
    if current_user.password_hash:
        if not password:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Password is required to delete account",
            )
        if not await accounts.check_password(current_user, password):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Password is incorrect",
            )

    user_id = current_user.id
    await accounts.delete_user(session, user_id)
    await sessions.delete_all_user_sessions(session, user_id)
    await oauth.unlink_all_for_user(session, user_id)
    await password_resets.purge_user_tokens(session, user_id)
    await email_verifications.purge_user_tokens(session, user_id)

    clear_session_cookie(response)
    logger.info("Deleted account %s", user_id)
    return MessageResponse(message="Account deleted successfully")
