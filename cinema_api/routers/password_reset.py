# cinema_api/routers/password_reset.py
import logging
import math

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request, status
from sqlmodel.ext.asyncio.session import AsyncSession

from cinema_api.core.auth import client_ip, get_rate_limiter
from cinema_api.core.email_client import Locale, Mailer, get_mailer
from cinema_api.core.rate_limiter import (
    FORGOT_PASSWORD,
    RateLimiter,
    forgot_password_rate_limit,
)
from cinema_api.core.responses import rate_limit_exceeded
from cinema_api.core.security import utcnow
from cinema_api.database import get_session
from cinema_api.repositories.session_repo import SessionRepository
from cinema_api.repositories.user_repo import UserRepository
from cinema_api.schemas.auth import (
    ForgotPasswordRequest,
    MessageResponse,
    ResetPasswordRequest,
    TokenValidity,
)
from cinema_api.services.account_service import AccountService
from cinema_api.services.session_service import SessionService
from cinema_api.services.token_service import PasswordResetService

router = APIRouter(prefix="/auth", tags=["Password reset"])

logger = logging.getLogger(__name__)

accounts = AccountService(UserRepository())
sessions = SessionService(SessionRepository())
password_resets = PasswordResetService()

FORGOT_PASSWORD_MESSAGE = (
    "If an account exists with this email, a password reset link will be sent."
)
INVALID_RESET_TOKEN_MESSAGE = (
    "Invalid or expired reset token. Please request a new password reset."
)


def _deliver_reset_email(mailer: Mailer, to_email: str, token: str, locale: Locale) -> None:
    """Background task: failures are logged, the client already has its answer."""
    try:
        mailer.send_password_reset_email(to_email, token, locale)
    except Exception:
        logger.exception("Failed to send password reset email")
    else:
        logger.info("Password reset email sent")


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(
    payload: ForgotPasswordRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(get_session),
    limiter: RateLimiter = Depends(get_rate_limiter),
    mailer: Mailer = Depends(get_mailer),
):
    """
    Request a password reset link.

    Always answers with the same message so the response does not reveal
    whether the email has an account. The attempt is counted before the
    lookup and the email goes out after the response.
    """
    ip = client_ip(request)
    config = forgot_password_rate_limit()

    check = limiter.check_rate_limit(FORGOT_PASSWORD, ip, config)
    if not check.allowed:
        minutes = max(1, math.ceil((check.retry_after - utcnow()).total_seconds() / 60))
        raise rate_limit_exceeded(
            check,
            f"Too many password reset attempts. Please wait {minutes} "
            f"minute{'s' if minutes != 1 else ''} before trying again.",
        )

    limiter.record_attempt(FORGOT_PASSWORD, ip, config)

    user = await accounts.find_user_by_email(session, payload.email)
    if user is None or not user.password_hash:
        logger.info("Password reset requested for unknown or OAuth-only account")
        return MessageResponse(message=FORGOT_PASSWORD_MESSAGE)

    reset_token = await password_resets.create_password_reset_token(session, user.id)
    background_tasks.add_task(
        _deliver_reset_email, mailer, user.email, reset_token.token, payload.locale
    )
    return MessageResponse(message=FORGOT_PASSWORD_MESSAGE)


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(
    payload: ResetPasswordRequest,
    session: AsyncSession = Depends(get_session),
):
    """
    Set a new password using a reset token.

    The token is consumed first, so two concurrent requests with the same
    token cannot both change the password. Every session of the user is
    logged out afterwards.
    """
    found = await password_resets.find_valid_password_reset_token(session, payload.token)
    if found is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=INVALID_RESET_TOKEN_MESSAGE,
        )

    if not await password_resets.mark_password_reset_token_used(session, found.token.id):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=INVALID_RESET_TOKEN_MESSAGE,
        )

    user_id = found.user.id
    await accounts.update_user_password(session, user_id, payload.new_password)
    await sessions.delete_all_user_sessions(session, user_id)

    logger.info("Password reset for user %s", user_id)
    return MessageResponse(
        message="Password has been reset successfully. Please log in with your new password."
    )


@router.get("/verify-reset-token", response_model=TokenValidity)
async def verify_reset_token(
    token: str = Query(min_length=1),
    session: AsyncSession = Depends(get_session),
):
    """Frontend pre-check before showing the new-password form."""
    found = await password_resets.find_valid_password_reset_token(session, token)
    return TokenValidity(valid=found is not None)
