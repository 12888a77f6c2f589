# cinema_api/routers/email_verification.py
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.concurrency import run_in_threadpool
from sqlmodel.ext.asyncio.session import AsyncSession

from cinema_api.core.auth import require_auth
from cinema_api.core.email_client import Mailer, get_mailer
from cinema_api.database import get_session
from cinema_api.models.user import User
from cinema_api.schemas.auth import (
    MessageResponse,
    SendVerificationRequest,
    TokenValidity,
    VerifyEmailRequest,
    VerifyEmailResponse,
)
from cinema_api.schemas.user import UserRead
from cinema_api.services.token_service import EmailVerificationService

router = APIRouter(prefix="/auth", tags=["Email verification"])

logger = logging.getLogger(__name__)

email_verifications = EmailVerificationService()


@router.post("/send-verification-email", response_model=MessageResponse)
async def send_verification_email(
    payload: SendVerificationRequest | None = None,
    session: AsyncSession = Depends(get_session),
    mailer: Mailer = Depends(get_mailer),
    current_user: User = Depends(require_auth),
):
    """
    Email a verification link to the logged-in user.

    Any previous link stops working. Unlike forgot-password the caller is
    known, so a delivery failure is reported as 500.
    """
    if current_user.email_verified:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email is already verified",
        )

    verification = await email_verifications.create_email_verification_token(
        session, current_user.id
    )
    try:
        await run_in_threadpool(
            mailer.send_verification_email,
            current_user.email,
            verification.token,
            payload.locale if payload else "en",
        )
    except Exception:
        logger.exception("Failed to send verification email")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to send verification email",
        )

    return MessageResponse(message="Verification email sent")


@router.post("/verify-email", response_model=VerifyEmailResponse)
async def verify_email(
    payload: VerifyEmailRequest,
    session: AsyncSession = Depends(get_session),
):
    """Consume a verification token and mark the address verified."""
    found = await email_verifications.find_valid_email_verification_token(
        session, payload.token
    )
    if found is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid or expired verification link",
        )

    user = await email_verifications.verify_user_email(
        session, found.token.id, found.user.id
    )
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid or expired verification link",
        )

    logger.info("Email verified for user %s", user.id)
    return VerifyEmailResponse(
        message="Email verified successfully",
        user=UserRead.model_validate(user),
    )


@router.get("/verify-email-token", response_model=TokenValidity)
async def verify_email_token(
    token: str = Query(min_length=1),
    session: AsyncSession = Depends(get_session),
):
    found = await email_verifications.find_valid_email_verification_token(session, token)
    return TokenValidity(valid=found is not None)
