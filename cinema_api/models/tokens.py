# cinema_api/models/tokens.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class SingleUseTokenBase(SQLModel):
    """
    Shared shape of password-reset and email-verification tokens.

    States:
      - issued:   used_at is NULL and expires_at is in the future
      - consumed: used_at is set
      - expired:  expires_at has passed while used_at is still NULL

    At most one row per user exists at a time: issuing a new token
    deletes the previous ones.
    """

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    user_id: uuid.UUID = Field(
        foreign_key="users.id",
        index=True,
    )

    token: str = Field(unique=True, index=True)
    expires_at: datetime
    used_at: datetime | None = None

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )


class PasswordResetToken(SingleUseTokenBase, table=True):
    __tablename__ = "password_reset_tokens"


class EmailVerificationToken(SingleUseTokenBase, table=True):
    __tablename__ = "email_verification_tokens"
