# cinema_api/models/oauth_account.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field


class OAuthAccount(SQLModel, table=True):
    """
    Link between a local user and an external identity provider account.

    A (provider, provider_account_id) pair links to exactly one user.
    A user may have several links (e.g. Google and Apple).
    """

    __tablename__ = "oauth_accounts"
    __table_args__ = (
        UniqueConstraint(
            "provider",
            "provider_account_id",
            name="uq_oauth_accounts_provider_account",
        ),
    )

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    user_id: uuid.UUID = Field(
        foreign_key="users.id",
        index=True,
    )

    # google | apple
    provider: str = Field(index=True)
    provider_account_id: str

    access_token: str | None = None
    refresh_token: str | None = None
    expires_at: datetime | None = None

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
