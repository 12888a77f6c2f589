# cinema_api/models/user.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class User(SQLModel, table=True):
    """
    Account for the streaming storefront.

    Identity:
      - email is stored lowercased; at most one live (non-deleted) row
        per email. Soft-deleted rows get an anonymized
        `deleted_<hex>@deleted.local` address, so the unique index still
        holds.

    Credentials:
      - password_hash is "<salt>.<key>" (see core/security.py), or NULL
        for OAuth-only accounts.

    Role:
      - "user" | "editor" | "admin"
    """

    __tablename__ = "users"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    email: str = Field(
        unique=True,
        index=True,
        description="Lowercased email address",
    )

    password_hash: str | None = Field(
        default=None,
        description="NULL for OAuth-only accounts",
    )

    display_name: str | None = Field(default=None, max_length=100)
    profile_image_url: str | None = None

    # IANA timezone name
    timezone: str | None = Field(default="Asia/Vientiane")

    role: str = Field(
        default="user",
        index=True,
        description="Application role: user | editor | admin",
    )

    email_verified: bool = Field(default=False)

    last_login_at: datetime | None = None
    deleted_at: datetime | None = Field(
        default=None,
        description="Set when the account is soft-deleted",
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
