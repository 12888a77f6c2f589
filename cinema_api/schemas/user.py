# cinema_api/schemas/user.py
import uuid
from datetime import datetime
from typing import Literal

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel, Field

Role = Literal["user", "editor", "admin"]


def _strip_optional_name(v: str | None) -> str | None:
    if v is None:
        return v
    v = v.strip()
    if not v:
        raise ValueError("display_name cannot be empty")
    return v


class UserRead(SQLModel):
    """Profile returned to the account owner."""

    id: uuid.UUID
    email: str
    display_name: str | None = None
    profile_image_url: str | None = None
    timezone: str | None = None
    role: Role
    email_verified: bool
    created_at: datetime
    last_login_at: datetime | None = None


class UserAdminRead(UserRead):
    """Admin view; also exposes the soft-delete state."""

    deleted_at: datetime | None = None
    updated_at: datetime


class UserUpdate(SQLModel):
    """
    Partial profile update for authenticated users.
    Fields left out (or null) are unchanged.
    """

    model_config = ConfigDict(extra="forbid")

    display_name: str | None = Field(default=None, max_length=100)
    profile_image_url: str | None = None
    timezone: str | None = Field(default=None, max_length=64)

    @field_validator("display_name")
    @classmethod
    def normalize_name(cls, v: str | None) -> str | None:
        return _strip_optional_name(v)


class UserRoleUpdate(SQLModel):
    """
    Admin-only role update schema.
    """

    model_config = ConfigDict(extra="forbid")
    role: Role
