# cinema_api/models/session.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class UserSession(SQLModel, table=True):
    """
    One logged-in browser or device.

    The token is an opaque 64-char hex bearer credential. Rows past
    expires_at are deleted the next time someone looks them up.
    """

    __tablename__ = "user_sessions"

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

    ip_address: str | None = None
    user_agent: str | None = None

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
