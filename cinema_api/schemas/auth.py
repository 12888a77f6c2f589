# cinema_api/schemas/auth.py
from datetime import datetime
from typing import Literal

from pydantic import ConfigDict, EmailStr, field_validator
from sqlmodel import SQLModel, Field

from cinema_api.core.config import get_settings
from cinema_api.schemas.user import UserRead, _strip_optional_name

Locale = Literal["en", "lo"]


def _check_password_policy(v: str) -> str:
    minimum = get_settings().PASSWORD_MIN_LENGTH
    if len(v) < minimum:
        raise ValueError(f"Password must be at least {minimum} characters long")
    return v


class RegisterRequest(SQLModel):
    """
    Email/password sign-up.

    Validation rules:
      - email must be a valid EmailStr
      - password must satisfy PASSWORD_MIN_LENGTH
    """

    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    password: str
    display_name: str | None = Field(default=None, max_length=100)

    @field_validator("password")
    @classmethod
    def password_policy(cls, v: str) -> str:
        return _check_password_policy(v)

    @field_validator("display_name")
    @classmethod
    def normalize_name(cls, v: str | None) -> str | None:
        return _strip_optional_name(v)


class LoginRequest(SQLModel):
    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    password: str = Field(min_length=1)


class ChangePasswordRequest(SQLModel):
    model_config = ConfigDict(extra="forbid")

    current_password: str = Field(min_length=1)
    new_password: str

    @field_validator("new_password")
    @classmethod
    def password_policy(cls, v: str) -> str:
        return _check_password_policy(v)


class ChangeEmailRequest(SQLModel):
    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    password: str = Field(min_length=1)


class DeleteAccountRequest(SQLModel):
    """Password confirmation; OAuth-only accounts may omit it."""

    password: str | None = None


class ForgotPasswordRequest(SQLModel):
    email: EmailStr
    locale: Locale = "en"


class ResetPasswordRequest(SQLModel):
    token: str = Field(min_length=1)
    new_password: str

    @field_validator("new_password")
    @classmethod
    def password_policy(cls, v: str) -> str:
        return _check_password_policy(v)


class SendVerificationRequest(SQLModel):
    locale: Locale = "en"


class VerifyEmailRequest(SQLModel):
    token: str = Field(min_length=1)


class SessionRead(SQLModel):
    token: str
    expires_at: datetime


class AuthResponse(SQLModel):
    """Returned by register/login: the profile plus the new session."""

    user: UserRead
    session: SessionRead


class MeResponse(SQLModel):
    user: UserRead


class MessageResponse(SQLModel):
    success: bool = True
    message: str


class TokenValidity(SQLModel):
    valid: bool


class VerifyEmailResponse(MessageResponse):
    user: UserRead
