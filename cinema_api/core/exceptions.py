# cinema_api/core/exceptions.py
"""
Domain errors raised by the account services.

Only conflicts are raised. Lookups that find nothing return None, and
routers translate these exceptions into HTTP 409 responses.
"""


class AccountError(Exception):
    """Base class for account/auth domain errors."""

    code = "ACCOUNT_ERROR"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.code)
        self.message = message or self.code


class DuplicateEmailError(AccountError):
    """A live user already owns this (normalized) email address."""

    code = "DUPLICATE_EMAIL"


class OAuthAccountConflictError(AccountError):
    """The (provider, provider account id) pair already links to another user."""

    code = "OAUTH_ACCOUNT_CONFLICT"
