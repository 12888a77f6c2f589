# cinema_api/core/oauth.py
"""
OAuth provider contract.

No concrete provider ships with the API. A Google or Apple adapter
implements `OAuthProvider` and is registered at startup:

    registry = OAuthProviderRegistry()
    registry.register(GoogleProvider(client_id=..., client_secret=...))
    app.state.oauth_providers = registry

The account and link services never import adapters directly.
"""
from dataclasses import dataclass
from typing import Literal, Protocol, runtime_checkable

ProviderName = Literal["google", "apple"]
SUPPORTED_PROVIDERS: tuple[str, ...] = ("google", "apple")


@dataclass(frozen=True)
class OAuthTokens:
    access_token: str
    expires_in: int
    refresh_token: str | None = None


@dataclass(frozen=True)
class OAuthUserInfo:
    provider_id: str
    email: str
    name: str | None = None
    picture: str | None = None


@runtime_checkable
class OAuthProvider(Protocol):
    name: str

    def get_authorization_url(self, redirect_uri: str, state: str) -> str:
        """Build the provider's consent URL."""
        ...

    async def exchange_code_for_tokens(
        self, code: str, redirect_uri: str
    ) -> OAuthTokens:
        """Trade an authorization code for provider tokens."""
        ...

    async def get_user_info(self, access_token: str) -> OAuthUserInfo:
        """Fetch the provider-side identity for an access token."""
        ...


class OAuthProviderRegistry:
    """One slot per supported provider name."""

    def __init__(self) -> None:
        self._providers: dict[str, OAuthProvider] = {}

    def register(self, provider: OAuthProvider) -> None:
        if provider.name not in SUPPORTED_PROVIDERS:
            raise ValueError(f"Unsupported OAuth provider: {provider.name}")
        self._providers[provider.name] = provider

    def get(self, name: str) -> OAuthProvider | None:
        return self._providers.get(name)

    def names(self) -> list[str]:
        return sorted(self._providers)
