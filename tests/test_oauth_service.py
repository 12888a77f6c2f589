"""OAuth links and the provider sign-in flow."""

from datetime import datetime, timezone

import pytest

from cinema_api.core.exceptions import OAuthAccountConflictError
from cinema_api.core.oauth import OAuthProvider, OAuthProviderRegistry, OAuthUserInfo
from cinema_api.core.security import as_utc
from cinema_api.repositories.oauth_repo import OAuthAccountRepository
from cinema_api.repositories.user_repo import UserRepository
from cinema_api.services.account_service import AccountService
from cinema_api.services.oauth_service import OAuthService

from conftest import FakeOAuthProvider

REDIRECT = "http://localhost:3001/api/v1/auth/oauth/google/callback"


@pytest.fixture
def accounts():
    return AccountService(UserRepository())


@pytest.fixture
def oauth(accounts):
    return OAuthService(OAuthAccountRepository(), accounts)


@pytest.fixture
async def user(accounts, session):
    return await accounts.create_user(session, email="viewer@example.com", password="correct-horse")


class TestLinks:
    async def test_link_and_find(self, oauth, session, user):
        link = await oauth.link_oauth_account(
            session,
            user_id=user.id,
            provider="google",
            provider_account_id="g-1",
            access_token="at-1",
        )
        found = await oauth.find_oauth_account(session, "google", "g-1")

        assert found is not None
        assert found.account.id == link.id
        assert found.user.id == user.id
        assert await oauth.find_oauth_account(session, "apple", "g-1") is None

    async def test_relinking_same_user_refreshes_tokens(self, oauth, session, user):
        first = await oauth.link_oauth_account(
            session, user_id=user.id, provider="google", provider_account_id="g-1",
            access_token="old", refresh_token="old-refresh",
        )
        second = await oauth.link_oauth_account(
            session, user_id=user.id, provider="google", provider_account_id="g-1",
            access_token="new",
        )

        assert second.id == first.id
        assert second.access_token == "new"
        assert second.refresh_token == "old-refresh"
        assert len(await oauth.list_user_oauth_accounts(session, user.id)) == 1

    async def test_identity_linked_to_another_user_conflicts(self, oauth, accounts, session, user):
        other = await accounts.create_user(session, email="other@example.com", password="pw-123456")
        await oauth.link_oauth_account(
            session, user_id=user.id, provider="google", provider_account_id="g-1"
        )

        with pytest.raises(OAuthAccountConflictError):
            await oauth.link_oauth_account(
                session, user_id=other.id, provider="google", provider_account_id="g-1"
            )

    async def test_same_account_id_on_different_providers(self, oauth, accounts, session, user):
        other = await accounts.create_user(session, email="other@example.com", password="pw-123456")
        await oauth.link_oauth_account(session, user_id=user.id, provider="google", provider_account_id="x")
        await oauth.link_oauth_account(session, user_id=other.id, provider="apple", provider_account_id="x")

        assert (await oauth.find_oauth_account(session, "google", "x")).user.id == user.id
        assert (await oauth.find_oauth_account(session, "apple", "x")).user.id == other.id

    async def test_update_tokens_keeps_omitted_fields(self, oauth, session, user):
        expires = datetime(2030, 1, 1, tzinfo=timezone.utc)
        link = await oauth.link_oauth_account(
            session, user_id=user.id, provider="google", provider_account_id="g-1",
            access_token="a", refresh_token="r", expires_at=expires,
        )
        updated = await oauth.update_oauth_tokens(session, link.id, "a2")

        assert updated.access_token == "a2"
        assert updated.refresh_token == "r"
        assert as_utc(updated.expires_at) == expires

    async def test_update_tokens_replaces_given_fields(self, oauth, session, user):
        link = await oauth.link_oauth_account(
            session, user_id=user.id, provider="google", provider_account_id="g-1",
            access_token="a", refresh_token="r",
        )
        expires = datetime(2031, 6, 1, tzinfo=timezone.utc)
        updated = await oauth.update_oauth_tokens(session, link.id, "a2", "r2", expires)

        assert updated.refresh_token == "r2"
        assert as_utc(updated.expires_at) == expires

    async def test_unlink_keeps_the_user(self, oauth, accounts, session, user):
        link = await oauth.link_oauth_account(
            session, user_id=user.id, provider="google", provider_account_id="g-1"
        )
        await oauth.unlink_oauth_account(session, link.id)

        assert await oauth.find_oauth_account(session, "google", "g-1") is None
        assert await accounts.find_user_by_id(session, user.id) is not None

    async def test_unlink_all_for_user(self, oauth, session, user):
        await oauth.link_oauth_account(session, user_id=user.id, provider="google", provider_account_id="g")
        await oauth.link_oauth_account(session, user_id=user.id, provider="apple", provider_account_id="a")

        assert await oauth.unlink_all_for_user(session, user.id) == 2
        assert await oauth.list_user_oauth_accounts(session, user.id) == []


class TestCompleteSignIn:
    async def test_new_identity_creates_an_oauth_only_user(self, oauth, session):
        provider = FakeOAuthProvider()
        user = await oauth.complete_sign_in(session, provider, "code-1", REDIRECT)

        assert user.email == "oauth.user@example.com"
        assert user.password_hash is None
        assert user.email_verified is True
        assert user.last_login_at is not None
        assert provider.exchanged == [("code-1", REDIRECT)]

        found = await oauth.find_oauth_account(session, "google", "g-123")
        assert found.user.id == user.id
        assert found.account.access_token == "access-code-1"
        assert found.account.expires_at is not None

    async def test_existing_email_gets_linked(self, oauth, session, user):
        provider = FakeOAuthProvider(
            user_info=OAuthUserInfo(provider_id="g-9", email="VIEWER@example.com")
        )
        signed_in = await oauth.complete_sign_in(session, provider, "code", REDIRECT)

        assert signed_in.id == user.id
        assert signed_in.password_hash is not None
        assert (await oauth.find_oauth_account(session, "google", "g-9")).user.id == user.id

    async def test_known_identity_refreshes_tokens(self, oauth, session):
        provider = FakeOAuthProvider()
        first = await oauth.complete_sign_in(session, provider, "one", REDIRECT)
        second = await oauth.complete_sign_in(session, provider, "two", REDIRECT)

        assert second.id == first.id
        found = await oauth.find_oauth_account(session, "google", "g-123")
        assert found.account.access_token == "access-two"
        assert found.account.refresh_token == "refresh-two"

    async def test_repeat_sign_in_without_refresh_token_keeps_the_stored_one(self, oauth, session):
        provider = FakeOAuthProvider()
        await oauth.complete_sign_in(session, provider, "one", REDIRECT)

        provider.issue_refresh_token = False
        await oauth.complete_sign_in(session, provider, "two", REDIRECT)

        found = await oauth.find_oauth_account(session, "google", "g-123")
        assert found.account.access_token == "access-two"
        assert found.account.refresh_token == "refresh-one"

    async def test_deleted_account_cannot_sign_in(self, oauth, accounts, session):
        provider = FakeOAuthProvider()
        user = await oauth.complete_sign_in(session, provider, "one", REDIRECT)
        await accounts.delete_user(session, user.id)

        assert await oauth.complete_sign_in(session, provider, "two", REDIRECT) is None


class TestRegistry:
    def test_register_and_get(self):
        registry = OAuthProviderRegistry()
        provider = FakeOAuthProvider("apple")
        registry.register(provider)

        assert isinstance(provider, OAuthProvider)
        assert registry.get("apple") is provider
        assert registry.get("google") is None
        assert registry.names() == ["apple"]

    def test_unsupported_provider_is_rejected(self):
        with pytest.raises(ValueError):
            OAuthProviderRegistry().register(FakeOAuthProvider("myspace"))
