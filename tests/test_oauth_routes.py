"""OAuth authorize/callback endpoints with a fake provider."""

from urllib.parse import parse_qs, urlparse

from cinema_api.repositories.user_repo import UserRepository
from cinema_api.services.account_service import AccountService

from conftest import API, bearer


async def authorize(client, provider="google"):
    return await client.get(f"{API}/auth/oauth/{provider}/authorize")


def state_from(response) -> str:
    query = parse_qs(urlparse(response.headers["location"]).query)
    return query["state"][0]


async def callback(client, state, cookie_state=None, code="code-1", provider="google"):
    client.cookies.clear()
    if cookie_state is not None:
        client.cookies.set("oauth_state", cookie_state)
    return await client.get(
        f"{API}/auth/oauth/{provider}/callback", params={"code": code, "state": state}
    )


class TestAuthorize:
    async def test_redirects_with_state_cookie(self, client):
        response = await authorize(client)

        assert response.status_code == 302
        location = response.headers["location"]
        assert location.startswith("https://accounts.example.com/auth")
        assert "/api/v1/auth/oauth/google/callback" in parse_qs(urlparse(location).query)["redirect_uri"][0]

        state = state_from(response)
        assert len(state) == 64
        assert response.cookies.get("oauth_state") == state

    async def test_unregistered_provider(self, client):
        assert (await authorize(client, provider="apple")).status_code == 404
        assert (await authorize(client, provider="myspace")).status_code == 404


class TestCallback:
    async def test_signs_in_and_redirects_to_frontend(self, client, oauth_provider):
        state = state_from(await authorize(client))
        response = await callback(client, state, cookie_state=state)

        assert response.status_code == 302
        assert response.headers["location"] == "http://localhost:3000"
        token = response.cookies.get("session")
        assert token and len(token) == 64

        client.cookies.clear()
        me = await client.get(f"{API}/auth/me", headers=bearer(token))
        assert me.status_code == 200
        user = me.json()["user"]
        assert user["email"] == "oauth.user@example.com"
        assert user["email_verified"] is True
        assert oauth_provider.exchanged[0][0] == "code-1"

    async def test_state_mismatch(self, client, oauth_provider):
        state = state_from(await authorize(client))
        response = await callback(client, state, cookie_state="0" * 64)

        assert response.status_code == 400
        assert oauth_provider.exchanged == []

    async def test_missing_state_cookie(self, client):
        state = state_from(await authorize(client))
        response = await callback(client, state)
        assert response.status_code == 400

    async def test_deleted_account(self, client, session_factory):
        state = state_from(await authorize(client))
        first = await callback(client, state, cookie_state=state)
        assert first.status_code == 302

        accounts = AccountService(UserRepository())
        async with session_factory() as s:
            user = await accounts.find_user_by_email(s, "oauth.user@example.com")
            await accounts.delete_user(s, user.id)

        state = state_from(await authorize(client))
        response = await callback(client, state, cookie_state=state, code="code-2")
        assert response.status_code == 401
