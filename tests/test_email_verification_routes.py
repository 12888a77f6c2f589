"""Email verification over HTTP."""

from conftest import API, bearer, register


async def send(client, token, locale=None):
    payload = {"locale": locale} if locale else None
    return await client.post(
        f"{API}/auth/send-verification-email", json=payload, headers=bearer(token)
    )


class TestSendVerificationEmail:
    async def test_sends_a_link(self, client, mailer):
        token = (await register(client))["session"]["token"]
        response = await send(client, token, locale="lo")

        assert response.status_code == 200
        assert [(m.kind, m.to_email, m.locale) for m in mailer.sent] == [
            ("verify", "viewer@example.com", "lo")
        ]

    async def test_body_is_optional(self, client, mailer):
        token = (await register(client))["session"]["token"]
        response = await send(client, token)
        assert response.status_code == 200
        assert mailer.sent[0].locale == "en"

    async def test_requires_auth(self, client):
        response = await client.post(f"{API}/auth/send-verification-email")
        assert response.status_code == 401

    async def test_delivery_failure_is_reported(self, client, mailer):
        token = (await register(client))["session"]["token"]
        mailer.fail = True
        response = await send(client, token)
        assert response.status_code == 500

    async def test_already_verified(self, client, mailer):
        token = (await register(client))["session"]["token"]
        await send(client, token)
        await client.post(f"{API}/auth/verify-email", json={"token": mailer.sent[0].token})

        response = await send(client, token)
        assert response.status_code == 400


class TestVerifyEmail:
    async def test_verify(self, client, mailer):
        token = (await register(client))["session"]["token"]
        await send(client, token)
        link_token = mailer.sent[0].token

        check = await client.get(f"{API}/auth/verify-email-token", params={"token": link_token})
        assert check.json() == {"valid": True}

        response = await client.post(f"{API}/auth/verify-email", json={"token": link_token})
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["user"]["email_verified"] is True

        me = await client.get(f"{API}/auth/me", headers=bearer(token))
        assert me.json()["user"]["email_verified"] is True

        again = await client.post(f"{API}/auth/verify-email", json={"token": link_token})
        assert again.status_code == 400

    async def test_resend_invalidates_the_previous_link(self, client, mailer):
        token = (await register(client))["session"]["token"]
        await send(client, token)
        await send(client, token)

        stale = await client.post(f"{API}/auth/verify-email", json={"token": mailer.sent[0].token})
        assert stale.status_code == 400
        fresh = await client.post(f"{API}/auth/verify-email", json={"token": mailer.sent[1].token})
        assert fresh.status_code == 200

    async def test_unknown_token(self, client):
        response = await client.post(f"{API}/auth/verify-email", json={"token": "a" * 64})
        assert response.status_code == 400
        check = await client.get(f"{API}/auth/verify-email-token", params={"token": "a" * 64})
        assert check.json() == {"valid": False}

    async def test_email_change_voids_pending_links(self, client, mailer):
        token = (await register(client))["session"]["token"]
        await send(client, token)
        await client.patch(
            f"{API}/auth/me/email",
            json={"email": "moved@example.com", "password": "correct-horse"},
            headers=bearer(token),
        )

        response = await client.post(f"{API}/auth/verify-email", json={"token": mailer.sent[0].token})
        assert response.status_code == 400
