"""End-to-end tests for the popup login flow and the profile endpoints."""

from collections.abc import AsyncGenerator
from unittest.mock import AsyncMock, patch
from urllib.parse import parse_qs, urlparse

import httpx
import pytest
import pytest_asyncio
import respx
from httpx import ASGITransport, AsyncClient

from walletgate.api.app import create_application
from walletgate.api.dependencies import get_role_gateway
from walletgate.api.routers.auth import render_auth_success
from walletgate.config import settings
from walletgate.models import Identity
from walletgate.services.role_assignment import RoleAssignmentGateway
from walletgate.store import close_stores, init_stores

ANA = {"id": "42", "username": "ana", "discriminator": "0"}


@pytest_asyncio.fixture
async def app():
    # ASGITransport does not run the lifespan
    await init_stores()
    application = create_application()
    yield application
    await close_stores()


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c


def _mock_discord(user: dict = ANA, token_status: int = 200) -> respx.MockRouter:
    router = respx.mock(assert_all_called=False)
    router.post(settings.discord.token_url).mock(
        return_value=httpx.Response(
            token_status,
            json={"access_token": "at-123", "token_type": "Bearer"}
            if token_status == 200
            else {"error": "invalid_grant"},
        )
    )
    router.get(settings.discord.user_url).mock(return_value=httpx.Response(200, json=user))
    return router


async def _begin(client: AsyncClient) -> str:
    """Start a login and return the state sent to Discord."""
    resp = await client.get("/auth/discord")
    assert resp.status_code == 302
    params = parse_qs(urlparse(resp.headers["location"]).query)
    return params["state"][0]


async def _login(client: AsyncClient, user: dict = ANA) -> None:
    state = await _begin(client)
    with _mock_discord(user):
        resp = await client.get("/auth/discord/callback", params={"code": "abc", "state": state})
    assert resp.status_code == 200


class TestBeginLogin:
    async def test_redirects_to_discord_and_sets_cookie(self, client):
        resp = await client.get("/auth/discord")

        assert resp.status_code == 302
        location = urlparse(resp.headers["location"])
        assert f"{location.scheme}://{location.netloc}{location.path}" == (
            settings.discord.authorize_url
        )
        params = parse_qs(location.query)
        assert params["client_id"] == [settings.discord.client_id]
        assert params["redirect_uri"] == [settings.discord.redirect_uri]
        assert params["scope"] == ["identify"]
        assert params["state"][0]

        set_cookie = resp.headers["set-cookie"]
        assert set_cookie.startswith(f"{settings.session.cookie_name}=")
        assert "httponly" in set_cookie.lower()
        assert "samesite=lax" in set_cookie.lower()

    async def test_restarting_login_keeps_the_session(self, client):
        await client.get("/auth/discord")
        token = client.cookies.get(settings.session.cookie_name)

        await client.get("/auth/discord")

        assert client.cookies.get(settings.session.cookie_name) == token


class TestCallback:
    async def test_full_flow(self, client):
        with patch("walletgate.auth.manager.generate_state", return_value="s1"):
            state = await _begin(client)
        assert state == "s1"

        with _mock_discord() as discord:
            resp = await client.get(
                "/auth/discord/callback", params={"code": "abc", "state": "s1"}
            )

        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/html")
        assert '"type": "auth-success"' in resp.text
        assert '"id": "42"' in resp.text
        assert '"displayName": "ana"' in resp.text
        assert '"*"' not in resp.text
        assert discord.calls.call_count == 2

        me = await client.get("/api/me")
        assert me.status_code == 200
        body = me.json()
        assert body["ok"] is True
        assert body["identityKey"] == "42"
        assert body["displayName"] == "ana"
        assert body["profile"] == {
            "identityKey": "42",
            "displayName": "ana",
            "evmAddress": None,
            "btcAddress": None,
            "adaAddress": None,
            "updatedAt": None,
        }

    async def test_replayed_callback_is_rejected(self, client):
        state = await _begin(client)
        with _mock_discord():
            first = await client.get("/auth/discord/callback", params={"code": "abc", "state": state})
            second = await client.get(
                "/auth/discord/callback", params={"code": "abc", "state": state}
            )

        assert first.status_code == 200
        assert second.status_code == 400
        assert second.headers["content-type"].startswith("text/plain")

    async def test_state_from_another_browser_is_rejected(self, app, client):
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as other:
            foreign_state = await _begin(other)
        await _begin(client)

        with _mock_discord() as discord:
            resp = await client.get(
                "/auth/discord/callback", params={"code": "abc", "state": foreign_state}
            )

        assert resp.status_code == 400
        assert discord.calls.call_count == 0
        assert (await client.get("/api/me")).status_code == 401

    async def test_non_ascii_state_is_a_mismatch(self, client):
        await _begin(client)

        with _mock_discord() as discord:
            resp = await client.get("/auth/discord/callback", params={"code": "abc", "state": "é"})

        assert resp.status_code == 400
        assert "Invalid or expired login attempt" in resp.text
        assert discord.calls.call_count == 0

    async def test_callback_without_session(self, client):
        resp = await client.get("/auth/discord/callback", params={"code": "abc", "state": "s1"})
        assert resp.status_code == 400

    async def test_provider_rejects_code(self, client):
        state = await _begin(client)

        with _mock_discord(token_status=400):
            resp = await client.get("/auth/discord/callback", params={"code": "bad", "state": state})

        assert resp.status_code == 401
        assert "log in again" in resp.text
        assert (await client.get("/api/me")).status_code == 401

    async def test_provider_returns_no_user_id(self, client):
        state = await _begin(client)

        with _mock_discord(user={"username": "ghost"}):
            resp = await client.get("/auth/discord/callback", params={"code": "abc", "state": state})

        assert resp.status_code == 401

    async def test_unexpected_failure_is_plain_500(self, client):
        state = await _begin(client)

        with (
            _mock_discord(),
            patch(
                "walletgate.services.profile_service.ProfileService.ensure",
                new_callable=AsyncMock,
                side_effect=RuntimeError("store down"),
            ),
        ):
            resp = await client.get("/auth/discord/callback", params={"code": "abc", "state": state})

        assert resp.status_code == 500
        assert "store down" not in resp.text

    async def test_opener_origin_from_config(self, client):
        state = await _begin(client)

        with (
            patch.object(settings, "opener_origin", "https://app.test"),
            _mock_discord(),
        ):
            resp = await client.get("/auth/discord/callback", params={"code": "abc", "state": state})

        assert '"https://app.test"' in resp.text

    def test_success_page_escapes_display_name(self):
        html = render_auth_success(
            Identity(provider_id="42", display_name="</script><script>alert(1)"),
            "https://app.test",
        )
        assert "</script><script>alert(1)" not in html
        assert "\\u003c/script\\u003e" in html


class TestProfileEndpoints:
    async def test_me_requires_login(self, client):
        resp = await client.get("/api/me")
        assert resp.status_code == 401
        assert resp.json() == {"ok": False}

    async def test_save_requires_login(self, client):
        resp = await client.post("/api/save", json={"evmAddress": "0xabc"})
        assert resp.status_code == 401
        assert resp.json()["ok"] is False
        assert resp.json()["code"] == "unauthenticated"

    async def test_save_and_merge(self, client):
        await _login(client)

        first = await client.post(
            "/api/save", json={"evmAddress": "0xabc", "btcAddress": "bc1q"}
        )
        assert first.status_code == 200
        assert first.json()["ok"] is True
        assert first.json()["profile"]["updatedAt"] is not None

        second = await client.post("/api/save", json={"btcAddress": "", "adaAddress": "addr1"})
        profile = second.json()["profile"]
        assert profile["evmAddress"] == "0xabc"
        assert profile["btcAddress"] == "bc1q"
        assert profile["adaAddress"] == "addr1"

        me = (await client.get("/api/me")).json()
        assert me["profile"] == profile

    async def test_save_with_empty_body(self, client):
        await _login(client)

        resp = await client.post("/api/save")

        assert resp.status_code == 200
        assert resp.json()["profile"]["updatedAt"] is not None

    async def test_save_rejects_malformed_address(self, client):
        await _login(client)

        resp = await client.post("/api/save", json={"evmAddress": "0x abc"})

        assert resp.status_code == 422

    async def test_profiles_are_isolated_per_identity(self, app, client):
        await _login(client)
        await client.post("/api/save", json={"evmAddress": "0xabc"})

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as bob:
            await _login(bob, {"id": "7", "username": "bob"})
            me = (await bob.get("/api/me")).json()

        assert me["identityKey"] == "7"
        assert me["profile"]["evmAddress"] is None


class TestAssignRoles:
    async def test_requires_login(self, client):
        resp = await client.post("/api/assign-roles")
        assert resp.status_code == 401

    async def test_before_any_save(self, client):
        await _login(client)

        resp = await client.post("/api/assign-roles")

        assert resp.status_code == 400
        assert resp.json()["code"] == "no_profile"

    async def test_forwards_result(self, app, client):
        assigner = AsyncMock()
        assigner.assign = AsyncMock(return_value={"roles": ["evm-holder"]})
        app.dependency_overrides[get_role_gateway] = lambda: RoleAssignmentGateway(assigner)
        await _login(client)
        await client.post("/api/save", json={"evmAddress": "0xabc"})

        resp = await client.post("/api/assign-roles")

        assert resp.status_code == 200
        assert resp.json() == {"ok": True, "result": {"roles": ["evm-holder"]}}
        forwarded = assigner.assign.call_args[0][0]
        assert forwarded.identity_key == "42"
        assert forwarded.wallets.evm == "0xabc"

    async def test_failure_is_reported(self, app, client):
        assigner = AsyncMock()
        assigner.assign = AsyncMock(side_effect=RuntimeError("bot offline"))
        app.dependency_overrides[get_role_gateway] = lambda: RoleAssignmentGateway(assigner)
        await _login(client)
        await client.post("/api/save", json={"evmAddress": "0xabc"})

        resp = await client.post("/api/assign-roles")

        assert resp.status_code == 502
        body = resp.json()
        assert body["ok"] is False
        assert body["code"] == "role_assignment_failed"
        assert "bot offline" in body["detail"]

        # The stored profile is unaffected
        me = (await client.get("/api/me")).json()
        assert me["profile"]["evmAddress"] == "0xabc"

    async def test_webhook_failure_does_not_reveal_endpoint(self, client):
        url = "https://hooks.internal.test/assign?key=s3cr3t"
        await _login(client)
        await client.post("/api/save", json={"evmAddress": "0xabc"})

        with (
            patch.object(settings.role_assignment, "endpoint_url", url),
            respx.mock(assert_all_called=False) as webhook,
        ):
            webhook.post(url).mock(return_value=httpx.Response(500, text="boom"))
            resp = await client.post("/api/assign-roles")

        assert resp.status_code == 502
        assert resp.json()["detail"] == "RoleAssignerUnavailable: webhook returned 500"
        assert "hooks.internal.test" not in resp.text
        assert "s3cr3t" not in resp.text

    async def test_unconfigured_endpoint(self, client):
        await _login(client)
        await client.post("/api/save", json={"evmAddress": "0xabc"})

        resp = await client.post("/api/assign-roles")

        assert resp.status_code == 502


class TestLogout:
    async def test_logout_ends_session(self, client):
        await _login(client)
        assert (await client.get("/api/me")).status_code == 200

        resp = await client.post("/auth/logout")

        assert resp.status_code == 200
        assert resp.json() == {"ok": True}
        assert (await client.get("/api/me")).status_code == 401

    async def test_logout_without_session(self, client):
        resp = await client.post("/auth/logout")
        assert resp.status_code == 200


class TestErrorHandling:
    async def test_unhandled_error_returns_json_500(self, app):
        with patch(
            "walletgate.services.profile_service.ProfileService.get",
            new_callable=AsyncMock,
            side_effect=RuntimeError("boom"),
        ):
            transport = ASGITransport(app=app, raise_app_exceptions=False)
            async with AsyncClient(transport=transport, base_url="http://test") as c:
                await _login(c)
                resp = await c.get("/api/me")

        assert resp.status_code == 500
        assert resp.json() == {"ok": False, "error": "Internal server error"}

    async def test_request_id_is_echoed(self, client):
        resp = await client.get("/health", headers={"X-Request-ID": "req-1"})
        assert resp.headers["X-Request-ID"] == "req-1"


@pytest.mark.parametrize("path", ["/health", "/ready"])
async def test_health_endpoints(client, path):
    resp = await client.get(path)
    assert resp.status_code == 200
