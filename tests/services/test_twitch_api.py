"""Tests for TwitchAPIClient with a mocked Helix API (respx)."""

from collections.abc import AsyncIterator
from datetime import datetime, timezone

import httpx
import pytest
import respx

from stream_analytics.core.exceptions import AuthExpiredError, TransientFetchError
from stream_analytics.services.twitch_api import HELIX_BASE, OAUTH_BASE, TwitchAPIClient

REDIRECT_URI = "https://analytics.example.com/auth/callback"


@pytest.fixture
async def client() -> AsyncIterator[TwitchAPIClient]:
    api = TwitchAPIClient("cid", "secret", REDIRECT_URI)
    yield api
    await api.close()


def test_requires_credentials():
    with pytest.raises(ValueError):
        TwitchAPIClient("", "secret", REDIRECT_URI)


def test_oauth_url_contains_redirect_and_scopes():
    api = TwitchAPIClient("cid", "secret", REDIRECT_URI)

    url = api.generate_oauth_url(state="abc")

    assert url.startswith(f"{OAUTH_BASE}/authorize?client_id=cid")
    assert "redirect_uri=https%3A%2F%2Fanalytics.example.com%2Fauth%2Fcallback" in url
    assert "scope=channel%3Aread%3Asubscriptions+user%3Aread%3Aemail" in url
    assert url.endswith("&state=abc")


@pytest.mark.asyncio
class TestGetStream:
    @respx.mock
    async def test_live_stream(self, client: TwitchAPIClient):
        route = respx.get(f"{HELIX_BASE}/streams").mock(
            return_value=httpx.Response(
                200,
                json={
                    "data": [
                        {
                            "id": "40952121085",
                            "user_id": "141981764",
                            "game_name": "Just Chatting",
                            "title": "Hello",
                            "viewer_count": 321,
                            "started_at": "2026-03-01T18:00:00Z",
                        }
                    ]
                },
            )
        )

        status = await client.get_stream("141981764", "tok")

        assert status is not None
        assert status.viewer_count == 321
        assert status.started_at == datetime(2026, 3, 1, 18, 0, tzinfo=timezone.utc)
        request = route.calls.last.request
        assert request.url.params["user_id"] == "141981764"
        assert request.headers["Authorization"] == "Bearer tok"
        assert request.headers["Client-Id"] == "cid"

    @respx.mock
    async def test_offline_returns_none(self, client: TwitchAPIClient):
        respx.get(f"{HELIX_BASE}/streams").mock(
            return_value=httpx.Response(200, json={"data": [], "pagination": {}})
        )

        assert await client.get_stream("141981764", "tok") is None

    @respx.mock
    async def test_unauthorized_raises_auth_expired(self, client: TwitchAPIClient):
        respx.get(f"{HELIX_BASE}/streams").mock(
            return_value=httpx.Response(401, json={"message": "Invalid OAuth token"})
        )

        with pytest.raises(AuthExpiredError) as exc_info:
            await client.get_stream("141981764", "tok")

        assert exc_info.value.status_code == 401

    @respx.mock
    async def test_server_error_raises_transient(self, client: TwitchAPIClient):
        respx.get(f"{HELIX_BASE}/streams").mock(return_value=httpx.Response(503))

        with pytest.raises(TransientFetchError) as exc_info:
            await client.get_stream("141981764", "tok")

        assert exc_info.value.status_code == 503

    @respx.mock
    async def test_network_error_raises_transient(self, client: TwitchAPIClient):
        respx.get(f"{HELIX_BASE}/streams").mock(side_effect=httpx.ConnectError("refused"))

        with pytest.raises(TransientFetchError):
            await client.get_stream("141981764", "tok")

    @respx.mock
    async def test_malformed_stream_raises_transient(self, client: TwitchAPIClient):
        respx.get(f"{HELIX_BASE}/streams").mock(
            return_value=httpx.Response(200, json={"data": [{"id": "1"}]})
        )

        with pytest.raises(TransientFetchError):
            await client.get_stream("141981764", "tok")


@pytest.mark.asyncio
class TestCounts:
    @respx.mock
    async def test_follower_count(self, client: TwitchAPIClient):
        route = respx.get(f"{HELIX_BASE}/channels/followers").mock(
            return_value=httpx.Response(200, json={"total": 8, "data": []})
        )

        assert await client.get_follower_count("141981764", "tok") == 8
        assert route.calls.last.request.url.params["broadcaster_id"] == "141981764"

    @respx.mock
    async def test_follower_count_missing_total(self, client: TwitchAPIClient):
        respx.get(f"{HELIX_BASE}/channels/followers").mock(
            return_value=httpx.Response(200, json={"data": []})
        )

        with pytest.raises(TransientFetchError):
            await client.get_follower_count("141981764", "tok")

    @respx.mock
    async def test_subscriber_count_defaults_to_zero(self, client: TwitchAPIClient):
        respx.get(f"{HELIX_BASE}/subscriptions").mock(
            return_value=httpx.Response(200, json={"data": [], "points": 0})
        )

        assert await client.get_subscriber_count("141981764", "tok") == 0

    @respx.mock
    async def test_subscriber_count_forbidden(self, client: TwitchAPIClient):
        respx.get(f"{HELIX_BASE}/subscriptions").mock(return_value=httpx.Response(403))

        with pytest.raises(AuthExpiredError):
            await client.get_subscriber_count("141981764", "tok")


@pytest.mark.asyncio
class TestOAuth:
    @respx.mock
    async def test_exchange_code_for_token(self, client: TwitchAPIClient):
        token_route = respx.post(f"{OAUTH_BASE}/token").mock(
            return_value=httpx.Response(
                200, json={"access_token": "access", "refresh_token": "refresh"}
            )
        )
        respx.get(f"{HELIX_BASE}/users").mock(
            return_value=httpx.Response(
                200,
                json={
                    "data": [
                        {"id": "141981764", "login": "twitchdev", "display_name": "TwitchDev"}
                    ]
                },
            )
        )

        success, error, data = await client.exchange_code_for_token("the-code")

        assert success is True
        assert error is None
        assert data == {
            "access_token": "access",
            "refresh_token": "refresh",
            "user_id": "141981764",
            "login": "twitchdev",
            "display_name": "TwitchDev",
        }
        body = token_route.calls.last.request.content.decode()
        assert "grant_type=authorization_code" in body
        assert "code=the-code" in body

    @respx.mock
    async def test_exchange_code_rejected(self, client: TwitchAPIClient):
        respx.post(f"{OAUTH_BASE}/token").mock(
            return_value=httpx.Response(400, json={"message": "Invalid authorization code"})
        )

        success, error, data = await client.exchange_code_for_token("bad")

        assert success is False
        assert error == "token_exchange_failed"
        assert data is None

    @respx.mock
    async def test_refresh_access_token(self, client: TwitchAPIClient):
        respx.post(f"{OAUTH_BASE}/token").mock(
            return_value=httpx.Response(200, json={"access_token": "new-access"})
        )

        result = await client.refresh_access_token("old-refresh")

        assert result.success is True
        assert result.access_token == "new-access"
        assert result.refresh_token == "old-refresh"

    @respx.mock
    async def test_refresh_access_token_failure(self, client: TwitchAPIClient):
        respx.post(f"{OAUTH_BASE}/token").mock(
            return_value=httpx.Response(400, json={"message": "Invalid refresh token"})
        )

        result = await client.refresh_access_token("old-refresh")

        assert result.success is False
        assert result.error == "Invalid refresh token"

    @respx.mock
    async def test_refresh_access_token_network_error(self, client: TwitchAPIClient):
        respx.post(f"{OAUTH_BASE}/token").mock(side_effect=httpx.ConnectError("refused"))

        with pytest.raises(TransientFetchError):
            await client.refresh_access_token("old-refresh")

    @respx.mock
    async def test_refresh_access_token_server_error(self, client: TwitchAPIClient):
        respx.post(f"{OAUTH_BASE}/token").mock(return_value=httpx.Response(502))

        with pytest.raises(TransientFetchError) as exc_info:
            await client.refresh_access_token("old-refresh")

        assert exc_info.value.status_code == 502

    @respx.mock
    async def test_validate_token(self, client: TwitchAPIClient):
        route = respx.get(f"{OAUTH_BASE}/validate").mock(
            return_value=httpx.Response(
                200, json={"client_id": "cid", "login": "twitchdev", "expires_in": 5520}
            )
        )

        assert await client.validate_token("tok") is True
        assert route.calls.last.request.headers["Authorization"] == "OAuth tok"

    @respx.mock
    async def test_validate_token_invalid(self, client: TwitchAPIClient):
        respx.get(f"{OAUTH_BASE}/validate").mock(
            return_value=httpx.Response(401, json={"status": 401, "message": "invalid access token"})
        )

        assert await client.validate_token("expired") is False

    @respx.mock
    async def test_validate_token_timeout(self, client: TwitchAPIClient):
        respx.get(f"{OAUTH_BASE}/validate").mock(side_effect=httpx.ReadTimeout("slow"))

        with pytest.raises(TransientFetchError):
            await client.validate_token("tok")

    @respx.mock
    async def test_get_user_by_token_invalid(self, client: TwitchAPIClient):
        respx.get(f"{HELIX_BASE}/users").mock(return_value=httpx.Response(401))

        assert await client.get_user_by_token("bad") is None
