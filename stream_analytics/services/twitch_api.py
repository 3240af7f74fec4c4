"""Twitch API client service.

Token types:
- User Access Token: obtained through the OAuth code flow at /auth/callback.
  Every Helix call made here runs on behalf of the broadcaster, since
  subscriber counts require the channel:read:subscriptions scope.

Two error styles are used on purpose:
- OAuth / user helpers return None (or a failed result) and log, so the
  HTTP handlers can turn them into a redirect or an ``{"error": ...}`` body.
- Monitoring fetches (streams, followers, subscriptions) raise
  ``AuthExpiredError`` / ``TransientFetchError`` so a monitor tick can abort
  before touching any session state. Token refresh and validation, which
  the monitor also calls, raise ``TransientFetchError`` on transport errors.
"""

import logging
from dataclasses import dataclass
from typing import Any, cast
from urllib.parse import quote

import httpx

from stream_analytics.core.exceptions import AuthExpiredError, TransientFetchError
from stream_analytics.models import StreamStatus

logger = logging.getLogger(__name__)

HELIX_BASE = "https://api.twitch.tv/helix"
OAUTH_BASE = "https://id.twitch.tv/oauth2"


@dataclass
class TokenRefreshResult:
    """Result of a token refresh operation."""

    success: bool
    access_token: str | None = None
    refresh_token: str | None = None
    error: str | None = None


def _oauth_error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return f"HTTP {response.status_code}"


class TwitchAPIClient:
    """Client for interacting with Twitch API.

    Manages a shared httpx client for connection reuse.
    """

    BROADCASTER_SCOPES = [
        "channel:read:subscriptions",
        "user:read:email",
    ]

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        timeout: float = 10.0,
    ):
        if not client_id or not client_secret:
            raise ValueError("Twitch client_id and client_secret are required")

        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri

        # Shared HTTP client: reuses TCP connections across requests
        self._http = httpx.AsyncClient(timeout=timeout)

    async def close(self) -> None:
        """Close the shared HTTP client. Call on app shutdown."""
        await self._http.aclose()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _headers(self, token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}", "Client-Id": self.client_id}

    async def _helix_get(
        self,
        path: str,
        params: dict | None = None,
        *,
        token: str,
    ) -> httpx.Response | None:
        """GET request to Helix API. Returns None on transport errors."""
        try:
            return await self._http.get(
                f"{HELIX_BASE}/{path}",
                params=params,
                headers=self._headers(token),
            )
        except Exception as e:
            logger.exception(f"Helix GET /{path} error: {e}")
            return None

    async def _helix_fetch(self, path: str, params: dict, *, token: str) -> dict[str, Any]:
        """GET request to Helix API for monitoring. Raises on any failure.

        Raises:
            AuthExpiredError: Twitch rejected the token (401/403).
            TransientFetchError: network error, timeout, other non-200 or
                a body that is not a JSON object.
        """
        try:
            response = await self._http.get(
                f"{HELIX_BASE}/{path}",
                params=params,
                headers=self._headers(token),
            )
        except httpx.TimeoutException as e:
            raise TransientFetchError(f"Timeout on Helix /{path}", endpoint=path) from e
        except httpx.HTTPError as e:
            raise TransientFetchError(
                f"Network error on Helix /{path}: {type(e).__name__}: {e}", endpoint=path
            ) from e

        if response.status_code in (401, 403):
            raise AuthExpiredError(
                f"Helix /{path} rejected token: HTTP {response.status_code}",
                endpoint=path,
                status_code=response.status_code,
            )
        if response.status_code != 200:
            raise TransientFetchError(
                f"Helix /{path} returned HTTP {response.status_code}",
                endpoint=path,
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as e:
            raise TransientFetchError(f"Helix /{path} returned invalid JSON", endpoint=path) from e
        if not isinstance(body, dict):
            raise TransientFetchError(f"Helix /{path} returned unexpected body", endpoint=path)
        return cast(dict[str, Any], body)

    # ------------------------------------------------------------------
    # OAuth flow
    # ------------------------------------------------------------------

    def generate_oauth_url(self, state: str | None = None) -> str:
        """Generate Twitch OAuth authorization URL."""
        scope_string = "+".join(s.replace(":", "%3A") for s in self.BROADCASTER_SCOPES)
        encoded_redirect_uri = quote(self.redirect_uri, safe="")

        url = (
            f"{OAUTH_BASE}/authorize"
            f"?client_id={self.client_id}"
            f"&redirect_uri={encoded_redirect_uri}"
            f"&response_type=code"
            f"&scope={scope_string}"
        )
        if state:
            url += f"&state={quote(state, safe='')}"
        return url

    async def exchange_code_for_token(
        self, code: str
    ) -> tuple[bool, str | None, dict[str, str] | None]:
        """Exchange OAuth code for access token.

        Returns:
            Tuple of (success, error_message, token_data)
            token_data contains: access_token, refresh_token, user_id,
            login, display_name
        """
        try:
            token_response = await self._http.post(
                f"{OAUTH_BASE}/token",
                data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "code": code,
                    "grant_type": "authorization_code",
                    "redirect_uri": self.redirect_uri,
                },
            )

            if token_response.status_code != 200:
                logger.error(f"Failed to exchange code: {token_response.status_code}")
                logger.error(f"Response: {token_response.text}")
                return False, "token_exchange_failed", None

            token_data = token_response.json()
            access_token = token_data.get("access_token")
            refresh_token = token_data.get("refresh_token")

            if not access_token:
                logger.error("No access_token in response")
                return False, "no_access_token", None

            # Get user info with the new user token
            user = await self.get_user_by_token(access_token)
            if not user or not user.get("id"):
                return False, "user_fetch_failed", None

            user_id = str(user["id"])
            logger.debug(f"Token exchanged for user: {user_id}")

            return (
                True,
                None,
                {
                    "access_token": access_token,
                    "refresh_token": refresh_token or "",
                    "user_id": user_id,
                    "login": user.get("login") or "",
                    "display_name": user.get("display_name") or "",
                },
            )

        except httpx.TimeoutException:
            logger.error("Timeout while exchanging code for token")
            return False, "timeout", None
        except Exception as e:
            logger.exception(f"Unexpected error exchanging code: {e}")
            return False, "exchange_failed", None

    # ------------------------------------------------------------------
    # User token management
    # ------------------------------------------------------------------

    async def refresh_access_token(self, refresh_token: str) -> TokenRefreshResult:
        """Trade a refresh token for a new access token.

        Twitch may rotate the refresh token as well; the result carries both.
        A refresh token Twitch rejects (400/401) comes back as a failed
        result.

        Raises:
            TransientFetchError: network error, timeout, other non-200 or
                an unreadable body. The refresh can be retried later.
        """
        try:
            response = await self._http.post(
                f"{OAUTH_BASE}/token",
                data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "grant_type": "refresh_token",
                    "refresh_token": refresh_token,
                },
            )
        except httpx.HTTPError as e:
            raise TransientFetchError(
                f"Token refresh failed: {type(e).__name__}: {e}", endpoint="oauth2/token"
            ) from e

        if response.status_code in (400, 401):
            error_msg = _oauth_error_message(response)
            logger.error(f"Refresh token rejected: {error_msg}")
            return TokenRefreshResult(success=False, error=error_msg)
        if response.status_code != 200:
            raise TransientFetchError(
                f"Token refresh returned HTTP {response.status_code}",
                endpoint="oauth2/token",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise TransientFetchError(
                "Token refresh returned invalid JSON", endpoint="oauth2/token"
            ) from e

        new_access_token = data.get("access_token")
        if not new_access_token:
            return TokenRefreshResult(success=False, error="No access_token in refresh response")

        logger.debug("Refreshed user access token")
        return TokenRefreshResult(
            success=True,
            access_token=new_access_token,
            refresh_token=data.get("refresh_token") or refresh_token,
        )

    async def validate_token(self, access_token: str) -> bool:
        """Ask Twitch whether *access_token* is still valid.

        Returns False only when Twitch answers 401.

        Raises:
            TransientFetchError: validity could not be determined.
        """
        try:
            response = await self._http.get(
                f"{OAUTH_BASE}/validate",
                headers={"Authorization": f"OAuth {access_token}"},
            )
        except httpx.HTTPError as e:
            raise TransientFetchError(
                f"Token validation failed: {type(e).__name__}: {e}", endpoint="oauth2/validate"
            ) from e

        if response.status_code == 401:
            return False
        if response.status_code != 200:
            raise TransientFetchError(
                f"Token validation returned HTTP {response.status_code}",
                endpoint="oauth2/validate",
                status_code=response.status_code,
            )
        return True

    # ------------------------------------------------------------------
    # User data
    # ------------------------------------------------------------------

    async def get_user_by_token(self, access_token: str) -> dict | None:
        """Get the Helix user object that owns *access_token*."""
        response = await self._helix_get("users", token=access_token)
        if not response or response.status_code != 200:
            status = response.status_code if response else "no response"
            logger.warning(f"Failed to fetch user for token: {status}")
            return None

        try:
            users = response.json().get("data", [])
        except ValueError:
            logger.error("Helix /users returned invalid JSON")
            return None

        if not users:
            logger.warning("No user found for token")
            return None

        return cast(dict, users[0])

    # ------------------------------------------------------------------
    # Monitoring fetches
    # ------------------------------------------------------------------

    async def get_stream(self, user_id: str, access_token: str) -> StreamStatus | None:
        """Get the current live stream for *user_id*, or None when offline."""
        body = await self._helix_fetch("streams", {"user_id": user_id}, token=access_token)
        streams = body.get("data") or []
        if not streams:
            return None

        try:
            return StreamStatus.from_helix(streams[0])
        except (KeyError, TypeError, ValueError) as e:
            raise TransientFetchError(
                f"Malformed stream payload for {user_id}: {e}", endpoint="streams"
            ) from e

    async def get_follower_count(self, broadcaster_id: str, access_token: str) -> int:
        """Get the total follower count of a channel."""
        body = await self._helix_fetch(
            "channels/followers", {"broadcaster_id": broadcaster_id}, token=access_token
        )
        total = body.get("total")
        if total is None:
            raise TransientFetchError(
                f"No follower total for {broadcaster_id}", endpoint="channels/followers"
            )
        return int(total)

    async def get_subscriber_count(self, broadcaster_id: str, access_token: str) -> int:
        """Get the total subscriber count of a channel (0 when not reported)."""
        body = await self._helix_fetch(
            "subscriptions", {"broadcaster_id": broadcaster_id}, token=access_token
        )
        return int(body.get("total") or 0)
