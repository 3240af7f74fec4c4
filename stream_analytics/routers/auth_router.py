"""Authentication API routes"""

import html
import json
import logging
from urllib.parse import quote

from fastapi import APIRouter, Depends, Query
from fastapi.responses import HTMLResponse, PlainTextResponse, RedirectResponse
from pydantic import BaseModel

from stream_analytics.core.config import Settings, get_settings
from stream_analytics.core.dependencies import (
    get_bearer_token,
    get_channel_monitor,
    get_token_store,
    get_twitch_api,
)
from stream_analytics.core.exceptions import ApiError
from stream_analytics.services import ChannelMonitor, TokenStore, TwitchAPIClient

logger = logging.getLogger(__name__)

router = APIRouter(tags=["authentication"])


# ============================================
# Response Models
# ============================================


class CheckAuthResponse(BaseModel):
    authorized: bool


# ============================================
# Helpers
# ============================================


def _success_page(backend_url: str, user_id: str) -> str:
    target = f"{backend_url.rstrip('/')}/auth/success?userId={quote(user_id, safe='')}"
    # Escape "</" so the URL cannot close the script tag
    location = json.dumps(target).replace("</", "<\\/")
    return f"""
  <html>
    <body>
      <h1>&#9989; Authorization Successful!</h1>
      <p>You can now close this window and return to the extension.</p>
      <script>
        window.location = {location};
      </script>
    </body>
  </html>
"""


# ============================================
# OAuth Endpoints
# ============================================


@router.get("/auth/login")
async def twitch_login(
    twitch_api: TwitchAPIClient = Depends(get_twitch_api),
) -> RedirectResponse:
    """Redirect the broadcaster to the Twitch authorization page"""
    return RedirectResponse(url=twitch_api.generate_oauth_url())


@router.get("/auth/callback", response_model=None)
async def twitch_oauth_callback(
    code: str | None = None,
    error: str | None = None,
    twitch_api: TwitchAPIClient = Depends(get_twitch_api),
    token_store: TokenStore = Depends(get_token_store),
    monitor: ChannelMonitor = Depends(get_channel_monitor),
    settings: Settings = Depends(get_settings),
) -> HTMLResponse | PlainTextResponse:
    """Handle Twitch OAuth callback: store tokens and start monitoring"""
    if error:
        logger.error(f"OAuth error from Twitch: {error}")
        return PlainTextResponse("Authorization denied", status_code=400)

    if not code:
        logger.error("No OAuth code received from Twitch")
        return PlainTextResponse("Authorization code missing", status_code=400)

    success, error_msg, token_data = await twitch_api.exchange_code_for_token(code)
    if not success or not token_data:
        logger.error(f"OAuth error: {error_msg}")
        return PlainTextResponse("Authorization failed", status_code=500)

    user_id = token_data["user_id"]
    token_store.save_token(
        user_id=user_id,
        access_token=token_data["access_token"],
        refresh_token=token_data.get("refresh_token", ""),
        login=token_data.get("login") or None,
        display_name=token_data.get("display_name") or None,
    )
    monitor.start(user_id)

    logger.info(f"Channel authorized: {token_data.get('login') or user_id} (ID: {user_id})")
    return HTMLResponse(_success_page(settings.backend_url, user_id))


@router.get("/auth/success")
async def twitch_oauth_success(
    user_id: str | None = Query(None, alias="userId"),
) -> HTMLResponse:
    """Landing page after a successful authorization"""
    user_line = f"<p>Channel ID: {html.escape(user_id)}</p>" if user_id else ""
    return HTMLResponse(
        f"""
  <html>
    <body>
      <h1>&#9989; Stream tracking enabled</h1>
      {user_line}
      <p>Open the extension popup to see your stream analytics.</p>
    </body>
  </html>
"""
    )


# ============================================
# API Endpoints
# ============================================


@router.get("/api/check-auth/{channel_id}", response_model=CheckAuthResponse)
async def check_auth(
    channel_id: str,
    token_store: TokenStore = Depends(get_token_store),
) -> CheckAuthResponse:
    """Check whether a channel has authorized the backend"""
    return CheckAuthResponse(authorized=token_store.has_token(channel_id))


@router.get("/api/user")
async def get_current_user(
    token: str = Depends(get_bearer_token),
    twitch_api: TwitchAPIClient = Depends(get_twitch_api),
) -> dict:
    """Return the Twitch user that owns the bearer token"""
    user = await twitch_api.get_user_by_token(token)
    if not user:
        raise ApiError(401, "Invalid token")
    return user
