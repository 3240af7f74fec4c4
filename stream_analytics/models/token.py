"""Data model for stored Twitch OAuth credentials."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass
class TokenInfo:
    """OAuth token record for an authorized broadcaster."""

    user_id: str
    access_token: str
    refresh_token: str
    login: str | None = None
    display_name: str | None = None
    updated_at: datetime | None = None
