"""In-memory store for broadcaster OAuth credentials."""

import logging
from datetime import datetime, timezone

from stream_analytics.models import TokenInfo

logger = logging.getLogger(__name__)


class TokenStore:
    """channel id -> TokenInfo, for the lifetime of the process."""

    def __init__(self) -> None:
        self._tokens: dict[str, TokenInfo] = {}

    def save_token(
        self,
        user_id: str,
        access_token: str,
        refresh_token: str,
        login: str | None = None,
        display_name: str | None = None,
    ) -> TokenInfo:
        """Store (or replace) the credentials for a broadcaster."""
        token = TokenInfo(
            user_id=user_id,
            access_token=access_token,
            refresh_token=refresh_token,
            login=login,
            display_name=display_name,
            updated_at=datetime.now(timezone.utc),
        )
        self._tokens[user_id] = token
        logger.debug(f"Saved token for {login or user_id}")
        return token

    def update_tokens(self, user_id: str, access_token: str, refresh_token: str) -> bool:
        """Replace the token pair after a refresh. Returns False if unknown."""
        token = self._tokens.get(user_id)
        if token is None:
            return False
        token.access_token = access_token
        token.refresh_token = refresh_token
        token.updated_at = datetime.now(timezone.utc)
        return True

    def get_token(self, user_id: str) -> TokenInfo | None:
        return self._tokens.get(user_id)

    def has_token(self, user_id: str) -> bool:
        return user_id in self._tokens

    def remove_token(self, user_id: str) -> bool:
        return self._tokens.pop(user_id, None) is not None

    def __len__(self) -> int:
        return len(self._tokens)
