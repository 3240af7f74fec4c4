import os
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

# Settings require Twitch credentials; tests never reach Twitch
os.environ.setdefault("CLIENT_ID", "test-client-id")
os.environ.setdefault("CLIENT_SECRET", "test-client-secret")
os.environ.setdefault("ENABLE_KEEP_ALIVE", "false")

from stream_analytics.models import StreamStatus  # noqa: E402
from stream_analytics.services import (  # noqa: E402
    ChannelMonitor,
    SessionStore,
    TokenStore,
    TwitchAPIClient,
)

CHANNEL_ID = "141981764"
STREAM_START = datetime(2026, 3, 1, 18, 0, tzinfo=timezone.utc)


def make_status(
    viewers: int,
    stream_id: str = "40952121085",
    started_at: datetime = STREAM_START,
    user_id: str = CHANNEL_ID,
) -> StreamStatus:
    """Build a live StreamStatus as returned by TwitchAPIClient.get_stream."""
    return StreamStatus(
        stream_id=stream_id,
        user_id=user_id,
        viewer_count=viewers,
        started_at=started_at,
        title="Speedrunning until dawn",
        game_name="Celeste",
    )


class FakeClock:
    """Settable clock for session end times."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 3, 1, 20, 30, tzinfo=timezone.utc))


@pytest.fixture
def twitch_api() -> AsyncMock:
    api = AsyncMock(spec=TwitchAPIClient)
    api.get_stream.return_value = None
    api.get_follower_count.return_value = 1000
    api.get_subscriber_count.return_value = 50
    api.validate_token.return_value = False
    return api


@pytest.fixture
def session_store() -> SessionStore:
    return SessionStore()


@pytest.fixture
def token_store() -> TokenStore:
    store = TokenStore()
    store.save_token(
        user_id=CHANNEL_ID,
        access_token="user-access-token",
        refresh_token="user-refresh-token",
        login="twitchdev",
        display_name="TwitchDev",
    )
    return store


@pytest.fixture
def monitor(
    twitch_api: AsyncMock,
    session_store: SessionStore,
    token_store: TokenStore,
    clock: FakeClock,
) -> ChannelMonitor:
    return ChannelMonitor(
        twitch_api,
        session_store,
        token_store,
        poll_interval=0,
        max_consecutive_failures=3,
        clock=clock,
    )
