"""Data model for a Helix "Get Streams" entry."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone


def parse_twitch_timestamp(value: str) -> datetime:
    """Parse an RFC3339 timestamp from Helix (e.g. '2021-03-10T15:04:21Z')."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class StreamStatus:
    """Current live stream of a broadcaster. Offline channels have no status."""

    stream_id: str
    user_id: str
    viewer_count: int
    started_at: datetime
    title: str | None = None
    game_name: str | None = None

    @classmethod
    def from_helix(cls, data: dict) -> StreamStatus:
        """Build from one element of the Helix ``streams`` response ``data`` list.

        Raises:
            KeyError / ValueError / TypeError: the payload is missing or has
            malformed required fields.
        """
        return cls(
            stream_id=str(data["id"]),
            user_id=str(data["user_id"]),
            viewer_count=int(data["viewer_count"]),
            started_at=parse_twitch_timestamp(data["started_at"]),
            title=data.get("title"),
            game_name=data.get("game_name"),
        )
