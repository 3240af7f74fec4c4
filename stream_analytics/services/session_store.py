"""In-memory store for in-progress and completed stream sessions.

Holds at most one in-progress session per channel plus an append-only,
completion-ordered history. Sessions are immutable dataclasses, so a
reader always gets either the pre-commit or post-commit value.
"""

import logging
from datetime import datetime

from stream_analytics.core.exceptions import InconsistentStateError
from stream_analytics.models import StreamSession

logger = logging.getLogger(__name__)


class SessionStore:
    """Per-channel session state for the lifetime of the process."""

    def __init__(self) -> None:
        self._active: dict[str, StreamSession] = {}
        self._history: dict[str, list[StreamSession]] = {}

    # ==================== In-progress ====================

    def begin(self, channel_id: str, session: StreamSession) -> StreamSession:
        """Register *session* as the channel's in-progress session."""
        if channel_id in self._active:
            raise InconsistentStateError(
                f"Channel {channel_id} already has an in-progress session "
                f"({self._active[channel_id].stream_id})",
                channel_id=channel_id,
            )
        if session.ended_at is not None:
            raise InconsistentStateError(
                f"Cannot begin an already completed session for {channel_id}",
                channel_id=channel_id,
            )

        self._active[channel_id] = session
        logger.debug(f"Session {session.stream_id} started for channel {channel_id}")
        return session

    def update(self, channel_id: str, viewer_count: int) -> StreamSession:
        """Accumulate one viewer sample into the in-progress session."""
        session = self._require_active(channel_id, "update")
        updated = session.with_sample(viewer_count)
        self._active[channel_id] = updated
        return updated

    def finalize(
        self,
        channel_id: str,
        ended_at: datetime,
        *,
        end_followers: int,
        end_subs: int,
    ) -> StreamSession:
        """Complete the in-progress session and append it to history."""
        session = self._require_active(channel_id, "finalize")
        completed = session.completed(
            ended_at, end_followers=end_followers, end_subs=end_subs
        )
        self._history.setdefault(channel_id, []).append(completed)
        del self._active[channel_id]
        return completed

    def active(self, channel_id: str) -> StreamSession | None:
        return self._active.get(channel_id)

    def discard(self, channel_id: str) -> StreamSession | None:
        """Drop the in-progress session without recording it."""
        return self._active.pop(channel_id, None)

    @property
    def active_count(self) -> int:
        return len(self._active)

    # ==================== History ====================

    def latest(self, channel_id: str) -> StreamSession | None:
        history = self._history.get(channel_id)
        return history[-1] if history else None

    def all(self, channel_id: str) -> tuple[StreamSession, ...]:
        return tuple(self._history.get(channel_id, ()))

    def _require_active(self, channel_id: str, operation: str) -> StreamSession:
        session = self._active.get(channel_id)
        if session is None:
            raise InconsistentStateError(
                f"Cannot {operation}: no in-progress session for channel {channel_id}",
                channel_id=channel_id,
            )
        return session
