"""Analytics service: read-only views over completed stream sessions"""

import logging

from stream_analytics.models import StreamSession

from .session_store import SessionStore

logger = logging.getLogger(__name__)


class AnalyticsService:
    """Serve session history for a channel. Never mutates the store."""

    def __init__(self, sessions: SessionStore):
        self.sessions = sessions

    def get_last_session(self, channel_id: str) -> StreamSession | None:
        return self.sessions.latest(channel_id)

    def get_total_sessions(self, channel_id: str) -> int:
        return len(self.sessions.all(channel_id))

    def get_analytics(self, channel_id: str) -> dict:
        """Latest completed session, completed count and full history"""
        history = self.sessions.all(channel_id)
        logger.debug(f"Analytics for channel {channel_id}: {len(history)} sessions")
        return {
            "last_stream": history[-1] if history else None,
            "total_streams": len(history),
            "all_sessions": list(history),
        }
