"""Services layer - Business logic

This module provides service classes for handling business logic.
Services are initialized with their dependencies and accessed through dependency injection.
"""

from .analytics_service import AnalyticsService
from .channel_monitor import ChannelMonitor
from .session_store import SessionStore
from .token_store import TokenStore
from .twitch_api import TokenRefreshResult, TwitchAPIClient

__all__ = [
    "AnalyticsService",
    "ChannelMonitor",
    "SessionStore",
    "TokenRefreshResult",
    "TokenStore",
    "TwitchAPIClient",
]
