"""Data models shared by the monitor, stores and API layers."""

from .session import StreamSession
from .stream import StreamStatus
from .token import TokenInfo

__all__ = [
    "StreamSession",
    "StreamStatus",
    "TokenInfo",
]
