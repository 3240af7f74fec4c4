"""Data model for a tracked live-stream session.

A session is immutable: each poll produces a new instance via
``with_sample`` or ``completed`` so that a half-updated record is
never observable by readers.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime

from .stream import StreamStatus


@dataclass(frozen=True)
class StreamSession:
    """Metrics for one continuous live broadcast."""

    channel_id: str
    stream_id: str
    started_at: datetime
    start_viewers: int
    peak_viewers: int
    viewer_sum: int
    viewer_checks: int
    title: str | None = None
    game_name: str | None = None
    start_followers: int = 0
    start_subs: int = 0
    ended_at: datetime | None = None
    end_followers: int | None = None
    end_subs: int | None = None

    @classmethod
    def from_status(
        cls,
        channel_id: str,
        status: StreamStatus,
        *,
        followers: int,
        subs: int,
    ) -> StreamSession:
        """Start a session from the first live poll and the baseline counts."""
        return cls(
            channel_id=channel_id,
            stream_id=status.stream_id,
            started_at=status.started_at,
            start_viewers=status.viewer_count,
            peak_viewers=status.viewer_count,
            viewer_sum=status.viewer_count,
            viewer_checks=1,
            title=status.title,
            game_name=status.game_name,
            start_followers=followers,
            start_subs=subs,
        )

    def with_sample(self, viewer_count: int) -> StreamSession:
        """Return a copy with one more viewer sample accumulated."""
        return replace(
            self,
            viewer_checks=self.viewer_checks + 1,
            viewer_sum=self.viewer_sum + viewer_count,
            peak_viewers=max(self.peak_viewers, viewer_count),
        )

    def completed(
        self,
        ended_at: datetime,
        *,
        end_followers: int,
        end_subs: int,
    ) -> StreamSession:
        """Return the finalized copy of this session."""
        return replace(
            self,
            ended_at=ended_at,
            end_followers=end_followers,
            end_subs=end_subs,
        )

    # ------------------------------------------------------------------
    # Derived values (None while live)
    # ------------------------------------------------------------------

    @property
    def is_live(self) -> bool:
        return self.ended_at is None

    @property
    def duration_hours(self) -> float | None:
        if self.ended_at is None:
            return None
        return (self.ended_at - self.started_at).total_seconds() / 3600

    @property
    def avg_viewers(self) -> float | None:
        if self.ended_at is None:
            return None
        if self.viewer_checks <= 0:
            return 0.0
        return self.viewer_sum / self.viewer_checks

    @property
    def followers_gained(self) -> int | None:
        if self.end_followers is None:
            return None
        return self.end_followers - self.start_followers

    @property
    def subs_gained(self) -> int | None:
        if self.end_subs is None:
            return None
        return self.end_subs - self.start_subs
