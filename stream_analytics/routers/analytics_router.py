"""Analytics API routes"""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from stream_analytics.core.dependencies import get_analytics_service
from stream_analytics.models import StreamSession
from stream_analytics.services import AnalyticsService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/analytics", tags=["analytics"])


# ============================================
# Response Models
# ============================================


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SessionResponse(_CamelModel):
    stream_id: str
    channel_id: str
    title: str | None
    game_name: str | None
    start_time: datetime
    end_time: datetime | None
    duration: float | None
    start_viewers: int
    peak_viewers: int
    viewer_sum: int
    total_viewer_checks: int
    avg_viewers: float | None
    start_followers: int
    end_followers: int | None
    followers_gained: int | None
    start_subs: int
    end_subs: int | None
    subs_gained: int | None

    @classmethod
    def from_session(cls, session: StreamSession) -> "SessionResponse":
        return cls(
            stream_id=session.stream_id,
            channel_id=session.channel_id,
            title=session.title,
            game_name=session.game_name,
            start_time=session.started_at,
            end_time=session.ended_at,
            duration=session.duration_hours,
            start_viewers=session.start_viewers,
            peak_viewers=session.peak_viewers,
            viewer_sum=session.viewer_sum,
            total_viewer_checks=session.viewer_checks,
            avg_viewers=session.avg_viewers,
            start_followers=session.start_followers,
            end_followers=session.end_followers,
            followers_gained=session.followers_gained,
            start_subs=session.start_subs,
            end_subs=session.end_subs,
            subs_gained=session.subs_gained,
        )


class AnalyticsResponse(_CamelModel):
    last_stream: SessionResponse | None
    total_streams: int
    all_sessions: list[SessionResponse]


# ============================================
# Endpoints
# ============================================


@router.get("/{channel_id}", response_model=AnalyticsResponse)
async def get_channel_analytics(
    channel_id: str,
    analytics_service: AnalyticsService = Depends(get_analytics_service),
) -> AnalyticsResponse:
    """Get the completed stream sessions of a channel

    Args:
        channel_id: Twitch user id of the broadcaster
    """
    data = analytics_service.get_analytics(channel_id)
    last_stream = data["last_stream"]

    logger.debug(f"Channel {channel_id} analytics requested ({data['total_streams']} sessions)")
    return AnalyticsResponse(
        last_stream=SessionResponse.from_session(last_stream) if last_stream else None,
        total_streams=data["total_streams"],
        all_sessions=[SessionResponse.from_session(s) for s in data["all_sessions"]],
    )
