"""Tests for AnalyticsService read views."""

from datetime import timedelta

from stream_analytics.models import StreamSession
from stream_analytics.services import AnalyticsService, SessionStore
from tests.conftest import CHANNEL_ID, STREAM_START, make_status


def _record(store: SessionStore, stream_id: str, hours: float) -> StreamSession:
    store.begin(
        CHANNEL_ID,
        StreamSession.from_status(
            CHANNEL_ID, make_status(100, stream_id=stream_id), followers=10, subs=1
        ),
    )
    return store.finalize(
        CHANNEL_ID, STREAM_START + timedelta(hours=hours), end_followers=12, end_subs=1
    )


def test_empty_channel(session_store: SessionStore):
    service = AnalyticsService(session_store)

    assert service.get_analytics("nobody") == {
        "last_stream": None,
        "total_streams": 0,
        "all_sessions": [],
    }
    assert service.get_last_session("nobody") is None
    assert service.get_total_sessions("nobody") == 0


def test_history_in_completion_order(session_store: SessionStore):
    service = AnalyticsService(session_store)
    first = _record(session_store, "a", 1)
    second = _record(session_store, "b", 2)

    result = service.get_analytics(CHANNEL_ID)

    assert result["last_stream"] is second
    assert result["total_streams"] == 2
    assert result["all_sessions"] == [first, second]
    assert service.get_last_session(CHANNEL_ID) is second
    assert service.get_total_sessions(CHANNEL_ID) == 2


def test_in_progress_session_not_reported(session_store: SessionStore):
    service = AnalyticsService(session_store)
    session_store.begin(
        CHANNEL_ID, StreamSession.from_status(CHANNEL_ID, make_status(5), followers=0, subs=0)
    )

    assert service.get_total_sessions(CHANNEL_ID) == 0
    assert service.get_last_session(CHANNEL_ID) is None
