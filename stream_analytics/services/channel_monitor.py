"""Channel monitor: polls Twitch per channel and tracks live sessions.

Each monitored channel gets one asyncio task that runs ``tick`` and then
sleeps ``poll_interval`` seconds, so the next check is scheduled from the
end of the previous one and a channel's ticks never overlap.

State machine per channel (state = whether the store has an in-progress
session):

    OFFLINE --live--> LIVE         begin (baseline follower/sub counts)
    LIVE    --live--> LIVE         update (same stream id)
    LIVE    --live--> LIVE         finalize + begin (stream id changed)
    LIVE    --offline--> OFFLINE   finalize (final follower/sub counts)

All Twitch fetches for a tick happen before the store is touched, so a
failed fetch leaves the session exactly as it was.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timezone

from stream_analytics.core.exceptions import (
    AuthExpiredError,
    InconsistentStateError,
    PlatformError,
)
from stream_analytics.models import StreamSession, StreamStatus, TokenInfo

from .session_store import SessionStore
from .token_store import TokenStore
from .twitch_api import TwitchAPIClient

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ChannelMonitor:
    """Owns the polling tasks of every monitored channel.

    Args:
        twitch_api: Client used for stream / follower / subscriber fetches.
        sessions: Store receiving the session transitions.
        tokens: Source of each channel's access token.
        poll_interval: Seconds between the end of a tick and the next one.
        max_consecutive_failures: Stop a channel after this many failed
            ticks in a row. ``0`` keeps retrying forever.
        clock: Returns the current time; used for session end times.
    """

    def __init__(
        self,
        twitch_api: TwitchAPIClient,
        sessions: SessionStore,
        tokens: TokenStore,
        *,
        poll_interval: float = 120.0,
        max_consecutive_failures: int = 10,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.twitch_api = twitch_api
        self.sessions = sessions
        self.tokens = tokens
        self.poll_interval = poll_interval
        self.max_consecutive_failures = max_consecutive_failures
        self._clock = clock

        self._tasks: dict[str, asyncio.Task] = {}
        self._busy: set[str] = set()
        self._failures: dict[str, int] = {}

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self, channel_id: str) -> bool:
        """Start polling *channel_id*. Returns False if already running."""
        task = self._tasks.get(channel_id)
        if task is not None and not task.done():
            logger.debug(f"Channel {channel_id} already monitored")
            return False

        self._tasks[channel_id] = asyncio.create_task(
            self._monitor_loop(channel_id), name=f"monitor:{channel_id}"
        )
        logger.info(f"Started monitoring channel: {channel_id}")
        return True

    async def stop(self, channel_id: str) -> bool:
        """Cancel the channel's polling task.

        The in-progress session, if any, is discarded without being
        finalized. Returns False if the channel was not monitored.
        """
        task = self._tasks.pop(channel_id, None)
        if task is None:
            return False

        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

        self._release(channel_id)
        logger.info(f"Stopped monitoring channel: {channel_id}")
        return True

    async def stop_all(self) -> None:
        """Stop every channel. Call on app shutdown."""
        for channel_id in list(self._tasks):
            await self.stop(channel_id)

    def is_monitoring(self, channel_id: str) -> bool:
        task = self._tasks.get(channel_id)
        return task is not None and not task.done()

    @property
    def monitored_channels(self) -> list[str]:
        return [cid for cid, task in self._tasks.items() if not task.done()]

    def consecutive_failures(self, channel_id: str) -> int:
        return self._failures.get(channel_id, 0)

    async def _monitor_loop(self, channel_id: str) -> None:
        try:
            while True:
                await self.tick(channel_id)

                if not self.tokens.has_token(channel_id):
                    logger.warning(f"No token for channel {channel_id}, stopping monitor")
                    break

                failures = self._failures.get(channel_id, 0)
                if self.max_consecutive_failures and failures >= self.max_consecutive_failures:
                    logger.error(
                        f"Channel {channel_id} failed {failures} checks in a row, "
                        f"stopping monitor"
                    )
                    break

                await asyncio.sleep(self.poll_interval)
        finally:
            # Self-stop: nobody awaits stop(), so clean up here
            if self._tasks.get(channel_id) is asyncio.current_task():
                del self._tasks[channel_id]
                self._release(channel_id)

    def _release(self, channel_id: str) -> None:
        self._failures.pop(channel_id, None)
        dropped = self.sessions.discard(channel_id)
        if dropped is not None:
            logger.warning(
                f"Discarded in-progress session {dropped.stream_id} for channel {channel_id}"
            )

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    async def tick(self, channel_id: str) -> bool:
        """Run one status check. Returns True if the check completed.

        Failures are logged and counted, never raised, so one channel
        can't take down the others.
        """
        if channel_id in self._busy:
            logger.warning(f"Check for channel {channel_id} still running, skipping")
            return False

        self._busy.add(channel_id)
        try:
            token = self.tokens.get_token(channel_id)
            if token is None:
                logger.warning(f"No token for channel {channel_id}, skipping check")
                return False

            try:
                await self._apply(channel_id, token)
            except AuthExpiredError as e:
                self._record_failure(channel_id, e)
                await self._refresh_token(channel_id, token)
                return False
            except PlatformError as e:
                self._record_failure(channel_id, e)
                return False
            except InconsistentStateError as e:
                logger.exception(f"Session state error for channel {channel_id}: {e}")
                self._record_failure(channel_id, e)
                return False
            except Exception as e:
                logger.exception(f"Unexpected error monitoring channel {channel_id}: {e}")
                self._record_failure(channel_id, e)
                return False

            self._failures.pop(channel_id, None)
            return True
        finally:
            self._busy.discard(channel_id)

    async def _apply(self, channel_id: str, token: TokenInfo) -> None:
        status = await self.twitch_api.get_stream(channel_id, token.access_token)
        current = self.sessions.active(channel_id)

        if status is None:
            if current is not None:
                await self._end_stream(channel_id, token)
            return

        if current is None:
            await self._start_stream(channel_id, token, status)
        elif current.stream_id == status.stream_id:
            self.sessions.update(channel_id, status.viewer_count)
        else:
            await self._restart_stream(channel_id, token, current, status)

    async def _start_stream(self, channel_id: str, token: TokenInfo, status: StreamStatus) -> None:
        followers, subs = await self._fetch_counts(channel_id, token)
        self.sessions.begin(
            channel_id,
            StreamSession.from_status(channel_id, status, followers=followers, subs=subs),
        )
        logger.info(f"Stream started for {channel_id}: {status.title}")

    async def _end_stream(self, channel_id: str, token: TokenInfo) -> None:
        followers, subs = await self._fetch_counts(channel_id, token)
        session = self.sessions.finalize(
            channel_id, self._clock(), end_followers=followers, end_subs=subs
        )
        logger.info(
            f"Stream ended for {channel_id}. Duration: {session.duration_hours:.2f}h, "
            f"Followers gained: {session.followers_gained}"
        )

    async def _restart_stream(
        self,
        channel_id: str,
        token: TokenInfo,
        current: StreamSession,
        status: StreamStatus,
    ) -> None:
        """The broadcast restarted between two checks without an offline poll.

        The old session ends when the new stream started (bounded by the
        old start and now); one follower/sub fetch closes the old session
        and is the new session's baseline.
        """
        followers, subs = await self._fetch_counts(channel_id, token)
        ended_at = min(max(status.started_at, current.started_at), self._clock())

        old = self.sessions.finalize(channel_id, ended_at, end_followers=followers, end_subs=subs)
        self.sessions.begin(
            channel_id,
            StreamSession.from_status(channel_id, status, followers=followers, subs=subs),
        )
        logger.warning(
            f"Stream id changed for {channel_id} ({old.stream_id} -> {status.stream_id}): "
            f"closed previous session after {old.duration_hours:.2f}h"
        )

    async def _fetch_counts(self, channel_id: str, token: TokenInfo) -> tuple[int, int]:
        followers = await self.twitch_api.get_follower_count(channel_id, token.access_token)
        subs = await self.twitch_api.get_subscriber_count(channel_id, token.access_token)
        return followers, subs

    # ------------------------------------------------------------------
    # Failure handling
    # ------------------------------------------------------------------

    def _record_failure(self, channel_id: str, error: Exception) -> None:
        count = self._failures.get(channel_id, 0) + 1
        self._failures[channel_id] = count
        logger.warning(f"Error monitoring channel {channel_id} ({count} in a row): {error}")

    async def _refresh_token(self, channel_id: str, token: TokenInfo) -> None:
        try:
            if await self.twitch_api.validate_token(token.access_token):
                # Valid token rejected by Helix, e.g. a missing scope
                logger.warning(
                    f"Token for channel {channel_id} is still valid, skipping refresh"
                )
                return

            if not token.refresh_token:
                logger.warning(f"Token for channel {channel_id} expired and has no refresh token")
                return

            result = await self.twitch_api.refresh_access_token(token.refresh_token)
        except PlatformError as e:
            logger.warning(f"Token refresh for channel {channel_id} postponed: {e}")
            return

        if not result.success or not result.access_token:
            logger.error(f"Token refresh failed for channel {channel_id}: {result.error}")
            return

        self.tokens.update_tokens(
            channel_id, result.access_token, result.refresh_token or token.refresh_token
        )
        logger.info(f"Refreshed access token for channel {channel_id}")
