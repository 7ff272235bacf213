"""
realtime.py — Connected/disconnected signal for the live stories feed.

RealtimeConnectionMonitor is a plain boolean plus subscribers. Nothing in
the directory's business logic reads it; it is surfaced on /health and
the stats stream so clients can show a "live" badge.

ChangeStreamWatcher is the transport behind it: a background task that
holds a MongoDB change stream open on the stories collection. While the
stream is open the monitor reads connected. Any error flips it to
disconnected and the watcher retries after a fixed delay. Change payloads
are ignored: only "something changed" matters, and the stats refresher
has its own schedule.

Change streams need a replica set (Atlas, or `mongod --replSet`). On a
standalone server the watch fails immediately and the monitor stays
disconnected, which is the correct display state.
"""

import asyncio
import contextlib
import logging
from typing import Callable, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from geo_directory.core.config import settings

logger = logging.getLogger(__name__)

Subscriber = Callable[[bool], None]


class RealtimeConnectionMonitor:
    def __init__(self) -> None:
        self.connected = False
        self._subscribers: list[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register for connected/disconnected changes; returns an unsubscribe function."""
        self._subscribers.append(callback)
        return lambda: self.unsubscribe(callback)

    def unsubscribe(self, callback: Subscriber) -> None:
        with contextlib.suppress(ValueError):
            self._subscribers.remove(callback)

    def set_connected(self, connected: bool) -> None:
        if connected == self.connected:
            return
        self.connected = connected
        logger.info("Realtime feed %s", "connected" if connected else "disconnected")
        for callback in list(self._subscribers):
            try:
                callback(connected)
            except Exception as exc:
                logger.warning("Realtime subscriber failed: %s", exc)


class ChangeStreamWatcher:
    """Keeps a change stream open and mirrors its health into a monitor."""

    def __init__(
        self,
        monitor: RealtimeConnectionMonitor,
        get_db: Callable[[], Optional[AsyncIOMotorDatabase]],
        collection: str = settings.stories_collection,
        retry_seconds: float = settings.realtime_retry_seconds,
    ) -> None:
        self.monitor = monitor
        self._get_db = get_db
        self.collection = collection
        self.retry_seconds = retry_seconds
        self._task: Optional[asyncio.Task] = None

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run(), name="realtime-watcher")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        self.monitor.set_connected(False)

    async def _run(self) -> None:
        while True:
            db = self._get_db()
            if db is not None:
                try:
                    async with db[self.collection].watch() as stream:
                        self.monitor.set_connected(True)
                        async for _change in stream:
                            pass
                except Exception as exc:
                    logger.warning("Realtime change stream closed: %s", exc)
            self.monitor.set_connected(False)
            await asyncio.sleep(self.retry_seconds)


# Module-level singleton
realtime_monitor = RealtimeConnectionMonitor()
