"""
test_realtime.py — RealtimeConnectionMonitor and ChangeStreamWatcher.

The change stream is faked: no replica set is needed.
"""

import asyncio
from unittest.mock import MagicMock

from geo_directory.services.realtime import ChangeStreamWatcher, RealtimeConnectionMonitor


class FakeChangeStream:
    """Async context manager + iterator that stays open until closed."""

    def __init__(self):
        self.closed = asyncio.Event()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    def __aiter__(self):
        return self

    async def __anext__(self):
        await self.closed.wait()
        raise RuntimeError("stream closed by server")


def _fake_db(watch):
    collection = MagicMock()
    collection.watch = watch
    return {"stories": collection}


async def _spin(n=10):
    for _ in range(n):
        await asyncio.sleep(0)


# ── Monitor ──────────────────────────────────────────────────────────────────

class TestMonitor:

    def test_starts_disconnected(self):
        assert RealtimeConnectionMonitor().connected is False

    def test_subscribers_notified_on_change_only(self):
        monitor = RealtimeConnectionMonitor()
        seen = []
        monitor.subscribe(seen.append)

        monitor.set_connected(True)
        monitor.set_connected(True)
        monitor.set_connected(False)
        assert seen == [True, False]

    def test_unsubscribe(self):
        monitor = RealtimeConnectionMonitor()
        seen = []
        unsubscribe = monitor.subscribe(seen.append)
        unsubscribe()
        unsubscribe()  # idempotent
        monitor.set_connected(True)
        assert seen == []

    def test_failing_subscriber_does_not_block_others(self):
        monitor = RealtimeConnectionMonitor()
        seen = []

        def broken(_connected):
            raise RuntimeError("boom")

        monitor.subscribe(broken)
        monitor.subscribe(seen.append)
        monitor.set_connected(True)
        assert seen == [True]
        assert monitor.connected is True


# ── Watcher ──────────────────────────────────────────────────────────────────

class TestWatcher:

    async def test_connected_while_stream_open(self):
        stream = FakeChangeStream()
        monitor = RealtimeConnectionMonitor()
        watcher = ChangeStreamWatcher(monitor, lambda: _fake_db(lambda: stream), collection="stories", retry_seconds=60)

        watcher.start()
        await _spin()
        assert monitor.connected is True

        await watcher.stop()
        assert monitor.connected is False

    async def test_stream_error_flips_to_disconnected(self):
        stream = FakeChangeStream()
        monitor = RealtimeConnectionMonitor()
        watcher = ChangeStreamWatcher(monitor, lambda: _fake_db(lambda: stream), collection="stories", retry_seconds=60)

        watcher.start()
        await _spin()
        assert monitor.connected is True

        stream.closed.set()
        await _spin()
        assert monitor.connected is False
        await watcher.stop()

    async def test_no_database_retries(self):
        calls = []
        monitor = RealtimeConnectionMonitor()

        def get_db():
            calls.append(1)
            return None

        watcher = ChangeStreamWatcher(monitor, get_db, retry_seconds=0.001)
        watcher.start()
        await asyncio.sleep(0.05)
        await watcher.stop()

        assert len(calls) >= 2
        assert monitor.connected is False

    async def test_watch_failure_is_retried(self):
        def watch():
            raise RuntimeError("The $changeStream stage is only supported on replica sets")

        monitor = RealtimeConnectionMonitor()
        watch_mock = MagicMock(side_effect=watch)
        watcher = ChangeStreamWatcher(monitor, lambda: _fake_db(watch_mock), collection="stories", retry_seconds=0.001)
        watcher.start()
        await asyncio.sleep(0.05)
        await watcher.stop()

        assert watch_mock.call_count >= 2
        assert monitor.connected is False

    async def test_stop_without_start(self):
        watcher = ChangeStreamWatcher(RealtimeConnectionMonitor(), lambda: None)
        await watcher.stop()
