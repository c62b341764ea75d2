"""Tests for create_keyed_queue."""

import asyncio
from datetime import timedelta

import pytest

from refresh_queue.core.errors import Cancelled
from refresh_queue.core.settings import RefreshQueueSettings, get_settings
from refresh_queue.scheduling import (
    DispatchContext,
    KeyedQueue,
    Present,
    ReadyQueue,
    create_keyed_queue,
)
from tests._support import Group, drain


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch):
    monkeypatch.delenv("REFRESH_QUEUE_FREQUENCY_SECONDS", raising=False)
    monkeypatch.delenv("REFRESH_QUEUE_SERVICE_NAME", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestCreateKeyedQueue:
    """Test building a keyed queue from settings."""

    def test_uses_settings(self):
        settings = RefreshQueueSettings(
            _env_file=None,
            frequency_seconds=300,
            relay_buffer=3,
            service_name="config-updater",
        )
        queue = create_keyed_queue(settings)
        assert isinstance(queue, KeyedQueue)
        assert isinstance(queue.queue, ReadyQueue)
        assert queue.frequency == timedelta(minutes=5)
        assert queue.name == "config-updater"

    def test_name_overrides_service_name(self):
        queue = create_keyed_queue(RefreshQueueSettings(_env_file=None), name="dashboards")
        assert queue.name == "dashboards"

    def test_defaults_to_cached_settings(self, monkeypatch):
        monkeypatch.setenv("REFRESH_QUEUE_FREQUENCY_SECONDS", "60")
        queue = create_keyed_queue()
        assert queue.frequency == timedelta(minutes=1)

    def test_clock_and_key(self, clock, t0):
        queue = create_keyed_queue(
            RefreshQueueSettings(_env_file=None),
            key=lambda record: record["id"],
            clock=clock,
        )
        record = {"id": "alpha"}
        queue.init([record], t0)
        status = queue.status()
        assert status.next == Present("alpha", record)
        assert status.ready_at == t0

    @pytest.mark.asyncio
    async def test_sends_with_settings_frequency(self, clock, t0):
        settings = RefreshQueueSettings(_env_file=None, frequency_seconds=60)
        queue = create_keyed_queue(settings, clock=clock)
        queue.init([Group("alpha")], t0)
        sink: asyncio.Queue[Group] = asyncio.Queue()
        ctx = DispatchContext()
        task = asyncio.create_task(queue.send(ctx, sink))

        assert await drain(sink, 1) == [Group("alpha")]
        await asyncio.sleep(0.05)
        assert queue.status().ready_at == t0 + timedelta(minutes=1)

        ctx.cancel()
        with pytest.raises(Cancelled):
            await asyncio.wait_for(task, timeout=1.0)
