"""Tests for the event bus."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from switchboard.events import EventBus


class TestEventBus:
    @pytest.mark.asyncio
    async def test_emit_without_listeners(self):
        bus = EventBus()
        assert await bus.emit("nothing") == 0

    @pytest.mark.asyncio
    async def test_sync_and_async_listeners(self):
        bus = EventBus()
        sync_listener = MagicMock(return_value=None)
        async_listener = AsyncMock()
        bus.on("message_create", sync_listener)
        bus.on("message_create", async_listener)

        assert await bus.emit("message_create", "hello") == 2
        sync_listener.assert_called_once_with("hello")
        async_listener.assert_awaited_once_with("hello")

    @pytest.mark.asyncio
    async def test_once_listener_fires_once(self):
        bus = EventBus()
        listener = MagicMock(return_value=None)
        bus.once("ready", listener)

        assert await bus.emit("ready") == 1
        assert await bus.emit("ready") == 0
        assert listener.call_count == 1
        assert bus.listener_count("ready") == 0

    @pytest.mark.asyncio
    async def test_once_unbound_before_running(self):
        """A once-listener that re-emits its own event does not run twice."""
        bus = EventBus()
        calls = []

        async def listener():
            calls.append(1)
            await bus.emit("ready")

        bus.once("ready", listener)
        await bus.emit("ready")
        assert calls == [1]

    @pytest.mark.asyncio
    async def test_failing_listener_isolated(self):
        bus = EventBus()
        failing = MagicMock(side_effect=RuntimeError("boom"))
        healthy = MagicMock(return_value=None)
        bus.on("tick", failing)
        bus.on("tick", healthy)

        assert await bus.emit("tick", 1) == 2
        healthy.assert_called_once_with(1)
        assert bus.listener_count("tick") == 2
