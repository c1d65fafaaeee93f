"""Tests for Tracker."""

from datetime import datetime, timezone

import pytest

from agentflow.event_bus import EventType


class TestTrackerTrack:
    """Tests for Tracker.track() method."""

    @pytest.mark.asyncio
    async def test_track_creates_event(self, tracker, storage):
        """Test that track() creates a TraceEvent."""
        await tracker.track(event_type="test_event", actor="test_actor", data={"key": "value"})

        events = await storage.get_trace_events()
        assert len(events) == 1
        assert events[0].event_type == "test_event"
        assert events[0].actor == "test_actor"
        assert events[0].data == {"key": "value"}
        assert events[0].id

    @pytest.mark.asyncio
    async def test_track_generates_timestamp(self, tracker, storage):
        """Test that track() stamps the event with the current time."""
        before = datetime.now(timezone.utc)
        await tracker.track(event_type="test_event", actor="test_actor", data={})
        after = datetime.now(timezone.utc)

        events = await storage.get_trace_events()
        assert before <= events[0].timestamp <= after


class TestTrackerEventBus:
    """Tests for the EventBus channel."""

    @pytest.mark.asyncio
    async def test_start_persists_bus_events(self, tracker, storage, event_bus):
        """Test that every published event becomes a TraceEvent."""
        await tracker.start()

        await event_bus.emit(EventType.STEP_START, source="workflow_scheduler", step_id="s1")
        await event_bus.emit(EventType.TOOL_CALL, source="agent-1", tool="calculator")
        await event_bus.drain()

        events = await storage.get_trace_events()
        by_type = {e.event_type: e for e in events}
        assert set(by_type) == {"step:start", "tool:call"}
        assert by_type["step:start"].actor == "workflow_scheduler"
        assert by_type["step:start"].data["step_id"] == "s1"
        assert "event_id" in by_type["tool:call"].data

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self, tracker, storage, event_bus):
        await tracker.start()
        await tracker.start()

        await event_bus.emit(EventType.STEP_START, source="x")
        await event_bus.drain()

        assert await storage.count_trace_events() == 1

    @pytest.mark.asyncio
    async def test_stop_unsubscribes(self, tracker, storage, event_bus):
        """Test that events after stop() are not persisted."""
        await tracker.start()
        await tracker.stop()

        await event_bus.emit(EventType.STEP_START, source="x")
        await event_bus.drain()

        assert await storage.count_trace_events() == 0
        assert event_bus.handler_count() == 0

    @pytest.mark.asyncio
    async def test_trace_keeps_emit_time(self, tracker, storage, event_bus, events):
        """Test that a trace is stamped when the event was emitted, not when it was stored."""
        await tracker.start()

        await event_bus.emit(EventType.WORKFLOW_START, source="workflow_scheduler")
        await event_bus.drain()

        (trace,) = await storage.get_trace_events()
        assert trace.timestamp == events[0].timestamp
