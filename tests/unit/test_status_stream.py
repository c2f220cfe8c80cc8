"""Unit tests for StatusStream and the SSE encoding."""

from __future__ import annotations

import asyncio
import json

from unittest.mock import AsyncMock, MagicMock

import pytest

from groundwriter.api.status_stream import StatusStream, format_sse, sse_events
from groundwriter.api.websocket import _pump
from groundwriter.pipeline.status_bus import JobStatusBus
from groundwriter.pipeline.status_events import (
    analyzing_event,
    completed_event,
    failed_event,
    processing_event,
)


async def _collect(stream: StatusStream, limit: int = 10) -> list[dict]:
    frames = []
    async for frame in stream.frames():
        frames.append(frame)
        if len(frames) >= limit:
            break
    return frames


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_context_manager_subscribes_and_releases(self, status_bus: JobStatusBus) -> None:
        stream = StatusStream(status_bus, job_id="job-1")
        async with stream:
            assert stream.is_open
            assert status_bus.subscriber_count("job-1") == 1
        assert not stream.is_open
        assert status_bus.subscriber_count() == 0

    @pytest.mark.asyncio
    async def test_open_and_close_idempotent(self, status_bus: JobStatusBus) -> None:
        stream = StatusStream(status_bus)
        stream.open()
        stream.open()
        assert status_bus.subscriber_count() == 1
        stream.close()
        stream.close()
        assert status_bus.subscriber_count() == 0

    @pytest.mark.asyncio
    async def test_iterating_unopened_stream_fails(self, status_bus: JobStatusBus) -> None:
        stream = StatusStream(status_bus, job_id="job-1")
        with pytest.raises(RuntimeError):
            await stream.frames().__anext__()


class TestFrames:
    @pytest.mark.asyncio
    async def test_connected_frame_first(self, status_bus: JobStatusBus) -> None:
        async with StatusStream(
            status_bus, job_id="job-1", connected_info={"status": "uploaded", "progress": 25}
        ) as stream:
            frame = await stream.frames().__anext__()
        assert frame["type"] == "connected"
        assert frame["job_id"] == "job-1"
        assert frame["status"] == "uploaded"
        assert frame["progress"] == 25

    @pytest.mark.asyncio
    async def test_per_job_stream_ends_after_terminal_event(self, status_bus: JobStatusBus) -> None:
        async with StatusStream(status_bus, job_id="job-1", heartbeat_interval=5) as stream:
            await status_bus.publish(processing_event("job-1"))
            await status_bus.publish(analyzing_event("job-1"))
            await status_bus.publish(completed_event("job-1"))
            frames = await asyncio.wait_for(_collect(stream), timeout=2)

        assert [f["type"] for f in frames] == ["connected", "status", "status", "status"]
        assert [f["status"] for f in frames[1:]] == ["processing", "analyzing", "completed"]
        assert [f["progress"] for f in frames[1:]] == [50, 75, 100]

    @pytest.mark.asyncio
    async def test_failed_event_is_terminal(self, status_bus: JobStatusBus) -> None:
        async with StatusStream(status_bus, job_id="job-1", heartbeat_interval=5) as stream:
            await status_bus.publish(failed_event("job-1", "bad pdf"))
            frames = await asyncio.wait_for(_collect(stream), timeout=2)
        assert frames[-1]["status"] == "failed"
        assert frames[-1]["error"] == "bad pdf"

    @pytest.mark.asyncio
    async def test_other_jobs_not_delivered(self, status_bus: JobStatusBus) -> None:
        async with StatusStream(status_bus, job_id="job-1", heartbeat_interval=5) as stream:
            await status_bus.publish(completed_event("job-2"))
            await status_bus.publish(completed_event("job-1"))
            frames = await asyncio.wait_for(_collect(stream), timeout=2)
        assert [f["job_id"] for f in frames[1:]] == ["job-1"]

    @pytest.mark.asyncio
    async def test_heartbeat_when_quiet(self, status_bus: JobStatusBus) -> None:
        async with StatusStream(status_bus, job_id="job-1", heartbeat_interval=0.01) as stream:
            frames = await asyncio.wait_for(_collect(stream, limit=3), timeout=2)
        assert [f["type"] for f in frames] == ["connected", "heartbeat", "heartbeat"]
        assert "timestamp" in frames[1]

    @pytest.mark.asyncio
    async def test_wildcard_stream_continues_past_terminal(self, status_bus: JobStatusBus) -> None:
        async with StatusStream(status_bus, heartbeat_interval=5) as stream:
            await status_bus.publish(completed_event("job-1"))
            await status_bus.publish(processing_event("job-2"))
            frames = await asyncio.wait_for(_collect(stream, limit=3), timeout=2)
        assert [f.get("job_id") for f in frames] == [None, "job-1", "job-2"]


class TestSSE:
    def test_format_sse(self) -> None:
        encoded = format_sse({"type": "heartbeat", "timestamp": "t"})
        assert encoded.startswith("data: ")
        assert encoded.endswith("\n\n")
        assert json.loads(encoded[len("data: "):]) == {"type": "heartbeat", "timestamp": "t"}

    @pytest.mark.asyncio
    async def test_sse_events_owns_subscription(self, status_bus: JobStatusBus) -> None:
        stream = StatusStream(status_bus, job_id="job-1", heartbeat_interval=5)
        body = sse_events(stream)

        first = await body.__anext__()
        assert status_bus.subscriber_count("job-1") == 1
        await status_bus.publish(completed_event("job-1"))
        second = await body.__anext__()
        with pytest.raises(StopAsyncIteration):
            await body.__anext__()

        assert json.loads(first[6:])["type"] == "connected"
        assert json.loads(second[6:])["status"] == "completed"
        assert status_bus.subscriber_count() == 0

    @pytest.mark.asyncio
    async def test_closing_body_early_releases_subscription(self, status_bus: JobStatusBus) -> None:
        body = sse_events(StatusStream(status_bus, job_id="job-1", heartbeat_interval=5))
        await body.__anext__()
        await body.aclose()
        assert status_bus.subscriber_count() == 0


def _fake_websocket() -> MagicMock:
    websocket = MagicMock()
    websocket.send_json = AsyncMock()
    websocket.close = AsyncMock()
    return websocket


class TestWebSocketSender:
    @pytest.mark.asyncio
    async def test_terminal_event_closes_socket_and_releases(self, status_bus: JobStatusBus) -> None:
        websocket = _fake_websocket()
        stream = StatusStream(status_bus, job_id="job-1")
        stream.open()
        await status_bus.publish(completed_event("job-1", {"chunks": 2}))

        await _pump(websocket, stream)

        sent = [c.args[0]["type"] for c in websocket.send_json.await_args_list]
        assert sent == ["connected", "status"]
        websocket.close.assert_awaited_once()
        assert status_bus.subscriber_count() == 0

    @pytest.mark.asyncio
    async def test_send_failure_releases_subscription(self, status_bus: JobStatusBus) -> None:
        websocket = _fake_websocket()
        websocket.send_json.side_effect = RuntimeError("socket closed")
        stream = StatusStream(status_bus, job_id="job-1")
        stream.open()
        assert status_bus.subscriber_count("job-1") == 1

        await _pump(websocket, stream)

        assert not stream.is_open
        assert status_bus.subscriber_count() == 0
        websocket.close.assert_not_awaited()
