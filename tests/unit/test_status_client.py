"""Unit tests for the reconnecting status stream client."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock

import httpx
import pytest

from groundwriter.client.status_client import (
    ConnectionState,
    ReconnectStateMachine,
    StatusStreamClient,
    parse_sse,
)
from groundwriter.models.jobs import CompletedEvent, ProcessingEvent
from groundwriter.pipeline.status_events import completed_event, processing_event
from groundwriter.utils.errors import DocumentNotFoundError, ProviderUnavailableError


def _sse_body(*frames: dict) -> bytes:
    return "".join(f"data: {json.dumps(f)}\n\n" for f in frames).encode()


def _connected(job_id: str | None = "doc-1") -> dict:
    return {"type": "connected", "job_id": job_id, "timestamp": "2024-01-01T00:00:00+00:00"}


def _client(handler, no_sleep: AsyncMock, states: list | None = None, **kwargs) -> StatusStreamClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return StatusStreamClient(
        "http://testserver/",
        http_client=http_client,
        sleep=no_sleep,
        on_state_change=states.append if states is not None else None,
        **kwargs,
    )


async def _lines(*lines: str):
    for line in lines:
        yield line


class TestReconnectStateMachine:
    def test_starts_connecting(self) -> None:
        machine = ReconnectStateMachine()
        assert machine.state is ConnectionState.CONNECTING
        assert machine.attempt == 0

    def test_bounded_attempts_then_failed(self) -> None:
        machine = ReconnectStateMachine(max_attempts=3)
        machine.on_connected()

        messages = [machine.on_disconnected().message for _ in range(3)]
        final = machine.on_disconnected()

        assert messages == [
            "Reconnecting... (attempt 1/3)",
            "Reconnecting... (attempt 2/3)",
            "Reconnecting... (attempt 3/3)",
        ]
        assert final.state is ConnectionState.FAILED
        assert final.message == "Connection failed. Max reconnection attempts reached."

    def test_success_resets_counter(self) -> None:
        machine = ReconnectStateMachine(max_attempts=2)
        machine.on_disconnected()
        machine.on_disconnected()
        assert machine.on_connected().attempt == 0
        assert machine.on_disconnected().attempt == 1

    def test_failed_is_sticky_until_reset(self) -> None:
        machine = ReconnectStateMachine(max_attempts=0)
        assert machine.on_disconnected().state is ConnectionState.FAILED
        assert machine.on_connected().state is ConnectionState.FAILED
        assert machine.reset().state is ConnectionState.CONNECTING

    def test_negative_attempts_rejected(self) -> None:
        with pytest.raises(ValueError):
            ReconnectStateMachine(max_attempts=-1)


class TestParseSSE:
    @pytest.mark.asyncio
    async def test_data_events_decoded(self) -> None:
        frames = [
            f
            async for f in parse_sse(
                _lines(": comment", 'data: {"a": 1}', "", "event: ignored", 'data: {"b":', "data: 2}", "")
            )
        ]
        assert frames == [{"a": 1}, {"b": 2}]

    @pytest.mark.asyncio
    async def test_trailing_event_without_blank_line(self) -> None:
        frames = [f async for f in parse_sse(_lines('data: {"c": 3}'))]
        assert frames == [{"c": 3}]


class TestStatusStreamClient:
    @pytest.mark.asyncio
    async def test_follows_document_until_terminal(self, no_sleep: AsyncMock) -> None:
        requested = []

        def handler(request: httpx.Request) -> httpx.Response:
            requested.append(request.url.path)
            return httpx.Response(
                200,
                content=_sse_body(
                    _connected(),
                    processing_event("doc-1").to_frame(),
                    completed_event("doc-1").to_frame(),
                    {"type": "heartbeat", "timestamp": "t"},
                ),
                headers={"content-type": "text/event-stream"},
            )

        client = _client(handler, no_sleep)
        frames = [f async for f in client.events("doc-1")]

        assert requested == ["/api/v1/documents/doc-1/events"]
        assert [f["type"] for f in frames] == ["connected", "status", "status"]
        no_sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_reconnects_after_transport_error(self, no_sleep: AsyncMock) -> None:
        calls = 0
        states = []

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            if calls == 1:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200, content=_sse_body(_connected(), completed_event("doc-1").to_frame()))

        client = _client(handler, no_sleep, states, delay=2.0)
        frames = [f async for f in client.events("doc-1")]

        assert calls == 2
        assert frames[-1]["status"] == "completed"
        assert [s.state for s in states] == [
            ConnectionState.CONNECTING,
            ConnectionState.RECONNECTING,
            ConnectionState.CONNECTED,
        ]
        no_sleep.assert_awaited_once_with(2.0)

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self, no_sleep: AsyncMock) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            raise httpx.ConnectError("down", request=request)

        client = _client(handler, no_sleep, max_attempts=3)
        with pytest.raises(ProviderUnavailableError, match="Max reconnection attempts"):
            async for _ in client.events("doc-1"):
                pass

        assert calls == 4
        assert no_sleep.await_count == 3

    @pytest.mark.asyncio
    async def test_server_error_counts_as_drop(self, no_sleep: AsyncMock) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            if calls == 1:
                return httpx.Response(503)
            return httpx.Response(200, content=_sse_body(completed_event("doc-1").to_frame()))

        client = _client(handler, no_sleep)
        frames = [f async for f in client.events("doc-1")]
        assert calls == 2
        assert frames[0]["status"] == "completed"

    @pytest.mark.asyncio
    async def test_unknown_document_raises(self, no_sleep: AsyncMock) -> None:
        client = _client(lambda request: httpx.Response(404), no_sleep)
        with pytest.raises(DocumentNotFoundError):
            async for _ in client.events("missing"):
                pass
        no_sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_wildcard_url(self, no_sleep: AsyncMock) -> None:
        requested = []

        def handler(request: httpx.Request) -> httpx.Response:
            requested.append(request.url.path)
            return httpx.Response(200, content=_sse_body(_connected(None)))

        client = _client(handler, no_sleep, max_attempts=0)
        with pytest.raises(ProviderUnavailableError):
            async for _ in client.events():
                pass
        assert requested == ["/api/v1/events"]

    @pytest.mark.asyncio
    async def test_status_events_are_typed(self, no_sleep: AsyncMock) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                content=_sse_body(
                    _connected(),
                    processing_event("doc-1").to_frame(),
                    completed_event("doc-1", {"type": "PDF Document", "confidence": 1.0}).to_frame(),
                ),
            )

        client = _client(handler, no_sleep)
        events = [e async for e in client.status_events("doc-1")]

        assert isinstance(events[0], ProcessingEvent)
        assert isinstance(events[1], CompletedEvent)
        assert events[1].data["type"] == "PDF Document"
