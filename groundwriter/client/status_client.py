"""Consumer side of the status stream, with bounded reconnection.

:class:`ReconnectStateMachine` holds the connection state on its own so
the retry policy can be tested without a network::

    connecting ──ok──→ connected ──drop──→ reconnecting(1) ──ok──→ connected
                                               │ drop
                                               ↓
                                  reconnecting(2) … reconnecting(max) ──drop──→ failed

A successful connection resets the attempt counter.  :class:`StatusStreamClient`
drives the machine while reading server-sent events with ``httpx``.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

import httpx
import structlog

from groundwriter.models.jobs import StatusEvent, status_event_adapter
from groundwriter.utils.errors import DocumentNotFoundError, ProviderUnavailableError
from groundwriter.utils.logging import get_logger

logger: structlog.BoundLogger = get_logger(__name__)

_TERMINAL_STATUSES = frozenset({"completed", "failed"})


class ConnectionState(str, Enum):
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    FAILED = "failed"


@dataclass(frozen=True)
class ConnectionStatus:
    """Snapshot reported to the caller on every state change."""

    state: ConnectionState
    attempt: int = 0
    message: str = ""


class ReconnectStateMachine:
    """Bounded reconnection policy for one stream consumer.

    Parameters
    ----------
    max_attempts:
        Reconnection attempts allowed after a drop before giving up.
    delay:
        Seconds to wait before each reconnection attempt.
    """

    def __init__(self, max_attempts: int = 3, delay: float = 2.0) -> None:
        if max_attempts < 0:
            raise ValueError("max_attempts must be >= 0")
        self._max_attempts = max_attempts
        self._delay = delay
        self._status = ConnectionStatus(ConnectionState.CONNECTING, message="Connecting...")

    @property
    def status(self) -> ConnectionStatus:
        return self._status

    @property
    def state(self) -> ConnectionState:
        return self._status.state

    @property
    def attempt(self) -> int:
        return self._status.attempt

    @property
    def delay(self) -> float:
        return self._delay

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    def on_connected(self) -> ConnectionStatus:
        if self.state is ConnectionState.FAILED:
            return self._status
        self._status = ConnectionStatus(ConnectionState.CONNECTED, message="Connected")
        return self._status

    def on_disconnected(self) -> ConnectionStatus:
        """Record a drop (or a failed attempt) and decide what comes next."""
        if self.state is ConnectionState.FAILED:
            return self._status
        attempt = self._status.attempt
        if attempt >= self._max_attempts:
            self._status = ConnectionStatus(
                ConnectionState.FAILED,
                attempt=attempt,
                message="Connection failed. Max reconnection attempts reached.",
            )
        else:
            attempt += 1
            self._status = ConnectionStatus(
                ConnectionState.RECONNECTING,
                attempt=attempt,
                message=f"Reconnecting... (attempt {attempt}/{self._max_attempts})",
            )
        return self._status

    def reset(self) -> ConnectionStatus:
        self._status = ConnectionStatus(ConnectionState.CONNECTING, message="Connecting...")
        return self._status


async def parse_sse(lines: AsyncIterator[str]) -> AsyncIterator[dict[str, Any]]:
    """Decode ``data:`` events from an SSE line stream into JSON objects.

    Multi-line data fields are joined with newlines; comments and other
    field names are ignored.
    """
    data: list[str] = []
    async for line in lines:
        if not line:
            if data:
                yield json.loads("\n".join(data))
                data = []
            continue
        if line.startswith(":"):
            continue
        field, _, value = line.partition(":")
        if field == "data":
            data.append(value[1:] if value.startswith(" ") else value)
    if data:
        yield json.loads("\n".join(data))


class StatusStreamClient:
    """Follows a job's status stream over HTTP, reconnecting on drops.

    Parameters
    ----------
    base_url:
        Server root, e.g. ``http://localhost:8000``.
    http_client:
        Optional shared client; one is created (and owned) otherwise.
    max_attempts / delay:
        Reconnection policy, see :class:`ReconnectStateMachine`.
    sleep:
        Awaitable used between attempts; tests pass a no-op.
    on_state_change:
        Called with every :class:`ConnectionStatus` change.
    """

    def __init__(
        self,
        base_url: str,
        http_client: httpx.AsyncClient | None = None,
        max_attempts: int = 3,
        delay: float = 2.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        on_state_change: Callable[[ConnectionStatus], None] | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._owns_client = http_client is None
        # Reads block until the next frame; heartbeats keep them short.
        self._client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(10.0, read=None)
        )
        self._max_attempts = max_attempts
        self._delay = delay
        self._sleep = sleep
        self._on_state_change = on_state_change

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def events(self, document_id: str | None = None) -> AsyncIterator[dict[str, Any]]:
        """Yield every frame (connected, status, heartbeat) for a document.

        With no *document_id* the wildcard stream is followed.  A document
        stream ends after its terminal status frame.

        Raises
        ------
        DocumentNotFoundError
            If the server does not know *document_id*.
        ProviderUnavailableError
            Once the reconnection attempts are used up.
        """
        if document_id is None:
            url = f"{self._base_url}/api/v1/events"
        else:
            url = f"{self._base_url}/api/v1/documents/{document_id}/events"
        machine = ReconnectStateMachine(self._max_attempts, self._delay)
        self._notify(machine.status)

        while True:
            try:
                async with self._client.stream(
                    "GET", url, headers={"Accept": "text/event-stream"}
                ) as response:
                    if response.status_code == 404:
                        raise DocumentNotFoundError(
                            message=f"Document not found: {document_id}",
                            provider_name="status_stream",
                        )
                    response.raise_for_status()
                    self._notify(machine.on_connected())
                    async for frame in parse_sse(response.aiter_lines()):
                        yield frame
                        if (
                            document_id is not None
                            and frame.get("type") == "status"
                            and frame.get("status") in _TERMINAL_STATUSES
                        ):
                            return
                logger.info("status_stream_closed_by_server", url=url)
            except (httpx.TransportError, httpx.HTTPStatusError) as exc:
                logger.warning("status_stream_error", url=url, error=str(exc))

            status = machine.on_disconnected()
            self._notify(status)
            if status.state is ConnectionState.FAILED:
                raise ProviderUnavailableError(
                    message=status.message,
                    provider_name="status_stream",
                )
            await self._sleep(machine.delay)

    async def status_events(self, document_id: str | None = None) -> AsyncIterator[StatusEvent]:
        """Like :meth:`events` but yields only validated status events."""
        async for frame in self.events(document_id):
            if frame.get("type") != "status":
                continue
            payload = {k: v for k, v in frame.items() if k != "type"}
            yield status_event_adapter.validate_json(json.dumps(payload))

    def _notify(self, status: ConnectionStatus) -> None:
        logger.debug("status_stream_state", state=status.state.value, attempt=status.attempt)
        if self._on_state_change is not None:
            self._on_state_change(status)
