"""Scoped status subscriptions rendered as server-sent events.

A :class:`StatusStream` is an async context manager: entering it
subscribes to the :class:`JobStatusBus`, leaving it unsubscribes.  Every
transport (SSE here, WebSocket in :mod:`groundwriter.api.websocket`)
iterates :meth:`StatusStream.frames` inside ``async with`` so the
subscription is released however the consumer goes away.

Frame sequence::

    {"type": "connected", "job_id": ..., "timestamp": ...}
    {"type": "status", "status": "processing", "progress": 50, ...}
    {"type": "heartbeat", "timestamp": ...}      # after each quiet interval
    ...

A per-job stream ends after the job's terminal event; the wildcard
stream runs until the consumer leaves.  Leaving never cancels the job.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator
from types import TracebackType
from typing import Any

import structlog

from groundwriter.models.jobs import StatusEvent
from groundwriter.models.rag import utc_now
from groundwriter.pipeline.status_bus import JobStatusBus, Unsubscribe
from groundwriter.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

SSE_HEADERS: dict[str, str] = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


class StatusStream:
    """One consumer's view of the status bus.

    Parameters
    ----------
    bus:
        The application's status bus.
    job_id:
        Job to follow, or ``None`` for every job.
    heartbeat_interval:
        Seconds without an event before a heartbeat frame is produced.
    connected_info:
        Extra fields merged into the ``connected`` frame (e.g. the
        record's current status).
    """

    def __init__(
        self,
        bus: JobStatusBus,
        job_id: str | None = None,
        heartbeat_interval: float = 30.0,
        connected_info: dict[str, Any] | None = None,
    ) -> None:
        self._bus = bus
        self._job_id = job_id
        self._heartbeat_interval = heartbeat_interval
        self._connected_info = dict(connected_info or {})
        self._queue: asyncio.Queue[StatusEvent] = asyncio.Queue()
        self._unsubscribe: Unsubscribe | None = None

    @property
    def job_id(self) -> str | None:
        return self._job_id

    @property
    def is_open(self) -> bool:
        return self._unsubscribe is not None

    async def __aenter__(self) -> StatusStream:
        self.open()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def open(self) -> None:
        if self._unsubscribe is not None:
            return
        if self._job_id is None:
            self._unsubscribe = self._bus.subscribe_all(self._queue.put_nowait)
        else:
            self._unsubscribe = self._bus.subscribe(self._job_id, self._queue.put_nowait)
        _logger.debug("status_stream_opened", job_id=self._job_id)

    def close(self) -> None:
        if self._unsubscribe is None:
            return
        self._unsubscribe()
        self._unsubscribe = None
        _logger.debug("status_stream_closed", job_id=self._job_id)

    async def frames(self) -> AsyncIterator[dict[str, Any]]:
        """Yield the connected frame, then status and heartbeat frames."""
        if self._unsubscribe is None:
            raise RuntimeError("StatusStream must be opened before iterating")

        yield {
            "type": "connected",
            "job_id": self._job_id,
            "timestamp": utc_now().isoformat(),
            **self._connected_info,
        }
        while True:
            try:
                event = await asyncio.wait_for(
                    self._queue.get(), timeout=self._heartbeat_interval
                )
            except asyncio.TimeoutError:
                yield {"type": "heartbeat", "timestamp": utc_now().isoformat()}
                continue
            yield event.to_frame()
            if self._job_id is not None and event.status.is_terminal:
                return


def format_sse(frame: dict[str, Any]) -> str:
    """Encode one frame in the ``data: <json>\\n\\n`` wire format."""
    return f"data: {json.dumps(frame)}\n\n"


async def sse_events(stream: StatusStream) -> AsyncIterator[str]:
    """Body iterator for a ``text/event-stream`` response.

    Owns *stream*: the subscription is released when iteration ends,
    including when the server cancels the iterator on client disconnect.
    """
    async with stream:
        _logger.info("sse_stream_started", job_id=stream.job_id)
        try:
            async for frame in stream.frames():
                yield format_sse(frame)
        finally:
            _logger.info("sse_stream_ended", job_id=stream.job_id)
