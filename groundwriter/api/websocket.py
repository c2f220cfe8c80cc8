"""WebSocket variant of the status stream.

Frames are the same JSON objects the SSE endpoint sends.  The handler
itself sits in a receive loop until the client disconnects, while a
background sender pushes frames from a :class:`StatusStream`.  After a
job's terminal frame the sender closes the socket; a failed send releases
the subscription at once.  Unknown documents are refused before accept
with close code 4404.
"""

from __future__ import annotations

import asyncio

import structlog
from fastapi import WebSocket, WebSocketDisconnect

from groundwriter.api.status_stream import StatusStream
from groundwriter.interfaces.document_store import IDocumentStore
from groundwriter.pipeline.status_bus import JobStatusBus
from groundwriter.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

CLOSE_DOCUMENT_NOT_FOUND = 4404


async def websocket_status(websocket: WebSocket, document_id: str) -> None:
    """Push status frames for *document_id* until the job ends or the client leaves."""
    bus: JobStatusBus = websocket.app.state.status_bus
    store: IDocumentStore = websocket.app.state.document_store
    heartbeat = websocket.app.state.settings.status_heartbeat_interval

    record = await store.get(document_id)
    if record is None:
        _logger.info("websocket_rejected", document_id=document_id, reason="not_found")
        await websocket.close(code=CLOSE_DOCUMENT_NOT_FOUND)
        return

    await websocket.accept()
    _logger.info("websocket_connected", document_id=document_id)

    stream = StatusStream(
        bus,
        document_id,
        heartbeat_interval=heartbeat,
        connected_info={"status": record.status.value, "progress": record.status.progress},
    )
    stream.open()
    sender = asyncio.create_task(_pump(websocket, stream))
    try:
        # Client messages are ignored; this only waits for the disconnect.
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
    finally:
        # No awaits here: the subscription is released even if the
        # handler is being cancelled.
        sender.cancel()
        stream.close()
        _logger.info("websocket_disconnected", document_id=document_id)


async def _pump(websocket: WebSocket, stream: StatusStream) -> None:
    try:
        async for frame in stream.frames():
            await websocket.send_json(frame)
        await websocket.close()
    except (WebSocketDisconnect, RuntimeError, OSError) as exc:
        _logger.info("websocket_send_failed", job_id=stream.job_id, error=str(exc))
    finally:
        stream.close()
