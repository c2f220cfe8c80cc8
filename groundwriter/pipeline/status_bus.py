"""In-process publish/subscribe bus for job status events.

Producers (the document processor, the writing service) publish
:data:`~groundwriter.models.jobs.StatusEvent` values; consumers (SSE and
WebSocket streams) subscribe per job id or to every job.

  DocumentProcessor ──publish()──→ JobStatusBus ──handler()──→ StatusStream
                                                 ──handler()──→ (any other)

Delivery is at-most-once with no buffering: a subscriber that attaches
after an event was published never sees it.  Events for one job reach
each handler in publish order when there is a single publisher.

The registry is guarded by a :class:`threading.Lock` and handler lists
are snapshotted before dispatch, so a handler may unsubscribe itself (or
others) while an event is being delivered.  Both sync and async handlers
are supported; a handler that raises is logged and skipped.
"""

from __future__ import annotations

import asyncio
import threading
from collections.abc import Awaitable, Callable
from typing import Union

import structlog

from groundwriter.models.jobs import StatusEvent
from groundwriter.utils.logging import get_logger

StatusHandler = Callable[[StatusEvent], Union[Awaitable[None], None]]
Unsubscribe = Callable[[], None]

# Registry key for wildcard subscribers.
_ALL = "*"


class JobStatusBus:
    """Fan-out of status events to per-job and wildcard subscribers.

    One instance is built at application startup and held on
    ``app.state``; tests construct their own.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[StatusHandler]] = {}
        self._lock = threading.Lock()
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def publish(self, event: StatusEvent) -> None:
        """Deliver *event* to the job's subscribers, then to wildcard ones.

        Returns once every handler has run (async handlers are awaited in
        subscription order).  With no subscribers the event is dropped.
        """
        with self._lock:
            targets = list(self._handlers.get(event.job_id, ()))
            targets.extend(self._handlers.get(_ALL, ()))

        self._logger.debug(
            "status_event_published",
            job_id=event.job_id,
            status=event.status.value,
            progress=event.progress,
            subscribers=len(targets),
        )

        for handler in targets:
            try:
                result = handler(event)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as exc:
                self._logger.warning(
                    "status_handler_error",
                    job_id=event.job_id,
                    error=str(exc),
                    handler=getattr(handler, "__name__", repr(handler)),
                )

    def subscribe(self, job_id: str, handler: StatusHandler) -> Unsubscribe:
        """Register *handler* for events about *job_id*.

        Returns a callable that removes the registration.  Calling it more
        than once is harmless.
        """
        if not job_id or job_id == _ALL:
            raise ValueError("job_id must be a concrete job identifier")
        return self._register(job_id, handler)

    def subscribe_all(self, handler: StatusHandler) -> Unsubscribe:
        """Register *handler* for events about every job."""
        return self._register(_ALL, handler)

    def subscriber_count(self, job_id: str | None = None) -> int:
        """Number of live handlers for *job_id*, or across all topics."""
        with self._lock:
            if job_id is None:
                return sum(len(handlers) for handlers in self._handlers.values())
            return len(self._handlers.get(job_id, ()))

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _register(self, topic: str, handler: StatusHandler) -> Unsubscribe:
        with self._lock:
            self._handlers.setdefault(topic, []).append(handler)
            total = len(self._handlers[topic])
        self._logger.debug("status_subscribed", topic=topic, total_subscribers=total)

        removed = False

        def unsubscribe() -> None:
            nonlocal removed
            with self._lock:
                if removed:
                    return
                removed = True
                handlers = self._handlers.get(topic)
                if handlers is None:
                    return
                # Identity match so one handler subscribed twice is removed once.
                for i, registered in enumerate(handlers):
                    if registered is handler:
                        del handlers[i]
                        break
                if not handlers:
                    del self._handlers[topic]
            self._logger.debug("status_unsubscribed", topic=topic)

        return unsubscribe

