"""Deadline helper shared by every stage that awaits an external service.

Embedding, similarity search, extraction and LLM calls all pass through
:func:`with_timeout` so an unresponsive upstream surfaces as a typed
:class:`ServiceTimeoutError` instead of a job that never finishes.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, TypeVar

from groundwriter.utils.errors import ServiceTimeoutError

_T = TypeVar("_T")


async def with_timeout(
    awaitable: Awaitable[_T],
    timeout: float | None,
    *,
    stage: str,
    provider_name: str | None = None,
) -> _T:
    """Await *awaitable*, raising :class:`ServiceTimeoutError` after *timeout* seconds.

    Parameters
    ----------
    awaitable:
        The call to guard (a coroutine or future).
    timeout:
        Deadline in seconds.  ``None`` or a non-positive value disables it.
    stage:
        Short label used in the error message, e.g. ``"embedding batch 2/3"``.
    provider_name:
        Provider blamed in the resulting error.
    """
    if timeout is None or timeout <= 0:
        return await awaitable
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as exc:
        raise ServiceTimeoutError(
            message=f"{stage} timed out after {timeout:g}s",
            provider_name=provider_name,
        ) from exc
