"""Abandon in-flight work when the HTTP client disconnects."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, TypeVar

from fastapi import Request

from app.core.errors import ClientDisconnectedError

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def cancel_on_disconnect(
    request: Request,
    awaitable: Awaitable[T],
    *,
    poll_interval: float = 0.25,
) -> T:
    """Await ``awaitable`` but cancel it as soon as the client goes away.

    Cancelling the orchestrator call propagates into pending store queries
    and the provider request, so no resources are held past the caller's
    interest.

    Raises:
        ClientDisconnectedError: If the client disconnected first.
    """
    task = asyncio.ensure_future(awaitable)
    try:
        while True:
            done, _ = await asyncio.wait({task}, timeout=poll_interval)
            if done:
                return task.result()
            if await request.is_disconnected():
                task.cancel()
                logger.info("http.client_disconnected", extra={"path": request.url.path})
                raise ClientDisconnectedError(
                    code="client_disconnected",
                    message="Client closed the request",
                )
    finally:
        if not task.done():
            task.cancel()
