"""SSE (Server-Sent Events) support for real-time generation progress.

Each run gets its own ProgressChannel. The pipeline pushes events into it
without ever waiting on the client; the event generator drains it into a
text/event-stream response until the terminal event arrives.
"""

import asyncio
import json
import uuid
from typing import Any, AsyncGenerator, Dict, Optional, Tuple

from fastapi import Request

from storyreel.core.logging_config import get_logger

logger = get_logger("api.sse")

KEEPALIVE_SECONDS = 30.0

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # Disable nginx buffering
}


class ProgressChannel:
    """One-way, unbounded event channel from a pipeline run to a client."""

    def __init__(self, run_id: Optional[str] = None):
        self.run_id = run_id or uuid.uuid4().hex
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def emit(self, data: Dict[str, Any]) -> None:
        """Queue a progress event. Dropped once the client has gone away."""
        if self._closed:
            return
        self._queue.put_nowait((data, False))

    def finish(self, data: Dict[str, Any]) -> None:
        """Queue the terminal event; the stream ends after it is sent."""
        if self._closed:
            logger.info(f"Run {self.run_id} finished after its client disconnected")
            return
        self._queue.put_nowait((data, True))

    def close(self) -> None:
        self._closed = True

    async def get(self) -> Tuple[Dict[str, Any], bool]:
        return await self._queue.get()


def format_event(data: Dict[str, Any]) -> str:
    """Format a payload as an SSE data message."""
    return f"data: {json.dumps(data)}\n\n"


async def event_generator(
    channel: ProgressChannel,
    request: Request,
    keepalive: float = KEEPALIVE_SECONDS
) -> AsyncGenerator[str, None]:
    """Generate SSE messages for a run until its terminal event."""
    try:
        while True:
            # Check if client disconnected
            if await request.is_disconnected():
                logger.info(f"SSE client disconnected from run {channel.run_id}")
                break

            try:
                data, terminal = await asyncio.wait_for(channel.get(), timeout=keepalive)
            except asyncio.TimeoutError:
                yield ": keepalive\n\n"
                continue

            yield format_event(data)

            if terminal:
                logger.info(f"Run {channel.run_id} complete, closing SSE stream")
                break

    except asyncio.CancelledError:
        logger.info(f"SSE stream cancelled for run {channel.run_id}")
        raise
    finally:
        channel.close()
