"""
Server-Sent Events adapter for the talent stream.

Drains a ``RecordChannel`` and yields SSE frames::

    event: talent
    data: {"rank": 1, "name": "...", "talent_string": "...", "log_url": "..."}

    event: error
    data: {"kind": "FetchError", "message": "..."}

    event: done
    data: {"records": 10}

A comment frame (``: keep-alive``) goes out whenever nothing arrived for
``heartbeat_seconds`` so proxies keep the connection open.  ``done`` is
always the last frame once the producer closes the channel.

If the HTTP client disconnects, the web framework stops iterating the
generator; the ``finally`` block closes the channel's receiver side, which
makes the producer's next ``send()`` fail and ends the run.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import AsyncIterator

from talent_trends.models.talent import ErrorRecord, StreamItem
from talent_trends.pipeline.channel import RecordChannel

logger = logging.getLogger(__name__)

HEARTBEAT_FRAME = ": keep-alive\n\n"
MEDIA_TYPE = "text/event-stream"


def format_event(event: str, data: str) -> str:
    """Encode one SSE frame; multi-line data becomes several ``data:`` lines."""
    lines = [f"event: {event}"]
    lines.extend(f"data: {line}" for line in data.splitlines() or [""])
    return "\n".join(lines) + "\n\n"


def encode_item(item: StreamItem) -> str:
    if isinstance(item, ErrorRecord):
        return format_event("error", item.model_dump_json())
    return format_event("talent", item.model_dump_json())


class SseTransport:
    """Turn a stream of records into SSE frames with idle heartbeats."""

    def __init__(self, heartbeat_seconds: float = 15.0) -> None:
        self.heartbeat_seconds = heartbeat_seconds

    async def events(self, channel: RecordChannel[StreamItem]) -> AsyncIterator[str]:
        sent = 0
        try:
            while True:
                try:
                    item = await asyncio.wait_for(
                        channel.receive(), timeout=self.heartbeat_seconds
                    )
                except asyncio.TimeoutError:
                    yield HEARTBEAT_FRAME
                    continue
                if item is None:
                    break
                yield encode_item(item)
                sent += 1
            yield format_event("done", json.dumps({"records": sent}))
            logger.debug("SSE stream finished | frames=%d", sent)
        finally:
            channel.close_receiver()
