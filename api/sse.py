from __future__ import annotations

import asyncio
import json
import time
from collections.abc import AsyncGenerator
from typing import Any, Callable

from starlette.responses import StreamingResponse


def _event(data: Any) -> str:
    return f"data: {json.dumps(data, ensure_ascii=False, default=str)}\n\n"


async def sse_generator(
    poll_fn: Callable[[], dict | None],
    *,
    interval: float = 0.5,
    done_key: str = "done",
    max_duration_s: float = 300.0,
) -> AsyncGenerator[str, None]:
    """Poll `poll_fn` and emit each result; stop on done, on None, or after max_duration_s."""
    started = time.monotonic()
    while True:
        data = poll_fn()
        if data is None:
            yield _event({done_key: True, "error": "not_found"})
            return
        yield _event(data)
        if data.get(done_key):
            return
        if time.monotonic() - started >= max_duration_s:
            yield _event({done_key: True, "timeout": True})
            return
        await asyncio.sleep(interval)


def sse_response(generator: AsyncGenerator[str, None]) -> StreamingResponse:
    return StreamingResponse(
        generator,
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
