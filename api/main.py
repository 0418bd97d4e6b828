from __future__ import annotations

import asyncio
import contextlib
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.deps import get_settings
from api.routers import references, sessions, settings, sheets
from sheets.config import setup_logging
from sheets.session_registry import close_all, evict_idle

IDLE_SWEEP_INTERVAL_S = 60.0


async def _sweep_idle_sessions(max_idle_s: float) -> None:
    while True:
        await asyncio.sleep(IDLE_SWEEP_INTERVAL_S)
        await asyncio.to_thread(evict_idle, max_idle_s)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    s = get_settings()
    setup_logging(s.log_level)
    sweeper = asyncio.create_task(_sweep_idle_sessions(s.session_idle_s))
    yield
    sweeper.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await sweeper
    # Pending debounced writes are flushed before the process exits.
    close_all()


app = FastAPI(title="Source Sheets API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(sessions.router)
app.include_router(sheets.router)
app.include_router(references.router)
app.include_router(settings.router)
