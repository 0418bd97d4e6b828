from __future__ import annotations

import uuid
from functools import lru_cache

from sheets.assistant import AssistantClient
from sheets.config import Settings, load_settings
from sheets.local_cache import LocalCache, guest_cache_path
from sheets.resolver import ReferenceResolver
from sheets.scheduler import ThreadScheduler
from sheets.sefaria import SefariaClient
from sheets.session import EditSession
from sheets.session_registry import evict_idle, register
from sheets.sheet_store import SheetStore


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()


@lru_cache(maxsize=1)
def get_sheet_store() -> SheetStore:
    return SheetStore(get_settings().sheet_db_path)


# One instance per guest so concurrent sessions of a guest share its file lock.
@lru_cache(maxsize=1024)
def get_local_cache(guest_id: str) -> LocalCache:
    return LocalCache(guest_cache_path(get_settings().guest_cache_dir, guest_id))


@lru_cache(maxsize=1)
def get_resolver() -> ReferenceResolver:
    s = get_settings()
    client = SefariaClient(
        s.sefaria_base_url,
        timeout_s=s.http_timeout_s,
        name_limit=s.name_limit,
        search_size=s.search_size,
    )
    return ReferenceResolver(client)


@lru_cache(maxsize=1)
def get_assistant() -> AssistantClient | None:
    s = get_settings()
    if not s.assistant_url:
        return None
    return AssistantClient(s.assistant_url)


def get_scheduler() -> ThreadScheduler:
    return ThreadScheduler()


def create_session(guest_id: str | None = None) -> EditSession:
    s = get_settings()
    evict_idle(s.session_idle_s)
    guest_id = guest_id or uuid.uuid4().hex
    session = EditSession(
        resolver=get_resolver(),
        store=get_sheet_store(),
        cache=get_local_cache(guest_id),
        guest_id=guest_id,
        assistant=get_assistant(),
        scheduler=get_scheduler(),
        debounce_s=s.save_debounce_s,
        history_limit=s.history_limit,
    )
    register(session)
    return session
