from __future__ import annotations

import logging
import threading
import time

from sheets.session import EditSession

logger = logging.getLogger(__name__)

_LOCK = threading.Lock()
_SESSIONS: dict[str, EditSession] = {}
# session id -> monotonic time of the last register/get
_LAST_SEEN: dict[str, float] = {}


def _now() -> float:
    return time.monotonic()


def register(session: EditSession) -> str:
    with _LOCK:
        _SESSIONS[session.id] = session
        _LAST_SEEN[session.id] = _now()
    return session.id


def get_session(session_id: str) -> EditSession | None:
    with _LOCK:
        session = _SESSIONS.get(session_id)
        if session is not None:
            _LAST_SEEN[session_id] = _now()
        return session


def close_session(session_id: str) -> bool:
    with _LOCK:
        session = _SESSIONS.pop(session_id, None)
        _LAST_SEEN.pop(session_id, None)
    if session is None:
        return False
    session.close()
    return True


def session_ids() -> list[str]:
    with _LOCK:
        return list(_SESSIONS)


def evict_idle(max_idle_s: float) -> int:
    """Flush and close sessions untouched for `max_idle_s` seconds."""
    cutoff = _now() - max_idle_s
    with _LOCK:
        stale = [sid for sid, seen in _LAST_SEEN.items() if seen <= cutoff]
        sessions = [_SESSIONS.pop(sid) for sid in stale if sid in _SESSIONS]
        for sid in stale:
            _LAST_SEEN.pop(sid, None)
    for s in sessions:
        logger.info("closing idle session %s", s.id)
        s.close()
    return len(sessions)


def close_all() -> int:
    with _LOCK:
        sessions = list(_SESSIONS.values())
        _SESSIONS.clear()
        _LAST_SEEN.clear()
    for s in sessions:
        s.close()
    return len(sessions)
