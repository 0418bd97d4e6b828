from __future__ import annotations

from fastapi import APIRouter

from api.deps import get_settings
from sheets.session_registry import session_ids

router = APIRouter(prefix="/api", tags=["settings"])


@router.get("/settings")
def get_all_settings():
    s = get_settings()
    return {
        "sefaria_base_url": s.sefaria_base_url,
        "http_timeout_s": s.http_timeout_s,
        "name_limit": s.name_limit,
        "search_size": s.search_size,
        "data_dir": str(s.data_dir),
        "save_debounce_s": s.save_debounce_s,
        "history_limit": s.history_limit,
        "has_assistant": bool(s.assistant_url),
        "log_level": s.log_level,
    }


@router.get("/health")
def health():
    return {"status": "ok", "sessions": len(session_ids())}
