from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class Settings:
    sefaria_base_url: str
    http_timeout_s: float
    name_limit: int
    search_size: int
    data_dir: Path
    save_debounce_s: float
    history_limit: int
    assistant_url: str
    log_level: str
    session_idle_s: float

    @property
    def sheet_db_path(self) -> Path:
        return self.data_dir / "sheets.sqlite3"

    @property
    def guest_cache_dir(self) -> Path:
        return self.data_dir / "guests"


def _env_float(name: str, default: float) -> float:
    raw = str(os.environ.get(name, "") or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    raw = str(os.environ.get(name, "") or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def load_settings() -> Settings:
    data_dir = Path(os.environ.get("SHEETS_DATA_DIR") or "data").expanduser().resolve()
    return Settings(
        sefaria_base_url=(os.environ.get("SHEETS_SEFARIA_BASE_URL") or "https://www.sefaria.org").rstrip("/"),
        http_timeout_s=max(1.0, _env_float("SHEETS_HTTP_TIMEOUT_S", 15.0)),
        name_limit=max(1, _env_int("SHEETS_NAME_LIMIT", 10)),
        search_size=max(1, _env_int("SHEETS_SEARCH_SIZE", 8)),
        data_dir=data_dir,
        save_debounce_s=max(0.0, _env_float("SHEETS_SAVE_DEBOUNCE_S", 2.0)),
        history_limit=max(1, _env_int("SHEETS_HISTORY_LIMIT", 50)),
        assistant_url=(os.environ.get("SHEETS_ASSISTANT_URL") or "").strip().rstrip("/"),
        log_level=(os.environ.get("SHEETS_LOG_LEVEL") or "INFO").strip().upper(),
        session_idle_s=max(1.0, _env_float("SHEETS_SESSION_IDLE_S", 1800.0)),
    )


def setup_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    if root.handlers:
        root.setLevel(level)
        return
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
