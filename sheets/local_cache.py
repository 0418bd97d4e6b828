from __future__ import annotations

import json
import re
import threading
from pathlib import Path
from typing import Any

SOURCES_KEY = "sources"
MESSAGES_KEY = "messages"
TITLE_KEY = "title"

_GUEST_ID_RE = re.compile(r"[A-Za-z0-9_-]{1,64}")


class LocalCache:
    """
    Guest-mode persistence for one guest: one JSON file of string keys.

    Reads are forgiving (a missing or corrupt file reads as empty); writes
    raise so the caller can report a failed save.
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, Any]:
        try:
            if not self._path.exists():
                return {}
            data = json.loads(self._path.read_text(encoding="utf-8"))
            return data if isinstance(data, dict) else {}
        except (OSError, ValueError):
            return {}

    def _dump(self, data: dict[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
        tmp.replace(self._path)

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._load().get(key, default)

    def set(self, key: str, value: Any) -> None:
        self.set_many({key: value})

    def set_many(self, values: dict[str, Any]) -> None:
        with self._lock:
            data = self._load()
            data.update(values)
            self._dump(data)

    def clear(self) -> None:
        with self._lock:
            if self._path.exists():
                self._path.unlink()


def guest_cache_path(root: Path, guest_id: str) -> Path:
    """One cache file per guest under `root`; the id doubles as the file name."""
    gid = (guest_id or "").strip()
    if not _GUEST_ID_RE.fullmatch(gid):
        raise ValueError(f"invalid guest id {guest_id!r}")
    return Path(root) / f"{gid}.json"
