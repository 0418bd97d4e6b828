from __future__ import annotations

import json
import sqlite3
import threading
import time
import uuid
from pathlib import Path
from typing import Callable

from sheets.errors import SheetOwnershipError
from sheets.models import Sheet

SheetsCallback = Callable[[list[Sheet]], None]


class SheetStore:
    """
    Durable sheet documents keyed by id, scoped to an owner.
    - One sqlite file
    - save() upserts the whole document and returns its id; an id owned by
      someone else is never overwritten
    - subscribe() pushes the owner's sheets after every change
    """

    def __init__(self, db_path: Path) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._subs_lock = threading.Lock()
        self._subs: dict[str, list[SheetsCallback]] = {}
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL;")
        conn.execute("PRAGMA synchronous=NORMAL;")
        return conn

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS sheets (
                  id TEXT PRIMARY KEY,
                  owner_id TEXT NOT NULL,
                  title TEXT NOT NULL,
                  data TEXT NOT NULL,
                  created_at REAL NOT NULL,
                  updated_at REAL NOT NULL
                );
                """
            )
            conn.execute("CREATE INDEX IF NOT EXISTS idx_sheets_owner ON sheets(owner_id, updated_at);")

    @staticmethod
    def _row_to_sheet(row: sqlite3.Row) -> Sheet:
        sheet = Sheet.from_dict(json.loads(row["data"]))
        sheet.id = row["id"]
        sheet.updated_at = row["updated_at"]
        return sheet

    def save(self, owner_id: str, sheet: Sheet) -> str:
        owner_id = (owner_id or "").strip()
        if not owner_id:
            raise ValueError("Cannot save sheet: no owner id")
        sheet_id = sheet.id or uuid.uuid4().hex
        now = time.time()
        data = sheet.to_dict()
        data["id"] = sheet_id
        data["updatedAt"] = now
        with self._connect() as conn:
            cur = conn.execute(
                "INSERT INTO sheets (id, owner_id, title, data, created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?) "
                "ON CONFLICT(id) DO UPDATE SET title=excluded.title, data=excluded.data, updated_at=excluded.updated_at "
                "WHERE sheets.owner_id = excluded.owner_id",
                (sheet_id, owner_id, sheet.title, json.dumps(data, ensure_ascii=False), now, now),
            )
            if cur.rowcount == 0:
                raise SheetOwnershipError(f"sheet {sheet_id} belongs to another owner", sheet_id=sheet_id)
        self._notify(owner_id)
        return sheet_id

    def get(self, sheet_id: str, *, owner_id: str | None = None) -> Sheet | None:
        """Fetch one sheet. With `owner_id`, another owner's sheet reads as missing."""
        sheet_id = (sheet_id or "").strip()
        if not sheet_id:
            return None
        sql = "SELECT id, data, updated_at FROM sheets WHERE id = ?"
        params: tuple = (sheet_id,)
        if owner_id is not None:
            sql += " AND owner_id = ?"
            params = (sheet_id, owner_id)
        with self._connect() as conn:
            row = conn.execute(sql, params).fetchone()
        return self._row_to_sheet(row) if row else None

    def owner_of(self, sheet_id: str) -> str | None:
        with self._connect() as conn:
            row = conn.execute("SELECT owner_id FROM sheets WHERE id = ?", (sheet_id,)).fetchone()
        return row["owner_id"] if row else None

    def list_for_owner(self, owner_id: str, limit: int = 200) -> list[Sheet]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT id, data, updated_at FROM sheets WHERE owner_id = ? ORDER BY updated_at DESC LIMIT ?",
                (owner_id, int(limit)),
            ).fetchall()
        return [self._row_to_sheet(r) for r in rows]

    def delete(self, sheet_id: str, *, owner_id: str | None = None) -> bool:
        stored_owner = self.owner_of(sheet_id)
        if owner_id is not None and stored_owner not in (None, owner_id):
            raise SheetOwnershipError(f"sheet {sheet_id} belongs to another owner", sheet_id=sheet_id)
        owner_id = stored_owner
        with self._connect() as conn:
            cur = conn.execute("DELETE FROM sheets WHERE id = ?", (sheet_id,))
            removed = cur.rowcount > 0
        if owner_id:
            self._notify(owner_id)
        return removed

    def subscribe(self, owner_id: str, callback: SheetsCallback) -> Callable[[], None]:
        """Register `callback`, call it once with the current list, return an unsubscribe function."""
        if not owner_id:
            return lambda: None
        with self._subs_lock:
            self._subs.setdefault(owner_id, []).append(callback)
        callback(self.list_for_owner(owner_id))

        def _unsubscribe() -> None:
            with self._subs_lock:
                subs = self._subs.get(owner_id) or []
                if callback in subs:
                    subs.remove(callback)
                if not subs:
                    self._subs.pop(owner_id, None)

        return _unsubscribe

    def _notify(self, owner_id: str) -> None:
        with self._subs_lock:
            subs = list(self._subs.get(owner_id) or [])
        if not subs:
            return
        sheets = self.list_for_owner(owner_id)
        for cb in subs:
            cb(list(sheets))
