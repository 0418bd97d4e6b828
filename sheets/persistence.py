from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable

from sheets.errors import PersistenceLoadError, PersistenceWriteError
from sheets.local_cache import MESSAGES_KEY, SOURCES_KEY, TITLE_KEY, LocalCache
from sheets.models import (
    DEFAULT_TITLE,
    Sheet,
    entries_from_list,
    entries_to_list,
    messages_from_list,
)
from sheets.scheduler import ThreadScheduler, TimerHandle
from sheets.sheet_store import SheetStore

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_S = 2.0
MAX_NOTICES = 20


class CoordinatorState(str, Enum):
    NOT_INITIALIZED = "not_initialized"
    LOADING = "loading"
    READY = "ready"
    SAVING = "saving"


class PersistenceMode(str, Enum):
    GUEST_LOCAL = "guest-local"
    REMOTE = "remote-authoritative"


@dataclass
class Hydration:
    sheet: Sheet
    mode: PersistenceMode
    persisted: bool
    dirty: bool


@dataclass(frozen=True)
class Notice:
    level: str
    message: str
    at: float


class PersistenceCoordinator:
    """
    Sole writer of a sheet to durable storage.

    State machine NOT_INITIALIZED -> LOADING -> READY <-> SAVING, crossed with a
    dirty flag. Writes are debounced (0s until the first durable write, then
    `debounce_s`), always serialize the latest snapshot handed to
    mark_changed(), and never overlap. Loads requested while a write is in
    flight run once it finishes.
    """

    def __init__(
        self,
        *,
        store: SheetStore,
        cache: LocalCache,
        hydrate: Callable[[Sheet], None] | None = None,
        scheduler: Any = None,
        debounce_s: float = DEFAULT_DEBOUNCE_S,
        on_identifier: Callable[[str], None] | None = None,
        on_notice: Callable[[Notice], None] | None = None,
    ) -> None:
        self._store = store
        self._cache = cache
        self._hydrate = hydrate
        self._scheduler = scheduler or ThreadScheduler()
        self._debounce_s = max(0.0, float(debounce_s))
        self._on_identifier = on_identifier
        self._on_notice = on_notice

        self._lock = threading.Lock()
        self._state = CoordinatorState.NOT_INITIALIZED
        self._mode = PersistenceMode.GUEST_LOCAL
        self._dirty = False
        self._persisted = False
        self._sheet_id: str | None = None
        self._owner_id: str | None = None
        # Latest-state cell: replaced on every mutation, read when a write fires.
        self._latest: Sheet | None = None
        self._revision = 0
        self._generation = 0
        self._timer: TimerHandle | None = None
        self._timer_token = 0
        self._rerun_after_save = False
        self._deferred: Callable[[], Any] | None = None
        self._last_saved_at: float | None = None
        self._last_error: str = ""
        self._notices: list[Notice] = []

    # ---------- introspection ----------

    @property
    def state(self) -> CoordinatorState:
        with self._lock:
            return self._state

    @property
    def dirty(self) -> bool:
        with self._lock:
            return self._dirty

    @property
    def sheet_id(self) -> str | None:
        with self._lock:
            return self._sheet_id

    @property
    def owner_id(self) -> str | None:
        with self._lock:
            return self._owner_id

    @property
    def persisted(self) -> bool:
        with self._lock:
            return self._persisted

    @property
    def mode(self) -> PersistenceMode:
        with self._lock:
            return self._mode

    @property
    def has_pending_write(self) -> bool:
        with self._lock:
            return self._timer is not None

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            return {
                "state": self._state.value,
                "mode": self._mode.value,
                "dirty": self._dirty,
                "persisted": self._persisted,
                "saving": self._state is CoordinatorState.SAVING,
                "loading": self._state is CoordinatorState.LOADING,
                "sheet_id": self._sheet_id,
                "owner_id": self._owner_id,
                "pending_write": self._timer is not None,
                "last_saved_at": self._last_saved_at,
                "last_error": self._last_error,
                "notices": [n.__dict__ for n in self._notices],
            }

    def notify(self, level: str, message: str) -> None:
        n = Notice(level=level, message=message, at=time.time())
        with self._lock:
            self._notices.append(n)
            if len(self._notices) > MAX_NOTICES:
                self._notices = self._notices[-MAX_NOTICES:]
            if level == "error":
                self._last_error = message
        if self._on_notice is not None:
            self._on_notice(n)

    # ---------- loading ----------

    def load(self, sheet_id: str | None = None, *, owner_id: str | None = None, is_new: bool = False) -> bool:
        """
        Hydrate from durable storage. Returns False when the load was deferred
        (a write is in flight) or superseded by a newer load.
        """
        self._write_before_switch()
        with self._lock:
            if self._state is CoordinatorState.SAVING:
                logger.info("load of %r deferred until the current write finishes", sheet_id)
                self._deferred = lambda: self.load(sheet_id, owner_id=owner_id, is_new=is_new)
                return False
            self._cancel_timer_locked()
            self._generation += 1
            generation = self._generation
            self._state = CoordinatorState.LOADING
            self._owner_id = owner_id or None

        try:
            hydration = self._fetch(sheet_id, owner_id=owner_id, is_new=is_new)
        except PersistenceLoadError as exc:
            logger.warning("load failed: %s", exc)
            self.notify("error", "Failed to load sheet")
            hydration = Hydration(
                sheet=Sheet(id=sheet_id),
                mode=PersistenceMode.REMOTE if owner_id else PersistenceMode.GUEST_LOCAL,
                persisted=False,
                dirty=False,
            )

        return self._apply_hydration(generation, hydration)

    def start_new(self, sheet_id: str | None = None, *, owner_id: str | None = None) -> bool:
        """Explicit "new sheet": empty content, nothing read from storage."""
        self._write_before_switch()
        with self._lock:
            if self._state is CoordinatorState.SAVING:
                self._deferred = lambda: self.start_new(sheet_id, owner_id=owner_id)
                return False
            self._cancel_timer_locked()
            self._generation += 1
            generation = self._generation
            self._state = CoordinatorState.LOADING
            self._owner_id = owner_id or None
        hydration = Hydration(
            sheet=Sheet(id=sheet_id),
            mode=PersistenceMode.REMOTE if owner_id else PersistenceMode.GUEST_LOCAL,
            persisted=False,
            dirty=False,
        )
        return self._apply_hydration(generation, hydration)

    def _fetch(self, sheet_id: str | None, *, owner_id: str | None, is_new: bool) -> Hydration:
        if owner_id and sheet_id:
            try:
                remote = self._store.get(sheet_id, owner_id=owner_id)
                foreign = remote is None and self._store.owner_of(sheet_id) not in (None, owner_id)
            except Exception as exc:
                raise PersistenceLoadError(f"remote fetch of {sheet_id} failed: {exc}", sheet_id=sheet_id) from exc
            if remote is not None:
                logger.info("hydrated sheet %s from remote store", sheet_id)
                return Hydration(sheet=remote, mode=PersistenceMode.REMOTE, persisted=True, dirty=False)
            if foreign:
                # Another owner's id is never adopted; edits go to a fresh sheet.
                logger.warning("sheet %s is owned by someone else; not loading it", sheet_id)
                self.notify("warning", f"Sheet {sheet_id} is not available; starting a new one")
                return Hydration(sheet=Sheet(id=None), mode=PersistenceMode.REMOTE, persisted=False, dirty=False)
            if not is_new:
                self.notify("warning", f"Sheet {sheet_id} was not found; starting a new one")
                return Hydration(sheet=Sheet(id=sheet_id), mode=PersistenceMode.REMOTE, persisted=False, dirty=False)

        local = self._read_local()
        local.id = sheet_id if owner_id else None
        if owner_id:
            # Guest work carried into an account has never been written remotely.
            return Hydration(
                sheet=local,
                mode=PersistenceMode.REMOTE,
                persisted=False,
                dirty=local.has_real_content(),
            )
        return Hydration(
            sheet=local,
            mode=PersistenceMode.GUEST_LOCAL,
            persisted=local.has_real_content(),
            dirty=False,
        )

    def _read_local(self) -> Sheet:
        try:
            entries = entries_from_list(self._cache.get(SOURCES_KEY) or [])
        except ValueError as exc:
            logger.warning("ignoring unreadable cached sources: %s", exc)
            entries = []
        return Sheet(
            id=None,
            title=str(self._cache.get(TITLE_KEY) or DEFAULT_TITLE),
            entries=entries,
            messages=messages_from_list(self._cache.get(MESSAGES_KEY)),
        )

    def _apply_hydration(self, generation: int, hydration: Hydration) -> bool:
        with self._lock:
            if generation != self._generation:
                logger.info("discarding stale load result (generation %d)", generation)
                return False
            self._latest = hydration.sheet
            self._sheet_id = hydration.sheet.id
            self._mode = hydration.mode
            self._persisted = hydration.persisted
            self._dirty = hydration.dirty
            self._revision += 1
            self._state = CoordinatorState.READY

        if self._hydrate is not None:
            self._hydrate(hydration.sheet)

        with self._lock:
            if generation == self._generation and self._dirty:
                self._schedule_locked()
        return True

    # ---------- mutations & scheduling ----------

    def mark_changed(self, sheet: Sheet) -> None:
        """Record the newest content. Dirty is set before any write is scheduled."""
        with self._lock:
            self._latest = sheet
            self._revision += 1
            if self._state in (CoordinatorState.NOT_INITIALIZED, CoordinatorState.LOADING):
                return
            if not sheet.has_real_content():
                # Untouched sheets are never written.
                self._dirty = False
                self._cancel_timer_locked()
                return
            self._dirty = True
            self._schedule_locked()

    def _schedule_locked(self) -> None:
        delay = self._debounce_s if self._persisted else 0.0
        self._cancel_timer_locked()
        self._timer_token += 1
        token = self._timer_token
        self._timer = self._scheduler.call_later(delay, lambda: self._fire(token))

    def _cancel_timer_locked(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._timer_token += 1

    def flush(self) -> bool:
        """Run a pending write now instead of waiting for the debounce."""
        with self._lock:
            if self._timer is None:
                return False
            self._cancel_timer_locked()
            token = self._timer_token
        self._fire(token)
        return True

    def _write_before_switch(self) -> None:
        """Write unsaved edits to the current target before another sheet replaces it."""
        with self._lock:
            if self._state is not CoordinatorState.READY or not self._dirty:
                return
            self._cancel_timer_locked()
            token = self._timer_token
            sheet_id = self._sheet_id
        logger.info("writing pending edits of %s before switching sheets", sheet_id or "(new sheet)")
        self._fire(token)

    def close(self) -> None:
        with self._lock:
            self._cancel_timer_locked()
            self._deferred = None

    # ---------- writing ----------

    def _fire(self, token: int) -> None:
        with self._lock:
            if token != self._timer_token:
                return
            self._timer = None
            if self._state in (CoordinatorState.NOT_INITIALIZED, CoordinatorState.LOADING):
                return
            if self._state is CoordinatorState.SAVING:
                self._rerun_after_save = True
                return
            sheet = self._latest
            if sheet is None or not sheet.has_real_content():
                self._dirty = False
                return
            self._state = CoordinatorState.SAVING
            revision = self._revision
            owner_id = self._owner_id
            sheet = replace(sheet, id=self._sheet_id, entries=list(sheet.entries), messages=list(sheet.messages))

        error: PersistenceWriteError | None = None
        new_id: str | None = None
        try:
            new_id = self._write(owner_id, sheet)
        except PersistenceWriteError as exc:
            error = exc

        assigned: str | None = None
        with self._lock:
            self._state = CoordinatorState.READY
            if error is None:
                self._persisted = True
                self._last_saved_at = time.time()
                self._last_error = ""
                if new_id and new_id != self._sheet_id:
                    self._sheet_id = new_id
                    assigned = new_id
                if self._revision == revision:
                    self._dirty = False
            deferred = self._deferred
            self._deferred = None
            rerun = self._rerun_after_save
            self._rerun_after_save = False
            # A deferred load writes any remaining edits itself before switching.
            if rerun and deferred is None and self._dirty:
                self._schedule_locked()

        if error is not None:
            logger.warning("autosave failed: %s", error)
            self.notify("error", "Autosave failed! Please check connection.")
        else:
            logger.info("autosaved sheet %s", new_id or "(local)")
        if assigned and self._on_identifier is not None:
            self._on_identifier(assigned)
        if deferred is not None:
            deferred()

    def _write(self, owner_id: str | None, sheet: Sheet) -> str | None:
        if owner_id:
            try:
                return self._store.save(owner_id, sheet)
            except Exception as exc:
                raise PersistenceWriteError(f"remote save failed: {exc}", sheet_id=sheet.id) from exc
        try:
            self._cache.set_many(
                {
                    SOURCES_KEY: entries_to_list(sheet.entries),
                    MESSAGES_KEY: [m.to_dict() for m in sheet.messages],
                    TITLE_KEY: sheet.title,
                }
            )
        except Exception as exc:
            raise PersistenceWriteError(f"local cache write failed: {exc}") from exc
        return sheet.id

    # ---------- deletion ----------

    def delete(self, sheet_id: str) -> bool:
        """Explicit delete of one of the owner's remote sheets; the only path that destroys one."""
        owner_id = self.owner_id
        if not owner_id:
            self.notify("error", "Sign in to delete sheets")
            return False
        try:
            removed = self._store.delete(sheet_id, owner_id=owner_id)
        except Exception as exc:
            logger.warning("delete of %s failed: %s", sheet_id, exc)
            self.notify("error", "Failed to delete sheet")
            return False
        with self._lock:
            if sheet_id == self._sheet_id:
                self._cancel_timer_locked()
                self._sheet_id = None
                self._persisted = False
                self._dirty = False
        self.notify("info", "Sheet deleted")
        return removed

