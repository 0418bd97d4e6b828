from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import replace
from typing import Any, Callable

from sheets.assistant import APOLOGY_TEXT, AssistantClient, AssistantReply
from sheets.errors import AssistantError, DisambiguationPendingError
from sheets.gate import DisambiguationGate
from sheets.history import DEFAULT_LIMIT, EditHistory
from sheets.local_cache import LocalCache
from sheets.models import (
    DEFAULT_TITLE,
    VIEW_MODES,
    ChatMessage,
    DisambiguationRequest,
    GoogleDocLink,
    Note,
    ResolvedSource,
    ResolveResult,
    SectionHeader,
    Sheet,
    SheetEntry,
    TextSource,
    default_messages,
)
from sheets.persistence import DEFAULT_DEBOUNCE_S, PersistenceCoordinator
from sheets.resolver import ReferenceResolver, apply_pending
from sheets.sheet_store import SheetStore
from sheets.text_body import is_blank_body
from sheets.titles import fallback_title, is_bad_title

logger = logging.getLogger(__name__)


def _message_id() -> str:
    return uuid.uuid4().hex[:12]


class EditSession:
    """
    One user's live editing of one sheet.

    Entries live in the undo/redo history; every mutation pushes history and
    hands the new snapshot to the persistence coordinator in the same call.
    """

    def __init__(
        self,
        *,
        resolver: ReferenceResolver,
        store: SheetStore,
        cache: LocalCache,
        assistant: AssistantClient | None = None,
        scheduler: Any = None,
        debounce_s: float = DEFAULT_DEBOUNCE_S,
        history_limit: int = DEFAULT_LIMIT,
        on_identifier: Callable[[str], None] | None = None,
        session_id: str | None = None,
        guest_id: str | None = None,
    ) -> None:
        self.id = session_id or uuid.uuid4().hex
        # Names the guest whose local cache backs this session.
        self.guest_id = guest_id
        self._lock = threading.RLock()
        self._resolver = resolver
        self._assistant = assistant
        self.gate = DisambiguationGate(resolver)
        self.history = EditHistory((), limit=history_limit)
        self._title = DEFAULT_TITLE
        self._messages: list[ChatMessage] = default_messages()
        self._google_doc_link: GoogleDocLink | None = None
        self.coordinator = PersistenceCoordinator(
            store=store,
            cache=cache,
            hydrate=self._hydrate,
            scheduler=scheduler,
            debounce_s=debounce_s,
            on_identifier=on_identifier,
        )

    # ---------- state ----------

    @property
    def entries(self) -> list[SheetEntry]:
        with self._lock:
            return list(self.history.current)

    @property
    def title(self) -> str:
        with self._lock:
            return self._title

    @property
    def messages(self) -> list[ChatMessage]:
        with self._lock:
            return list(self._messages)

    def to_sheet(self) -> Sheet:
        with self._lock:
            return Sheet(
                id=self.coordinator.sheet_id,
                title=self._title,
                entries=list(self.history.current),
                messages=list(self._messages),
                google_doc_link=self._google_doc_link,
            )

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            req = self.gate.request
            return {
                "session_id": self.id,
                "guest_id": self.guest_id,
                "sheet": self.to_sheet().to_dict(),
                "can_undo": self.history.can_undo,
                "can_redo": self.history.can_redo,
                "history_size": len(self.history),
                "disambiguation": req.to_dict() if req is not None else None,
                "persistence": self.coordinator.snapshot(),
            }

    def _hydrate(self, sheet: Sheet) -> None:
        with self._lock:
            self._title = sheet.title or DEFAULT_TITLE
            self._messages = list(sheet.messages) or default_messages()
            self._google_doc_link = sheet.google_doc_link
            self.history.reset(tuple(sheet.entries))

    def _changed(self) -> None:
        self.coordinator.mark_changed(self.to_sheet())

    def _commit(self, entries: list[SheetEntry]) -> None:
        with self._lock:
            self.history.push(tuple(entries))
            self._changed()

    # ---------- lifecycle ----------

    def mount(self, sheet_id: str | None = None, *, owner_id: str | None = None, is_new: bool = False) -> bool:
        return self.coordinator.load(sheet_id, owner_id=owner_id, is_new=is_new)

    def load(self, sheet_id: str) -> bool:
        return self.coordinator.load(sheet_id, owner_id=self.coordinator.owner_id)

    def new_sheet(self, sheet_id: str | None = None) -> bool:
        if self.gate.is_open:
            self.gate.cancel()
        return self.coordinator.start_new(sheet_id, owner_id=self.coordinator.owner_id)

    def delete_sheet(self, sheet_id: str) -> bool:
        return self.coordinator.delete(sheet_id)

    def close(self) -> None:
        self.coordinator.flush()
        self.coordinator.close()

    # ---------- sources ----------

    def add_source(self, citation: str, *, view_mode: str = "bilingual") -> ResolveResult:
        """
        Resolve `citation` and append it. An inconclusive lookup opens the
        disambiguation gate instead; only one may be open at a time.
        """
        if view_mode not in VIEW_MODES:
            raise ValueError(f"unknown view mode {view_mode!r}")
        if self.gate.is_open:
            raise DisambiguationPendingError("resolve the open disambiguation before adding another source")

        pending = TextSource(ref=(citation or "").strip(), view_mode=view_mode)
        result = self._resolver.resolve(citation, pending_entry=pending)

        if isinstance(result, ResolvedSource):
            source = apply_pending(result.source, pending)
            with self._lock:
                self._commit([*self.history.current, source])
            return ResolvedSource(source)
        if isinstance(result, DisambiguationRequest):
            self.gate.open(result)
            return result
        self.coordinator.notify("error", f"Could not fetch text for {citation}")
        return result

    def select_candidate(self, choice: int | str | TextSource) -> ResolveResult:
        result = self.gate.select(choice)
        if isinstance(result, ResolvedSource):
            with self._lock:
                self._commit([*self.history.current, result.source])
        else:
            self.coordinator.notify("error", f"Could not fetch text for {getattr(result, 'citation', choice)}")
        return result

    def cancel_disambiguation(self) -> SheetEntry:
        return self.gate.cancel()

    def add_entry(self, entry: SheetEntry) -> int:
        if isinstance(entry, TextSource) and entry.is_empty():
            raise ValueError(f"source {entry.ref!r} has no text")
        with self._lock:
            entries = [*self.history.current, entry]
            self._commit(entries)
            return len(entries) - 1

    def add_note(self, body: str, title: str | None = None) -> int:
        return self.add_entry(Note(body=body or "", title=title or None))

    def add_header(self, label: str) -> int:
        return self.add_entry(SectionHeader(label=label or ""))

    def _check_index(self, entries: list[SheetEntry], index: int) -> None:
        if not 0 <= index < len(entries):
            raise IndexError(f"entry {index} out of range (sheet has {len(entries)})")

    def remove_entry(self, index: int) -> SheetEntry:
        with self._lock:
            entries = list(self.history.current)
            self._check_index(entries, index)
            removed = entries.pop(index)
            self._commit(entries)
            return removed

    def update_entry(self, index: int, **changes: Any) -> SheetEntry:
        with self._lock:
            entries = list(self.history.current)
            self._check_index(entries, index)
            updated = replace(entries[index], **changes)
            if isinstance(updated, TextSource):
                if updated.view_mode not in VIEW_MODES:
                    raise ValueError(f"unknown view mode {updated.view_mode!r}")
                if updated.is_empty():
                    raise ValueError(f"source {updated.ref!r} would have no text")
            entries[index] = updated
            self._commit(entries)
            return updated

    def reorder(self, order: list[int]) -> None:
        with self._lock:
            entries = list(self.history.current)
            if sorted(order) != list(range(len(entries))):
                raise ValueError("order must be a permutation of the current entry indexes")
            self._commit([entries[i] for i in order])

    def clear(self) -> None:
        self._commit([])

    def change_version(self, index: int, version_title: str) -> bool:
        with self._lock:
            entries = list(self.history.current)
            self._check_index(entries, index)
            entry = entries[index]
        if not isinstance(entry, TextSource):
            raise ValueError("only text sources have versions")

        body = self._resolver.fetch_version(entry.ref, version_title)
        if body is None or is_blank_body(body):
            self.coordinator.notify("error", f"Version {version_title!r} of {entry.ref} has no text")
            return False
        with self._lock:
            entries = list(self.history.current)
            # The entry may have moved while the version was fetched.
            try:
                pos = entries.index(entry)
            except ValueError:
                return False
            entries[pos] = replace(entry, english_text=body, version_title=version_title)
            self._commit(entries)
        return True

    # ---------- history ----------

    @property
    def can_undo(self) -> bool:
        with self._lock:
            return self.history.can_undo

    @property
    def can_redo(self) -> bool:
        with self._lock:
            return self.history.can_redo

    def undo(self) -> bool:
        with self._lock:
            if not self.history.can_undo:
                return False
            self.history.undo()
            self._changed()
            return True

    def redo(self) -> bool:
        with self._lock:
            if not self.history.can_redo:
                return False
            self.history.redo()
            self._changed()
            return True

    # ---------- title & chat ----------

    def set_title(self, title: str) -> None:
        with self._lock:
            self._title = (title or "").strip() or DEFAULT_TITLE
            self._changed()

    def send_message(self, text: str) -> ChatMessage:
        text = (text or "").strip()
        if not text:
            raise ValueError("empty message")
        with self._lock:
            first = not any(m.role == "user" for m in self._messages)
            prior = list(self._messages)
            self._messages.append(ChatMessage(id=_message_id(), role="user", text=text))
            self._changed()
            entries = list(self.history.current)

        reply: AssistantReply | None = None
        if self._assistant is not None:
            try:
                reply = self._assistant.send(text, prior, entries)
            except AssistantError as exc:
                logger.warning("assistant call failed: %s", exc)
        else:
            logger.warning("assistant is not configured")

        if reply is None:
            bot = ChatMessage(id=_message_id(), role="model", text=APOLOGY_TEXT)
        else:
            bot = ChatMessage(
                id=_message_id(),
                role="model",
                text=reply.content,
                suggested_sources=list(reply.suggested_sources),
            )

        with self._lock:
            self._messages.append(bot)
            if self._title == DEFAULT_TITLE:
                suggested = reply.suggested_title if reply is not None else None
                if suggested and not is_bad_title(suggested):
                    self._title = suggested
                elif first:
                    self._title = fallback_title(text)
            self._changed()
        return bot
