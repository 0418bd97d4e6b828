from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union

from sheets.text_body import TextBody, is_blank_body, normalize_text_body

VIEW_MODES = ("bilingual", "hebrew", "english")

DEFAULT_TITLE = "New Source Sheet"
UNTITLED_TITLE = "Untitled Source Sheet"
WELCOME_MESSAGE_ID = "welcome"
WELCOME_TEXT = "Shalom! What kind of text sheet do you want to create together?"


@dataclass(frozen=True)
class VersionInfo:
    version_title: str
    language: str = "en"

    def to_dict(self) -> dict:
        return {"versionTitle": self.version_title, "language": self.language}

    @classmethod
    def from_dict(cls, data: dict) -> "VersionInfo":
        return cls(
            version_title=str(data.get("versionTitle") or ""),
            language=str(data.get("language") or "en"),
        )


def english_versions(raw: Any) -> list[VersionInfo]:
    out: list[VersionInfo] = []
    if not isinstance(raw, list):
        return out
    for v in raw:
        if not isinstance(v, dict):
            continue
        if str(v.get("language") or "") != "en":
            continue
        title = str(v.get("versionTitle") or "").strip()
        if title:
            out.append(VersionInfo(version_title=title, language="en"))
    return out


@dataclass(frozen=True)
class TextSource:
    ref: str
    hebrew_text: TextBody = ""
    english_text: TextBody = ""
    version_title: str | None = None
    available_versions: list[VersionInfo] = field(default_factory=list)
    view_mode: str = "bilingual"

    kind = "source"

    def is_empty(self) -> bool:
        return is_blank_body(self.hebrew_text) and is_blank_body(self.english_text)

    def to_dict(self) -> dict:
        return {
            "type": self.kind,
            "ref": self.ref,
            "hebrewText": self.hebrew_text,
            "englishText": self.english_text,
            "versionTitle": self.version_title,
            "availableVersions": [v.to_dict() for v in self.available_versions],
            "viewMode": self.view_mode,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TextSource":
        # Older sheets were saved with the corpus' own keys (he / en / versions).
        he = data.get("hebrewText", data.get("he"))
        en = data.get("englishText", data.get("en"))
        versions = data.get("availableVersions", data.get("versions")) or []
        view_mode = str(data.get("viewMode") or "bilingual")
        if view_mode not in VIEW_MODES:
            view_mode = "bilingual"
        return cls(
            ref=str(data.get("ref") or ""),
            hebrew_text=normalize_text_body(he),
            english_text=normalize_text_body(en),
            version_title=data.get("versionTitle") or None,
            available_versions=[VersionInfo.from_dict(v) for v in versions if isinstance(v, dict)],
            view_mode=view_mode,
        )


@dataclass(frozen=True)
class Note:
    body: str = ""
    title: str | None = None

    kind = "custom"

    def to_dict(self) -> dict:
        return {"type": self.kind, "title": self.title, "body": self.body}

    @classmethod
    def from_dict(cls, data: dict) -> "Note":
        return cls(body=str(data.get("body", data.get("en")) or ""), title=data.get("title") or None)


@dataclass(frozen=True)
class SectionHeader:
    label: str = ""

    kind = "header"

    def to_dict(self) -> dict:
        return {"type": self.kind, "label": self.label}

    @classmethod
    def from_dict(cls, data: dict) -> "SectionHeader":
        return cls(label=str(data.get("label", data.get("en")) or ""))


SheetEntry = Union[TextSource, Note, SectionHeader]

_ENTRY_TYPES: dict[str, type] = {
    TextSource.kind: TextSource,
    Note.kind: Note,
    SectionHeader.kind: SectionHeader,
}


def entry_from_dict(data: dict) -> SheetEntry:
    kind = str(data.get("type") or TextSource.kind)
    cls = _ENTRY_TYPES.get(kind)
    if cls is None:
        raise ValueError(f"unknown sheet entry type: {kind!r}")
    return cls.from_dict(data)


def entries_from_list(raw: Any) -> list[SheetEntry]:
    if not isinstance(raw, list):
        return []
    return [entry_from_dict(d) for d in raw if isinstance(d, dict)]


def entries_to_list(entries: list[SheetEntry]) -> list[dict]:
    return [e.to_dict() for e in entries]


@dataclass(frozen=True)
class ChatMessage:
    id: str
    role: str
    text: str
    suggested_sources: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "role": self.role,
            "text": self.text,
            "suggestedSources": list(self.suggested_sources),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ChatMessage":
        return cls(
            id=str(data.get("id") or ""),
            role=str(data.get("role") or "user"),
            text=str(data.get("text") or ""),
            suggested_sources=list(data.get("suggestedSources") or []),
        )

    @classmethod
    def welcome(cls) -> "ChatMessage":
        return cls(id=WELCOME_MESSAGE_ID, role="model", text=WELCOME_TEXT)


def default_messages() -> list[ChatMessage]:
    return [ChatMessage.welcome()]


def messages_from_list(raw: Any) -> list[ChatMessage]:
    if not isinstance(raw, list) or not raw:
        return default_messages()
    return [ChatMessage.from_dict(m) for m in raw if isinstance(m, dict)]


def has_real_content(entries: list[SheetEntry], messages: list[ChatMessage]) -> bool:
    """False for the untouched sheet: no entries and nothing but the welcome message."""
    if entries:
        return True
    for m in messages:
        if m.role == "user":
            return True
        if m.role == "model" and m.id != WELCOME_MESSAGE_ID:
            return True
    return False


@dataclass(frozen=True)
class GoogleDocLink:
    id: str
    url: str
    last_synced_at: float | None = None

    def to_dict(self) -> dict:
        return {"id": self.id, "url": self.url, "lastSyncedAt": self.last_synced_at}

    @classmethod
    def from_dict(cls, data: dict) -> "GoogleDocLink":
        return cls(
            id=str(data.get("id") or ""),
            url=str(data.get("url") or ""),
            last_synced_at=data.get("lastSyncedAt"),
        )


@dataclass
class Sheet:
    id: str | None = None
    title: str = DEFAULT_TITLE
    entries: list[SheetEntry] = field(default_factory=list)
    messages: list[ChatMessage] = field(default_factory=default_messages)
    updated_at: float | None = None
    google_doc_link: GoogleDocLink | None = None

    def has_real_content(self) -> bool:
        return has_real_content(self.entries, self.messages)

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "title": self.title,
            "sources": entries_to_list(self.entries),
            "messages": [m.to_dict() for m in self.messages],
            "updatedAt": self.updated_at,
        }
        if self.google_doc_link is not None:
            data["googleDocLink"] = self.google_doc_link.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Sheet":
        link = data.get("googleDocLink")
        return cls(
            id=data.get("id") or None,
            title=str(data.get("title") or UNTITLED_TITLE),
            entries=entries_from_list(data.get("sources")),
            messages=messages_from_list(data.get("messages")),
            updated_at=data.get("updatedAt"),
            google_doc_link=GoogleDocLink.from_dict(link) if isinstance(link, dict) else None,
        )


@dataclass(frozen=True)
class ResolvedSource:
    source: TextSource

    @property
    def ref(self) -> str:
        return self.source.ref


@dataclass(frozen=True)
class DisambiguationRequest:
    original_ref: str
    candidates: list[TextSource]
    pending_entry: SheetEntry

    def to_dict(self) -> dict:
        return {
            "originalRef": self.original_ref,
            "candidates": [c.to_dict() for c in self.candidates],
            "pendingEntry": self.pending_entry.to_dict(),
        }


@dataclass(frozen=True)
class Failure:
    citation: str
    reason: str = "not found"

    def to_dict(self) -> dict:
        return {"reason": self.reason, "citation": self.citation}


ResolveResult = Union[ResolvedSource, DisambiguationRequest, Failure]


def result_to_dict(result: ResolveResult) -> dict:
    if isinstance(result, ResolvedSource):
        return {"status": "resolved", "source": result.source.to_dict()}
    if isinstance(result, DisambiguationRequest):
        return {"status": "disambiguation", "request": result.to_dict()}
    return {"status": "failed", **result.to_dict()}
