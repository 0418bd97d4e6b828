from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any

import requests

from sheets.errors import AssistantError
from sheets.models import ChatMessage, Note, SectionHeader, SheetEntry, TextSource
from sheets.text_body import snippet

logger = logging.getLogger(__name__)

HISTORY_WINDOW = 10
APOLOGY_TEXT = "I'm having trouble connecting right now. Please try again."

_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", flags=re.DOTALL | re.IGNORECASE)


@dataclass
class AssistantReply:
    content: str
    suggested_sources: list[dict] = field(default_factory=list)
    suggested_title: str | None = None


def format_sheet_context(entries: list[SheetEntry]) -> str:
    """Markdown outline of the sheet for the assistant: sections, refs with a snippet, notes."""
    if not entries:
        return "The user has an empty source sheet."

    lines = ["## Current Sheet Structure", ""]
    section = 0
    for i, e in enumerate(entries):
        if isinstance(e, SectionHeader):
            section += 1
            lines.append("")
            lines.append(f"### Section {section}: {e.label or '(Untitled Section)'}")
        elif isinstance(e, Note):
            lines.append(f"> Note: {e.body}")
        elif isinstance(e, TextSource):
            lines.append(f"{i + 1}. **{e.ref}**")
            text = snippet(e.english_text, max_len=150)
            if text:
                lines.append(f'   "{text}"')
    return "\n".join(lines) + "\n"


def build_history(messages: list[ChatMessage]) -> list[dict]:
    # Last few non-empty turns; the conversation may not open with a model turn.
    recent = [m for m in messages[-HISTORY_WINDOW:] if (m.text or "").strip()]
    while recent and recent[0].role == "model":
        recent.pop(0)
    return [{"role": m.role, "parts": [{"text": m.text}]} for m in recent]


def parse_reply(text: str) -> AssistantReply:
    raw = (text or "").strip()
    m = _FENCE_RE.match(raw)
    body = m.group(1) if m else raw
    data: Any = None
    try:
        data = json.loads(body)
    except ValueError:
        # Models sometimes wrap the JSON in prose; try the outermost object.
        start, end = body.find("{"), body.rfind("}")
        if 0 <= start < end:
            try:
                data = json.loads(body[start : end + 1])
            except ValueError:
                data = None
    if not isinstance(data, dict):
        return AssistantReply(content=raw)

    sources = []
    for s in data.get("suggested_sources") or []:
        if isinstance(s, dict) and str(s.get("ref") or "").strip():
            sources.append({"ref": str(s["ref"]).strip(), "summary": str(s.get("summary") or "")})
    title = data.get("suggested_title")
    return AssistantReply(
        content=str(data.get("content") or data.get("text") or ""),
        suggested_sources=sources,
        suggested_title=str(title).strip() if title else None,
    )


class AssistantClient:
    def __init__(self, base_url: str, *, timeout_s: float = 60.0, session: requests.Session | None = None) -> None:
        self.base_url = (base_url or "").rstrip("/")
        self.timeout_s = float(timeout_s)
        self._http = session or requests.Session()

    def send(self, message: str, history: list[ChatMessage], entries: list[SheetEntry]) -> AssistantReply:
        payload = {
            "message": message,
            "history": build_history(history),
            "context": format_sheet_context(entries),
        }
        try:
            resp = self._http.post(f"{self.base_url}/chat", json=payload, timeout=self.timeout_s)
        except requests.RequestException as exc:
            raise AssistantError(f"assistant request failed: {exc}") from exc
        if int(resp.status_code or 0) >= 400:
            raise AssistantError(f"assistant returned HTTP {resp.status_code}: {resp.text[:200]}")
        return parse_reply(resp.text)
