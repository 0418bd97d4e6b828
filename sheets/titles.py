from __future__ import annotations

import re

from sheets.models import DEFAULT_TITLE

_BAD_PREFIXES = ("sources", "texts", "find", "build", "create", "i'm giving", "i need")

_LEAD_RE = re.compile(
    r"^(find|get|show|give|list|create|make|build|generate|i'm giving|i need|preparing|assembling|"
    r"leading|designing|our congregation|speaking at|want to)",
    flags=re.IGNORECASE,
)
_FILLER_RE = re.compile(
    r"\b(me|a|an|the|texts?|sources?|quotes?|sheet|for|about|on|regarding|with|to|that|of)\b",
    flags=re.IGNORECASE,
)
_FORMAT_RE = re.compile(r"drash|sermon|lesson|class|study|session", flags=re.IGNORECASE)
_PUNCT_RE = re.compile(r"[?.,!-]")


def is_bad_title(title: str | None) -> bool:
    """Reject assistant titles that just echo the prompt."""
    t = (title or "").strip()
    if not t:
        return True
    low = t.lower()
    if len(t) > 40:
        return True
    if low.startswith(_BAD_PREFIXES):
        return True
    return "source sheet" in low


def fallback_title(user_text: str) -> str:
    s = _LEAD_RE.sub("", user_text or "")
    s = _FILLER_RE.sub("", s)
    s = _FORMAT_RE.sub("", s)
    s = _PUNCT_RE.sub("", s).strip()
    words = [w for w in s.split() if len(w) > 2][:4]
    topic = " ".join(w[:1].upper() + w[1:] for w in words)
    return topic if len(topic) > 3 else DEFAULT_TITLE
