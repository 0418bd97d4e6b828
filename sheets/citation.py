from __future__ import annotations

import difflib
import re
from dataclasses import dataclass

# Trailing chapter/verse/page expression: "1:1", "7:3", "64b:1-6", "1:1a", "3, 5".
_LOCATOR_RE = re.compile(
    r"[\s,:;.]*(?P<loc>\d+[ab]?(?:\s*[:.,\-–]\s*\d+[ab]?)*)\s*$",
    flags=re.IGNORECASE,
)
_HEAD_SPLIT_RE = re.compile(r"\s+on\s+|[,:]", flags=re.IGNORECASE)
_WS_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class Citation:
    raw: str
    title_term: str
    locator_suffix: str | None = None
    # Leading name before " on " / the first comma, e.g. the commentator in
    # "Rashi on Genesis 1:1". None when it equals title_term.
    head_term: str | None = None


def _clean(s: str) -> str:
    return _WS_RE.sub(" ", (s or "").strip())


def normalize_citation(raw: str) -> Citation:
    """
    Split a free-text citation into a title term and a locator suffix.

    Total: a string without a trailing locator comes back whole as the title term.
    """
    text = _clean(raw)
    title = text
    locator: str | None = None

    m = _LOCATOR_RE.search(text)
    if m:
        head = text[: m.start()].strip().rstrip(",:;.").strip()
        if head:
            title = head
            locator = _clean(m.group("loc"))

    head_term: str | None = None
    parts = _HEAD_SPLIT_RE.split(title, maxsplit=1)
    if len(parts) == 2:
        cand = parts[0].strip()
        if cand and cand != title:
            head_term = cand

    return Citation(raw=raw, title_term=title, locator_suffix=locator, head_term=head_term)


def join_citation(title: str, locator: str | None) -> str:
    title = _clean(title)
    if not locator:
        return title
    return f"{title} {_clean(locator)}"


def _similarity(a: str, b: str) -> float:
    return difflib.SequenceMatcher(None, (a or "").lower(), (b or "").lower()).ratio()


def respell_title(citation: Citation, canonical_title: str) -> str:
    """
    Put a canonical title from name completion in place of the user's spelling.

    When the canonical title corrects only the leading name ("Kessef Mishneh" for
    "Kosef Mishneh on Mishneh Torah, Gifts to the Poor"), the rest of the user's
    title term is kept after it.
    """
    canonical = _clean(canonical_title)
    term = citation.title_term
    head = citation.head_term
    if not canonical:
        return term
    if head and _similarity(canonical, head) > _similarity(canonical, term):
        return canonical + term[len(head):]
    return canonical


def rebuild_ref(citation: Citation, canonical_title: str) -> str:
    return join_citation(respell_title(citation, canonical_title), citation.locator_suffix)
