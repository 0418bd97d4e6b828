from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import requests

from sheets.errors import TransientFetchError

logger = logging.getLogger(__name__)

USER_AGENT = "SourceSheets/1.0 (sheet builder)"

# Completion object types that point at citable texts.
CITABLE_TYPES = {"ref", "reference", "index"}


def _encode(segment: str) -> str:
    return quote((segment or "").strip(), safe="")


class SefariaClient:
    """
    Thin HTTP client for the corpus endpoints used by the resolver:
    - texts (direct lookup, versioned lookup)
    - name completion (fuzzy titles)
    - search (broad fallback for disambiguation)

    Public methods never raise for network/decoding problems; they log and
    return None / [] so callers can treat failures as "not found".
    """

    def __init__(
        self,
        base_url: str = "https://www.sefaria.org",
        *,
        timeout_s: float = 15.0,
        name_limit: int = 10,
        search_size: int = 8,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = (base_url or "").rstrip("/")
        self.timeout_s = float(timeout_s)
        self.name_limit = int(name_limit)
        self.search_size = int(search_size)
        self._http = session or requests.Session()

    def _request_json(self, method: str, url: str, **kwargs: Any) -> Any:
        headers = kwargs.pop("headers", None) or {}
        headers.setdefault("User-Agent", USER_AGENT)
        try:
            resp = self._http.request(method, url, headers=headers, timeout=self.timeout_s, **kwargs)
        except requests.RequestException as exc:
            raise TransientFetchError(f"{method} {url} failed: {exc}") from exc
        code = int(resp.status_code or 0)
        if code >= 400:
            raise TransientFetchError(f"{method} {url} returned HTTP {code}")
        try:
            return resp.json()
        except ValueError as exc:
            raise TransientFetchError(f"{method} {url} returned invalid JSON") from exc

    def get_text(self, ref: str) -> dict | None:
        url = f"{self.base_url}/api/texts/{_encode(ref)}"
        try:
            data = self._request_json("GET", url, params={"context": 0})
        except TransientFetchError as exc:
            logger.warning("text lookup failed for %r: %s", ref, exc)
            return None
        if not isinstance(data, dict):
            logger.warning("text lookup for %r returned %s", ref, type(data).__name__)
            return None
        if data.get("error"):
            logger.info("text lookup for %r: %s", ref, data.get("error"))
            return None
        return data

    def get_text_version(self, ref: str, version_title: str, *, language: str = "en") -> Any:
        url = f"{self.base_url}/api/texts/{_encode(ref)}"
        params = {"context": 0, "version": f"{language}|{version_title}"}
        try:
            data = self._request_json("GET", url, params=params)
        except TransientFetchError as exc:
            logger.warning("version %r of %r failed: %s", version_title, ref, exc)
            return None
        if not isinstance(data, dict) or data.get("error"):
            return None
        return data.get("text")

    def complete_name(self, term: str, *, limit: int | None = None) -> dict:
        url = f"{self.base_url}/api/name/{_encode(term)}"
        try:
            data = self._request_json("GET", url, params={"limit": int(limit or self.name_limit)})
        except TransientFetchError as exc:
            logger.warning("name completion failed for %r: %s", term, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def search(self, query: str, *, size: int | None = None) -> list[dict]:
        url = f"{self.base_url}/api/search-wrapper"
        body = {"query": query, "type": "text", "size": int(size or self.search_size)}
        try:
            data = self._request_json("POST", url, json=body)
        except TransientFetchError as exc:
            logger.warning("search failed for %r: %s", query, exc)
            return []
        return parse_search_hits(data)


def completion_titles(data: dict) -> list[str]:
    """Canonical titles of citable completion objects, in the order returned."""
    out: list[str] = []
    objs = data.get("completion_objects") if isinstance(data, dict) else None
    if not isinstance(objs, list):
        return out
    for obj in objs:
        if not isinstance(obj, dict):
            continue
        kind = str(obj.get("type") or "").strip().lower()
        key = str(obj.get("key") or obj.get("title") or "").strip()
        if kind in CITABLE_TYPES and key and key not in out:
            out.append(key)
    return out


def _first_highlight(hit: dict) -> str:
    hl = hit.get("highlight")
    if isinstance(hl, dict):
        for frags in hl.values():
            if isinstance(frags, list) and frags:
                return " ... ".join(str(f) for f in frags if f)
    return ""


def parse_search_hits(data: Any) -> list[dict]:
    """
    Normalize a search response into [{ref, he, en}], de-duplicated by ref.

    Accepts either a plain candidate list or an Elasticsearch-style payload.
    """
    raw: list[dict] = []
    if isinstance(data, list):
        raw = [d for d in data if isinstance(d, dict)]
    elif isinstance(data, dict):
        hits = data.get("hits")
        if isinstance(hits, dict):
            hits = hits.get("hits")
        if isinstance(hits, list):
            for h in hits:
                if not isinstance(h, dict):
                    continue
                src = h.get("_source") if isinstance(h.get("_source"), dict) else {}
                text = _first_highlight(h) or str(src.get("exact") or src.get("naive_lemmatizer") or "")
                lang = str(src.get("lang") or "en")
                item = {"ref": src.get("ref") or h.get("ref") or ""}
                item["he" if lang == "he" else "en"] = text
                raw.append(item)

    out: list[dict] = []
    seen: set[str] = set()
    for item in raw:
        ref = str(item.get("ref") or "").strip()
        if not ref or ref in seen:
            continue
        seen.add(ref)
        out.append({"ref": ref, "he": item.get("he") or "", "en": item.get("en") or ""})
    return out
