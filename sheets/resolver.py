from __future__ import annotations

import logging
from dataclasses import replace

from sheets.citation import normalize_citation, rebuild_ref
from sheets.models import (
    DisambiguationRequest,
    Failure,
    ResolvedSource,
    ResolveResult,
    SheetEntry,
    TextSource,
    english_versions,
)
from sheets.sefaria import SefariaClient, completion_titles
from sheets.text_body import TextBody, is_blank_body, normalize_text_body

logger = logging.getLogger(__name__)


class ReferenceResolver:
    """
    Turn a user citation into verified bilingual text.

    Tiers, in order: direct lookup, one fuzzy name-completion retry, broad
    search (surfaced as a DisambiguationRequest), then Failure. Nothing raises
    past resolve(); network errors count as "not found".
    """

    def __init__(self, client: SefariaClient) -> None:
        self.client = client

    def fetch_version(self, canonical_ref: str, version_title: str) -> TextBody | None:
        try:
            raw = self.client.get_text_version(canonical_ref, version_title)
        except Exception as exc:
            logger.warning("version fetch %r / %r raised: %s", canonical_ref, version_title, exc)
            return None
        if raw is None:
            return None
        return normalize_text_body(raw)

    def lookup(self, ref: str) -> TextSource | None:
        """Direct lookup with the English-version fallback. None when nothing usable came back."""
        data = self.client.get_text(ref)
        if not data:
            return None

        hebrew = normalize_text_body(data.get("he"))
        english = normalize_text_body(data.get("text"))
        version_title = data.get("versionTitle") or None
        versions = english_versions(data.get("versions"))
        canonical = str(data.get("ref") or ref).strip() or ref

        if is_blank_body(english) and versions:
            logger.info("default English empty for %s; trying %d versions", canonical, len(versions))
            for v in versions:
                body = self.fetch_version(canonical, v.version_title)
                if body is not None and not is_blank_body(body):
                    english = body
                    version_title = v.version_title
                    break
            else:
                logger.info("no English version of %s has text", canonical)

        source = TextSource(
            ref=canonical,
            hebrew_text=hebrew,
            english_text=english,
            version_title=version_title,
            available_versions=versions,
        )
        if source.is_empty():
            return None
        return source

    def _fuzzy_ref(self, citation: str) -> str | None:
        c = normalize_citation(citation)
        terms = [c.title_term]
        if c.head_term:
            terms.append(c.head_term)
        for term in terms:
            data = self.client.complete_name(term)
            if data.get("is_ref") and data.get("ref") and term == c.title_term:
                # The endpoint already recognised the whole title as a ref.
                return rebuild_ref(c, str(data["ref"]))
            titles = completion_titles(data)
            if titles:
                return rebuild_ref(c, titles[0])
        return None

    def _search_candidates(self, citation: str) -> list[TextSource]:
        out: list[TextSource] = []
        for hit in self.client.search(citation):
            out.append(
                TextSource(
                    ref=hit["ref"],
                    hebrew_text=normalize_text_body(hit.get("he")),
                    english_text=normalize_text_body(hit.get("en")),
                )
            )
        return out

    def resolve(
        self,
        citation: str,
        *,
        pending_entry: SheetEntry | None = None,
        allow_disambiguation: bool = True,
    ) -> ResolveResult:
        citation = (citation or "").strip()
        if not citation:
            return Failure(citation=citation)

        source = self.lookup(citation)
        if source is not None:
            return ResolvedSource(source)

        fuzzy = self._fuzzy_ref(citation)
        if fuzzy and fuzzy != citation:
            logger.info("fuzzy retry: %r -> %r", citation, fuzzy)
            source = self.lookup(fuzzy)
            if source is not None:
                return ResolvedSource(source)

        if allow_disambiguation:
            candidates = self._search_candidates(citation)
            if candidates:
                logger.info("%d search candidates for %r", len(candidates), citation)
                pending = pending_entry if pending_entry is not None else TextSource(ref=citation)
                return DisambiguationRequest(
                    original_ref=citation,
                    candidates=candidates,
                    pending_entry=pending,
                )

        logger.info("could not resolve %r", citation)
        return Failure(citation=citation)


def apply_pending(resolved: TextSource, pending: SheetEntry | None) -> TextSource:
    """Carry display settings from the placeholder entry onto the resolved text."""
    if isinstance(pending, TextSource):
        return replace(resolved, view_mode=pending.view_mode)
    return resolved
