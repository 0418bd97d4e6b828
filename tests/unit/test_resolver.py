import re

import requests

from sheets.models import DisambiguationRequest, Failure, ResolvedSource, TextSource
from sheets.resolver import ReferenceResolver
from sheets.sefaria import SefariaClient

KOSEF = "Kosef Mishneh on Mishneh Torah, Gifts to the Poor 7:3"
KESSEF = "Kessef Mishneh on Mishneh Torah, Gifts to the Poor 7:3"


def test_direct_lookup_returns_canonical_ref(corpus, genesis_text):
    corpus.texts["Genesis 1:1"] = genesis_text
    result = ReferenceResolver(corpus).resolve("Genesis 1:1")

    assert isinstance(result, ResolvedSource)
    src = result.source
    assert src.ref == "Genesis 1:1"
    assert src.english_text.startswith("In the beginning")
    assert src.version_title == genesis_text["versionTitle"]
    # Only English versions are offered for switching.
    assert [v.version_title for v in src.available_versions] == [genesis_text["versionTitle"]]
    assert ("name", "Genesis") not in corpus.calls


def test_canonical_ref_from_endpoint_wins_over_input(corpus, genesis_text):
    corpus.texts["gen 1:1"] = genesis_text
    result = ReferenceResolver(corpus).resolve("gen 1:1")
    assert result.ref == "Genesis 1:1"


def test_resolving_canonical_ref_is_idempotent(corpus, genesis_text):
    corpus.texts["Genesis 1:1"] = genesis_text
    r = ReferenceResolver(corpus)
    first = r.resolve("Genesis 1:1")
    again = r.resolve(first.ref)
    assert again.ref == first.ref


def test_fuzzy_retry_respells_commentator(corpus):
    corpus.names["Kosef Mishneh on Mishneh Torah, Gifts to the Poor"] = {
        "completion_objects": [{"type": "Index", "key": "Kessef Mishneh"}]
    }
    corpus.texts[KESSEF] = {"ref": KESSEF, "he": "כסף משנה", "text": ""}

    result = ReferenceResolver(corpus).resolve(KOSEF)

    assert isinstance(result, ResolvedSource)
    assert re.search(r"Ke(s|ss)ef Mishneh", result.ref)
    assert "Gifts to the Poor 7:3" in result.ref


def test_fuzzy_retry_falls_back_to_head_term(corpus):
    corpus.names["Kosef Mishneh"] = {"completion_objects": [{"type": "Index", "key": "Kessef Mishneh"}]}
    corpus.texts[KESSEF] = {"ref": KESSEF, "he": "כסף משנה", "text": "Silver of the Mishneh"}

    result = ReferenceResolver(corpus).resolve(KOSEF)

    assert isinstance(result, ResolvedSource)
    assert result.ref == KESSEF
    assert ("name", "Kosef Mishneh on Mishneh Torah, Gifts to the Poor") in corpus.calls


def test_fuzzy_retry_happens_once(corpus):
    corpus.names["Foo"] = {"completion_objects": [{"type": "Index", "key": "Bar"}]}
    result = ReferenceResolver(corpus).resolve("Foo 1:1", allow_disambiguation=False)

    assert isinstance(result, Failure)
    assert [c for c in corpus.calls if c[0] == "text"] == [("text", "Foo 1:1"), ("text", "Bar 1:1")]


def test_english_version_fallback_takes_first_non_blank(corpus):
    corpus.texts["Zohar 1:1a"] = {
        "ref": "Zohar 1:1a",
        "he": ["בְּרֵאשִׁית"],
        "text": [],
        "versions": [
            {"language": "en", "versionTitle": "Empty"},
            {"language": "en", "versionTitle": "Sulam"},
            {"language": "en", "versionTitle": "Later"},
        ],
    }
    corpus.versions[("Zohar 1:1a", "Empty")] = ["", "  "]
    corpus.versions[("Zohar 1:1a", "Sulam")] = [["In the beginning"], ["of the King's authority"]]
    corpus.versions[("Zohar 1:1a", "Later")] = "never reached"

    result = ReferenceResolver(corpus).resolve("Zohar 1:1a")

    src = result.source
    assert src.english_text == ["In the beginning", "of the King's authority"]
    assert src.version_title == "Sulam"
    assert ("version", "Zohar 1:1a|Later") not in corpus.calls


def test_english_version_fallback_without_text_leaves_english_empty(corpus):
    corpus.texts["Zohar 2:1"] = {
        "ref": "Zohar 2:1",
        "he": "טקסט",
        "text": "",
        "versions": [{"language": "en", "versionTitle": "Sulam"}],
    }
    result = ReferenceResolver(corpus).resolve("Zohar 2:1")

    assert isinstance(result, ResolvedSource)
    assert result.source.english_text == ""
    assert result.source.hebrew_text == "טקסט"


def test_search_hits_become_disambiguation(corpus):
    citation = "Radbaz on Mishneh Torah, Gifts to the Poor 7:3"
    corpus.hits[citation] = [
        {"ref": "Radbaz on Mishneh Torah, Gifts to the Poor 7:3:1", "he": "א", "en": "one"},
        {"ref": "Radbaz on Mishneh Torah, Gifts to the Poor 7:3:2", "he": "ב", "en": "two"},
    ]
    pending = TextSource(ref=citation, view_mode="hebrew")

    result = ReferenceResolver(corpus).resolve(citation, pending_entry=pending)

    assert isinstance(result, DisambiguationRequest)
    assert result.original_ref == citation
    assert len(result.candidates) == 2
    assert result.pending_entry is pending


def test_nothing_found_is_failure(corpus):
    result = ReferenceResolver(corpus).resolve("Nonexistent Book 9:9")
    assert result == Failure(citation="Nonexistent Book 9:9")
    assert ReferenceResolver(corpus).resolve("   ") == Failure(citation="")


def test_network_failures_resolve_to_failure_without_raising():
    class _Down:
        def request(self, *a, **kw):
            raise requests.ConnectionError("offline")

    resolver = ReferenceResolver(SefariaClient("https://example.org", session=_Down()))
    assert isinstance(resolver.resolve("Genesis 1:1"), Failure)
    assert resolver.fetch_version("Genesis 1:1", "JPS") is None
