from __future__ import annotations

import pytest


class _FakeCorpus:
    """In-memory stand-in for SefariaClient; records every call."""

    def __init__(self):
        self.texts: dict[str, dict] = {}
        self.versions: dict[tuple[str, str], object] = {}
        self.names: dict[str, dict] = {}
        self.hits: dict[str, list[dict]] = {}
        self.calls: list[tuple[str, str]] = []

    def get_text(self, ref):
        self.calls.append(("text", ref))
        return self.texts.get(ref)

    def get_text_version(self, ref, version_title, *, language="en"):
        self.calls.append(("version", f"{ref}|{version_title}"))
        return self.versions.get((ref, version_title))

    def complete_name(self, term, *, limit=None):
        self.calls.append(("name", term))
        return self.names.get(term, {})

    def search(self, query, *, size=None):
        self.calls.append(("search", query))
        return list(self.hits.get(query, []))


class _Handle:
    def __init__(self, delay, fn):
        self.delay = delay
        self.fn = fn
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class _ManualScheduler:
    """Timers only fire when the test says so."""

    def __init__(self):
        self.handles: list[_Handle] = []

    def call_later(self, delay, fn):
        h = _Handle(delay, fn)
        self.handles.append(h)
        return h

    @property
    def pending(self) -> list[_Handle]:
        return [h for h in self.handles if not h.cancelled]

    @property
    def delays(self) -> list[float]:
        return [h.delay for h in self.handles]

    def run_pending(self) -> int:
        ran = 0
        while True:
            live = self.pending
            if not live:
                return ran
            h = live[0]
            h.cancelled = True
            h.fn()
            ran += 1


@pytest.fixture
def corpus():
    return _FakeCorpus()


@pytest.fixture
def scheduler():
    return _ManualScheduler()


@pytest.fixture
def genesis_text():
    return {
        "ref": "Genesis 1:1",
        "he": "בְּרֵאשִׁית בָּרָא אֱלֹהִים",
        "text": "In the beginning God created the heaven and the earth.",
        "versionTitle": "The Holy Scriptures: A New Translation (JPS 1917)",
        "versions": [
            {"language": "en", "versionTitle": "The Holy Scriptures: A New Translation (JPS 1917)"},
            {"language": "he", "versionTitle": "Miqra according to the Masorah"},
        ],
    }
