import requests

from sheets.sefaria import SefariaClient, completion_titles, parse_search_hits


class _FakeResponse:
    def __init__(self, status_code=200, payload=None, text=None):
        self.status_code = status_code
        self._payload = payload
        self.text = text if text is not None else ""

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


class _FakeSession:
    def __init__(self, responses=None, exc=None):
        self._responses = list(responses or [])
        self._exc = exc
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append({"method": method, "url": url, **kwargs})
        if self._exc is not None:
            raise self._exc
        return self._responses.pop(0)


def _client(session):
    return SefariaClient("https://example.org/", timeout_s=3, name_limit=5, search_size=4, session=session)


def test_get_text_builds_ref_url_without_context():
    sess = _FakeSession([_FakeResponse(payload={"ref": "Genesis 1:1", "he": "x", "text": "y"})])
    data = _client(sess).get_text("Genesis 1:1")

    assert data["ref"] == "Genesis 1:1"
    call = sess.calls[0]
    assert call["method"] == "GET"
    assert call["url"] == "https://example.org/api/texts/Genesis%201%3A1"
    assert call["params"] == {"context": 0}
    assert call["timeout"] == 3.0
    assert "User-Agent" in call["headers"]


def test_get_text_maps_errors_to_none():
    assert _client(_FakeSession([_FakeResponse(payload={"error": "Unknown ref"})])).get_text("Nope 1") is None
    assert _client(_FakeSession([_FakeResponse(status_code=500, payload={})])).get_text("Genesis 1:1") is None
    assert _client(_FakeSession([_FakeResponse(payload=None)])).get_text("Genesis 1:1") is None
    assert _client(_FakeSession(exc=requests.ConnectionError("down"))).get_text("Genesis 1:1") is None


def test_versioned_lookup_passes_language_and_title():
    sess = _FakeSession([_FakeResponse(payload={"text": ["a", "b"]})])
    body = _client(sess).get_text_version("Zohar 1:1a", "Sulam")

    assert body == ["a", "b"]
    assert sess.calls[0]["params"] == {"context": 0, "version": "en|Sulam"}


def test_complete_name_and_search_degrade_to_empty():
    down = _FakeSession(exc=requests.Timeout("slow"))
    c = _client(down)
    assert c.complete_name("Rashi") == {}
    assert c.search("Rashi") == []


def test_search_posts_query_with_size():
    sess = _FakeSession([_FakeResponse(payload=[{"ref": "A 1", "en": "x"}])])
    hits = _client(sess).search("charity")

    assert hits == [{"ref": "A 1", "he": "", "en": "x"}]
    assert sess.calls[0]["method"] == "POST"
    assert sess.calls[0]["url"] == "https://example.org/api/search-wrapper"
    assert sess.calls[0]["json"] == {"query": "charity", "type": "text", "size": 4}


def test_completion_titles_keeps_citable_types_in_order():
    data = {
        "completion_objects": [
            {"type": "Index", "key": "Kessef Mishneh"},
            {"type": "Person", "key": "Rambam"},
            {"type": "ref", "title": "Kessef Mishneh on Mishneh Torah"},
            {"type": "Index", "key": "Kessef Mishneh"},
        ]
    }
    assert completion_titles(data) == ["Kessef Mishneh", "Kessef Mishneh on Mishneh Torah"]
    assert completion_titles({}) == []


def test_parse_search_hits_reads_elasticsearch_shape_and_dedupes():
    data = {
        "hits": {
            "hits": [
                {"_source": {"ref": "Radbaz on Mishneh Torah 1:1", "lang": "en"}, "highlight": {"exact": ["one"]}},
                {"_source": {"ref": "Radbaz on Mishneh Torah 1:1", "lang": "he"}},
                {"_source": {"ref": "Radbaz on Mishneh Torah 2:1", "lang": "he", "exact": "שלום"}},
                {"_source": {}},
            ]
        }
    }
    hits = parse_search_hits(data)
    assert [h["ref"] for h in hits] == ["Radbaz on Mishneh Torah 1:1", "Radbaz on Mishneh Torah 2:1"]
    assert hits[0]["en"] == "one"
    assert hits[1]["he"] == "שלום"
