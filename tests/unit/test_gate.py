import pytest

from sheets.errors import DisambiguationPendingError, NoPendingDisambiguationError
from sheets.gate import DisambiguationGate
from sheets.models import DisambiguationRequest, Failure, ResolvedSource, TextSource
from sheets.resolver import ReferenceResolver


def _request(view_mode="english"):
    return DisambiguationRequest(
        original_ref="Radbaz on the Rambam",
        candidates=[TextSource(ref="Radbaz 1:1"), TextSource(ref="Radbaz 2:1")],
        pending_entry=TextSource(ref="Radbaz on the Rambam", view_mode=view_mode),
    )


def test_second_request_is_rejected_while_open(corpus):
    gate = DisambiguationGate(ReferenceResolver(corpus))
    first = _request()
    gate.open(first)

    with pytest.raises(DisambiguationPendingError):
        gate.open(_request())
    assert gate.request is first


def test_select_resolves_candidate_and_closes(corpus):
    corpus.texts["Radbaz 2:1"] = {"ref": "Radbaz 2:1", "he": "ב", "text": "two"}
    gate = DisambiguationGate(ReferenceResolver(corpus))
    gate.open(_request(view_mode="english"))

    result = gate.select(1)

    assert isinstance(result, ResolvedSource)
    assert result.ref == "Radbaz 2:1"
    assert result.source.view_mode == "english"
    assert not gate.is_open


def test_selected_candidate_that_fails_does_not_reopen(corpus):
    corpus.hits["Radbaz 1:1"] = [{"ref": "Something else 1:1", "en": "x"}]
    gate = DisambiguationGate(ReferenceResolver(corpus))
    gate.open(_request())

    result = gate.select(0)

    assert isinstance(result, Failure)
    assert not gate.is_open
    assert ("search", "Radbaz 1:1") not in corpus.calls


def test_select_out_of_range_keeps_gate_open(corpus):
    gate = DisambiguationGate(ReferenceResolver(corpus))
    gate.open(_request())

    with pytest.raises(IndexError):
        gate.select(5)
    assert gate.is_open


def test_cancel_returns_pending_entry(corpus):
    gate = DisambiguationGate(ReferenceResolver(corpus))
    req = _request()
    gate.open(req)

    assert gate.cancel() is req.pending_entry
    assert not gate.is_open
    with pytest.raises(NoPendingDisambiguationError):
        gate.cancel()
    with pytest.raises(NoPendingDisambiguationError):
        gate.select(0)
