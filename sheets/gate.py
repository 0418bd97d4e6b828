from __future__ import annotations

import logging
import threading

from sheets.errors import DisambiguationPendingError, NoPendingDisambiguationError
from sheets.models import DisambiguationRequest, ResolvedSource, ResolveResult, SheetEntry, TextSource
from sheets.resolver import ReferenceResolver, apply_pending

logger = logging.getLogger(__name__)


class DisambiguationGate:
    """
    Closed / Open state machine around one pending DisambiguationRequest.

    A second request while Open is rejected. Selecting a candidate re-runs the
    resolver once on the candidate ref; that nested run may not reopen the gate.
    """

    def __init__(self, resolver: ReferenceResolver) -> None:
        self._resolver = resolver
        self._lock = threading.Lock()
        self._request: DisambiguationRequest | None = None

    @property
    def is_open(self) -> bool:
        with self._lock:
            return self._request is not None

    @property
    def request(self) -> DisambiguationRequest | None:
        with self._lock:
            return self._request

    def open(self, request: DisambiguationRequest) -> None:
        with self._lock:
            if self._request is not None:
                raise DisambiguationPendingError(
                    f"disambiguation for {self._request.original_ref!r} is still open"
                )
            self._request = request

    def _take(self) -> DisambiguationRequest:
        with self._lock:
            req = self._request
            if req is None:
                raise NoPendingDisambiguationError("no disambiguation is open")
            self._request = None
            return req

    def select(self, choice: int | str | TextSource) -> ResolveResult:
        req = self.request
        if req is None:
            raise NoPendingDisambiguationError("no disambiguation is open")
        if isinstance(choice, TextSource):
            ref = choice.ref
        elif isinstance(choice, int):
            if not 0 <= choice < len(req.candidates):
                raise IndexError(f"candidate {choice} out of range (0..{len(req.candidates) - 1})")
            ref = req.candidates[choice].ref
        else:
            ref = str(choice)
        req = self._take()

        result = self._resolver.resolve(
            ref,
            pending_entry=req.pending_entry,
            allow_disambiguation=False,
        )
        if isinstance(result, ResolvedSource):
            return ResolvedSource(apply_pending(result.source, req.pending_entry))
        logger.info("selected candidate %r did not resolve", ref)
        return result

    def cancel(self) -> SheetEntry:
        req = self._take()
        return req.pending_entry
