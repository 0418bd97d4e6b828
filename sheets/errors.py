from __future__ import annotations


class SheetError(Exception):
    """Base class for every error raised by the sheets package."""


class TransientFetchError(SheetError):
    """Network or decoding failure talking to the text corpus.

    Never leaves the resolver: it is logged and treated as "not found".
    """


class PersistenceWriteError(SheetError):
    """A durable write failed. The sheet stays dirty; nothing is retried automatically."""

    def __init__(self, message: str, *, sheet_id: str | None = None) -> None:
        super().__init__(message)
        self.sheet_id = sheet_id


class PersistenceLoadError(SheetError):
    """Hydration failed; the session falls back to the default sheet."""

    def __init__(self, message: str, *, sheet_id: str | None = None) -> None:
        super().__init__(message)
        self.sheet_id = sheet_id


class DisambiguationPendingError(SheetError):
    """Raised when a second disambiguation is started while one is open."""


class NoPendingDisambiguationError(SheetError):
    pass


class AssistantError(SheetError):
    pass


class SheetOwnershipError(SheetError):
    """A save or delete targeted a sheet id that belongs to another owner."""

    def __init__(self, message: str, *, sheet_id: str | None = None) -> None:
        super().__init__(message)
        self.sheet_id = sheet_id
