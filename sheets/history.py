from __future__ import annotations

from typing import Any

DEFAULT_LIMIT = 50


class EditHistory:
    """
    Bounded undo/redo log.
    - push() drops everything after the cursor (branch discard)
    - oldest state is evicted once the log exceeds `limit`
    - undo()/redo() at the boundaries are no-ops
    Values are stored as given; callers pass immutable snapshots.
    """

    def __init__(self, initial: Any = (), *, limit: int = DEFAULT_LIMIT) -> None:
        self._limit = max(1, int(limit))
        self._states: list[Any] = [initial]
        self._cursor = 0

    @property
    def current(self) -> Any:
        return self._states[self._cursor]

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def limit(self) -> int:
        return self._limit

    def __len__(self) -> int:
        return len(self._states)

    @property
    def can_undo(self) -> bool:
        return self._cursor > 0

    @property
    def can_redo(self) -> bool:
        return self._cursor < len(self._states) - 1

    def push(self, state: Any) -> Any:
        del self._states[self._cursor + 1:]
        self._states.append(state)
        if len(self._states) > self._limit:
            del self._states[0]
        self._cursor = len(self._states) - 1
        return state

    def undo(self) -> Any:
        if self.can_undo:
            self._cursor -= 1
        return self.current

    def redo(self) -> Any:
        if self.can_redo:
            self._cursor += 1
        return self.current

    def reset(self, state: Any = ()) -> None:
        self._states = [state]
        self._cursor = 0
