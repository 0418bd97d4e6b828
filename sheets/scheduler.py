from __future__ import annotations

import threading
from typing import Callable, Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class ThreadScheduler:
    """Runs callbacks after a delay on daemon timer threads."""

    def call_later(self, delay: float, fn: Callable[[], None]) -> TimerHandle:
        t = threading.Timer(max(0.0, float(delay)), fn)
        t.daemon = True
        t.start()
        return t
