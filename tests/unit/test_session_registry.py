import pytest

from sheets import session_registry


class _StubSession:
    def __init__(self, sid):
        self.id = sid
        self.closed = 0

    def close(self):
        self.closed += 1


@pytest.fixture
def clock(monkeypatch):
    now = [1000.0]
    monkeypatch.setattr(session_registry, "_now", lambda: now[0])
    yield now
    session_registry.close_all()


def test_idle_sessions_are_closed_and_dropped(clock):
    idle, busy = _StubSession("idle"), _StubSession("busy")
    session_registry.register(idle)
    session_registry.register(busy)

    clock[0] += 50
    assert session_registry.get_session("busy") is busy
    clock[0] += 20

    assert session_registry.evict_idle(60.0) == 1
    assert idle.closed == 1
    assert busy.closed == 0
    assert session_registry.get_session("idle") is None
    assert session_registry.session_ids() == ["busy"]


def test_evict_idle_leaves_fresh_sessions(clock):
    s = _StubSession("fresh")
    session_registry.register(s)

    assert session_registry.evict_idle(60.0) == 0
    assert session_registry.session_ids() == ["fresh"]


def test_close_session_forgets_last_seen(clock):
    s = _StubSession("gone")
    session_registry.register(s)
    assert session_registry.close_session("gone")
    clock[0] += 1000

    assert session_registry.evict_idle(1.0) == 0
    assert s.closed == 1
    assert not session_registry.close_session("gone")
