from backend.debounce import Debouncer


def test_rapid_touches_are_coalesced(clock):
    calls = []
    debouncer = Debouncer(clock, 1.0, lambda keys: calls.append(keys))
    debouncer.touch(1)
    clock.advance(0.5)
    debouncer.touch(2)
    debouncer.touch(1)
    clock.advance(0.6)
    assert calls == []
    clock.advance(0.5)
    assert calls == [[1, 2]]
    assert debouncer.pending == []


def test_flush_runs_immediately_and_returns_result(clock):
    debouncer = Debouncer(clock, 1.0, lambda keys: len(keys))
    assert debouncer.flush() is None
    debouncer.touch("a")
    assert debouncer.flush() == 1
    clock.advance(5)
    assert debouncer.flush() is None


def test_cancel_drops_pending_keys(clock):
    calls = []
    debouncer = Debouncer(clock, 1.0, calls.append)
    debouncer.touch(1)
    debouncer.cancel()
    clock.advance(2)
    assert calls == []
