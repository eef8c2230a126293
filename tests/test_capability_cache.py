"""
tests/test_capability_cache.py
Single-flight memo for the decrypting RPC probe.
"""

import threading

from core.capability_cache import CapabilityCache, CapabilityState


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class TestCapabilityCache:
    def test_probe_runs_once_and_is_memoized(self):
        calls = []
        cache = CapabilityCache("rpc")

        def probe():
            calls.append(1)
            return True

        assert cache.get(probe) is True
        assert cache.get(probe) is True
        assert len(calls) == 1
        assert cache.state == CapabilityState.AVAILABLE

    def test_failing_probe_is_memoized_as_unavailable(self):
        cache = CapabilityCache("rpc")

        def probe():
            raise RuntimeError("boom")

        assert cache.get(probe) is False
        assert cache.state == CapabilityState.UNAVAILABLE

    def test_reset_forces_new_probe(self):
        cache = CapabilityCache("rpc")
        assert cache.get(lambda: False) is False
        cache.reset()
        assert cache.state == CapabilityState.UNKNOWN
        assert cache.get(lambda: True) is True

    def test_answer_expires_after_ttl(self):
        clock = FakeClock()
        cache = CapabilityCache("rpc", ttl_seconds=60, clock=clock)
        assert cache.get(lambda: False) is False

        clock.now = 59
        assert cache.get(lambda: True) is False

        clock.now = 60
        assert cache.get(lambda: True) is True

    def test_set_records_answer(self):
        cache = CapabilityCache("rpc")
        cache.set(True)
        assert cache.get(lambda: False) is True

    def test_concurrent_callers_share_one_probe(self):
        cache = CapabilityCache("rpc")
        release = threading.Event()
        started = threading.Event()
        calls = []
        results = []

        def probe():
            calls.append(1)
            started.set()
            release.wait(timeout=5)
            return True

        def worker():
            results.append(cache.get(probe))

        first = threading.Thread(target=worker)
        first.start()
        assert started.wait(timeout=5)

        others = [threading.Thread(target=worker) for _ in range(5)]
        for thread in others:
            thread.start()

        release.set()
        for thread in [first] + others:
            thread.join(timeout=5)

        assert len(calls) == 1
        assert results == [True] * 6

    def test_reset_while_check_in_flight_starts_fresh(self):
        cache = CapabilityCache("rpc")
        release = threading.Event()
        started = threading.Event()
        results = {}

        def slow_check():
            started.set()
            release.wait(timeout=5)
            return False

        def stale():
            results["stale"] = cache.get(slow_check)

        def waiter():
            results["waiter"] = cache.get(lambda: True)

        first = threading.Thread(target=stale)
        first.start()
        assert started.wait(timeout=5)

        second = threading.Thread(target=waiter)
        second.start()

        cache.reset()
        assert cache.get(lambda: True) is True

        release.set()
        first.join(timeout=5)
        second.join(timeout=5)

        assert results == {"stale": False, "waiter": True}
        assert cache.state == CapabilityState.AVAILABLE
        assert cache.get(lambda: False) is True
