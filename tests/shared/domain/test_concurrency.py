import threading
import time

import pytest
from shared.concurrency import KeyedLock, SingleFlight


class TestKeyedLock:
    def test_serializes_same_key(self):
        lock = KeyedLock()
        active = []
        overlaps = []

        def work():
            with lock.hold("bag-1"):
                active.append(1)
                if len(active) > 1:
                    overlaps.append(True)
                time.sleep(0.01)
                active.pop()

        threads = [threading.Thread(target=work) for _ in range(5)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(5)

        assert overlaps == []

    def test_different_keys_are_independent(self):
        lock = KeyedLock()
        with lock.hold("a"):
            acquired = threading.Event()

            def other():
                with lock.hold("b"):
                    acquired.set()

            thread = threading.Thread(target=other)
            thread.start()
            assert acquired.wait(2)
            thread.join(2)

    def test_locks_are_released_when_unused(self):
        lock = KeyedLock()
        with lock.hold("a"):
            assert len(lock) == 1
        assert len(lock) == 0

    def test_released_on_error(self):
        lock = KeyedLock()
        with pytest.raises(RuntimeError):
            with lock.hold("a"):
                raise RuntimeError("boom")
        with lock.hold("a"):
            pass


class TestSingleFlight:
    def test_returns_result(self):
        assert SingleFlight().do("k", lambda: 42) == 42

    def test_followers_share_leader_result(self):
        flight = SingleFlight()
        release = threading.Event()
        calls = []
        results = []

        def slow():
            calls.append(1)
            release.wait(5)
            return "rate"

        def run():
            results.append(flight.do("USD_NGN", slow))

        threads = [threading.Thread(target=run) for _ in range(4)]
        for thread in threads:
            thread.start()
        while not flight.in_flight("USD_NGN"):
            time.sleep(0.01)
        time.sleep(0.1)
        release.set()
        for thread in threads:
            thread.join(5)

        assert calls == [1]
        assert results == ["rate"] * 4
        assert not flight.in_flight("USD_NGN")

    def test_error_propagates_and_clears(self):
        flight = SingleFlight()

        def fail():
            raise ValueError("nope")

        with pytest.raises(ValueError):
            flight.do("k", fail)
        assert not flight.in_flight("k")
        assert flight.do("k", lambda: 1) == 1
