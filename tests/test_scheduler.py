"""
Tests for chunked bounded-parallel scheduling.
"""

import threading
import time

import pytest

from photogallery.processing.scheduler import BatchScheduler


class Recorder:
    """Work function that logs start/end events and concurrency."""

    def __init__(self, delay=0.02, fail_on=()):
        self.delay = delay
        self.fail_on = set(fail_on)
        self.events = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    def __call__(self, item):
        with self._lock:
            self.events.append(('start', item))
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            # Later items finish first so completion order differs from input order
            time.sleep(self.delay * (1 + (10 - item) % 4))
            if item in self.fail_on:
                raise RuntimeError(f"item {item} failed")
            return item * 10
        finally:
            with self._lock:
                self.in_flight -= 1
                self.events.append(('end', item))


class TestBatchScheduler:
    """Test BatchScheduler.run()."""

    def test_results_in_input_order(self):
        results = BatchScheduler(concurrency=4).run(list(range(10)), Recorder())
        assert results == [i * 10 for i in range(10)]

    def test_never_exceeds_concurrency(self):
        recorder = Recorder()
        BatchScheduler(concurrency=4).run(list(range(10)), recorder)
        assert 1 <= recorder.max_in_flight <= 4

    def test_chunks_run_sequentially(self):
        recorder = Recorder()
        BatchScheduler(concurrency=4).run(list(range(10)), recorder)

        position = {event: i for i, event in enumerate(recorder.events)}
        for chunk_start in (4, 8):
            previous_chunk = range(chunk_start - 4, chunk_start)
            last_end = max(position[('end', i)] for i in previous_chunk)
            chunk = range(chunk_start, min(chunk_start + 4, 10))
            first_start = min(position[('start', i)] for i in chunk)
            assert last_end < first_start

    def test_failure_gives_none_and_continues(self):
        recorder = Recorder(fail_on={3})
        results = BatchScheduler(concurrency=4).run(list(range(6)), recorder)

        assert results[3] is None
        assert results[:3] == [0, 10, 20]
        assert results[4:] == [40, 50]

    def test_progress_callback(self):
        calls = []
        scheduler = BatchScheduler(concurrency=3, progress_callback=lambda done, total: calls.append((done, total)))

        scheduler.run(list(range(7)), Recorder(delay=0.001))

        assert [done for done, _ in calls] == list(range(1, 8))
        assert all(total == 7 for _, total in calls)

    def test_broken_progress_callback_is_ignored(self):
        def callback(done, total):
            raise ValueError("bar closed")

        results = BatchScheduler(concurrency=2, progress_callback=callback).run([1, 2, 3], Recorder(delay=0.001))
        assert results == [10, 20, 30]

    def test_empty_input(self):
        assert BatchScheduler().run([], Recorder()) == []

    def test_concurrency_one_is_serial(self):
        recorder = Recorder(delay=0.001)
        BatchScheduler(concurrency=1).run([1, 2, 3], recorder)
        assert recorder.max_in_flight == 1

    def test_invalid_concurrency(self):
        with pytest.raises(ValueError):
            BatchScheduler(concurrency=0)
