"""Tests for the bounded executor."""

import threading

import pytest

from accesslens.services.executor import BoundedExecutor, TaskRejectedError


WAIT = 5.0


class TestBoundedExecutor:
    """Test cases for BoundedExecutor."""

    def setup_method(self) -> None:
        """Set up test fixtures."""
        self.gate = threading.Event()
        self.started = threading.Semaphore(0)
        self.executor = BoundedExecutor(core_pool_size=2, max_pool_size=4, queue_capacity=10)

    def teardown_method(self) -> None:
        self.gate.set()
        self.executor.shutdown(wait=True)

    def blocking_task(self):
        self.started.release()
        self.gate.wait(WAIT)

    def wait_started(self, count):
        for _ in range(count):
            assert self.started.acquire(timeout=WAIT)

    def test_runs_tasks(self) -> None:
        """Submitted tasks run on worker threads."""
        done = threading.Event()
        names = []

        def task():
            names.append(threading.current_thread().name)
            done.set()

        self.executor.execute(task)

        assert done.wait(WAIT)
        assert names[0].startswith("analysis-")

    def test_core_workers_then_queue(self) -> None:
        """Beyond the core size tasks wait in the queue."""
        for _ in range(2):
            self.executor.execute(self.blocking_task)
        self.wait_started(2)

        self.executor.execute(self.blocking_task)

        assert self.executor.worker_count == 2
        assert self.executor.queue_size == 1

    def test_extra_workers_when_queue_full(self) -> None:
        """A full queue grows the pool up to the maximum size."""
        for _ in range(12):
            self.executor.execute(self.blocking_task)
        self.wait_started(2)
        assert self.executor.worker_count == 2
        assert self.executor.queue_size == 10

        self.executor.execute(self.blocking_task)
        self.executor.execute(self.blocking_task)

        assert self.executor.worker_count == 4
        assert self.executor.queue_size == 10

    def test_rejects_when_saturated(self) -> None:
        """max_pool_size + queue_capacity tasks are accepted, the next is rejected."""
        for _ in range(14):
            self.executor.execute(self.blocking_task)

        with pytest.raises(TaskRejectedError):
            self.executor.execute(self.blocking_task)

        assert self.executor.worker_count == 4
        assert self.executor.queue_size == 10

    def test_queued_tasks_drain_after_release(self) -> None:
        """Every accepted task eventually runs."""
        finished = []
        lock = threading.Lock()

        def task():
            self.gate.wait(WAIT)
            with lock:
                finished.append(1)

        for _ in range(14):
            self.executor.execute(task)

        self.gate.set()
        self.executor.shutdown(wait=True)

        assert len(finished) == 14

    def test_failing_task_does_not_kill_worker(self) -> None:
        """An exception in one task does not stop later tasks."""
        executor = BoundedExecutor(core_pool_size=1, max_pool_size=1, queue_capacity=5)
        done = threading.Event()

        def boom():
            raise RuntimeError("boom")

        executor.execute(boom)
        executor.execute(done.set)

        assert done.wait(WAIT)
        executor.shutdown(wait=True)

    def test_zero_core_size_still_runs_queued_task(self) -> None:
        """With no core workers a queued task still gets a worker."""
        executor = BoundedExecutor(core_pool_size=0, max_pool_size=1, queue_capacity=1)
        done = threading.Event()

        executor.execute(done.set)

        assert done.wait(WAIT)
        executor.shutdown(wait=True)

    def test_rejects_after_shutdown(self) -> None:
        """No tasks are accepted after shutdown."""
        self.executor.shutdown(wait=True)

        assert self.executor.is_shutdown
        with pytest.raises(TaskRejectedError):
            self.executor.execute(lambda: None)

    @pytest.mark.parametrize("core,maximum,capacity", [
        (-1, 4, 10),
        (2, 0, 10),
        (4, 2, 10),
        (2, 4, -1),
    ])
    def test_invalid_sizes(self, core, maximum, capacity) -> None:
        """Inconsistent pool sizes are rejected."""
        with pytest.raises(ValueError):
            BoundedExecutor(core_pool_size=core, max_pool_size=maximum, queue_capacity=capacity)
