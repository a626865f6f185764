"""Bounded thread pool with synchronous rejection."""

import itertools
import logging
import threading
from collections import deque
from typing import Callable, Deque, List, Optional


logger = logging.getLogger(__name__)

Task = Callable[[], None]


class TaskRejectedError(Exception):
    """Raised when the executor has no free worker and its queue is full."""
    pass


class BoundedExecutor:
    """Thread pool with a core size, a maximum size and a bounded queue.

    Submission never blocks. A task is handed to a new worker while fewer
    than ``core_pool_size`` workers are alive, otherwise it waits in the
    queue. When the queue is full an extra worker is started, up to
    ``max_pool_size``. Beyond that the task is rejected with
    :class:`TaskRejectedError`. Extra workers exit after being idle for
    ``keep_alive_seconds``.
    """

    def __init__(
        self,
        core_pool_size: int,
        max_pool_size: int,
        queue_capacity: int,
        thread_name_prefix: str = "analysis",
        keep_alive_seconds: float = 60.0,
    ) -> None:
        if core_pool_size < 0:
            raise ValueError("core_pool_size must be >= 0")
        if max_pool_size < 1 or max_pool_size < core_pool_size:
            raise ValueError("max_pool_size must be >= 1 and >= core_pool_size")
        if queue_capacity < 0:
            raise ValueError("queue_capacity must be >= 0")

        self.core_pool_size = core_pool_size
        self.max_pool_size = max_pool_size
        self.queue_capacity = queue_capacity
        self.thread_name_prefix = thread_name_prefix
        self.keep_alive_seconds = keep_alive_seconds

        self._lock = threading.Lock()
        self._not_empty = threading.Condition(self._lock)
        self._queue: Deque[Task] = deque()
        self._threads: List[threading.Thread] = []
        self._worker_count = 0
        self._thread_ids = itertools.count(1)
        self._shutdown = False

    def execute(self, task: Task) -> None:
        """Schedule a task for execution.

        Raises:
            TaskRejectedError: If the pool and queue are saturated or the
                executor has been shut down
        """
        with self._lock:
            if self._shutdown:
                raise TaskRejectedError("Executor has been shut down")

            if self._worker_count < self.core_pool_size:
                self._start_worker(task)
                return

            if len(self._queue) < self.queue_capacity:
                self._queue.append(task)
                if self._worker_count == 0:
                    self._start_worker(None)
                else:
                    self._not_empty.notify()
                return

            if self._worker_count < self.max_pool_size:
                self._start_worker(task)
                return

        raise TaskRejectedError(
            f"Executor saturated: workers={self.max_pool_size}, queue_capacity={self.queue_capacity}"
        )

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting tasks. Queued tasks still run before workers exit."""
        with self._lock:
            self._shutdown = True
            self._not_empty.notify_all()
            threads = list(self._threads)

        if wait:
            for thread in threads:
                thread.join()

    @property
    def worker_count(self) -> int:
        with self._lock:
            return self._worker_count

    @property
    def queue_size(self) -> int:
        with self._lock:
            return len(self._queue)

    @property
    def is_shutdown(self) -> bool:
        return self._shutdown

    def _start_worker(self, first_task: Optional[Task]) -> None:
        # caller holds self._lock
        thread = threading.Thread(
            target=self._run_worker,
            args=(first_task,),
            name=f"{self.thread_name_prefix}-{next(self._thread_ids)}",
            daemon=True,
        )
        self._worker_count += 1
        self._threads = [t for t in self._threads if t.is_alive()]
        self._threads.append(thread)
        thread.start()

    def _run_worker(self, first_task: Optional[Task]) -> None:
        task = first_task
        while True:
            if task is not None:
                try:
                    task()
                except Exception:
                    logger.exception("Unhandled error in %s", threading.current_thread().name)
            task = self._next_task()
            if task is None:
                return

    def _next_task(self) -> Optional[Task]:
        """Block until a task is available. Returns None when the worker should exit."""
        with self._lock:
            while not self._queue:
                if self._shutdown:
                    self._worker_count -= 1
                    return None

                if self._worker_count > self.core_pool_size:
                    self._not_empty.wait(self.keep_alive_seconds)
                    if not self._queue and self._worker_count > self.core_pool_size:
                        self._worker_count -= 1
                        return None
                else:
                    self._not_empty.wait()

            return self._queue.popleft()
