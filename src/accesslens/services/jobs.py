"""Asynchronous analysis jobs: submission, execution and status queries."""

import itertools
import logging
import threading
import time
import uuid
from datetime import datetime
from typing import Dict, List, Optional

from ..core.exceptions import (
    InvalidLogFileError,
    InvalidTransitionError,
    JobNotFoundError,
    QueueSaturatedError,
)
from ..models import AnalysisResult, AnalysisStatus, JobState, ParseOutcome
from .aggregation import StatsAggregator
from .executor import BoundedExecutor, TaskRejectedError
from .ingestion import iter_text_lines
from .parsing import AccessLogCsvParser


logger = logging.getLogger(__name__)

DEFAULT_MAX_LINES = 200_000

_NEXT_STATES = {
    AnalysisStatus.QUEUED: {AnalysisStatus.IN_PROGRESS},
    AnalysisStatus.IN_PROGRESS: {AnalysisStatus.COMPLETED, AnalysisStatus.FAILED},
    AnalysisStatus.COMPLETED: set(),
    AnalysisStatus.FAILED: set(),
}


class AnalysisJob:
    """One submitted analysis and its lifecycle.

    Identity fields never change. Status, result and error message live in a
    single immutable :class:`JobState` that is replaced as a whole on every
    transition, so a reader holding ``job.state`` always sees a consistent
    triple. Only the worker running the job calls the transition methods.
    """

    def __init__(self, job_id: str, submission_order: int, submitted_at: Optional[datetime] = None):
        self._job_id = job_id
        self._submission_order = submission_order
        self._submitted_at = submitted_at or datetime.now()
        self._state = JobState()

    @property
    def job_id(self) -> str:
        return self._job_id

    @property
    def submission_order(self) -> int:
        return self._submission_order

    @property
    def submitted_at(self) -> datetime:
        return self._submitted_at

    @property
    def state(self) -> JobState:
        """Current state snapshot. Read once and use its fields together."""
        return self._state

    @property
    def status(self) -> AnalysisStatus:
        return self._state.status

    @property
    def result(self) -> Optional[AnalysisResult]:
        return self._state.result

    @property
    def error_message(self) -> Optional[str]:
        return self._state.error_message

    def start(self) -> None:
        self._transition(JobState(status=AnalysisStatus.IN_PROGRESS))

    def complete(self, result: AnalysisResult) -> None:
        self._transition(JobState(status=AnalysisStatus.COMPLETED, result=result))

    def fail(self, message: str) -> None:
        self._transition(JobState(status=AnalysisStatus.FAILED, error_message=message))

    def _transition(self, new_state: JobState) -> None:
        current = self._state.status
        if new_state.status not in _NEXT_STATES[current]:
            raise InvalidTransitionError(
                f"Job {self._job_id}: cannot move from {current.value} to {new_state.status.value}"
            )
        self._state = new_state

    def __repr__(self) -> str:
        return f"AnalysisJob(job_id={self._job_id!r}, order={self._submission_order}, status={self.status.value})"


class JobScheduler:
    """Owns the job store and hands analyses to a bounded executor.

    Args:
        executor: Anything with an ``execute(callable)`` method that raises
            :class:`TaskRejectedError` when saturated
        max_lines: Upper bound on data lines per file
        parser: Record parser, a default :class:`AccessLogCsvParser` if omitted
    """

    def __init__(self, executor, max_lines: int = DEFAULT_MAX_LINES, parser: AccessLogCsvParser = None):
        self.executor = executor
        self.max_lines = max_lines
        self.parser = parser or AccessLogCsvParser()
        self._jobs: Dict[str, AnalysisJob] = {}
        self._jobs_lock = threading.Lock()
        self._order_sequence = itertools.count(1)

    def submit(self, file_bytes: bytes) -> str:
        """Register a new job and schedule it without waiting for a worker.

        Args:
            file_bytes: Raw CSV content

        Returns:
            Id of the queued job

        Raises:
            QueueSaturatedError: If the executor rejected the job; the job
                is not kept
        """
        job_id = str(uuid.uuid4())

        with self._jobs_lock:
            job = AnalysisJob(job_id, next(self._order_sequence))
            self._jobs[job_id] = job

        try:
            self.executor.execute(lambda: self._execute(job, file_bytes))
        except TaskRejectedError:
            with self._jobs_lock:
                self._jobs.pop(job_id, None)
            logger.warning("Analysis queue saturated, rejected job_id=%s", job_id)
            raise QueueSaturatedError("The analysis queue is full. Please try again later.")

        logger.debug("Queued job_id=%s order=%d", job_id, job.submission_order)
        return job_id

    def get(self, job_id: str) -> AnalysisJob:
        """Look up a job by id.

        Raises:
            JobNotFoundError: If no such job exists
        """
        job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFoundError(f"Analysis not found: {job_id}")
        return job

    def queue_position(self, job: AnalysisJob) -> int:
        """Count queued jobs submitted no later than ``job``, itself included.

        This is a best-effort snapshot; jobs that start concurrently may or
        may not be counted.
        """
        return sum(
            1
            for other in self.jobs()
            if other.status == AnalysisStatus.QUEUED
            and other.submission_order <= job.submission_order
        )

    def jobs(self) -> List[AnalysisJob]:
        """Snapshot of all known jobs in submission order."""
        with self._jobs_lock:
            snapshot = list(self._jobs.values())
        return sorted(snapshot, key=lambda j: j.submission_order)

    def shutdown(self, wait: bool = True) -> None:
        shutdown = getattr(self.executor, "shutdown", None)
        if shutdown is not None:
            shutdown(wait=wait)

    def _execute(self, job: AnalysisJob, file_bytes: bytes) -> None:
        job.start()
        logger.info("Analysis started: job_id=%s", job.job_id)
        started = time.perf_counter()

        try:
            result = self.analyze(job.job_id, file_bytes)
        except InvalidLogFileError as e:
            logger.warning("Analysis rejected: job_id=%s, reason=%s", job.job_id, e)
            job.fail(str(e))
            return
        except Exception as e:
            logger.exception("Analysis failed: job_id=%s", job.job_id)
            job.fail(str(e) or e.__class__.__name__)
            return

        job.complete(result)
        logger.info(
            "Analysis completed: job_id=%s, total_lines=%d, error_count=%d, duration=%.1fms",
            job.job_id, result.total_lines, result.error_count,
            (time.perf_counter() - started) * 1000,
        )

    def analyze(self, analysis_id: str, file_bytes: bytes) -> AnalysisResult:
        """Parse and aggregate a payload synchronously on the calling thread.

        Raises:
            InvalidLogFileError: If the file has too many lines or no valid data
        """
        aggregator = StatsAggregator()
        outcome = self.parser.parse(iter_text_lines(file_bytes), aggregator.add)

        self._validate(outcome)

        return AnalysisResult(
            analysis_id=analysis_id,
            total_requests=outcome.success_count,
            status_code_counts=aggregator.status_code_counts,
            status_group_counts=aggregator.status_group_counts,
            path_counts=aggregator.path_counts,
            ip_counts=aggregator.ip_counts,
            total_lines=outcome.total_lines,
            error_count=outcome.error_count,
            error_samples=list(outcome.error_samples),
        )

    def _validate(self, outcome: ParseOutcome) -> None:
        if outcome.total_lines > self.max_lines:
            raise InvalidLogFileError(
                f"Line limit exceeded: {outcome.total_lines} lines (max {self.max_lines})"
            )
        if outcome.success_count == 0:
            raise InvalidLogFileError("No valid log data found")


def create_job_scheduler(config=None) -> JobScheduler:
    """Factory function to create a scheduler backed by a configured executor."""
    if config is None:
        from ..core.config import get_analysis_config
        config = get_analysis_config()

    executor = BoundedExecutor(
        core_pool_size=config.core_pool_size,
        max_pool_size=config.max_pool_size,
        queue_capacity=config.queue_capacity,
        keep_alive_seconds=config.keep_alive_seconds,
    )
    return JobScheduler(executor, max_lines=config.max_lines)
