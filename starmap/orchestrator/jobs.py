"""Concurrent execution of chunk-level jobs.

The orchestrator runs one job per chunk on a thread pool and completes in one
of two ways: wait for every job and merge their results, or return the first
non-empty result it observes and cancel everything else. Cancellation is
cooperative: work functions receive a shared :class:`threading.Event` and are
expected to check it before each item.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional

from .chunking import Chunk


logger = logging.getLogger(__name__)

WorkFn = Callable[[Chunk, threading.Event], List[Any]]
ProgressFn = Callable[[int, int], None]


class DispatchMode(str, Enum):
    COLLECT_ALL = "collect_all"
    STOP_ON_FIRST_MATCH = "stop_on_first_match"


class JobState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATES = frozenset({JobState.COMPLETED, JobState.FAILED, JobState.CANCELLED})


@dataclass
class Job:
    """A single chunk bound to a work function for one dispatch call."""

    chunk: Chunk
    state: JobState = JobState.PENDING
    result: List[Any] = field(default_factory=list)
    error: Optional[BaseException] = None

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES


class JobOrchestrator:
    """Dispatches chunks to a worker pool under a completion policy."""

    def __init__(
        self,
        max_workers: int = 8,
        poll_interval: float = 0.1,
        progress: Optional[ProgressFn] = None,
    ) -> None:
        self.max_workers = max_workers
        self.poll_interval = poll_interval
        self.progress = progress

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def dispatch(
        self,
        chunks: Iterable[Chunk],
        work_fn: WorkFn,
        mode: DispatchMode = DispatchMode.COLLECT_ALL,
    ) -> List[Any]:
        """Run ``work_fn`` once per chunk and combine results according to ``mode``.

        Returns:
            For ``COLLECT_ALL`` the concatenated results of every completed
            job; for ``STOP_ON_FIRST_MATCH`` the first non-empty result
            observed, or an empty list when no job produced one. Callers must
            treat the result as unordered.
        """

        jobs = [Job(chunk=chunk) for chunk in chunks]
        if not jobs:
            return []

        cancel_event = threading.Event()
        executor = ThreadPoolExecutor(
            max_workers=min(self.max_workers, len(jobs)),
            thread_name_prefix="starmap-job",
        )
        logger.info(
            "orchestrator.dispatch.start",
            extra={
                "jobs": len(jobs),
                "items": sum(len(job.chunk) for job in jobs),
                "mode": mode.value,
            },
        )
        try:
            futures: Dict[Future, Job] = {
                executor.submit(self._run_job, job, work_fn, cancel_event): job for job in jobs
            }
            if mode is DispatchMode.STOP_ON_FIRST_MATCH:
                return self._await_first_match(futures, cancel_event)
            return self._await_all(futures)
        finally:
            cancel_event.set()
            executor.shutdown(wait=True, cancel_futures=True)
            for job in jobs:
                if not job.is_terminal:
                    job.state = JobState.CANCELLED
            logger.info(
                "orchestrator.dispatch.complete",
                extra={
                    "mode": mode.value,
                    "states": {state.value: sum(1 for job in jobs if job.state is state) for state in JobState},
                },
            )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _run_job(self, job: Job, work_fn: WorkFn, cancel_event: threading.Event) -> Job:
        if cancel_event.is_set():
            job.state = JobState.CANCELLED
            return job

        job.state = JobState.RUNNING
        try:
            result = work_fn(job.chunk, cancel_event)
        except Exception as exc:
            job.error = exc
            job.state = JobState.FAILED
            logger.warning(
                "orchestrator.job.failed",
                extra={"chunk": job.chunk.index, "items": len(job.chunk), "error": str(exc)},
            )
            return job

        job.result = list(result or [])
        job.state = JobState.CANCELLED if cancel_event.is_set() else JobState.COMPLETED
        return job

    def _await_all(self, futures: Dict[Future, Job]) -> List[Any]:
        total = len(futures)
        pending = set(futures)
        while pending:
            _, pending = wait(pending, return_when=FIRST_COMPLETED)
            self._report(total - len(pending), total)

        results: List[Any] = []
        for job in futures.values():
            if job.state is JobState.COMPLETED:
                results.extend(job.result)
        return results

    def _await_first_match(self, futures: Dict[Future, Job], cancel_event: threading.Event) -> List[Any]:
        total = len(futures)
        pending = set(futures)
        while pending:
            done, pending = wait(pending, timeout=self.poll_interval, return_when=FIRST_COMPLETED)
            if not done:
                continue
            self._report(total - len(pending), total)

            # Near-simultaneous completions resolve by chunk order.
            for future in sorted(done, key=lambda item: futures[item].chunk.index):
                job = futures[future]
                if job.state is JobState.COMPLETED and job.result:
                    cancel_event.set()
                    for other in pending:
                        other.cancel()
                    logger.info(
                        "orchestrator.first_match",
                        extra={"chunk": job.chunk.index, "records": len(job.result), "outstanding": len(pending)},
                    )
                    return list(job.result)
        return []

    def _report(self, finished: int, total: int) -> None:
        logger.debug("orchestrator.progress", extra={"finished": finished, "total": total})
        if self.progress is not None:
            self.progress(finished, total)
