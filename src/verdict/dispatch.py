"""Deferred evaluation — tasks, job queues and the retrying worker."""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import time
import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Callable, Protocol, runtime_checkable

from verdict.config import VerdictConfig
from verdict.errors import AsyncDispatchError, EvaluationExecutionError, JobFailure
from verdict.models import Evaluation, EvaluationContext

if TYPE_CHECKING:
    from verdict.orchestrator import Orchestrator
    from verdict.store import ResponseStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EvaluationTask:
    """A deferred request to run one evaluator configuration on one response."""

    response_id: str
    evaluator_config_id: str
    context: EvaluationContext = EvaluationContext.TRACKED_CALL
    check_dependency: bool = False
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    enqueued_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@runtime_checkable
class JobQueue(Protocol):
    """Protocol for the transport that carries tasks to workers."""

    def enqueue(self, task: EvaluationTask) -> None: ...


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded attempts with exponential backoff."""

    max_attempts: int = 3
    base_delay_s: float = 1.0
    backoff_factor: float = 2.0

    @classmethod
    def from_config(cls, config: VerdictConfig) -> RetryPolicy:
        return cls(
            max_attempts=config.job_max_attempts,
            base_delay_s=config.job_base_delay_s,
            backoff_factor=config.job_backoff_factor,
        )

    def delay(self, attempt: int) -> float:
        """Seconds to wait after failed *attempt* (1-based) before the next one."""
        return self.base_delay_s * self.backoff_factor ** (attempt - 1)


class EvaluationWorker:
    """Executes tasks against the orchestrator, retrying plugin failures.

    A task whose response no longer exists is dropped without retrying.  When
    every attempt fails the worker raises :class:`~verdict.errors.JobFailure`;
    queues log it and move on, so no partial evaluation is left behind.
    """

    def __init__(
        self,
        store: ResponseStore,
        orchestrator: Orchestrator,
        retry_policy: RetryPolicy | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._store = store
        self._orchestrator = orchestrator
        self._retry = retry_policy or RetryPolicy()
        self._sleep = sleep

    def perform(self, task: EvaluationTask) -> Evaluation | None:
        try:
            response = self._store.get(task.response_id)
        except KeyError:
            logger.error("Evaluation task %s dropped: response %s not found", task.id, task.response_id)
            return None

        attempts = max(self._retry.max_attempts, 1)
        for attempt in range(1, attempts + 1):
            try:
                return self._orchestrator.run_task(task, response, job_id=task.id)
            except EvaluationExecutionError as exc:
                if attempt == attempts:
                    raise JobFailure(task.id, attempts) from exc
                delay = self._retry.delay(attempt)
                logger.warning(
                    "Task %s attempt %d/%d failed (%s); retrying in %.1fs",
                    task.id, attempt, attempts, exc, delay,
                )
                self._sleep(delay)
        return None


class InMemoryJobQueue:
    """Collects tasks in FIFO order until :meth:`drain` runs them."""

    def __init__(self) -> None:
        self._tasks: deque[EvaluationTask] = deque()

    def enqueue(self, task: EvaluationTask) -> None:
        self._tasks.append(task)

    @property
    def pending(self) -> list[EvaluationTask]:
        return list(self._tasks)

    def __len__(self) -> int:
        return len(self._tasks)

    def drain(self, worker: EvaluationWorker) -> list[Evaluation]:
        """Run every queued task (including ones enqueued while draining)."""
        created: list[Evaluation] = []
        while self._tasks:
            task = self._tasks.popleft()
            try:
                evaluation = worker.perform(task)
            except JobFailure as exc:
                logger.error("%s", exc)
                continue
            if evaluation is not None:
                created.append(evaluation)
        return created


class AsyncioJobQueue:
    """An asyncio worker pool; evaluators run in threads so scoring never blocks the loop.

    Usage::

        queue = AsyncioJobQueue()
        orchestrator = Orchestrator(registry, dispatcher=queue)
        await queue.start(EvaluationWorker(store, orchestrator), concurrency=4)
        orchestrator.evaluate(response)
        await queue.join()
        await queue.stop()
    """

    def __init__(self, maxsize: int = 0, handoff_timeout_s: float = 5.0) -> None:
        self._queue: asyncio.Queue[EvaluationTask] = asyncio.Queue(maxsize)
        self._loop: asyncio.AbstractEventLoop | None = None
        self._workers: list[asyncio.Task] = []
        self._handoff_timeout_s = handoff_timeout_s
        self.completed: list[Evaluation] = []

    def enqueue(self, task: EvaluationTask) -> None:
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if self._loop is None or running is self._loop:
            self._put(task)
            return

        # Called from another thread: the put runs on the loop and its error comes back here
        future = asyncio.run_coroutine_threadsafe(self._put_async(task), self._loop)
        try:
            future.result(timeout=self._handoff_timeout_s)
        except concurrent.futures.TimeoutError as exc:
            future.cancel()
            raise AsyncDispatchError(f"Timed out handing task {task.id} to the job queue") from exc

    def _put(self, task: EvaluationTask) -> None:
        try:
            self._queue.put_nowait(task)
        except asyncio.QueueFull as exc:
            raise AsyncDispatchError(f"Job queue full; cannot enqueue task {task.id}") from exc

    async def _put_async(self, task: EvaluationTask) -> None:
        self._put(task)

    async def start(self, worker: EvaluationWorker, concurrency: int = 4) -> None:
        self._loop = asyncio.get_running_loop()
        self._workers = [
            asyncio.create_task(self._run(worker), name=f"verdict-worker-{i}")
            for i in range(concurrency)
        ]

    async def _run(self, worker: EvaluationWorker) -> None:
        while True:
            task = await self._queue.get()
            try:
                evaluation = await asyncio.to_thread(worker.perform, task)
                if evaluation is not None:
                    self.completed.append(evaluation)
            except JobFailure as exc:
                logger.error("%s", exc)
            except Exception:
                logger.exception("Worker crashed on task %s", task.id)
            finally:
                self._queue.task_done()

    async def join(self) -> None:
        await self._queue.join()

    async def stop(self) -> None:
        for worker in self._workers:
            worker.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
