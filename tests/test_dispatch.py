"""Tests for deferred evaluation: retrying worker and job queues."""

import asyncio
import logging

import pytest

from verdict.config import VerdictConfig
from verdict.dispatch import (
    AsyncioJobQueue,
    EvaluationTask,
    EvaluationWorker,
    InMemoryJobQueue,
    JobQueue,
    RetryPolicy,
)
from verdict.errors import AsyncDispatchError, JobFailure
from verdict.evaluators import LengthScorer
from verdict.orchestrator import Orchestrator
from verdict.registry import PluginMetadata
from verdict.store import InMemoryResponseStore


def _flaky(failures: int):
    """Scorer factory that raises for the first *failures* builds."""
    calls: list[int] = []

    def factory(response, params):
        calls.append(1)
        if len(calls) <= failures:
            raise RuntimeError(f"transient failure {len(calls)}")
        return LengthScorer(response, params)

    return factory, calls


@pytest.fixture()
def setup(registry, make_subject, make_response):
    """Subject, stored response and orchestrator wired to an in-memory queue."""

    def _factory(failures: int = 0, queue=None):
        factory, calls = _flaky(failures)
        registry.register(
            "flaky", factory, PluginMetadata(name="Flaky", params_schema=LengthScorer.params_schema),
        )
        subject = make_subject()
        subject.configurations.add("flaky", run_mode="async")
        response = make_response(subject)
        store = InMemoryResponseStore()
        store.add(response)
        queue = queue if queue is not None else InMemoryJobQueue()
        orchestrator = Orchestrator(registry, dispatcher=queue)
        return orchestrator, queue, store, response, calls

    return _factory


class TestRetryPolicy:
    def test_exponential_delay(self):
        policy = RetryPolicy()
        assert [policy.delay(n) for n in (1, 2, 3)] == [1.0, 2.0, 4.0]

    def test_from_config(self):
        policy = RetryPolicy.from_config(VerdictConfig(job_max_attempts=5, job_base_delay_s=0.5, job_backoff_factor=3.0))
        assert policy == RetryPolicy(max_attempts=5, base_delay_s=0.5, backoff_factor=3.0)


class TestEvaluationWorker:
    def test_retries_then_succeeds(self, setup):
        orchestrator, queue, store, response, calls = setup(failures=2)
        sleeps: list[float] = []
        worker = EvaluationWorker(store, orchestrator, RetryPolicy(), sleep=sleeps.append)

        task = orchestrator.evaluate(response).enqueued[0]
        evaluation = worker.perform(task)

        assert evaluation is not None
        assert evaluation.evaluator_id == "flaky"
        assert len(calls) == 3
        assert sleeps == [1.0, 2.0]
        assert response.evaluations == [evaluation]

    def test_exhausted_attempts(self, setup, caplog):
        orchestrator, queue, store, response, calls = setup(failures=10)
        sleeps: list[float] = []
        worker = EvaluationWorker(store, orchestrator, RetryPolicy(max_attempts=3), sleep=sleeps.append)
        task = orchestrator.evaluate(response).enqueued[0]

        with caplog.at_level(logging.WARNING, logger="verdict.dispatch"):
            with pytest.raises(JobFailure) as excinfo:
                worker.perform(task)

        assert excinfo.value.attempts == 3
        assert excinfo.value.task_id == task.id
        assert len(calls) == 3
        assert sleeps == [1.0, 2.0]
        assert response.evaluations == []
        assert "attempt 1/3 failed" in caplog.text

    def test_missing_response_not_retried(self, setup, caplog):
        orchestrator, queue, store, response, calls = setup()
        sleeps: list[float] = []
        worker = EvaluationWorker(InMemoryResponseStore(), orchestrator, sleep=sleeps.append)
        task = orchestrator.evaluate(response).enqueued[0]

        assert worker.perform(task) is None
        assert calls == []
        assert sleeps == []
        assert "not found" in caplog.text


class TestInMemoryJobQueue:
    def test_is_job_queue(self):
        assert isinstance(InMemoryJobQueue(), JobQueue)
        assert isinstance(AsyncioJobQueue(), JobQueue)

    def test_drain_continues_after_failure(self, setup, caplog):
        orchestrator, queue, store, response, calls = setup(failures=10)
        worker = EvaluationWorker(store, orchestrator, RetryPolicy(max_attempts=1), sleep=lambda _: None)
        orchestrator.evaluate(response)
        stray = EvaluationTask(response_id="gone", evaluator_config_id="x")
        queue.enqueue(stray)

        assert queue.drain(worker) == []
        assert len(queue) == 0
        assert "abandoned after 1 attempt(s)" in caplog.text

    def test_drain_fifo(self, setup):
        orchestrator, queue, store, response, calls = setup()
        worker = EvaluationWorker(store, orchestrator, sleep=lambda _: None)
        orchestrator.evaluate(response)
        orchestrator.evaluate(response)

        created = queue.drain(worker)
        assert len(created) == 2
        assert response.evaluation_count == 2


class TestAsyncioJobQueue:
    async def test_workers_process_tasks(self, setup):
        queue = AsyncioJobQueue()
        orchestrator, _, store, response, calls = setup(queue=queue)
        worker = EvaluationWorker(store, orchestrator, RetryPolicy(base_delay_s=0))
        await queue.start(worker, concurrency=2)

        orchestrator.evaluate(response)
        orchestrator.evaluate(response)
        await queue.join()
        await queue.stop()

        assert len(queue.completed) == 2
        assert response.evaluation_count == 2

    async def test_enqueue_from_another_thread(self, setup):
        queue = AsyncioJobQueue()
        orchestrator, _, store, response, calls = setup(queue=queue)
        await queue.start(EvaluationWorker(store, orchestrator), concurrency=1)

        result = await asyncio.to_thread(orchestrator.evaluate, response)
        await queue.join()
        await queue.stop()

        assert len(result.enqueued) == 1
        assert [e.evaluator_id for e in queue.completed] == ["flaky"]

    async def test_job_failure_logged(self, setup, caplog):
        queue = AsyncioJobQueue()
        orchestrator, _, store, response, calls = setup(failures=10, queue=queue)
        worker = EvaluationWorker(store, orchestrator, RetryPolicy(max_attempts=2, base_delay_s=0))
        await queue.start(worker, concurrency=1)

        orchestrator.evaluate(response)
        await queue.join()
        await queue.stop()

        assert queue.completed == []
        assert len(calls) == 2
        assert "abandoned after 2 attempt(s)" in caplog.text

    def test_full_queue_rejects(self, setup):
        queue = AsyncioJobQueue(maxsize=1)
        orchestrator, _, store, response, calls = setup(queue=queue)

        first = orchestrator.evaluate(response)
        second = orchestrator.evaluate(response)

        assert len(first.enqueued) == 1
        assert second.enqueued == []
        assert isinstance(second.failed[0][1], AsyncDispatchError)

    async def test_full_queue_rejects_from_another_thread(self, setup):
        queue = AsyncioJobQueue(maxsize=1)
        orchestrator, _, store, response, calls = setup(queue=queue)
        await queue.start(EvaluationWorker(store, orchestrator), concurrency=0)

        first = orchestrator.evaluate(response)
        second = await asyncio.to_thread(orchestrator.evaluate, response)
        with pytest.raises(AsyncDispatchError, match="full"):
            await asyncio.to_thread(queue.enqueue, EvaluationTask(response_id=response.id, evaluator_config_id="x"))
        await queue.stop()

        assert len(first.enqueued) == 1
        assert second.enqueued == []
        assert isinstance(second.failed[0][1], AsyncDispatchError)
