"""Tests for the two-phase evaluation orchestrator."""

import logging
from dataclasses import replace

import pytest

from verdict.dispatch import EvaluationTask, EvaluationWorker, InMemoryJobQueue, RetryPolicy
from verdict.errors import AsyncDispatchError, EvaluationExecutionError
from verdict.models import EvaluationContext
from verdict.orchestrator import Orchestrator
from verdict.store import InMemoryResponseStore


@pytest.fixture()
def queue():
    return InMemoryJobQueue()


@pytest.fixture()
def orchestrator(registry, queue):
    return Orchestrator(registry, dispatcher=queue)


@pytest.fixture()
def subject(make_subject):
    return make_subject()


@pytest.fixture()
def response(subject, make_response):
    return make_response(subject)


@pytest.fixture()
def worker(response, orchestrator):
    store = InMemoryResponseStore()
    store.add(response)
    return EvaluationWorker(store, orchestrator, RetryPolicy(base_delay_s=0), sleep=lambda _: None)


def _keys(evaluations):
    return [e.evaluator_id for e in evaluations]


class TestSyncPass:
    def test_phases_and_gating(self, orchestrator, subject, response):
        configs = subject.configurations
        configs.add("alpha", priority=2, params={"score": 90})
        configs.add("beta", priority=1, params={"score": 50})
        configs.add("gamma", depends_on="alpha")
        configs.add("delta", depends_on="beta")

        result = orchestrator.evaluate(response)

        assert _keys(result.evaluations) == ["beta", "alpha", "gamma"]
        assert result.created_count == 3
        assert [key for key, _ in result.skipped] == ["delta"]
        assert _keys(response.evaluations) == ["beta", "alpha", "gamma"]

    def test_threshold_boundary_runs_dependent(self, orchestrator, subject, response):
        subject.configurations.add("alpha", params={"score": 80})
        subject.configurations.add("beta", depends_on="alpha")
        result = orchestrator.evaluate(response)
        assert _keys(result.evaluations) == ["alpha", "beta"]

    def test_failure_is_isolated(self, orchestrator, subject, response, caplog):
        subject.configurations.add("broken", priority=0)
        subject.configurations.add("alpha", priority=1)

        with caplog.at_level(logging.ERROR, logger="verdict.orchestrator"):
            result = orchestrator.evaluate(response)

        assert _keys(result.evaluations) == ["alpha"]
        assert len(result.failed) == 1
        key, error = result.failed[0]
        assert key == "broken"
        assert isinstance(error, EvaluationExecutionError)
        assert "scorer exploded" in str(error)
        assert "Evaluator broken failed" in caplog.text

    def test_failed_dependency_skips_dependent(self, orchestrator, subject, response):
        subject.configurations.add("broken")
        subject.configurations.add("alpha", depends_on="broken")
        result = orchestrator.evaluate(response)
        assert result.evaluations == []
        assert [key for key, _ in result.skipped] == ["alpha"]

    def test_disabled_not_run(self, orchestrator, subject, response):
        subject.configurations.add("alpha", enabled=False)
        subject.configurations.add("beta")
        assert _keys(orchestrator.evaluate(response).evaluations) == ["beta"]

    def test_metadata_patched(self, orchestrator, subject, response):
        config = subject.configurations.add("alpha", weight=2.5, priority=3)
        evaluation = orchestrator.evaluate(response).evaluations[0]
        assert evaluation.metadata["weight"] == 2.5
        assert evaluation.metadata["priority"] == 3
        assert evaluation.metadata["dependency"] is None
        assert evaluation.metadata["evaluator_config_id"] == config.id
        assert evaluation.metadata["params"] == {"score": 100.0, "score_max": 100.0}

    def test_config_params_reach_plugin(self, orchestrator, subject, make_response):
        subject.configurations.add("length", params={"min_length": 3, "ideal_min": 3})
        response = make_response(subject, text="Hey!")
        evaluation = orchestrator.evaluate(response).evaluations[0]
        assert evaluation.score == 100
        assert evaluation.passed is True

    def test_context_recorded(self, orchestrator, subject, response):
        subject.configurations.add("alpha")
        evaluation = orchestrator.evaluate(response, EvaluationContext.TEST_RUN).evaluations[0]
        assert evaluation.context == EvaluationContext.TEST_RUN

    def test_duplicate_passes_duplicate_evaluations(self, orchestrator, subject, response):
        subject.configurations.add("alpha")
        orchestrator.evaluate(response)
        orchestrator.evaluate(response)
        assert len(response.evaluations_by("alpha")) == 2

    def test_response_without_subject(self, orchestrator, make_response):
        result = orchestrator.evaluate(make_response())
        assert result.created_count == 0
        assert result.enqueued == []

    def test_aggregate_after_pass(self, orchestrator, subject, response):
        subject.configurations.add("alpha", weight=1, params={"score": 40})
        subject.configurations.add("beta", weight=3, params={"score": 80})
        orchestrator.evaluate(response)
        assert response.overall_score == pytest.approx(70.0)


class TestAsyncDispatch:
    def test_async_config_enqueued(self, orchestrator, queue, subject, response):
        config = subject.configurations.add("alpha", run_mode="async")
        result = orchestrator.evaluate(response)

        assert result.evaluations == []
        assert len(result.enqueued) == 1
        task = result.enqueued[0]
        assert task.evaluator_config_id == config.id
        assert task.response_id == response.id
        assert task.check_dependency is False
        assert queue.pending == [task]

    def test_drain_creates_evaluation(self, orchestrator, queue, worker, subject, response):
        config = subject.configurations.add("alpha", run_mode="async", params={"score": 65})
        task = orchestrator.evaluate(response).enqueued[0]

        created = queue.drain(worker)

        assert len(created) == 1
        evaluation = created[0]
        assert evaluation.score == 65
        assert evaluation.metadata["job_id"] == task.id
        assert evaluation.metadata["evaluator_config_id"] == config.id
        assert "executed_at" in evaluation.metadata
        assert len(queue) == 0

    def test_dependent_of_async_waits_for_next_pass(self, orchestrator, queue, worker, subject, response):
        subject.configurations.add("alpha", run_mode="async")
        subject.configurations.add("beta", depends_on="alpha")

        first = orchestrator.evaluate(response)
        assert [key for key, _ in first.skipped] == ["beta"]

        queue.drain(worker)
        second = orchestrator.evaluate(response)
        assert _keys(second.evaluations) == ["beta"]
        assert len(second.enqueued) == 1

    def test_async_dependent_rechecks_dependency(self, orchestrator, queue, worker, subject, response, add_evaluation):
        subject.configurations.add("alpha", params={"score": 90})
        subject.configurations.add("beta", run_mode="async", depends_on="alpha")

        task = orchestrator.evaluate(response).enqueued[0]
        assert task.check_dependency is True

        # a newer failing alpha lands before the worker picks the task up
        add_evaluation(response, "alpha", 10)
        assert queue.drain(worker) == []
        assert response.evaluations_by("beta") == []

    def test_no_dispatcher(self, registry, subject, response):
        subject.configurations.add("alpha", run_mode="async")
        subject.configurations.add("beta")
        result = Orchestrator(registry).evaluate(response)

        assert _keys(result.evaluations) == ["beta"]
        assert result.failed[0][0] == "alpha"
        assert isinstance(result.failed[0][1], AsyncDispatchError)


class TestRunTask:
    def test_disabled_after_enqueue(self, orchestrator, subject, response, caplog):
        subject.configurations.add("alpha", run_mode="async")
        task = orchestrator.evaluate(response).enqueued[0]
        subject.configurations.disable("alpha")

        with caplog.at_level(logging.INFO, logger="verdict.orchestrator"):
            assert orchestrator.run_task(task, response) is None
        assert "disabled" in caplog.text
        assert response.evaluations == []

    def test_removed_after_enqueue(self, orchestrator, subject, response):
        config = subject.configurations.add("alpha", run_mode="async")
        task = orchestrator.evaluate(response).enqueued[0]
        subject.configurations.remove(config.id)
        assert orchestrator.run_task(task, response) is None

    def test_params_edited_after_enqueue(self, orchestrator, subject, response):
        config = subject.configurations.add("alpha", run_mode="async", params={"score": 10})
        task = orchestrator.evaluate(response).enqueued[0]
        subject.configurations.save(replace(config, params={"score": 99}))

        assert orchestrator.run_task(task, response, job_id="job-7").score == 99

    def test_failure_raises(self, orchestrator, subject, response):
        config = subject.configurations.add("broken", run_mode="async")
        task = EvaluationTask(response_id=response.id, evaluator_config_id=config.id)
        with pytest.raises(EvaluationExecutionError):
            orchestrator.run_task(task, response)
