"""Orchestrator — runs a subject's configured evaluators against a response.

SCHEDULING:
-----------
One call to :meth:`Orchestrator.evaluate` is an orchestration pass:

1. Independent phase: enabled configurations without a dependency, by
   priority then creation order.
2. Dependent phase: enabled configurations with a dependency, same order,
   each gated on ``dependency_met`` at the moment it comes up.

Sync evaluators run inline on the caller's thread, one after another; a
failure is logged and recorded without stopping the rest.  Async evaluators
are enqueued and the call returns without waiting for them, so a dependent
whose prerequisite is async normally sees no score yet and is skipped.  A
later pass (or the deferred task's own re-check) picks it up; chains are not
re-scheduled within a pass.

No lock serialises passes for the same response.  Each successful plugin
invocation appends a new evaluation, so duplicate triggers yield duplicate
evaluations.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from verdict.configuration import EvaluatorConfiguration
from verdict.dispatch import EvaluationTask, JobQueue
from verdict.errors import AsyncDispatchError, EvaluationExecutionError, VerdictError
from verdict.evaluator import CONFIG_ID_PARAM, CONTEXT_PARAM, EVALUATOR_KEY_PARAM
from verdict.models import Evaluation, EvaluationContext, Response
from verdict.registry import PluginRegistry

logger = logging.getLogger(__name__)


@dataclass
class OrchestrationResult:
    """What one orchestration pass did."""

    response_id: str
    evaluations: list[Evaluation] = field(default_factory=list)
    enqueued: list[EvaluationTask] = field(default_factory=list)
    skipped: list[tuple[str, str]] = field(default_factory=list)
    failed: list[tuple[str, VerdictError]] = field(default_factory=list)

    @property
    def created_count(self) -> int:
        return len(self.evaluations)


class Orchestrator:
    """Schedules and runs evaluator plugins for responses."""

    def __init__(self, registry: PluginRegistry, dispatcher: JobQueue | None = None) -> None:
        self._registry = registry
        self._dispatcher = dispatcher

    @property
    def registry(self) -> PluginRegistry:
        return self._registry

    def evaluate(
        self,
        response: Response,
        context: EvaluationContext = EvaluationContext.TRACKED_CALL,
    ) -> OrchestrationResult:
        result = OrchestrationResult(response_id=response.id)
        subject = response.subject
        if subject is None or subject.configurations is None:
            logger.debug("Response %s has no configured subject; nothing to evaluate", response.id)
            return result

        configurations = subject.configurations

        for config in configurations.independent():
            self._dispatch(config, response, context, result)

        for config in configurations.dependent():
            if not configurations.dependency_met(config, response):
                reason = f"dependency {config.depends_on!r} below {configurations.threshold_for(config):g} or missing"
                logger.info("Skipping %s for response %s: %s", config.key, response.id, reason)
                result.skipped.append((config.key, reason))
                continue
            self._dispatch(config, response, context, result)

        logger.info(
            "Orchestrated response %s: %d created, %d enqueued, %d skipped, %d failed",
            response.id,
            len(result.evaluations),
            len(result.enqueued),
            len(result.skipped),
            len(result.failed),
        )
        return result

    def run_task(
        self,
        task: EvaluationTask,
        response: Response,
        *,
        job_id: str | None = None,
    ) -> Evaluation | None:
        """Worker-side execution of a deferred evaluation.

        The configuration is re-resolved because it may have been edited,
        disabled or removed since the task was enqueued.

        Raises
        ------
        EvaluationExecutionError
            If the plugin fails, so the job queue can retry.
        """
        subject = response.subject
        configurations = subject.configurations if subject is not None else None
        config = configurations.get(task.evaluator_config_id) if configurations is not None else None
        if config is None:
            logger.error(
                "Task %s dropped: evaluator configuration %s not found",
                task.id,
                task.evaluator_config_id,
            )
            return None
        if not config.enabled:
            logger.info("Task %s dropped: %s has been disabled", task.id, config.key)
            return None
        if task.check_dependency and not configurations.dependency_met(config, response):
            logger.info("Task %s skipped: dependency %s not met for %s", task.id, config.depends_on, config.key)
            return None

        evaluation = self._run_scorer(config, response, task.context)
        evaluation.patch_metadata(
            job_id=job_id or task.id,
            evaluator_config_id=config.id,
            executed_at=datetime.now(timezone.utc).isoformat(),
        )
        logger.info("Completed evaluation %s for response %s", config.key, response.id)
        return evaluation

    # -- internals --

    def _dispatch(
        self,
        config: EvaluatorConfiguration,
        response: Response,
        context: EvaluationContext,
        result: OrchestrationResult,
    ) -> None:
        if config.is_sync:
            try:
                evaluation = self._run_scorer(config, response, context)
            except EvaluationExecutionError as exc:
                logger.exception("Evaluator %s failed for response %s", config.key, response.id)
                result.failed.append((config.key, exc))
                return
            evaluation.patch_metadata(
                weight=config.weight,
                priority=config.priority,
                dependency=config.depends_on,
                evaluator_config_id=config.id,
            )
            result.evaluations.append(evaluation)
            return

        task = EvaluationTask(
            response_id=response.id,
            evaluator_config_id=config.id,
            context=context,
            check_dependency=config.has_dependency,
        )
        try:
            if self._dispatcher is None:
                raise AsyncDispatchError(f"No job queue configured for async evaluator {config.key!r}")
            self._dispatcher.enqueue(task)
        except AsyncDispatchError as exc:
            logger.error("Could not enqueue %s for response %s: %s", config.key, response.id, exc)
            result.failed.append((config.key, exc))
            return
        logger.debug("Enqueued %s for response %s as task %s", config.key, response.id, task.id)
        result.enqueued.append(task)

    def _run_scorer(
        self,
        config: EvaluatorConfiguration,
        response: Response,
        context: EvaluationContext,
    ) -> Evaluation:
        params = {
            **config.params,
            EVALUATOR_KEY_PARAM: config.key,
            CONFIG_ID_PARAM: config.id,
            CONTEXT_PARAM: EvaluationContext(context).value,
        }
        try:
            scorer = self._registry.build(config.key, response, params)
            return scorer.evaluate()
        except Exception as exc:
            raise EvaluationExecutionError(config.key, str(exc)) from exc
