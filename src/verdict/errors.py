"""Exception taxonomy for verdict."""

from __future__ import annotations


class VerdictError(Exception):
    """Base class for all verdict errors."""


class ConfigurationError(VerdictError, ValueError):
    """An evaluator configuration or plugin parameter set is invalid.

    Raised synchronously when a configuration is saved or a scorer is built,
    so the offending write is rejected before anything runs.
    """


class EvaluationExecutionError(VerdictError):
    """A scorer plugin raised while scoring a response."""

    def __init__(self, evaluator_key: str, message: str) -> None:
        super().__init__(f"Evaluator {evaluator_key!r} failed: {message}")
        self.evaluator_key = evaluator_key


class AsyncDispatchError(VerdictError):
    """A deferred evaluation could not be handed to the job queue."""


class JobFailure(AsyncDispatchError):
    """A deferred evaluation exhausted its retry attempts."""

    def __init__(self, task_id: str, attempts: int) -> None:
        super().__init__(f"Task {task_id} abandoned after {attempts} attempt(s)")
        self.task_id = task_id
        self.attempts = attempts
