"""Scorer protocol and the base class built-in plugins derive from."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from verdict.models import Evaluation, EvaluationContext, EvaluatorCategory, Response
from verdict.params import PluginParams, coerce_params

# Parameter keys the orchestrator injects alongside a plugin's own parameters
EVALUATOR_KEY_PARAM = "evaluator_key"
CONFIG_ID_PARAM = "evaluator_config_id"
CONTEXT_PARAM = "evaluation_context"
CONTEXT_PARAMS = frozenset({EVALUATOR_KEY_PARAM, CONFIG_ID_PARAM, CONTEXT_PARAM})


@runtime_checkable
class Scorer(Protocol):
    """Protocol for plugins that score a single response."""

    def evaluate_score(self) -> float: ...

    def generate_feedback(self) -> str | None: ...

    def evaluate(self) -> Evaluation: ...


class BaseScorer:
    """Shared plumbing for scorers.

    Subclasses implement :meth:`evaluate_score` and usually
    :meth:`generate_feedback`; :meth:`evaluate` turns those into an
    :class:`Evaluation` attached to the response.
    """

    key: str = "base"
    name: str = "Base Scorer"
    category: EvaluatorCategory = EvaluatorCategory.AUTOMATED
    pass_threshold: float = 80.0
    params_schema: type[PluginParams] = PluginParams

    def __init__(self, response: Response, params: dict[str, Any] | None = None) -> None:
        self.response = response
        self.params = coerce_params(self.params_schema, params)

    # -- scoring hooks --

    def evaluate_score(self) -> float:
        raise NotImplementedError(f"{type(self).__name__} must implement evaluate_score()")

    def evaluate_criteria(self) -> dict[str, Any]:
        return {}

    def generate_feedback(self) -> str | None:
        return None

    def passed(self, score: float) -> bool:
        span = self.score_max - self.score_min
        normalized = 100.0 if span == 0 else (score - self.score_min) / span * 100
        return normalized >= self.pass_threshold

    @property
    def score_min(self) -> float:
        return 0

    @property
    def score_max(self) -> float:
        return 100

    @property
    def evaluator_id(self) -> str:
        return self.params.get(EVALUATOR_KEY_PARAM) or self.key

    @property
    def context(self) -> EvaluationContext:
        return EvaluationContext(self.params.get(CONTEXT_PARAM, EvaluationContext.TRACKED_CALL.value))

    def metadata(self) -> dict[str, Any]:
        return {
            "evaluator_name": self.name,
            "params": {k: v for k, v in self.params.items() if k not in CONTEXT_PARAMS},
        }

    # -- helpers --

    @property
    def response_text(self) -> str:
        return self.response.response_text or ""

    @property
    def rendered_prompt(self) -> str:
        return self.response.rendered_prompt or ""

    def evaluate(self) -> Evaluation:
        score = self.evaluate_score()
        evaluation = Evaluation(
            response_id=self.response.id,
            evaluator_id=self.evaluator_id,
            score=score,
            score_min=self.score_min,
            score_max=self.score_max,
            passed=self.passed(score),
            feedback=self.generate_feedback(),
            criteria_scores=self.evaluate_criteria(),
            metadata=self.metadata(),
            category=self.category,
            context=self.context,
        )
        return self.response.add_evaluation(evaluation)
