"""Shared test fixtures: isolated registries, fake scorers and response builders."""

from __future__ import annotations

import pytest

from verdict.aggregator import AggregationStrategy
from verdict.config import VerdictConfig
from verdict.configuration import ConfigurationSet
from verdict.evaluator import BaseScorer
from verdict.models import Evaluation, Response, Subject
from verdict.params import PluginParams
from verdict.registry import PluginMetadata, PluginRegistry, default_registry

FIXED_KEYS = ("alpha", "beta", "gamma", "delta")


class FixedParams(PluginParams):
    score: float = 100.0
    score_max: float = 100.0


class FixedScorer(BaseScorer):
    """Returns whatever score it is configured with."""

    key = "fixed"
    name = "Fixed"
    params_schema = FixedParams

    @property
    def score_max(self) -> float:
        return self.params["score_max"]

    def evaluate_score(self) -> float:
        return self.params["score"]

    def generate_feedback(self) -> str:
        return f"fixed at {self.params['score']:g}"


class BrokenScorer(BaseScorer):
    key = "broken"
    name = "Broken"

    def evaluate_score(self) -> float:
        raise RuntimeError("scorer exploded")


def register_fixed(registry: PluginRegistry, key: str) -> None:
    registry.register(
        key,
        FixedScorer,
        PluginMetadata(name=key.title(), params_schema=FixedScorer.params_schema),
    )


@pytest.fixture()
def verdict_config():
    return VerdictConfig(
        gemini_api_key="test-key",
        use_real_llm=False,
        job_base_delay_s=0.0,
    )


@pytest.fixture()
def registry(verdict_config):
    """Built-in plugins plus deterministic fakes under FIXED_KEYS and ``broken``."""
    reg = default_registry(verdict_config)
    for key in FIXED_KEYS:
        register_fixed(reg, key)
    reg.register("broken", BrokenScorer, PluginMetadata(name="Broken"))
    return reg


@pytest.fixture()
def make_subject(registry):
    """Factory fixture for subjects with an empty configuration set."""

    def _factory(
        strategy: AggregationStrategy = AggregationStrategy.WEIGHTED_AVERAGE,
        subject_id: str = "greeting",
    ) -> Subject:
        return Subject(
            id=subject_id,
            name="Greeting prompt",
            configurations=ConfigurationSet(subject_id, registry),
            aggregation_strategy=strategy,
        )

    return _factory


@pytest.fixture()
def make_response():
    def _factory(subject: Subject | None = None, text: str = "Hello there, how can I help you today?") -> Response:
        return Response(response_text=text, subject=subject, rendered_prompt="Greet the user")

    return _factory


@pytest.fixture()
def add_evaluation():
    """Attach a hand-built evaluation to a response."""

    def _add(response: Response, evaluator_id: str, score: float, **kwargs) -> Evaluation:
        evaluation = Evaluation(
            response_id=response.id,
            evaluator_id=evaluator_id,
            score=score,
            **kwargs,
        )
        return response.add_evaluation(evaluation)

    return _add
