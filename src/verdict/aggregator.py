"""Score aggregation — combine many evaluations into one overall score."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Callable

import numpy as np

if TYPE_CHECKING:
    from verdict.configuration import ConfigurationSet, EvaluatorConfiguration
    from verdict.models import Evaluation

logger = logging.getLogger(__name__)


class AggregationStrategy(enum.Enum):
    SIMPLE_AVERAGE = "simple_average"
    WEIGHTED_AVERAGE = "weighted_average"
    MINIMUM = "minimum"
    CUSTOM = "custom"


@dataclass(frozen=True)
class BreakdownEntry:
    """Per-evaluation line of an aggregation breakdown."""

    evaluation_id: str
    evaluator_id: str
    evaluator_name: str
    category: str
    score: float
    normalized_score: float | None
    passed: bool
    feedback: str | None
    created_at: datetime
    weight_share: float | None = None


def normalize(evaluation: Evaluation) -> float | None:
    """Rescale an evaluation's score to 0-100.

    Returns ``None`` for a degenerate range whose score does not sit on the
    bound; such evaluations do not contribute to any aggregate.
    """
    try:
        return evaluation.normalized_score
    except (TypeError, ZeroDivisionError):
        return None


class ScoreAggregator:
    """Computes an overall score for a set of evaluations.

    Never raises on degenerate data: evaluations that cannot be normalized
    are ignored, and an empty contributing set yields ``None``.
    """

    def __init__(
        self,
        strategy: AggregationStrategy | str = AggregationStrategy.SIMPLE_AVERAGE,
        configurations: ConfigurationSet | None = None,
        custom: Callable[[list[Evaluation]], float | None] | None = None,
    ) -> None:
        self._strategy = AggregationStrategy(strategy)
        self._configurations = configurations
        self._custom = custom

    @property
    def strategy(self) -> AggregationStrategy:
        return self._strategy

    def overall_score(self, evaluations: list[Evaluation]) -> float | None:
        scored = self._contributing(evaluations)
        if not scored:
            return None

        if self._strategy == AggregationStrategy.MINIMUM:
            return float(np.min([s for _, s in scored]))
        if self._strategy == AggregationStrategy.WEIGHTED_AVERAGE:
            return self._weighted(scored)
        if self._strategy == AggregationStrategy.CUSTOM:
            if self._custom is not None:
                return self._custom([e for e, _ in scored])
            logger.warning("Custom aggregation requested without a callable; using simple average")
        return float(np.mean([s for _, s in scored]))

    def passes_threshold(self, evaluations: list[Evaluation], threshold: float) -> bool:
        overall = self.overall_score(evaluations)
        return overall is not None and overall >= threshold

    def weakest_evaluation(self, evaluations: list[Evaluation]) -> Evaluation | None:
        scored = self._contributing(evaluations)
        return min(scored, key=lambda pair: pair[1])[0] if scored else None

    def strongest_evaluation(self, evaluations: list[Evaluation]) -> Evaluation | None:
        scored = self._contributing(evaluations)
        return max(scored, key=lambda pair: pair[1])[0] if scored else None

    def breakdown(self, evaluations: list[Evaluation]) -> list[BreakdownEntry]:
        shares = self._weight_shares(evaluations) if self._is_weighted else {}
        return [
            BreakdownEntry(
                evaluation_id=e.id,
                evaluator_id=e.evaluator_id,
                evaluator_name=e.metadata.get("evaluator_name")
                or e.evaluator_id.replace("_", " ").title(),
                category=e.category.value,
                score=e.score,
                normalized_score=normalize(e),
                passed=e.passed,
                feedback=e.feedback,
                created_at=e.created_at,
                weight_share=shares.get(e.id) if self._is_weighted else None,
            )
            for e in evaluations
        ]

    # -- internals --

    @property
    def _is_weighted(self) -> bool:
        return self._strategy == AggregationStrategy.WEIGHTED_AVERAGE

    def _contributing(self, evaluations: list[Evaluation]) -> list[tuple[Evaluation, float]]:
        pairs = []
        for evaluation in evaluations:
            score = normalize(evaluation)
            if score is not None:
                pairs.append((evaluation, score))
        return pairs

    def _matching_config(self, evaluation: Evaluation) -> EvaluatorConfiguration | None:
        if self._configurations is None:
            return None
        config = self._configurations.find_by_key(evaluation.evaluator_id)
        if config is None or not config.enabled:
            return None
        return config

    def _weight_shares(self, evaluations: list[Evaluation]) -> dict[str, float]:
        # Unmatched evaluations join the pool with the default raw weight of 1.0
        unmatched = [e for e in evaluations if self._matching_config(e) is None]
        enabled_total = 0.0
        if self._configurations is not None:
            enabled_total = sum(c.weight for c in self._configurations.enabled())
        total = enabled_total + len(unmatched)
        if total <= 0:
            return {}

        # A configured evaluator carries its weight once: on its latest evaluation
        latest: dict[str, tuple[tuple, str]] = {}
        for index, evaluation in enumerate(evaluations):
            if self._matching_config(evaluation) is None:
                continue
            order = (evaluation.created_at, index)
            current = latest.get(evaluation.evaluator_id)
            if current is None or order >= current[0]:
                latest[evaluation.evaluator_id] = (order, evaluation.id)
        counted = {evaluation_id for _, evaluation_id in latest.values()}

        shares: dict[str, float] = {}
        for evaluation in evaluations:
            config = self._matching_config(evaluation)
            if config is None:
                raw = 1.0
            elif evaluation.id in counted:
                raw = config.weight
            else:
                raw = 0.0
            shares[evaluation.id] = raw / total
        return shares

    def _weighted(self, scored: list[tuple[Evaluation, float]]) -> float | None:
        shares = self._weight_shares([e for e, _ in scored])
        if not shares:
            # Every weight is zero; nothing to weigh by
            return float(np.mean([s for _, s in scored]))
        weights = np.array([shares[e.id] for e, _ in scored])
        values = np.array([s for _, s in scored])
        return float(np.dot(weights, values))
