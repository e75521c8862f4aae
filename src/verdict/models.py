"""Core data models for the verdict evaluation engine."""

from __future__ import annotations

import enum
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Callable

from verdict.aggregator import AggregationStrategy, BreakdownEntry, ScoreAggregator

if TYPE_CHECKING:
    from verdict.configuration import ConfigurationSet


def _new_id() -> str:
    return uuid.uuid4().hex


def _now() -> datetime:
    return datetime.now(timezone.utc)


class RunMode(enum.Enum):
    """How an evaluator configuration is executed."""

    SYNC = "sync"
    ASYNC = "async"


class EvaluatorCategory(enum.Enum):
    """Who or what produced an evaluation."""

    HUMAN = "human"
    AUTOMATED = "automated"
    LLM_JUDGE = "llm_judge"


class EvaluationContext(enum.Enum):
    """Where the evaluated response came from."""

    TRACKED_CALL = "tracked_call"
    TEST_RUN = "test_run"
    MANUAL = "manual"


@dataclass(frozen=True, eq=False)
class Evaluation:
    """The persisted outcome of one scorer invocation.

    Evaluations are append-only.  Score and feedback never change after
    creation; the only permitted mutation is a single follow-up metadata patch
    through :meth:`patch_metadata` for execution bookkeeping.
    """

    response_id: str
    evaluator_id: str
    score: float
    score_min: float = 0.0
    score_max: float = 100.0
    passed: bool = False
    feedback: str | None = None
    criteria_scores: dict[str, Any] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)
    category: EvaluatorCategory = EvaluatorCategory.AUTOMATED
    context: EvaluationContext = EvaluationContext.TRACKED_CALL
    id: str = field(default_factory=_new_id)
    created_at: datetime = field(default_factory=_now)
    _metadata_patched: bool = field(default=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.score_min is not None and self.score_max is not None:
            if self.score_min > self.score_max:
                raise ValueError(
                    f"score_min ({self.score_min}) must not exceed score_max ({self.score_max})"
                )
            if not self.score_min <= self.score <= self.score_max:
                raise ValueError(
                    f"score {self.score} outside range [{self.score_min}, {self.score_max}]"
                )

    def patch_metadata(self, **extra: Any) -> Evaluation:
        """Merge *extra* into metadata.  Allowed exactly once per evaluation."""
        if self._metadata_patched:
            raise RuntimeError(f"Evaluation {self.id} metadata has already been patched")
        object.__setattr__(self, "metadata", {**self.metadata, **extra})
        object.__setattr__(self, "_metadata_patched", True)
        return self

    @property
    def normalized_score(self) -> float | None:
        """Score rescaled to 0-100, or ``None`` when the range is degenerate."""
        if self.score_max == self.score_min:
            return 100.0 if self.score == self.score_max else None
        return (self.score - self.score_min) / (self.score_max - self.score_min) * 100

    def passing(self, threshold: float = 70) -> bool:
        normalized = self.normalized_score
        return normalized is not None and normalized >= threshold

    def criterion_score(self, criterion: str) -> Any:
        return self.criteria_scores.get(str(criterion))

    @property
    def criteria_names(self) -> list[str]:
        return list(self.criteria_scores)

    def summary(self) -> str:
        label = self.category.value.replace("_", " ").capitalize()
        normalized = self.normalized_score
        percentage = f"({normalized:.1f}%)" if normalized is not None else "(n/a)"
        return f"{label}: {_format_number(self.score)}/{_format_number(self.score_max)} {percentage}"


def _format_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


@dataclass
class Subject:
    """The owner of an evaluator configuration set, typically a prompt."""

    id: str
    name: str = ""
    configurations: ConfigurationSet | None = None
    aggregation_strategy: AggregationStrategy = AggregationStrategy.WEIGHTED_AVERAGE
    custom_aggregation: Callable[[list[Evaluation]], float | None] | None = None

    def aggregator(self) -> ScoreAggregator:
        return ScoreAggregator(
            self.aggregation_strategy,
            configurations=self.configurations,
            custom=self.custom_aggregation,
        )


@dataclass
class Response:
    """A generated text output and the evaluations attached to it."""

    response_text: str
    subject: Subject | None = None
    rendered_prompt: str = ""
    id: str = field(default_factory=_new_id)
    created_at: datetime = field(default_factory=_now)
    _evaluations: list[Evaluation] = field(default_factory=list, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @property
    def evaluations(self) -> list[Evaluation]:
        with self._lock:
            return list(self._evaluations)

    def add_evaluation(self, evaluation: Evaluation) -> Evaluation:
        if evaluation.response_id != self.id:
            raise ValueError(
                f"Evaluation belongs to response {evaluation.response_id}, not {self.id}"
            )
        with self._lock:
            self._evaluations.append(evaluation)
        return evaluation

    def evaluations_by(self, evaluator_id: str) -> list[Evaluation]:
        return [e for e in self.evaluations if e.evaluator_id == evaluator_id]

    def latest_evaluation(self, evaluator_id: str) -> Evaluation | None:
        matches = self.evaluations_by(evaluator_id)
        if not matches:
            return None
        # Stable on ties: the later append wins
        return max(enumerate(matches), key=lambda pair: (pair[1].created_at, pair[0]))[1]

    # -- aggregation surface --

    def _aggregator(self) -> ScoreAggregator:
        if self.subject is not None:
            return self.subject.aggregator()
        return ScoreAggregator(AggregationStrategy.SIMPLE_AVERAGE)

    @property
    def overall_score(self) -> float | None:
        return self._aggregator().overall_score(self.evaluations)

    def evaluation_breakdown(self) -> list[BreakdownEntry]:
        return self._aggregator().breakdown(self.evaluations)

    def passes_threshold(self, threshold: float) -> bool:
        return self._aggregator().passes_threshold(self.evaluations, threshold)

    @property
    def weakest_evaluation(self) -> Evaluation | None:
        return self._aggregator().weakest_evaluation(self.evaluations)

    @property
    def strongest_evaluation(self) -> Evaluation | None:
        return self._aggregator().strongest_evaluation(self.evaluations)

    @property
    def average_evaluation_score(self) -> float | None:
        return ScoreAggregator(AggregationStrategy.SIMPLE_AVERAGE).overall_score(self.evaluations)

    @property
    def evaluation_count(self) -> int:
        return len(self.evaluations)

    def passes_all_evaluations(self) -> bool:
        evaluations = self.evaluations
        return bool(evaluations) and all(e.passed for e in evaluations)
