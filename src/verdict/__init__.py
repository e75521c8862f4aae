"""verdict — evaluator orchestration and score aggregation for generated text."""

from verdict.aggregator import AggregationStrategy, BreakdownEntry, ScoreAggregator, normalize
from verdict.config import VerdictConfig
from verdict.configuration import ConfigurationSet, EvaluatorConfiguration
from verdict.dispatch import (
    AsyncioJobQueue,
    EvaluationTask,
    EvaluationWorker,
    InMemoryJobQueue,
    JobQueue,
    RetryPolicy,
)
from verdict.errors import (
    AsyncDispatchError,
    ConfigurationError,
    EvaluationExecutionError,
    JobFailure,
    VerdictError,
)
from verdict.evaluator import BaseScorer, Scorer
from verdict.loader import load_configuration_file, load_subjects
from verdict.models import (
    Evaluation,
    EvaluationContext,
    EvaluatorCategory,
    Response,
    RunMode,
    Subject,
)
from verdict.orchestrator import OrchestrationResult, Orchestrator
from verdict.params import JsonValue, PluginParams, TextList, coerce_params
from verdict.registry import PluginMetadata, PluginRegistry, default_registry, register_scorer_class
from verdict.report import EvaluationReport
from verdict.store import InMemoryResponseStore, ResponseStore

__all__ = [
    "AggregationStrategy",
    "AsyncDispatchError",
    "AsyncioJobQueue",
    "BaseScorer",
    "BreakdownEntry",
    "ConfigurationError",
    "ConfigurationSet",
    "Evaluation",
    "EvaluationContext",
    "EvaluationExecutionError",
    "EvaluationReport",
    "EvaluationTask",
    "EvaluationWorker",
    "EvaluatorCategory",
    "EvaluatorConfiguration",
    "InMemoryJobQueue",
    "InMemoryResponseStore",
    "JobFailure",
    "JobQueue",
    "load_configuration_file",
    "load_subjects",
    "normalize",
    "OrchestrationResult",
    "Orchestrator",
    "JsonValue",
    "PluginParams",
    "TextList",
    "coerce_params",
    "PluginMetadata",
    "PluginRegistry",
    "register_scorer_class",
    "default_registry",
    "Response",
    "ResponseStore",
    "RunMode",
    "ScoreAggregator",
    "Scorer",
    "Subject",
    "VerdictConfig",
    "VerdictError",
]
