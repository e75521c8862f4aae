"""Plugin registry — maps evaluator keys to scorer factories and their metadata."""

from __future__ import annotations

import functools
import logging
from dataclasses import dataclass
from typing import Any, Callable

from verdict.config import VerdictConfig
from verdict.errors import ConfigurationError
from verdict.evaluator import Scorer
from verdict.evaluators import (
    ExactMatchScorer,
    FormatScorer,
    KeywordScorer,
    LengthScorer,
    LlmJudgeScorer,
    PatternMatchScorer,
)
from verdict.models import EvaluatorCategory, Response
from verdict.params import PluginParams, coerce_params

logger = logging.getLogger(__name__)

ScorerFactory = Callable[[Response, dict[str, Any]], Scorer]


@dataclass(frozen=True)
class PluginMetadata:
    """Descriptive data about a registered plugin."""

    name: str
    description: str = ""
    category: str = "custom"
    evaluator_category: EvaluatorCategory = EvaluatorCategory.AUTOMATED
    params_schema: type[PluginParams] = PluginParams

    @property
    def default_params(self) -> dict[str, Any]:
        return coerce_params(self.params_schema, None)


@dataclass(frozen=True)
class PluginEntry:
    key: str
    factory: ScorerFactory
    metadata: PluginMetadata


class PluginRegistry:
    """Holds the scorer plugins available to one engine instance.

    Built once at startup and handed to the orchestrator and configuration
    sets; there is no module-level singleton, so tests use isolated instances.
    """

    def __init__(self) -> None:
        self._entries: dict[str, PluginEntry] = {}

    def register(self, key: str, factory: ScorerFactory, metadata: PluginMetadata) -> None:
        if not key or not isinstance(key, str):
            raise ConfigurationError(f"Plugin key must be a non-empty string, got {key!r}")
        if not callable(factory):
            raise ConfigurationError(f"Factory for plugin {key!r} is not callable")
        if key in self._entries:
            logger.warning("Replacing registered plugin %s", key)
        self._entries[key] = PluginEntry(key=key, factory=factory, metadata=metadata)

    def unregister(self, key: str) -> None:
        self._entries.pop(key, None)

    def get(self, key: str) -> PluginMetadata | None:
        entry = self._entries.get(key)
        return entry.metadata if entry is not None else None

    def exists(self, key: str) -> bool:
        return key in self._entries

    def build(self, key: str, response: Response, params: dict[str, Any] | None = None) -> Scorer:
        """Construct a scorer for *response* with coerced *params*.

        Raises
        ------
        ConfigurationError
            If *key* is unknown or a parameter fails its declared schema.
        """
        entry = self._entries.get(key)
        if entry is None:
            raise ConfigurationError(f"Evaluator {key!r} not found in registry")
        coerced = coerce_params(entry.metadata.params_schema, params)
        return entry.factory(response, coerced)

    def all(self) -> dict[str, PluginMetadata]:
        return {key: entry.metadata for key, entry in self._entries.items()}

    def by_category(self, category: str) -> dict[str, PluginMetadata]:
        return {key: meta for key, meta in self.all().items() if meta.category == category}

    def keys(self) -> list[str]:
        return list(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)


def register_scorer_class(
    registry: PluginRegistry,
    scorer_cls: type,
    *,
    description: str = "",
    category: str = "custom",
    factory: ScorerFactory | None = None,
) -> None:
    """Register a :class:`~verdict.evaluator.BaseScorer` subclass under its own key."""
    registry.register(
        scorer_cls.key,
        factory or scorer_cls,
        PluginMetadata(
            name=scorer_cls.name,
            description=description,
            category=category,
            evaluator_category=scorer_cls.category,
            params_schema=scorer_cls.params_schema,
        ),
    )


def default_registry(config: VerdictConfig | None = None) -> PluginRegistry:
    """Return a new registry populated with the built-in plugins."""
    config = config or VerdictConfig()
    registry = PluginRegistry()
    register_scorer_class(
        registry, LengthScorer,
        description="Validates response length against min/max and ideal ranges",
        category="format",
    )
    register_scorer_class(
        registry, KeywordScorer,
        description="Checks for required and forbidden keywords in the response",
        category="content",
    )
    register_scorer_class(
        registry, FormatScorer,
        description="Validates response format (JSON, Markdown, plain text)",
        category="format",
    )
    register_scorer_class(
        registry, ExactMatchScorer,
        description="Checks if the response exactly matches expected text",
        category="content",
    )
    register_scorer_class(
        registry, PatternMatchScorer,
        description="Checks if the response matches regex patterns",
        category="content",
    )
    register_scorer_class(
        registry, LlmJudgeScorer,
        description="Uses an LLM to evaluate response quality",
        category="quality",
        factory=functools.partial(LlmJudgeScorer, config=config),
    )
    return registry
