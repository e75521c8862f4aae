"""Evaluator configurations and the per-subject dependency graph."""

from __future__ import annotations

import itertools
import logging
import numbers
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from verdict.errors import ConfigurationError
from verdict.models import Response, RunMode
from verdict.params import coerce_params

if TYPE_CHECKING:
    from verdict.registry import PluginRegistry

logger = logging.getLogger(__name__)

DEFAULT_MIN_DEPENDENCY_SCORE = 80.0

_RUN_MODE_VALUES = {m.value for m in RunMode}


@dataclass(frozen=True)
class EvaluatorConfiguration:
    """Which plugin runs for a subject, when, and with what parameters.

    Instances are immutable; edit with :func:`dataclasses.replace` and hand
    the copy to :meth:`ConfigurationSet.save`.
    """

    key: str
    subject_id: str
    enabled: bool = True
    run_mode: RunMode = RunMode.SYNC
    priority: int = 0
    weight: float = 1.0
    depends_on: str | None = None
    min_dependency_score: float | None = None
    params: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    sequence: int = 0
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        # Unknown strings are left as-is for ConfigurationSet.validate to reject
        if isinstance(self.run_mode, str) and self.run_mode in _RUN_MODE_VALUES:
            object.__setattr__(self, "run_mode", RunMode(self.run_mode))

    @property
    def is_sync(self) -> bool:
        return self.run_mode == RunMode.SYNC

    @property
    def has_dependency(self) -> bool:
        return bool(self.depends_on)


class ConfigurationSet:
    """All evaluator configurations belonging to one subject.

    Every write goes through :meth:`validate`; an invalid configuration is
    rejected with :class:`~verdict.errors.ConfigurationError` and the set is
    left unchanged.
    """

    def __init__(
        self,
        subject_id: str,
        registry: PluginRegistry,
        *,
        default_min_dependency_score: float = DEFAULT_MIN_DEPENDENCY_SCORE,
    ) -> None:
        self.subject_id = subject_id
        self._registry = registry
        self._default_threshold = default_min_dependency_score
        self._configs: dict[str, EvaluatorConfiguration] = {}
        self._sequence = itertools.count(1)

    # -- writes --

    def add(self, key: str, **fields: Any) -> EvaluatorConfiguration:
        """Create, validate and store a new configuration for *key*."""
        config = EvaluatorConfiguration(
            key=key,
            subject_id=self.subject_id,
            sequence=next(self._sequence),
            **fields,
        )
        return self.save(config)

    def save(self, config: EvaluatorConfiguration) -> EvaluatorConfiguration:
        """Validate and store *config*, replacing any entry with the same id."""
        if config.sequence == 0:
            config = replace(config, sequence=next(self._sequence))
        self.validate(config)
        self._configs[config.id] = config
        logger.debug("Saved evaluator configuration %s (%s) for %s", config.key, config.id, self.subject_id)
        return config

    def remove(self, config_id: str) -> None:
        config = self._configs.get(config_id)
        if config is None:
            return
        dependents = [c.key for c in self._configs.values() if c.enabled and c.depends_on == config.key]
        if dependents:
            raise ConfigurationError(
                f"Cannot remove {config.key!r}: enabled evaluators depend on it ({', '.join(dependents)})"
            )
        del self._configs[config_id]

    def enable(self, key: str) -> EvaluatorConfiguration:
        return self.save(replace(self._require(key), enabled=True))

    def disable(self, key: str) -> EvaluatorConfiguration:
        config = self.save(replace(self._require(key), enabled=False))
        dependents = [c.key for c in self.enabled() if c.depends_on == key]
        if dependents:
            logger.warning(
                "Disabled %s while %s still depend on it; they will be skipped",
                key,
                ", ".join(dependents),
            )
        return config

    # -- reads --

    def get(self, config_id: str) -> EvaluatorConfiguration | None:
        return self._configs.get(config_id)

    def find_by_key(self, key: str) -> EvaluatorConfiguration | None:
        for config in self._configs.values():
            if config.key == key:
                return config
        return None

    def all(self) -> list[EvaluatorConfiguration]:
        return self._ordered(self._configs.values())

    def enabled(self) -> list[EvaluatorConfiguration]:
        return self._ordered(c for c in self._configs.values() if c.enabled)

    def independent(self) -> list[EvaluatorConfiguration]:
        return [c for c in self.enabled() if not c.has_dependency]

    def dependent(self) -> list[EvaluatorConfiguration]:
        return [c for c in self.enabled() if c.has_dependency]

    def __len__(self) -> int:
        return len(self._configs)

    def __iter__(self):
        return iter(self.all())

    @staticmethod
    def _ordered(configs) -> list[EvaluatorConfiguration]:
        return sorted(configs, key=lambda c: (c.priority, c.sequence))

    def _require(self, key: str) -> EvaluatorConfiguration:
        config = self.find_by_key(key)
        if config is None:
            raise ConfigurationError(f"No evaluator {key!r} configured for subject {self.subject_id}")
        return config

    # -- dependency gating and weights --

    def threshold_for(self, config: EvaluatorConfiguration) -> float:
        if config.min_dependency_score is None:
            return self._default_threshold
        return config.min_dependency_score

    def dependency_met(self, config: EvaluatorConfiguration, response: Response) -> bool:
        """True when *config*'s prerequisite has a recent enough passing score.

        The most recent evaluation of the dependency on *response* is
        normalized with its own bounds and compared against the configured
        minimum (80 when unset).
        """
        if not config.has_dependency:
            return True
        evaluation = response.latest_evaluation(config.depends_on)
        if evaluation is None:
            return False
        normalized = evaluation.normalized_score
        if normalized is None:
            return False
        return normalized >= self.threshold_for(config)

    def normalized_weight(self, config: EvaluatorConfiguration) -> float:
        current = self._configs.get(config.id, config)
        if not current.enabled:
            return 0.0
        total = sum(c.weight for c in self.enabled())
        if total <= 0:
            return 0.0
        return current.weight / total

    # -- validation --

    def validate(self, config: EvaluatorConfiguration) -> None:
        if config.subject_id != self.subject_id:
            raise ConfigurationError(
                f"Configuration belongs to subject {config.subject_id}, not {self.subject_id}"
            )
        metadata = self._registry.get(config.key)
        if metadata is None:
            raise ConfigurationError(f"Evaluator {config.key!r} is not registered")
        if not isinstance(config.run_mode, RunMode):
            raise ConfigurationError(
                f"Invalid run mode {config.run_mode!r}; expected one of: "
                f"{', '.join(m.value for m in RunMode)}"
            )
        if not isinstance(config.priority, numbers.Integral) or isinstance(config.priority, bool):
            raise ConfigurationError(f"Priority must be an integer, got {config.priority!r}")
        if not isinstance(config.weight, numbers.Real) or isinstance(config.weight, bool):
            raise ConfigurationError(f"Weight must be a number, got {config.weight!r}")
        if config.weight < 0:
            raise ConfigurationError(f"Weight must be >= 0, got {config.weight}")
        if config.min_dependency_score is not None and not 0 <= config.min_dependency_score <= 100:
            raise ConfigurationError(
                f"min_dependency_score must be within 0-100, got {config.min_dependency_score}"
            )

        for other in self._configs.values():
            if other.id != config.id and other.key == config.key:
                raise ConfigurationError(
                    f"Evaluator {config.key!r} is already configured for subject {self.subject_id}"
                )

        coerce_params(metadata.params_schema, config.params)
        self._validate_dependency(config)

    def _validate_dependency(self, config: EvaluatorConfiguration) -> None:
        if not config.depends_on:
            return
        if config.depends_on == config.key:
            raise ConfigurationError(f"Evaluator {config.key!r} cannot depend on itself")

        candidate = {c.key: c for c in self._configs.values() if c.id != config.id}
        candidate[config.key] = config

        target = candidate.get(config.depends_on)
        if target is None:
            raise ConfigurationError(
                f"Dependency {config.depends_on!r} is not configured for subject {self.subject_id}"
            )
        if config.enabled and not target.enabled:
            raise ConfigurationError(f"Dependency {config.depends_on!r} is disabled")

        # Walk the depends-on chain; returning to the start means a cycle
        seen: set[str] = set()
        current: str | None = config.depends_on
        while current is not None and current not in seen:
            if current == config.key:
                raise ConfigurationError(
                    f"Circular dependency detected: {config.key!r} eventually depends on itself"
                )
            seen.add(current)
            node = candidate.get(current)
            current = node.depends_on if node is not None else None
