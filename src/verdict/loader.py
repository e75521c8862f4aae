"""Configuration loader — builds subjects and their evaluator configurations from JSON."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from verdict.aggregator import AggregationStrategy
from verdict.configuration import ConfigurationSet
from verdict.errors import ConfigurationError
from verdict.models import Subject
from verdict.registry import PluginRegistry

logger = logging.getLogger(__name__)

_ENTRY_FIELDS = (
    "enabled",
    "run_mode",
    "priority",
    "weight",
    "depends_on",
    "min_dependency_score",
    "params",
)


def load_subjects(data: dict[str, Any], registry: PluginRegistry) -> list[Subject]:
    """Build subjects from an already-parsed configuration document.

    Expected layout::

        {
          "subjects": [
            {
              "id": "greeting",
              "name": "Greeting prompt",
              "aggregation_strategy": "weighted_average",
              "evaluators": [
                {"key": "length", "priority": 1, "weight": 0.3,
                 "params": {"min_length": 20}},
                {"key": "llm_judge", "run_mode": "async",
                 "depends_on": "length", "min_dependency_score": 70}
              ]
            }
          ]
        }

    Evaluator entries may list a dependent before its dependency; they are
    saved in dependency order so the usual validation applies unchanged.

    Raises
    ------
    ConfigurationError
        If the document is malformed or any configuration is invalid.
    """
    if not isinstance(data, dict) or not isinstance(data.get("subjects"), list):
        raise ConfigurationError("Configuration document must contain a 'subjects' list")

    subjects: list[Subject] = []
    for i, raw in enumerate(data["subjects"]):
        if not isinstance(raw, dict) or not raw.get("id"):
            raise ConfigurationError(f"subjects[{i}] must be an object with an 'id'")
        subjects.append(_build_subject(raw, registry))
    return subjects


def load_configuration_file(filepath: str | Path, registry: PluginRegistry) -> list[Subject]:
    """Load subjects from a JSON file.

    Raises
    ------
    FileNotFoundError
        If *filepath* does not exist.
    ConfigurationError
        If the file is not valid JSON or describes invalid configurations.
    """
    path = Path(filepath)
    if not path.is_file():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    try:
        data = json.loads(path.read_text())
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"{path.name} is not valid JSON: {exc}") from exc

    subjects = load_subjects(data, registry)
    logger.info("Loaded %d subject(s) from %s", len(subjects), path)
    return subjects


def _build_subject(raw: dict[str, Any], registry: PluginRegistry) -> Subject:
    subject_id = str(raw["id"])
    try:
        strategy = AggregationStrategy(raw.get("aggregation_strategy", AggregationStrategy.WEIGHTED_AVERAGE.value))
    except ValueError as exc:
        raise ConfigurationError(f"Subject {subject_id}: {exc}") from exc

    configurations = ConfigurationSet(subject_id, registry)
    entries = raw.get("evaluators", [])
    if entries is None:
        entries = []
    if not isinstance(entries, list):
        raise ConfigurationError(f"Subject {subject_id}: 'evaluators' must be a list")

    for entry in _dependency_order(subject_id, entries):
        fields = {name: entry[name] for name in _ENTRY_FIELDS if name in entry}
        configurations.add(entry["key"], **fields)

    return Subject(
        id=subject_id,
        name=raw.get("name", subject_id),
        configurations=configurations,
        aggregation_strategy=strategy,
    )


def _dependency_order(subject_id: str, entries: list[Any]) -> list[dict[str, Any]]:
    for i, entry in enumerate(entries):
        if not isinstance(entry, dict) or not entry.get("key"):
            raise ConfigurationError(f"Subject {subject_id}: evaluators[{i}] must be an object with a 'key'")
        if not isinstance(entry.get("params", {}), dict):
            raise ConfigurationError(f"Subject {subject_id}: evaluators[{i}].params must be an object")

    remaining = list(entries)
    ordered: list[dict[str, Any]] = []
    placed: set[str] = set()
    while remaining:
        ready = [e for e in remaining if not e.get("depends_on") or e["depends_on"] in placed]
        if not ready:
            # Unresolvable (missing or circular); let validation report the first one
            ready = remaining[:1]
        for entry in ready:
            remaining.remove(entry)
            ordered.append(entry)
            placed.add(entry["key"])
    return ordered
