"""Declared parameter models for scorer plugins.

Each plugin declares the parameters it understands as a pydantic model
deriving from :class:`PluginParams`.  The registry runs :func:`coerce_params`
on every build so plugins receive typed values no matter whether the
configuration came from code, a JSON file or a form submission where
everything is a string.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, ValidationError

from verdict.errors import ConfigurationError


def _split_list(value: Any) -> Any:
    if isinstance(value, tuple):
        return list(value)
    if not isinstance(value, str):
        return value
    stripped = value.strip()
    if stripped.startswith("["):
        parsed = json.loads(stripped)
        if not isinstance(parsed, list):
            raise ValueError("JSON value is not an array")
        return parsed
    # Form-style input: one item per line or comma separated
    separator = "\n" if "\n" in stripped else ","
    return [item.strip() for item in stripped.split(separator) if item.strip()]


def _parse_json(value: Any) -> Any:
    if isinstance(value, str):
        return json.loads(value) if value.strip() else None
    return value


TextList = Annotated[list[str], BeforeValidator(_split_list)]
"""A list of strings that also accepts a JSON array or comma/newline separated text."""

JsonValue = Annotated[Any, BeforeValidator(_parse_json)]
"""Any JSON value; strings are parsed."""


class PluginParams(BaseModel):
    """Base for plugin parameter models.

    Undeclared keys are kept as-is; the orchestrator uses them to hand
    execution context to the plugin.
    """

    model_config = ConfigDict(extra="allow")


def coerce_params(
    schema: type[PluginParams] | None,
    params: Mapping[str, Any] | None,
) -> dict[str, Any]:
    """Validate *params* against *schema* and return them merged over its defaults.

    Raises
    ------
    ConfigurationError
        If *params* is not a mapping or a value fails its declared type.
    """
    if params is None:
        params = {}
    if not isinstance(params, Mapping):
        raise ConfigurationError(f"Parameters must be a mapping, got {type(params).__name__}")

    model = schema or PluginParams
    try:
        return model.model_validate(dict(params)).model_dump(by_alias=True)
    except ValidationError as exc:
        problems = "; ".join(
            f"parameter {'.'.join(str(part) for part in err['loc'])!r}: {err['msg']}"
            for err in exc.errors()
        )
        raise ConfigurationError(f"Invalid {model.__name__}: {problems}") from exc
