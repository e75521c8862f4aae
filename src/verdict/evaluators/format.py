"""Format evaluator — validates JSON, markdown or plain-text responses."""

from __future__ import annotations

import json
import re
from typing import Any, Literal, get_args

from pydantic import Field

from verdict.evaluator import BaseScorer
from verdict.params import JsonValue, PluginParams, TextList

Format = Literal["json", "markdown", "plain_text"]
FORMATS = get_args(Format)

_HEADER_RE = re.compile(r"^#{1,6}\s+.+", re.MULTILINE)
_INVALID = object()

_TYPE_CHECKS = {
    "string": lambda v: isinstance(v, str),
    "integer": lambda v: isinstance(v, int) and not isinstance(v, bool),
    "int": lambda v: isinstance(v, int) and not isinstance(v, bool),
    "float": lambda v: isinstance(v, (int, float)) and not isinstance(v, bool),
    "number": lambda v: isinstance(v, (int, float)) and not isinstance(v, bool),
    "boolean": lambda v: isinstance(v, bool),
    "bool": lambda v: isinstance(v, bool),
    "array": lambda v: isinstance(v, list),
    "object": lambda v: isinstance(v, dict),
    "hash": lambda v: isinstance(v, dict),
    "null": lambda v: v is None,
}


class FormatParams(PluginParams):
    format: Format = Field("plain_text", description="Expected format")
    required_keys: TextList = Field(default_factory=list, description="JSON: required top-level keys")
    require_headers: bool = Field(False, description="Markdown: require headers")
    json_schema: JsonValue = Field(None, alias="schema", description="JSON: structural schema")
    strict: bool = Field(False, description="JSON: reject keys outside the schema")


class FormatScorer(BaseScorer):
    """Checks the response against an expected format and optional JSON schema.

    Schema layout::

        {
            "required_keys": ["name"],
            "optional_keys": ["nickname"],
            "types": {"name": "string"},
            "nested_structure": {"address": {"required_keys": ["city"]}},
        }
    """

    key = "format"
    name = "Format Validator"
    params_schema = FormatParams

    # -- parsing --

    def _parse_json(self) -> Any:
        try:
            return json.loads(self.response_text)
        except ValueError:
            return _INVALID

    def _format_valid(self) -> bool:
        fmt = self.params["format"]
        if fmt == "json":
            return self._parse_json() is not _INVALID
        if fmt == "markdown":
            return bool(self.response_text)
        return True

    def _has_headers(self) -> bool:
        return bool(_HEADER_RE.search(self.response_text))

    # -- scoring --

    def evaluate_score(self) -> float:
        fmt = self.params["format"]
        if fmt == "json":
            return self._score_json()
        if fmt == "markdown":
            return 50 if self.params["require_headers"] and not self._has_headers() else 100
        return 100 if self.response_text else 0

    def _score_json(self) -> float:
        data = self._parse_json()
        if data is _INVALID:
            return 0
        if self.params["schema"]:
            if not isinstance(data, dict):
                return 0
            score, _ = self._check_schema(data, self.params["schema"])
            return score

        required = self.params["required_keys"]
        if not required:
            return 100
        present = [k for k in required if isinstance(data, dict) and k in data]
        return round(len(present) / len(required) * 100)

    def _check_schema(self, data: dict, schema: dict) -> tuple[float, list[str]]:
        errors: list[str] = []
        score = 100
        keys = [str(k) for k in data]
        required = schema.get("required_keys") or []
        optional = schema.get("optional_keys") or []

        missing = [k for k in required if k not in keys]
        if missing:
            errors.append(f"Missing required keys: {', '.join(missing)}")
            score -= round(len(missing) / len(required) * 50)

        if self.params["strict"] and (required or optional):
            extra = [k for k in keys if k not in required and k not in optional]
            if extra:
                errors.append(f"Extra keys not allowed in strict mode: {', '.join(extra)}")
                score -= 20

        for key, expected in (schema.get("types") or {}).items():
            if key not in data:
                continue
            check = _TYPE_CHECKS.get(str(expected).lower())
            if check is not None and not check(data[key]):
                errors.append(f"'{key}' has wrong type (expected {expected})")
                score -= 10

        for key, nested_schema in (schema.get("nested_structure") or {}).items():
            if key not in data:
                continue
            if isinstance(data[key], dict):
                nested_score, nested_errors = self._check_schema(data[key], nested_schema)
                score = min(score, nested_score)
                errors.extend(f"{key}.{e}" for e in nested_errors)
            else:
                errors.append(f"'{key}' should be an object for nested validation")
                score -= 15

        return max(score, 0), errors

    def passed(self, score: float) -> bool:
        return self._format_valid()

    def generate_feedback(self) -> str:
        fmt = self.params["format"]
        if fmt == "json":
            data = self._parse_json()
            if data is _INVALID:
                return "Invalid JSON format"
            if self.params["schema"] and isinstance(data, dict):
                _, errors = self._check_schema(data, self.params["schema"])
                if errors:
                    return f"Schema validation errors: {'; '.join(errors)}"
                return "Valid JSON matching schema"
            missing = [k for k in self.params["required_keys"] if not isinstance(data, dict) or k not in data]
            if missing:
                return f"Valid JSON but missing keys: {', '.join(missing)}"
            return "Valid JSON format"
        if fmt == "markdown":
            if self.params["require_headers"] and not self._has_headers():
                return "Missing markdown headers"
            return "Valid markdown format"
        return "Valid plain text" if self.response_text else "Empty response"

    def metadata(self) -> dict[str, Any]:
        return {**super().metadata(), "format": self.params["format"], "format_valid": self._format_valid()}

