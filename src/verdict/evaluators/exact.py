"""Exact match evaluator — response must equal the expected text."""

from __future__ import annotations

from pydantic import Field

from verdict.evaluator import BaseScorer
from verdict.params import PluginParams

_PREVIEW_CHARS = 100


def _preview(text: str) -> str:
    return text if len(text) <= _PREVIEW_CHARS else f"{text[:_PREVIEW_CHARS]}..."


class ExactMatchParams(PluginParams):
    expected_text: str = Field("", description="The exact text to match")
    case_sensitive: bool = Field(False, description="Whether matching is case-sensitive")
    trim_whitespace: bool = Field(True, description="Trim whitespace before comparing")


class ExactMatchScorer(BaseScorer):
    """Binary scorer: 100 on an exact (optionally normalized) match, else 0."""

    key = "exact_match"
    name = "Exact Match"
    params_schema = ExactMatchParams

    def _normalize(self, text: str) -> str:
        if self.params["trim_whitespace"]:
            text = text.strip()
        if not self.params["case_sensitive"]:
            text = text.lower()
        return text

    def _matches(self) -> bool:
        return self._normalize(self.params["expected_text"] or "") == self._normalize(self.response_text)

    def evaluate_score(self) -> float:
        return 100 if self._matches() else 0

    def passed(self, score: float) -> bool:
        return self._matches()

    def generate_feedback(self) -> str:
        if self._matches():
            return "Response exactly matches expected output"
        expected = _preview(self._normalize(self.params["expected_text"] or ""))
        actual = _preview(self._normalize(self.response_text))
        return f'Response does not match expected output.\n\nExpected: "{expected}"\n\nActual: "{actual}"'
