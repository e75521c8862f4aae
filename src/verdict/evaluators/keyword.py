"""Keyword evaluator — required keywords must appear, forbidden ones must not."""

from __future__ import annotations

from pydantic import Field

from verdict.evaluator import BaseScorer
from verdict.params import PluginParams, TextList

REQUIRED_WEIGHT = 0.7
FORBIDDEN_WEIGHT = 0.3


class KeywordParams(PluginParams):
    required_keywords: TextList = Field(default_factory=list, description="Keywords that must be present")
    forbidden_keywords: TextList = Field(default_factory=list, description="Keywords that must not be present")
    case_sensitive: bool = Field(False, description="Whether matching is case-sensitive")


class KeywordScorer(BaseScorer):
    """Scores keyword coverage; required terms weigh 70%, avoiding forbidden ones 30%."""

    key = "keyword"
    name = "Keyword Checker"
    params_schema = KeywordParams

    def _contains(self, keyword: str) -> bool:
        if self.params["case_sensitive"]:
            return keyword in self.response_text
        return keyword.lower() in self.response_text.lower()

    @property
    def _required(self) -> list[str]:
        return list(self.params["required_keywords"] or [])

    @property
    def _forbidden(self) -> list[str]:
        return list(self.params["forbidden_keywords"] or [])

    def evaluate_score(self) -> float:
        required, forbidden = self._required, self._forbidden
        if not required and not forbidden:
            return 100

        required_pct = sum(self._contains(k) for k in required) / len(required) * 100 if required else 0
        forbidden_pct = sum(self._contains(k) for k in forbidden) / len(forbidden) * 100 if forbidden else 0

        if not required:
            return round(100 - forbidden_pct)
        if not forbidden:
            return round(required_pct)
        return round(required_pct * REQUIRED_WEIGHT + (100 - forbidden_pct) * FORBIDDEN_WEIGHT)

    def evaluate_criteria(self) -> dict[str, bool]:
        return {
            "all_required_present": all(self._contains(k) for k in self._required),
            "no_forbidden_present": not any(self._contains(k) for k in self._forbidden),
        }

    def passed(self, score: float) -> bool:
        return all(self.evaluate_criteria().values())

    def generate_feedback(self) -> str:
        missing = [k for k in self._required if not self._contains(k)]
        found = [k for k in self._forbidden if self._contains(k)]
        parts = []
        if missing:
            parts.append(f"Missing required keywords: {', '.join(missing)}")
        if found:
            parts.append(f"Contains forbidden keywords: {', '.join(found)}")
        return ". ".join(parts) if parts else "All keyword requirements met."
