"""Length evaluator — scores a response by how close its size is to an ideal range."""

from __future__ import annotations

from typing import Any

from pydantic import Field

from verdict.evaluator import BaseScorer
from verdict.params import PluginParams

TOO_SHORT_SCORE = 20
TOO_LONG_SCORE = 30
EDGE_SCORE = 60


class LengthParams(PluginParams):
    min_length: int = Field(10, description="Minimum acceptable length")
    max_length: int = Field(2000, description="Maximum acceptable length")
    ideal_min: int = Field(50, description="Ideal minimum length")
    ideal_max: int = Field(500, description="Ideal maximum length")


class LengthScorer(BaseScorer):
    """Full marks inside ``[ideal_min, ideal_max]``, tapering to the hard limits."""

    key = "length"
    name = "Length Validator"
    params_schema = LengthParams

    @property
    def _length(self) -> int:
        return len(self.response_text)

    def evaluate_score(self) -> float:
        length = self._length
        lo, hi = self.params["min_length"], self.params["max_length"]
        ideal_lo = max(self.params["ideal_min"], lo)
        ideal_hi = min(self.params["ideal_max"], hi)

        if length < lo:
            return TOO_SHORT_SCORE
        if length > hi:
            return TOO_LONG_SCORE
        if ideal_lo <= length <= ideal_hi:
            return 100
        if length < ideal_lo:
            fraction = (length - lo) / (ideal_lo - lo)
        else:
            fraction = (hi - length) / (hi - ideal_hi)
        return round(EDGE_SCORE + (100 - EDGE_SCORE) * fraction)

    def passed(self, score: float) -> bool:
        return self.params["min_length"] <= self._length <= self.params["max_length"]

    def generate_feedback(self) -> str:
        length = self._length
        lo, hi = self.params["min_length"], self.params["max_length"]
        if length < lo:
            return f"Response is too short ({length} chars). Minimum: {lo} chars."
        if length > hi:
            return f"Response is too long ({length} chars). Maximum: {hi} chars."
        ideal_lo, ideal_hi = self.params["ideal_min"], self.params["ideal_max"]
        if ideal_lo <= length <= ideal_hi:
            return f"Response length is ideal ({length} chars). Ideal range: {ideal_lo}-{ideal_hi} chars."
        return f"Response length is acceptable ({length} chars). Ideal range: {ideal_lo}-{ideal_hi} chars."

    def metadata(self) -> dict[str, Any]:
        return {**super().metadata(), "response_length": self._length}
