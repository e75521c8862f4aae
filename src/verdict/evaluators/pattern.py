"""Pattern match evaluator — response must match regular expressions."""

from __future__ import annotations

import re

from pydantic import Field

from verdict.evaluator import BaseScorer
from verdict.params import PluginParams, TextList

_DELIMITED_RE = re.compile(r"\A/(.*)/([imx]*)\Z", re.DOTALL)
_FLAGS = {"i": re.IGNORECASE, "m": re.MULTILINE, "x": re.VERBOSE}


def parse_pattern(pattern: str) -> re.Pattern[str]:
    """Compile ``/body/flags`` as a regex; anything else is matched literally."""
    m = _DELIMITED_RE.match(pattern)
    if m is None:
        return re.compile(re.escape(pattern))
    flags = 0
    for char in m.group(2):
        flags |= _FLAGS[char]
    return re.compile(m.group(1), flags)


class PatternMatchParams(PluginParams):
    patterns: TextList = Field(default_factory=list, description='Patterns such as "/hello/i" or literal text')
    match_all: bool = Field(True, description="All patterns must match (else any)")


class PatternMatchScorer(BaseScorer):
    """Binary scorer over a list of patterns, requiring all or any to match."""

    key = "pattern_match"
    name = "Pattern Match"
    params_schema = PatternMatchParams

    @property
    def _patterns(self) -> list[str]:
        return [str(p) for p in self.params["patterns"] or []]

    def _results(self) -> dict[str, bool]:
        return {p: parse_pattern(p).search(self.response_text) is not None for p in self._patterns}

    def _matches(self) -> bool:
        results = self._results()
        if not results:
            return False
        return all(results.values()) if self.params["match_all"] else any(results.values())

    def evaluate_score(self) -> float:
        return 100 if self._matches() else 0

    def evaluate_criteria(self) -> dict[str, bool]:
        return self._results()

    def passed(self, score: float) -> bool:
        return self._matches()

    def generate_feedback(self) -> str:
        results = self._results()
        if not results:
            return "No patterns configured"
        failed = [p for p, ok in results.items() if not ok]
        if not failed:
            return f"All {len(results)} pattern(s) matched"
        if self.params["match_all"]:
            return f"Failed to match {len(failed)} pattern(s): {', '.join(failed)}"
        if len(failed) == len(results):
            return f"No patterns matched. Tried: {', '.join(results)}"
        return f"{len(results) - len(failed)} of {len(results)} pattern(s) matched"
