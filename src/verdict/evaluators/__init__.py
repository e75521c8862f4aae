"""Built-in scorer plugins for verdict."""

from verdict.evaluators.exact import ExactMatchScorer
from verdict.evaluators.format import FormatScorer
from verdict.evaluators.keyword import KeywordScorer
from verdict.evaluators.length import LengthScorer
from verdict.evaluators.llm_judge import LlmJudgeScorer
from verdict.evaluators.pattern import PatternMatchScorer

__all__ = [
    "ExactMatchScorer",
    "FormatScorer",
    "KeywordScorer",
    "LengthScorer",
    "LlmJudgeScorer",
    "PatternMatchScorer",
]
