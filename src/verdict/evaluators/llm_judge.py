"""LLM judge evaluator — asks a Gemini model to grade the response."""

from __future__ import annotations

import json
import logging
from typing import Any

from google import genai
from google.genai import types
from pydantic import Field

from verdict.config import VerdictConfig
from verdict.evaluator import BaseScorer
from verdict.models import EvaluatorCategory, Response
from verdict.params import PluginParams, TextList

logger = logging.getLogger(__name__)

CRITERIA_DESCRIPTIONS = {
    "accuracy": "Is the response factually correct and accurate?",
    "helpfulness": "Is the response helpful and addresses the user's needs?",
    "tone": "Is the tone appropriate and professional?",
    "clarity": "Is the response clear and easy to understand?",
    "completeness": "Does the response fully address the question?",
    "conciseness": "Is the response concise without unnecessary information?",
}

_JUDGE_PROMPT = """\
You are an expert evaluator of AI-generated responses. Please evaluate the following response.

ORIGINAL PROMPT:
{prompt}

RESPONSE TO EVALUATE:
{response}

EVALUATION CRITERIA:
{criteria}
{instructions}
Score the response from {score_min} to {score_max} overall and for each criterion \
({criteria_names}).

Respond with ONLY a JSON object: \
{{"overall_score": <number>, "criteria_scores": {{"<criterion>": <number>}}, "feedback": "<explanation>"}}
"""


def _strip_fences(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1].rsplit("```", 1)[0].strip()
    return text


class LlmJudgeParams(PluginParams):
    judge_model: str | None = Field(None, description="Model to use as judge")
    criteria: TextList = Field(
        default_factory=lambda: ["accuracy", "helpfulness", "tone"],
        description="Criteria to evaluate",
    )
    custom_instructions: str | None = Field(None, description="Additional instructions for the judge")
    score_min: float = Field(0.0, description="Minimum score")
    score_max: float = Field(5.0, description="Maximum score")


class LlmJudgeScorer(BaseScorer):
    """Grades a response against named criteria with an LLM.

    Outside of real-LLM mode (``VERDICT_USE_REAL_LLM=true``) a deterministic
    mock judgement is produced so pipelines can run without credentials.
    """

    key = "llm_judge"
    name = "LLM Judge"
    category = EvaluatorCategory.LLM_JUDGE
    params_schema = LlmJudgeParams

    def __init__(
        self,
        response: Response,
        params: dict[str, Any] | None = None,
        *,
        config: VerdictConfig | None = None,
        client: genai.Client | None = None,
    ) -> None:
        super().__init__(response, params)
        self._config = config or VerdictConfig()
        self._client = client
        self._judgement: dict[str, Any] | None = None

    @property
    def score_min(self) -> float:
        return self.params["score_min"]

    @property
    def score_max(self) -> float:
        return self.params["score_max"]

    @property
    def model(self) -> str:
        return self.params["judge_model"] or self._config.judge_model

    @property
    def mock_mode(self) -> bool:
        return self._client is None and not self._config.use_real_llm

    def build_prompt(self) -> str:
        criteria = self.params["criteria"] or []
        criteria_list = "\n".join(
            f"- {c.capitalize()}: {CRITERIA_DESCRIPTIONS.get(c, f'Evaluate {c}')}" for c in criteria
        )
        instructions = self.params["custom_instructions"]
        return _JUDGE_PROMPT.format(
            prompt=self.rendered_prompt or "(not recorded)",
            response=self.response_text,
            criteria=criteria_list,
            instructions=f"\nAdditional Instructions:\n{instructions}\n" if instructions else "",
            score_min=self.score_min,
            score_max=self.score_max,
            criteria_names=", ".join(criteria),
        )

    def _judge(self) -> dict[str, Any]:
        if self._judgement is not None:
            return self._judgement

        if self.mock_mode:
            midpoint = (self.score_min + self.score_max) / 2
            self._judgement = {
                "overall_score": midpoint,
                "criteria_scores": {c: midpoint for c in self.params["criteria"] or []},
                "feedback": f"MOCK EVALUATION: simulated judgement; in production {self.model} would grade this.",
            }
            return self._judgement

        client = self._client or genai.Client(api_key=self._config.gemini_api_key or None)
        response = client.models.generate_content(
            model=self.model,
            contents=[self.build_prompt()],
            config=types.GenerateContentConfig(temperature=0.0),
        )
        parsed = json.loads(_strip_fences(response.text))
        # Judges occasionally drift outside the requested range
        score = min(max(float(parsed["overall_score"]), self.score_min), self.score_max)
        self._judgement = {
            "overall_score": score,
            "criteria_scores": parsed.get("criteria_scores") or {},
            "feedback": parsed.get("feedback", ""),
        }
        logger.debug("Judge %s scored response %s: %s", self.model, self.response.id, score)
        return self._judgement

    def evaluate_score(self) -> float:
        return self._judge()["overall_score"]

    def evaluate_criteria(self) -> dict[str, Any]:
        return dict(self._judge()["criteria_scores"])

    def generate_feedback(self) -> str:
        return self._judge()["feedback"]

    def metadata(self) -> dict[str, Any]:
        return {
            **super().metadata(),
            "judge_model": self.model,
            "criteria": self.params["criteria"],
            "mock_mode": self.mock_mode,
        }
