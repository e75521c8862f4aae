"""Configuration for verdict, sourced from .env file and environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv()


@dataclass
class VerdictConfig:
    """Central configuration for the verdict engine."""

    gemini_api_key: str = field(default_factory=lambda: os.environ.get("GEMINI_API_KEY", os.environ.get("GOOGLE_API_KEY", "")))
    judge_model: str = field(default_factory=lambda: os.environ.get("VERDICT_JUDGE_MODEL", "gemini-2.0-flash"))
    use_real_llm: bool = field(default_factory=lambda: os.environ.get("VERDICT_USE_REAL_LLM", "") == "true")
    default_min_dependency_score: float = 80.0
    default_aggregation_strategy: str = "weighted_average"
    job_max_attempts: int = 3
    job_base_delay_s: float = 1.0
    job_backoff_factor: float = 2.0
    job_max_workers: int = 4
