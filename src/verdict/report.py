"""Structured reporting for evaluated responses, as console text and JSON."""

from __future__ import annotations

import json
from pathlib import Path

from verdict.models import Response


class EvaluationReport:
    """Collects responses and summarises their evaluations."""

    def __init__(self, threshold: float = 70.0) -> None:
        self._responses: list[Response] = []
        self._threshold = threshold

    def add(self, response: Response) -> None:
        self._responses.append(response)

    def _scored(self) -> list[tuple[Response, float | None, bool]]:
        # One aggregation per response
        rows = []
        for r in self._responses:
            overall = r.overall_score
            rows.append((r, overall, overall is not None and overall >= self._threshold))
        return rows

    @property
    def all_passed(self) -> bool:
        return all(passed for _, _, passed in self._scored())

    def to_console(self) -> str:
        rows = self._scored()
        lines: list[str] = []
        lines.append(f"\n{'='*60}")
        lines.append("VERDICT EVALUATION REPORT")
        lines.append(f"{'='*60}")

        for r, overall, passed in rows:
            status = "PASS" if passed else "FAIL"
            subject = (r.subject.name or r.subject.id) if r.subject is not None else "(no subject)"
            lines.append(f"  [{status}] {subject} / {r.id}")
            lines.append(f"         overall: {_fmt(overall)}")
            for entry in r.evaluation_breakdown():
                share = f" weight {entry.weight_share:.2f}" if entry.weight_share is not None else ""
                lines.append(
                    f"         {entry.evaluator_name}: {_fmt(entry.normalized_score)}"
                    f" ({'PASS' if entry.passed else 'FAIL'}){share}"
                )

        passed_count = sum(1 for _, _, passed in rows if passed)
        lines.append(f"{'='*60}")
        lines.append(f"  {passed_count}/{len(rows)} responses at or above {self._threshold:g}")
        lines.append(f"{'='*60}\n")
        return "\n".join(lines)

    def to_dict(self) -> list[dict]:
        return [
            {
                "response_id": r.id,
                "subject_id": r.subject.id if r.subject is not None else None,
                "strategy": r.subject.aggregation_strategy.value if r.subject is not None else None,
                "overall_score": overall,
                "passed": passed,
                "evaluations": [
                    {
                        "evaluation_id": e.evaluation_id,
                        "evaluator_id": e.evaluator_id,
                        "evaluator_name": e.evaluator_name,
                        "category": e.category,
                        "score": e.score,
                        "normalized_score": e.normalized_score,
                        "passed": e.passed,
                        "feedback": e.feedback,
                        "weight_share": e.weight_share,
                        "created_at": e.created_at.isoformat(),
                    }
                    for e in r.evaluation_breakdown()
                ],
            }
            for r, overall, passed in self._scored()
        ]

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

    def save(self, path: str | Path) -> None:
        Path(path).write_text(self.to_json())


def _fmt(value: float | None) -> str:
    return "n/a" if value is None else f"{value:.1f}"
