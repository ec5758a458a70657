"""Token usage tracking for one generation run.

A ``TokenTracker`` is created per run and passed explicitly to every stage,
so concurrent runs never see each other's records. It also counts the JSON
repairs applied during the run.

Pricing is in USD per million tokens.
"""

from __future__ import annotations

import json
from collections import Counter
from datetime import datetime, timezone
from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..config import STAGE_NAMES

MODEL_PRICING: dict[str, tuple[float, float]] = {
    "claude-sonnet-4-20250514": (3.0, 15.0),
    "claude-3-5-sonnet-20241022": (3.0, 15.0),
    "claude-3-sonnet-20240229": (3.0, 15.0),
    "claude-3-haiku-20240307": (0.25, 1.25),
}
DEFAULT_PRICING: tuple[float, float] = (3.0, 15.0)


def estimate_cost(model: str, input_tokens: int, output_tokens: int) -> float:
    """Estimated USD cost of a single call."""
    input_price, output_price = MODEL_PRICING.get(model, DEFAULT_PRICING)
    return (input_tokens / 1_000_000) * input_price + (output_tokens / 1_000_000) * output_price


class StageUsage(BaseModel):
    """Token usage of one provider call. Never modified after recording."""
    model_config = ConfigDict(frozen=True)

    stage: str
    input_tokens: int = Field(default=0, ge=0)
    output_tokens: int = Field(default=0, ge=0)
    model: str = ""
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    duration_ms: float = Field(default=0.0, ge=0.0)
    cached: bool = False


class StageTotals(BaseModel):
    input: int = 0
    output: int = 0
    cost: float = 0.0
    calls: int = 0


class TokenSummary(BaseModel):
    """Aggregated usage for a run."""

    input: int = 0
    output: int = 0
    estimated_cost: float = 0.0
    by_stage: dict[str, StageTotals] = Field(default_factory=dict)
    repairs: dict[str, int] = Field(default_factory=dict)

    @property
    def total(self) -> int:
        return self.input + self.output


class TokenTracker:
    """Append-only record of the provider calls made during one run."""

    def __init__(self, session_id: Optional[str] = None) -> None:
        self.session_id = session_id or f"session-{int(datetime.now(timezone.utc).timestamp() * 1000)}"
        self.started_at = datetime.now(timezone.utc)
        self._usage: list[StageUsage] = []
        self._repairs: Counter[str] = Counter()

    def __len__(self) -> int:
        return len(self._usage)

    def record(self, usage: StageUsage) -> None:
        self._usage.append(usage)

    def record_repairs(self, fixes: Iterable[str]) -> None:
        """Count the repair and normalisation fixes applied to one response."""
        self._repairs.update(fixes)

    def reset(self) -> None:
        """Forget every record, starting a fresh session."""
        self._usage = []
        self._repairs = Counter()
        self.started_at = datetime.now(timezone.utc)

    @property
    def records(self) -> list[StageUsage]:
        return list(self._usage)

    def stage_usage(self, stage: str) -> list[StageUsage]:
        return [u for u in self._usage if u.stage == stage]

    def get_summary(self) -> TokenSummary:
        """Aggregate input/output tokens and cost per stage and overall."""
        by_stage: dict[str, StageTotals] = {name: StageTotals() for name in STAGE_NAMES}
        total_input = 0
        total_output = 0
        total_cost = 0.0

        for usage in self._usage:
            cost = estimate_cost(usage.model, usage.input_tokens, usage.output_tokens)
            totals = by_stage.setdefault(usage.stage, StageTotals())
            totals.input += usage.input_tokens
            totals.output += usage.output_tokens
            totals.cost += cost
            totals.calls += 1
            total_input += usage.input_tokens
            total_output += usage.output_tokens
            total_cost += cost

        for totals in by_stage.values():
            totals.cost = round(totals.cost, 4)

        return TokenSummary(
            input=total_input,
            output=total_output,
            estimated_cost=round(total_cost, 4),
            by_stage=by_stage,
            repairs=dict(self._repairs),
        )

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def export_metrics(self) -> str:
        """Format the run's usage as a short plain-text report."""
        summary = self.get_summary()
        lines = ["Generation token usage:"]
        for stage, totals in summary.by_stage.items():
            calls = self.stage_usage(stage)
            if not calls:
                continue
            model = calls[-1].model
            lines.append(
                f"  {stage.capitalize():<13}: {totals.input:>6} in / {totals.output:>6} out "
                f"({model}, {totals.calls} call{'s' if totals.calls != 1 else ''})"
            )
        lines.append("  " + "-" * 40)
        lines.append(
            f"  Total: {summary.input} in / {summary.output} out | "
            f"Est. cost: ${summary.estimated_cost:.2f}"
        )
        if summary.repairs:
            repaired = ", ".join(f"{count} {name}" for name, count in sorted(summary.repairs.items()))
            lines.append(f"  Repairs: {repaired}")
        return "\n".join(lines)

    def export_json(self) -> str:
        """Serialise the session, its summary and every record as JSON."""
        return json.dumps(
            {
                "session_id": self.session_id,
                "started_at": self.started_at.isoformat(),
                "ended_at": datetime.now(timezone.utc).isoformat(),
                "summary": self.get_summary().model_dump(),
                "usage": [u.model_dump(mode="json") for u in self._usage],
            },
            indent=2,
        )
