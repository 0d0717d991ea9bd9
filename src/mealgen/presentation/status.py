from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from mealgen.core.engine.advance import OVERRUN_REASON
from mealgen.core.engine.plan import GenerationPlan
from mealgen.core.engine.state import ProgressSnapshot, RunStatus

HEADLINES: dict[RunStatus, str] = {
    RunStatus.IDLE: "Ready to Create Your Recipe",
    RunStatus.RUNNING: "Creating Your Recipe",
    RunStatus.COMPLETED: "Recipe Created!",
    RunStatus.OVERRUN: "Generation Taking Longer",
    RunStatus.CANCELLED: "Generation Cancelled",
}

FAILED_HEADLINE = "Generation Failed"

OVERRUN_MESSAGE = "AI is working hard on your complex family needs. Please wait a moment longer."


def _round_half_up(value: float) -> int:
    # half-up: 0.5 -> 1, 2.5 -> 3
    return math.floor(value + 0.5)


def _format_seconds(value: float) -> str:
    # 11.0 -> "11", 12.5 -> "12.5"
    return f"{value:g}"


@dataclass(frozen=True, slots=True)
class StatusView:
    """
    Text the presentation layer binds to for one snapshot.

    Overrun is rendered as a gentle "taking longer" banner, never as an error,
    and cancellation stays available while it shows. Once the overrun has
    resolved, the run reads as failed and can no longer be cancelled.
    """

    status: RunStatus
    percent: int
    headline: str
    stage_icon: str
    stage_title: str
    stage_description: str
    stage_position: str
    banner: Optional[str]
    can_cancel: bool
    time_estimate: str

    @classmethod
    def from_snapshot(cls, snapshot: ProgressSnapshot, plan: GenerationPlan, *, meal_type: Optional[str] = None) -> "StatusView":
        stage = plan.stages[snapshot.current_stage_index]

        headline = HEADLINES[snapshot.status]
        banner: Optional[str] = None
        if snapshot.status is RunStatus.OVERRUN and snapshot.resolved:
            headline = FAILED_HEADLINE
            banner = OVERRUN_REASON
        elif snapshot.status is RunStatus.OVERRUN:
            banner = OVERRUN_MESSAGE
        elif snapshot.status is RunStatus.COMPLETED:
            meal = meal_type or "meal"
            banner = f"Your perfect family {meal} is ready with safety checks complete."

        return cls(
            status=snapshot.status,
            percent=_round_half_up(snapshot.overall_progress_percent),
            headline=headline,
            stage_icon=stage.icon,
            stage_title=stage.title,
            stage_description=stage.description,
            stage_position=f"{snapshot.current_stage_index + 1}/{plan.stage_count}",
            banner=banner,
            can_cancel=snapshot.status in (RunStatus.RUNNING, RunStatus.OVERRUN) and not snapshot.resolved,
            time_estimate=f"{_round_half_up(snapshot.elapsed_seconds)}s / {_format_seconds(plan.total_duration_seconds)}s",
        )

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "percent": self.percent,
            "headline": self.headline,
            "stage_icon": self.stage_icon,
            "stage_title": self.stage_title,
            "stage_description": self.stage_description,
            "stage_position": self.stage_position,
            "banner": self.banner,
            "can_cancel": self.can_cancel,
            "time_estimate": self.time_estimate,
        }
