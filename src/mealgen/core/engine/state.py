from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class RunStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    OVERRUN = "overrun"
    CANCELLED = "cancelled"

    @property
    def is_settled(self) -> bool:
        """No further tick may mutate the run."""
        return self is not RunStatus.RUNNING


@dataclass(frozen=True, slots=True)
class GenerationRun:
    """
    State of one simulation run.

    The engine is the only writer: every transition produces a new value
    (see advance.advance), so a run can be inspected, compared and replayed.

    - ticks: number of ticks applied; elapsed values are derived from it
    - stage_started_tick: tick at which the current stage became active
    - resolved: the terminal callback was delivered
    """

    run_number: int
    status: RunStatus = RunStatus.IDLE
    ticks: int = 0
    elapsed_seconds: float = 0.0
    current_stage_index: int = 0
    stage_started_tick: int = 0
    stage_elapsed_seconds: float = 0.0
    overall_progress_percent: float = 0.0
    resolved: bool = False

    def snapshot(self) -> "ProgressSnapshot":
        return ProgressSnapshot(
            run_number=self.run_number,
            status=self.status,
            overall_progress_percent=self.overall_progress_percent,
            current_stage_index=self.current_stage_index,
            elapsed_seconds=self.elapsed_seconds,
            ticks=self.ticks,
            resolved=self.resolved,
        )


@dataclass(frozen=True, slots=True)
class ProgressSnapshot:
    """
    What observers see on every tick / transition.

    No wall-clock data: identical tick sequences produce identical snapshots.
    """

    run_number: int
    status: RunStatus
    overall_progress_percent: float
    current_stage_index: int
    elapsed_seconds: float
    ticks: int
    # outcome delivered to on_resolved handlers
    resolved: bool = False

    def to_dict(self) -> dict:
        return {
            "run_number": self.run_number,
            "status": self.status.value,
            "overall_progress_percent": self.overall_progress_percent,
            "current_stage_index": self.current_stage_index,
            "elapsed_seconds": self.elapsed_seconds,
            "ticks": self.ticks,
            "resolved": self.resolved,
        }


IDLE_SNAPSHOT = ProgressSnapshot(
    run_number=0,
    status=RunStatus.IDLE,
    overall_progress_percent=0.0,
    current_stage_index=0,
    elapsed_seconds=0.0,
    ticks=0,
)
