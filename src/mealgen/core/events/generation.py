from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Optional

from mealgen.core.engine.state import ProgressSnapshot
from mealgen.core.events.base import Event


@dataclass(frozen=True, slots=True)
class RunStarted(Event):
    """
    Emitted when start() created a fresh run.
    """

    event_type: ClassVar[str] = "generation.run_started"

    run_number: int
    stage_count: int
    total_duration_seconds: float
    plan_hash: str


@dataclass(frozen=True, slots=True)
class SnapshotPublished(Event):
    """
    Emitted on start, on every tick and on every status transition.
    """

    event_type: ClassVar[str] = "generation.snapshot"

    snapshot: ProgressSnapshot


@dataclass(frozen=True, slots=True)
class StageChanged(Event):
    """
    Emitted once per stage boundary (index only ever grows by one).
    """

    event_type: ClassVar[str] = "generation.stage_changed"

    run_number: int
    previous_index: int
    current_index: int
    stage_id: str


@dataclass(frozen=True, slots=True)
class RunCompleted(Event):
    """
    Last stage consumed; resolution follows after the completion delay.
    """

    event_type: ClassVar[str] = "generation.run_completed"

    run_number: int
    elapsed_seconds: float


@dataclass(frozen=True, slots=True)
class RunOverrun(Event):
    """
    Elapsed time exceeded the budget plus grace window without completing.
    """

    event_type: ClassVar[str] = "generation.run_overrun"

    run_number: int
    elapsed_seconds: float
    budget_seconds: float


@dataclass(frozen=True, slots=True)
class RunCancelled(Event):
    """
    Run torn down by cancel() or by a newer start(). Never followed by a resolution.
    """

    event_type: ClassVar[str] = "generation.run_cancelled"

    run_number: int
    reason: str


@dataclass(frozen=True, slots=True)
class RunResolved(Event):
    """
    Terminal outcome, delivered exactly once per completed/overrun run.
    """

    event_type: ClassVar[str] = "generation.run_resolved"

    run_number: int
    success: bool
    reason: Optional[str] = None
