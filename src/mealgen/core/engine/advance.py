from __future__ import annotations

from dataclasses import replace

from mealgen.core.engine.plan import GenerationPlan
from mealgen.core.engine.state import GenerationRun, ProgressSnapshot, RunStatus

# Absorbs float error of ticks * interval (0.1 * 15 == 1.5000000000000002, etc.)
TIME_EPSILON = 1e-9

OVERRUN_REASON = "Generation took longer than expected. Please try again."


def start_run(*, run_number: int) -> GenerationRun:
    """
    Fresh run: tick 0, first stage active, progress 0.
    """
    if run_number <= 0:
        raise ValueError("run_number must be > 0")
    return GenerationRun(run_number=run_number, status=RunStatus.RUNNING)


def advance(run: GenerationRun, plan: GenerationPlan) -> GenerationRun:
    """
    Apply exactly one tick of plan.tick_interval_seconds.

    Pure: returns a new run, never mutates its input. Settled runs are returned unchanged.

    Rules:
      - elapsed and stage-elapsed are recomputed from tick counts (no accumulated drift)
      - progress = min(elapsed / total, 1) * 100, a function of time only
      - at most one stage advance per tick; stage-elapsed resets to 0 (overshoot is not carried)
      - last stage consumed => completed with progress forced to exactly 100
      - elapsed > total + grace while still running => overrun
    """
    if run.status.is_settled:
        return run

    interval = plan.tick_interval_seconds
    ticks = run.ticks + 1
    elapsed = ticks * interval
    progress = min(elapsed / plan.total_duration_seconds, 1.0) * 100.0

    stage_index = run.current_stage_index
    stage_started_tick = run.stage_started_tick
    stage_elapsed = (ticks - stage_started_tick) * interval
    status = RunStatus.RUNNING

    active = plan.stages[stage_index]
    if stage_elapsed + TIME_EPSILON >= active.duration_seconds:
        if stage_index < plan.last_stage_index:
            stage_index += 1
            stage_started_tick = ticks
            stage_elapsed = 0.0
        else:
            status = RunStatus.COMPLETED
            progress = 100.0

    if status is RunStatus.RUNNING and elapsed > plan.overrun_after_seconds + TIME_EPSILON:
        status = RunStatus.OVERRUN

    return replace(
        run,
        status=status,
        ticks=ticks,
        elapsed_seconds=elapsed,
        current_stage_index=stage_index,
        stage_started_tick=stage_started_tick,
        stage_elapsed_seconds=stage_elapsed,
        overall_progress_percent=progress,
    )


def cancel_run(run: GenerationRun) -> GenerationRun:
    return replace(run, status=RunStatus.CANCELLED)


def mark_resolved(run: GenerationRun) -> GenerationRun:
    if run.status not in (RunStatus.COMPLETED, RunStatus.OVERRUN):
        raise RuntimeError(f"cannot resolve a run in status {run.status.value!r}")
    return replace(run, resolved=True)


def replay(plan: GenerationPlan, *, ticks: int, run_number: int = 1) -> list[ProgressSnapshot]:
    """
    Snapshots after each of `ticks` ticks (stops early once the run settles).

    The engine publishes exactly these values for the same plan, which makes
    runs reproducible offline.
    """
    run = start_run(run_number=run_number)
    out: list[ProgressSnapshot] = []
    for _ in range(ticks):
        if run.status.is_settled:
            break
        run = advance(run, plan)
        out.append(run.snapshot())
    return out
