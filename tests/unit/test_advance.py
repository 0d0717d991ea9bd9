from __future__ import annotations

import pytest

from mealgen.core.engine.advance import (
    advance,
    cancel_run,
    mark_resolved,
    replay,
    start_run,
)
from mealgen.core.engine.plan import build_plan
from mealgen.core.engine.stages import MEAL_MODAL_STAGES, Stage
from mealgen.core.engine.state import RunStatus


def _plan(durations, *, tick=0.1, total=None):
    stages = [Stage(id=f"s{i}", title=f"Stage {i}", description="", duration_seconds=d) for i, d in enumerate(durations)]
    plan, _ = build_plan(stages, tick_interval_seconds=tick, total_duration_seconds=total)
    return plan


def test_nominal_table_completes_after_110_ticks() -> None:
    plan, _ = build_plan(MEAL_MODAL_STAGES)
    snaps = replay(plan, ticks=500)

    assert len(snaps) == 110, "run must settle exactly on the 110th tick"
    last = snaps[-1]
    assert last.status is RunStatus.COMPLETED
    assert last.overall_progress_percent == 100.0
    assert last.current_stage_index == 4
    assert all(s.status is RunStatus.RUNNING for s in snaps[:-1])


def test_stage_boundaries_land_on_exact_ticks() -> None:
    plan, _ = build_plan(MEAL_MODAL_STAGES)
    snaps = replay(plan, ticks=110)

    boundaries = [
        s.ticks
        for prev, s in zip(snaps, snaps[1:])
        if s.current_stage_index != prev.current_stage_index
    ]
    assert snaps[19].current_stage_index == 1
    assert boundaries == [20, 35, 75, 90]


def test_progress_and_elapsed_are_monotonic_and_bounded() -> None:
    plan, _ = build_plan(MEAL_MODAL_STAGES)
    snaps = replay(plan, ticks=110)

    for prev, cur in zip(snaps, snaps[1:]):
        assert cur.elapsed_seconds >= prev.elapsed_seconds
        assert cur.overall_progress_percent >= prev.overall_progress_percent
        assert cur.current_stage_index - prev.current_stage_index in (0, 1)

    assert all(0.0 <= s.overall_progress_percent <= 100.0 for s in snaps)
    assert max(s.current_stage_index for s in snaps) == plan.last_stage_index


def test_elapsed_is_derived_from_tick_count() -> None:
    plan = _plan([5.0])
    run = start_run(run_number=1)
    for _ in range(37):
        run = advance(run, plan)

    assert run.ticks == 37
    assert run.elapsed_seconds == 37 * 0.1
    assert run.stage_elapsed_seconds == 37 * 0.1


def test_stage_elapsed_resets_on_transition() -> None:
    plan = _plan([0.25, 1.0])
    run = start_run(run_number=1)
    for _ in range(3):
        run = advance(run, plan)

    # 0.3s consumed the 0.25s stage; overshoot is dropped
    assert run.current_stage_index == 1
    assert run.stage_elapsed_seconds == 0.0
    assert run.stage_started_tick == 3


def test_at_most_one_stage_advance_per_tick() -> None:
    plan = _plan([0.1, 0.1, 0.1], tick=1.0)
    snaps = replay(plan, ticks=10)

    assert [s.current_stage_index for s in snaps] == [1, 2, 2]
    assert snaps[-1].status is RunStatus.COMPLETED
    assert snaps[-1].ticks == 3


def test_overrun_when_budget_shorter_than_stages() -> None:
    plan = _plan([2.0, 2.0, 6.0], total=5.0)
    snaps = replay(plan, ticks=500)

    last = snaps[-1]
    assert last.status is RunStatus.OVERRUN
    assert last.ticks == 81, "overrun fires once elapsed exceeds budget + 3s grace"
    assert last.current_stage_index == 2
    assert last.overall_progress_percent == 100.0
    assert all(s.status is RunStatus.RUNNING for s in snaps[:-1])


def test_settled_runs_do_not_change() -> None:
    plan = _plan([1.0])
    run = start_run(run_number=1)
    run = cancel_run(advance(run, plan))

    assert advance(run, plan) is run


def test_replay_is_deterministic() -> None:
    plan, _ = build_plan(MEAL_MODAL_STAGES)
    assert replay(plan, ticks=110) == replay(plan, ticks=110)


def test_mark_resolved_only_for_outcomes() -> None:
    plan = _plan([0.1])
    done = advance(start_run(run_number=1), plan)
    assert done.status is RunStatus.COMPLETED
    assert mark_resolved(done).resolved is True

    with pytest.raises(RuntimeError):
        mark_resolved(start_run(run_number=1))


def test_run_number_must_be_positive() -> None:
    with pytest.raises(ValueError):
        start_run(run_number=0)


def test_only_running_is_unsettled() -> None:
    assert not RunStatus.RUNNING.is_settled
    assert all(s.is_settled for s in RunStatus if s is not RunStatus.RUNNING)
