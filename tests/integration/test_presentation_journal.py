from __future__ import annotations

from pathlib import Path

import structlog

from mealgen.core.config.settings import AppSettings
from mealgen.core.engine.advance import OVERRUN_REASON
from mealgen.core.engine.clock import ManualClock
from mealgen.core.engine.engine import ProgressEngine
from mealgen.core.engine.plan import build_plan
from mealgen.core.engine.stages import MEAL_MODAL_STAGES, Stage
from mealgen.core.engine.state import ProgressSnapshot, RunStatus
from mealgen.core.session.session import open_session
from mealgen.presentation.status import FAILED_HEADLINE, OVERRUN_MESSAGE, StatusView
from mealgen.storage.jsonl import EventLogComponent, JsonlEventStore


def _snap(status: RunStatus, *, percent: float = 0.0, index: int = 0, elapsed: float = 0.0) -> ProgressSnapshot:
    return ProgressSnapshot(
        run_number=1,
        status=status,
        overall_progress_percent=percent,
        current_stage_index=index,
        elapsed_seconds=elapsed,
        ticks=int(round(elapsed * 10)),
    )


def test_view_while_running() -> None:
    plan, _ = build_plan(MEAL_MODAL_STAGES)
    view = StatusView.from_snapshot(_snap(RunStatus.RUNNING, percent=31.8, index=2, elapsed=3.5), plan)

    assert view.headline == "Creating Your Recipe"
    assert view.percent == 32
    assert view.stage_title == "Creating Your Recipe"
    assert view.stage_icon == "✨"
    assert view.stage_position == "3/5"
    assert view.banner is None
    assert view.can_cancel is True
    assert view.time_estimate == "4s / 11s"


def test_view_on_completion_mentions_meal() -> None:
    plan, _ = build_plan(MEAL_MODAL_STAGES)
    view = StatusView.from_snapshot(
        _snap(RunStatus.COMPLETED, percent=100.0, index=4, elapsed=11.0),
        plan,
        meal_type="dinner",
    )

    assert view.headline == "Recipe Created!"
    assert view.percent == 100
    assert view.banner is not None and "dinner" in view.banner
    assert view.can_cancel is False


def test_overrun_reads_as_delay_not_error() -> None:
    plan, _ = build_plan(MEAL_MODAL_STAGES)
    view = StatusView.from_snapshot(_snap(RunStatus.OVERRUN, percent=100.0, index=3, elapsed=14.1), plan)

    assert view.headline == "Generation Taking Longer"
    assert view.banner == OVERRUN_MESSAGE
    assert view.can_cancel is True
    assert view.to_dict()["status"] == "overrun"


def test_half_seconds_and_percents_round_up() -> None:
    plan, _ = build_plan(MEAL_MODAL_STAGES)

    early = StatusView.from_snapshot(_snap(RunStatus.RUNNING, percent=12.5, elapsed=0.5), plan)
    later = StatusView.from_snapshot(_snap(RunStatus.RUNNING, percent=22.5, index=1, elapsed=2.5), plan)

    assert early.time_estimate == "1s / 11s"
    assert early.percent == 13
    assert later.time_estimate == "3s / 11s"
    assert later.percent == 23


def test_resolved_overrun_reads_as_failed_and_not_cancellable() -> None:
    clock = ManualClock()
    engine = ProgressEngine(
        clock=clock,
        stages=[Stage(id="slow", title="Slow", description="", duration_seconds=10.0)],
        total_duration_seconds=1.0,
    )
    resolutions: list[tuple[bool, object]] = []
    engine.on_resolved(lambda success, reason: resolutions.append((success, reason)))

    engine.start()
    clock.advance(4.1)
    waiting = StatusView.from_snapshot(engine.snapshot, engine.plan)
    assert waiting.banner == OVERRUN_MESSAGE
    assert waiting.can_cancel is True
    assert engine.snapshot.resolved is False

    clock.advance(6.0)
    assert resolutions == [(False, OVERRUN_REASON)]

    snap = engine.snapshot
    view = StatusView.from_snapshot(snap, engine.plan)
    assert snap.status is RunStatus.OVERRUN
    assert snap.resolved is True
    assert snap.to_dict()["resolved"] is True
    assert view.headline == FAILED_HEADLINE
    assert view.banner == OVERRUN_REASON
    assert view.can_cancel is False
    assert engine.cancel() is False


def test_journal_records_full_run_in_order(tmp_path: Path) -> None:
    store = JsonlEventStore(path=tmp_path / "journal" / "run.jsonl")
    clock = ManualClock()
    engine = ProgressEngine(clock=clock, components=[EventLogComponent(store=store)])

    engine.start()
    clock.advance(13.0)
    store.close()

    events = store.iter_events()
    types = [e["event_type"] for e in events]

    assert types[0] == "generation.run_started"
    assert types[1] == "generation.snapshot"
    assert types[-1] == "generation.run_resolved"
    assert types.count("generation.stage_changed") == 4
    assert types.count("generation.run_completed") == 1
    assert types.count("generation.snapshot") == 111

    sequences = [e["sequence"] for e in events]
    assert sequences == sorted(sequences)
    assert len(set(sequences)) == len(sequences)

    assert events[1]["snapshot"]["status"] == "running"
    assert events[-1]["success"] is True


def test_session_tracks_resolution_and_closes(tmp_path: Path) -> None:
    clock = ManualClock()
    app_settings = AppSettings(journal_dir=tmp_path, completion_delay_seconds=0.5)

    session = open_session(
        clock=clock,
        app_settings=app_settings,
        stages=[Stage(id="only", title="Only", description="", duration_seconds=1.0)],
        meal_type="lunch",
    )
    assert session.snapshot.status is RunStatus.RUNNING
    assert session.journal is not None and session.journal.path.parent == tmp_path

    clock.advance(1.0)
    assert session.resolution is None
    clock.advance(0.5)
    assert session.resolution is not None and session.resolution.success is True
    assert "lunch" in (session.view().banner or "")

    session.close()
    session.close()

    assert session.engine.wiring is not None
    assert len(session.journal.iter_events()) > 0


def test_session_close_cancels_running_engine() -> None:
    clock = ManualClock()
    session = open_session(clock=clock, app_settings=AppSettings(), profile="compact")

    clock.advance(2.0)
    session.close()

    assert session.snapshot.status is RunStatus.CANCELLED
    clock.advance(60.0)
    assert session.resolution is None


def test_session_close_unbinds_generation_id() -> None:
    session = open_session(clock=ManualClock(), app_settings=AppSettings(), profile="compact")
    assert structlog.contextvars.get_contextvars()["generation_id"] == session.generation_id

    session.close()

    assert "generation_id" not in structlog.contextvars.get_contextvars()
