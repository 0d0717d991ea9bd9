from __future__ import annotations

from functools import partial
from typing import Callable, Iterable, Optional, Sequence

import structlog

from mealgen.core.engine.advance import OVERRUN_REASON, advance, cancel_run, mark_resolved, start_run
from mealgen.core.engine.clock import Clock, Timer
from mealgen.core.engine.plan import (
    DEFAULT_COMPLETION_DELAY_SECONDS,
    DEFAULT_OVERRUN_DELAY_SECONDS,
    DEFAULT_OVERRUN_GRACE_SECONDS,
    DEFAULT_TICK_INTERVAL_SECONDS,
    GenerationPlan,
    GenerationPlanSpec,
    StageLike,
    build_plan,
)
from mealgen.core.engine.router import EngineRouter, EventComponent, RouterWiring
from mealgen.core.engine.stages import Stage, stages_for_profile
from mealgen.core.engine.state import IDLE_SNAPSHOT, GenerationRun, ProgressSnapshot, RunStatus
from mealgen.core.events.base import Event
from mealgen.core.events.bus import EventBus, Subscription
from mealgen.core.events.generation import (
    RunCancelled,
    RunCompleted,
    RunOverrun,
    RunResolved,
    RunStarted,
    SnapshotPublished,
    StageChanged,
)
from mealgen.core.logging.setup import bind_context

log = structlog.get_logger()

TickHandler = Callable[[ProgressSnapshot], None]
ResolvedHandler = Callable[[bool, Optional[str]], None]


class ProgressEngine:
    """
    Simulated generation progress, driven by a Clock.

    The engine owns exactly one run at a time. Each timer tick calls the pure
    advance() and publishes the result on the EventBus; terminal transitions
    stop the timer synchronously and schedule the single resolution.

    Observers:
      - on_tick(handler): ProgressSnapshot on start, every tick, every transition
      - on_resolved(handler): (success, reason) once per completed/overrun run,
        never for a cancelled one
    """

    def __init__(
        self,
        *,
        clock: Clock,
        stages: Optional[Iterable[StageLike]] = None,
        profile: str = "meal_modal",
        tick_interval_seconds: float = DEFAULT_TICK_INTERVAL_SECONDS,
        overrun_grace_seconds: float = DEFAULT_OVERRUN_GRACE_SECONDS,
        completion_delay_seconds: float = DEFAULT_COMPLETION_DELAY_SECONDS,
        overrun_delay_seconds: float = DEFAULT_OVERRUN_DELAY_SECONDS,
        total_duration_seconds: Optional[float] = None,
        bus: Optional[EventBus] = None,
        components: Optional[Iterable[EventComponent]] = None,
    ) -> None:
        self._clock = clock
        self._bus = bus or EventBus()

        self._total_override = total_duration_seconds
        self._plan, self._plan_spec = build_plan(
            stages if stages is not None else stages_for_profile(profile),
            tick_interval_seconds=tick_interval_seconds,
            overrun_grace_seconds=overrun_grace_seconds,
            completion_delay_seconds=completion_delay_seconds,
            overrun_delay_seconds=overrun_delay_seconds,
            total_duration_seconds=total_duration_seconds,
        )
        self._active_plan = self._plan

        self._run: Optional[GenerationRun] = None
        self._run_count = 0
        self._sequence = 0
        self._timer: Optional[Timer] = None
        self._resolution_timer: Optional[Timer] = None

        self._wiring: Optional[RouterWiring] = None
        if components is not None:
            self._wiring = EngineRouter(bus=self._bus).register(components)

    # ---------------- Introspection ----------------

    @property
    def bus(self) -> EventBus:
        return self._bus

    @property
    def plan(self) -> GenerationPlan:
        """Plan of the current (or most recent) run."""
        return self._active_plan

    @property
    def stages(self) -> Sequence[Stage]:
        return self._active_plan.stages

    @property
    def run(self) -> Optional[GenerationRun]:
        return self._run

    @property
    def status(self) -> RunStatus:
        return self._run.status if self._run is not None else RunStatus.IDLE

    @property
    def snapshot(self) -> ProgressSnapshot:
        return self._run.snapshot() if self._run is not None else IDLE_SNAPSHOT

    @property
    def timer_active(self) -> bool:
        return self._timer is not None and self._timer.active

    @property
    def resolution_pending(self) -> bool:
        return self._resolution_timer is not None and self._resolution_timer.active

    @property
    def wiring(self) -> Optional[RouterWiring]:
        return self._wiring

    # ---------------- Subscriptions ----------------

    def on_tick(self, handler: TickHandler) -> Subscription:
        def _on_snapshot(e: Event) -> None:
            handler(e.snapshot)

        return self._bus.subscribe(event_type=SnapshotPublished.event_type, handler=_on_snapshot)

    def on_resolved(self, handler: ResolvedHandler) -> Subscription:
        def _on_resolved(e: Event) -> None:
            handler(e.success, e.reason)

        return self._bus.subscribe(event_type=RunResolved.event_type, handler=_on_resolved)

    def unsubscribe(self, subscription: Subscription) -> bool:
        return self._bus.unsubscribe(subscription)

    # ---------------- Operations ----------------

    def start(
        self,
        stages: Optional[Iterable[StageLike]] = None,
        tick_interval_seconds: Optional[float] = None,
    ) -> ProgressSnapshot:
        """
        Begin a fresh run, replacing any active one.

        Overrides apply to this run only. Invalid configuration raises
        InvalidConfiguration before anything is torn down or armed.
        """
        plan, spec = self._resolve_plan(stages=stages, tick_interval_seconds=tick_interval_seconds)

        if self._is_live(self._run):
            self._teardown(reason="superseded")

        self._run_count += 1
        self._active_plan = plan
        run = start_run(run_number=self._run_count)
        self._run = run

        bind_context(run=run.run_number, component="engine")
        if not plan.budget_matches_stages:
            log.warning(
                "engine.budget_mismatch",
                budget_seconds=plan.total_duration_seconds,
                stage_total_seconds=plan.stage_duration_total,
            )

        # armed before publishing: a handler may cancel() right away
        self._timer = self._clock.call_every(plan.tick_interval_seconds, self.tick)

        log.info(
            "engine.started",
            stages=plan.stage_count,
            total_duration_seconds=plan.total_duration_seconds,
            tick_interval_seconds=plan.tick_interval_seconds,
        )

        self._bus.publish_many(
            [
                RunStarted.create(
                    run_number=run.run_number,
                    stage_count=plan.stage_count,
                    total_duration_seconds=plan.total_duration_seconds,
                    plan_hash=spec.config_hash(),
                    sequence=self._next_sequence(),
                ),
                self._snapshot_event(run),
            ]
        )
        return run.snapshot()

    def tick(self) -> ProgressSnapshot:
        """
        Apply one tick. Ignored unless the current run is running.
        """
        before = self._run
        if before is None or before.status is not RunStatus.RUNNING:
            return self.snapshot

        plan = self._active_plan
        after = advance(before, plan)
        self._run = after

        # one batch: observers re-entering the engine are queued behind all of it
        events: list[Event] = [self._snapshot_event(after)]

        if after.current_stage_index != before.current_stage_index:
            stage = plan.stages[after.current_stage_index]
            log.info(
                "engine.stage_changed",
                stage_index=after.current_stage_index,
                stage_id=stage.id,
                elapsed_seconds=after.elapsed_seconds,
            )
            events.append(
                StageChanged.create(
                    run_number=after.run_number,
                    previous_index=before.current_stage_index,
                    current_index=after.current_stage_index,
                    stage_id=stage.id,
                    sequence=self._next_sequence(),
                )
            )

        if after.status is RunStatus.COMPLETED:
            self._stop_timer()
            self._schedule_resolution(after, success=True, reason=None, delay=plan.completion_delay_seconds)
            log.info("engine.completed", elapsed_seconds=after.elapsed_seconds, ticks=after.ticks)
            events.append(
                RunCompleted.create(
                    run_number=after.run_number,
                    elapsed_seconds=after.elapsed_seconds,
                    sequence=self._next_sequence(),
                )
            )

        elif after.status is RunStatus.OVERRUN:
            self._stop_timer()
            self._schedule_resolution(after, success=False, reason=OVERRUN_REASON, delay=plan.overrun_delay_seconds)
            log.warning(
                "engine.overrun",
                elapsed_seconds=after.elapsed_seconds,
                budget_seconds=plan.total_duration_seconds,
                grace_seconds=plan.overrun_grace_seconds,
            )
            events.append(
                RunOverrun.create(
                    run_number=after.run_number,
                    elapsed_seconds=after.elapsed_seconds,
                    budget_seconds=plan.total_duration_seconds,
                    sequence=self._next_sequence(),
                )
            )

        self._bus.publish_many(events)

        return after.snapshot()

    def cancel(self) -> bool:
        """
        Stop the current run without resolving it.

        Returns False (and notifies nobody) when there is nothing to cancel:
        idle, already cancelled, or already resolved.
        """
        if not self._is_live(self._run):
            log.debug("engine.cancel_ignored", status=self.status)
            return False

        self._teardown(reason="cancelled")
        return True

    # ---------------- Internals ----------------

    def _resolve_plan(
        self,
        *,
        stages: Optional[Iterable[StageLike]],
        tick_interval_seconds: Optional[float],
    ) -> tuple[GenerationPlan, GenerationPlanSpec]:
        if stages is None and tick_interval_seconds is None:
            return self._plan, self._plan_spec

        base = self._plan
        return build_plan(
            stages if stages is not None else base.stages,
            tick_interval_seconds=(
                tick_interval_seconds if tick_interval_seconds is not None else base.tick_interval_seconds
            ),
            overrun_grace_seconds=base.overrun_grace_seconds,
            completion_delay_seconds=base.completion_delay_seconds,
            overrun_delay_seconds=base.overrun_delay_seconds,
            # a new stage table gets its own budget
            total_duration_seconds=self._total_override if stages is None else None,
        )

    @staticmethod
    def _is_live(run: Optional[GenerationRun]) -> bool:
        if run is None or run.resolved:
            return False
        return run.status is not RunStatus.CANCELLED

    def _teardown(self, *, reason: str) -> None:
        run = self._run
        assert run is not None

        self._stop_timer()
        if self._resolution_timer is not None:
            self._resolution_timer.cancel()
            self._resolution_timer = None

        cancelled = cancel_run(run)
        self._run = cancelled

        log.info("engine.cancelled", reason=reason, previous_status=run.status, elapsed_seconds=run.elapsed_seconds)

        self._bus.publish_many(
            [
                self._snapshot_event(cancelled),
                RunCancelled.create(
                    run_number=cancelled.run_number,
                    reason=reason,
                    sequence=self._next_sequence(),
                ),
            ]
        )

    def _stop_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _schedule_resolution(self, run: GenerationRun, *, success: bool, reason: Optional[str], delay: float) -> None:
        self._resolution_timer = self._clock.call_later(
            delay,
            partial(self._resolve, run.run_number, success, reason),
        )

    def _resolve(self, run_number: int, success: bool, reason: Optional[str]) -> None:
        run = self._run
        # stale timer from a superseded/cancelled run
        if run is None or run.run_number != run_number or run.resolved:
            return
        if run.status not in (RunStatus.COMPLETED, RunStatus.OVERRUN):
            return

        self._run = mark_resolved(run)
        self._resolution_timer = None

        log.info("engine.resolved", success=success, reason=reason)
        self._bus.publish(
            RunResolved.create(
                run_number=run_number,
                success=success,
                reason=reason,
                sequence=self._next_sequence(),
            )
        )

    def _snapshot_event(self, run: GenerationRun) -> SnapshotPublished:
        return SnapshotPublished.create(
            snapshot=run.snapshot(),
            sequence=self._next_sequence(),
        )

    def _next_sequence(self) -> int:
        self._sequence += 1
        return self._sequence
