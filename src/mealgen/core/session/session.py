from __future__ import annotations

import secrets
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional

import structlog

from mealgen.core.config.settings import AppSettings
from mealgen.core.engine.clock import Clock
from mealgen.core.engine.engine import ProgressEngine
from mealgen.core.engine.plan import StageLike
from mealgen.core.engine.state import ProgressSnapshot
from mealgen.core.logging.setup import bind_context, unbind_context
from mealgen.presentation.status import StatusView
from mealgen.storage.jsonl import EventLogComponent, JsonlEventStore

log = structlog.get_logger()


def new_generation_id(now: Optional[datetime] = None) -> str:
    """
    Sortable, collision-resistant id: <UTC timestamp>_<8 hex chars>.
    """
    created = now or datetime.now(timezone.utc)
    return f"{created.strftime('%Y%m%dT%H%M%SZ')}_{secrets.token_hex(4)}"


@dataclass(frozen=True, slots=True)
class Resolution:
    success: bool
    reason: Optional[str] = None


@dataclass(slots=True)
class GenerationSession:
    """
    One engine + its optional journal, as owned by the HTTP service.
    """

    generation_id: str
    engine: ProgressEngine
    created_at_utc: datetime
    meal_type: Optional[str] = None
    journal: Optional[JsonlEventStore] = None
    resolution: Optional[Resolution] = None
    _closed: bool = field(default=False, repr=False)

    @property
    def snapshot(self) -> ProgressSnapshot:
        return self.engine.snapshot

    def view(self) -> StatusView:
        return StatusView.from_snapshot(self.engine.snapshot, self.engine.plan, meal_type=self.meal_type)

    def cancel(self) -> bool:
        return self.engine.cancel()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.engine.cancel()
        if self.engine.wiring is not None:
            self.engine.wiring.unwire()
        if self.journal is not None:
            self.journal.close()
        unbind_context("generation_id")

    def _on_resolved(self, success: bool, reason: Optional[str]) -> None:
        self.resolution = Resolution(success=success, reason=reason)
        log.info("session.resolved", generation_id=self.generation_id, success=success)


def open_session(
    *,
    clock: Clock,
    app_settings: AppSettings,
    profile: Optional[str] = None,
    stages: Optional[Iterable[StageLike]] = None,
    tick_interval_seconds: Optional[float] = None,
    meal_type: Optional[str] = None,
    journal_dir: Optional[Path] = None,
) -> GenerationSession:
    """
    Build and start a session. InvalidConfiguration propagates before anything runs.
    """
    created = datetime.now(timezone.utc)
    generation_id = new_generation_id(created)

    journal_root = journal_dir if journal_dir is not None else app_settings.journal_dir
    journal = JsonlEventStore(path=journal_root / f"{generation_id}.jsonl") if journal_root is not None else None

    engine = ProgressEngine(
        clock=clock,
        stages=stages,
        profile=profile or app_settings.stage_profile,
        tick_interval_seconds=(
            tick_interval_seconds if tick_interval_seconds is not None else app_settings.tick_interval_seconds
        ),
        overrun_grace_seconds=app_settings.overrun_grace_seconds,
        completion_delay_seconds=app_settings.completion_delay_seconds,
        overrun_delay_seconds=app_settings.overrun_delay_seconds,
        components=[EventLogComponent(store=journal)] if journal is not None else None,
    )

    session = GenerationSession(
        generation_id=generation_id,
        engine=engine,
        created_at_utc=created,
        meal_type=meal_type,
        journal=journal,
    )
    engine.on_resolved(session._on_resolved)

    bind_context(generation_id=generation_id)
    engine.start()
    log.info("session.opened", generation_id=generation_id, meal_type=meal_type, journal=journal is not None)
    return session
