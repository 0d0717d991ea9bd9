from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

import structlog
from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from mealgen.core.config.settings import settings
from mealgen.core.engine.clock import AsyncioClock
from mealgen.core.engine.plan import StageSpec
from mealgen.core.engine.stages import StageProfile
from mealgen.core.errors import InvalidConfiguration, SessionNotFound
from mealgen.core.session.registry import SessionRegistry
from mealgen.core.session.session import GenerationSession, open_session

log = structlog.get_logger()

router = APIRouter(tags=["generations"])

# In-process sessions (single-process dev)
_registry = SessionRegistry()

MealType = Literal["breakfast", "lunch", "dinner"]


def live_sessions() -> int:
    return len(_registry)


def shutdown_sessions() -> int:
    return _registry.close_all()


# =========================
# Schemas
# =========================

class CreateGenerationRequest(BaseModel):
    profile: Optional[StageProfile] = Field(default=None, description="Named stage table")
    stages: Optional[list[StageSpec]] = Field(default=None, description="Explicit stage table (overrides profile)")
    tick_interval_seconds: Optional[float] = Field(default=None, description="Simulation resolution override")
    meal_type: Optional[MealType] = Field(default=None, description="Meal being generated (banner text only)")


class SnapshotModel(BaseModel):
    run_number: int
    status: str
    overall_progress_percent: float
    current_stage_index: int
    elapsed_seconds: float
    ticks: int
    resolved: bool = False


class StatusViewModel(BaseModel):
    status: str
    percent: int
    headline: str
    stage_icon: str
    stage_title: str
    stage_description: str
    stage_position: str
    banner: Optional[str] = None
    can_cancel: bool
    time_estimate: str


class ResolutionModel(BaseModel):
    success: bool
    reason: Optional[str] = None


class GenerationResponse(BaseModel):
    generation_id: str
    created_at_utc: datetime
    meal_type: Optional[str] = None
    snapshot: SnapshotModel
    view: StatusViewModel
    resolution: Optional[ResolutionModel] = None


class CancelGenerationResponse(BaseModel):
    generation_id: str
    cancelled: bool
    snapshot: SnapshotModel


class GenerationsListResponse(BaseModel):
    generations: list[GenerationResponse]


def _to_response(session: GenerationSession) -> GenerationResponse:
    resolution = None
    if session.resolution is not None:
        resolution = ResolutionModel(success=session.resolution.success, reason=session.resolution.reason)

    return GenerationResponse(
        generation_id=session.generation_id,
        created_at_utc=session.created_at_utc,
        meal_type=session.meal_type,
        snapshot=SnapshotModel(**session.snapshot.to_dict()),
        view=StatusViewModel(**session.view().to_dict()),
        resolution=resolution,
    )


def _get_or_404(generation_id: str) -> GenerationSession:
    try:
        return _registry.get(generation_id)
    except SessionNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))


# =========================
# Routes
# =========================
# async: sessions tick on the event loop that serves the app

@router.post("/generations", response_model=GenerationResponse, status_code=201)
async def create_generation(payload: CreateGenerationRequest) -> GenerationResponse:
    stages = None
    if payload.stages is not None:
        stages = [s.model_dump() for s in payload.stages]

    try:
        session = open_session(
            clock=AsyncioClock(),
            app_settings=settings,
            profile=payload.profile,
            stages=stages,
            tick_interval_seconds=payload.tick_interval_seconds,
            meal_type=payload.meal_type,
        )
    except InvalidConfiguration as e:
        raise HTTPException(status_code=422, detail=str(e))

    _registry.add(session)
    log.info("api.generation_created", generation_id=session.generation_id)
    return _to_response(session)


@router.get("/generations", response_model=GenerationsListResponse)
async def list_generations() -> GenerationsListResponse:
    return GenerationsListResponse(generations=[_to_response(s) for s in _registry.list()])


@router.get("/generations/{generation_id}", response_model=GenerationResponse)
async def get_generation(generation_id: str) -> GenerationResponse:
    return _to_response(_get_or_404(generation_id))


@router.post("/generations/{generation_id}/cancel", response_model=CancelGenerationResponse)
async def cancel_generation(generation_id: str) -> CancelGenerationResponse:
    session = _get_or_404(generation_id)
    cancelled = session.cancel()
    log.info("api.generation_cancel", generation_id=generation_id, cancelled=cancelled)
    return CancelGenerationResponse(
        generation_id=generation_id,
        cancelled=cancelled,
        snapshot=SnapshotModel(**session.snapshot.to_dict()),
    )


@router.delete("/generations/{generation_id}", status_code=204)
async def delete_generation(generation_id: str) -> None:
    try:
        session = _registry.remove(generation_id)
    except SessionNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    session.close()
