from __future__ import annotations

from fastapi import APIRouter
from pydantic import BaseModel

from mealgen.api.routes.generations import live_sessions
from mealgen.core.config.settings import settings

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """
    Minimal health check response (side-effect free).
    """

    status: str
    environment: str
    live_generations: int


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
def health() -> HealthResponse:
    return HealthResponse(
        status="ok",
        environment=settings.env,
        live_generations=live_sessions(),
    )
