from __future__ import annotations

from fastapi import APIRouter

from mealgen.api.routes.generations import router as generations_router
from mealgen.api.routes.health import router as health_router

# Top-level API router
router = APIRouter()

# Route composition
router.include_router(health_router)
router.include_router(generations_router)
