from __future__ import annotations

from fastapi import APIRouter

from src.api.dashboards import router as dashboards_router
from src.api.health import router as health_router


api_router = APIRouter()
api_router.include_router(health_router)
api_router.include_router(dashboards_router)
