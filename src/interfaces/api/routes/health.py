from __future__ import annotations

import time

from fastapi import APIRouter, Depends

from src.application.schemas.transform import HealthResponse, ReadyResponse
from src.interfaces.api.deps import get_app_settings
from src.shared.clock import utc_timestamp
from src.shared.config import Settings


router = APIRouter(tags=["health"])

_PROCESS_STARTED = time.monotonic()


def process_uptime() -> float:
    return round(time.monotonic() - _PROCESS_STARTED, 3)


@router.get("/health", response_model=HealthResponse)
def health(settings: Settings = Depends(get_app_settings)) -> HealthResponse:
    # liveness only: no dependency checks, no side effects
    return HealthResponse(
        status="healthy",
        timestamp=utc_timestamp(),
        uptime=process_uptime(),
        environment=settings.environment,
    )


@router.get("/ready", response_model=ReadyResponse)
def ready() -> ReadyResponse:
    return ReadyResponse(status="ready", timestamp=utc_timestamp())
