"""
Liveness and readiness probes.

/health answers as long as the process is up. /health/ready also touches
the configuration, the database and the event bus, and answers 503 when
one of them is not usable.
"""

import logging
from typing import Any, Callable, Optional

from fastapi import APIRouter, Response, status
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel

from ... import __version__
from ...infrastructure.snowflake.repositories import PracticeRepository
from ..dependencies import EventBusDep, SettingsDep, open_connection

logger = logging.getLogger(__name__)

router = APIRouter()


class HealthResponse(BaseModel):
    status: str
    version: str
    details: dict[str, Any] = {}


class ReadinessCheck(BaseModel):
    """Outcome of one probe. `error` is set only when status is 'error'."""
    name: str
    status: str
    error: Optional[str] = None
    detail: Optional[str] = None


class ReadinessResponse(BaseModel):
    status: str
    version: str
    checks: list[ReadinessCheck]


def _probe(name: str, run: Callable[[], Optional[str]]) -> ReadinessCheck:
    try:
        note = run()
    except Exception as e:
        logger.error("Readiness probe failed", extra={"probe": name, "error": str(e)})
        return ReadinessCheck(name=name, status="error", error=str(e))
    return ReadinessCheck(name=name, status="ok", detail=note)


@router.get("", response_model=HealthResponse, summary="Process is alive")
async def health_check(settings: SettingsDep) -> HealthResponse:
    return HealthResponse(
        status="ok",
        version=__version__,
        details={"snowflake_mock_mode": settings.snowflake_mock_mode},
    )


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    summary="Service can take traffic",
    responses={503: {"model": ReadinessResponse, "description": "A dependency is not usable"}},
)
async def readiness_check(
    response: Response,
    settings: SettingsDep,
    bus: EventBusDep,
) -> ReadinessResponse:
    def configuration() -> Optional[str]:
        missing = settings.validate_required_fields()
        if missing:
            raise ValueError(f"not set: {', '.join(missing)}")
        return None

    def database() -> Optional[str]:
        # Connection failures are reported by this check.
        with open_connection(settings) as conn:
            PracticeRepository(conn).list_user_club_ids("__readiness__")
        return "in-memory" if settings.snowflake_mock_mode else None

    def event_bus() -> Optional[str]:
        return f"{bus.subscriber_count()} subscribers"

    checks = [
        _probe("configuration", configuration),
        await run_in_threadpool(_probe, "database", database),
        _probe("event_bus", event_bus),
    ]
    ready = all(check.status == "ok" for check in checks)
    if not ready:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return ReadinessResponse(
        status="ready" if ready else "not_ready",
        version=__version__,
        checks=checks,
    )
