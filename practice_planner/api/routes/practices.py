"""
Practice read endpoints.

Everything a planner screen loads for one practice: its rounds, the
summary counts and the readiness diagnostics. Reads apply the same
access rule as writes and live updates.
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel, Field

from ...core.practice.access import Caller, ensure_practice_access
from ...core.practice.errors import PracticePlanningError
from ...core.practice.models import Practice, utcnow
from ...core.practice.summary import build_practice_summary
from ...core.validation.engine import validate
from ...core.validation.models import ValidationContext
from ...infrastructure.snowflake.repositories import PracticeRepository
from ..dependencies import (
    AuthenticatedUser,
    CallerDep,
    PracticeRepositoryDep,
    SetRepositoryDep,
    SettingsDep,
)
from ..errors import to_http_exception
from .sets import SetResponse

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Response Models
# ---------------------------------------------------------------------------

class PracticeSummaryResponse(BaseModel):
    """Counts shown next to a practice in lists."""
    id: str
    club_id: str
    scheduled_at: str
    status: str
    is_private: bool
    planned_by_id: Optional[str] = None
    sets_count: int
    attending_count: int
    not_attending_count: int
    unconfirmed_count: int


class DiagnosticResponse(BaseModel):
    """One readiness finding."""
    code: str = Field(description="Machine-readable finding code")
    message: str
    severity: str = Field(description="error, warning or info")
    count: Optional[int] = None
    payload: Optional[Any] = None


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get(
    "/{practice_id}/sets",
    response_model=list[SetResponse],
    summary="List sets",
    description="Sets of a practice in round order, optionally for one location",
)
async def list_practice_sets(
    practice_id: str,
    api_key: AuthenticatedUser,
    caller: CallerDep,
    practices: PracticeRepositoryDep,
    sets: SetRepositoryDep,
    location_id: Optional[str] = Query(None, description="Only sets at this location"),
) -> list[SetResponse]:
    _load_practice(practices, practice_id, caller)
    return [
        SetResponse.from_domain(practice_set)
        for practice_set in sets.list_sets(practice_id, location_id=location_id)
    ]


@router.get(
    "/{practice_id}/summary",
    response_model=PracticeSummaryResponse,
    summary="Practice summary",
    description="Set and attendance counts for a practice",
)
async def get_practice_summary(
    practice_id: str,
    api_key: AuthenticatedUser,
    caller: CallerDep,
    practices: PracticeRepositoryDep,
    sets: SetRepositoryDep,
) -> PracticeSummaryResponse:
    practice = _load_practice(practices, practice_id, caller)
    summary = build_practice_summary(
        practice,
        sets_count=sets.count_sets(practice.id),
        attendances=practices.list_attendances(practice.id),
        dogs=practices.list_dogs(practice.club_id),
    )
    return PracticeSummaryResponse.model_validate(summary.to_dict())


@router.get(
    "/{practice_id}/validation",
    response_model=list[DiagnosticResponse],
    summary="Validate practice",
    description="Readiness diagnostics, errors first",
)
async def validate_practice(
    practice_id: str,
    api_key: AuthenticatedUser,
    caller: CallerDep,
    practices: PracticeRepositoryDep,
    sets: SetRepositoryDep,
    settings: SettingsDep,
) -> list[DiagnosticResponse]:
    practice = _load_practice(practices, practice_id, caller)
    snapshot = practices.load_snapshot(practice, sets.list_sets(practice.id))

    club = practices.get_club(practice.club_id)
    context = ValidationContext(
        now=utcnow(),
        dogs={dog.id: dog for dog in practices.list_dogs(practice.club_id)},
        handlers={handler.id: handler for handler in practices.list_handlers(practice.club_id)},
        ideal_sets_per_dog=club.ideal_sets_per_dog if club else settings.default_ideal_sets_per_dog,
        min_confirmed_dogs=settings.min_confirmed_dogs,
        max_months_ahead=settings.max_months_ahead,
    )

    diagnostics = validate(snapshot, context)
    logger.info(
        "Practice validated",
        extra={
            "practice_id": practice.id,
            "diagnostics": [d.code for d in diagnostics],
        },
    )
    return [DiagnosticResponse.model_validate(d.to_dict()) for d in diagnostics]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _load_practice(practices: PracticeRepository, practice_id: str, caller: Caller) -> Practice:
    practice = practices.get_practice(practice_id)
    if practice is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Practice {practice_id} not found",
        )
    try:
        ensure_practice_access(caller, practice)
    except PracticePlanningError as e:
        raise to_http_exception(e) from e
    return practice
