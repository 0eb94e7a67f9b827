"""
Set batch API endpoints.

Sets (rounds) and their rosters only change through these two batch
endpoints. A batch is all-or-nothing: either every change in it is
committed and broadcast to live viewers, or nothing is written and the
caller gets one error naming what was wrong.
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, status
from pydantic import BaseModel, Field

from ...core.practice.errors import PracticePlanningError
from ...core.practice.models import (
    MUTABLE_SET_FIELDS,
    Lane,
    PracticeSet,
    SetDelta,
    SetDogAssignment,
    SetRating,
    SetType,
)
from ..dependencies import AuthenticatedUser, CallerDep, SetBatchServiceDep
from ..errors import to_http_exception

logger = logging.getLogger(__name__)

router = APIRouter()

# Columns that cannot be cleared; an explicit null for these means "leave as is".
_NON_NULLABLE_FIELDS = ("practice_id", "location_id", "index", "is_warmup")


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class SetDogUpdateModel(BaseModel):
    """One roster entry in a set update."""
    dog_id: str = Field(description="Dog to place in the round")
    index: int = Field(description="Position within the lane")
    lane: Optional[Lane] = Field(None, description="Required at double-lane locations")


class SetUpdateModel(BaseModel):
    """
    Create (no id) or update (id present) one set.

    Only fields present in the request body are applied. Sending `dogs`
    replaces the whole roster.
    """
    id: Optional[str] = Field(None, description="Set to update; omit to create")
    practice_id: Optional[str] = None
    location_id: Optional[str] = None
    index: Optional[int] = Field(None, description="Round number")
    type: Optional[SetType] = None
    type_custom: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = Field(None, max_length=4000)
    is_warmup: Optional[bool] = None
    rating: Optional[SetRating] = None
    dogs: Optional[list[SetDogUpdateModel]] = None

    def to_delta(self) -> SetDelta:
        provided = self.model_fields_set
        changes: dict[str, Any] = {}
        for name in MUTABLE_SET_FIELDS:
            if name not in provided:
                continue
            value = getattr(self, name)
            if value is None and name in _NON_NULLABLE_FIELDS:
                continue
            changes[name] = value

        dogs = None
        if "dogs" in provided and self.dogs is not None:
            dogs = [
                SetDogAssignment(dog_id=entry.dog_id, index=entry.index, lane=entry.lane)
                for entry in self.dogs
            ]
        return SetDelta(id=self.id, changes=changes, dogs=dogs)


class ApplyBatchRequest(BaseModel):
    updates: list[SetUpdateModel] = Field(description="Set changes, applied together")


class DeleteBatchRequest(BaseModel):
    ids: list[str] = Field(description="Sets to delete, all from one practice")


class DeleteBatchResponse(BaseModel):
    success: bool


class SetDogResponse(BaseModel):
    id: str
    set_id: Optional[str] = None
    dog_id: str
    index: int
    lane: Optional[str] = None


class SetResponse(BaseModel):
    """A committed set with its roster."""
    id: str
    practice_id: str
    location_id: str
    index: int
    type: Optional[str] = None
    type_custom: Optional[str] = None
    is_warmup: bool
    rating: Optional[str] = None
    notes: Optional[str] = None
    dogs: list[SetDogResponse]
    created_at: str
    updated_at: str

    @classmethod
    def from_domain(cls, practice_set: PracticeSet) -> "SetResponse":
        return cls.model_validate(practice_set.to_dict())


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "/batch",
    response_model=list[SetResponse],
    status_code=status.HTTP_200_OK,
    summary="Create or update sets",
    description="Apply a batch of set changes to one practice atomically",
)
async def apply_set_batch(
    request: ApplyBatchRequest,
    api_key: AuthenticatedUser,
    caller: CallerDep,
    service: SetBatchServiceDep,
) -> list[SetResponse]:
    logger.info(
        "Applying set batch",
        extra={"user_id": caller.user_id, "updates": len(request.updates)},
    )

    deltas = [update.to_delta() for update in request.updates]
    try:
        committed = await service.apply_batch(deltas, caller=caller)
    except PracticePlanningError as e:
        raise to_http_exception(e) from e

    return [SetResponse.from_domain(practice_set) for practice_set in committed]


@router.post(
    "/batch-delete",
    response_model=DeleteBatchResponse,
    status_code=status.HTTP_200_OK,
    summary="Delete sets",
    description="Delete sets from one practice and close the rounds they leave empty",
)
async def delete_set_batch(
    request: DeleteBatchRequest,
    api_key: AuthenticatedUser,
    caller: CallerDep,
    service: SetBatchServiceDep,
) -> DeleteBatchResponse:
    logger.info(
        "Deleting set batch",
        extra={"user_id": caller.user_id, "ids": len(request.ids)},
    )

    try:
        success = await service.delete_batch(request.ids, caller=caller)
    except PracticePlanningError as e:
        raise to_http_exception(e) from e

    return DeleteBatchResponse(success=success)
