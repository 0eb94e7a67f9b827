"""
Live change streams (Server-Sent Events).

A viewer opens one stream per practice (set changes) or per club
(practice summaries). Each SSE message carries one change envelope as
JSON; comment lines keep idle connections open.

Delivery is at-most-once. Nothing is replayed for a viewer that was not
connected, so clients refetch whenever they (re)connect.
"""

import json
import logging
from typing import AsyncIterator

from fastapi import APIRouter, HTTPException, Request, status
from fastapi.responses import StreamingResponse

from ...core.events.bus import ChangeEvent, Subscription
from ...core.events.filters import CLUB_TOPICS, PRACTICE_TOPICS, club_filter, practice_filter
from ...core.practice.access import ensure_practice_access
from ...core.practice.errors import PracticePlanningError
from ..dependencies import (
    AuthenticatedUser,
    CallerDep,
    EventBusDep,
    PracticeRepositoryDep,
    SettingsDep,
)
from ..errors import to_http_exception

logger = logging.getLogger(__name__)

router = APIRouter()

_STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "X-Accel-Buffering": "no",
}


def format_sse(event: ChangeEvent) -> str:
    """One SSE message: the topic as event name, the envelope as data."""
    return f"event: {event.topic.value}\ndata: {json.dumps(event.to_dict())}\n\n"


async def _event_stream(
    request: Request,
    subscription: Subscription,
    keepalive_seconds: float,
    scope: dict,
) -> AsyncIterator[str]:
    logger.info("Event subscriber connected", extra=scope)
    try:
        yield ": connected\n\n"
        while not subscription.closed:
            if await request.is_disconnected():
                break
            event = await subscription.get(timeout=keepalive_seconds)
            if event is None:
                yield ": keepalive\n\n"
                continue
            yield format_sse(event)
    finally:
        subscription.close()
        logger.info(
            "Event subscriber disconnected",
            extra={**scope, "dropped": subscription.dropped},
        )


@router.get(
    "/practices/{practice_id}",
    summary="Stream set changes",
    description="Server-Sent Events for every committed set change in a practice",
    response_class=StreamingResponse,
)
async def stream_practice_events(
    practice_id: str,
    request: Request,
    api_key: AuthenticatedUser,
    caller: CallerDep,
    practices: PracticeRepositoryDep,
    bus: EventBusDep,
    settings: SettingsDep,
) -> StreamingResponse:
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

    subscription = bus.subscribe(PRACTICE_TOPICS, practice_filter(practice_id, caller))
    return StreamingResponse(
        _event_stream(
            request,
            subscription,
            settings.event_keepalive_seconds,
            {"user_id": caller.user_id, "practice_id": practice_id},
        ),
        media_type="text/event-stream",
        headers=_STREAM_HEADERS,
    )


@router.get(
    "/clubs/{club_id}",
    summary="Stream practice summaries",
    description="Server-Sent Events for summary changes of every practice the caller can see",
    response_class=StreamingResponse,
)
async def stream_club_events(
    club_id: str,
    request: Request,
    api_key: AuthenticatedUser,
    caller: CallerDep,
    bus: EventBusDep,
    settings: SettingsDep,
) -> StreamingResponse:
    if club_id not in caller.club_ids:
        logger.warning(
            "Club subscription rejected",
            extra={"user_id": caller.user_id, "club_id": club_id},
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Club {club_id} is not one of your clubs",
        )

    subscription = bus.subscribe(CLUB_TOPICS, club_filter(club_id, caller))
    return StreamingResponse(
        _event_stream(
            request,
            subscription,
            settings.event_keepalive_seconds,
            {"user_id": caller.user_id, "club_id": club_id},
        ),
        media_type="text/event-stream",
        headers=_STREAM_HEADERS,
    )
