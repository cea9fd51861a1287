"""Server-Sent Events stream of journey status changes."""

import asyncio
import logging
import uuid
from collections.abc import AsyncIterator, Awaitable, Callable

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from app.auth import CallerContext, verify_bearer_token
from app.dependencies import get_journey_service
from app.services.change_feed import ChangeFeed, get_change_feed
from app.services.journey import JourneyService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/events", tags=["events"])

HEARTBEAT_SECONDS = 15.0


async def event_stream(
    feed: ChangeFeed,
    patient_id: uuid.UUID | None,
    is_disconnected: Callable[[], Awaitable[bool]],
    heartbeat: float = HEARTBEAT_SECONDS,
) -> AsyncIterator[str]:
    """Yield SSE frames for every change event the subscriber may see.

    A comment frame is sent after ``heartbeat`` idle seconds so proxies keep
    the connection open and disconnects are noticed.
    """
    async with feed.subscribe(patient_id) as subscription:
        yield "event: ready\ndata: {}\n\n"
        while not await is_disconnected():
            try:
                event = await asyncio.wait_for(subscription.get(), timeout=heartbeat)
            except asyncio.TimeoutError:
                yield ": keep-alive\n\n"
                continue
            yield f"event: status_changed\ndata: {event.to_json()}\n\n"


@router.get("")
async def stream_events(
    request: Request,
    caller: CallerContext = Depends(verify_bearer_token),
    service: JourneyService = Depends(get_journey_service),
    feed: ChangeFeed = Depends(get_change_feed),
) -> StreamingResponse:
    """Stream journey status changes as Server-Sent Events.

    Staff receive changes for every patient; a patient only receives changes
    to their own record. Events are hints to re-read the patient, not state.

    SSE event types:
    - event: ready: subscription established
    - event: status_changed: a patient's status changed

    Raises:
        NotFoundError: 404 if a patient caller has no patient record.
    """
    patient_id = None
    if not caller.is_staff:
        patient_id = (await service.get_patient_for(caller)).id

    logger.info("Change feed subscriber connected (user=%s)", caller.user_id)
    return StreamingResponse(
        event_stream(feed, patient_id, request.is_disconnected),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
        },
    )
