"""
SLA Controllers (API Routes)
=============================

FastAPI routes for the shift clock and shift-scoped SLA timers.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Request

from deskwatch.core import NotProvisioned
from deskwatch.sla.application import (
    CurrentShiftResponse,
    ReplayRequest,
    SLAEventResponse,
    SLASummaryResponse,
    SLATrackingService,
    ShiftWindowResponse,
    TrackEventRequest,
)
from deskwatch.sla.domain import SLAAccumulator
from deskwatch.sla.infrastructure import ShiftConfigManager
from deskwatch.shared.api.middleware import NotProvisionedError
from deskwatch.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/sla", tags=["SLA"])


# ========== Example payloads for Swagger ==========

REPLAY_REQUEST_EXAMPLE = {
    "events": [
        {"event_type": "assigned", "occurred_at": "2024-01-15T13:58:00", "shift_code": "AM"},
        {"event_type": "resolved", "occurred_at": "2024-01-15T14:10:00"},
    ]
}

SUMMARY_RESPONSE_EXAMPLE = {"total_minutes": 2, "formatted_time": "0h 2m", "is_active": False}


# ========== Dependencies ==========

def get_shift_config(request: Request) -> ShiftConfigManager:
    config = getattr(request.app.state, "shift_config", None)
    if config is None:
        raise HTTPException(status_code=503, detail="Shift configuration not loaded")
    return config


def get_tracking_service(request: Request) -> SLATrackingService:
    service = getattr(request.app.state, "sla_tracking", None)
    if service is None:
        raise HTTPException(status_code=503, detail="SLA tracking service not initialized")
    return service


# ========== Route Handlers ==========

@router.get("/shift", response_model=CurrentShiftResponse, summary="Current shift")
async def current_shift(config: ShiftConfigManager = Depends(get_shift_config)):
    schedule = config.schedule
    now = datetime.now(timezone.utc)
    return CurrentShiftResponse(
        shift=schedule.shift_for(now),
        timezone=schedule.timezone,
        at=now,
        windows=[ShiftWindowResponse(**w.model_dump()) for w in schedule.windows],
    )


@router.post(
    "/replay",
    response_model=SLASummaryResponse,
    summary="Replay an event list",
    description="""
    Compute shift-scoped elapsed minutes for a posted event list without
    storing anything.

    Events without `occurred_at` are skipped. Stop events with no running
    timer are ignored. Naive timestamps are wall-clock time in the shift
    timezone.
    """,
    responses={200: {"content": {"application/json": {"example": SUMMARY_RESPONSE_EXAMPLE}}}},
)
async def replay_events(body: ReplayRequest, config: ShiftConfigManager = Depends(get_shift_config)):
    events = [e.to_domain("replay") for e in body.events]
    summary = SLAAccumulator(config.schedule).replay(events, now=body.now)
    return SLASummaryResponse(**summary.to_dict())


@router.post(
    "/tickets/{ticket_id}/events",
    response_model=SLAEventResponse,
    summary="Append a timer event",
)
async def track_event(
    ticket_id: str,
    body: TrackEventRequest,
    service: SLATrackingService = Depends(get_tracking_service),
):
    result = await service.track_event(
        ticket_id,
        body.event_type,
        actor_user_id=body.actor_user_id,
        notes=body.notes,
        occurred_at=body.occurred_at,
    )
    if isinstance(result, NotProvisioned):
        raise NotProvisionedError(result)

    event = result.value
    return SLAEventResponse(
        id=event.id,
        ticket_id=event.ticket_id,
        event_type=event.event_type,
        occurred_at=event.occurred_at,
        shift_code=event.shift_code,
        actor_user_id=event.actor_user_id,
        notes=event.notes,
    )


@router.get(
    "/tickets/{ticket_id}/summary",
    response_model=SLASummaryResponse,
    summary="Elapsed SLA time for a ticket",
)
async def ticket_summary(ticket_id: str, service: SLATrackingService = Depends(get_tracking_service)):
    result = await service.summary(ticket_id)
    if isinstance(result, NotProvisioned):
        raise NotProvisionedError(result)
    return SLASummaryResponse(**result.value.to_dict())
