"""
SLA Application DTOs
=====================

Pydantic request/response models for the SLA API.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from deskwatch.sla.domain import SLAEvent

SLAEventTypeStr = Literal["assigned", "paused", "resumed", "responded", "resolved"]


# ========== Request DTOs ==========

class SLAEventDTO(BaseModel):
    """One timer event. ``occurred_at`` may be missing in imported logs."""
    event_type: SLAEventTypeStr
    occurred_at: Optional[datetime] = None
    shift_code: Optional[str] = Field(None, description="Shift tagged when the event was recorded")
    actor_user_id: Optional[str] = None
    notes: Optional[str] = None

    def to_domain(self, ticket_id: str) -> SLAEvent:
        return SLAEvent(
            ticket_id=ticket_id,
            event_type=self.event_type,
            occurred_at=self.occurred_at,
            shift_code=self.shift_code,
            actor_user_id=self.actor_user_id,
            notes=self.notes,
        )


class ReplayRequest(BaseModel):
    """An event list to replay without touching storage."""
    events: List[SLAEventDTO] = Field(default_factory=list)
    now: Optional[datetime] = Field(None, description="End of a still-running timer; defaults to now")


class TrackEventRequest(BaseModel):
    event_type: SLAEventTypeStr
    actor_user_id: Optional[str] = None
    notes: Optional[str] = Field(None, max_length=1000)
    occurred_at: Optional[datetime] = None


# ========== Response DTOs ==========

class SLASummaryResponse(BaseModel):
    total_minutes: int = Field(..., ge=0)
    formatted_time: str
    is_active: bool


class SLAEventResponse(BaseModel):
    id: Optional[int] = None
    ticket_id: str
    event_type: SLAEventTypeStr
    occurred_at: Optional[datetime] = None
    shift_code: Optional[str] = None
    actor_user_id: Optional[str] = None
    notes: Optional[str] = None


class ShiftWindowResponse(BaseModel):
    code: str
    start_hour: int
    end_hour: int


class CurrentShiftResponse(BaseModel):
    shift: str
    timezone: str
    at: datetime
    windows: List[ShiftWindowResponse] = Field(default_factory=list)
