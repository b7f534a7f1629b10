"""
Priority Application DTOs
==========================

Pydantic request/response models for the priority API.
"""

from datetime import datetime
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field

PriorityStr = Literal["low", "medium", "high", "critical"]
IntakeSourceStr = Literal["portal", "email"]
ReviewActionStr = Literal["approve", "apply_predicted", "override"]


# ========== Request DTOs ==========

class DecideRequest(BaseModel):
    """Ticket text to decide a priority for."""
    subject: Optional[str] = Field(None, description="Ticket subject")
    body_text: Optional[str] = Field(None, description="Ticket body")
    from_email: Optional[str] = Field(None, description="Sender address, if known")
    explicit_priority_code: Optional[str] = Field(
        None, description="Priority chosen by the requester; used verbatim when valid"
    )
    intake_source: IntakeSourceStr = Field(default="portal")
    ticket_id: Optional[str] = Field(
        None, description="When given, the decision is recorded against this ticket"
    )
    actor_user_id: Optional[str] = None


class ReviewRequest(BaseModel):
    """A reviewer's decision on a recorded inference."""
    decision: str = Field(..., description="approve | apply_predicted | override")
    priority_code: Optional[str] = Field(None, description="Required for override")
    reviewer_id: Optional[str] = None
    reason: Optional[str] = Field(None, max_length=2000)


# ========== Response DTOs ==========

class PriorityDecisionResponse(BaseModel):
    mode: str
    provider: str
    predicted_priority_code: PriorityStr
    applied_priority_code: PriorityStr
    confidence: float = Field(..., ge=0.0, le=1.0)
    reason: str
    is_auto_applied: bool
    needs_review: bool
    rule_hits: Dict[str, Any] = Field(default_factory=dict)
    prompt_version: Optional[str] = None
    model_name: Optional[str] = None
    intake_source: str
    inference_id: Optional[int] = Field(None, description="Set when the decision was recorded")


class ReviewResponse(BaseModel):
    inference_id: int
    ticket_id: str
    decision: ReviewActionStr
    applied_priority_code: PriorityStr
    priority_changed: bool
    reviewed_at: Optional[datetime] = None


class ReviewMetricsResponse(BaseModel):
    total: int
    pending_review: int
    reviewed: int
    reviewed_agreed: int
    agreement_rate: Optional[float] = None
    average_confidence: Optional[float] = None
    by_intake_source: Dict[str, int] = Field(default_factory=dict)
