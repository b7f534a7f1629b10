"""
Intake Application DTOs
========================

Pydantic request/response models for the intake API.
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from deskwatch.intake.domain import EmailAttachment, InboundEmail

IntakeDecisionStr = Literal["allow", "review", "ignore", "quarantine"]
RiskLevelStr = Literal["low", "medium", "high", "critical"]


# ========== Request DTOs ==========

class AttachmentDTO(BaseModel):
    filename: str = ""
    mime_type: Optional[str] = None
    size: Optional[int] = Field(None, ge=0)


class InboundEmailRequest(BaseModel):
    """An email as fetched from the mailbox."""
    from_: str = Field(..., alias="from", description="Raw From header")
    to: str = ""
    subject: str = ""
    body: str = ""
    snippet: str = ""
    message_id: Optional[str] = None
    thread_id: Optional[str] = None
    attachments: List[AttachmentDTO] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)

    def to_domain(self) -> InboundEmail:
        return InboundEmail(
            from_address=self.from_,
            to=self.to,
            subject=self.subject,
            body=self.body,
            snippet=self.snippet,
            message_id=self.message_id,
            thread_id=self.thread_id,
            attachments=tuple(
                EmailAttachment(filename=a.filename, mime_type=a.mime_type, size=a.size)
                for a in self.attachments
            ),
        )


class ReleaseRequest(BaseModel):
    ticket_id: str = Field(..., min_length=1, description="Ticket created from the email")
    reviewer_id: Optional[str] = None


class DismissRequest(BaseModel):
    reviewer_id: Optional[str] = None


# ========== Response DTOs ==========

class AssessmentResponse(BaseModel):
    enabled: bool
    score: float
    level: RiskLevelStr
    decision: IntakeDecisionStr
    reasons: List[str] = Field(default_factory=list)
    rule_hits: Dict[str, Any] = Field(default_factory=dict)
    context: Dict[str, Any] = Field(default_factory=dict)
    quarantine_id: Optional[int] = Field(None, description="Set when the email was queued for review")


class QuarantineResponse(BaseModel):
    id: int
    status: str
    decision: IntakeDecisionStr
    from_email: str
    subject: str
    released_ticket_id: Optional[str] = None
    reviewed_by_user_id: Optional[str] = None
    reviewed_at: Optional[datetime] = None
