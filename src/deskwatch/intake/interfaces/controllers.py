"""
Intake Controllers (API Routes)
================================

FastAPI routes for inbound email screening and the quarantine queue.
"""

from fastapi import APIRouter, Depends, HTTPException, Request

from deskwatch.core import NotProvisioned
from deskwatch.intake.application import (
    AssessmentResponse,
    DismissRequest,
    EmailIntakeService,
    InboundEmailRequest,
    QuarantineResponse,
    ReleaseRequest,
)
from deskwatch.intake.domain import QuarantineRecord
from deskwatch.shared.api.middleware import NotProvisionedError
from deskwatch.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/intake", tags=["Email Intake"])


# ========== Example payloads for Swagger ==========

ASSESS_REQUEST_EXAMPLE = {
    "from": "Workspace <notifications@saas.example>",
    "to": "support@helpdesk.example",
    "subject": "Weekly digest: team activity summary",
    "body": "Here's the latest activity in your workspace.",
    "attachments": [],
}


# ========== Dependencies ==========

def get_intake_service(request: Request) -> EmailIntakeService:
    service = getattr(request.app.state, "email_intake", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Email intake service not initialized")
    return service


def _quarantine_response(record: QuarantineRecord) -> QuarantineResponse:
    return QuarantineResponse(
        id=record.id,
        status=record.status,
        decision=record.decision,
        from_email=record.from_email,
        subject=record.subject,
        released_ticket_id=record.released_ticket_id,
        reviewed_by_user_id=record.reviewed_by_user_id,
        reviewed_at=record.reviewed_at,
    )


# ========== Route Handlers ==========

@router.post(
    "/assess",
    response_model=AssessmentResponse,
    summary="Screen an inbound email",
    description="""
    Score an inbound email for phishing risk and non-ticket noise.

    **Decisions**: `allow`, `review`, `ignore`, `quarantine`.

    Anything but `allow` is queued for review; the queue id is returned as
    `quarantine_id`. If the queue table is not migrated the assessment is
    still returned, without an id.
    """,
    responses={200: {"content": {"application/json": {"example": ASSESS_REQUEST_EXAMPLE}}}},
)
async def assess_email(
    body: InboundEmailRequest,
    service: EmailIntakeService = Depends(get_intake_service),
):
    assessment, stored = await service.intake(body.to_domain())

    quarantine_id = None
    if stored is not None and not isinstance(stored, NotProvisioned):
        quarantine_id = stored.value.id

    return AssessmentResponse(**assessment.to_dict(), quarantine_id=quarantine_id)


@router.post(
    "/quarantine/{quarantine_id}/release",
    response_model=QuarantineResponse,
    summary="Release a queued email into a ticket",
)
async def release_email(
    quarantine_id: int,
    body: ReleaseRequest,
    service: EmailIntakeService = Depends(get_intake_service),
):
    result = await service.release(quarantine_id, body.ticket_id, body.reviewer_id)
    if isinstance(result, NotProvisioned):
        raise NotProvisionedError(result)
    return _quarantine_response(result.value)


@router.post(
    "/quarantine/{quarantine_id}/dismiss",
    response_model=QuarantineResponse,
    summary="Dismiss a queued email",
)
async def dismiss_email(
    quarantine_id: int,
    body: DismissRequest,
    service: EmailIntakeService = Depends(get_intake_service),
):
    result = await service.dismiss(quarantine_id, body.reviewer_id)
    if isinstance(result, NotProvisioned):
        raise NotProvisionedError(result)
    return _quarantine_response(result.value)
