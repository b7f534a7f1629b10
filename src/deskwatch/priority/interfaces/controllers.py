"""
Priority Controllers (API Routes)
==================================

FastAPI routes for priority decisions and the review queue.

Services are built once at startup and read from ``app.state``.
"""

from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, Request

from deskwatch.core import NotProvisioned
from deskwatch.priority.application import (
    DecideRequest,
    PriorityDecisionResponse,
    PriorityDecisionService,
    PriorityReviewService,
    ReviewMetricsResponse,
    ReviewRequest,
    ReviewResponse,
)
from deskwatch.shared.api.middleware import NotProvisionedError
from deskwatch.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/priority", tags=["Priority"])


# ========== Example payloads for Swagger ==========

DECIDE_REQUEST_EXAMPLE = {
    "subject": "URGENT: production outage",
    "body_text": "All users cannot log in since 9am, the whole office is down.",
    "from_email": "ops@example.com",
    "intake_source": "email",
}


# ========== Dependencies ==========

def get_decision_service(request: Request) -> PriorityDecisionService:
    service = getattr(request.app.state, "priority_decisions", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Priority service not initialized")
    return service


def get_review_service(request: Request) -> PriorityReviewService:
    service = getattr(request.app.state, "priority_reviews", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Priority review service not initialized")
    return service


# ========== Route Handlers ==========

@router.post(
    "/decide",
    response_model=PriorityDecisionResponse,
    summary="Decide a ticket priority",
    description="""
    Run the configured decision mode over the ticket text.

    A valid `explicit_priority_code` wins outright. Otherwise the rule scorer
    and, depending on `AI_PRIORITY_MODE`, the LLM classifier produce a
    prediction. The prediction is applied only when it is a hard rule match or
    its confidence reaches the auto-apply threshold; otherwise `medium` is
    applied and the decision is queued for review.

    When `ticket_id` is given the decision is recorded.
    """,
    responses={200: {"content": {"application/json": {"example": DECIDE_REQUEST_EXAMPLE}}}},
)
async def decide_priority(
    body: DecideRequest,
    service: PriorityDecisionService = Depends(get_decision_service),
):
    decision = await service.decide(
        subject=body.subject,
        body_text=body.body_text,
        from_email=body.from_email,
        explicit_priority_code=body.explicit_priority_code,
        intake_source=body.intake_source,
    )

    inference_id = None
    if body.ticket_id:
        recorded = await service.record_decision(body.ticket_id, decision, body.actor_user_id)
        if isinstance(recorded, NotProvisioned):
            raise NotProvisionedError(recorded)
        inference_id = recorded.value.id

    return PriorityDecisionResponse(**decision.to_dict(), inference_id=inference_id)


@router.post(
    "/inferences/{inference_id}/review",
    response_model=ReviewResponse,
    summary="Review a recorded decision",
)
async def review_inference(
    inference_id: int,
    body: ReviewRequest,
    service: PriorityReviewService = Depends(get_review_service),
):
    result = await service.review(
        inference_id,
        action=body.decision,
        reviewer_id=body.reviewer_id,
        priority_code=body.priority_code,
        reason=body.reason,
    )
    if isinstance(result, NotProvisioned):
        raise NotProvisionedError(result)

    outcome = result.value
    return ReviewResponse(
        inference_id=outcome.inference_id,
        ticket_id=outcome.ticket_id,
        decision=outcome.decision,
        applied_priority_code=outcome.applied_priority_code,
        priority_changed=outcome.priority_changed,
        reviewed_at=outcome.reviewed_at,
    )


@router.get(
    "/metrics",
    response_model=ReviewMetricsResponse,
    summary="Review queue metrics",
)
async def review_metrics(service: PriorityReviewService = Depends(get_review_service)):
    result = await service.metrics()
    if isinstance(result, NotProvisioned):
        raise NotProvisionedError(result)
    return ReviewMetricsResponse(**asdict(result.value))
