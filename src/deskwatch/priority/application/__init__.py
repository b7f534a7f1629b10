"""
Priority Application Layer
==========================

Decision aggregator, review workflow and API DTOs.
"""

from deskwatch.priority.application.dto import (
    DecideRequest,
    PriorityDecisionResponse,
    ReviewMetricsResponse,
    ReviewRequest,
    ReviewResponse,
)
from deskwatch.priority.application.services import (
    IInferenceRepository,
    IPriorityClassifier,
    IPriorityHistoryRepository,
    PriorityDecisionService,
    PriorityReviewService,
    ReviewOutcome,
    current_priority,
)

__all__ = [
    "DecideRequest",
    "PriorityDecisionResponse",
    "ReviewMetricsResponse",
    "ReviewRequest",
    "ReviewResponse",
    "IInferenceRepository",
    "IPriorityClassifier",
    "IPriorityHistoryRepository",
    "PriorityDecisionService",
    "PriorityReviewService",
    "ReviewOutcome",
    "current_priority",
]
