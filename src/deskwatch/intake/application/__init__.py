"""
Intake Application Layer
========================

Email intake service and API DTOs.
"""

from deskwatch.intake.application.dto import (
    AssessmentResponse,
    DismissRequest,
    InboundEmailRequest,
    QuarantineResponse,
    ReleaseRequest,
)
from deskwatch.intake.application.services import (
    EmailIntakeService,
    IEmailIntentClassifier,
    IQuarantineRepository,
)

__all__ = [
    "AssessmentResponse",
    "DismissRequest",
    "InboundEmailRequest",
    "QuarantineResponse",
    "ReleaseRequest",
    "EmailIntakeService",
    "IEmailIntentClassifier",
    "IQuarantineRepository",
]
