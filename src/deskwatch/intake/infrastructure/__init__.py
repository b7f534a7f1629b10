"""
Intake Infrastructure Layer
===========================

Quarantine persistence and the LLM intent classifier adapter.
"""

from deskwatch.intake.infrastructure.external import LLMEmailIntentClassifier
from deskwatch.intake.infrastructure.models import QuarantineModel
from deskwatch.intake.infrastructure.repositories import SQLAlchemyQuarantineRepository

__all__ = ["LLMEmailIntentClassifier", "QuarantineModel", "SQLAlchemyQuarantineRepository"]
