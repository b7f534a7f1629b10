"""
Priority Infrastructure Layer
=============================

ORM models, repositories and the LLM classifier adapter.
"""

from deskwatch.priority.infrastructure.external import LLMPriorityClassifier
from deskwatch.priority.infrastructure.models import InferenceModel, PriorityHistoryModel
from deskwatch.priority.infrastructure.repositories import (
    SQLAlchemyInferenceRepository,
    SQLAlchemyPriorityHistoryRepository,
)

__all__ = [
    "LLMPriorityClassifier",
    "InferenceModel",
    "PriorityHistoryModel",
    "SQLAlchemyInferenceRepository",
    "SQLAlchemyPriorityHistoryRepository",
]
