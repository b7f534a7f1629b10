"""
Priority Domain Layer
=====================

Rule scorer, decision records and review state. Pure Python, no I/O.
"""

from deskwatch.priority.domain.entities import (
    ClassificationPromptBuilder,
    ClassifierOutcome,
    InferenceRecord,
    PriorityDecision,
    PriorityHistoryEntry,
    PromptVersion,
    Provider,
    ReviewAction,
    ReviewMetrics,
)
from deskwatch.priority.domain.rules import RuleEvaluation, evaluate_rules
from deskwatch.priority.domain.value_objects import ClassifierConfig, PriorityPolicy

__all__ = [
    "ClassificationPromptBuilder",
    "ClassifierConfig",
    "ClassifierOutcome",
    "InferenceRecord",
    "PriorityDecision",
    "PriorityHistoryEntry",
    "PriorityPolicy",
    "PromptVersion",
    "Provider",
    "ReviewAction",
    "ReviewMetrics",
    "RuleEvaluation",
    "evaluate_rules",
]
