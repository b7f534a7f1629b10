"""
Core Module
============

Exceptions and the persistence result type shared by every context.
No framework imports.
"""

from deskwatch.core.exceptions import (
    ApplicationException,
    DomainException,
    RepositoryException,
    ValidationException,
    ResourceNotFoundException,
    ConfigurationException,
    ExternalServiceException,
    LLMException,
)
from deskwatch.core.result import Provisioned, NotProvisioned, Result, is_provisioned

__all__ = [
    "ApplicationException",
    "DomainException",
    "RepositoryException",
    "ValidationException",
    "ResourceNotFoundException",
    "ConfigurationException",
    "ExternalServiceException",
    "LLMException",
    "Provisioned",
    "NotProvisioned",
    "Result",
    "is_provisioned",
]
