"""
Core Exceptions
================

Errors raised at the service boundaries and mapped to HTTP statuses by
``deskwatch.shared.api.middleware``:

    ResourceNotFoundException  -> 404
    ValidationException        -> 400
    DomainException            -> 409  (illegal state transition)
    anything else              -> 500

Classifier failures inside the decision engines are not raised; they come
back as outcome values (``ClassifierOutcome``, ``IntentOutcome``). Missing
tables are not raised either; repositories answer ``NotProvisioned``.
"""

from typing import Any, Dict, Optional


class ApplicationException(Exception):
    """Root of every error deskwatch raises on purpose."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class DomainException(ApplicationException):
    """A state transition the entity does not allow, e.g. dismissing a released email."""


class RepositoryException(ApplicationException):
    """Storage answered, but not with the row the caller was promised."""


class ValidationException(ApplicationException):
    """Caller input that passed schema validation but not domain validation."""


class ResourceNotFoundException(ApplicationException):

    def __init__(self, resource_type: str, resource_id: Optional[str] = None, details: Optional[dict] = None):
        self.resource_type = resource_type
        self.resource_id = resource_id
        label = f"{resource_type} with id '{resource_id}'" if resource_id else resource_type
        super().__init__(f"{label} not found", details)


class ConfigurationException(ApplicationException):
    """A required setting is missing at the point it is needed."""


class ExternalServiceException(ApplicationException):

    def __init__(self, service_name: str, message: str, details: Optional[dict] = None):
        self.service_name = service_name
        super().__init__(f"{service_name}: {message}", details)


class LLMException(ExternalServiceException):
    """
    The chat completion call failed or returned nothing usable.

    Raised by the LLM clients only; the classifier adapters turn it into a
    failed outcome before it reaches a decision engine.
    """

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__("llm", message, details)
