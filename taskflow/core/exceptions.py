"""Exceptions raised by the task workflow engine.

Business-logic failures (a task failing, a cyclic workflow) are never raised
across the engine boundary; they are reported as data on ``TaskOutput`` and
``WorkflowExecutionResult``. The exceptions below cover programming and
configuration errors: bad registrations and invalid settings.
"""

from datetime import datetime, timezone
from typing import Optional, Dict, Any
from enum import Enum


class ErrorSeverity(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    VALIDATION = "validation"
    REGISTRY = "registry"
    CONFIGURATION = "configuration"


class WorkflowEngineError(Exception):
    """Base exception for engine errors.

    Subclasses fix ``severity``, ``category`` and the HTTP ``status_code``
    the middleware answers with. Keyword arguments passed to the
    constructor become the error's ``context`` (e.g. the offending task type).
    """

    severity = ErrorSeverity.MEDIUM
    category = ErrorCategory.VALIDATION
    status_code = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None, **context):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.context = {key: value for key, value in context.items() if value is not None}
        self.timestamp = datetime.now(timezone.utc)

    @property
    def error_code(self) -> str:
        return self.__class__.__name__

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_code": self.error_code,
            "message": self.message,
            "severity": self.severity.value,
            "category": self.category.value,
            "details": self.details,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }


class TaskRegistryError(WorkflowEngineError):
    """Invalid task registration (empty type id, non-callable executor)."""

    category = ErrorCategory.REGISTRY
    status_code = 500

    def __init__(self, message: str, task_type: Optional[str] = None, operation: Optional[str] = None):
        super().__init__(message, task_type=task_type, operation=operation)
        self.task_type = task_type


class ConfigurationError(WorkflowEngineError):
    """Application settings that cannot be honoured."""

    severity = ErrorSeverity.HIGH
    category = ErrorCategory.CONFIGURATION
    status_code = 500

    def __init__(self, message: str, config_key: Optional[str] = None):
        super().__init__(message, config_key=config_key)


def create_error_response(error: WorkflowEngineError, request_id: Optional[str] = None) -> Dict[str, Any]:
    """JSON body for an engine error, shaped like the API's other ``{"error": ...}`` bodies."""
    body: Dict[str, Any] = {
        "error": error.message,
        "code": error.error_code,
        "category": error.category.value,
    }
    if error.context:
        body["context"] = error.context
    if request_id:
        body["request_id"] = request_id
    return body
