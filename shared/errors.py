"""
Shared error handling for the Book Catalog services.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Standard error response format."""

    request_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class CatalogException(Exception):
    """Base exception for catalog services."""

    status_code = 400

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ):
        self.code = code
        self.message = message
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)

    def to_response(self, request_id: Optional[str] = None) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            request_id=request_id,
            code=self.code,
            message=self.message,
            details=self.details
        )


class ConfigurationError(CatalogException):
    """Invalid or missing configuration, raised at setup time."""

    status_code = 500

    def __init__(self, message: str = "Invalid configuration", details: Optional[Dict[str, Any]] = None):
        super().__init__("CONFIGURATION_ERROR", message, details)


class StoreUnavailable(CatalogException):
    """Key-value store could not be read or written."""

    status_code = 503

    def __init__(self, operation: str, message: str = "Store unavailable", details: Optional[Dict[str, Any]] = None):
        self.operation = operation
        super().__init__("STORE_UNAVAILABLE", f"{operation}: {message}", details)


class HandlerError(CatalogException):
    """Failure raised by a request handler."""

    def __init__(
        self,
        message: str = "Handler error",
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 400,
        code: str = "HANDLER_ERROR",
    ):
        super().__init__(code, message, details, status_code)


class NotFoundError(HandlerError):
    """Requested resource does not exist."""

    def __init__(self, message: str = "Not found", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details, status_code=404, code="NOT_FOUND")


class ValidationError(HandlerError):
    """Validation-related errors."""

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details, status_code=400, code="VALIDATION_ERROR")


class PersistenceError(CatalogException):
    """Catalog repository errors."""

    status_code = 500

    def __init__(self, message: str = "Persistence error", details: Optional[Dict[str, Any]] = None):
        super().__init__("PERSISTENCE_ERROR", message, details)
