"""
Shared error handling for the Frontend Proxy.
"""

from typing import Dict, Any, Optional

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response format."""

    error: str


class ProxyException(Exception):
    """Base exception for Frontend Proxy services."""

    status_code = 500
    expose_message = True

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> Optional[ErrorResponse]:
        """Convert to error response, or None for an empty body."""
        if not self.expose_message:
            return None
        return ErrorResponse(error=self.message)


class NotFoundError(ProxyException):
    """A requested application, version or resource does not exist."""

    status_code = 404
    expose_message = False

    def __init__(self, message: str = "Not found", details: Optional[Dict[str, Any]] = None):
        super().__init__("NOT_FOUND", message, details)


class AuthenticationError(ProxyException):
    """Authentication-related errors."""

    status_code = 403
    expose_message = False

    def __init__(self, message: str = "Authentication failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("AUTHENTICATION_ERROR", message, details)


class ValidationError(ProxyException):
    """Validation-related errors."""

    status_code = 400

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class ServiceError(ProxyException):
    """Service-related errors."""

    def __init__(self, message: str = "Service error", details: Optional[Dict[str, Any]] = None):
        super().__init__("SERVICE_ERROR", message, details)


class UpstreamUnavailableError(ProxyException):
    """A backing service could not be reached at all."""

    status_code = 503

    def __init__(self, service: str, message: str = "unavailable", details: Optional[Dict[str, Any]] = None):
        super().__init__("UPSTREAM_UNAVAILABLE", f"{service} {message}", details)


class UnsupportedEventError(ProxyException):
    """An inbound webhook event type this service does not know."""

    status_code = 501
    expose_message = False

    def __init__(self, event: Optional[str], details: Optional[Dict[str, Any]] = None):
        super().__init__("UNSUPPORTED_EVENT", f"Unsupported event {event}", details)
