"""
Custom Exception Hierarchy for the Antique Appraiser

This module provides a structured exception hierarchy so route handlers can
raise and let the centralized error handlers turn them into JSON responses.

Usage:
    from services.exceptions import ValidationError, OpenAIAPIError

    if not text:
        raise ValidationError("Text is required", field="text")
"""

from typing import Optional, Dict, Any


class AppraisalException(Exception):
    """
    Base exception for all application errors.

    Every subclass carries an HTTP status so the error handler does not need
    to know about individual types.
    """

    status_code = 500

    def __init__(
        self,
        message: str,
        code: str = "APPRAISAL_ERROR",
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}
        self.cause = cause

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        result = {
            "error": self.message,
            "code": self.code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        if self.cause:
            return f"{self.message} (caused by: {self.cause})"
        return self.message


# ============================================================
# Request Errors
# ============================================================

class ValidationError(AppraisalException):
    """Request body or parameters are invalid."""

    status_code = 400

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        code: str = "VALIDATION_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        if field:
            details["field"] = field
        super().__init__(message, code, details)


class AuthenticationError(AppraisalException):
    """No valid session for the request."""

    status_code = 401

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message, code="AUTHENTICATION_REQUIRED")


class ForbiddenError(AppraisalException):
    """Authenticated user may not touch this resource."""

    status_code = 403

    def __init__(self, message: str):
        super().__init__(message, code="FORBIDDEN")


class NotFoundError(AppraisalException):
    status_code = 404

    def __init__(self, resource: str, resource_id: str):
        super().__init__(
            message=f"{resource} not found",
            code="NOT_FOUND",
            details={"resource": resource, "id": resource_id},
        )


class WebhookSignatureError(AppraisalException):
    """Stripe webhook payload failed signature verification."""

    status_code = 400

    def __init__(self, message: str = "Webhook signature verification failed", cause: Optional[Exception] = None):
        super().__init__(message, code="WEBHOOK_SIGNATURE_INVALID", cause=cause)


# ============================================================
# Configuration Errors
# ============================================================

class ConfigurationError(AppraisalException):
    """A required service is not configured."""

    status_code = 500

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
    ):
        details = {}
        if config_key:
            details["config_key"] = config_key
        super().__init__(
            message=message,
            code="CONFIGURATION_ERROR",
            details=details,
        )


# ============================================================
# External Service Errors
# ============================================================

class ExternalServiceError(AppraisalException):
    """Base class for vendor API errors."""

    status_code = 502

    def __init__(
        self,
        service: str,
        message: str,
        code: str = "EXTERNAL_SERVICE_ERROR",
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        details = details or {}
        details["service"] = service
        super().__init__(message, code, details, cause)


class OpenAIAPIError(ExternalServiceError):
    """Error communicating with OpenAI API."""

    def __init__(
        self,
        message: str = "AI Service Error",
        model: Optional[str] = None,
        cause: Optional[Exception] = None,
    ):
        details = {}
        if model:
            details["model"] = model
        super().__init__(
            service="openai",
            message=message,
            code="OPENAI_API_ERROR",
            details=details,
            cause=cause,
        )


class StripeAPIError(ExternalServiceError):
    """Error communicating with Stripe."""

    def __init__(
        self,
        message: str = "Payment service request failed",
        cause: Optional[Exception] = None,
    ):
        super().__init__(
            service="stripe",
            message=message,
            code="STRIPE_API_ERROR",
            cause=cause,
        )


class UploadError(ExternalServiceError):
    """Image hosting upload failed."""

    def __init__(
        self,
        message: str = "Upload Error",
        cause: Optional[Exception] = None,
    ):
        super().__init__(
            service="cloudinary",
            message=message,
            code="UPLOAD_ERROR",
            cause=cause,
        )


class ServiceTimeoutError(ExternalServiceError):
    """A vendor call exceeded its timeout."""

    status_code = 504

    def __init__(
        self,
        service: str,
        message: str = "Request timed out. Please try again later.",
        cause: Optional[Exception] = None,
    ):
        super().__init__(
            service=service,
            message=message,
            code="SERVICE_TIMEOUT",
            cause=cause,
        )


# ============================================================
# Storage Errors
# ============================================================

class DatabaseError(AppraisalException):
    """Read or write against the valuation store failed."""

    status_code = 500

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        cause: Optional[Exception] = None,
    ):
        details = {}
        if operation:
            details["operation"] = operation
        super().__init__(message, code="DATABASE_ERROR", details=details, cause=cause)
