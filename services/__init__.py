"""
Services Package

Business logic behind the appraisal API: AI assistant, payments, uploads,
auth and the valuation ledger.
"""

from .app_state import AppState, get_app_state_from_request, get_app_state_dependency
from .error_handler import setup_error_handlers
from .exceptions import (
    AppraisalException,
    ValidationError,
    AuthenticationError,
    ForbiddenError,
    NotFoundError,
    WebhookSignatureError,
    ConfigurationError,
    ExternalServiceError,
    OpenAIAPIError,
    StripeAPIError,
    UploadError,
    ServiceTimeoutError,
    DatabaseError,
)

__all__ = [
    # App state
    'AppState',
    'get_app_state_from_request',
    'get_app_state_dependency',
    # Error handling
    'setup_error_handlers',
    'AppraisalException',
    'ValidationError',
    'AuthenticationError',
    'ForbiddenError',
    'NotFoundError',
    'WebhookSignatureError',
    'ConfigurationError',
    'ExternalServiceError',
    'OpenAIAPIError',
    'StripeAPIError',
    'UploadError',
    'ServiceTimeoutError',
    'DatabaseError',
]
