# =============================================================================
# seatbook_core/errors/__init__.py
# Centralized Error Handling for SeatBook
# =============================================================================

from .exceptions import (
    SeatBookError,
    ValidationError,
    ConflictError,
    NotFoundError,
    AuthorizationError,
    AuthenticationError,
    NetworkError,
    RemoteServiceError,
    SyncError,
    ConfigurationError,
    is_network_error,
    is_retryable,
)

from .handlers import (
    handle_error,
    safe_execute,
    ErrorContext,
)

__all__ = [
    # Exceptions
    "SeatBookError",
    "ValidationError",
    "ConflictError",
    "NotFoundError",
    "AuthorizationError",
    "AuthenticationError",
    "NetworkError",
    "RemoteServiceError",
    "SyncError",
    "ConfigurationError",
    # Classification
    "is_network_error",
    "is_retryable",
    # Handlers
    "handle_error",
    "safe_execute",
    "ErrorContext",
]
