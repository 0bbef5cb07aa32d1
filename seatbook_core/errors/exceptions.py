# =============================================================================
# seatbook_core/errors/exceptions.py
# Custom Exception Hierarchy for SeatBook
# =============================================================================

from typing import Optional, Dict, Any


class SeatBookError(Exception):
    """
    Base exception for all SeatBook errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code (e.g., "BOOK_409")
        details: Additional context as a dictionary
        recoverable: Whether the error can be recovered from
        retryable: Whether replaying the same request unchanged may succeed
    """

    retryable = False

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = True,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or "SB_000"
        self.details = details or {}
        self.recoverable = recoverable
        self.status_code = status_code

    def __str__(self) -> str:
        base = f"[{self.code}] {self.message}"
        if self.details:
            base += f" | Details: {self.details}"
        return base

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization"""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
            "retryable": self.retryable,
            "status_code": self.status_code,
        }


# =============================================================================
# REQUEST / DOMAIN EXCEPTIONS (terminal: never succeed unchanged)
# =============================================================================

class ValidationError(SeatBookError):
    """Raised when input is missing or invalid"""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if field:
            details["field"] = field

        super().__init__(
            message=message,
            code="VAL_001",
            details=details,
            **kwargs,
        )


class ConflictError(SeatBookError):
    """Raised when a shift slot is already booked"""

    def __init__(
        self,
        message: str,
        seat_number: Optional[int] = None,
        shift_name: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if seat_number is not None:
            details["seat_number"] = seat_number
        if shift_name:
            details["shift_name"] = shift_name

        super().__init__(
            message=message,
            code="BOOK_409",
            details=details,
            **kwargs,
        )


class NotFoundError(SeatBookError):
    """Raised when a library, seat or shift does not exist"""

    def __init__(self, message: str, resource: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", {})
        if resource:
            details["resource"] = resource

        super().__init__(
            message=message,
            code="NF_404",
            details=details,
            **kwargs,
        )


# =============================================================================
# AUTH EXCEPTIONS
# =============================================================================

class AuthorizationError(SeatBookError):
    """Raised when the library does not belong to the calling manager"""

    def __init__(self, message: str, library_id: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", {})
        if library_id:
            details["library_id"] = library_id

        super().__init__(
            message=message,
            code="AUTH_403",
            details=details,
            **kwargs,
        )


class AuthenticationError(SeatBookError):
    """Raised when the credential is missing, invalid or expired"""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message=message,
            code="AUTH_401",
            recoverable=False,
            **kwargs,
        )


# =============================================================================
# TRANSPORT EXCEPTIONS (retryable)
# =============================================================================

class NetworkError(SeatBookError):
    """Raised when no response was received (connection refused, DNS, timeout)"""

    retryable = True

    def __init__(
        self,
        message: str,
        method: Optional[str] = None,
        path: Optional[str] = None,
        timed_out: bool = False,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if method:
            details["method"] = method
        if path:
            details["path"] = path
        if timed_out:
            details["timed_out"] = True

        super().__init__(
            message=message,
            code="NET_001",
            details=details,
            **kwargs,
        )


class RemoteServiceError(SeatBookError):
    """Raised when the server answered with a 5xx status"""

    retryable = True

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message=message,
            code="SRV_500",
            **kwargs,
        )


# =============================================================================
# SYNC / CONFIGURATION EXCEPTIONS
# =============================================================================

class SyncError(SeatBookError):
    """Raised when the replay queue or reconciliation cannot proceed"""

    def __init__(self, message: str, operation_id: Optional[int] = None, **kwargs):
        details = kwargs.pop("details", {})
        if operation_id is not None:
            details["operation_id"] = operation_id

        super().__init__(
            message=message,
            code="SYNC_001",
            details=details,
            **kwargs,
        )


class ConfigurationError(SeatBookError):
    """Raised when configuration is invalid or missing"""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        expected_type: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if config_key:
            details["config_key"] = config_key
        if expected_type:
            details["expected_type"] = expected_type

        super().__init__(
            message=message,
            code="CONFIG_001",
            details=details,
            recoverable=False,
            **kwargs,
        )


def is_network_error(error: BaseException) -> bool:
    """True when no response was received at all."""
    return isinstance(error, NetworkError)


def is_retryable(error: BaseException) -> bool:
    """True when replaying the same request unchanged may still succeed."""
    return isinstance(error, SeatBookError) and error.retryable
