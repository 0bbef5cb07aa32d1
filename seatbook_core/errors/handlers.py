# =============================================================================
# seatbook_core/errors/handlers.py
# Error Handling Utilities for SeatBook
# =============================================================================

from __future__ import annotations
import logging
import traceback
from typing import Optional, Callable, TypeVar
import streamlit as st

from seatbook_core.logging import get_logger
from .exceptions import SeatBookError, ConflictError, ValidationError

logger = get_logger(__name__)

T = TypeVar("T")

# Rejections caused by the manager's own input: logged quietly, no traceback
EXPECTED_ERRORS = (ValidationError, ConflictError)


def _describe(error: Exception, user_message: Optional[str]) -> tuple:
    """Return (message, code, details, recoverable) for any exception."""
    if isinstance(error, SeatBookError):
        return (user_message or error.message, error.code, error.details, error.recoverable)
    return (
        user_message or str(error),
        "UNKNOWN",
        {"traceback": traceback.format_exc()},
        True,
    )


def handle_error(
    error: Exception,
    show_user_message: bool = True,
    log_error: bool = True,
    user_message: Optional[str] = None,
) -> None:
    """
    Log an exception and surface it on the dashboard.

    Unrecoverable errors (expired credentials) ask the manager to sign in
    again. With ``debug_mode`` set in session state the error details are
    shown in an expander.
    """
    message, code, details, recoverable = _describe(error, user_message)

    if log_error:
        expected = isinstance(error, EXPECTED_ERRORS)
        logger.log(
            logging.WARNING if expected else logging.ERROR,
            f"[{code}] {message}",
            extra={"details": details},
            exc_info=not expected,
        )

    if not show_user_message:
        return

    st.error(f"Error: {message}" if recoverable else f"Critical Error: {message}. Please sign in again.")
    if details and st.session_state.get("debug_mode", False):
        with st.expander("Error Details", expanded=False):
            st.json(details)


def safe_execute(
    func: Callable[..., T],
    *args,
    default: Optional[T] = None,
    error_message: Optional[str] = None,
    reraise: bool = False,
    **kwargs,
) -> Optional[T]:
    """
    Call ``func`` and report any failure through handle_error.

    Usage:
        seats = safe_execute(service.seat_grid, library_id, default=[],
                             error_message="Could not load the seat grid")
    """
    try:
        return func(*args, **kwargs)
    except Exception as e:
        handle_error(e, user_message=error_message)
        if reraise:
            raise
        return default


class ErrorContext:
    """
    Wrap one dashboard action. Failures are reported and, when
    ``recoverable`` is set, swallowed so the page keeps rendering; the
    caught exception stays available on ``.error``.

    Usage:
        with ErrorContext("Booking seat") as ctx:
            service.book_seat(...)
        if ctx.error is None:
            st.rerun()
    """

    def __init__(
        self,
        operation: str,
        recoverable: bool = True,
        show_success: bool = False,
        success_message: Optional[str] = None,
    ):
        self.operation = operation
        self.recoverable = recoverable
        self.show_success = show_success
        self.success_message = success_message
        self.error: Optional[BaseException] = None

    def __enter__(self) -> ErrorContext:
        logger.debug(f"{self.operation}: started")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        if exc_type is None:
            logger.info(f"{self.operation}: done")
            if self.show_success:
                st.success(self.success_message or f"{self.operation} completed")
            return False

        self.error = exc_val
        # Domain errors already carry a message fit for the manager
        fallback = None if isinstance(exc_val, SeatBookError) else f"Error during: {self.operation}"
        handle_error(exc_val, user_message=fallback)
        return self.recoverable
