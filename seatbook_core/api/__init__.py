"""
Remote Service Boundary
Connectors for the booking backend (HTTP and in-memory mock)

Usage:
    from seatbook_core.api import APIConfigManager

    connector = APIConfigManager().get_connector(token=token)
    library = connector.get_my_library()
    library, seats = connector.get_seats(library.id)
"""

from .base_connector import (
    BaseAPIConnector,
    APIConfig,
    DEFAULT_TIMEOUT,
    error_from_response,
)
from .seat_connector import (
    SeatBookAPIConnector,
    LIBRARY_ME_PATH,
    REGISTER_LIBRARY_PATH,
    seats_path,
    seat_path,
    booking_path,
    shift_booking_path,
)
from .mock_connector import MockSeatConnector
from .config_manager import APIConfigManager, SeatBookSettings

__all__ = [
    # Base
    "BaseAPIConnector",
    "APIConfig",
    "DEFAULT_TIMEOUT",
    "error_from_response",
    # Connectors
    "SeatBookAPIConnector",
    "MockSeatConnector",
    # Paths
    "LIBRARY_ME_PATH",
    "REGISTER_LIBRARY_PATH",
    "seats_path",
    "seat_path",
    "booking_path",
    "shift_booking_path",
    # Configuration
    "APIConfigManager",
    "SeatBookSettings",
]
