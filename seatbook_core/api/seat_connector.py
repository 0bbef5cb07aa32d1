"""
Seat Booking API Connector
Talks to the booking backend: library lookup, seat grid and slot bookings

Expected API Response Format (GET /seats/:libraryId):
{
    "library": {"_id": "...", "managerId": "...", "name": "...", "capacity": 40, ...},
    "seats": [
        {"seatNumber": 1, "shifts": [
            {"name": "Morning", "startTime": "08:00", "endTime": "12:00",
             "studentId": {"_id": "...", "name": "A", "dateofJoin": "2024-01-01", "contact": "123"}},
            {"name": "Evening", "startTime": "16:00", "endTime": "20:00", "studentId": null}
        ]},
        ...
    ]
}
"""
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote

from seatbook_core.models import Library, Seat

from .base_connector import BaseAPIConnector


# =============================================================================
# PATHS
# =============================================================================

LIBRARY_ME_PATH = "/library/me"
REGISTER_LIBRARY_PATH = "/library/registerlibrary"


def seats_path(library_id: str) -> str:
    return f"/seats/{library_id}"


def seat_path(library_id: str, seat_number: int) -> str:
    return f"/seats/{library_id}/{int(seat_number)}"


def booking_path(library_id: str, seat_number: int) -> str:
    return f"{seat_path(library_id, seat_number)}/book"


def shift_booking_path(library_id: str, seat_number: int, shift_name: str) -> str:
    # Shift names are free text
    return f"{booking_path(library_id, seat_number)}/{quote(shift_name, safe='')}"


class SeatBookAPIConnector(BaseAPIConnector):
    """
    Connector for the booking backend REST API

    The typed methods are thin wrappers over ``request`` so the replay engine
    can re-issue any queued call with only its method, path and payload.
    """

    def _set_auth_header(self):
        """Set bearer authentication header"""
        if self.config.api_key:
            self.session.headers.update({
                "Authorization": f"Bearer {self.config.api_key}",
                "Content-Type": "application/json"
            })

    def request(
        self,
        method: str,
        path: str,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        response = self._make_request(
            endpoint=path,
            method=method.upper(),
            data=payload if method.upper() in ("POST", "PUT") else None,
        )
        if not response.content:
            return {}
        return response.json()

    # =========================================================================
    # READS
    # =========================================================================

    def get_my_library(self) -> Library:
        """Fetch the calling manager's library (NotFoundError when none)"""
        body = self.request("GET", LIBRARY_ME_PATH)
        return Library.from_dict(body["library"])

    def get_seats(self, library_id: str) -> Tuple[Library, List[Seat]]:
        """Fetch the library and its full seat grid, sorted by seat number"""
        body = self.request("GET", seats_path(library_id))
        library = Library.from_dict(body.get("library") or {"_id": library_id})
        seats = [Seat.from_dict(s, library_id=library_id) for s in body.get("seats") or []]
        seats.sort(key=lambda s: s.seat_number)
        return library, seats

    def get_seat(self, library_id: str, seat_number: int) -> Seat:
        body = self.request("GET", seat_path(library_id, seat_number))
        return Seat.from_dict(body["seat"], library_id=library_id)

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    def book_seat(self, library_id: str, seat_number: int, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Book a slot; payload carries shiftName and the operationId token"""
        return self.request("POST", booking_path(library_id, seat_number), payload)

    def update_booking(
        self,
        library_id: str,
        seat_number: int,
        shift_name: str,
        payload: Dict[str, Any],
    ) -> Dict[str, Any]:
        return self.request("PUT", shift_booking_path(library_id, seat_number, shift_name), payload)

    def delete_booking(self, library_id: str, seat_number: int, shift_name: str) -> Dict[str, Any]:
        return self.request("DELETE", shift_booking_path(library_id, seat_number, shift_name))

    def register_library(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self.request("POST", REGISTER_LIBRARY_PATH, payload)
