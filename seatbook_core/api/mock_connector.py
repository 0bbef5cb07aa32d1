"""
Mock Seat Booking Connector
In-memory stand-in for the booking backend, used for demos, development and tests
"""
import copy
import itertools
import re
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import unquote

from seatbook_core.errors import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    NetworkError,
    NotFoundError,
    ValidationError,
)

from .base_connector import APIConfig
from .seat_connector import SeatBookAPIConnector


STUDENT_PUBLIC_FIELDS = ("_id", "name", "dateofJoin", "contact", "email")


class MockSeatConnector(SeatBookAPIConnector):
    """
    Mock connector - implements the booking backend contract in memory

    Behaves like the real server for one authenticated manager: ownership
    checks, slot uniqueness, idempotent bookings keyed by operationId, student
    deletion on release and seat stamping at registration. Fault injection
    helpers simulate outages and lost acknowledgements.
    """

    ROUTES = [
        ("GET", re.compile(r"^/library/me$"), "_library_me"),
        ("POST", re.compile(r"^/library/registerlibrary$"), "_register_library"),
        ("GET", re.compile(r"^/seats/(?P<library_id>[^/]+)$"), "_seat_grid"),
        ("GET", re.compile(r"^/seats/(?P<library_id>[^/]+)/(?P<seat_number>\d+)$"), "_seat_details"),
        ("POST", re.compile(r"^/seats/(?P<library_id>[^/]+)/(?P<seat_number>\d+)/book$"), "_book"),
        ("PUT", re.compile(r"^/seats/(?P<library_id>[^/]+)/(?P<seat_number>\d+)/book/(?P<shift_name>[^/]+)$"), "_update"),
        ("DELETE", re.compile(r"^/seats/(?P<library_id>[^/]+)/(?P<seat_number>\d+)/book/(?P<shift_name>[^/]+)$"), "_release"),
    ]

    def __init__(self, config: Optional[APIConfig] = None, manager_id: str = "manager-1"):
        super().__init__(config or APIConfig(api_name="mock", base_url="mock://seatbook"))
        self.manager_id = manager_id
        self.libraries: Dict[str, Dict[str, Any]] = {}
        self.seats: Dict[Tuple[str, int], Dict[str, Any]] = {}
        self.students: Dict[str, Dict[str, Any]] = {}
        self.calls: List[Tuple[str, str]] = []
        self.reachable = True
        self.credentials_valid = True
        self._fail_next = 0
        self._drop_next = 0
        self._ids = itertools.count(1)

    def _set_auth_header(self):
        """No auth needed for mock"""
        pass

    @property
    def probe_url(self) -> Optional[str]:
        # Nothing to probe; reachability is driven by set_reachable
        return None

    # =========================================================================
    # FAULT INJECTION
    # =========================================================================

    def set_reachable(self, reachable: bool) -> None:
        self.reachable = reachable

    def fail_next(self, count: int = 1) -> None:
        """Fail the next calls with a network error before anything is committed."""
        self._fail_next += count

    def drop_next_response(self, count: int = 1) -> None:
        """Commit the next calls, then lose the acknowledgement."""
        self._drop_next += count

    def expire_credentials(self) -> None:
        self.credentials_valid = False

    # =========================================================================
    # DISPATCH
    # =========================================================================

    def request(
        self,
        method: str,
        path: str,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        method = method.upper()
        self.calls.append((method, path))

        if not self.reachable:
            raise NetworkError("Mock backend unreachable", method=method, path=path)
        if self._fail_next:
            self._fail_next -= 1
            raise NetworkError("Connection reset", method=method, path=path)
        if not self.credentials_valid:
            raise AuthenticationError("Token expired", status_code=401)

        handler, params = self._route(method, path)
        body = copy.deepcopy(handler(copy.deepcopy(payload or {}), **params))

        if self._drop_next:
            self._drop_next -= 1
            raise NetworkError(
                "Connection dropped before the acknowledgement arrived",
                method=method, path=path, timed_out=True,
            )
        return body

    def _route(self, method: str, path: str) -> Tuple[Callable[..., Dict[str, Any]], Dict[str, Any]]:
        for route_method, pattern, handler_name in self.ROUTES:
            if route_method != method:
                continue
            match = pattern.match(path)
            if match:
                params = {k: unquote(v) for k, v in match.groupdict().items()}
                if "seat_number" in params:
                    params["seat_number"] = int(params["seat_number"])
                return getattr(self, handler_name), params
        raise NotFoundError(f"Cannot {method} {path}", resource=path, status_code=404)

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _next_id(self, prefix: str) -> str:
        return f"{prefix}-{next(self._ids)}"

    def _owned_library(self, library_id: str) -> Dict[str, Any]:
        library = self.libraries.get(library_id)
        if library is None or library["managerId"] != self.manager_id:
            raise AuthorizationError(
                "Access denied: This library does not belong to you",
                library_id=library_id,
                status_code=403,
            )
        return library

    def _find_seat(self, library_id: str, seat_number: int) -> Dict[str, Any]:
        seat = self.seats.get((library_id, seat_number))
        if seat is None:
            raise NotFoundError("Seat not found", resource="seat", status_code=404)
        return seat

    def _library_seats(self, library_id: str) -> List[Dict[str, Any]]:
        keys = sorted(k for k in self.seats if k[0] == library_id)
        return [self.seats[k] for k in keys]

    def _populate(self, seat: Dict[str, Any]) -> Dict[str, Any]:
        populated = copy.deepcopy(seat)
        for shift in populated["shifts"]:
            student = self.students.get(shift["studentId"]) if shift["studentId"] else None
            if student is not None:
                shift["studentId"] = {
                    k: student[k] for k in STUDENT_PUBLIC_FIELDS if student.get(k) is not None
                }
        return populated

    def _with_count(self, library: Dict[str, Any]) -> Dict[str, Any]:
        booked = 0
        for seat in self._library_seats(library["_id"]):
            shifts = seat["shifts"]
            if shifts and all(s["studentId"] for s in shifts):
                booked += 1
        return {**library, "bookedSeatsCount": booked}

    @staticmethod
    def _require(payload: Dict[str, Any], fields: Tuple[str, ...], message: str) -> None:
        missing = [f for f in fields if not payload.get(f)]
        if missing:
            raise ValidationError(message, details={"missing": missing}, status_code=400)

    # =========================================================================
    # HANDLERS
    # =========================================================================

    def _library_me(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        for library in self.libraries.values():
            if library["managerId"] == self.manager_id:
                return {"library": self._with_count(library)}
        raise NotFoundError("No library found for this manager", resource="library", status_code=404)

    def _register_library(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        shifts = payload.get("shifts")
        if not payload.get("name") or not isinstance(shifts, list) or not shifts:
            raise ValidationError(
                "Missing required fields. Provide name, capacity and shifts.", status_code=400
            )
        capacity = payload.get("capacity")
        if isinstance(capacity, bool) or not isinstance(capacity, int) or capacity <= 0:
            raise ValidationError("Capacity must be a positive number", field="capacity", status_code=400)
        for shift in shifts:
            if not shift.get("name") or not shift.get("startTime") or not shift.get("endTime"):
                raise ValidationError(
                    "Each shift must include name, startTime and endTime", status_code=400
                )
        if len({s["name"] for s in shifts}) != len(shifts):
            raise ValidationError("Shift names must be unique", field="shifts", status_code=400)
        if any(lib["managerId"] == self.manager_id for lib in self.libraries.values()):
            raise ValidationError("Manager already has a registered library", status_code=400)

        library_id = self._next_id("lib")
        self.libraries[library_id] = {
            "_id": library_id,
            "managerId": self.manager_id,
            "name": payload["name"],
            "capacity": capacity,
            "quote": payload.get("quote"),
            "location": payload.get("location"),
            "createdAt": datetime.now().isoformat(),
        }
        for number in range(1, capacity + 1):
            self.seats[(library_id, number)] = {
                "_id": self._next_id("seat"),
                "libraryId": library_id,
                "seatNumber": number,
                "shifts": [
                    {
                        "name": s["name"],
                        "startTime": s["startTime"],
                        "endTime": s["endTime"],
                        "studentId": None,
                    }
                    for s in shifts
                ],
            }
        return {"message": "Library registered", "libraryId": library_id}

    def _seat_grid(self, payload: Dict[str, Any], library_id: str) -> Dict[str, Any]:
        library = self._owned_library(library_id)
        return {
            "library": self._with_count(library),
            "seats": [self._populate(s) for s in self._library_seats(library_id)],
        }

    def _seat_details(self, payload: Dict[str, Any], library_id: str, seat_number: int) -> Dict[str, Any]:
        self._owned_library(library_id)
        return {"seat": self._populate(self._find_seat(library_id, seat_number))}

    def _book(self, payload: Dict[str, Any], library_id: str, seat_number: int) -> Dict[str, Any]:
        self._require(
            payload,
            ("name", "shiftName", "dateofJoin", "contact"),
            "Missing required fields. Please provide name, Date Of Joining, contact, and shift.",
        )
        self._owned_library(library_id)

        operation_id = payload.get("operationId")
        if operation_id:
            for student in self.students.values():
                if student.get("operationId") == operation_id:
                    seat = self.seats.get((library_id, seat_number))
                    return {
                        "message": "Operation already processed",
                        "studentId": student["_id"],
                        "student": copy.deepcopy(student),
                        "seat": self._populate(seat) if seat else None,
                    }

        seat = self._find_seat(library_id, seat_number)
        shift_name = payload["shiftName"]
        slot = next((s for s in seat["shifts"] if s["name"] == shift_name), None)
        if slot is None:
            raise ValidationError("Shift not available on this seat", field="shiftName", status_code=400)
        if slot["studentId"]:
            raise ConflictError(
                "Shift already booked for this seat",
                seat_number=seat_number, shift_name=shift_name, status_code=400,
            )

        student = {
            "_id": self._next_id("stu"),
            "libraryId": library_id,
            "name": payload["name"],
            "dateofJoin": payload["dateofJoin"],
            "contact": payload["contact"],
            "email": payload.get("email") or None,
            "seatNumber": seat_number,
            "shiftName": shift_name,
            "operationId": operation_id or None,
            "createdAt": datetime.now().isoformat(),
        }
        self.students[student["_id"]] = student
        slot["studentId"] = student["_id"]
        return {"message": "Seat booked", "studentId": student["_id"], "student": copy.deepcopy(student)}

    def _update(self, payload: Dict[str, Any], library_id: str, seat_number: int, shift_name: str) -> Dict[str, Any]:
        self._require(
            payload,
            ("name", "dateofJoin", "contact"),
            "Missing required fields. Please provide name, Date Of Joining, and contact.",
        )
        self._owned_library(library_id)
        seat = self._find_seat(library_id, seat_number)
        slot = next((s for s in seat["shifts"] if s["name"] == shift_name), None)
        if slot is None:
            raise NotFoundError("Shift not found", resource="shift", status_code=404)
        if not slot["studentId"]:
            raise ValidationError("Shift is not booked", status_code=400)
        student = self.students.get(slot["studentId"])
        if student is None:
            raise NotFoundError("Student not found", resource="student", status_code=404)

        student.update({
            "name": payload["name"],
            "dateofJoin": payload["dateofJoin"],
            "contact": payload["contact"],
            "email": payload.get("email") or None,
        })
        return {"message": "Student information updated", "student": copy.deepcopy(student)}

    def _release(self, payload: Dict[str, Any], library_id: str, seat_number: int, shift_name: str) -> Dict[str, Any]:
        self._owned_library(library_id)
        seat = self._find_seat(library_id, seat_number)
        slot = next((s for s in seat["shifts"] if s["name"] == shift_name), None)
        if slot is None:
            raise NotFoundError("Shift not found", resource="shift", status_code=404)

        student_id = slot["studentId"]
        slot["studentId"] = None
        if student_id:
            self.students.pop(student_id, None)
        return {"message": "Booking deleted successfully"}
