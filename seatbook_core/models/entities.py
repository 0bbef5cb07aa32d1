# =============================================================================
# seatbook_core/models/entities.py
# Library, Seat, Shift Slot, Student and Pending Operation records
# =============================================================================
"""
Domain records shared by the local store, the remote connector and the UI.

Every record converts to and from the wire format used by the booking API
(camelCase keys, ``_id`` for remote identifiers). A shift slot's occupant is
modelled as a tagged union:

    Unoccupied          -> ``studentId: null``
    StudentReference    -> ``studentId: "<id>"``      (before population)
    ResolvedStudent     -> ``studentId: {...}``       (after population)
"""

from __future__ import annotations
import copy
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from seatbook_core.errors import ValidationError


def _remote_id(data: Dict[str, Any]) -> Optional[str]:
    value = data.get("_id", data.get("id"))
    return str(value) if value is not None else None


# =============================================================================
# STUDENT / OCCUPANT
# =============================================================================

@dataclass
class Student:
    """A booking record bound to exactly one shift slot."""
    name: str
    date_of_join: str
    contact: str
    id: Optional[str] = None
    library_id: Optional[str] = None
    email: Optional[str] = None
    seat_number: Optional[int] = None
    shift_name: Optional[str] = None
    operation_id: Optional[str] = None
    created_at: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Student:
        seat_number = data.get("seatNumber", data.get("seat_number"))
        return cls(
            id=_remote_id(data),
            library_id=data.get("libraryId", data.get("library_id")),
            name=data.get("name", ""),
            date_of_join=data.get("dateofJoin", data.get("date_of_join", "")),
            contact=data.get("contact", ""),
            email=data.get("email") or None,
            seat_number=int(seat_number) if seat_number is not None else None,
            shift_name=data.get("shiftName", data.get("shift_name")),
            operation_id=data.get("operationId", data.get("operation_id")),
            created_at=data.get("createdAt", data.get("created_at")),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "_id": self.id,
            "libraryId": self.library_id,
            "name": self.name,
            "dateofJoin": self.date_of_join,
            "contact": self.contact,
            "email": self.email,
            "seatNumber": self.seat_number,
            "shiftName": self.shift_name,
            "operationId": self.operation_id,
            "createdAt": self.created_at,
        }
        return {k: v for k, v in data.items() if v is not None}


@dataclass(frozen=True)
class Unoccupied:
    """The slot is available."""

    def to_wire(self) -> None:
        return None


@dataclass(frozen=True)
class StudentReference:
    """The slot is booked; only the student identifier is known."""
    student_id: str

    def to_wire(self) -> str:
        return self.student_id


@dataclass(frozen=True)
class ResolvedStudent:
    """The slot is booked and the student record is embedded."""
    student: Student

    def to_wire(self) -> Dict[str, Any]:
        return self.student.to_dict()


Occupant = Union[Unoccupied, StudentReference, ResolvedStudent]

UNOCCUPIED = Unoccupied()


def parse_occupant(raw: Any) -> Occupant:
    """Decode the ``studentId`` field of a shift slot."""
    if raw is None or raw == "":
        return UNOCCUPIED
    if isinstance(raw, dict):
        return ResolvedStudent(Student.from_dict(raw))
    return StudentReference(str(raw))


def occupant_student_id(occupant: Occupant) -> Optional[str]:
    if isinstance(occupant, StudentReference):
        return occupant.student_id
    if isinstance(occupant, ResolvedStudent):
        return occupant.student.id
    return None


def occupant_operation_id(occupant: Occupant) -> Optional[str]:
    """Client idempotency token of the booking, when the record carries one."""
    if isinstance(occupant, ResolvedStudent):
        return occupant.student.operation_id
    return None


# =============================================================================
# SHIFTS AND SEATS
# =============================================================================

@dataclass
class ShiftTemplate:
    """A named time window defined once per library."""
    name: str
    start_time: str
    end_time: str

    def validate(self) -> None:
        if not (self.name or "").strip() or not self.start_time or not self.end_time:
            raise ValidationError(
                "Each shift must include name, startTime and endTime",
                field="shifts",
            )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ShiftTemplate:
        return cls(
            name=data.get("name", ""),
            start_time=data.get("startTime", data.get("start_time", "")),
            end_time=data.get("endTime", data.get("end_time", "")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "startTime": self.start_time, "endTime": self.end_time}

    def stamp(self) -> ShiftSlot:
        """Create an empty slot for a new seat."""
        return ShiftSlot(self.name, self.start_time, self.end_time)


@dataclass
class ShiftSlot:
    """One seat's instance of a shift template, holding the booking state."""
    name: str
    start_time: str
    end_time: str
    occupant: Occupant = UNOCCUPIED

    @property
    def is_occupied(self) -> bool:
        return not isinstance(self.occupant, Unoccupied)

    @property
    def student(self) -> Optional[Student]:
        if isinstance(self.occupant, ResolvedStudent):
            return self.occupant.student
        return None

    @property
    def operation_id(self) -> Optional[str]:
        return occupant_operation_id(self.occupant)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ShiftSlot:
        return cls(
            name=data.get("name", ""),
            start_time=data.get("startTime", data.get("start_time", "")),
            end_time=data.get("endTime", data.get("end_time", "")),
            occupant=parse_occupant(data.get("studentId", data.get("student_id"))),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "studentId": self.occupant.to_wire(),
        }


@dataclass
class Seat:
    """A seat of one library with its ordered shift slots."""
    library_id: str
    seat_number: int
    shifts: List[ShiftSlot] = field(default_factory=list)
    id: Optional[str] = None

    def __post_init__(self):
        names = [s.name for s in self.shifts]
        if len(names) != len(set(names)):
            raise ValidationError(
                f"Shift names must be unique within seat {self.seat_number}",
                field="shifts",
            )

    @property
    def is_fully_booked(self) -> bool:
        return bool(self.shifts) and all(s.is_occupied for s in self.shifts)

    @property
    def is_partial(self) -> bool:
        return any(s.is_occupied for s in self.shifts) and not self.is_fully_booked

    @property
    def booked_shift_count(self) -> int:
        return sum(1 for s in self.shifts if s.is_occupied)

    def find_shift(self, shift_name: str) -> Optional[ShiftSlot]:
        for slot in self.shifts:
            if slot.name == shift_name:
                return slot
        return None

    def with_occupant(self, shift_name: str, occupant: Occupant) -> Seat:
        """Return a copy of the seat with one slot's occupant replaced."""
        if self.find_shift(shift_name) is None:
            raise ValidationError(
                f"Shift '{shift_name}' not available on seat {self.seat_number}",
                field="shiftName",
            )
        shifts = [
            replace(s, occupant=occupant) if s.name == shift_name else s
            for s in self.shifts
        ]
        return replace(self, shifts=shifts)

    def copy(self) -> Seat:
        return copy.deepcopy(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], library_id: Optional[str] = None) -> Seat:
        owner = data.get("libraryId", data.get("library_id")) or library_id
        return cls(
            id=_remote_id(data),
            library_id=str(owner) if owner is not None else "",
            seat_number=int(data.get("seatNumber", data.get("seat_number"))),
            shifts=[ShiftSlot.from_dict(s) for s in data.get("shifts") or []],
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "libraryId": self.library_id,
            "seatNumber": self.seat_number,
            "shifts": [s.to_dict() for s in self.shifts],
        }
        if self.id is not None:
            data["_id"] = self.id
        return data


# =============================================================================
# LIBRARY
# =============================================================================

@dataclass
class Library:
    """One library per manager."""
    id: Optional[str]
    manager_id: Optional[str]
    name: str
    capacity: int
    quote: Optional[str] = None
    location: Optional[str] = None
    created_at: Optional[str] = None
    booked_seats_count: int = 0

    @property
    def available_seats_count(self) -> int:
        return max(self.capacity - self.booked_seats_count, 0)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Library:
        manager = data.get("managerId", data.get("manager_id"))
        return cls(
            id=_remote_id(data),
            manager_id=str(manager) if manager is not None else None,
            name=data.get("name", ""),
            capacity=int(data.get("capacity") or 0),
            quote=data.get("quote") or None,
            location=data.get("location") or None,
            created_at=data.get("createdAt", data.get("created_at")),
            booked_seats_count=int(
                data.get("bookedSeatsCount", data.get("booked_seats_count")) or 0
            ),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "_id": self.id,
            "managerId": self.manager_id,
            "name": self.name,
            "capacity": self.capacity,
            "quote": self.quote,
            "location": self.location,
            "createdAt": self.created_at,
            "bookedSeatsCount": self.booked_seats_count,
        }


# =============================================================================
# PENDING OPERATION
# =============================================================================

class OperationStatus(Enum):
    """Lifecycle of a queued mutation."""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class PendingOperation:
    """A mutating request awaiting network replay."""
    method: str
    path: str
    payload: Optional[Dict[str, Any]] = None
    library_id: Optional[str] = None
    operation_id: Optional[str] = None
    id: Optional[int] = None
    created_at: str = field(default_factory=lambda: datetime.now().isoformat())
    retry_count: int = 0
    status: OperationStatus = OperationStatus.PENDING
    last_attempt: Optional[str] = None
    last_error: Optional[str] = None

    @property
    def is_pending(self) -> bool:
        return self.status == OperationStatus.PENDING

    def describe(self) -> str:
        return f"{self.method} {self.path}"
