# =============================================================================
# seatbook_core/models/__init__.py
# Domain records
# =============================================================================

from .entities import (
    Library,
    ShiftTemplate,
    ShiftSlot,
    Seat,
    Student,
    Unoccupied,
    StudentReference,
    ResolvedStudent,
    Occupant,
    UNOCCUPIED,
    parse_occupant,
    occupant_student_id,
    occupant_operation_id,
    OperationStatus,
    PendingOperation,
)

__all__ = [
    "Library",
    "ShiftTemplate",
    "ShiftSlot",
    "Seat",
    "Student",
    "Unoccupied",
    "StudentReference",
    "ResolvedStudent",
    "Occupant",
    "UNOCCUPIED",
    "parse_occupant",
    "occupant_student_id",
    "occupant_operation_id",
    "OperationStatus",
    "PendingOperation",
]
