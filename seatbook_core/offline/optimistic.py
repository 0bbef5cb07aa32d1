# =============================================================================
# seatbook_core/offline/optimistic.py
# Optimistic Local Updates
# =============================================================================
"""
OptimisticUpdate - Apply a slot change to the local store immediately and
undo it if the mutation is ultimately rejected.

Usage:
    with OptimisticUpdate(local_db, seat, "Morning") as update:
        update.apply(occupant=ResolvedStudent(student), student=student)
        connector.book_seat(...)   # raising here restores the prior state
"""

from __future__ import annotations
from typing import List, Optional
import logging

from seatbook_core.models import Occupant, Seat, Student

from .reconciliation import count_booked_seats

logger = logging.getLogger(__name__)


class OptimisticUpdate:
    """One reversible change to a single shift slot."""

    def __init__(self, local_db, seat: Seat, shift_name: str):
        self.local_db = local_db
        self.seat = seat
        self.shift_name = shift_name
        self._prior_seat: Optional[Seat] = None
        self._prior_students: List[Student] = []
        self._prior_count: Optional[int] = None
        self._applied = False
        self._closed = False

    def apply(self, occupant: Occupant, student: Optional[Student] = None) -> Seat:
        """
        Write the new occupant to the local store, remembering the prior state.

        Args:
            occupant: New occupant of the slot
            student: Student row to store for the slot; None removes the slot's row

        Returns:
            The patched seat
        """
        library_id = self.seat.library_id
        self._prior_seat = self.local_db.get_seat(library_id, self.seat.seat_number)
        self._prior_students = [
            s for s in self.local_db.get_students(library_id)
            if s.seat_number == self.seat.seat_number and s.shift_name == self.shift_name
        ]
        library = self.local_db.get_library_by_id(library_id)
        self._prior_count = library.booked_seats_count if library else None

        patched = self.seat.with_occupant(self.shift_name, occupant)
        self.local_db.put_seat(patched)
        if student is not None:
            self.local_db.save_student(student)
        else:
            self.local_db.delete_slot_students(library_id, self.seat.seat_number, self.shift_name)
        if library is not None:
            self.local_db.update_booked_seats_count(
                library_id, count_booked_seats(self.local_db.get_seats(library_id))
            )

        self._applied = True
        logger.debug(f"Optimistic patch applied: seat {self.seat.seat_number} / {self.shift_name}")
        return patched

    def commit(self) -> None:
        """Keep the patch (the server accepted it or it is queued)."""
        self._closed = True

    def rollback(self) -> None:
        """Restore the seat, its slot's student rows and the booked count."""
        if not self._applied or self._closed:
            return
        library_id = self.seat.library_id

        if self._prior_seat is not None:
            self.local_db.put_seat(self._prior_seat)
        else:
            self.local_db.delete_seat(library_id, self.seat.seat_number)

        self.local_db.delete_slot_students(library_id, self.seat.seat_number, self.shift_name)
        for student in self._prior_students:
            self.local_db.save_student(student)

        if self._prior_count is not None:
            self.local_db.update_booked_seats_count(library_id, self._prior_count)

        self._closed = True
        logger.info(f"Optimistic patch rolled back: seat {self.seat.seat_number} / {self.shift_name}")

    def __enter__(self) -> OptimisticUpdate:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        if exc_type is not None:
            self.rollback()
        else:
            self.commit()
        return False
