# =============================================================================
# tests/unit/test_optimistic.py
# Unit Tests for optimistic local updates
# =============================================================================

import pytest

from seatbook_core.errors import ConflictError
from seatbook_core.models import (
    UNOCCUPIED,
    Library,
    ResolvedStudent,
    Seat,
    ShiftSlot,
    Student,
    StudentReference,
)
from seatbook_core.offline.optimistic import OptimisticUpdate


@pytest.fixture
def seeded_db(local_db):
    local_db.save_library(Library(id="lib-1", manager_id="manager-1", name="Quiet Corner", capacity=1))
    local_db.put_seat(Seat("lib-1", 1, [
        ShiftSlot("Morning", "08:00", "12:00", StudentReference("stu-1")),
        ShiftSlot("Evening", "16:00", "20:00"),
    ]))
    return local_db


def _student(name="Asha"):
    return Student(name=name, date_of_join="2024-06-01", contact="98", library_id="lib-1",
                   seat_number=1, shift_name="Evening", operation_id="op-1")


class TestOptimisticUpdate:

    def test_apply_patches_seat_and_count(self, seeded_db):
        seat = seeded_db.get_seat("lib-1", 1)
        update = OptimisticUpdate(seeded_db, seat, "Evening")

        student = _student()
        update.apply(ResolvedStudent(student), student)

        assert seeded_db.get_seat("lib-1", 1).is_fully_booked
        assert seeded_db.get_library_by_id("lib-1").booked_seats_count == 1
        assert [s.name for s in seeded_db.get_students("lib-1")] == ["Asha"]

    def test_rollback_restores_prior_state(self, seeded_db):
        seat = seeded_db.get_seat("lib-1", 1)
        update = OptimisticUpdate(seeded_db, seat, "Evening")
        student = _student()
        update.apply(ResolvedStudent(student), student)

        update.rollback()

        restored = seeded_db.get_seat("lib-1", 1)
        assert not restored.find_shift("Evening").is_occupied
        assert restored.find_shift("Morning").occupant == StudentReference("stu-1")
        assert seeded_db.get_library_by_id("lib-1").booked_seats_count == 0
        assert seeded_db.get_students("lib-1") == []

    def test_rollback_after_commit_is_noop(self, seeded_db):
        seat = seeded_db.get_seat("lib-1", 1)
        update = OptimisticUpdate(seeded_db, seat, "Evening")
        student = _student()
        update.apply(ResolvedStudent(student), student)
        update.commit()

        update.rollback()

        assert seeded_db.get_seat("lib-1", 1).is_fully_booked

    def test_release_restores_student_on_rollback(self, seeded_db):
        holder = _student("Ravi")
        seeded_db.save_student(holder)
        seat = seeded_db.get_seat("lib-1", 1).with_occupant("Evening", ResolvedStudent(holder))
        seeded_db.put_seat(seat)

        update = OptimisticUpdate(seeded_db, seat, "Evening")
        update.apply(UNOCCUPIED)
        assert seeded_db.get_students("lib-1") == []

        update.rollback()
        assert [s.name for s in seeded_db.get_students("lib-1")] == ["Ravi"]
        assert seeded_db.get_seat("lib-1", 1).find_shift("Evening").student.name == "Ravi"

    def test_context_manager_rolls_back_on_error(self, seeded_db):
        seat = seeded_db.get_seat("lib-1", 1)
        student = _student()

        with pytest.raises(ConflictError):
            with OptimisticUpdate(seeded_db, seat, "Evening") as update:
                update.apply(ResolvedStudent(student), student)
                raise ConflictError("Shift already booked")

        assert not seeded_db.get_seat("lib-1", 1).find_shift("Evening").is_occupied
