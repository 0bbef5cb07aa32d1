# =============================================================================
# tests/unit/test_reconciliation.py
# Unit Tests for merging server state into the local store
# =============================================================================

import pytest
from unittest.mock import MagicMock

from seatbook_core.errors import NetworkError
from seatbook_core.models import (
    UNOCCUPIED,
    Library,
    PendingOperation,
    ResolvedStudent,
    Seat,
    ShiftSlot,
    Student,
    StudentReference,
)
from seatbook_core.offline.reconciliation import (
    ReconciliationEngine,
    count_booked_seats,
    merge_seats,
)


def _booking(name, op_id=None, student_id=None):
    return ResolvedStudent(Student(id=student_id, name=name, date_of_join="2024-06-01", contact="98", operation_id=op_id))


def _seat(number, morning=UNOCCUPIED, evening=UNOCCUPIED):
    return Seat("lib-1", number, [
        ShiftSlot("Morning", "08:00", "12:00", morning),
        ShiftSlot("Evening", "16:00", "20:00", evening),
    ])


class TestCountBookedSeats:

    def test_partial_seats_not_counted(self):
        taken = StudentReference("stu-1")
        seats = [_seat(1, taken, taken), _seat(2, taken), _seat(3)]
        assert count_booked_seats(seats) == 1

    def test_empty(self):
        assert count_booked_seats([]) == 0


class TestMergeSeats:

    def test_unacknowledged_local_booking_kept(self):
        server = [_seat(1)]
        local = [_seat(1, morning=_booking("Asha", op_id="op-1"))]

        outcome = merge_seats(server, local, {"op-1"})

        assert outcome.seats[0].find_shift("Morning").student.name == "Asha"
        assert outcome.kept_local == [(1, "Morning")]
        assert outcome.anomalies == []

    def test_acknowledged_booking_takes_server_state(self):
        server = [_seat(1, morning=_booking("Asha B.", op_id="op-1", student_id="stu-1"))]
        local = [_seat(1, morning=_booking("Asha", op_id="op-1"))]

        outcome = merge_seats(server, local, set())

        slot = outcome.seats[0].find_shift("Morning")
        assert slot.student.name == "Asha B."
        assert slot.student.id == "stu-1"
        assert outcome.kept_local == []

    def test_server_carrying_same_operation_wins(self):
        server = [_seat(1, morning=_booking("Server copy", op_id="op-1", student_id="stu-1"))]
        local = [_seat(1, morning=_booking("Local copy", op_id="op-1"))]

        outcome = merge_seats(server, local, {"op-1"})

        assert outcome.seats[0].find_shift("Morning").student.name == "Server copy"

    def test_server_release_applied_without_queued_op(self):
        server = [_seat(1)]
        local = [_seat(1, evening=_booking("Ravi", student_id="stu-2"))]

        outcome = merge_seats(server, local, set())

        assert not outcome.seats[0].find_shift("Evening").is_occupied

    def test_local_only_seat_preserved_as_anomaly(self):
        server = [_seat(1)]
        local = [_seat(1), _seat(5, morning=StudentReference("stu-3"))]

        outcome = merge_seats(server, local, set())

        assert [s.seat_number for s in outcome.seats] == [1, 5]
        assert len(outcome.anomalies) == 1
        assert outcome.anomalies[0].seat_number == 5

    def test_result_sorted_by_seat_number(self):
        server = [_seat(3), _seat(1), _seat(2)]
        outcome = merge_seats(server, [], set())
        assert [s.seat_number for s in outcome.seats] == [1, 2, 3]


class TestReconciliationEngine:

    @pytest.fixture
    def connector(self):
        connector = MagicMock()
        connector.get_seats.return_value = (
            Library(id="lib-1", manager_id="manager-1", name="Quiet Corner", capacity=2, booked_seats_count=0),
            [
                _seat(1, StudentReference("stu-1"), _booking("Ravi", student_id="stu-2")),
                _seat(2),
            ],
        )
        return connector

    def test_reconcile_persists_merge(self, local_db, connector):
        local_db.put_seat(_seat(2, morning=_booking("Asha", op_id="op-9")))
        local_db.insert_pending_operation(PendingOperation("POST", "/seats/lib-1/2/book", {}, "lib-1", "op-9"))

        result = ReconciliationEngine(local_db, connector).reconcile("lib-1")

        assert result.booked_seats_count == 1
        assert result.kept_local == [(2, "Morning")]
        assert local_db.get_library_by_id("lib-1").booked_seats_count == 1
        assert local_db.get_seat("lib-1", 2).find_shift("Morning").student.name == "Asha"
        assert sorted(s.name for s in local_db.get_students("lib-1")) == ["Asha", "Ravi"]

    def test_fetch_failure_leaves_store_untouched(self, local_db):
        connector = MagicMock()
        connector.get_seats.side_effect = NetworkError("Connection refused")
        local_db.put_seat(_seat(1))

        with pytest.raises(NetworkError):
            ReconciliationEngine(local_db, connector).reconcile("lib-1")

        assert len(local_db.get_seats("lib-1")) == 1
        assert local_db.get_library_by_id("lib-1") is None
