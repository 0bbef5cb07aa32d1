# =============================================================================
# tests/unit/test_ui_helpers.py
# Unit Tests for reminder links and dashboard summaries
# =============================================================================

from urllib.parse import unquote

import pandas as pd
import pytest

from seatbook_core.models import (
    UNOCCUPIED,
    OperationStatus,
    PendingOperation,
    ResolvedStudent,
    Seat,
    ShiftSlot,
    Student,
    StudentReference,
)
from seatbook_core.ui import build_whatsapp_reminder_link
from seatbook_core.ui.components import (
    operations_to_dataframe,
    seat_color,
    seats_to_dataframe,
    summarize_seats,
)
from seatbook_core.ui.theme import SEAT_FREE_COLOR, SEAT_FULL_COLOR, SEAT_PARTIAL_COLOR


def _seat(number, *occupants):
    names = ["Morning", "Evening"]
    return Seat("lib-1", number, [
        ShiftSlot(name, "08:00", "12:00", occupant) for name, occupant in zip(names, occupants)
    ])


class TestReminderLink:

    def test_digits_and_message(self):
        link = build_whatsapp_reminder_link("Asha", "+91 98765-43210")
        base, _, text = link.partition("?text=")

        assert base == "https://wa.me/919876543210"
        assert unquote(text) == (
            "Hello Asha, this is a reminder that your library fee is due. "
            "Please pay as soon as possible."
        )

    def test_missing_phone(self):
        with pytest.raises(ValueError):
            build_whatsapp_reminder_link("Asha", "n/a")


class TestSeatSummaries:

    def test_summarize_counts_full_seats_only(self):
        taken = StudentReference("stu-1")
        seats = [
            _seat(1, taken, taken),
            _seat(2, taken, UNOCCUPIED),
            _seat(3, UNOCCUPIED, UNOCCUPIED),
        ]
        summary = summarize_seats(seats, capacity=4)

        assert summary == {"total": 4, "booked": 1, "partial": 1, "free": 1, "available": 3}
        assert [seat_color(s) for s in seats] == [SEAT_FULL_COLOR, SEAT_PARTIAL_COLOR, SEAT_FREE_COLOR]

    def test_seats_to_dataframe(self):
        student = Student(id="stu-1", name="Asha", date_of_join="2024-06-01", contact="98")
        seats = [_seat(1, ResolvedStudent(student), StudentReference("stu-2"))]

        df = seats_to_dataframe(seats)

        assert len(df) == 2
        assert df.loc[0, "student"] == "Asha"
        assert bool(df.loc[1, "booked"]) is True
        assert pd.isna(df.loc[1, "student"])
        assert pd.isna(df.loc[1, "contact"])

    def test_empty_frames_keep_columns(self):
        assert list(seats_to_dataframe([]).columns)[:2] == ["seat", "shift"]
        assert operations_to_dataframe([]).empty

    def test_operations_to_dataframe(self):
        op = PendingOperation("POST", "/seats/lib-1/1/book", id=7, retry_count=3,
                              status=OperationStatus.FAILED, last_error="Shift already booked")
        df = operations_to_dataframe([op])
        assert df.loc[0, "request"] == "POST /seats/lib-1/1/book"
        assert df.loc[0, "attempts"] == 3
