"""
Seat Booking UI Components.

Reusable Streamlit widgets for the library dashboard: connection banner,
summary cards, the seat grid, booking forms and the failed-sync table.
"""
from datetime import date
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd
import streamlit as st

from seatbook_core.models import Library, PendingOperation, Seat, ShiftSlot
from seatbook_core.ui.reminders import build_whatsapp_reminder_link
from seatbook_core.ui.theme import (
    DANGER_COLOR, PRIMARY_COLOR, SEAT_FREE_COLOR, SEAT_FULL_COLOR,
    SEAT_PARTIAL_COLOR, SUCCESS_COLOR, WARNING_COLOR,
)


# =============================================================================
# PURE HELPERS
# =============================================================================

def summarize_seats(seats: Sequence[Seat], capacity: Optional[int] = None) -> Dict[str, int]:
    """Counts shown in the summary cards (fully booked seats only count as booked)."""
    full = sum(1 for s in seats if s.is_fully_booked)
    partial = sum(1 for s in seats if s.is_partial)
    total = capacity if capacity is not None else len(seats)
    return {
        "total": total,
        "booked": full,
        "partial": partial,
        "free": len(seats) - full - partial,
        "available": max(total - full, 0),
    }


def seat_color(seat: Seat) -> str:
    if seat.is_fully_booked:
        return SEAT_FULL_COLOR
    if seat.is_partial:
        return SEAT_PARTIAL_COLOR
    return SEAT_FREE_COLOR


def seats_to_dataframe(seats: Sequence[Seat]) -> pd.DataFrame:
    """One row per shift slot."""
    rows = []
    for seat in seats:
        for slot in seat.shifts:
            student = slot.student
            rows.append({
                "seat": seat.seat_number,
                "shift": slot.name,
                "start": slot.start_time,
                "end": slot.end_time,
                "booked": slot.is_occupied,
                "student": student.name if student else None,
                "contact": student.contact if student else None,
                "joined": student.date_of_join if student else None,
            })
    return pd.DataFrame(
        rows, columns=["seat", "shift", "start", "end", "booked", "student", "contact", "joined"]
    )


def operations_to_dataframe(operations: Sequence[PendingOperation]) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "id": op.id,
                "request": op.describe(),
                "attempts": op.retry_count,
                "last_error": op.last_error,
                "queued_at": op.created_at,
            }
            for op in operations
        ],
        columns=["id", "request", "attempts", "last_error", "queued_at"],
    )


# =============================================================================
# LAYOUT
# =============================================================================

def header(title: str, subtitle: str, icon: str = "📚"):
    st.markdown(f"""
        <div class="main-header">
            <div style="display:flex;gap:1.2rem;align-items:center;">
                <div style="font-size:2.6rem;">{icon}</div>
                <div>
                    <h1 style="margin:0; font-size:2rem; color:white;">{title}</h1>
                    <p style="margin:.35rem 0 0 0;color:rgba(255,255,255,.85);">{subtitle}</p>
                </div>
            </div>
        </div>
    """, unsafe_allow_html=True)


def status_banner(is_online: bool, is_syncing: bool, pending_count: int, failed_count: int = 0):
    """Offline / syncing indicator shown above every view."""
    if not is_online:
        color, text = DANGER_COLOR, "You are offline. Changes are saved locally and will sync when the connection returns."
    elif is_syncing:
        color, text = PRIMARY_COLOR, "Syncing offline changes..."
    elif pending_count:
        color, text = WARNING_COLOR, f"{pending_count} change(s) waiting to sync."
    else:
        color, text = SUCCESS_COLOR, "Online. All changes synced."

    st.markdown(
        f'<div class="status-banner" style="background:{color};">{text}</div>',
        unsafe_allow_html=True,
    )
    if failed_count:
        st.warning(f"{failed_count} change(s) could not be synced. Review them under Sync issues.")


def library_summary_cards(library: Library, seats: Sequence[Seat]):
    summary = summarize_seats(seats, capacity=library.capacity)
    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Capacity", summary["total"])
    c2.metric("Fully booked", library.booked_seats_count)
    c3.metric("Partially booked", summary["partial"])
    c4.metric("Available", library.available_seats_count)


def seat_grid(seats: Sequence[Seat], columns: int = 8, key_prefix: str = "seat") -> Optional[int]:
    """Render seat tiles; returns the seat number whose button was clicked."""
    selected = None
    for start in range(0, len(seats), columns):
        cols = st.columns(columns)
        for col, seat in zip(cols, seats[start:start + columns]):
            with col:
                st.markdown(
                    f'<div class="seat-tile" style="background:{seat_color(seat)};">'
                    f'{seat.seat_number}<br/><small>{seat.booked_shift_count}/{len(seat.shifts)}</small></div>',
                    unsafe_allow_html=True,
                )
                if st.button("Open", key=f"{key_prefix}_{seat.seat_number}", use_container_width=True):
                    selected = seat.seat_number
    return selected


# =============================================================================
# FORMS
# =============================================================================

def register_library_form(key: str = "register_library") -> Optional[Dict[str, Any]]:
    """Collect library details; returns the registration payload on submit."""
    with st.form(key):
        name = st.text_input("Library name")
        capacity = st.number_input("Seat capacity", min_value=1, step=1, value=20)
        quote = st.text_input("Quote (optional)")
        location = st.text_input("Location (optional)")
        st.caption("Shifts: one per line as name,start,end (e.g. Morning,08:00,12:00)")
        shifts_text = st.text_area("Shifts", value="Morning,08:00,12:00\nEvening,16:00,20:00")
        submitted = st.form_submit_button("Register library")

    if not submitted:
        return None
    shifts = []
    for line in shifts_text.splitlines():
        parts = [p.strip() for p in line.split(",")]
        if any(parts):
            parts += [""] * (3 - len(parts))
            shifts.append({"name": parts[0], "startTime": parts[1], "endTime": parts[2]})
    return {
        "name": name,
        "capacity": int(capacity),
        "quote": quote or None,
        "location": location or None,
        "shifts": shifts,
    }


def booking_form(seat: Seat, key: str = "book_seat") -> Optional[Dict[str, Any]]:
    """Form for booking a free slot of ``seat``."""
    free = [s.name for s in seat.shifts if not s.is_occupied]
    if not free:
        st.info("Every shift on this seat is booked.")
        return None

    with st.form(f"{key}_{seat.seat_number}"):
        shift_name = st.selectbox("Shift", free)
        name = st.text_input("Student name")
        contact = st.text_input("Contact")
        email = st.text_input("Email (optional)")
        joined = st.date_input("Date of joining", value=date.today())
        submitted = st.form_submit_button("Book")

    if not submitted:
        return None
    return {
        "shift_name": shift_name,
        "name": name.strip(),
        "contact": contact.strip(),
        "email": email.strip() or None,
        "date_of_join": joined.isoformat(),
    }


def edit_booking_form(seat: Seat, slot: ShiftSlot, key: str = "edit_booking") -> Optional[Dict[str, Any]]:
    student = slot.student
    with st.form(f"{key}_{seat.seat_number}_{slot.name}"):
        name = st.text_input("Student name", value=student.name if student else "")
        contact = st.text_input("Contact", value=student.contact if student else "")
        email = st.text_input("Email (optional)", value=(student.email or "") if student else "")
        joined = st.text_input("Date of joining", value=student.date_of_join if student else "")
        submitted = st.form_submit_button("Save changes")

    if not submitted:
        return None
    return {
        "name": name.strip(),
        "contact": contact.strip(),
        "email": email.strip() or None,
        "date_of_join": joined.strip(),
    }


def slot_details(seat: Seat, key_prefix: str = "slot") -> List[Dict[str, Any]]:
    """
    Show each slot of a seat with edit / release actions.

    Returns:
        Requested actions as dicts with "action" ("edit" or "release") and "shift_name"
    """
    actions = []
    for slot in seat.shifts:
        with st.container(border=True):
            st.markdown(f"**{slot.name}** &nbsp; {slot.start_time} - {slot.end_time}")
            if not slot.is_occupied:
                st.caption("Available")
                continue

            student = slot.student
            if student is None:
                st.caption("Booked (details not loaded)")
            else:
                st.write(f"{student.name} · {student.contact} · joined {student.date_of_join}")
                if any(ch.isdigit() for ch in student.contact or ""):
                    st.link_button(
                        "Send fee reminder",
                        build_whatsapp_reminder_link(student.name, student.contact),
                    )

            c1, c2 = st.columns(2)
            if c1.button("Edit", key=f"{key_prefix}_edit_{seat.seat_number}_{slot.name}"):
                actions.append({"action": "edit", "shift_name": slot.name})
            if c2.button("Release", key=f"{key_prefix}_release_{seat.seat_number}_{slot.name}"):
                actions.append({"action": "release", "shift_name": slot.name})
    return actions


def failed_operations_table(operations: Sequence[PendingOperation], key: str = "failed_ops") -> Optional[Dict[str, Any]]:
    """Failed sync operations with retry / discard actions."""
    if not operations:
        st.success("No sync issues.")
        return None

    st.dataframe(operations_to_dataframe(operations), use_container_width=True, hide_index=True)
    op_id = st.selectbox("Operation", [op.id for op in operations], key=f"{key}_select")
    c1, c2 = st.columns(2)
    if c1.button("Retry", key=f"{key}_retry"):
        return {"action": "retry", "op_id": op_id}
    if c2.button("Discard", key=f"{key}_discard"):
        return {"action": "discard", "op_id": op_id}
    return None
