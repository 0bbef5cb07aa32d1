"""
SeatBook - seat booking dashboard for study libraries.

Run with:  streamlit run app.py
"""
from __future__ import annotations
import streamlit as st

from seatbook_core.errors import ErrorContext, SeatBookError, handle_error
from seatbook_core.logging import setup_logging
from seatbook_core.offline import get_seat_service
from seatbook_core.state.session import (
    SESSION_EXPIRED_MESSAGE,
    clear_expired_session,
    end_session,
    init_state,
)
from seatbook_core.ui.components import (
    booking_form,
    edit_booking_form,
    failed_operations_table,
    header,
    library_summary_cards,
    register_library_form,
    seat_grid,
    slot_details,
    status_banner,
)
from seatbook_core.ui.theme import apply_css

# ============================================================================
# PAGE CONFIGURATION
# ============================================================================
st.set_page_config(
    page_title="SeatBook",
    page_icon="📚",
    layout="wide",
)

setup_logging()
init_state()
apply_css()

service = get_seat_service()
if clear_expired_session(service):
    st.warning(SESSION_EXPIRED_MESSAGE)
service = get_seat_service(token=st.session_state.get("auth_token"))

# ============================================================================
# SIDEBAR: connection and session controls
# ============================================================================
with st.sidebar:
    st.subheader("Session")
    token = st.text_input("Access token", value=st.session_state.get("auth_token") or "", type="password")
    if token and token != st.session_state.get("auth_token"):
        st.session_state["auth_token"] = token
        service = get_seat_service(token=token)

    if st.button("Sync now", disabled=not service.is_online):
        with ErrorContext("Sync", show_success=True, success_message="Sync finished"):
            st.session_state["last_sync_result"] = service.sync_now()

    if st.button("Clear sync history"):
        with ErrorContext("Clearing sync history"):
            service.clear_sync_history()

    work_offline = st.toggle("Work offline", value=st.session_state["work_offline"])
    if work_offline != st.session_state["work_offline"]:
        st.session_state["work_offline"] = work_offline
        manager = service.connection_manager
        if work_offline:
            manager.force_offline()
        else:
            manager.release_offline()

    if st.button("Sign out"):
        end_session(service)
        st.rerun()

status = service.get_status_display()
status_banner(
    is_online=status["is_online"],
    is_syncing=status["is_syncing"],
    pending_count=status["pending_count"],
    failed_count=status["failed_count"],
)

# ============================================================================
# LIBRARY
# ============================================================================
library = None
try:
    library = service.load_library(st.session_state.get("manager_id"))
except SeatBookError as e:
    handle_error(e)
    st.stop()

if library is None:
    header("Register your library", "Set the seat capacity and the daily shifts")
    payload = register_library_form()
    if payload:
        with ErrorContext("Registering library") as ctx:
            library = service.register_library(**payload)
            st.session_state["library_id"] = library.id
            st.session_state["manager_id"] = library.manager_id
        if ctx.error is None:
            st.rerun()
    st.stop()

st.session_state["library_id"] = library.id
st.session_state["manager_id"] = library.manager_id
header(library.name, library.quote or library.location or "Seat overview")

seats = []
try:
    seats = service.seat_grid(library.id)
except SeatBookError as e:
    handle_error(e)

library = service.cached_library(library.id) or library
library_summary_cards(library, seats)

tab_seats, tab_sync = st.tabs(["Seats", "Sync issues"])

with tab_seats:
    clicked = seat_grid(seats)
    if clicked is not None:
        st.session_state["selected_seat"] = clicked
        st.session_state["selected_shift"] = None

    selected = st.session_state.get("selected_seat")
    seat = next((s for s in seats if s.seat_number == selected), None)
    if seat is not None:
        st.divider()
        st.subheader(f"Seat {seat.seat_number}")

        for action in slot_details(seat):
            if action["action"] == "release":
                with ErrorContext("Releasing booking") as ctx:
                    result = service.release_booking(library.id, seat.seat_number, action["shift_name"])
                    st.session_state["flash_message"] = result.message
                if ctx.error is None:
                    st.rerun()
            else:
                st.session_state["selected_shift"] = action["shift_name"]

        shift_name = st.session_state.get("selected_shift")
        slot = seat.find_shift(shift_name) if shift_name else None
        if slot is not None and slot.is_occupied:
            st.markdown(f"**Edit {slot.name}**")
            changes = edit_booking_form(seat, slot)
            if changes:
                with ErrorContext("Updating booking") as ctx:
                    result = service.update_booking(library.id, seat.seat_number, slot.name, **changes)
                    st.session_state["flash_message"] = result.message
                    st.session_state["selected_shift"] = None
                if ctx.error is None:
                    st.rerun()

        st.markdown("**New booking**")
        booking = booking_form(seat)
        if booking:
            with ErrorContext("Booking seat") as ctx:
                result = service.book_seat(library.id, seat.seat_number, **booking)
                st.session_state["flash_message"] = result.message
            if ctx.error is None:
                st.rerun()

    if st.session_state.get("flash_message"):
        st.success(st.session_state.pop("flash_message"))

with tab_sync:
    choice = failed_operations_table(service.failed_operations())
    if choice:
        with ErrorContext("Updating sync queue") as ctx:
            if choice["action"] == "retry":
                service.retry_failed(choice["op_id"])
            else:
                service.discard_operation(choice["op_id"])
        if ctx.error is None:
            st.rerun()
