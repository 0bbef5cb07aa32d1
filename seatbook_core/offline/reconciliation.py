# =============================================================================
# seatbook_core/offline/reconciliation.py
# Reconciliation of Server State with the Local Store
# =============================================================================
"""
ReconciliationEngine - Pulls the authoritative seat grid and merges it into
the local store without losing bookings that have not reached the server.

Merge rule, per slot (seat number + shift name):
- local booking whose operation id is still unacknowledged -> local wins
- anything else -> server wins
- seat known locally but missing on the server -> kept, logged as an anomaly
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Optional, Set, Tuple
import logging

from seatbook_core.models import Library, Seat, ShiftSlot

logger = logging.getLogger(__name__)


@dataclass
class MergeAnomaly:
    """A local record the server does not know about."""
    library_id: str
    seat_number: int
    shift_name: Optional[str] = None
    reason: str = ""


@dataclass
class MergeOutcome:
    seats: List[Seat] = field(default_factory=list)
    kept_local: List[Tuple[int, str]] = field(default_factory=list)
    anomalies: List[MergeAnomaly] = field(default_factory=list)


@dataclass
class ReconcileResult:
    """Outcome of one reconcile call."""
    library: Library
    seats: List[Seat]
    booked_seats_count: int
    kept_local: List[Tuple[int, str]] = field(default_factory=list)
    anomalies: List[MergeAnomaly] = field(default_factory=list)


def count_booked_seats(seats: Iterable[Seat]) -> int:
    """Number of seats with every shift slot occupied (partial seats excluded)."""
    return sum(1 for seat in seats if seat.is_fully_booked)


def _merge_slot(
    server_slot: ShiftSlot,
    local_slot: Optional[ShiftSlot],
    unacknowledged: Set[str],
) -> Tuple[ShiftSlot, bool]:
    if local_slot is None:
        return server_slot, False

    local_op = local_slot.operation_id
    if local_op and local_op in unacknowledged and server_slot.operation_id != local_op:
        return replace(server_slot, occupant=local_slot.occupant), True

    if local_op and local_slot.is_occupied and not server_slot.is_occupied:
        logger.warning(
            f"Local booking '{local_slot.name}' ({local_op}) not on server and no longer "
            f"queued; server state applied"
        )
    return server_slot, False


def merge_seats(
    server_seats: List[Seat],
    local_seats: List[Seat],
    unacknowledged_ids: Set[str],
) -> MergeOutcome:
    """
    Merge an authoritative seat list with the locally cached one.

    Args:
        server_seats: Seats returned by the backend
        local_seats: Seats currently in the local store
        unacknowledged_ids: Operation ids of bookings still waiting in the queue

    Returns:
        MergeOutcome with seats sorted by seat number
    """
    outcome = MergeOutcome()
    local_by_number: Dict[int, Seat] = {s.seat_number: s for s in local_seats}
    server_numbers = set()

    for server_seat in server_seats:
        server_numbers.add(server_seat.seat_number)
        local_seat = local_by_number.get(server_seat.seat_number)
        if local_seat is None:
            outcome.seats.append(server_seat)
            continue

        shifts = []
        for server_slot in server_seat.shifts:
            merged, kept = _merge_slot(
                server_slot, local_seat.find_shift(server_slot.name), unacknowledged_ids
            )
            shifts.append(merged)
            if kept:
                outcome.kept_local.append((server_seat.seat_number, server_slot.name))

        for local_slot in local_seat.shifts:
            if server_seat.find_shift(local_slot.name) is None and local_slot.operation_id in unacknowledged_ids:
                outcome.anomalies.append(MergeAnomaly(
                    library_id=local_seat.library_id,
                    seat_number=local_seat.seat_number,
                    shift_name=local_slot.name,
                    reason="queued booking for a shift the server does not have",
                ))

        outcome.seats.append(replace(server_seat, shifts=shifts))

    for local_seat in local_seats:
        if local_seat.seat_number not in server_numbers:
            outcome.seats.append(local_seat)
            outcome.anomalies.append(MergeAnomaly(
                library_id=local_seat.library_id,
                seat_number=local_seat.seat_number,
                reason="seat present locally but absent on server",
            ))

    outcome.seats.sort(key=lambda s: s.seat_number)
    for anomaly in outcome.anomalies:
        logger.warning(
            f"Merge anomaly in library {anomaly.library_id}, seat {anomaly.seat_number}"
            f"{' / ' + anomaly.shift_name if anomaly.shift_name else ''}: {anomaly.reason}"
        )
    return outcome


class ReconciliationEngine:
    """
    Fetches server state for a library and merges it into the local store.

    Usage:
        engine = ReconciliationEngine(local_db, connector)
        result = engine.reconcile(library_id)
    """

    def __init__(self, local_db, connector):
        self.local_db = local_db
        self.connector = connector

    def reconcile(self, library_id: str) -> ReconcileResult:
        """
        Pull, merge and persist one library.

        Raises whatever the connector raises; the local store is untouched
        unless the fetch succeeded.
        """
        library, server_seats = self.connector.get_seats(library_id)
        local_seats = self.local_db.get_seats(library_id)
        unacknowledged = self.local_db.get_unacknowledged_operation_ids(library_id)

        outcome = merge_seats(server_seats, local_seats, unacknowledged)
        booked = count_booked_seats(outcome.seats)

        cached = self.local_db.get_library_by_id(library_id)
        if not library.name and cached is not None:
            library = cached
        library = replace(library, id=library.id or library_id, booked_seats_count=booked)

        self.local_db.save_library(library)
        self.local_db.replace_seats(library_id, outcome.seats)
        self.local_db.replace_students(library_id, outcome.seats)

        logger.info(
            f"Reconciled library {library_id}: {len(outcome.seats)} seats, "
            f"{booked} fully booked, {len(outcome.kept_local)} local bookings kept"
        )
        return ReconcileResult(
            library=library,
            seats=outcome.seats,
            booked_seats_count=booked,
            kept_local=outcome.kept_local,
            anomalies=outcome.anomalies,
        )
