# =============================================================================
# seatbook_core/offline/seat_service.py
# Seat Booking Service - Single API for Online/Offline Operations
# =============================================================================
"""
SeatBookingService - The primary API for all library and booking operations.

This service provides a unified interface that automatically handles:
- Online mode: direct backend calls, then reconciliation into the local store
- Offline mode: local-store reads and queued mutations
- Optimistic local updates, rolled back when the server rejects a change
- Automatic replay when the connection comes back

Usage:
------
from seatbook_core.offline import get_seat_service

service = get_seat_service(token=token)

library = service.load_library()
seats = service.seat_grid(library.id)

result = service.book_seat(library.id, 4, "Morning", name="Asha",
                           date_of_join="2024-06-01", contact="9876543210")
print(f"Queued: {result.queued}, pending sync: {service.pending_sync_count}")
"""

from __future__ import annotations
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence
import logging

from seatbook_core.api import booking_path, shift_booking_path
from seatbook_core.cache import LIBRARY_KEY, seats_key
from seatbook_core.errors import (
    AuthenticationError,
    ConflictError,
    NetworkError,
    NotFoundError,
    SeatBookError,
    SyncError,
    ValidationError,
)
from seatbook_core.logging import LogContext
from seatbook_core.models import (
    UNOCCUPIED,
    Library,
    OperationStatus,
    PendingOperation,
    ResolvedStudent,
    Seat,
    ShiftTemplate,
    Student,
    occupant_student_id,
)
from seatbook_core.state import SeatGridProjection

from .operation_queue import DrainResult, OperationQueue
from .optimistic import OptimisticUpdate
from .read_path import fetch_with_fallback
from .reconciliation import ReconcileResult, ReconciliationEngine

logger = logging.getLogger(__name__)


BOOKING_FIELDS_MESSAGE = (
    "Missing required fields. Please provide name, Date Of Joining, contact, and shift."
)
UPDATE_FIELDS_MESSAGE = (
    "Missing required fields. Please provide name, Date Of Joining, and contact."
)


@dataclass
class MutationResult:
    """What happened to a booking change."""
    seat: Seat
    queued: bool
    message: str
    operation: Optional[PendingOperation] = None
    response: Optional[Dict[str, Any]] = None


class SeatBookingService:
    """
    Unified booking service providing a single API for online/offline operations.

    Dependencies are injected for tests; anything left out is resolved lazily
    from the process-wide singletons.
    """

    _instance: Optional[SeatBookingService] = None
    _lock = threading.Lock()

    def __init__(
        self,
        connector=None,
        local_db=None,
        connection_manager=None,
        query_cache=None,
        projection: Optional[SeatGridProjection] = None,
    ):
        self._connector = connector
        self._local_db = local_db
        self._connection_manager = connection_manager
        self._query_cache = query_cache
        self._queue: Optional[OperationQueue] = None
        self._reconciler: Optional[ReconciliationEngine] = None
        self.projection = projection or SeatGridProjection()
        self._session_end_callbacks: List[Callable[[], None]] = []
        # Set from any thread when the backend rejects the credential
        self._session_expired = threading.Event()
        self._initialized = False

    @classmethod
    def get_instance(cls) -> SeatBookingService:
        """Get or create singleton instance."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = SeatBookingService()
        return cls._instance

    # =========================================================================
    # LAZY LOADING OF DEPENDENCIES
    # =========================================================================

    def _get_connector(self):
        if self._connector is None:
            from seatbook_core.api import APIConfigManager
            self._connector = APIConfigManager().get_connector()
        return self._connector

    def _get_local_db(self):
        if self._local_db is None:
            from seatbook_core.offline.local_database import get_local_database
            self._local_db = get_local_database()
        return self._local_db

    def _get_connection_manager(self):
        if self._connection_manager is None:
            from seatbook_core.offline.connection_manager import get_connection_manager
            self._connection_manager = get_connection_manager(self._get_connector().probe_url)
        return self._connection_manager

    def _get_query_cache(self):
        if self._query_cache is None:
            from seatbook_core.cache import get_query_cache
            self._query_cache = get_query_cache()
        return self._query_cache

    def _get_reconciler(self) -> ReconciliationEngine:
        if self._reconciler is None:
            self._reconciler = ReconciliationEngine(self._get_local_db(), self._get_connector())
        return self._reconciler

    def _get_queue(self) -> OperationQueue:
        if self._queue is None:
            self._queue = OperationQueue(
                self._get_local_db(),
                connector=self._get_connector(),
                connection_manager=self._get_connection_manager(),
                reconciler=self,
            )
        return self._queue

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def queue(self) -> OperationQueue:
        return self._get_queue()

    @property
    def connection_manager(self):
        return self._get_connection_manager()

    @property
    def is_online(self) -> bool:
        return self._get_connection_manager().is_online

    @property
    def connection_status(self) -> str:
        return self._get_connection_manager().status.value

    @property
    def pending_sync_count(self) -> int:
        return self._get_local_db().get_pending_count()

    @property
    def is_syncing(self) -> bool:
        return self._get_queue().is_syncing

    # =========================================================================
    # INITIALIZATION
    # =========================================================================

    def initialize(self) -> None:
        """Wire the replay engine to connectivity changes."""
        if self._initialized:
            return
        self._get_local_db().initialize()
        self._get_queue()
        self._get_connection_manager().register_callback(self._on_connection_change)
        self._initialized = True
        logger.info(f"SeatBookingService initialized. Online: {self.is_online}")

    def _on_connection_change(self, state) -> None:
        """Replay queued changes when the backend becomes reachable."""
        if state.status.value != "online":
            return
        logger.info("Connection restored, replaying pending operations")
        try:
            self._drain()
        except AuthenticationError:
            logger.warning("Credentials rejected during replay; session ended")

    def register_session_end_callback(self, callback: Callable[[], None]) -> None:
        """Called after end_session (e.g. to clear Streamlit session state)."""
        if callback not in self._session_end_callbacks:
            self._session_end_callbacks.append(callback)

    # =========================================================================
    # READS
    # =========================================================================

    def _read(self, online_fn, offline_fn, label: str):
        try:
            return fetch_with_fallback(
                online_fn, offline_fn, self._get_connection_manager(), label=label
            )
        except AuthenticationError:
            self.end_session(expired=True)
            raise

    def load_library(self, manager_id: Optional[str] = None) -> Optional[Library]:
        """
        Get the signed-in manager's library.

        Returns:
            Library, or None when the manager has not registered one yet
        """
        local_db = self._get_local_db()

        def online() -> Optional[Library]:
            try:
                library = self._get_connector().get_my_library()
            except NotFoundError:
                return None
            local_db.save_library(library)
            self._get_query_cache().set(LIBRARY_KEY, library)
            return library

        return self._read(online, lambda: local_db.get_library(manager_id), "load_library")

    def reconcile(self, library_id: str) -> ReconcileResult:
        """Pull the library's seats, merge them locally and refresh the query cache."""
        with LogContext(logger, f"Reconciling library {library_id}"):
            result = self._get_reconciler().reconcile(library_id)
        cache = self._get_query_cache()
        cache.set(seats_key(library_id), result.seats)
        cache.set(LIBRARY_KEY, result.library)
        return result

    def load_seats(self, library_id: str) -> List[Seat]:
        """Seats of a library, from the server when reachable, else the local store."""
        local_db = self._get_local_db()
        return self._read(
            lambda: self.reconcile(library_id).seats,
            lambda: local_db.get_seats(library_id),
            "load_seats",
        )

    def seat_grid(self, library_id: str, refresh: bool = True) -> List[Seat]:
        """Stabilized seat list for rendering."""
        if refresh:
            self.load_seats(library_id)
        return self.projection.project(
            self._get_query_cache().get(seats_key(library_id)),
            self._get_local_db().get_seats(library_id),
        )

    def get_seat(self, library_id: str, seat_number: int) -> Seat:
        local_db = self._get_local_db()

        def offline() -> Seat:
            seat = local_db.get_seat(library_id, seat_number)
            if seat is None:
                raise NotFoundError("Seat not found", resource="seat")
            return seat

        return self._read(
            lambda: self._get_connector().get_seat(library_id, seat_number),
            offline,
            "get_seat",
        )

    def cached_library(self, library_id: str) -> Optional[Library]:
        return self._get_local_db().get_library_by_id(library_id)

    # =========================================================================
    # REGISTRATION (online only)
    # =========================================================================

    def register_library(
        self,
        name: str,
        capacity: int,
        shifts: Sequence[Dict[str, Any]],
        quote: Optional[str] = None,
        location: Optional[str] = None,
    ) -> Library:
        """
        Register the manager's library; the backend stamps one seat per capacity unit.

        Raises:
            ValidationError: invalid input (checked before any network call)
            NetworkError: offline; registration is never queued
        """
        templates = [ShiftTemplate.from_dict(s) for s in shifts or []]
        if not (name or "").strip() or not templates:
            raise ValidationError("Missing required fields. Provide name, capacity and shifts.")
        if isinstance(capacity, bool) or not isinstance(capacity, int) or capacity <= 0:
            raise ValidationError("Capacity must be a positive number", field="capacity")
        for template in templates:
            template.validate()
        if len({t.name for t in templates}) != len(templates):
            raise ValidationError("Shift names must be unique", field="shifts")

        if not self.is_online:
            raise NetworkError("Registering a library requires a connection")

        payload = {
            "name": name.strip(),
            "capacity": capacity,
            "shifts": [t.to_dict() for t in templates],
        }
        if quote:
            payload["quote"] = quote
        if location:
            payload["location"] = location

        try:
            self._get_connector().register_library(payload)
            library = self._get_connector().get_my_library()
        except AuthenticationError:
            self.end_session(expired=True)
            raise

        self._get_local_db().save_library(library)
        self.reconcile(library.id)
        logger.info(f"Registered library {library.id} with {capacity} seats")
        return self._get_local_db().get_library_by_id(library.id) or library

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    def _local_seat(self, library_id: str, seat_number: int) -> Seat:
        seat = self._get_local_db().get_seat(library_id, seat_number)
        if seat is None:
            raise NotFoundError("Seat not found", resource="seat")
        return seat

    @staticmethod
    def _student_payload(name, date_of_join, contact, email) -> Dict[str, Any]:
        payload = {"name": name, "dateofJoin": date_of_join, "contact": contact}
        if email:
            payload["email"] = email
        return payload

    def book_seat(
        self,
        library_id: str,
        seat_number: int,
        shift_name: str,
        name: str,
        date_of_join: str,
        contact: str,
        email: Optional[str] = None,
    ) -> MutationResult:
        """Book one shift slot for a new student."""
        if not all([name, date_of_join, contact, shift_name]):
            raise ValidationError(BOOKING_FIELDS_MESSAGE)

        seat = self._local_seat(library_id, seat_number)
        slot = seat.find_shift(shift_name)
        if slot is None:
            raise ValidationError("Shift not available on this seat", field="shiftName")
        if slot.is_occupied:
            raise ConflictError(
                "Shift already booked for this seat",
                seat_number=seat_number, shift_name=shift_name,
            )

        operation_id = str(uuid.uuid4())
        student = Student(
            name=name,
            date_of_join=date_of_join,
            contact=contact,
            email=email or None,
            library_id=library_id,
            seat_number=seat.seat_number,
            shift_name=shift_name,
            operation_id=operation_id,
            created_at=datetime.now().isoformat(),
        )
        payload = self._student_payload(name, date_of_join, contact, email)
        payload.update({"shiftName": shift_name, "operationId": operation_id})

        return self._mutate(
            seat, shift_name, ResolvedStudent(student), student,
            "POST", booking_path(library_id, seat.seat_number), payload,
            success_message="Seat booked",
        )

    def update_booking(
        self,
        library_id: str,
        seat_number: int,
        shift_name: str,
        name: str,
        date_of_join: str,
        contact: str,
        email: Optional[str] = None,
    ) -> MutationResult:
        """Edit the student holding a booked slot."""
        if not all([name, date_of_join, contact]):
            raise ValidationError(UPDATE_FIELDS_MESSAGE)

        seat = self._local_seat(library_id, seat_number)
        slot = seat.find_shift(shift_name)
        if slot is None:
            raise NotFoundError("Shift not found", resource="shift")
        if not slot.is_occupied:
            raise ValidationError("Shift is not booked")

        current = slot.student
        student = Student(
            id=current.id if current else occupant_student_id(slot.occupant),
            name=name,
            date_of_join=date_of_join,
            contact=contact,
            email=email or None,
            library_id=library_id,
            seat_number=seat.seat_number,
            shift_name=shift_name,
            operation_id=current.operation_id if current else None,
            created_at=current.created_at if current else None,
        )
        payload = self._student_payload(name, date_of_join, contact, email)

        return self._mutate(
            seat, shift_name, ResolvedStudent(student), student,
            "PUT", shift_booking_path(library_id, seat.seat_number, shift_name), payload,
            success_message="Student information updated",
        )

    def release_booking(self, library_id: str, seat_number: int, shift_name: str) -> MutationResult:
        """Free a slot; the backend deletes the student record."""
        seat = self._local_seat(library_id, seat_number)
        if seat.find_shift(shift_name) is None:
            raise NotFoundError("Shift not found", resource="shift")

        return self._mutate(
            seat, shift_name, UNOCCUPIED, None,
            "DELETE", shift_booking_path(library_id, seat.seat_number, shift_name), None,
            success_message="Booking deleted successfully",
        )

    def _mutate(
        self,
        seat: Seat,
        shift_name: str,
        occupant,
        student: Optional[Student],
        method: str,
        path: str,
        payload: Optional[Dict[str, Any]],
        success_message: str,
    ) -> MutationResult:
        library_id = seat.library_id
        queue = self._get_queue()
        update = OptimisticUpdate(self._get_local_db(), seat, shift_name)
        patched = update.apply(occupant, student)
        self._get_query_cache().invalidate(seats_key(library_id))

        # Earlier queued changes to this library must reach the server first
        must_queue = not self.is_online or bool(queue.pending_operations(library_id))
        if must_queue:
            op = queue.enqueue(method, path, payload, library_id=library_id)
            update.commit()
            if self.is_online:
                self._drain()
                op = self._get_local_db().get_pending_operation(op.id) or op
            if op.status == OperationStatus.FAILED:
                raise SyncError(f"{op.describe()} was rejected: {op.last_error}", operation_id=op.id)
            if op.status == OperationStatus.COMPLETED:
                return MutationResult(seat=patched, queued=False, operation=op, message=success_message)
            return MutationResult(
                seat=patched, queued=True, operation=op,
                message=f"{success_message} (saved offline, will sync when online)",
            )

        try:
            response = self._get_connector().request(method, path, payload)
        except NetworkError as e:
            logger.warning(f"{method} {path} did not reach the server ({e}); queued for replay")
            op = queue.enqueue(method, path, payload, library_id=library_id)
            update.commit()
            self._get_connection_manager().check_connection()
            return MutationResult(
                seat=patched, queued=True, operation=op,
                message=f"{success_message} (saved offline, will sync when online)",
            )
        except AuthenticationError:
            update.rollback()
            self.end_session(expired=True)
            raise
        except SeatBookError:
            update.rollback()
            raise

        update.commit()
        try:
            self.reconcile(library_id)
        except NetworkError as e:
            logger.warning(f"Post-mutation refresh of library {library_id} failed: {e}")
        return MutationResult(
            seat=patched, queued=False, response=response,
            message=(response or {}).get("message", success_message),
        )

    # =========================================================================
    # SYNC
    # =========================================================================

    def _drain(self) -> DrainResult:
        result = self._get_queue().drain()
        if result.aborted:
            self.end_session(expired=True)
            raise result.auth_error
        return result

    def sync_now(self) -> DrainResult:
        """Replay pending operations now (no-op when offline)."""
        return self._drain()

    def failed_operations(self) -> List[PendingOperation]:
        return self._get_queue().failed_operations()

    def retry_failed(self, op_id: int) -> PendingOperation:
        op = self._get_queue().retry_failed(op_id)
        if self.is_online:
            self._drain()
        return op

    def discard_operation(self, op_id: int) -> bool:
        return self._get_queue().discard(op_id)

    def clear_sync_history(self) -> int:
        """Delete replayed operations kept for the sync log."""
        removed = self._get_queue().clear_completed()
        logger.info(f"Cleared {removed} completed operation(s)")
        return removed

    # =========================================================================
    # SESSION
    # =========================================================================

    def end_session(self, expired: bool = False) -> None:
        """
        Drop every cached record, queued operation and projection snapshot.

        With ``expired`` the teardown was forced by a rejected credential;
        the flag stays up until the script thread collects it through
        consume_session_expired().
        """
        if expired:
            self._session_expired.set()
        self._get_local_db().clear_all()
        self._get_query_cache().clear()
        self.projection.reset()
        connector = self._get_connector()
        if hasattr(connector, "set_token"):
            connector.set_token(None)
        logger.info("Session ended: local data cleared")

        for callback in list(self._session_end_callbacks):
            try:
                callback()
            except Exception as e:
                logger.error(f"Error in session end callback: {e}")

    def consume_session_expired(self) -> bool:
        """True once after a credential rejection ended the session."""
        if self._session_expired.is_set():
            self._session_expired.clear()
            return True
        return False

    def get_status_display(self) -> Dict[str, Any]:
        """Get combined connection and sync status for UI display."""
        status = dict(self._get_connection_manager().get_status_display())
        status.update(self._get_queue().get_status_display())
        return status


# Singleton accessor
_seat_service: Optional[SeatBookingService] = None


def get_seat_service(token: Optional[str] = None, config_manager=None) -> SeatBookingService:
    """
    Get the global SeatBookingService, building its collaborators from configuration.

    Args:
        token: Bearer token of the signed-in manager
        config_manager: Optional APIConfigManager (defaults to secrets/env)
    """
    global _seat_service
    if _seat_service is None:
        from seatbook_core.api import APIConfigManager
        from seatbook_core.cache import get_query_cache
        from seatbook_core.offline.connection_manager import get_connection_manager
        from seatbook_core.offline.local_database import get_local_database

        config_manager = config_manager or APIConfigManager()
        settings = config_manager.settings
        connector = config_manager.get_connector(token=token)
        _seat_service = SeatBookingService(
            connector=connector,
            local_db=get_local_database(settings.local_db_path),
            connection_manager=get_connection_manager(
                connector.probe_url, start_monitoring=settings.monitor_connection
            ),
            query_cache=get_query_cache(),
        )
        _seat_service.initialize()
    elif token:
        _seat_service._get_connector().set_token(token)
    return _seat_service
