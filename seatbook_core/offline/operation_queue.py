# =============================================================================
# seatbook_core/offline/operation_queue.py
# Pending Operation Queue and Replay Engine
# =============================================================================
"""
OperationQueue - Durable FIFO of mutating requests made while disconnected,
replayed against the backend once connectivity returns.

Features:
- Enqueue never touches the network and always succeeds locally
- Strict FIFO replay, one request at a time, no batching
- Bounded retries: an operation failing MAX_RETRIES times is parked as failed
- Single drain at a time; concurrent triggers coalesce into one re-run
- Reconciliation of every library touched by the drain
- Event callbacks for the syncing indicator
"""

from __future__ import annotations
import re
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Set
import logging

from seatbook_core.errors import AuthenticationError, SeatBookError, SyncError, is_retryable
from seatbook_core.models import OperationStatus, PendingOperation

logger = logging.getLogger(__name__)

_LIBRARY_IN_PATH = re.compile(r"^/seats/(?P<library_id>[^/]+)")


@dataclass
class QueueState:
    """Current replay state."""
    is_syncing: bool = False
    last_drain: Optional[datetime] = None
    last_drain_success: Optional[datetime] = None
    pending_count: int = 0
    failed_count: int = 0
    total_replayed: int = 0


@dataclass
class DrainResult:
    """Outcome of one drain call (possibly several coalesced passes)."""
    completed: int = 0
    retried: int = 0
    failed: int = 0
    deferred: int = 0
    passes: int = 0
    skipped: bool = False
    coalesced: bool = False
    auth_error: Optional[AuthenticationError] = None
    libraries: Set[str] = field(default_factory=set)
    reconciled: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    def merge(self, other: DrainResult) -> None:
        """Fold a follow-up drain into this result."""
        self.completed += other.completed
        self.retried += other.retried
        self.failed += other.failed
        self.deferred += other.deferred
        self.passes += other.passes
        self.auth_error = self.auth_error or other.auth_error
        self.libraries |= other.libraries
        self.reconciled.extend(lib for lib in other.reconciled if lib not in self.reconciled)
        self.errors.extend(other.errors)

    @property
    def aborted(self) -> bool:
        return self.auth_error is not None

    @property
    def success(self) -> bool:
        return not (self.skipped or self.aborted or self.retried or self.failed or self.deferred)


class OperationQueue:
    """
    Queue of pending mutations backed by the local store.

    Usage:
        queue = OperationQueue(local_db, connector, connection_manager)
        queue.enqueue("POST", booking_path(lib_id, 4), payload)
        result = queue.drain()   # replays when online
    """

    MAX_RETRIES = 3

    def __init__(
        self,
        local_db,
        connector=None,
        connection_manager=None,
        reconciler=None,
    ):
        """
        Args:
            local_db: LocalDatabase holding the pending_operations table
            connector: Remote connector exposing request(method, path, payload)
            connection_manager: Optional ConnectionManager; offline skips the drain
            reconciler: Optional object with reconcile(library_id), run after a drain
        """
        self.local_db = local_db
        self.connector = connector
        self.connection_manager = connection_manager
        self.reconciler = reconciler
        self._state = QueueState()
        self._drain_lock = threading.Lock()
        self._rerun_requested = False
        self._callbacks: List[Callable[[QueueState], None]] = []

    @property
    def state(self) -> QueueState:
        return self._state

    @property
    def is_syncing(self) -> bool:
        return self._state.is_syncing

    @property
    def pending_count(self) -> int:
        return self.local_db.get_pending_count()

    # =========================================================================
    # ENQUEUE
    # =========================================================================

    @staticmethod
    def library_from_path(path: str) -> Optional[str]:
        match = _LIBRARY_IN_PATH.match(path)
        return match.group("library_id") if match else None

    def enqueue(
        self,
        method: str,
        path: str,
        payload: Optional[Dict[str, Any]] = None,
        library_id: Optional[str] = None,
    ) -> PendingOperation:
        """
        Append a mutation to the queue.

        Args:
            method: HTTP method of the deferred call
            path: Request path relative to the API base URL
            payload: JSON body; a booking carries its operationId here

        Returns:
            The stored PendingOperation (status pending, retry_count 0)
        """
        op = PendingOperation(
            method=method.upper(),
            path=path,
            payload=payload,
            library_id=library_id or self.library_from_path(path),
            operation_id=(payload or {}).get("operationId"),
        )
        op.id = self.local_db.insert_pending_operation(op)
        self._state.pending_count = self.local_db.get_pending_count()
        logger.info(f"Queued operation #{op.id}: {op.describe()}")
        self._notify_callbacks()
        return op

    # =========================================================================
    # DRAIN
    # =========================================================================

    def drain(self) -> DrainResult:
        """
        Replay every pending operation in enqueue order.

        Returns immediately (coalesced) when another drain is running; the
        running drain then performs one more pass and reconciliation before
        finishing.
        """
        if self.connection_manager is not None and not self.connection_manager.is_online:
            logger.debug("Cannot drain: offline")
            return DrainResult(skipped=True)

        if not self._drain_lock.acquire(blocking=False):
            self._rerun_requested = True
            logger.debug("Drain already running, trigger coalesced")
            return DrainResult(coalesced=True)

        result = DrainResult()
        try:
            self._state.is_syncing = True
            self._state.last_drain = datetime.now()
            self._notify_callbacks()

            # Reconciliation is part of the pass: a trigger raised while it
            # fetches must still be honoured by this drain
            while True:
                self._rerun_requested = False
                result.passes += 1
                self._drain_pass(result)
                if not result.aborted:
                    self._reconcile(result)
                if result.aborted or not self._rerun_requested:
                    break

            self._state.total_replayed += result.completed
            if result.success:
                self._state.last_drain_success = datetime.now()
            logger.info(
                f"Drain complete: {result.completed} replayed, {result.retried} retrying, "
                f"{result.failed} failed, {result.deferred} deferred"
            )
        finally:
            self._state.pending_count = self.local_db.get_pending_count()
            self._state.failed_count = self.local_db.get_failed_count()
            self._state.is_syncing = False
            self._drain_lock.release()
            self._notify_callbacks()

        if self._rerun_requested and not result.aborted:
            # Triggered between the last check and the lock release
            result.merge(self.drain())
        return result

    def _drain_pass(self, result: DrainResult) -> None:
        pending = self.local_db.get_operations(OperationStatus.PENDING)
        if not pending:
            return

        logger.info(f"Replaying {len(pending)} pending operations")
        # Libraries whose earlier operation is still waiting on a retry
        held_back: Set[Optional[str]] = set()

        for op in pending:
            if op.library_id in held_back:
                result.deferred += 1
                continue

            op.last_attempt = datetime.now().isoformat()
            if op.library_id:
                result.libraries.add(op.library_id)
            try:
                self.connector.request(op.method, op.path, op.payload)
            except AuthenticationError as e:
                logger.warning(f"Credentials rejected while replaying #{op.id}; drain aborted")
                result.auth_error = e
                return
            except Exception as e:
                retryable = is_retryable(e) or not isinstance(e, SeatBookError)
                if not isinstance(e, SeatBookError):
                    logger.error(f"Unexpected error replaying #{op.id}: {e}", exc_info=True)
                self._record_failure(op, e, retryable, result)
                if retryable:
                    held_back.add(op.library_id)
                continue

            op.status = OperationStatus.COMPLETED
            op.last_error = None
            self.local_db.update_pending_operation(op)
            result.completed += 1
            logger.info(f"Replayed #{op.id}: {op.describe()}")

    def _record_failure(self, op: PendingOperation, error: Exception, retryable: bool, result: DrainResult) -> None:
        op.retry_count += 1
        op.last_error = str(error)
        result.errors.append(f"#{op.id} {op.describe()}: {error}")

        if retryable and op.retry_count < self.MAX_RETRIES:
            result.retried += 1
            logger.warning(
                f"Replay of #{op.id} failed (attempt {op.retry_count}/{self.MAX_RETRIES}): {error}"
            )
        else:
            op.status = OperationStatus.FAILED
            result.failed += 1
            reason = "retries exhausted" if retryable else "rejected by server"
            logger.error(f"Operation #{op.id} {op.describe()} marked failed ({reason}): {error}")

        self.local_db.update_pending_operation(op)

    def _reconcile(self, result: DrainResult) -> None:
        if self.reconciler is None:
            return
        for library_id in sorted(result.libraries):
            try:
                self.reconciler.reconcile(library_id)
                if library_id not in result.reconciled:
                    result.reconciled.append(library_id)
            except AuthenticationError as e:
                result.auth_error = e
                return
            except SeatBookError as e:
                logger.warning(f"Reconciliation of library {library_id} skipped: {e}")

    # =========================================================================
    # FAILED OPERATIONS
    # =========================================================================

    def failed_operations(self) -> List[PendingOperation]:
        return self.local_db.get_operations(OperationStatus.FAILED)

    def pending_operations(self, library_id: Optional[str] = None) -> List[PendingOperation]:
        return self.local_db.get_operations(OperationStatus.PENDING, library_id)

    def retry_failed(self, op_id: int) -> PendingOperation:
        """Put a failed operation back in line with a fresh retry budget."""
        op = self.local_db.get_pending_operation(op_id)
        if op is None or op.status != OperationStatus.FAILED:
            raise SyncError(f"Operation #{op_id} is not a failed operation", operation_id=op_id)
        op.status = OperationStatus.PENDING
        op.retry_count = 0
        op.last_error = None
        self.local_db.update_pending_operation(op)
        logger.info(f"Operation #{op_id} re-queued by user")
        self._notify_callbacks()
        return op

    def discard(self, op_id: int) -> bool:
        removed = self.local_db.delete_pending_operation(op_id)
        if removed:
            logger.info(f"Operation #{op_id} discarded")
            self._notify_callbacks()
        return removed

    def clear_completed(self) -> int:
        return self.local_db.execute(
            "DELETE FROM pending_operations WHERE status = ?",
            [OperationStatus.COMPLETED.value],
        )

    # =========================================================================
    # CALLBACKS
    # =========================================================================

    def register_callback(self, callback: Callable[[QueueState], None]) -> None:
        """Register a callback for queue state changes."""
        if callback not in self._callbacks:
            self._callbacks.append(callback)

    def unregister_callback(self, callback: Callable[[QueueState], None]) -> None:
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def _notify_callbacks(self) -> None:
        for callback in list(self._callbacks):
            try:
                callback(self._state)
            except Exception as e:
                logger.error(f"Error in queue callback: {e}")

    def get_status_display(self) -> Dict[str, Any]:
        """Get queue status for UI display."""
        return {
            "is_syncing": self._state.is_syncing,
            "last_drain": self._state.last_drain.isoformat() if self._state.last_drain else None,
            "last_success": (
                self._state.last_drain_success.isoformat()
                if self._state.last_drain_success else None
            ),
            "pending_count": self.pending_count,
            "failed_count": self.local_db.get_failed_count(),
            "total_replayed": self._state.total_replayed,
        }
