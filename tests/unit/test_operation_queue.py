# =============================================================================
# tests/unit/test_operation_queue.py
# Unit Tests for the pending operation queue and replay engine
# =============================================================================

import pytest
from unittest.mock import MagicMock, call

from seatbook_core.errors import (
    AuthenticationError,
    ConflictError,
    NetworkError,
    RemoteServiceError,
    SyncError,
)
from seatbook_core.models import OperationStatus
from seatbook_core.offline.operation_queue import OperationQueue


@pytest.fixture
def connector():
    return MagicMock()


@pytest.fixture
def queue(local_db, connector):
    return OperationQueue(local_db, connector)


def _book(queue, library_id, seat_number, op_id):
    return queue.enqueue(
        "post",
        f"/seats/{library_id}/{seat_number}/book",
        {"shiftName": "Morning", "operationId": op_id},
    )


class TestEnqueue:

    def test_enqueue_stores_pending(self, queue, local_db, connector):
        op = _book(queue, "lib-1", 4, "op-1")

        assert op.id is not None
        assert op.method == "POST"
        assert op.library_id == "lib-1"
        assert op.operation_id == "op-1"
        assert local_db.get_pending_count() == 1
        connector.request.assert_not_called()

    def test_library_from_path(self):
        assert OperationQueue.library_from_path("/seats/lib-9/2/book/Evening") == "lib-9"
        assert OperationQueue.library_from_path("/library/register") is None

    def test_callback_notified(self, queue):
        seen = []
        queue.register_callback(lambda state: seen.append(state.pending_count))
        _book(queue, "lib-1", 1, "op-1")
        assert seen == [1]


class TestDrain:

    def test_replays_in_fifo_order(self, queue, connector, local_db):
        _book(queue, "lib-1", 1, "op-1")
        _book(queue, "lib-1", 2, "op-2")

        result = queue.drain()

        assert result.completed == 2
        assert result.success
        assert connector.request.call_args_list == [
            call("POST", "/seats/lib-1/1/book", {"shiftName": "Morning", "operationId": "op-1"}),
            call("POST", "/seats/lib-1/2/book", {"shiftName": "Morning", "operationId": "op-2"}),
        ]
        assert local_db.get_pending_count() == 0

    def test_skipped_when_offline(self, local_db, connector):
        manager = MagicMock()
        manager.is_online = False
        queue = OperationQueue(local_db, connector, connection_manager=manager)
        _book(queue, "lib-1", 1, "op-1")

        result = queue.drain()

        assert result.skipped
        connector.request.assert_not_called()

    def test_retries_exhausted_after_three_attempts(self, queue, connector, local_db):
        connector.request.side_effect = NetworkError("Connection refused")
        op = _book(queue, "lib-1", 1, "op-1")

        first = queue.drain()
        queue.drain()
        third = queue.drain()
        fourth = queue.drain()

        assert first.retried == 1
        assert third.failed == 1
        assert fourth.completed == fourth.failed == 0
        assert connector.request.call_count == 3

        stored = local_db.get_pending_operation(op.id)
        assert stored.status == OperationStatus.FAILED
        assert stored.retry_count == 3
        assert "Connection refused" in stored.last_error

    def test_server_rejection_fails_immediately(self, queue, connector, local_db):
        connector.request.side_effect = [ConflictError("Shift already booked"), {"success": True}]
        first = _book(queue, "lib-1", 1, "op-1")
        _book(queue, "lib-1", 2, "op-2")

        result = queue.drain()

        assert result.failed == 1
        assert result.completed == 1
        stored = local_db.get_pending_operation(first.id)
        assert stored.status == OperationStatus.FAILED
        assert stored.retry_count == 1

    def test_retryable_failure_holds_back_same_library(self, queue, connector):
        def respond(method, path, payload):
            if path == "/seats/lib-a/1/book":
                raise RemoteServiceError("Internal Server Error")
            return {"success": True}

        connector.request.side_effect = respond
        _book(queue, "lib-a", 1, "op-1")
        _book(queue, "lib-a", 2, "op-2")
        _book(queue, "lib-b", 1, "op-3")

        result = queue.drain()

        assert result.retried == 1
        assert result.deferred == 1
        assert result.completed == 1
        called_paths = [c.args[1] for c in connector.request.call_args_list]
        assert called_paths == ["/seats/lib-a/1/book", "/seats/lib-b/1/book"]

    def test_authentication_error_aborts(self, queue, connector, local_db):
        connector.request.side_effect = AuthenticationError("Token expired")
        first = _book(queue, "lib-1", 1, "op-1")
        _book(queue, "lib-1", 2, "op-2")

        result = queue.drain()

        assert result.aborted
        assert isinstance(result.auth_error, AuthenticationError)
        assert connector.request.call_count == 1
        stored = local_db.get_pending_operation(first.id)
        assert stored.status == OperationStatus.PENDING
        assert stored.retry_count == 0

    def test_concurrent_trigger_coalesces(self, queue, connector, local_db):
        inner_results = []

        def respond(method, path, payload):
            if payload["operationId"] == "op-1":
                _book(queue, "lib-1", 2, "op-2")
                inner_results.append(queue.drain())
            return {"success": True}

        connector.request.side_effect = respond
        _book(queue, "lib-1", 1, "op-1")

        result = queue.drain()

        assert inner_results[0].coalesced
        assert result.passes == 2
        assert result.completed == 2
        assert local_db.get_pending_count() == 0
        assert not queue.is_syncing

    def test_trigger_during_reconcile_is_replayed(self, local_db, connector):
        reconciler = MagicMock()
        queue = OperationQueue(local_db, connector, reconciler=reconciler)
        inner_results = []

        def reconcile(library_id):
            if not inner_results:
                queue.enqueue("DELETE", "/seats/lib-1/1/book/Morning")
                inner_results.append(queue.drain())

        reconciler.reconcile.side_effect = reconcile
        _book(queue, "lib-1", 1, "op-1")

        result = queue.drain()

        assert inner_results[0].coalesced
        assert result.completed == 2
        assert local_db.get_pending_count() == 0
        assert connector.request.call_args_list[-1] == call("DELETE", "/seats/lib-1/1/book/Morning", None)
        assert result.reconciled == ["lib-1"]

    def test_reconciles_touched_libraries(self, local_db, connector):
        reconciler = MagicMock()
        queue = OperationQueue(local_db, connector, reconciler=reconciler)
        _book(queue, "lib-b", 1, "op-1")
        _book(queue, "lib-a", 1, "op-2")

        result = queue.drain()

        assert reconciler.reconcile.call_args_list == [call("lib-a"), call("lib-b")]
        assert result.reconciled == ["lib-a", "lib-b"]

    def test_reconcile_auth_error_recorded(self, local_db, connector):
        reconciler = MagicMock()
        reconciler.reconcile.side_effect = AuthenticationError("Token expired")
        queue = OperationQueue(local_db, connector, reconciler=reconciler)
        _book(queue, "lib-1", 1, "op-1")

        result = queue.drain()

        assert result.completed == 1
        assert result.aborted


class TestFailedOperations:

    def _failed(self, queue, connector):
        connector.request.side_effect = ConflictError("Shift already booked")
        op = _book(queue, "lib-1", 1, "op-1")
        queue.drain()
        connector.request.side_effect = None
        return op

    def test_retry_failed_requeues(self, queue, connector, local_db):
        op = self._failed(queue, connector)

        queue.retry_failed(op.id)
        stored = local_db.get_pending_operation(op.id)
        assert stored.status == OperationStatus.PENDING
        assert stored.retry_count == 0

        assert queue.drain().completed == 1

    def test_retry_failed_rejects_pending(self, queue):
        op = _book(queue, "lib-1", 1, "op-1")
        with pytest.raises(SyncError):
            queue.retry_failed(op.id)

    def test_discard(self, queue, connector):
        op = self._failed(queue, connector)
        assert queue.failed_operations()[0].id == op.id
        assert queue.discard(op.id)
        assert queue.failed_operations() == []

    def test_clear_completed(self, queue):
        _book(queue, "lib-1", 1, "op-1")
        queue.drain()
        assert queue.clear_completed() == 1

    def test_status_display(self, queue, connector):
        self._failed(queue, connector)
        _book(queue, "lib-1", 2, "op-2")
        status = queue.get_status_display()
        assert status["pending_count"] == 1
        assert status["failed_count"] == 1
        assert status["is_syncing"] is False
