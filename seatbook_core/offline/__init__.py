# =============================================================================
# seatbook_core/offline/__init__.py
# Offline-First Sync Layer for SeatBook
# =============================================================================
"""
Offline-First Sync Layer

Managers keep booking seats when the library's connection drops. Changes are
applied locally at once, queued durably, and replayed in order when the
backend is reachable again.

Architecture:
------------
┌─────────────────────────────────────────────────────────────────┐
│                    OFFLINE-FIRST SYNC LAYER                      │
├─────────────────────────────────────────────────────────────────┤
│                                                                  │
│   ┌──────────────────────────────────────────────────────────┐  │
│   │                 SeatBookingService                        │  │
│   │         (Single API - the UI uses this only)              │  │
│   └──────────────────────────────────────────────────────────┘  │
│              │                │                  │               │
│              ▼                ▼                  ▼               │
│   ┌──────────────────┐ ┌──────────────┐ ┌──────────────────┐    │
│   │  ConnectionMgr   │ │ Optimistic   │ │  fetch_with_     │    │
│   │  (Online/Offline)│ │ Update       │ │  fallback        │    │
│   └──────────────────┘ └──────────────┘ └──────────────────┘    │
│              │                │                                  │
│              ▼                ▼                                  │
│   ┌──────────────────┐ ┌──────────────┐      ┌──────────┐       │
│   │ OperationQueue   │►│ Reconciliation│◄────│ Backend  │       │
│   │ (FIFO replay)    │ │ (merge)       │     │ (REST)   │       │
│   └──────────────────┘ └──────────────┘      └──────────┘       │
│              │                │                                  │
│              ▼                ▼                                  │
│        ┌─────────────────────────────┐                          │
│        │      LocalDatabase (SQLite) │                          │
│        └─────────────────────────────┘                          │
└─────────────────────────────────────────────────────────────────┘

Usage:
------
from seatbook_core.offline import get_seat_service

service = get_seat_service(token=token)
library = service.load_library()
service.book_seat(library.id, 3, "Morning", name="Ravi",
                  date_of_join="2024-07-01", contact="9000000000")

print(service.is_online)            # True/False
print(service.pending_sync_count)   # Number of queued operations
"""

from seatbook_core.offline.connection_manager import (
    ConnectionManager,
    ConnectionState,
    ConnectionStatus,
    get_connection_manager,
)

from seatbook_core.offline.local_database import (
    LocalDatabase,
    get_local_database,
)

from seatbook_core.offline.operation_queue import (
    OperationQueue,
    DrainResult,
    QueueState,
)

from seatbook_core.offline.reconciliation import (
    ReconciliationEngine,
    ReconcileResult,
    MergeAnomaly,
    merge_seats,
    count_booked_seats,
)

from seatbook_core.offline.read_path import fetch_with_fallback

from seatbook_core.offline.optimistic import OptimisticUpdate

from seatbook_core.offline.seat_service import (
    SeatBookingService,
    MutationResult,
    get_seat_service,
)

__all__ = [
    # Connection Management
    "ConnectionManager",
    "ConnectionState",
    "ConnectionStatus",
    "get_connection_manager",
    # Local Database
    "LocalDatabase",
    "get_local_database",
    # Replay
    "OperationQueue",
    "DrainResult",
    "QueueState",
    # Reconciliation
    "ReconciliationEngine",
    "ReconcileResult",
    "MergeAnomaly",
    "merge_seats",
    "count_booked_seats",
    # Reads and optimistic writes
    "fetch_with_fallback",
    "OptimisticUpdate",
    # Unified Service (Main API)
    "SeatBookingService",
    "MutationResult",
    "get_seat_service",
]
