# =============================================================================
# seatbook_core/offline/local_database.py
# Local SQLite Database for Offline Operations
# =============================================================================
"""
LocalDatabase - SQLite-backed durable store for cached library data and the
queue of pending mutations.

Features:
- Automatic schema creation
- Library / seat / student caches keyed by local id plus remote id
- Pending operation queue storage (written only by the OperationQueue)
- DataFrame export (pandas) for tabular views
- Thread-local connections and transaction support
"""

from __future__ import annotations
import sqlite3
import threading
import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Set
from contextlib import contextmanager
import logging

import pandas as pd

from seatbook_core.models import (
    Library,
    OperationStatus,
    PendingOperation,
    ResolvedStudent,
    Seat,
    ShiftSlot,
    Student,
)

logger = logging.getLogger(__name__)


class LocalDatabase:
    """
    Local SQLite database for offline data storage.

    The store is a cache: the backend is authoritative, except for bookings
    that only exist in the pending operation queue until replayed.
    """

    # Default database location
    DEFAULT_DB_PATH = Path("local_data") / "seatbook.db"

    SCHEMA = {
        "libraries": """
            CREATE TABLE IF NOT EXISTS libraries (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                remote_id TEXT UNIQUE,
                manager_id TEXT,
                name TEXT NOT NULL,
                capacity INTEGER NOT NULL,
                quote TEXT,
                location TEXT,
                created_at TEXT,
                booked_seats_count INTEGER DEFAULT 0,
                last_synced TEXT
            )
        """,
        "seats": """
            CREATE TABLE IF NOT EXISTS seats (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                remote_id TEXT,
                library_id TEXT NOT NULL,
                seat_number INTEGER NOT NULL,
                shifts_json TEXT NOT NULL DEFAULT '[]',
                last_synced TEXT,
                UNIQUE(library_id, seat_number)
            )
        """,
        "students": """
            CREATE TABLE IF NOT EXISTS students (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                remote_id TEXT,
                library_id TEXT,
                seat_number INTEGER,
                shift_name TEXT,
                name TEXT NOT NULL,
                date_of_join TEXT,
                contact TEXT,
                email TEXT,
                operation_id TEXT,
                created_at TEXT,
                last_synced TEXT
            )
        """,
        "pending_operations": """
            CREATE TABLE IF NOT EXISTS pending_operations (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                method TEXT NOT NULL,
                path TEXT NOT NULL,
                payload_json TEXT,
                library_id TEXT,
                operation_id TEXT,
                created_at TEXT NOT NULL,
                retry_count INTEGER DEFAULT 0,
                status TEXT DEFAULT 'pending',
                last_attempt TEXT,
                last_error TEXT
            )
        """,
    }

    INDEXES = [
        "CREATE INDEX IF NOT EXISTS idx_students_slot ON students (library_id, seat_number, shift_name)",
        "CREATE INDEX IF NOT EXISTS idx_pending_status ON pending_operations (status, id)",
    ]

    _instance: Optional[LocalDatabase] = None
    _lock = threading.Lock()

    def __init__(self, db_path: Optional[Path] = None):
        """
        Initialize local database.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path) if db_path else self.DEFAULT_DB_PATH
        self._ensure_directory()
        self._local = threading.local()
        self._initialized = False

    @classmethod
    def get_instance(cls, db_path: Optional[Path] = None) -> LocalDatabase:
        """Get or create singleton instance."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = LocalDatabase(db_path)
        return cls._instance

    def _ensure_directory(self) -> None:
        """Ensure database directory exists."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def _get_connection(self) -> sqlite3.Connection:
        """Get thread-local database connection."""
        if getattr(self._local, "connection", None) is None:
            self._local.connection = sqlite3.connect(
                str(self.db_path),
                check_same_thread=False,
            )
            self._local.connection.row_factory = sqlite3.Row
        return self._local.connection

    @contextmanager
    def transaction(self):
        """Context manager for database transactions."""
        conn = self._get_connection()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise

    def initialize(self) -> None:
        """Initialize database schema."""
        if self._initialized:
            return

        with self.transaction() as conn:
            for table_name, schema in self.SCHEMA.items():
                conn.execute(schema)
                logger.debug(f"Created/verified table: {table_name}")
            for statement in self.INDEXES:
                conn.execute(statement)

        self._initialized = True
        logger.info(f"Local database initialized at: {self.db_path}")

    def query(self, sql: str, params: Optional[Iterable] = None) -> List[sqlite3.Row]:
        """Execute a raw SQL query."""
        conn = self._get_connection()
        cursor = conn.execute(sql, list(params or []))
        return cursor.fetchall()

    def execute(self, sql: str, params: Optional[Iterable] = None) -> int:
        """Execute a raw SQL statement."""
        with self.transaction() as conn:
            cursor = conn.execute(sql, list(params or []))
            return cursor.rowcount

    # =========================================================================
    # LIBRARIES
    # =========================================================================

    def save_library(self, library: Library) -> None:
        """Insert or refresh the cached copy of a library."""
        now = datetime.now().isoformat()
        with self.transaction() as conn:
            conn.execute(
                """
                INSERT INTO libraries (
                    remote_id, manager_id, name, capacity, quote, location,
                    created_at, booked_seats_count, last_synced
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(remote_id) DO UPDATE SET
                    manager_id = excluded.manager_id,
                    name = excluded.name,
                    capacity = excluded.capacity,
                    quote = excluded.quote,
                    location = excluded.location,
                    created_at = COALESCE(excluded.created_at, libraries.created_at),
                    booked_seats_count = excluded.booked_seats_count,
                    last_synced = excluded.last_synced
                """,
                [
                    library.id, library.manager_id, library.name, library.capacity,
                    library.quote, library.location, library.created_at,
                    library.booked_seats_count, now,
                ],
            )

    @staticmethod
    def _row_to_library(row: sqlite3.Row) -> Library:
        return Library(
            id=row["remote_id"],
            manager_id=row["manager_id"],
            name=row["name"],
            capacity=row["capacity"],
            quote=row["quote"],
            location=row["location"],
            created_at=row["created_at"],
            booked_seats_count=row["booked_seats_count"] or 0,
        )

    def get_library(self, manager_id: Optional[str] = None) -> Optional[Library]:
        """Get the cached library of a manager (or the only cached one)."""
        if manager_id is None:
            rows = self.query("SELECT * FROM libraries ORDER BY id LIMIT 1")
        else:
            rows = self.query(
                "SELECT * FROM libraries WHERE manager_id = ? LIMIT 1", [str(manager_id)]
            )
        return self._row_to_library(rows[0]) if rows else None

    def get_library_by_id(self, library_id: str) -> Optional[Library]:
        rows = self.query("SELECT * FROM libraries WHERE remote_id = ?", [library_id])
        return self._row_to_library(rows[0]) if rows else None

    def update_booked_seats_count(self, library_id: str, count: int) -> bool:
        return self.execute(
            "UPDATE libraries SET booked_seats_count = ?, last_synced = ? WHERE remote_id = ?",
            [count, datetime.now().isoformat(), library_id],
        ) > 0

    # =========================================================================
    # SEATS
    # =========================================================================

    @staticmethod
    def _row_to_seat(row: sqlite3.Row) -> Seat:
        shifts = [ShiftSlot.from_dict(s) for s in json.loads(row["shifts_json"] or "[]")]
        return Seat(
            id=row["remote_id"],
            library_id=row["library_id"],
            seat_number=row["seat_number"],
            shifts=shifts,
        )

    @staticmethod
    def _seat_params(seat: Seat, now: str) -> List[Any]:
        return [
            seat.id,
            seat.library_id,
            seat.seat_number,
            json.dumps([s.to_dict() for s in seat.shifts]),
            now,
        ]

    def replace_seats(self, library_id: str, seats: List[Seat]) -> int:
        """Replace the whole cached seat set of a library atomically."""
        now = datetime.now().isoformat()
        with self.transaction() as conn:
            conn.execute("DELETE FROM seats WHERE library_id = ?", [library_id])
            conn.executemany(
                """
                INSERT INTO seats (remote_id, library_id, seat_number, shifts_json, last_synced)
                VALUES (?, ?, ?, ?, ?)
                """,
                [self._seat_params(seat, now) for seat in seats],
            )
        return len(seats)

    def put_seat(self, seat: Seat) -> None:
        """Insert or overwrite one cached seat."""
        with self.transaction() as conn:
            conn.execute(
                """
                INSERT INTO seats (remote_id, library_id, seat_number, shifts_json, last_synced)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(library_id, seat_number) DO UPDATE SET
                    remote_id = COALESCE(excluded.remote_id, seats.remote_id),
                    shifts_json = excluded.shifts_json,
                    last_synced = excluded.last_synced
                """,
                self._seat_params(seat, datetime.now().isoformat()),
            )

    def get_seats(self, library_id: str) -> List[Seat]:
        rows = self.query(
            "SELECT * FROM seats WHERE library_id = ? ORDER BY seat_number ASC", [library_id]
        )
        return [self._row_to_seat(row) for row in rows]

    def get_seat(self, library_id: str, seat_number: int) -> Optional[Seat]:
        rows = self.query(
            "SELECT * FROM seats WHERE library_id = ? AND seat_number = ?",
            [library_id, int(seat_number)],
        )
        return self._row_to_seat(rows[0]) if rows else None

    def delete_seat(self, library_id: str, seat_number: int) -> bool:
        return self.execute(
            "DELETE FROM seats WHERE library_id = ? AND seat_number = ?",
            [library_id, int(seat_number)],
        ) > 0

    # =========================================================================
    # STUDENTS
    # =========================================================================

    @staticmethod
    def _student_params(student: Student, now: str) -> List[Any]:
        return [
            student.id, student.library_id, student.seat_number, student.shift_name,
            student.name, student.date_of_join, student.contact, student.email,
            student.operation_id, student.created_at or now, now,
        ]

    def save_student(self, student: Student) -> None:
        """Store the student bound to a slot, replacing whoever held it before."""
        now = datetime.now().isoformat()
        with self.transaction() as conn:
            conn.execute(
                "DELETE FROM students WHERE library_id = ? AND seat_number = ? AND shift_name = ?",
                [student.library_id, student.seat_number, student.shift_name],
            )
            conn.execute(
                """
                INSERT INTO students (
                    remote_id, library_id, seat_number, shift_name, name, date_of_join,
                    contact, email, operation_id, created_at, last_synced
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                self._student_params(student, now),
            )

    def replace_students(self, library_id: str, seats: List[Seat]) -> int:
        """Rebuild the student rows of a library from the resolved slot occupants."""
        now = datetime.now().isoformat()
        rows = []
        for seat in seats:
            for slot in seat.shifts:
                if isinstance(slot.occupant, ResolvedStudent):
                    student = slot.occupant.student
                    student = Student(
                        id=student.id,
                        library_id=library_id,
                        name=student.name,
                        date_of_join=student.date_of_join,
                        contact=student.contact,
                        email=student.email,
                        seat_number=seat.seat_number,
                        shift_name=slot.name,
                        operation_id=student.operation_id,
                        created_at=student.created_at,
                    )
                    rows.append(self._student_params(student, now))

        with self.transaction() as conn:
            conn.execute("DELETE FROM students WHERE library_id = ?", [library_id])
            conn.executemany(
                """
                INSERT INTO students (
                    remote_id, library_id, seat_number, shift_name, name, date_of_join,
                    contact, email, operation_id, created_at, last_synced
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                rows,
            )
        return len(rows)

    def get_students(self, library_id: str) -> List[Student]:
        rows = self.query(
            "SELECT * FROM students WHERE library_id = ? ORDER BY seat_number, shift_name",
            [library_id],
        )
        return [
            Student(
                id=row["remote_id"],
                library_id=row["library_id"],
                name=row["name"],
                date_of_join=row["date_of_join"],
                contact=row["contact"],
                email=row["email"],
                seat_number=row["seat_number"],
                shift_name=row["shift_name"],
                operation_id=row["operation_id"],
                created_at=row["created_at"],
            )
            for row in rows
        ]

    def delete_slot_students(self, library_id: str, seat_number: int, shift_name: str) -> int:
        return self.execute(
            "DELETE FROM students WHERE library_id = ? AND seat_number = ? AND shift_name = ?",
            [library_id, int(seat_number), shift_name],
        )

    # =========================================================================
    # PENDING OPERATIONS
    # =========================================================================

    @staticmethod
    def _row_to_operation(row: sqlite3.Row) -> PendingOperation:
        return PendingOperation(
            id=row["id"],
            method=row["method"],
            path=row["path"],
            payload=json.loads(row["payload_json"]) if row["payload_json"] else None,
            library_id=row["library_id"],
            operation_id=row["operation_id"],
            created_at=row["created_at"],
            retry_count=row["retry_count"] or 0,
            status=OperationStatus(row["status"]),
            last_attempt=row["last_attempt"],
            last_error=row["last_error"],
        )

    def insert_pending_operation(self, op: PendingOperation) -> int:
        with self.transaction() as conn:
            cursor = conn.execute(
                """
                INSERT INTO pending_operations (
                    method, path, payload_json, library_id, operation_id,
                    created_at, retry_count, status
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    op.method, op.path,
                    json.dumps(op.payload) if op.payload is not None else None,
                    op.library_id, op.operation_id, op.created_at,
                    op.retry_count, op.status.value,
                ],
            )
            return cursor.lastrowid

    def update_pending_operation(self, op: PendingOperation) -> None:
        self.execute(
            """
            UPDATE pending_operations
            SET retry_count = ?, status = ?, last_attempt = ?, last_error = ?
            WHERE id = ?
            """,
            [op.retry_count, op.status.value, op.last_attempt, op.last_error, op.id],
        )

    def delete_pending_operation(self, op_id: int) -> bool:
        return self.execute("DELETE FROM pending_operations WHERE id = ?", [op_id]) > 0

    def get_pending_operation(self, op_id: int) -> Optional[PendingOperation]:
        rows = self.query("SELECT * FROM pending_operations WHERE id = ?", [op_id])
        return self._row_to_operation(rows[0]) if rows else None

    def get_operations(
        self,
        status: Optional[OperationStatus] = OperationStatus.PENDING,
        library_id: Optional[str] = None,
    ) -> List[PendingOperation]:
        """Operations in enqueue (FIFO) order, optionally filtered."""
        clauses, params = [], []
        if status is not None:
            clauses.append("status = ?")
            params.append(status.value)
        if library_id is not None:
            clauses.append("library_id = ?")
            params.append(library_id)
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = self.query(f"SELECT * FROM pending_operations{where} ORDER BY id ASC", params)
        return [self._row_to_operation(row) for row in rows]

    def get_pending_count(self, library_id: Optional[str] = None) -> int:
        return len(self.get_operations(OperationStatus.PENDING, library_id))

    def get_failed_count(self) -> int:
        result = self.query(
            "SELECT COUNT(*) AS count FROM pending_operations WHERE status = ?",
            [OperationStatus.FAILED.value],
        )
        return result[0]["count"] if result else 0

    def get_unacknowledged_operation_ids(self, library_id: str) -> Set[str]:
        """Booking tokens whose request has not yet been replayed successfully."""
        rows = self.query(
            """
            SELECT operation_id FROM pending_operations
            WHERE library_id = ? AND status = ? AND operation_id IS NOT NULL
            """,
            [library_id, OperationStatus.PENDING.value],
        )
        return {row["operation_id"] for row in rows}

    # =========================================================================
    # PANDAS INTEGRATION
    # =========================================================================

    def to_dataframe(
        self,
        table: str,
        where: Optional[str] = None,
        params: Optional[List] = None
    ) -> pd.DataFrame:
        """
        Load a table into a pandas DataFrame.

        Args:
            table: Table name
            where: Optional WHERE clause
            params: Parameters for WHERE clause

        Returns:
            DataFrame with table data
        """
        if table not in self.SCHEMA:
            raise ValueError(f"Unknown table: {table}")
        query = f"SELECT * FROM {table}"
        if where:
            query += f" WHERE {where}"

        conn = self._get_connection()
        return pd.read_sql_query(query, conn, params=params)

    def clear_all(self) -> None:
        """Drop every cached record and queued operation (logout)."""
        with self.transaction() as conn:
            for table in self.SCHEMA:
                conn.execute(f"DELETE FROM {table}")
        logger.info("Local database cleared")

    def close(self) -> None:
        """Close database connection."""
        if getattr(self._local, "connection", None) is not None:
            self._local.connection.close()
            self._local.connection = None


# Singleton accessor
_local_database: Optional[LocalDatabase] = None


def get_local_database(db_path: Optional[Path] = None) -> LocalDatabase:
    """Get the global LocalDatabase instance."""
    global _local_database
    if _local_database is None:
        _local_database = LocalDatabase.get_instance(db_path)
        _local_database.initialize()
    return _local_database
