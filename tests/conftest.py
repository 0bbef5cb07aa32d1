# =============================================================================
# tests/conftest.py
# Pytest Configuration and Fixtures
# =============================================================================

import pytest
from unittest.mock import MagicMock

from seatbook_core.api import MockSeatConnector
from seatbook_core.cache import QueryCache
from seatbook_core.offline.connection_manager import ConnectionManager
from seatbook_core.offline.local_database import LocalDatabase
from seatbook_core.offline.seat_service import SeatBookingService


SHIFTS = [
    {"name": "Morning", "startTime": "08:00", "endTime": "12:00"},
    {"name": "Evening", "startTime": "16:00", "endTime": "20:00"},
]


# =============================================================================
# CLOCK
# =============================================================================

class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_clock():
    return FakeClock()


# =============================================================================
# STORE / BACKEND FIXTURES
# =============================================================================

@pytest.fixture
def local_db(tmp_path):
    """Fresh SQLite store in a temporary directory"""
    db = LocalDatabase(tmp_path / "seatbook.db")
    db.initialize()
    yield db
    db.close()


@pytest.fixture
def mock_connector():
    """In-memory backend for manager-1"""
    return MockSeatConnector(manager_id="manager-1")


@pytest.fixture
def connection_manager(mock_connector):
    """Connection manager whose probe follows the mock backend's reachability"""
    manager = ConnectionManager(probe=lambda: mock_connector.reachable)
    manager.check_connection()
    return manager


@pytest.fixture
def query_cache(fake_clock):
    return QueryCache(clock=fake_clock)


@pytest.fixture
def service(mock_connector, local_db, connection_manager, query_cache):
    """Fully wired booking service on top of the mock backend"""
    svc = SeatBookingService(
        connector=mock_connector,
        local_db=local_db,
        connection_manager=connection_manager,
        query_cache=query_cache,
    )
    svc.initialize()
    return svc


@pytest.fixture
def library(service):
    """A registered library with three seats and two shifts"""
    return service.register_library("Quiet Corner", 3, SHIFTS, location="Main Road")


class Network:
    """Switches the mock backend on and off and lets the monitor notice."""

    def __init__(self, connector, manager):
        self.connector = connector
        self.manager = manager

    def go_offline(self):
        self.connector.set_reachable(False)
        self.manager.check_connection()

    def go_online(self):
        self.connector.set_reachable(True)
        self.manager.check_connection()


@pytest.fixture
def network(mock_connector, connection_manager):
    return Network(mock_connector, connection_manager)


# =============================================================================
# MOCK FIXTURES
# =============================================================================

@pytest.fixture
def mock_streamlit():
    """Mock Streamlit for testing"""
    mock_st = MagicMock()
    mock_st.session_state = {}
    mock_st.secrets = {}
    return mock_st


@pytest.fixture
def mock_session():
    """Mock requests.Session for connector tests"""
    return MagicMock()


def _make_response(status_code=200, body=None, reason="OK"):
    response = MagicMock()
    response.status_code = status_code
    response.ok = status_code < 400
    response.reason = reason
    response.content = b"{}" if body is not None else b""
    if body is None:
        response.json.side_effect = ValueError("No JSON body")
    else:
        response.json.return_value = body
    return response


@pytest.fixture
def make_response():
    """Factory for requests.Response stand-ins"""
    return _make_response
