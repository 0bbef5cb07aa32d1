# =============================================================================
# seatbook_core/offline/connection_manager.py
# Connection Status Detection and Management
# =============================================================================
"""
ConnectionManager - Detects and monitors reachability of the booking backend.

Features:
- Binary online/offline status from a reachability probe
- Periodic health checks on a background thread
- Event callbacks for status changes (offline -> online triggers replay)
- Thread-safe singleton pattern
"""

from __future__ import annotations
import socket
import threading
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional
from urllib.parse import urlparse
import logging

logger = logging.getLogger(__name__)


class ConnectionStatus(Enum):
    """Connection status states."""
    ONLINE = "online"           # Backend reachable
    OFFLINE = "offline"         # No connectivity
    UNKNOWN = "unknown"         # Initial state


@dataclass
class ConnectionState:
    """Current connection state with metadata."""
    status: ConnectionStatus = ConnectionStatus.UNKNOWN
    last_check: Optional[datetime] = None
    last_online: Optional[datetime] = None
    consecutive_failures: int = 0
    forced_offline: bool = False
    error_message: Optional[str] = None


def tcp_probe(host: str, port: int, timeout: float) -> bool:
    """Attempt a TCP connection to host:port."""
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except OSError:
        return False


class ConnectionManager:
    """
    Singleton manager for connection status detection.

    Usage:
        manager = ConnectionManager.get_instance()
        if manager.is_online:
            # Call the backend
        else:
            # Serve from the local store, queue mutations
    """

    _instance: Optional[ConnectionManager] = None
    _lock = threading.Lock()

    # Configuration
    CHECK_INTERVAL_ONLINE = 30      # Seconds between checks when online
    CHECK_INTERVAL_OFFLINE = 5      # First retry delay once offline
    MAX_OFFLINE_INTERVAL = 60       # Backoff ceiling while offline
    CONNECTION_TIMEOUT = 5          # Timeout for connection tests

    def __init__(
        self,
        base_url: Optional[str] = None,
        probe: Optional[Callable[[], bool]] = None,
    ):
        """
        Initialize connection manager (use get_instance() for the shared one).

        Args:
            base_url: Backend URL whose host is probed
            probe: Custom reachability check; overrides the TCP probe
        """
        self._state = ConnectionState()
        self._callbacks: List[Callable[[ConnectionState], None]] = []
        self._monitor_thread: Optional[threading.Thread] = None
        self._stop_monitoring = threading.Event()
        self._initialized = False
        self._probe = probe or self._build_probe(base_url)

    @classmethod
    def get_instance(cls, base_url: Optional[str] = None) -> ConnectionManager:
        """Get or create the singleton instance."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = ConnectionManager(base_url=base_url)
        return cls._instance

    def _build_probe(self, base_url: Optional[str]) -> Callable[[], bool]:
        parsed = urlparse(base_url or "")
        if parsed.scheme not in ("http", "https") or not parsed.hostname:
            # Nothing to probe (mock backend): always reachable
            return lambda: True
        port = parsed.port or (443 if parsed.scheme == "https" else 80)
        host = parsed.hostname
        return lambda: tcp_probe(host, port, self.CONNECTION_TIMEOUT)

    @property
    def state(self) -> ConnectionState:
        """Get current connection state."""
        return self._state

    @property
    def status(self) -> ConnectionStatus:
        """Get current status."""
        return self._state.status

    @property
    def is_online(self) -> bool:
        """Check if the backend is reachable."""
        return self._state.status == ConnectionStatus.ONLINE

    @property
    def is_offline(self) -> bool:
        """Check if we're offline."""
        return self._state.status == ConnectionStatus.OFFLINE

    def initialize(self, start_monitoring: bool = True) -> None:
        """
        Initialize the connection manager.

        Args:
            start_monitoring: Whether to start background monitoring
        """
        if self._initialized:
            return

        self.check_connection()

        if start_monitoring:
            self.start_monitoring()

        self._initialized = True
        logger.info(f"ConnectionManager initialized. Status: {self._state.status.value}")

    def check_connection(self) -> ConnectionState:
        """
        Perform a connection check and update state.

        Returns:
            Updated ConnectionState
        """
        old_status = self._state.status
        self._state.last_check = datetime.now()

        if self._state.forced_offline:
            reachable = False
        else:
            try:
                reachable = bool(self._probe())
                self._state.error_message = None
            except Exception as e:
                self._state.error_message = str(e)
                logger.debug(f"Reachability probe failed: {e}")
                reachable = False

        self._apply(ConnectionStatus.ONLINE if reachable else ConnectionStatus.OFFLINE, old_status)
        return self._state

    def _apply(self, new_status: ConnectionStatus, old_status: ConnectionStatus) -> None:
        self._state.status = new_status
        if new_status == ConnectionStatus.ONLINE:
            self._state.last_online = datetime.now()
            self._state.consecutive_failures = 0
        else:
            self._state.consecutive_failures += 1

        if old_status != new_status:
            logger.info(f"Connection status changed: {old_status.value} -> {new_status.value}")
            self._notify_callbacks()

    # =========================================================================
    # BACKGROUND MONITOR
    # =========================================================================

    def next_check_interval(self) -> float:
        """Seconds until the next probe; backs off while the backend stays down."""
        if self.is_online:
            return self.CHECK_INTERVAL_ONLINE
        backoff = self.CHECK_INTERVAL_OFFLINE * (2 ** max(self._state.consecutive_failures - 1, 0))
        return min(backoff, self.MAX_OFFLINE_INTERVAL)

    def start_monitoring(self) -> None:
        """Probe the backend periodically on a daemon thread."""
        if self._monitor_thread is not None and self._monitor_thread.is_alive():
            return

        self._stop_monitoring.clear()
        self._monitor_thread = threading.Thread(
            target=self._monitor,
            daemon=True,
            name="SeatBookConnectionMonitor",
        )
        self._monitor_thread.start()
        logger.debug("Connection monitor started")

    def stop_monitoring(self) -> None:
        self._stop_monitoring.set()
        if self._monitor_thread:
            self._monitor_thread.join(timeout=self.CONNECTION_TIMEOUT)
        logger.debug("Connection monitor stopped")

    def _monitor(self) -> None:
        while not self._stop_monitoring.wait(timeout=self.next_check_interval()):
            try:
                self.check_connection()
            except Exception as e:
                # Monitor thread outlives any single failed check
                logger.error(f"Connection check failed: {e}", exc_info=True)

    # =========================================================================
    # CALLBACKS
    # =========================================================================

    def register_callback(self, callback: Callable[[ConnectionState], None]) -> None:
        """Call ``callback(state)`` on every online/offline transition."""
        if callback not in self._callbacks:
            self._callbacks.append(callback)

    def unregister_callback(self, callback: Callable[[ConnectionState], None]) -> None:
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def _notify_callbacks(self) -> None:
        for callback in list(self._callbacks):
            try:
                callback(self._state)
            except Exception as e:
                logger.error(f"Connection callback {callback!r} raised: {e}", exc_info=True)

    def force_offline(self) -> None:
        """Work offline regardless of reachability (user preference or testing)."""
        old_status = self._state.status
        self._state.forced_offline = True
        self._apply(ConnectionStatus.OFFLINE, old_status)
        logger.info("Forced offline mode")

    def release_offline(self) -> ConnectionState:
        """Leave forced offline mode and re-check immediately."""
        self._state.forced_offline = False
        return self.check_connection()

    def get_status_display(self) -> dict:
        """Get status information for UI display."""
        return {
            "status": self._state.status.value,
            "is_online": self.is_online,
            "forced_offline": self._state.forced_offline,
            "last_check": self._state.last_check.isoformat() if self._state.last_check else None,
            "last_online": self._state.last_online.isoformat() if self._state.last_online else None,
            "failures": self._state.consecutive_failures,
            "error": self._state.error_message,
        }


# Singleton accessor
_connection_manager: Optional[ConnectionManager] = None


def get_connection_manager(
    base_url: Optional[str] = None,
    start_monitoring: bool = True,
) -> ConnectionManager:
    """
    Get the global ConnectionManager instance.

    Args:
        base_url: Backend URL whose host is probed
        start_monitoring: Run the background probe thread (first call only)

    Returns:
        ConnectionManager singleton
    """
    global _connection_manager
    if _connection_manager is None:
        _connection_manager = ConnectionManager.get_instance(base_url)
        _connection_manager.initialize(start_monitoring=start_monitoring)
    return _connection_manager
