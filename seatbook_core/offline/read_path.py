# =============================================================================
# seatbook_core/offline/read_path.py
# Connectivity-Aware Reads
# =============================================================================
"""
fetch_with_fallback - Serve a read from the backend when online, from the
local store when offline or when the backend cannot be reached.
"""

from __future__ import annotations
from typing import Callable, Optional, TypeVar
import logging

from seatbook_core.errors import is_network_error

logger = logging.getLogger(__name__)

T = TypeVar("T")


def fetch_with_fallback(
    online_fn: Callable[[], T],
    offline_fn: Callable[[], T],
    connection_manager=None,
    label: str = "read",
) -> T:
    """
    Run ``online_fn``; fall back to ``offline_fn`` on a pure network failure.

    Args:
        online_fn: Remote read
        offline_fn: Local-store read
        connection_manager: When given and offline, online_fn is not attempted
                            and a network failure triggers a re-check
        label: Name used in log messages

    Returns:
        Whatever the chosen function returns

    Raises:
        Any non-network error from online_fn (auth, validation, not found)
    """
    if connection_manager is not None and not connection_manager.is_online:
        logger.debug(f"{label}: offline, serving local data")
        return offline_fn()

    try:
        return online_fn()
    except Exception as e:
        if not is_network_error(e):
            raise
        logger.warning(f"{label}: backend unreachable ({e}), serving local data")
        if connection_manager is not None:
            connection_manager.check_connection()
        return offline_fn()
