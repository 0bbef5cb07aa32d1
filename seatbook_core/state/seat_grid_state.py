# =============================================================================
# seatbook_core/state/seat_grid_state.py
# Seat Grid Projection for the UI
# =============================================================================
"""
Chooses the seat list the UI renders from the two available sources:
the latest server query result and the local store.

A re-render right after a mutation may briefly see a shorter list (the
query was invalidated and the local store is mid-refresh). The projection
keeps the last known good grid for a short grace window instead of letting
seats flicker out of the grid.
"""

from __future__ import annotations
import time
from typing import Callable, List, Optional, Sequence

from seatbook_core.models import Seat


class SeatGridProjection:
    """Stabilized seat grid for one library view."""

    GRACE_WINDOW_SECONDS = 3.0

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        self._clock = clock or time.monotonic
        self._snapshot: Optional[List[Seat]] = None
        self._snapshot_at: Optional[float] = None

    @property
    def snapshot(self) -> Optional[List[Seat]]:
        return self._snapshot

    def project(
        self,
        remote_seats: Optional[Sequence[Seat]],
        local_seats: Optional[Sequence[Seat]],
    ) -> List[Seat]:
        """
        Args:
            remote_seats: Most recent server query result (None when invalidated)
            local_seats: Seats in the local store

        Returns:
            Seats to render
        """
        candidate = list(remote_seats) if remote_seats else list(local_seats or [])
        now = self._clock()

        if (
            self._snapshot is not None
            and len(candidate) < len(self._snapshot)
            and now - self._snapshot_at < self.GRACE_WINDOW_SECONDS
        ):
            return list(self._snapshot)

        if candidate:
            self._snapshot = candidate
            self._snapshot_at = now
        return candidate

    def reset(self) -> None:
        self._snapshot = None
        self._snapshot_at = None
