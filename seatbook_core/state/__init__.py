"""
UI state: seat grid projection and Streamlit session-state helpers.
"""
from .seat_grid_state import SeatGridProjection

__all__ = ["SeatGridProjection"]
