"""
SeatBook core package: offline-first seat booking for study libraries.
"""

__version__ = "0.1.0"
