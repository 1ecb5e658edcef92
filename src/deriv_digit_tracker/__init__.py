"""Deriv Digit Tracker - last-digit statistics for real-time tick streams."""

__version__ = "0.1.0"
