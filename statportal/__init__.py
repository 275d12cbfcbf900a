"""Indicator time-series data management core for the statistics portal."""

__version__ = "1.0.0"
