"""Hourly coastal station observation ingester."""

__version__ = "0.1.0"
