"""Incremental image index with date-partitioned pagination."""

__version__ = "0.1.0"
