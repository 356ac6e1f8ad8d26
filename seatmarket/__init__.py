"""Seat market simulator: fix-seat auction and pooling market engine for airline teams."""

__version__ = "0.1.0"
