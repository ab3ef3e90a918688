# src/batchmint/db/time.py
"""Time utilities shared by models and services."""

import time
from datetime import UTC, datetime


def unix_now() -> int:
    """Return the current time as integer unix seconds."""
    return int(time.time())


def to_iso(timestamp: int) -> str:
    """Format unix seconds as an ISO-8601 UTC string."""
    return datetime.fromtimestamp(timestamp, UTC).isoformat()
