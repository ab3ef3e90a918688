"""Schemas for lifecycle cleanup results."""
from __future__ import annotations

from .common import OperationResult


class CleanupResult(OperationResult):
    """Counts removed by a cleanup pass."""

    batches_removed: int = 0
    uris_removed: int = 0
    user: str | None = None
    reveal_threshold: int | None = None
    timestamp: str
