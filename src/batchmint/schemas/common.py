"""Shared Pydantic schemas for engine results."""
from __future__ import annotations

from pydantic import BaseModel, Field


class OperationResult(BaseModel):
    """Tagged outcome returned by every engine operation."""

    success: bool
    reason: str | None = Field(
        default=None,
        description="Machine-readable failure reason; null on success.",
    )
    error: str | None = Field(default=None, description="Human-readable failure detail.")
