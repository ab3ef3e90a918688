"""Schemas related to account activity and scheduling."""
from __future__ import annotations

from pydantic import BaseModel, Field

from .batch import IssuanceResult
from .cleanup import CleanupResult
from .common import OperationResult


class HeartbeatRequest(BaseModel):
    """Request body carrying an account address."""

    address: str
    trigger_mint: bool = Field(default=True, alias="triggerMint")

    model_config = {"populate_by_name": True}


class AccountOut(BaseModel):
    """Reporting view of one account record."""

    address: str
    last_active: str
    last_mint_time: str | None
    is_active: bool
    inactive_in_seconds: int


class AccountListResult(OperationResult):
    """Every known account."""

    users: list[AccountOut] = Field(default_factory=list)
    count: int = 0
    inactivity_threshold_seconds: int


class ActivityResult(OperationResult):
    """Outcome of an activity signal, including any issuance it triggered."""

    address: str
    first_activity: bool = False
    returning: bool = False
    last_active_at: int | None = None
    last_issued_at: int | None = None
    issuance: IssuanceResult | None = None


class RemoveAccountResult(OperationResult):
    """Outcome of forgetting an account and cleaning its batches."""

    address: str
    removed: bool = False
    cleanup: CleanupResult | None = None


class ReapResult(OperationResult):
    """Outcome of one inactivity reaper pass."""

    removed_count: int = 0
    remaining_count: int = 0
    inactivity_threshold_seconds: int
