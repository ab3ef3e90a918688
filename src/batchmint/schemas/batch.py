"""Schemas related to committed batches and issuance."""
from __future__ import annotations

from pydantic import BaseModel, Field

from .common import OperationResult


class BatchOut(BaseModel):
    """Public view of one committed batch."""

    owner: str
    start_token_id: int
    end_token_id: int
    quantity: int
    merkle_root: str
    root_index: int
    committed_at: int | None
    revealable: bool
    expires_at: str | None = None


class UserBatchesResult(OperationResult):
    """An owner's live batches and which identifiers can still be revealed."""

    address: str
    token_ids: list[int] = Field(default_factory=list)
    revealable_token_ids: list[int] = Field(default_factory=list)
    batches: list[BatchOut] = Field(default_factory=list)
    reveal_threshold_seconds: int | None = None


class MintRequest(BaseModel):
    """Request body for an explicit mint."""

    address: str
    quantity: int


class IssuanceResult(OperationResult):
    """Outcome of allocating, committing and recording one batch."""

    address: str
    start_token_id: int | None = None
    end_token_id: int | None = None
    quantity: int | None = None
    merkle_root: str | None = None
    root_index: int | None = None
    transaction_hash: str | None = None
    reveal_expires_at: str | None = None
    reveal_threshold_seconds: int | None = None
