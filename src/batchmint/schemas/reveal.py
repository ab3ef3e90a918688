"""Schemas related to reveal proofs."""
from __future__ import annotations

from pydantic import BaseModel, Field

from .common import OperationResult


class RevealRequest(BaseModel):
    """Request body for revealing one token."""

    address: str
    token_id: int = Field(alias="tokenId")
    submit: bool = True

    model_config = {"populate_by_name": True}


class RevealResult(OperationResult):
    """Proof for one identifier, or the reason it cannot be revealed."""

    address: str
    token_id: int
    uri: str | None = None
    proof: list[str] = Field(default_factory=list)
    root_index: int | None = None
    merkle_root: str | None = None
    transaction_hash: str | None = None
    batch_expires_at: str | None = None
    time_remaining_seconds: int | None = None
    time_elapsed: int | None = None
    reveal_threshold: int | None = None
