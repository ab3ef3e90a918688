"""Batch minting, reveal and cleanup endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, status

from batchmint.api.v1.dependencies import AddressDep, EngineDep, require_address
from batchmint.schemas import (
    CleanupResult,
    IssuanceResult,
    MintRequest,
    RevealRequest,
    RevealResult,
    UserBatchesResult,
)

router = APIRouter(prefix="/nft", tags=["nft"])

# Every route below records activity first; any issuance that triggers runs
# in the background.


@router.get("/config")
async def get_config(engine: EngineDep) -> dict[str, Any]:
    """Return the reveal window, batch size and cadence settings."""
    return await engine.public_config()


@router.get("/cleanup", response_model=CleanupResult)
async def run_cleanup(engine: EngineDep) -> CleanupResult:
    """Remove every expired batch and its orphaned metadata."""
    return await engine.run_global_cleanup()


@router.get("/cleanup/{address}", response_model=CleanupResult)
async def run_user_cleanup(address: AddressDep, engine: EngineDep) -> CleanupResult:
    """Remove one account's expired batches and any orphaned metadata."""
    await engine.trigger_activity(address, wait=False)
    return await engine.run_owner_cleanup(address)


@router.get("/mint-for-user/{address}", response_model=IssuanceResult)
async def mint_for_user(address: AddressDep, engine: EngineDep) -> IssuanceResult:
    """Issue the standard batch for an account right away."""
    await engine.trigger_activity(address, wait=False)
    return await engine.mint_for_user(address)


@router.post("/mint", response_model=IssuanceResult)
async def mint(payload: MintRequest, engine: EngineDep) -> IssuanceResult:
    """Issue one batch; quantities above the per-user limit are capped."""
    address = require_address(payload.address)
    if payload.quantity < 1:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid quantity. Must be at least 1.",
        )
    await engine.trigger_activity(address, wait=False)
    return await engine.mint(address, payload.quantity)


@router.post("/reveal", response_model=RevealResult)
async def reveal(payload: RevealRequest, engine: EngineDep) -> RevealResult:
    """Return the proof and URI for one token, submitting it when a ledger is configured."""
    address = require_address(payload.address)
    if payload.token_id < 1:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid token ID",
        )
    await engine.trigger_activity(address, wait=False)
    return await engine.request_reveal(address, payload.token_id, submit=payload.submit)


# Keep last: the path parameter would otherwise shadow the routes above.
@router.get("/{address}", response_model=UserBatchesResult)
async def get_user_batches(address: AddressDep, engine: EngineDep) -> UserBatchesResult:
    """List an account's live batches and which tokens can still be revealed."""
    await engine.trigger_activity(address, wait=False)
    return await engine.list_batches(address)
