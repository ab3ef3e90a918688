"""Account activity endpoints."""

from __future__ import annotations

from fastapi import APIRouter

from batchmint.api.v1.dependencies import AddressDep, EngineDep, require_address
from batchmint.schemas import (
    AccountListResult,
    ActivityResult,
    HeartbeatRequest,
    ReapResult,
    RemoveAccountResult,
)

router = APIRouter(prefix="/users", tags=["users"])


@router.get("", response_model=AccountListResult)
async def list_users(engine: EngineDep) -> AccountListResult:
    """List every tracked account with its activity state."""
    return await engine.list_accounts()


@router.post("/heartbeat", response_model=ActivityResult)
async def heartbeat(payload: HeartbeatRequest, engine: EngineDep) -> ActivityResult:
    """Record activity; a first or returning heartbeat issues a batch."""
    address = require_address(payload.address)
    return await engine.trigger_activity(address, trigger_issuance=payload.trigger_mint)


@router.post("/logout", response_model=RemoveAccountResult)
async def logout(payload: HeartbeatRequest, engine: EngineDep) -> RemoveAccountResult:
    """Clean up the account's expired batches and stop tracking it."""
    address = require_address(payload.address)
    return await engine.remove_account(address)


@router.post("/check-inactive", response_model=ReapResult)
async def check_inactive(engine: EngineDep) -> ReapResult:
    """Forget every account idle for longer than the inactivity window."""
    return await engine.reap_inactive()


@router.get("/cleanup", response_model=ReapResult)
async def cleanup_inactive(engine: EngineDep) -> ReapResult:
    """Same as ``POST /users/check-inactive``."""
    return await engine.reap_inactive()


@router.delete("/{address}", response_model=RemoveAccountResult)
async def remove_user(address: AddressDep, engine: EngineDep) -> RemoveAccountResult:
    """Same as ``POST /users/logout`` with the address in the path."""
    return await engine.remove_account(address)
