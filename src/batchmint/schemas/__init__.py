# src/batchmint/schemas/__init__.py
"""Pydantic schemas for results and requests."""

from .account import (
    AccountListResult,
    AccountOut,
    ActivityResult,
    HeartbeatRequest,
    ReapResult,
    RemoveAccountResult,
)
from .batch import BatchOut, IssuanceResult, MintRequest, UserBatchesResult
from .cleanup import CleanupResult
from .common import OperationResult
from .reveal import RevealRequest, RevealResult

__all__ = [
    "AccountListResult",
    "AccountOut",
    "ActivityResult",
    "BatchOut",
    "CleanupResult",
    "HeartbeatRequest",
    "IssuanceResult",
    "MintRequest",
    "OperationResult",
    "ReapResult",
    "RemoveAccountResult",
    "RevealRequest",
    "RevealResult",
    "UserBatchesResult",
]
