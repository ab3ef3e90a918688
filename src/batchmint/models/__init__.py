# src/batchmint/models/__init__.py
"""SQLAlchemy models for the Batch Mint service."""

from .account import AccountRecord
from .batch import Batch
from .committed_root import CommittedRoot
from .counter import MintCounter
from .token_uri import TokenURI

__all__ = [
    "AccountRecord",
    "Batch",
    "CommittedRoot",
    "MintCounter",
    "TokenURI",
]
