# src/batchmint/api/v1/endpoints/__init__.py
"""API endpoint modules for version 1."""

from .nft import router as nft_router
from .users import router as users_router

__all__ = [
    "nft_router",
    "users_router",
]
