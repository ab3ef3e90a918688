# src/batchmint/api/v1/__init__.py
"""Version 1 API endpoints."""

from .endpoints import nft_router, users_router

__all__ = [
    "nft_router",
    "users_router",
]
