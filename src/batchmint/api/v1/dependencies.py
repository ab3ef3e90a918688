"""Shared API dependencies for the engine and address validation."""

import re
from typing import Annotated

from fastapi import Depends, HTTPException, status

from batchmint.services.engine import MintEngine, get_engine

ADDRESS_PATTERN = re.compile(r"^0x[a-fA-F0-9]{40}$")


def get_engine_dep() -> MintEngine:
    """Get MintEngine dependency for dependency injection."""
    return get_engine()


# Type alias for engine dependency
EngineDep = Annotated[MintEngine, Depends(get_engine_dep)]


def require_address(address: str | None) -> str:
    """Return ``address`` unchanged if it is a well-formed account address.

    Raises:
        HTTPException: 400 if the address is missing or malformed
    """
    if not address or not ADDRESS_PATTERN.match(address):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid Ethereum address",
        )
    return address


def path_address(address: str) -> str:
    """Validate the ``{address}`` path parameter."""
    return require_address(address)


# Type alias for a validated address path parameter
AddressDep = Annotated[str, Depends(path_address)]
