"""Ledger client for committing roots and submitting reveals.

This module provides the contract-facing collaborator of the engine:

- ``commit`` submits a new Merkle root for an owner's batch
- ``reveal`` submits one identifier's proof and metadata URI
- ``reveal_threshold`` reads the on-chain reveal window

web3.py is synchronous, so every call runs in a worker thread and is bounded
by ``LEDGER_TIMEOUT_SECONDS``; a transaction that never confirms surfaces as a
failure instead of stalling the caller. The worker thread itself is never
abandoned: the signer lock is held until it finishes, and a commit the caller
stopped waiting for stays observable through ``LedgerCommitTimeout.pending``.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any, Protocol, TypeVar

from web3 import Web3
from web3.exceptions import Web3Exception

from batchmint.core.settings import settings
from batchmint.services.errors import (
    LedgerCommitError,
    LedgerCommitTimeout,
    LedgerDisabledError,
    LedgerError,
    LedgerRevealError,
)

# Configure logger for this module
logger = logging.getLogger(__name__)

T = TypeVar("T")

LEDGER_ABI: list[dict[str, Any]] = [
    {
        "inputs": [
            {"internalType": "bytes32", "name": "_merkleRoot", "type": "bytes32"},
            {"internalType": "address", "name": "_user", "type": "address"},
            {"internalType": "uint256", "name": "_quantity", "type": "uint256"},
        ],
        "name": "mintWithMerkle",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [
            {"internalType": "uint256", "name": "tokenId", "type": "uint256"},
            {"internalType": "uint256", "name": "rootIndex", "type": "uint256"},
            {"internalType": "bytes32[]", "name": "merkleProof", "type": "bytes32[]"},
            {"internalType": "string", "name": "_uri", "type": "string"},
        ],
        "name": "reveal",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "revealThreshold",
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
]


@dataclass(frozen=True)
class LedgerReceipt:
    """Confirmation of a finalized ledger transaction."""

    tx_hash: str
    block_number: int | None = None


class LedgerClient(Protocol):
    """Contract consumed by the engine; see :class:`Web3LedgerClient`."""

    @property
    def enabled(self) -> bool: ...

    async def commit(self, root: bytes, owner: str, quantity: int) -> LedgerReceipt: ...

    async def reveal(
        self, token_id: int, root_index: int, proof: Sequence[bytes], uri: str
    ) -> LedgerReceipt: ...

    async def reveal_threshold(self) -> int: ...


@dataclass(frozen=True)
class LedgerConfig:
    """Immutable configuration for ledger operations."""

    enabled: bool
    rpc_url: str | None
    private_key: str | None
    contract_address: str | None
    timeout_seconds: float


def load_ledger_config() -> LedgerConfig:
    """Build configuration object from global settings."""
    return LedgerConfig(
        enabled=settings.ledger_configured,
        rpc_url=settings.ledger_rpc_url,
        private_key=settings.ledger_private_key,
        contract_address=settings.ledger_contract_address,
        timeout_seconds=float(settings.ledger_timeout_seconds),
    )


def _signed_raw_bytes(signed: Any) -> bytes:
    # eth-account renamed rawTransaction to raw_transaction in 0.13.
    raw = getattr(signed, "raw_transaction", None)
    if raw is None:
        raw = signed.rawTransaction
    return bytes(raw)


class Web3LedgerClient:
    """web3.py wrapper for the minting contract."""

    def __init__(self, config: LedgerConfig | None = None) -> None:
        """Initialize the client; the RPC connection is opened lazily."""
        self.config = config or load_ledger_config()
        self._w3: Web3 | None = None
        self._contract: Any = None
        self._account: Any = None
        # One signer: transactions must be sent one at a time to keep nonces ordered.
        self._tx_lock = asyncio.Lock()

    @property
    def enabled(self) -> bool:
        """Return True when the ledger connection is configured."""
        return self.config.enabled

    def _connect(self) -> None:
        if self._w3 is not None:
            return
        if not self.enabled:
            raise LedgerDisabledError("Ledger integration disabled")

        w3 = Web3(
            Web3.HTTPProvider(
                self.config.rpc_url,
                request_kwargs={"timeout": self.config.timeout_seconds},
            )
        )
        self._account = w3.eth.account.from_key(self.config.private_key)
        self._contract = w3.eth.contract(
            address=Web3.to_checksum_address(self.config.contract_address),
            abi=LEDGER_ABI,
        )
        self._w3 = w3

    def _transact(self, build: Callable[[Any], Any]) -> LedgerReceipt:
        """Sign, send and await one contract call. Runs in a worker thread."""
        self._connect()
        w3 = self._w3
        assert w3 is not None
        tx = build(self._contract).build_transaction(
            {
                "from": self._account.address,
                "nonce": w3.eth.get_transaction_count(self._account.address, "pending"),
                "chainId": w3.eth.chain_id,
            }
        )
        signed = self._account.sign_transaction(tx)
        tx_hash = w3.eth.send_raw_transaction(_signed_raw_bytes(signed))
        receipt = w3.eth.wait_for_transaction_receipt(
            tx_hash, timeout=self.config.timeout_seconds
        )
        if receipt["status"] != 1:
            raise LedgerError(f"Transaction 0x{bytes(tx_hash).hex()} reverted")
        return LedgerReceipt(
            tx_hash="0x" + bytes(tx_hash).hex(),
            block_number=receipt.get("blockNumber"),
        )

    async def _bounded(self, func: Callable[[], T]) -> T:
        return await asyncio.wait_for(
            asyncio.to_thread(func), timeout=self.config.timeout_seconds
        )

    async def _submit(self, build: Callable[[Any], Any]) -> asyncio.Future[LedgerReceipt]:
        """Start one transaction in a worker thread and return its future.

        The signer lock is released only when the thread finishes, so the next
        transaction is never sent while an earlier one may still be mined.
        """
        await self._tx_lock.acquire()
        try:
            sent = asyncio.ensure_future(asyncio.to_thread(self._transact, build))
        except BaseException:
            self._tx_lock.release()
            raise
        sent.add_done_callback(lambda _: self._tx_lock.release())
        return sent

    async def commit(self, root: bytes, owner: str, quantity: int) -> LedgerReceipt:
        """Submit a new root for ``owner`` and wait until it is finalized.

        Raises:
            LedgerDisabledError: If no ledger is configured.
            LedgerCommitTimeout: If the commit is still unconfirmed after the timeout.
            LedgerCommitError: If the call fails or reverts.
        """
        if not self.enabled:
            raise LedgerDisabledError("Ledger integration disabled")

        def build(contract: Any) -> Any:
            return contract.functions.mintWithMerkle(
                root, Web3.to_checksum_address(owner), quantity
            )

        sent = await self._submit(build)
        try:
            receipt = await asyncio.wait_for(
                asyncio.shield(sent), timeout=self.config.timeout_seconds
            )
        except TimeoutError as exc:
            raise LedgerCommitTimeout(
                f"Root commit did not confirm within {self.config.timeout_seconds}s",
                pending=sent,
            ) from exc
        except (LedgerError, Web3Exception, ValueError, OSError) as exc:
            raise LedgerCommitError(f"Root commit failed: {exc}") from exc

        logger.info("Committed root 0x%s for %s in %s", root.hex(), owner, receipt.tx_hash)
        return receipt

    async def reveal(
        self, token_id: int, root_index: int, proof: Sequence[bytes], uri: str
    ) -> LedgerReceipt:
        """Submit a reveal for ``token_id`` against root number ``root_index``.

        Raises:
            LedgerDisabledError: If no ledger is configured.
            LedgerRevealError: If the call fails, reverts or times out.
        """
        if not self.enabled:
            raise LedgerDisabledError("Ledger integration disabled")

        def build(contract: Any) -> Any:
            return contract.functions.reveal(token_id, root_index, list(proof), uri)

        sent = await self._submit(build)
        try:
            receipt = await asyncio.wait_for(
                asyncio.shield(sent), timeout=self.config.timeout_seconds
            )
        except TimeoutError as exc:
            raise LedgerRevealError(
                f"Reveal of token {token_id} did not confirm within {self.config.timeout_seconds}s"
            ) from exc
        except (LedgerError, Web3Exception, ValueError, OSError) as exc:
            raise LedgerRevealError(f"Reveal of token {token_id} failed: {exc}") from exc

        logger.info("Revealed token %d in %s", token_id, receipt.tx_hash)
        return receipt

    async def reveal_threshold(self) -> int:
        """Read the contract's reveal window in seconds.

        Raises:
            LedgerDisabledError: If no ledger is configured.
            LedgerError: If the call fails or times out.
        """
        if not self.enabled:
            raise LedgerDisabledError("Ledger integration disabled")

        def call() -> int:
            self._connect()
            return int(self._contract.functions.revealThreshold().call())

        try:
            return await self._bounded(call)
        except TimeoutError as exc:
            raise LedgerError("revealThreshold() timed out") from exc
        except (Web3Exception, ValueError, OSError) as exc:
            raise LedgerError(f"revealThreshold() failed: {exc}") from exc


class _LedgerClientSingleton:
    """Singleton wrapper for Web3LedgerClient."""

    _instance: Web3LedgerClient | None = None

    @classmethod
    def get_instance(cls) -> Web3LedgerClient:
        """Get or create the singleton ledger client instance."""
        if cls._instance is None:
            cls._instance = Web3LedgerClient()
        return cls._instance


def get_ledger_client() -> Web3LedgerClient:
    """Return a singleton ledger client instance."""
    return _LedgerClientSingleton.get_instance()
