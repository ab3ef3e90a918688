# tests/conftest.py
from __future__ import annotations

import asyncio
import os
import random
from collections.abc import Callable, Generator, Iterator, Sequence

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("PYTEST_RUNNING", "true")
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.pop("REVEAL_THRESHOLD_SECONDS", None)

from batchmint.api.v1.dependencies import get_engine_dep
from batchmint.db.session import Base
from batchmint.main import app as fastapi_app
from batchmint.repositories.account_repo import AccountStore
from batchmint.repositories.batch_repo import BatchRecord, BatchStore
from batchmint.services.engine import MintEngine
from batchmint.services.ledger import LedgerReceipt
from batchmint.services.lifecycle import RevealThresholdSource
from batchmint.services.merkle import build_tree
from batchmint.services.uri_policy import WeightedURIPolicy

TEST_DB_URL = "sqlite://"
START_TIME = 1_700_000_000
REVEAL_THRESHOLD = 60

OWNER = "0x" + "ab" * 20
OTHER_OWNER = "0x" + "cd" * 20


class FakeClock:
    """Manually advanced unix-seconds clock."""

    def __init__(self, now: int = START_TIME) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


class FakeLedger:
    """In-memory ledger that records commits and reveals."""

    def __init__(self, threshold: int = REVEAL_THRESHOLD, enabled: bool = True) -> None:
        self.enabled = enabled
        self.threshold = threshold
        self.commits: list[tuple[bytes, str, int]] = []
        self.reveals: list[tuple[int, int, list[bytes], str]] = []
        self.commit_error: Exception | None = None
        self.reveal_error: Exception | None = None
        self.commit_delay = 0.0

    async def commit(self, root: bytes, owner: str, quantity: int) -> LedgerReceipt:
        if self.commit_delay:
            await asyncio.sleep(self.commit_delay)
        if self.commit_error is not None:
            raise self.commit_error
        self.commits.append((root, owner, quantity))
        return LedgerReceipt(tx_hash=f"0x{len(self.commits):064x}", block_number=len(self.commits))

    async def reveal(
        self, token_id: int, root_index: int, proof: Sequence[bytes], uri: str
    ) -> LedgerReceipt:
        if self.reveal_error is not None:
            raise self.reveal_error
        self.reveals.append((token_id, root_index, list(proof), uri))
        return LedgerReceipt(tx_hash=f"0x{token_id:064x}")

    async def reveal_threshold(self) -> int:
        return self.threshold


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> Iterator[sessionmaker[Session]]:
    factory = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    try:
        yield factory
    finally:
        # Ensure each test sees a clean database even if commits occurred.
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def fake_ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture()
def uri_policy() -> WeightedURIPolicy:
    return WeightedURIPolicy(
        {"ipfs://designs/common.json": 3, "ipfs://designs/rare.json": 1},
        rng=random.Random(7),
    )


@pytest.fixture()
def thresholds() -> RevealThresholdSource:
    return RevealThresholdSource(configured=lambda: REVEAL_THRESHOLD)


@pytest.fixture()
def batch_store(session_factory: sessionmaker[Session]) -> BatchStore:
    return BatchStore(session_factory)


@pytest.fixture()
def account_store(session_factory: sessionmaker[Session]) -> AccountStore:
    return AccountStore(session_factory)


@pytest.fixture()
def mint_engine(
    session_factory: sessionmaker[Session],
    fake_ledger: FakeLedger,
    uri_policy: WeightedURIPolicy,
    clock: FakeClock,
) -> MintEngine:
    return MintEngine(
        session_factory=session_factory,
        ledger=fake_ledger,
        uri_policy=uri_policy,
        clock=clock,
    )


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture()
def client(app: FastAPI, mint_engine: MintEngine) -> Iterator[TestClient]:
    app.dependency_overrides[get_engine_dep] = lambda: mint_engine
    try:
        with TestClient(app, base_url="http://test") as test_client:
            yield test_client
            test_client.portal.call(mint_engine.cadence.drain)
    finally:
        app.dependency_overrides.pop(get_engine_dep, None)


@pytest.fixture()
def settle(client: TestClient, mint_engine: MintEngine) -> Callable[[], None]:
    """Return a helper that waits for issuance the NFT routes started in the background."""
    return lambda: client.portal.call(mint_engine.cadence.drain)


@pytest.fixture()
def add_batch(batch_store: BatchStore) -> Callable[..., BatchRecord]:
    """Return a helper that records a batch with one URI per identifier."""

    def _add(
        owner: str, start_id: int, count: int, committed_at: int = START_TIME
    ) -> BatchRecord:
        ids = range(start_id, start_id + count)
        return batch_store.append(
            owner=owner,
            start_id=start_id,
            count=count,
            root_digest=build_tree(ids).root,
            committed_at=committed_at,
            uris={token_id: f"ipfs://designs/{token_id}.json" for token_id in ids},
            tx_hash="0xfeed",
        )

    return _add


@pytest.fixture()
def owner() -> str:
    return OWNER


@pytest.fixture()
def other_owner() -> str:
    return OTHER_OWNER
