"""Shared fixtures: an in-memory ledger fake and a throwaway SQLite store."""
import pytest
import pytest_asyncio

from shared.database import make_engine, make_sessionmaker
from agents.bounty.services.generator import FallbackRotation
from agents.bounty.services.session import AgentSession
from agents.bounty.services.store import BountyStore, init_store
from fakes import FakeLedger


@pytest.fixture
def ledger():
    return FakeLedger()


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    engine = make_engine(f"sqlite+aiosqlite:///{tmp_path / 'bounties.db'}")
    await init_store(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def store(db_engine):
    return BountyStore(make_sessionmaker(db_engine))


@pytest.fixture
def make_session(ledger):
    def _make(store=None, threshold=7):
        return AgentSession(ledger=ledger, store=store, accept_threshold=threshold, fallback=FallbackRotation())
    return _make


@pytest_asyncio.fixture
async def session(make_session, store):
    return make_session(store)
