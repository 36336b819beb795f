"""
Shared fixtures: a file-backed SQLite database per test, in-memory Redis and
a Lua-capable Redis emulator, fakes for the external services and an API
client wired to all of them.
"""

from decimal import Decimal
from typing import AsyncGenerator

import fakeredis
import pytest
import pytest_asyncio
from eth_account import Account
from httpx import ASGITransport, AsyncClient

from src.app import create_app
from src.core.dependencies import get_redis_client
from src.core.service.auth.jwt_service import JWTService
from src.core.service.ledger.balance_ledger import BalanceLedger
from src.infra.database import DatabaseManager, get_async_session
from src.infra.repository.user_repository import UserRepository
from tests.doubles import FakeBlockchain, FakePaymentProcessor, FakePriceFeed, InMemoryRedis


@pytest.fixture
def redis_client() -> InMemoryRedis:
    return InMemoryRedis()


@pytest_asyncio.fixture
async def lua_redis() -> AsyncGenerator[fakeredis.FakeAsyncRedis, None]:
    """Redis emulator that runs Lua scripts, for the nonce compare-and-delete"""
    client = fakeredis.FakeAsyncRedis(server=fakeredis.FakeServer())
    yield client
    await client.aclose()


@pytest.fixture
def payment_processor() -> FakePaymentProcessor:
    return FakePaymentProcessor()


@pytest.fixture
def blockchain() -> FakeBlockchain:
    return FakeBlockchain()


@pytest.fixture
def price_feed() -> FakePriceFeed:
    return FakePriceFeed()


@pytest.fixture
def wallet():
    return Account.create()


@pytest_asyncio.fixture
async def db_manager(tmp_path) -> AsyncGenerator[DatabaseManager, None]:
    manager = DatabaseManager(f"sqlite+aiosqlite:///{tmp_path / 'neobank.db'}")
    await manager.create_tables()
    yield manager
    await manager.close()


@pytest.fixture
def session_factory(db_manager):
    return db_manager.get_session_factory()


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


@pytest.fixture
def make_user(session_factory):
    """Create a user, optionally funded through the ledger so history stays consistent"""

    async def _make_user(wallet_address: str, balance: Decimal = Decimal("0")):
        async with session_factory() as s:
            user = await UserRepository(s).get_or_create(wallet_address)
            if balance > 0:
                await BalanceLedger(s).credit(user.id, balance, description="Initial funding")
                await s.commit()
            return user.id

    return _make_user


@pytest.fixture
def auth_headers():
    def _headers(wallet_address: str):
        token = JWTService().create_access_token(wallet_address.lower())
        return {"Authorization": f"Bearer {token.access_token}"}

    return _headers


@pytest.fixture
def app(session_factory, redis_client, payment_processor, blockchain, price_feed):
    app = create_app()
    app.state.payment_processor = payment_processor
    app.state.blockchain_client = blockchain
    app.state.price_feed = price_feed

    async def override_session():
        async with session_factory() as s:
            yield s

    async def override_redis():
        return redis_client

    app.dependency_overrides[get_async_session] = override_session
    app.dependency_overrides[get_redis_client] = override_redis
    return app


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as ac:
        yield ac
