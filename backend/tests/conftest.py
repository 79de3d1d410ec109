"""
Pytest configuration and shared fixtures for the payment service tests.

Provides in-memory (and file-backed) SQLite session factories, in-memory
collaborators for the reconciler, and an HTTP client for route tests.
"""

import pytest
import pytest_asyncio
from typing import AsyncGenerator

from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from config import settings
from database import Base, get_db
import db_models  # noqa: F401  (registers tables on Base.metadata)
from services.midtrans_gateway import MidtransGateway
from services.reconciler import NotificationReconciler
from services.reconciler_metrics import ReconcilerMetrics
from tests.factories import SANDBOX_API, TEST_SERVER_KEY
from tests.fakes import InMemoryOrderStore, RecordingCartClearer

# ── Test Configuration ───────────────────────────────────────────────
# Set test-only values for settings that would normally come from .env
settings.midtrans_server_key = TEST_SERVER_KEY
settings.verify_with_status_api = False


# ── Database Fixtures ────────────────────────────────────────────────


@pytest_asyncio.fixture(scope="function")
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """
    In-memory SQLite database per test.

    Uses StaticPool so every session shares the single in-memory connection.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def file_session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """
    File-backed SQLite with a real connection pool, so concurrent sessions
    are separate connections and SQLite's own locking serializes writers.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'orders.db'}")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


# ── Reconciler Fixtures ──────────────────────────────────────────────


@pytest.fixture
def gateway() -> MidtransGateway:
    """Signature-only gateway (no status API calls)."""
    return MidtransGateway(
        server_key=TEST_SERVER_KEY,
        api_base=SANDBOX_API,
        timeout=1.0,
        verify_with_status_api=False,
    )


@pytest.fixture
def order_store() -> InMemoryOrderStore:
    store = InMemoryOrderStore()
    store.add("O1", owner_id="user-1")
    return store


@pytest.fixture
def cart() -> RecordingCartClearer:
    return RecordingCartClearer()


@pytest.fixture
def metrics() -> ReconcilerMetrics:
    return ReconcilerMetrics()


@pytest.fixture
def reconciler(gateway, order_store, cart, metrics) -> NotificationReconciler:
    return NotificationReconciler(
        gateway=gateway,
        store=order_store,
        cart=cart,
        metrics=metrics,
        storage_timeout=1.0,
        side_effect_timeout=1.0,
    )


# ── HTTP Client ──────────────────────────────────────────────────────


@pytest_asyncio.fixture(scope="function")
async def client(db_session, reconciler, order_store):
    """ASGI client with the reconciler, order store and DB session overridden."""
    from deps import get_order_store, get_reconciler
    from main import app

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_reconciler] = lambda: reconciler
    app.dependency_overrides[get_order_store] = lambda: order_store

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()
