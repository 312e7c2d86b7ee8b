"""
Pytest Configuration and Fixtures

Provides fixtures for:
- Database engine / sessions (async, file-backed SQLite)
- A WebhookProcessor bound to the test database
- In-memory Redis for the notification relay
- Test data factories (bookings, payments, webhook events)
"""
import itertools
from typing import AsyncGenerator
from unittest.mock import patch

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from payhook.api.dependencies.processor import get_webhook_processor
from payhook.core.config import settings
from payhook.db import models  # noqa: F401
from payhook.db.database import Base, get_db
from payhook.db.models.booking import Booking, BookingPaymentStatus
from payhook.db.models.payment import Payment, PaymentStatus
from payhook.db.models.webhook_event import WebhookEvent, WebhookProvider, WebhookStatus
from payhook.domain.services.retry_policy import RetryPolicy
from payhook.domain.services.webhook_processor import WebhookProcessor
from payhook.main import app

ADMIN_API_KEY = "test-admin-key"

# Concurrent batch processing needs one connection per session, which an
# in-memory database with StaticPool cannot give, so every test gets a file.


@pytest.fixture(scope="function")
def test_database_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'payhook_test.db'}"


@pytest.fixture(scope="function")
async def async_engine(test_database_url):
    """Create async test database engine"""
    engine = create_async_engine(
        test_database_url,
        connect_args={"check_same_thread": False},
        poolclass=NullPool,
        echo=False
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture(scope="function")
def session_factory(async_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False
    )


@pytest.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Session for arranging and asserting; the code under test uses its own"""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def retry_policy() -> RetryPolicy:
    return RetryPolicy(max_attempts=5, initial_delay=60.0, max_delay=3600.0, backoff_multiplier=2.0)


@pytest.fixture
def processor(session_factory, retry_policy) -> WebhookProcessor:
    return WebhookProcessor(
        session_factory=session_factory,
        retry_policy=retry_policy,
        batch_size=10,
    )


@pytest.fixture(scope="function")
async def test_client(session_factory, processor):
    """Create test client with database and processor overrides"""
    from httpx import AsyncClient, ASGITransport

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_webhook_processor] = lambda: processor

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"X-Admin-API-Key": ADMIN_API_KEY}


@pytest.fixture(autouse=True)
def configure_secrets():
    """Admin key set, cron secret unset unless a test overrides it"""
    with patch.object(settings, "ADMIN_API_KEY", ADMIN_API_KEY), \
         patch.object(settings, "CRON_SECRET", ""):
        yield


# ============================================================================
# Redis
# ============================================================================

class FakeRedis:
    """In-memory stand-in for the Redis client used by the notification relay."""

    def __init__(self) -> None:
        self.published: list[tuple[str, str]] = []
        self.subscribers: dict[str, int] = {}

    async def ping(self) -> bool:
        return True

    async def publish(self, channel: str, message: str) -> int:
        self.published.append((channel, message))
        return self.subscribers.get(channel, 0)

    async def aclose(self) -> None:
        self.published.clear()


@pytest.fixture(autouse=True)
def fake_redis():
    """Replace get_redis with FakeRedis for every test."""
    _fake = FakeRedis()

    async def _get_fake_redis():
        return _fake

    with patch("payhook.core.redis_client.get_redis", _get_fake_redis), \
         patch("payhook.domain.services.notification_relay.get_redis", _get_fake_redis):
        yield _fake


# ============================================================================
# Test Data Factories
# ============================================================================

_key_counter = itertools.count(1)


@pytest.fixture
def booking_factory(db_session: AsyncSession):
    """Factory for creating test bookings"""
    async def _create_booking(
        user_id: int = 42,
        payment_status: BookingPaymentStatus = BookingPaymentStatus.PENDING,
    ) -> Booking:
        booking = Booking(user_id=user_id, payment_status=payment_status)
        db_session.add(booking)
        await db_session.commit()
        await db_session.refresh(booking)
        return booking

    return _create_booking


@pytest.fixture
def payment_factory(db_session: AsyncSession, booking_factory):
    """Factory for creating a pending payment (and its booking)"""
    async def _create_payment(
        correlation_key: str | None = None,
        method: WebhookProvider = WebhookProvider.MOMO,
        amount: float = 150000.0,
        status: PaymentStatus = PaymentStatus.PENDING,
        user_id: int = 42,
        booking: Booking | None = None,
    ) -> Payment:
        if booking is None:
            booking = await booking_factory(user_id=user_id)
        payment = Payment(
            booking_id=booking.id,
            amount=amount,
            status=status,
            payment_method=method.value,
            gateway_correlation_key=correlation_key or f"ORDER-{next(_key_counter)}",
        )
        db_session.add(payment)
        await db_session.commit()
        await db_session.refresh(payment)
        return payment

    return _create_payment


@pytest.fixture
def webhook_event_factory(db_session: AsyncSession):
    """Factory for inserting webhook events in any state"""
    async def _create_event(
        external_id: str | None = None,
        provider: WebhookProvider = WebhookProvider.MOMO,
        payload: dict | None = None,
        status: WebhookStatus = WebhookStatus.PENDING,
        attempts: int = 0,
        **fields,
    ) -> WebhookEvent:
        event = WebhookEvent(
            provider=provider,
            event_type="payment",
            external_id=external_id or f"EVT-{next(_key_counter)}",
            payload=payload or {},
            status=status,
            attempts=attempts,
            **fields,
        )
        db_session.add(event)
        await db_session.commit()
        await db_session.refresh(event)
        return event

    return _create_event
