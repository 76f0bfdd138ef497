"""
Pytest configuration and fixtures.
"""
import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any, AsyncGenerator, Callable, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from renewpay.config import Settings, get_settings
from renewpay.db.init_db import get_db
from renewpay.db.models import Base, ProfileModel, SubscriptionModel
from renewpay.main import app
from renewpay.models.payments import PaymentCallback
from renewpay.services.signature_service import generate_response_hash

MERCHANT_KEY = "gtKFFx"
MERCHANT_SALT = "eCwWELxi"
USER_ID = "user_demo_001"


@pytest.fixture
def test_settings() -> Settings:
    """Create test settings."""
    return Settings(
        payu_merchant_key=MERCHANT_KEY,
        payu_merchant_salt=MERCHANT_SALT,
        payu_test_mode=True,
        public_base_url="http://billing.test",
        database_url="sqlite+aiosqlite://",
        pending_expiry_minutes=60,
        expiry_sweep_interval_minutes=0,
        log_level="DEBUG",
    )


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[Any, Any]:
    """In-memory database shared by every session of one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine: Any) -> async_sessionmaker:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory: async_sessionmaker) -> AsyncGenerator[AsyncSession, Any]:
    """Create test database session."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(
    session_factory: async_sessionmaker,
    test_settings: Settings
) -> AsyncGenerator[AsyncClient, Any]:
    """Create test HTTP client bound to the test database and settings."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, Any]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: test_settings

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def profile(db: AsyncSession) -> ProfileModel:
    """Profile for the default test user."""
    profile = ProfileModel(
        id=USER_ID,
        full_name="Asha Rao Kulkarni",
        email="asha@example.com",
        phone="+91 98765 43210",
    )
    db.add(profile)
    await db.commit()
    return profile


@pytest.fixture
def make_subscription(db: AsyncSession) -> Callable[..., Any]:
    """Factory inserting a subscription row directly."""

    async def _make(
        status: str = "pending",
        payment_status: str = "unpaid",
        user_id: str = USER_ID,
        transaction_id: Optional[str] = None,
        amount: Decimal = Decimal("3000.00"),
        start_date: date = date(2026, 1, 1),
        end_date: date = date(2027, 1, 1),
        created_at: Optional[datetime] = None,
        subscription_type: str = "annual",
    ) -> SubscriptionModel:
        subscription = SubscriptionModel(
            id=str(uuid.uuid4()),
            user_id=user_id,
            subscription_type=subscription_type,
            status=status,
            payment_status=payment_status,
            amount=amount,
            transaction_id=transaction_id or f"TXN{uuid.uuid4().hex[:12].upper()}",
            payment_method="payu",
            start_date=start_date,
            end_date=end_date,
            created_at=created_at or datetime.utcnow(),
        )
        db.add(subscription)
        await db.commit()
        return subscription

    return _make


def signed_callback(
    txnid: str,
    amount: str = "3000.00",
    status: str = "success",
    productinfo: str = "Inventory Subscription Renewal - Annual Plan",
    firstname: str = "Asha",
    email: str = "asha@example.com",
    key: str = MERCHANT_KEY,
    salt: str = MERCHANT_SALT,
    **extra: str,
) -> PaymentCallback:
    """Callback as PayU would send it, signed with the reverse hash."""
    return PaymentCallback(
        status=status,
        txnid=txnid,
        amount=amount,
        productinfo=productinfo,
        firstname=firstname,
        email=email,
        hash=generate_response_hash(key, txnid, amount, productinfo, firstname, email, status, salt),
        **extra,
    )
