import os
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace

os.environ.setdefault("SECRET", "test-secret")
os.environ.setdefault("ALGORITHM", "HS256")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from book_orders.config import StripeSettings
from book_orders.interfaces.payment_interface import AbstractPaymentInterface
from book_orders.models.app_models import Base, Book, Order, OrderItem, User
from book_orders.schemas.order_schema import CheckoutSession

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


class FakePaymentGateway(AbstractPaymentInterface):
    """Records checkout requests; raises `error` instead when it is set."""

    def __init__(self):
        self.calls = []
        self.error = None

    async def create_checkout_session(self, line_items, success_url, cancel_url, metadata):
        self.calls.append(
            {
                "line_items": line_items,
                "success_url": success_url,
                "cancel_url": cancel_url,
                "metadata": metadata,
            }
        )
        if self.error is not None:
            raise self.error
        session_id = f"cs_test_{len(self.calls)}"
        return CheckoutSession(
            session_id=session_id, url=f"https://checkout.test/pay/{session_id}"
        )


@pytest.fixture
async def engine():
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
def session_maker(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
async def async_session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def payment_gateway():
    return FakePaymentGateway()


@pytest.fixture
def stripe_settings():
    return StripeSettings(
        secret_key="sk_test",
        success_url="https://shop.test/success",
        cancel_url="https://shop.test/cancel",
    )


@pytest.fixture
async def seeded(async_session):
    """
    Two customers, one admin, two books and twelve orders.

    Order i belongs to alice when i is even and to bob otherwise, costs
    10 + 5 * i, is PAID when i is a multiple of 3 and was created i hours
    after BASE_TIME.
    """
    alice = User(name="alice", email="alice@example.com", scopes=["user"])
    bob = User(name="bob", email="bob@example.com", scopes=["user"])
    admin = User(name="admin", email="admin@example.com", scopes=["user", "admin"])
    dune = Book(title="Dune", description="Desert planet", price=Decimal("10.00"))
    emma = Book(title="Emma", description=None, price=Decimal("15.00"))
    async_session.add_all([alice, bob, admin, dune, emma])
    await async_session.flush()

    orders = []
    for i in range(12):
        orders.append(
            Order(
                user_id=alice.id if i % 2 == 0 else bob.id,
                amount=Decimal(10 + 5 * i),
                payment_status="PAID" if i % 3 == 0 else "PENDING",
                payment_method="STRIPE",
                checkout_session_id=f"cs_seed_{i}",
                created_at=BASE_TIME + timedelta(hours=i),
                updated_at=BASE_TIME + timedelta(hours=i),
                items=[OrderItem(book_id=dune.id, price=dune.price, quantity=1)],
            )
        )
    async_session.add_all(orders)
    await async_session.commit()

    return SimpleNamespace(
        alice=alice,
        bob=bob,
        admin=admin,
        alice_id=alice.id,
        bob_id=bob.id,
        dune_id=dune.id,
        emma_id=emma.id,
        order_ids=[order.id for order in orders],
    )
