"""
Pytest configuration and shared fixtures.

Every test gets its own file-backed SQLite database so the sequence
allocator's independent sessions and the request session see the same data.
"""
import os
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

# Settings are read at import time; configure them before importing invoicing
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key-for-invoicing-tests"

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from invoicing.config import settings
from invoicing.core.security import create_access_token
from invoicing.database import Base, get_db, get_session_factory
from invoicing.models.order import Customer, Order, OrderItem
from invoicing.models import invoice, invoice_counter  # noqa: F401
from invoicing.schemas.business import BusinessProfile
from invoicing.schemas.order import AddressData, CustomerData, OrderLineData, OrderReadModel


MUMBAI_ADDRESS = {
    "house_number": "12B",
    "street": "Hill Road",
    "landmark": "Near St. Andrew's Church",
    "area": "Bandra West",
    "city": "Mumbai",
    "state": "Maharashtra",
    "pincode": "400050",
    "country": "India",
}

BENGALURU_ADDRESS = {
    "house_number": "44",
    "street": "100 Feet Road",
    "area": "Indiranagar",
    "city": "Bengaluru",
    "state": "Karnataka",
    "pincode": "560038",
    "country": "India",
}


@pytest.fixture
def test_settings():
    """Settings with no retry backoff so failure paths stay fast."""
    return settings.model_copy(update={"RETRY_BACKOFF_SECONDS": 0.0})


@pytest.fixture
def business(test_settings) -> BusinessProfile:
    return BusinessProfile.from_settings(test_settings)


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'invoicing.db'}",
        poolclass=NullPool,
        connect_args={"timeout": 30},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_order(session_factory):
    """
    Factory inserting a customer + order + items, committed.

    Defaults reproduce the reference scenario: subtotal 1000, shipping 50,
    lines 600 and 450 at 18%, shipped within Maharashtra.
    """
    async def _make_order(
        items: Optional[List[Dict[str, Any]]] = None,
        customer_name: str = "Priya Sharma",
        **overrides: Any,
    ) -> Order:
        async with session_factory() as session:
            customer = Customer(name=customer_name, email="priya@example.com", phone="+91-9820012345")
            session.add(customer)
            await session.flush()

            values = {
                "order_number": f"ORD-{uuid.uuid4().hex[:8].upper()}",
                "customer_id": customer.id,
                "status": "DELIVERED",
                "subtotal": Decimal("1000"),
                "discount_amount": Decimal("0"),
                "coupon_discount": Decimal("0"),
                "shipping_amount": Decimal("50"),
                "total_amount": Decimal("1239"),
                "payment_method": "PREPAID",
                "payment_status": "PAID",
                "shipping_address": dict(MUMBAI_ADDRESS),
                "billing_same_as_shipping": True,
                "created_at": datetime(2026, 3, 14, 10, 30, tzinfo=timezone.utc),
            }
            values.update(overrides)
            order = Order(**values)
            session.add(order)
            await session.flush()

            if items is None:
                items = [
                    {"product_name": "Steel Water Bottle", "unit_price": Decimal("600"), "hsn_code": "7323"},
                    {"product_name": "Cotton Tote Bag", "unit_price": Decimal("450"), "hsn_code": "4202"},
                ]
            for position, item in enumerate(items):
                item_values = {"quantity": 1, "tax_rate": Decimal("18"), "position": position}
                item_values.update(item)
                session.add(OrderItem(order_id=order.id, **item_values))

            await session.commit()
            return order

    return _make_order


def build_read_model(
    items: Optional[List[OrderLineData]] = None,
    **overrides: Any,
) -> OrderReadModel:
    """In-memory order read model with the reference scenario defaults."""
    values = {
        "id": uuid.uuid4(),
        "order_number": "ORD-20260314-0001",
        "created_at": datetime(2026, 3, 14, 10, 30, tzinfo=timezone.utc),
        "status": "DELIVERED",
        "payment_method": "PREPAID",
        "payment_status": "PAID",
        "customer": CustomerData(name="Priya Sharma", email="priya@example.com", phone="+91-9820012345"),
        "items": items if items is not None else [
            OrderLineData(product_name="Steel Water Bottle", quantity=1, price=Decimal("600"), gst_rate=Decimal("18")),
            OrderLineData(product_name="Cotton Tote Bag", quantity=1, price=Decimal("450"), gst_rate=Decimal("18")),
        ],
        "shipping_address": AddressData(**MUMBAI_ADDRESS),
        "billing_same_as_shipping": True,
        "subtotal": Decimal("1000"),
        "total_discount": Decimal("0"),
        "coupon_discount": Decimal("0"),
        "shipping_fee": Decimal("50"),
    }
    values.update(overrides)
    return OrderReadModel(**values)


def auth_headers(*permissions: str, admin_id: Optional[uuid.UUID] = None) -> Dict[str, str]:
    token = create_access_token(
        admin_id or uuid.uuid4(),
        additional_claims={"permissions": list(permissions)},
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def client(session_factory):
    """HTTP client against the app, wired to the per-test database."""
    from invoicing.main import app

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def read_model():
    return build_read_model


@pytest.fixture
def headers():
    return auth_headers


@pytest.fixture
def mumbai_address():
    return dict(MUMBAI_ADDRESS)


@pytest.fixture
def bengaluru_address():
    return dict(BENGALURU_ADDRESS)
