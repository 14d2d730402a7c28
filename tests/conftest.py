import os
import tempfile

# Settings are read at import time; point them at throwaway values first
_TMP_DIR = tempfile.mkdtemp(prefix="storefront-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TMP_DIR}/app.db"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["OWNER_NOTIFY_URL"] = ""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

import httpx
import pytest
import pytest_asyncio

from storefront.core.security import create_access_token
from storefront.database import build_engine, build_session_factory, get_db, init_db
from storefront.main import app
from storefront.models import Coupon, DiscountType, Product, ProductVariant, ShippingOption


FIXED_NOW = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'storefront.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory):
    """ASGI client with every request on the per-test database."""
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


# ==================== Auth ====================

def auth_headers(user_id: str = "user-1", role: str = "user") -> dict:
    token = create_access_token(user_id, role=role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers():
    return auth_headers("admin-1", role="admin")


@pytest.fixture
def user_headers():
    return auth_headers("user-1")


# ==================== Seed data ====================

@pytest_asyncio.fixture
async def coffee(db):
    """Active variant priced at 41.75."""
    product = Product(name="House Blend Coffee", category="coffee")
    variant = ProductVariant(product=product, unit_label="500g", price=Decimal("41.75"), stock=50)
    db.add_all([product, variant])
    await db.commit()
    return variant


@pytest_asyncio.fixture
async def standard_shipping(db):
    option = ShippingOption(name="Standard", price=Decimal("5.99"), estimated_days="3-5", sort_order=1)
    db.add(option)
    await db.commit()
    return option


@pytest.fixture
def make_coupon(db):
    async def _make(
        code: str = "SAVE20",
        discount_type: DiscountType = DiscountType.PERCENTAGE,
        discount_value: str = "20",
        **kwargs,
    ) -> Coupon:
        coupon = Coupon(
            code=code,
            discount_type=discount_type.value,
            discount_value=Decimal(discount_value),
            **kwargs,
        )
        db.add(coupon)
        await db.commit()
        return coupon

    return _make


@pytest.fixture
def order_payload():
    def _payload(
        variant: ProductVariant,
        quantity: int = 2,
        shipping_option: Optional[ShippingOption] = None,
        coupon_code: Optional[str] = None,
        **overrides,
    ) -> dict:
        payload = {
            "customer_name": "Jane Doe",
            "customer_email": "jane@example.com",
            "shipping_address": {
                "line1": "1 Main St",
                "city": "Springfield",
                "postal_code": "12345",
                "country": "US",
            },
            "items": [
                {
                    "product_id": str(variant.product_id),
                    "variant_id": str(variant.id),
                    "quantity": quantity,
                }
            ],
            "shipping_option_id": str(shipping_option.id) if shipping_option else None,
            "coupon_code": coupon_code,
        }
        payload.update(overrides)
        return payload

    return _payload
