import asyncio
import uuid
from decimal import Decimal

import pytest
from sqlalchemy import select, func

from storefront.core.exceptions import CouponRedemptionError
from storefront.core.money import Money
from storefront.models import Coupon, CouponUsage
from storefront.services.coupon_ledger import CouponLedger


async def _usage_rows(session_factory, coupon_id):
    async with session_factory() as session:
        return (await session.execute(
            select(func.count(CouponUsage.id)).where(CouponUsage.coupon_id == coupon_id)
        )).scalar()


async def _usage_count(session_factory, coupon_id):
    async with session_factory() as session:
        return (await session.execute(
            select(Coupon.usage_count).where(Coupon.id == coupon_id)
        )).scalar()


async def test_redeem_increments_and_logs(db, session_factory, make_coupon):
    coupon = await make_coupon("SAVE20", usage_limit=3)
    order_id = uuid.uuid4()

    usage = await CouponLedger(db).redeem(coupon.id, order_id, "user-1", Money("16.70"))

    assert usage.order_id == order_id
    assert usage.discount_amount == Decimal("16.70")
    assert await _usage_count(session_factory, coupon.id) == 1
    assert await _usage_rows(session_factory, coupon.id) == 1


async def test_redeem_unlimited_coupon(db, session_factory, make_coupon):
    coupon = await make_coupon("FOREVER")
    ledger = CouponLedger(db)

    for _ in range(3):
        await ledger.redeem(coupon.id, uuid.uuid4(), None, Money("1.00"))

    assert await _usage_count(session_factory, coupon.id) == 3
    assert await _usage_rows(session_factory, coupon.id) == 3


async def test_redeem_at_limit_writes_nothing(db, session_factory, make_coupon):
    coupon = await make_coupon("ONCE", usage_limit=1, usage_count=1)

    with pytest.raises(CouponRedemptionError):
        await CouponLedger(db).redeem(coupon.id, uuid.uuid4(), None, Money("5.00"))

    assert await _usage_count(session_factory, coupon.id) == 1
    assert await _usage_rows(session_factory, coupon.id) == 0


async def test_redeem_missing_coupon(db):
    with pytest.raises(CouponRedemptionError):
        await CouponLedger(db).redeem(uuid.uuid4(), uuid.uuid4(), None, Money("5.00"))


async def test_usage_rows_survive_coupon_deletion(db, session_factory, make_coupon):
    coupon = await make_coupon("GONE")
    await CouponLedger(db).redeem(coupon.id, uuid.uuid4(), None, Money("2.00"))

    await db.delete(coupon)
    await db.commit()

    assert await _usage_rows(session_factory, coupon.id) == 1


async def test_concurrent_redemptions_respect_limit(session_factory, make_coupon):
    coupon = await make_coupon("LAST", usage_limit=1)

    async def attempt():
        async with session_factory() as session:
            return await CouponLedger(session).redeem(
                coupon.id, uuid.uuid4(), None, Money("5.00")
            )

    results = await asyncio.gather(attempt(), attempt(), return_exceptions=True)

    succeeded = [r for r in results if isinstance(r, CouponUsage)]
    rejected = [r for r in results if isinstance(r, CouponRedemptionError)]
    assert len(succeeded) == 1
    assert len(rejected) == 1
    assert await _usage_count(session_factory, coupon.id) == 1
    assert await _usage_rows(session_factory, coupon.id) == 1
