import asyncio
from decimal import Decimal

import pytest
from sqlalchemy import select, func

from storefront.core.exceptions import CouponRedemptionError, NotificationError, PersistenceFailure
from storefront.core.money import Money
from storefront.models import Coupon, CouponUsage, Order
from storefront.schemas.order import OrderCreate
from storefront.services.order_store import RETRYABLE_MESSAGE
from storefront.services.order_workflow import (
    Completed,
    OrderCreationWorkflow,
    Rejected,
    RejectionKind,
)

from tests.conftest import FIXED_NOW


class RecordingNotifier:
    def __init__(self):
        self.sent = []

    async def notify(self, title, content):
        self.sent.append((title, content))


class FailingNotifier:
    async def notify(self, title, content):
        raise NotificationError("webhook down")


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def workflow(db, notifier):
    return OrderCreationWorkflow(db, notifier=notifier, clock=lambda: FIXED_NOW)


async def _count(db, column):
    return (await db.execute(select(func.count(column)))).scalar()


async def test_end_to_end_with_coupon(workflow, db, notifier, coffee, standard_shipping, make_coupon, order_payload):
    coupon = await make_coupon("SAVE20", discount_value="20", usage_limit=1)
    data = OrderCreate(**order_payload(coffee, 2, standard_shipping, coupon_code="save20"))

    result = await workflow.run(data, user_id="user-1")

    assert isinstance(result, Completed)
    assert result.discount_amount == Money("16.70")
    assert result.total == Money("72.79")
    assert result.coupon_redeemed
    assert result.order_number.startswith("ORD-")

    order = (await db.execute(select(Order).where(Order.id == result.order_id))).scalar_one()
    assert order.total_amount == Decimal("72.79")
    assert order.shipping_cost == Decimal("5.99")
    assert order.coupon_code == "SAVE20"
    assert order.user_id == "user-1"
    assert order.items_subtotal == Decimal("83.50")
    assert order.items[0].unit_price == Decimal("41.75")

    usage = (await db.execute(select(CouponUsage))).scalar_one()
    assert usage.order_id == result.order_id
    assert usage.discount_amount == Decimal("16.70")
    assert usage.user_id == "user-1"

    await db.refresh(coupon)
    assert coupon.usage_count == 1

    title, content = notifier.sent[0]
    assert title == f"New Order: {result.order_number}"
    assert "Total: $72.79 USD" in content
    assert "Discount: -$16.70 (Code: SAVE20)" in content
    assert "House Blend Coffee x2" in content


async def test_coupon_at_limit_rejects_whole_order(workflow, db, coffee, standard_shipping, make_coupon, order_payload):
    await make_coupon("SAVE20", discount_value="20", usage_limit=1)
    data = OrderCreate(**order_payload(coffee, 2, standard_shipping, coupon_code="SAVE20"))

    first = await workflow.run(data)
    second = await workflow.run(data)

    assert isinstance(first, Completed)
    assert second == Rejected(RejectionKind.COUPON, "This coupon has reached its usage limit")
    assert await _count(db, Order.id) == 1
    assert await _count(db, CouponUsage.id) == 1


async def test_order_without_coupon_or_shipping(workflow, db, coffee, order_payload, notifier):
    result = await workflow.run(OrderCreate(**order_payload(coffee, 1)))

    assert isinstance(result, Completed)
    assert result.total == Money("41.75")
    assert result.discount_amount == Money.zero()
    assert not result.coupon_redeemed
    assert "Discount" not in notifier.sent[0][1]


async def test_client_price_mismatch_is_rejected(workflow, db, coffee, order_payload):
    payload = order_payload(coffee, 2)
    payload["items"][0]["unit_price"] = "39.99"

    result = await workflow.run(OrderCreate(**payload))

    assert isinstance(result, Rejected)
    assert result.kind == RejectionKind.VALIDATION
    assert "price" in result.reason
    assert await _count(db, Order.id) == 0


async def test_client_line_total_mismatch_is_rejected(workflow, coffee, order_payload):
    payload = order_payload(coffee, 2)
    payload["items"][0]["unit_price"] = "41.75"
    payload["items"][0]["line_total"] = "41.75"

    result = await workflow.run(OrderCreate(**payload))

    assert isinstance(result, Rejected)
    assert result.kind == RejectionKind.VALIDATION


async def test_matching_client_prices_are_accepted(workflow, coffee, order_payload):
    payload = order_payload(coffee, 2)
    payload["items"][0]["unit_price"] = "41.75"
    payload["items"][0]["line_total"] = "83.50"

    result = await workflow.run(OrderCreate(**payload))

    assert isinstance(result, Completed)


async def test_inactive_variant_is_rejected(workflow, db, coffee, order_payload):
    coffee.active = False
    await db.commit()

    result = await workflow.run(OrderCreate(**order_payload(coffee, 1)))

    assert isinstance(result, Rejected)
    assert result.kind == RejectionKind.VALIDATION


async def test_inactive_shipping_is_rejected(workflow, db, coffee, standard_shipping, order_payload):
    standard_shipping.active = False
    await db.commit()

    result = await workflow.run(OrderCreate(**order_payload(coffee, 1, standard_shipping)))

    assert result == Rejected(RejectionKind.VALIDATION, "Selected shipping option is not available")


async def test_invalid_coupon_persists_nothing(workflow, db, coffee, make_coupon, order_payload):
    await make_coupon("BIG", min_order_amount=Decimal("100.00"))

    result = await workflow.run(OrderCreate(**order_payload(coffee, 1, coupon_code="BIG")))

    assert result == Rejected(RejectionKind.COUPON, "Minimum order amount is $100.00")
    assert await _count(db, Order.id) == 0
    assert await _count(db, CouponUsage.id) == 0


async def test_persistence_failure_is_retryable_rejection(workflow, db, coffee, make_coupon, order_payload, monkeypatch):
    await make_coupon("SAVE20")

    async def broken_insert(order):
        raise PersistenceFailure("We could not save your order. Please try again.")

    monkeypatch.setattr(workflow.store, "insert_order", broken_insert)

    result = await workflow.run(OrderCreate(**order_payload(coffee, 1, coupon_code="SAVE20")))

    assert isinstance(result, Rejected)
    assert result.kind == RejectionKind.PERSISTENCE
    assert await _count(db, CouponUsage.id) == 0


async def test_ledger_failure_keeps_the_order(workflow, db, coffee, make_coupon, order_payload, monkeypatch, caplog):
    await make_coupon("SAVE20")

    async def broken_redeem(*args, **kwargs):
        raise CouponRedemptionError("store hiccup")

    monkeypatch.setattr(workflow.ledger, "redeem", broken_redeem)

    result = await workflow.run(OrderCreate(**order_payload(coffee, 1, coupon_code="SAVE20")))

    assert isinstance(result, Completed)
    assert not result.coupon_redeemed
    assert result.discount_amount == Money("8.35")
    assert await _count(db, Order.id) == 1
    assert "was not redeemed" in caplog.text


async def test_notification_failure_is_swallowed(db, coffee, order_payload, caplog):
    workflow = OrderCreationWorkflow(db, notifier=FailingNotifier())

    result = await workflow.run(OrderCreate(**order_payload(coffee, 1)))

    assert isinstance(result, Completed)
    assert await _count(db, Order.id) == 1
    assert "Failed to notify owner" in caplog.text


async def test_guest_checkout_skips_per_user_limit(workflow, db, coffee, make_coupon, order_payload):
    await make_coupon("ONEEACH", per_user_limit=1)
    data = OrderCreate(**order_payload(coffee, 1, coupon_code="ONEEACH"))

    guest_first = await workflow.run(data)
    guest_second = await workflow.run(data)
    member_first = await workflow.run(data, user_id="user-9")
    member_second = await workflow.run(data, user_id="user-9")

    assert isinstance(guest_first, Completed)
    assert isinstance(guest_second, Completed)
    assert isinstance(member_first, Completed)
    assert member_second == Rejected(
        RejectionKind.COUPON,
        "You have already used this coupon the maximum number of times",
    )
    coupon = (await db.execute(
        select(Coupon)
        .where(Coupon.code == "ONEEACH")
        .execution_options(populate_existing=True)
    )).scalar_one()
    assert coupon.usage_count == 3


async def test_store_timeout_is_retryable_rejection(workflow, db, coffee, order_payload, monkeypatch):
    async def stalled_insert(order):
        await asyncio.sleep(5)

    monkeypatch.setattr(workflow.store, "insert_order", stalled_insert)
    workflow.store_timeout = 0.2

    result = await workflow.run(OrderCreate(**order_payload(coffee, 1)))

    assert result == Rejected(RejectionKind.PERSISTENCE, RETRYABLE_MESSAGE)
    assert await _count(db, Order.id) == 0


async def test_insert_committed_before_timeout_completes(workflow, db, notifier, coffee, order_payload, monkeypatch):
    real_insert = workflow.store.insert_order

    async def slow_after_commit(order):
        await real_insert(order)
        await asyncio.sleep(5)

    monkeypatch.setattr(workflow.store, "insert_order", slow_after_commit)
    workflow.store_timeout = 0.5

    result = await workflow.run(OrderCreate(**order_payload(coffee, 1)))

    assert isinstance(result, Completed)
    assert result.total == Money("41.75")
    assert await _count(db, Order.id) == 1
    assert notifier.sent[0][0] == f"New Order: {result.order_number}"


async def test_slow_notification_is_cut_off(db, coffee, order_payload, caplog):
    class StalledNotifier:
        async def notify(self, title, content):
            await asyncio.sleep(5)

    workflow = OrderCreationWorkflow(db, notifier=StalledNotifier())
    workflow.notify_timeout = 0.05

    result = await workflow.run(OrderCreate(**order_payload(coffee, 1)))

    assert isinstance(result, Completed)
    assert await _count(db, Order.id) == 1
    assert "Failed to notify owner" in caplog.text


async def test_unexpected_ledger_error_keeps_the_order(workflow, db, notifier, coffee, make_coupon, order_payload, monkeypatch):
    await make_coupon("SAVE20")

    async def exploding_redeem(*args, **kwargs):
        raise RuntimeError("unexpected")

    monkeypatch.setattr(workflow.ledger, "redeem", exploding_redeem)

    result = await workflow.run(OrderCreate(**order_payload(coffee, 1, coupon_code="SAVE20")))

    assert isinstance(result, Completed)
    assert not result.coupon_redeemed
    assert await _count(db, Order.id) == 1
    assert len(notifier.sent) == 1
