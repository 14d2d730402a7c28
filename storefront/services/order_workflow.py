"""
Order creation workflow.

ValidateInput -> ResolveCatalog -> ResolveShipping -> [ValidateCoupon]
-> PriceOrder -> PersistOrder -> [RedeemCoupon] -> NotifyOwner

Everything up to and including PersistOrder can reject the order, and a
rejection leaves nothing behind. Once the order is committed the workflow
always completes: a failed redemption or notification is logged, never
reported to the customer.
"""
import asyncio
import logging
import uuid
from dataclasses import dataclass, replace
from enum import Enum
from typing import List, Optional, Sequence, Tuple, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.config import settings
from storefront.core.exceptions import (
    CouponRejected,
    PersistenceFailure,
    ValidationFailed,
)
from storefront.core.money import Money
from storefront.models.coupon import normalize_code
from storefront.models.order import Order, OrderItem
from storefront.schemas.order import OrderCreate, OrderItemCreate
from storefront.services.catalog_service import CatalogService
from storefront.services.coupon_ledger import CouponLedger
from storefront.services.coupon_policy import CouponPolicy, EvaluationResult
from storefront.services.notification_service import OwnerNotifier
from storefront.services.order_pricer import OrderPricer, PricedLine, PricingResult
from storefront.services.order_store import OrderStore, RETRYABLE_MESSAGE, generate_order_number
from storefront.services.shipping_service import ShippingService


logger = logging.getLogger(__name__)


class RejectionKind(str, Enum):
    VALIDATION = "validation"
    COUPON = "coupon"
    PERSISTENCE = "persistence"


@dataclass(frozen=True)
class Completed:
    order_id: uuid.UUID
    order_number: str
    total: Money
    discount_amount: Money
    coupon_redeemed: bool = False


@dataclass(frozen=True)
class Rejected:
    kind: RejectionKind
    reason: str


WorkflowResult = Union[Completed, Rejected]


def build_owner_notification(
    order_number: str,
    customer_name: str,
    customer_email: str,
    lines: Sequence[PricedLine],
    pricing: PricingResult,
    coupon_code: Optional[str] = None,
    currency: str = "USD",
    symbol: str = "$",
) -> Tuple[str, str]:
    """Title and body of the new-order alert."""
    discount_info = ""
    if pricing.discount_amount > Money.zero():
        discount_info = f"\nDiscount: -{pricing.discount_amount.format(symbol)} (Code: {coupon_code})"

    items = ", ".join(f"{line.product_name} x{line.quantity}" for line in lines)
    title = f"New Order: {order_number}"
    content = (
        f"New order from {customer_name} ({customer_email}).\n"
        f"Total: {pricing.total_amount.format(symbol)} {currency}{discount_info}\n"
        f"Items: {items}"
    )
    return title, content


class OrderCreationWorkflow:
    """Creates an order from a checkout submission."""

    def __init__(
        self,
        db: AsyncSession,
        notifier: Optional[OwnerNotifier] = None,
        clock=None,
    ):
        self.db = db
        self.catalog = CatalogService(db)
        self.shipping = ShippingService(db)
        self.policy = CouponPolicy(db, clock=clock)
        self.pricer = OrderPricer()
        self.store = OrderStore(db)
        self.ledger = CouponLedger(db)
        self.notifier = notifier or OwnerNotifier()
        self.store_timeout = settings.STORE_TIMEOUT_SECONDS
        self.notify_timeout = settings.NOTIFY_TIMEOUT_SECONDS

    async def run(self, data: OrderCreate, user_id: Optional[str] = None) -> WorkflowResult:
        code = normalize_code(data.coupon_code)
        evaluation: Optional[EvaluationResult] = None

        try:
            if not data.items:
                raise ValidationFailed("Order must contain at least one item")

            lines = await self._bounded(self._resolve_catalog(data.items))
            shipping_option_id, shipping_cost = await self._bounded(
                self._resolve_shipping(data.shipping_option_id)
            )
            subtotal = self.pricer.items_subtotal(lines)

            if code:
                evaluation = await self._bounded(self.policy.evaluate(code, subtotal, user_id))
                if not evaluation.valid:
                    raise CouponRejected(evaluation.reason)

            pricing = self.pricer.price(lines, shipping_cost, evaluation)
            order = self._build_order(data, user_id, lines, shipping_option_id, pricing, code if evaluation else None)
            order = await self._persist(order)
        except ValidationFailed as e:
            return Rejected(RejectionKind.VALIDATION, e.message)
        except CouponRejected as e:
            logger.info(f"Checkout rejected coupon {code}: {e.message}")
            return Rejected(RejectionKind.COUPON, e.message)
        except PersistenceFailure as e:
            return Rejected(RejectionKind.PERSISTENCE, e.message)

        # The order is committed from here on
        completed = Completed(
            order_id=order.id,
            order_number=order.order_number,
            total=pricing.total_amount,
            discount_amount=pricing.discount_amount,
        )

        if evaluation is not None:
            redeemed = await self._redeem(evaluation.coupon_id, completed, user_id)
            completed = replace(completed, coupon_redeemed=redeemed)

        title, content = build_owner_notification(
            completed.order_number,
            data.customer_name,
            str(data.customer_email),
            lines,
            pricing,
            coupon_code=code or None,
            currency=settings.CURRENCY,
            symbol=settings.CURRENCY_SYMBOL,
        )
        await self._notify(title, content)

        return completed

    # ==================== Steps ====================

    async def _resolve_catalog(self, items: Sequence[OrderItemCreate]) -> List[PricedLine]:
        lines = []
        for index, item in enumerate(items, start=1):
            if item.quantity < 1:
                raise ValidationFailed(f"Item {index}: quantity must be at least 1")

            entry = await self.catalog.get_variant_price(item.product_id, item.variant_id)
            if entry is None:
                raise ValidationFailed(f"Item {index} is no longer available")

            line = PricedLine(
                product_id=entry.product_id,
                variant_id=entry.variant_id,
                product_name=entry.product_name,
                unit_label=entry.unit_label,
                unit_price=entry.unit_price.rounded(),
                quantity=item.quantity,
            )

            if item.unit_price is not None and Money(item.unit_price) != line.unit_price:
                raise ValidationFailed(
                    f"The price of {entry.product_name} has changed. Please review your cart."
                )
            if item.line_total is not None and Money(item.line_total) != line.line_total:
                raise ValidationFailed(
                    f"Line total for {entry.product_name} does not match price and quantity"
                )
            lines.append(line)
        return lines

    async def _resolve_shipping(self, option_id: Optional[uuid.UUID]) -> Tuple[Optional[uuid.UUID], Money]:
        if option_id is None:
            return None, Money.zero()
        option = await self.shipping.get_active(option_id)
        if option is None:
            raise ValidationFailed("Selected shipping option is not available")
        return option.id, Money(option.price)

    def _build_order(
        self,
        data: OrderCreate,
        user_id: Optional[str],
        lines: Sequence[PricedLine],
        shipping_option_id: Optional[uuid.UUID],
        pricing: PricingResult,
        coupon_code: Optional[str],
    ) -> Order:
        return Order(
            id=uuid.uuid4(),
            order_number=generate_order_number(),
            user_id=user_id,
            customer_name=data.customer_name,
            customer_email=str(data.customer_email),
            customer_phone=data.customer_phone,
            shipping_address=data.shipping_address.model_dump(),
            shipping_option_id=shipping_option_id,
            shipping_cost=pricing.shipping_cost.to_decimal(),
            coupon_code=coupon_code,
            total_amount=pricing.total_amount.to_decimal(),
            currency=settings.CURRENCY,
            notes=data.notes,
            items=[
                OrderItem(
                    product_id=line.product_id,
                    variant_id=line.variant_id,
                    product_name=line.product_name,
                    unit_label=line.unit_label,
                    quantity=line.quantity,
                    unit_price=line.unit_price.to_decimal(),
                    line_total=line.line_total.to_decimal(),
                )
                for line in lines
            ],
        )

    async def _persist(self, order: Order) -> Order:
        """
        Insert the order. When the insert times out the commit may still have
        landed, so the order id is looked up before reporting a failure.
        """
        order_id, order_number = order.id, order.order_number
        try:
            return await self._bounded(self.store.insert_order(order))
        except PersistenceFailure as e:
            if not isinstance(e.__cause__, asyncio.TimeoutError):
                raise
            existing = await self._find_committed(order_id)
            if existing is None:
                raise
            logger.warning(f"Order {order_number} was committed before its insert timed out")
            return existing

    async def _find_committed(self, order_id: uuid.UUID) -> Optional[Order]:
        try:
            return await self._bounded(self.store.get(order_id))
        except PersistenceFailure:
            return None

    async def _redeem(self, coupon_id: uuid.UUID, completed: Completed, user_id: Optional[str]) -> bool:
        try:
            await self._bounded(
                self.ledger.redeem(coupon_id, completed.order_id, user_id, completed.discount_amount)
            )
            return True
        except Exception as e:
            logger.error(
                f"Order {completed.order_number} placed but coupon {coupon_id} was not redeemed: {e}",
                exc_info=True,
            )
            await self._safe_rollback()
            return False

    async def _notify(self, title: str, content: str) -> None:
        try:
            await asyncio.wait_for(self.notifier.notify(title, content), timeout=self.notify_timeout)
        except Exception as e:
            logger.warning(f"Failed to notify owner about '{title}': {e!r}")

    # ==================== Helpers ====================

    async def _bounded(self, coro):
        """Await a store call with the configured timeout."""
        try:
            return await asyncio.wait_for(coro, timeout=self.store_timeout)
        except asyncio.TimeoutError as e:
            logger.warning(f"Store call timed out after {self.store_timeout}s")
            await self._safe_rollback()
            raise PersistenceFailure(RETRYABLE_MESSAGE) from e
        except SQLAlchemyError as e:
            logger.error(f"Store call failed: {e}")
            await self._safe_rollback()
            raise PersistenceFailure(RETRYABLE_MESSAGE) from e

    async def _safe_rollback(self) -> None:
        try:
            await self.db.rollback()
        except SQLAlchemyError as e:
            logger.error(f"Rollback after store failure also failed: {e}")
