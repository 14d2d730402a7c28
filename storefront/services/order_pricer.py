"""
Order total computation.

Pure functions over Money: no session, no clock. Called for the checkout
preview and for order creation with the same inputs, it returns the same
result.
"""
import uuid
from dataclasses import dataclass
from typing import Iterable, Optional, Protocol

from storefront.core.exceptions import ValidationFailed
from storefront.core.money import Money, money_min, money_sum


class PricedItem(Protocol):
    unit_price: Money
    quantity: int


@dataclass(frozen=True)
class PricedLine:
    """Cart line priced from the catalog."""
    product_id: uuid.UUID
    variant_id: Optional[uuid.UUID]
    product_name: str
    unit_label: Optional[str]
    unit_price: Money
    quantity: int

    @property
    def line_total(self) -> Money:
        return (self.unit_price * self.quantity).rounded()


@dataclass(frozen=True)
class PricingResult:
    items_subtotal: Money
    shipping_cost: Money
    discount_amount: Money
    total_amount: Money


class OrderPricer:
    """Combines items, shipping and an evaluated coupon into the charged total."""

    def items_subtotal(self, items: Iterable[PricedItem]) -> Money:
        """Sum of ``unit_price * quantity`` over the lines, rounded to cents."""
        lines = []
        for item in items:
            if item.quantity < 1:
                raise ValidationFailed("Item quantity must be at least 1")
            unit_price = Money(item.unit_price)
            if unit_price.is_negative():
                raise ValidationFailed("Item price cannot be negative")
            lines.append((unit_price * item.quantity).rounded())
        return money_sum(lines).rounded()

    def price(self, items: Iterable[PricedItem], shipping_cost: Money, coupon=None) -> PricingResult:
        """
        Price an order.

        ``coupon`` is an ``EvaluationResult`` (or None); only a valid one
        contributes its discount, capped at the items subtotal.
        ``total = max(0, subtotal + shipping - discount)``.
        """
        subtotal = self.items_subtotal(items)

        shipping = Money(shipping_cost).rounded()
        if shipping.is_negative():
            raise ValidationFailed("Shipping cost cannot be negative")

        discount = Money.zero()
        if coupon is not None and coupon.valid:
            discount = money_min(Money(coupon.discount).rounded(), subtotal)

        total = (subtotal + shipping - discount).clamp_zero().rounded()

        return PricingResult(
            items_subtotal=subtotal,
            shipping_cost=shipping,
            discount_amount=discount,
            total_amount=total,
        )
