"""
Coupon eligibility and discount computation.

The same ``CouponPolicy.evaluate`` call backs both the public quote endpoint
and order creation, so a preview and a checkout with the same inputs at the
same instant always agree. Evaluation never writes.
"""
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional, Union
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from storefront.config import settings
from storefront.core.exceptions import ValidationFailed
from storefront.core.money import Money, money_min
from storefront.models.coupon import Coupon, normalize_code
from storefront.services.coupon_service import CouponService


logger = logging.getLogger(__name__)


# User-facing rejection reasons
INVALID_CODE = "Invalid coupon code"
INACTIVE = "This coupon is no longer active"
EXPIRED = "This coupon has expired"
LIMIT_REACHED = "This coupon has reached its usage limit"
PER_USER_LIMIT_REACHED = "You have already used this coupon the maximum number of times"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; they were stored as UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class EvaluationResult:
    """Outcome of evaluating a coupon against a subtotal."""
    valid: bool
    coupon: Optional[Coupon] = None
    discount: Money = field(default_factory=Money.zero)
    reason: Optional[str] = None

    @classmethod
    def rejected(cls, reason: str, coupon: Optional[Coupon] = None) -> "EvaluationResult":
        return cls(valid=False, coupon=coupon, reason=reason)

    @property
    def coupon_id(self) -> Optional[uuid.UUID]:
        return self.coupon.id if self.coupon is not None else None


def compute_discount(coupon: Coupon, subtotal: Money) -> Money:
    """
    Discount a valid coupon grants on ``subtotal``.

    Percentage coupons are capped by ``max_discount_amount``; every discount
    is capped by the subtotal itself, then rounded half-up to cents.
    """
    if coupon.is_percentage:
        discount = subtotal.percent(Decimal(coupon.discount_value))
        if coupon.max_discount_amount is not None:
            discount = money_min(discount, Money(coupon.max_discount_amount))
    else:
        discount = Money(coupon.discount_value)

    return money_min(discount, subtotal).clamp_zero().rounded()


class CouponPolicy:
    """Read-only coupon evaluation."""

    def __init__(self, db: AsyncSession, clock: Optional[Callable[[], datetime]] = None):
        self.db = db
        self.coupons = CouponService(db)
        self.clock = clock or utc_now

    async def evaluate(
        self,
        code: str,
        order_subtotal: Union[Money, Decimal, int, str],
        user_id: Optional[str] = None,
    ) -> EvaluationResult:
        """
        Check a coupon code against an items subtotal.

        Raises:
            ValidationFailed: blank code or negative subtotal.

        Returns:
            EvaluationResult with ``valid=False`` and a user-facing ``reason``
            for every business-rule rejection.
        """
        canonical = normalize_code(code)
        if not canonical:
            raise ValidationFailed("Coupon code is required")

        subtotal = Money(order_subtotal)
        if subtotal.is_negative():
            raise ValidationFailed("Order total cannot be negative")

        coupon = await self.coupons.get_by_code(canonical)
        if coupon is None:
            return EvaluationResult.rejected(INVALID_CODE)

        if not coupon.active:
            return EvaluationResult.rejected(INACTIVE, coupon)

        expires_at = as_utc(coupon.expires_at)
        if expires_at is not None and expires_at < self.clock():
            return EvaluationResult.rejected(EXPIRED, coupon)

        if coupon.usage_limit is not None and coupon.usage_count >= coupon.usage_limit:
            return EvaluationResult.rejected(LIMIT_REACHED, coupon)

        if coupon.min_order_amount is not None:
            minimum = Money(coupon.min_order_amount)
            if subtotal < minimum:
                return EvaluationResult.rejected(
                    f"Minimum order amount is {minimum.format(settings.CURRENCY_SYMBOL)}",
                    coupon,
                )

        # Guests cannot be tracked per user
        if user_id and coupon.per_user_limit is not None:
            used = await self.coupons.count_usages_for_user(coupon.id, user_id)
            if used >= coupon.per_user_limit:
                return EvaluationResult.rejected(PER_USER_LIMIT_REACHED, coupon)

        discount = compute_discount(coupon, subtotal)
        logger.debug(f"Coupon {coupon.code} valid for {subtotal}: discount {discount}")
        return EvaluationResult(valid=True, coupon=coupon, discount=discount)
