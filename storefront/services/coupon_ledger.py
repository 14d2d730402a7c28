"""
Coupon redemption ledger.

A redemption is one conditional in-database increment of
``coupons.usage_count`` plus one ``coupon_usages`` row, committed together.
The increment only matches while the coupon is under its usage limit, so
two checkouts racing for the last use cannot both succeed.
"""
import logging
import uuid
from typing import Optional

from sqlalchemy import update, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.exceptions import CouponRedemptionError
from storefront.core.money import Money
from storefront.models.coupon import Coupon, CouponUsage


logger = logging.getLogger(__name__)


class CouponLedger:
    """Records coupon redemptions for committed orders."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def redeem(
        self,
        coupon_id: uuid.UUID,
        order_id: uuid.UUID,
        user_id: Optional[str],
        discount_amount: Money,
    ) -> CouponUsage:
        """
        Count one use of a coupon and append the usage row.

        Must only be called once the order itself is committed. Either both
        writes land or neither does.

        Raises:
            CouponRedemptionError: coupon missing, usage limit reached, or
                the store failed. Nothing was written.
        """
        stmt = (
            update(Coupon)
            .where(
                Coupon.id == coupon_id,
                or_(
                    Coupon.usage_limit.is_(None),
                    Coupon.usage_count < Coupon.usage_limit,
                ),
            )
            .values(usage_count=Coupon.usage_count + 1)
            .execution_options(synchronize_session=False)
        )

        try:
            result = await self.db.execute(stmt)
            if result.rowcount != 1:
                raise CouponRedemptionError(
                    f"Coupon {coupon_id} is gone or at its usage limit; order {order_id} not counted"
                )

            usage = CouponUsage(
                coupon_id=coupon_id,
                order_id=order_id,
                user_id=user_id,
                discount_amount=Money(discount_amount).to_decimal(),
            )
            self.db.add(usage)
            await self.db.commit()
        except CouponRedemptionError:
            await self.db.rollback()
            raise
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise CouponRedemptionError(
                f"Failed to record coupon {coupon_id} for order {order_id}: {e}"
            ) from e

        logger.info(
            f"Coupon {coupon_id} redeemed for order {order_id} "
            f"(user={user_id or 'guest'}, discount={usage.discount_amount})"
        )
        return usage
