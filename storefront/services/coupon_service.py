"""
Coupon store operations.

Admin CRUD plus the read helpers used by the coupon policy. ``usage_count``
is never written here; see ``CouponLedger``.
"""
import logging
import uuid
from decimal import Decimal
from typing import Optional, List, Tuple

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.exceptions import ConflictError, ValidationFailed
from storefront.models.coupon import Coupon, CouponUsage, DiscountType, normalize_code
from storefront.schemas.coupon import CouponCreate, CouponUpdate


logger = logging.getLogger(__name__)


class CouponService:
    """Service for coupon records and their usage log."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ==================== Lookups ====================

    async def get(self, coupon_id: uuid.UUID) -> Optional[Coupon]:
        return await self.db.get(Coupon, coupon_id)

    async def get_by_code(self, code: str) -> Optional[Coupon]:
        """Find a coupon by code, case and whitespace insensitive."""
        result = await self.db.execute(
            select(Coupon)
            .where(Coupon.code == normalize_code(code))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_coupons(
        self,
        active_only: bool = False,
        skip: int = 0,
        limit: int = 100,
    ) -> Tuple[List[Coupon], int]:
        query = select(Coupon)
        count_query = select(func.count(Coupon.id))
        if active_only:
            query = query.where(Coupon.active.is_(True))
            count_query = count_query.where(Coupon.active.is_(True))

        total = (await self.db.execute(count_query)).scalar() or 0
        result = await self.db.execute(
            query.order_by(Coupon.created_at.desc()).offset(skip).limit(limit)
        )
        return list(result.scalars().all()), total

    async def count_usages_for_user(self, coupon_id: uuid.UUID, user_id: str) -> int:
        """Number of recorded redemptions of a coupon by one user."""
        result = await self.db.execute(
            select(func.count(CouponUsage.id)).where(
                CouponUsage.coupon_id == coupon_id,
                CouponUsage.user_id == user_id,
            )
        )
        return result.scalar() or 0

    async def list_usages(
        self,
        coupon_id: uuid.UUID,
        skip: int = 0,
        limit: int = 100,
    ) -> List[CouponUsage]:
        result = await self.db.execute(
            select(CouponUsage)
            .where(CouponUsage.coupon_id == coupon_id)
            .order_by(CouponUsage.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all())

    # ==================== Admin CRUD ====================

    async def create_coupon(self, data: CouponCreate) -> Coupon:
        code = normalize_code(data.code)
        if not code:
            raise ValidationFailed("Coupon code is required")
        if await self.get_by_code(code):
            raise ConflictError(f"Coupon code {code} already exists")

        values = data.model_dump(exclude={"code", "discount_type"})
        coupon = Coupon(
            code=code,
            discount_type=data.discount_type.value,
            **values,
        )
        self.db.add(coupon)
        await self._commit_unique(code)
        await self.db.refresh(coupon)

        logger.info(f"Coupon {coupon.code} created ({coupon.discount_type} {coupon.discount_value})")
        return coupon

    async def update_coupon(self, coupon: Coupon, data: CouponUpdate) -> Coupon:
        """Apply a partial update. ``usage_count`` is not part of the patch."""
        patch = data.model_dump(exclude_unset=True)

        if "code" in patch:
            code = normalize_code(patch["code"])
            if not code:
                raise ValidationFailed("Coupon code is required")
            if code != coupon.code:
                existing = await self.get_by_code(code)
                if existing is not None and existing.id != coupon.id:
                    raise ConflictError(f"Coupon code {code} already exists")
            patch["code"] = code

        if patch.get("discount_type") is not None:
            patch["discount_type"] = DiscountType(patch["discount_type"]).value

        for field, value in patch.items():
            setattr(coupon, field, value)

        try:
            self._check_consistency(coupon)
        except ValidationFailed:
            await self.db.rollback()
            raise

        await self._commit_unique(coupon.code)
        await self.db.refresh(coupon)

        logger.info(f"Coupon {coupon.code} updated: {sorted(patch)}")
        return coupon

    async def delete_coupon(self, coupon: Coupon) -> None:
        """Delete a coupon. Its usage rows stay in the log."""
        code = coupon.code
        await self.db.delete(coupon)
        await self.db.commit()
        logger.info(f"Coupon {code} deleted")

    # ==================== Helpers ====================

    @staticmethod
    def _check_consistency(coupon: Coupon) -> None:
        if coupon.discount_type == DiscountType.PERCENTAGE.value:
            if Decimal(coupon.discount_value) > 100:
                raise ValidationFailed("Percentage discount cannot exceed 100")
        elif coupon.max_discount_amount is not None:
            raise ValidationFailed("max_discount_amount only applies to percentage coupons")

    async def _commit_unique(self, code: str) -> None:
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            if _is_unique_violation(e):
                raise ConflictError(f"Coupon code {code} already exists")
            logger.error(f"Coupon {code} violates a table constraint: {e.orig}")
            raise ValidationFailed("Coupon values violate a database constraint")


def _is_unique_violation(error: IntegrityError) -> bool:
    # SQLite: "UNIQUE constraint failed", PostgreSQL: "duplicate key value violates unique constraint"
    message = str(error.orig).lower()
    return "unique" in message or "duplicate key" in message
