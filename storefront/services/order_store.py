"""
Order persistence.
"""
import logging
import secrets
import string
import time
import uuid
from typing import Optional, List, Tuple

from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.exceptions import PersistenceFailure
from storefront.models.order import Order
from storefront.schemas.order import OrderStatusUpdate


logger = logging.getLogger(__name__)

BASE36_ALPHABET = string.digits + string.ascii_uppercase

RETRYABLE_MESSAGE = "We could not save your order. Please try again."


def to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(BASE36_ALPHABET[rem])
    return "".join(reversed(digits))


def generate_order_number(now_ms: Optional[int] = None) -> str:
    """Generate order number: ORD-<base36 millis>-<4 random base36>."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    suffix = "".join(secrets.choice(BASE36_ALPHABET) for _ in range(4))
    return f"ORD-{to_base36(now_ms)}-{suffix}"


class OrderStore:
    """Writes and reads orders with their items."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def insert_order(self, order: Order) -> Order:
        """
        Persist an order and its items in one transaction.

        Raises:
            PersistenceFailure: the transaction was rolled back.
        """
        if not order.order_number:
            order.order_number = generate_order_number()

        self.db.add(order)
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Failed to persist order {order.order_number}: {e}")
            raise PersistenceFailure(RETRYABLE_MESSAGE) from e

        logger.info(
            f"Order {order.order_number} created: total={order.total_amount} "
            f"items={len(order.items)} user={order.user_id or 'guest'}"
        )
        return order

    async def get_by_number(self, order_number: str) -> Optional[Order]:
        """Get order by order number."""
        result = await self.db.execute(
            select(Order).where(Order.order_number == order_number.strip().upper())
        )
        return result.scalar_one_or_none()

    async def list_for_user(
        self,
        user_id: str,
        page: int = 1,
        size: int = 20,
    ) -> Tuple[List[Order], int]:
        """Orders placed by a user, newest first."""
        total = (await self.db.execute(
            select(func.count(Order.id)).where(Order.user_id == user_id)
        )).scalar() or 0

        result = await self.db.execute(
            select(Order)
            .where(Order.user_id == user_id)
            .order_by(Order.created_at.desc())
            .offset((page - 1) * size)
            .limit(size)
        )
        return list(result.scalars().all()), total

    async def get(self, order_id: uuid.UUID) -> Optional[Order]:
        return await self.db.get(Order, order_id)

    async def list_all(
        self,
        order_status: Optional[str] = None,
        payment_status: Optional[str] = None,
        page: int = 1,
        size: int = 50,
    ) -> Tuple[List[Order], int]:
        """All orders for the admin dashboard, newest first."""
        query = select(Order)
        count_query = select(func.count(Order.id))
        if order_status:
            query = query.where(Order.order_status == order_status)
            count_query = count_query.where(Order.order_status == order_status)
        if payment_status:
            query = query.where(Order.payment_status == payment_status)
            count_query = count_query.where(Order.payment_status == payment_status)

        total = (await self.db.execute(count_query)).scalar() or 0
        result = await self.db.execute(
            query.order_by(Order.created_at.desc())
            .offset((page - 1) * size)
            .limit(size)
        )
        return list(result.scalars().all()), total

    async def update_status(self, order: Order, data: OrderStatusUpdate) -> Order:
        """
        Change the lifecycle fields of an order.

        Only ``payment_status``, ``order_status`` and ``notes`` are written;
        the pricing snapshot is never touched.
        """
        patch = data.model_dump(exclude_unset=True)
        for field in ("payment_status", "order_status"):
            if patch.get(field) is not None:
                patch[field] = patch[field].value

        for field, value in patch.items():
            setattr(order, field, value)

        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Failed to update status of order {order.order_number}: {e}")
            raise PersistenceFailure(RETRYABLE_MESSAGE) from e
        await self.db.refresh(order)

        logger.info(f"Order {order.order_number} status updated: {patch}")
        return order
