import logging
import uuid
from typing import Optional, List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.models.shipping import ShippingOption
from storefront.schemas.shipping import ShippingOptionCreate, ShippingOptionUpdate


logger = logging.getLogger(__name__)


class ShippingService:
    """Service for shipping options."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, option_id: uuid.UUID) -> Optional[ShippingOption]:
        return await self.db.get(ShippingOption, option_id)

    async def get_active(self, option_id: uuid.UUID) -> Optional[ShippingOption]:
        """Option selectable at checkout, or None."""
        option = await self.get(option_id)
        if option is None or not option.active:
            return None
        return option

    async def list_options(self, active_only: bool = True) -> List[ShippingOption]:
        stmt = select(ShippingOption)
        if active_only:
            stmt = stmt.where(ShippingOption.active.is_(True))
        result = await self.db.execute(
            stmt.order_by(ShippingOption.sort_order, ShippingOption.name)
        )
        return list(result.scalars().all())

    async def create_option(self, data: ShippingOptionCreate) -> ShippingOption:
        option = ShippingOption(**data.model_dump())
        self.db.add(option)
        await self.db.commit()
        await self.db.refresh(option)
        logger.info(f"Shipping option '{option.name}' created at {option.price}")
        return option

    async def update_option(self, option: ShippingOption, data: ShippingOptionUpdate) -> ShippingOption:
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(option, field, value)
        await self.db.commit()
        await self.db.refresh(option)
        return option

    async def delete_option(self, option: ShippingOption) -> None:
        name = option.name
        await self.db.delete(option)
        await self.db.commit()
        logger.info(f"Shipping option '{name}' deleted")
