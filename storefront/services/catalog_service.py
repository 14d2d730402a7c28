"""
Catalog price lookup used at checkout.
"""
import uuid
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.money import Money
from storefront.models.product import Product, ProductVariant


@dataclass(frozen=True)
class CatalogEntry:
    product_id: uuid.UUID
    variant_id: uuid.UUID
    product_name: str
    unit_label: str
    unit_price: Money
    stock: int


class CatalogService:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_variant_price(
        self,
        product_id: uuid.UUID,
        variant_id: Optional[uuid.UUID] = None,
    ) -> Optional[CatalogEntry]:
        """
        Current unit price for a sellable variant.

        Without ``variant_id`` the product must have exactly one active
        variant. Returns None when the product or variant is missing or
        inactive.
        """
        stmt = (
            select(ProductVariant, Product)
            .join(Product, Product.id == ProductVariant.product_id)
            .where(
                ProductVariant.product_id == product_id,
                ProductVariant.active.is_(True),
                Product.active.is_(True),
            )
        )
        if variant_id is not None:
            stmt = stmt.where(ProductVariant.id == variant_id)

        rows = (await self.db.execute(stmt)).all()
        if len(rows) != 1:
            return None

        variant, product = rows[0]
        return CatalogEntry(
            product_id=product.id,
            variant_id=variant.id,
            product_name=product.name,
            unit_label=variant.unit_label,
            unit_price=Money(variant.price),
            stock=variant.stock,
        )
