from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import Field

from storefront.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema


class ShippingOptionCreate(BaseCreateSchema):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    currency: str = Field("USD", min_length=3, max_length=10)
    estimated_days: Optional[str] = Field(None, max_length=32)
    active: bool = True
    sort_order: int = 0


class ShippingOptionUpdate(BaseUpdateSchema):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    currency: Optional[str] = Field(None, min_length=3, max_length=10)
    estimated_days: Optional[str] = Field(None, max_length=32)
    active: Optional[bool] = None
    sort_order: Optional[int] = None


class ShippingOptionResponse(BaseResponseSchema):
    id: UUID
    name: str
    description: Optional[str] = None
    price: Decimal
    currency: str
    estimated_days: Optional[str] = None
    active: bool
    sort_order: int
    created_at: datetime
