from datetime import datetime
from decimal import Decimal
from typing import Optional, List
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator

from storefront.models.coupon import DiscountType
from storefront.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema


# ==================== Quote ====================

class ValidateCouponRequest(BaseModel):
    """Request to quote a coupon against the current cart."""
    code: str = Field(..., min_length=1, max_length=64)
    order_total: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)


class ValidateCouponResponse(BaseModel):
    """Coupon quote. ``error`` carries the user-facing reason when invalid."""
    valid: bool
    discount_amount: Decimal = Decimal("0.00")
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[Decimal] = None
    error: Optional[str] = None


# ==================== Admin ====================

def _check_discount_bounds(discount_type, discount_value, max_discount_amount):
    if discount_type == DiscountType.PERCENTAGE and discount_value is not None:
        if discount_value > 100:
            raise ValueError("Percentage discount cannot exceed 100")
    if discount_type == DiscountType.FIXED and max_discount_amount is not None:
        raise ValueError("max_discount_amount only applies to percentage coupons")


class CouponCreate(BaseCreateSchema):
    code: str = Field(..., min_length=1, max_length=64)
    description: Optional[str] = None
    discount_type: DiscountType
    discount_value: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    min_order_amount: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    max_discount_amount: Optional[Decimal] = Field(None, gt=0, max_digits=10, decimal_places=2)
    usage_limit: Optional[int] = Field(None, ge=1)
    per_user_limit: Optional[int] = Field(None, ge=1)
    expires_at: Optional[datetime] = None
    active: bool = True

    @model_validator(mode="after")
    def check_bounds(self):
        _check_discount_bounds(self.discount_type, self.discount_value, self.max_discount_amount)
        return self


class CouponUpdate(BaseUpdateSchema):
    code: Optional[str] = Field(None, min_length=1, max_length=64)
    description: Optional[str] = None
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[Decimal] = Field(None, gt=0, max_digits=10, decimal_places=2)
    min_order_amount: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    max_discount_amount: Optional[Decimal] = Field(None, gt=0, max_digits=10, decimal_places=2)
    usage_limit: Optional[int] = Field(None, ge=1)
    per_user_limit: Optional[int] = Field(None, ge=1)
    expires_at: Optional[datetime] = None
    active: Optional[bool] = None

    @field_validator("code", "discount_type", "discount_value", "active")
    @classmethod
    def reject_null(cls, v, info):
        if v is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return v


class CouponResponse(BaseResponseSchema):
    id: UUID
    code: str
    description: Optional[str] = None
    discount_type: DiscountType
    discount_value: Decimal
    min_order_amount: Optional[Decimal] = None
    max_discount_amount: Optional[Decimal] = None
    usage_limit: Optional[int] = None
    usage_count: int
    per_user_limit: Optional[int] = None
    expires_at: Optional[datetime] = None
    active: bool
    created_at: datetime
    updated_at: datetime


class CouponUsageResponse(BaseResponseSchema):
    id: UUID
    coupon_id: UUID
    order_id: UUID
    user_id: Optional[str] = None
    discount_amount: Decimal
    created_at: datetime


class CouponListResponse(BaseModel):
    items: List[CouponResponse]
    total: int
    page: int
    size: int
    pages: int
