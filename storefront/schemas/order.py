from pydantic import BaseModel, Field, EmailStr, computed_field, field_validator
from typing import Optional, List
from datetime import datetime
from decimal import Decimal
import uuid

from storefront.models.order import OrderStatus, PaymentStatus
from storefront.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema


# ==================== ORDER ITEM SCHEMAS ====================

class OrderItemCreate(BaseModel):
    """
    Cart line as submitted by the storefront.

    unit_price / line_total are what the client displayed; they are only
    compared with the catalog price, never charged.
    """
    product_id: uuid.UUID
    variant_id: Optional[uuid.UUID] = None
    quantity: int = Field(..., ge=1, le=1000)
    unit_price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    line_total: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)


class OrderItemResponse(BaseResponseSchema):
    """Order item response schema."""
    id: uuid.UUID
    product_id: uuid.UUID
    variant_id: Optional[uuid.UUID] = None
    product_name: str
    unit_label: Optional[str] = None
    quantity: int
    unit_price: Decimal
    line_total: Decimal


# ==================== ADDRESS SCHEMAS ====================

class ShippingAddress(BaseModel):
    """Shipping address snapshot stored on the order."""
    line1: str = Field(..., min_length=1, max_length=255)
    line2: Optional[str] = Field(None, max_length=255)
    city: str = Field(..., min_length=1, max_length=128)
    state: Optional[str] = Field(None, max_length=128)
    postal_code: str = Field(..., min_length=1, max_length=32)
    country: str = Field("US", min_length=2, max_length=64)


# ==================== ORDER SCHEMAS ====================

class OrderCreate(BaseCreateSchema):
    """Checkout submission."""
    customer_name: str = Field(..., min_length=1, max_length=255)
    customer_email: EmailStr
    customer_phone: Optional[str] = Field(None, max_length=32)
    shipping_address: ShippingAddress
    items: List[OrderItemCreate] = Field(..., min_length=1)
    shipping_option_id: Optional[uuid.UUID] = None
    coupon_code: Optional[str] = Field(None, max_length=64)
    notes: Optional[str] = Field(None, max_length=2000)


class OrderCreatedResponse(BaseModel):
    """Result of a successful checkout."""
    id: uuid.UUID
    order_number: str
    total_amount: Decimal
    discount_amount: Decimal
    coupon_redeemed: bool


class OrderResponse(BaseResponseSchema):
    """Order response schema."""
    id: uuid.UUID
    order_number: str
    user_id: Optional[str] = None
    customer_name: str
    customer_email: str
    customer_phone: Optional[str] = None
    shipping_address: dict
    shipping_option_id: Optional[uuid.UUID] = None
    shipping_cost: Decimal
    coupon_code: Optional[str] = None
    total_amount: Decimal
    currency: str
    payment_status: str
    order_status: str
    notes: Optional[str] = None
    items: List[OrderItemResponse] = []
    created_at: datetime

    @computed_field
    @property
    def items_subtotal(self) -> Decimal:
        return sum((item.line_total for item in self.items), Decimal("0.00"))


class OrderListResponse(BaseModel):
    """Paginated order list."""
    items: List[OrderResponse]
    total: int
    page: int
    size: int
    pages: int


class OrderStatusUpdate(BaseUpdateSchema):
    """Admin change to the order lifecycle. Pricing fields are not accepted."""
    payment_status: Optional[PaymentStatus] = None
    order_status: Optional[OrderStatus] = None
    notes: Optional[str] = Field(None, max_length=2000)

    @field_validator("payment_status", "order_status")
    @classmethod
    def reject_null(cls, v, info):
        if v is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return v
