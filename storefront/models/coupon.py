"""
Coupon Model for the Storefront

Supports percentage and fixed discounts, usage limits, and expiry.
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import String, Boolean, DateTime, Integer, Text, Numeric, Index, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from storefront.database import Base
from storefront.db_types import UUIDType


class DiscountType(str, Enum):
    """Discount type enumeration."""
    PERCENTAGE = "percentage"  # e.g., 10% off
    FIXED = "fixed"  # e.g., $5 off


def normalize_code(code: str) -> str:
    """Canonical coupon code: trimmed and uppercased."""
    return (code or "").strip().upper()


class Coupon(Base):
    """
    Coupon/Promo code model for the storefront.

    ``usage_count`` is only ever changed by the coupon ledger with an
    in-database increment; admin edits never touch it.
    """
    __tablename__ = "coupons"
    __table_args__ = (
        CheckConstraint("usage_count >= 0", name="ck_coupons_usage_count_non_negative"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )

    # Coupon Code
    code: Mapped[str] = mapped_column(
        String(64),
        unique=True,
        nullable=False,
        index=True,
        comment="Canonical (trimmed, uppercase) coupon code"
    )
    description: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        comment="Internal description"
    )

    # Discount Type & Value
    discount_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=DiscountType.PERCENTAGE.value,
        comment="percentage or fixed"
    )
    discount_value: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        comment="Discount value (percentage or amount)"
    )
    max_discount_amount: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(10, 2),
        nullable=True,
        comment="Cap on discount for percentage type"
    )

    # Minimum Requirements
    min_order_amount: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(10, 2),
        nullable=True,
        comment="Minimum items subtotal to apply coupon"
    )

    # Usage Limits
    usage_limit: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        comment="Total times this coupon can be used"
    )
    usage_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Number of successful redemptions"
    )
    per_user_limit: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        comment="Times each signed-in user can use this coupon"
    )

    # Validity
    expires_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="Expiry (null = never expires)"
    )

    # Status
    active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    @property
    def is_percentage(self) -> bool:
        return self.discount_type == DiscountType.PERCENTAGE.value

    def __repr__(self) -> str:
        return f"<Coupon(code='{self.code}', type='{self.discount_type}', value={self.discount_value})>"


class CouponUsage(Base):
    """
    Append-only log of coupon redemptions.

    One row per successful redemption, written in the same transaction as
    the usage_count increment. No foreign key to
    ``coupons``: rows survive an admin deleting the coupon.
    """
    __tablename__ = "coupon_usages"
    __table_args__ = (
        Index('ix_coupon_usage_coupon_user', 'coupon_id', 'user_id'),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    coupon_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        nullable=False,
        index=True
    )
    order_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        nullable=False,
        index=True
    )
    user_id: Mapped[Optional[str]] = mapped_column(
        String(64),
        nullable=True,
        comment="Null for guest checkout"
    )
    discount_amount: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        comment="Actual discount applied"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
