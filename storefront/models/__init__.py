# Import all models so Base.metadata sees every table
from storefront.models.coupon import Coupon, CouponUsage, DiscountType
from storefront.models.order import Order, OrderItem, OrderStatus, PaymentStatus
from storefront.models.product import Product, ProductVariant
from storefront.models.shipping import ShippingOption

__all__ = [
    "Coupon",
    "CouponUsage",
    "DiscountType",
    "Order",
    "OrderItem",
    "OrderStatus",
    "PaymentStatus",
    "Product",
    "ProductVariant",
    "ShippingOption",
]
