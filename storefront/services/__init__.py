# Services module
from storefront.services.coupon_service import CouponService
from storefront.services.coupon_policy import CouponPolicy, EvaluationResult
from storefront.services.coupon_ledger import CouponLedger
from storefront.services.order_pricer import OrderPricer, PricedLine, PricingResult
from storefront.services.catalog_service import CatalogService
from storefront.services.shipping_service import ShippingService
from storefront.services.order_store import OrderStore
from storefront.services.notification_service import OwnerNotifier
from storefront.services.order_workflow import (
    OrderCreationWorkflow,
    Completed,
    Rejected,
    RejectionKind,
)

__all__ = [
    "CouponService",
    "CouponPolicy",
    "EvaluationResult",
    "CouponLedger",
    "OrderPricer",
    "PricedLine",
    "PricingResult",
    "CatalogService",
    "ShippingService",
    "OrderStore",
    "OwnerNotifier",
    # Checkout
    "OrderCreationWorkflow",
    "Completed",
    "Rejected",
    "RejectionKind",
]
