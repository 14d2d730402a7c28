from fastapi import APIRouter

from storefront.api.v1.endpoints import (
    coupons,
    shipping,
    orders,
)


api_router = APIRouter(prefix="/api/v1")

# Checkout
api_router.include_router(coupons.router)
api_router.include_router(shipping.router)
api_router.include_router(orders.router)
