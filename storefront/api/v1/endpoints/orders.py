"""
Order API endpoints.

- POST /orders - Checkout (guest or signed-in)
- GET /orders/by-number/{order_number} - Order lookup for the confirmation page
- GET /orders/mine - Orders of the signed-in customer

Admin:
- GET /orders - All orders, filterable by status
- GET /orders/{order_id} - Single order
- PATCH /orders/{order_id}/status - Payment/fulfilment status and notes
"""
import logging
import uuid
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, status

from storefront.api.deps import DB, OptionalUser, CurrentUser, AdminUser
from storefront.core.exceptions import PersistenceFailure
from storefront.models.order import OrderStatus, PaymentStatus
from storefront.schemas.order import (
    OrderCreate,
    OrderCreatedResponse,
    OrderResponse,
    OrderListResponse,
    OrderStatusUpdate,
)
from storefront.services.order_store import OrderStore
from storefront.services.order_workflow import (
    OrderCreationWorkflow,
    Completed,
    RejectionKind,
)


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orders", tags=["Orders"])


@router.post("", response_model=OrderCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_order(data: OrderCreate, db: DB, user: OptionalUser):
    """
    Place an order.

    Prices, shipping and the coupon discount are all recomputed on the
    server. A coupon that is no longer valid fails the whole request with
    the reason; the order is never silently placed without its discount.
    """
    workflow = OrderCreationWorkflow(db)
    result = await workflow.run(data, user_id=user.user_id if user else None)

    if isinstance(result, Completed):
        return OrderCreatedResponse(
            id=result.order_id,
            order_number=result.order_number,
            total_amount=result.total.to_decimal(),
            discount_amount=result.discount_amount.to_decimal(),
            coupon_redeemed=result.coupon_redeemed,
        )

    if result.kind == RejectionKind.PERSISTENCE:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=result.reason,
            headers={"Retry-After": "5"},
        )

    logger.info(f"Checkout rejected ({result.kind.value}): {result.reason}")
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=result.reason)


@router.get("/mine", response_model=OrderListResponse)
async def list_my_orders(
    db: DB,
    user: CurrentUser,
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
):
    orders, total = await OrderStore(db).list_for_user(user.user_id, page=page, size=size)
    return OrderListResponse(
        items=[OrderResponse.model_validate(o) for o in orders],
        total=total,
        page=page,
        size=size,
        pages=(total + size - 1) // size,
    )


@router.get("/by-number/{order_number}", response_model=OrderResponse)
async def get_order_by_number(order_number: str, db: DB):
    """Get order by order number."""
    order = await OrderStore(db).get_by_number(order_number)
    if not order:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
    return OrderResponse.model_validate(order)


# ==================== Admin ====================

@router.get("", response_model=OrderListResponse)
async def list_orders(
    db: DB,
    admin: AdminUser,
    order_status: Optional[OrderStatus] = Query(None),
    payment_status: Optional[PaymentStatus] = Query(None),
    page: int = Query(1, ge=1),
    size: int = Query(50, ge=1, le=200),
):
    """List all orders, newest first."""
    orders, total = await OrderStore(db).list_all(
        order_status=order_status.value if order_status else None,
        payment_status=payment_status.value if payment_status else None,
        page=page,
        size=size,
    )
    return OrderListResponse(
        items=[OrderResponse.model_validate(o) for o in orders],
        total=total,
        page=page,
        size=size,
        pages=(total + size - 1) // size,
    )


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: uuid.UUID, db: DB, admin: AdminUser):
    order = await OrderStore(db).get(order_id)
    if not order:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
    return OrderResponse.model_validate(order)


@router.patch("/{order_id}/status", response_model=OrderResponse)
async def update_order_status(
    order_id: uuid.UUID,
    data: OrderStatusUpdate,
    db: DB,
    admin: AdminUser,
):
    """Update payment status, order status or notes. Totals stay as charged."""
    store = OrderStore(db)
    order = await store.get(order_id)
    if not order:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")

    try:
        order = await store.update_status(order, data)
    except PersistenceFailure as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=e.message,
            headers={"Retry-After": "5"},
        )

    logger.info(f"Admin {admin.user_id} updated order {order.order_number}")
    return OrderResponse.model_validate(order)
