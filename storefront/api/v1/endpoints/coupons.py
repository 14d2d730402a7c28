"""
Coupon API endpoints.

Public:
- POST /coupons/validate - Quote a coupon against the cart subtotal

Admin:
- CRUD on /coupons and the usage log at /coupons/{id}/usages
"""
import logging
import uuid
from typing import List

from fastapi import APIRouter, HTTPException, Query, Response, status

from storefront.api.deps import DB, OptionalUser, AdminUser
from storefront.core.exceptions import ConflictError, ValidationFailed
from storefront.models.coupon import DiscountType
from storefront.schemas.coupon import (
    ValidateCouponRequest,
    ValidateCouponResponse,
    CouponCreate,
    CouponUpdate,
    CouponResponse,
    CouponListResponse,
    CouponUsageResponse,
)
from storefront.services.coupon_policy import CouponPolicy
from storefront.services.coupon_service import CouponService


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/coupons", tags=["Coupons"])


# ==================== Public ====================

@router.post("/validate", response_model=ValidateCouponResponse)
async def validate_coupon(
    request: ValidateCouponRequest,
    response: Response,
    db: DB,
    user: OptionalUser,
):
    """
    Validate a coupon code against the current cart subtotal.
    Returns the discount if valid, the reason if not.
    """
    response.headers["Cache-Control"] = "no-store"

    policy = CouponPolicy(db)
    try:
        result = await policy.evaluate(
            request.code,
            request.order_total,
            user.user_id if user else None,
        )
    except ValidationFailed as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

    if not result.valid:
        return ValidateCouponResponse(valid=False, error=result.reason)

    coupon = result.coupon
    return ValidateCouponResponse(
        valid=True,
        discount_amount=result.discount.to_decimal(),
        discount_type=DiscountType(coupon.discount_type),
        discount_value=coupon.discount_value,
    )


# ==================== Admin ====================

@router.get("", response_model=CouponListResponse)
async def list_coupons(
    db: DB,
    admin: AdminUser,
    page: int = Query(1, ge=1),
    size: int = Query(50, ge=1, le=200),
    active_only: bool = Query(False),
):
    """List coupons, newest first."""
    service = CouponService(db)
    coupons, total = await service.list_coupons(
        active_only=active_only,
        skip=(page - 1) * size,
        limit=size,
    )
    return CouponListResponse(
        items=[CouponResponse.model_validate(c) for c in coupons],
        total=total,
        page=page,
        size=size,
        pages=(total + size - 1) // size,
    )


@router.get("/{coupon_id}", response_model=CouponResponse)
async def get_coupon(coupon_id: uuid.UUID, db: DB, admin: AdminUser):
    coupon = await CouponService(db).get(coupon_id)
    if not coupon:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Coupon not found")
    return CouponResponse.model_validate(coupon)


@router.post("", response_model=CouponResponse, status_code=status.HTTP_201_CREATED)
async def create_coupon(data: CouponCreate, db: DB, admin: AdminUser):
    """Create a coupon. The code is stored trimmed and uppercased."""
    service = CouponService(db)
    try:
        coupon = await service.create_coupon(data)
    except ConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)
    except ValidationFailed as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

    logger.info(f"Admin {admin.user_id} created coupon {coupon.code}")
    return CouponResponse.model_validate(coupon)


@router.patch("/{coupon_id}", response_model=CouponResponse)
async def update_coupon(
    coupon_id: uuid.UUID,
    data: CouponUpdate,
    db: DB,
    admin: AdminUser,
):
    """Partially update a coupon. The usage counter cannot be edited."""
    service = CouponService(db)
    coupon = await service.get(coupon_id)
    if not coupon:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Coupon not found")

    try:
        coupon = await service.update_coupon(coupon, data)
    except ConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)
    except ValidationFailed as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

    return CouponResponse.model_validate(coupon)


@router.delete("/{coupon_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_coupon(coupon_id: uuid.UUID, db: DB, admin: AdminUser):
    """Delete a coupon. Recorded usages are kept."""
    service = CouponService(db)
    coupon = await service.get(coupon_id)
    if not coupon:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Coupon not found")

    await service.delete_coupon(coupon)
    logger.info(f"Admin {admin.user_id} deleted coupon {coupon_id}")


@router.get("/{coupon_id}/usages", response_model=List[CouponUsageResponse])
async def list_coupon_usages(
    coupon_id: uuid.UUID,
    db: DB,
    admin: AdminUser,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
):
    """Redemption log for a coupon, newest first."""
    usages = await CouponService(db).list_usages(coupon_id, skip=skip, limit=limit)
    return [CouponUsageResponse.model_validate(u) for u in usages]
