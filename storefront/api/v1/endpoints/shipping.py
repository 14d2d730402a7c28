import uuid
from typing import List

from fastapi import APIRouter, HTTPException, status

from storefront.api.deps import DB, AdminUser
from storefront.schemas.shipping import (
    ShippingOptionCreate,
    ShippingOptionUpdate,
    ShippingOptionResponse,
)
from storefront.services.shipping_service import ShippingService


router = APIRouter(prefix="/shipping-options", tags=["Shipping"])


@router.get("", response_model=List[ShippingOptionResponse])
async def list_shipping_options(db: DB):
    """Active shipping options in display order."""
    options = await ShippingService(db).list_options(active_only=True)
    return [ShippingOptionResponse.model_validate(o) for o in options]


@router.get("/all", response_model=List[ShippingOptionResponse])
async def list_all_shipping_options(db: DB, admin: AdminUser):
    options = await ShippingService(db).list_options(active_only=False)
    return [ShippingOptionResponse.model_validate(o) for o in options]


@router.post("", response_model=ShippingOptionResponse, status_code=status.HTTP_201_CREATED)
async def create_shipping_option(data: ShippingOptionCreate, db: DB, admin: AdminUser):
    option = await ShippingService(db).create_option(data)
    return ShippingOptionResponse.model_validate(option)


@router.patch("/{option_id}", response_model=ShippingOptionResponse)
async def update_shipping_option(
    option_id: uuid.UUID,
    data: ShippingOptionUpdate,
    db: DB,
    admin: AdminUser,
):
    """Edit a shipping option. Existing orders keep the price they were charged."""
    service = ShippingService(db)
    option = await service.get(option_id)
    if not option:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Shipping option not found")

    option = await service.update_option(option, data)
    return ShippingOptionResponse.model_validate(option)


@router.delete("/{option_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_shipping_option(option_id: uuid.UUID, db: DB, admin: AdminUser):
    service = ShippingService(db)
    option = await service.get(option_id)
    if not option:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Shipping option not found")

    await service.delete_option(option)
