import logging
from fastapi import APIRouter, Depends, status
from app.api.deps import get_principal
from app.schemas.auth import Principal
from app.schemas.menu import BulkQuantityUpdate, MenuItemCreate, MenuItemResponse, MenuItemUpdate
from app.schemas.response import SuccessResponse
from app.services.menu_service import (
    bulk_update_quantities,
    create_menu_item,
    delete_menu_item,
    get_menu_item,
    list_menu,
    serialize_menu_item,
    update_menu_item,
)
from uuid import UUID

log = logging.getLogger("uvicorn")

router = APIRouter()


@router.get("/outlet/{outlet_id}", response_model=SuccessResponse)
async def list_menu_endpoint(
    outlet_id: UUID,
    category: str = "all",
    available: str = "all",
    principal: Principal = Depends(get_principal),
):
    """Menu of an outlet, served from the availability cache when fresh."""
    result = await list_menu(outlet_id, category=category, available=available)
    return SuccessResponse(data=result)


@router.get("/{menu_item_id}", response_model=SuccessResponse)
async def get_menu_item_endpoint(menu_item_id: UUID, principal: Principal = Depends(get_principal)):
    item = await get_menu_item(menu_item_id)
    return SuccessResponse(data=MenuItemResponse(**serialize_menu_item(item)).model_dump(mode="json"))


@router.post("/", status_code=status.HTTP_201_CREATED, response_model=SuccessResponse)
async def create_menu_item_endpoint(item_data: MenuItemCreate, principal: Principal = Depends(get_principal)):
    """Adds a menu item; availability is derived from the initial quantity."""
    item = await create_menu_item(
        principal,
        outlet_id=item_data.outlet_id,
        name=item_data.name,
        price=item_data.price,
        quantity=item_data.quantity,
        category=item_data.category,
        description=item_data.description,
    )
    return SuccessResponse(data=serialize_menu_item(item))


@router.put("/{menu_item_id}", response_model=SuccessResponse)
async def update_menu_item_endpoint(
    menu_item_id: UUID, item_data: MenuItemUpdate, principal: Principal = Depends(get_principal)
):
    item = await update_menu_item(principal, menu_item_id, item_data.model_dump(exclude_unset=True))
    return SuccessResponse(data=serialize_menu_item(item))


@router.delete("/{menu_item_id}", response_model=SuccessResponse)
async def delete_menu_item_endpoint(menu_item_id: UUID, principal: Principal = Depends(get_principal)):
    await delete_menu_item(principal, menu_item_id)
    return SuccessResponse(data={"message": "Menu item deleted successfully"})


@router.patch("/bulk-update", response_model=SuccessResponse)
async def bulk_update_endpoint(payload: BulkQuantityUpdate, principal: Principal = Depends(get_principal)):
    """Sets stock for many items at once (e.g. the morning restock)."""
    result = await bulk_update_quantities(
        principal, [{"id": u.id, "quantity": u.quantity} for u in payload.updates]
    )
    log.info(f"Bulk quantity update by {principal.user_id}: {result}")
    return SuccessResponse(data=result)
