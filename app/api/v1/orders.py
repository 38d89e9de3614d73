import logging
import math
from fastapi import APIRouter, Depends, Query, status
from app.api.deps import get_principal
from app.schemas.auth import Principal
from app.schemas.response import SuccessResponse
from app.services.order_service import place_order, get_order, list_user_orders, list_outlet_orders
from app.services.order_state import OrderAction, transition
from app.models.order import OrderStatus, PaymentType
from app.schemas.order import (
    OrderRequest,
    OrderPlacementResponse,
    OrderTransitionRequest,
    OrderDetailResponse,
    OrderListResponse,
    Pagination,
)
from typing import Optional
from uuid import UUID

router = APIRouter()
log = logging.getLogger("uvicorn")


def _list_payload(orders, total: int, limit: int, page: int):
    return OrderListResponse(
        orders=[OrderDetailResponse.from_order(o) for o in orders],
        pagination=Pagination(
            current=page,
            total=math.ceil(total / limit) if limit else 0,
            count=len(orders),
            total_records=total,
        ),
    ).model_dump(mode="json")


@router.post("/", status_code=status.HTTP_201_CREATED, response_model=SuccessResponse)
async def create_order_endpoint(request_data: OrderRequest, principal: Principal = Depends(get_principal)):
    """
    Places a new order. Stock is reserved before this returns; organization
    bills start as 'pending', pay-now orders as 'approved'.
    """
    items_data = [
        {"menu_item_id": str(item.menu_item_id), "quantity": item.quantity}
        for item in request_data.items
    ]
    order = await place_order(
        principal=principal,
        outlet_id=request_data.outlet_id,
        items=items_data,
        order_type=request_data.order_type,
        payment_type=request_data.payment_type,
        notes=request_data.notes,
    )
    log.info(f"Order {order.order_ref} placed successfully for user {principal.user_id}.")
    data = OrderPlacementResponse(
        order_id=order.id,
        order_ref=order.order_ref,
        status=order.status,
        total_amount=order.total_amount,
        message="Order created successfully",
    ).model_dump(mode="json")
    return SuccessResponse(data=data)


@router.get("/my-orders", response_model=SuccessResponse)
async def my_orders_endpoint(
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    limit: int = 20,
    page: int = 1,
    principal: Principal = Depends(get_principal),
):
    """Order history of the calling user, newest first."""
    orders, total = await list_user_orders(principal, status=status_filter, limit=limit, page=page)
    return SuccessResponse(data=_list_payload(orders, total, limit, page))


@router.get("/outlet/{outlet_id}", response_model=SuccessResponse)
async def outlet_orders_endpoint(
    outlet_id: UUID,
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    payment_type: Optional[PaymentType] = None,
    limit: int = 50,
    page: int = 1,
    principal: Principal = Depends(get_principal),
):
    """Operator view of an outlet's orders."""
    orders, total = await list_outlet_orders(
        principal, outlet_id, status=status_filter, payment_type=payment_type, limit=limit, page=page
    )
    return SuccessResponse(data=_list_payload(orders, total, limit, page))


@router.get("/{order_id}", response_model=SuccessResponse)
async def get_order_endpoint(order_id: UUID, principal: Principal = Depends(get_principal)):
    """Fetches details for a specific order."""
    order = await get_order(principal, order_id)
    return SuccessResponse(data=OrderDetailResponse.from_order(order).model_dump(mode="json"))


async def _transition_response(principal: Principal, order_id: UUID, action: OrderAction, payload: Optional[OrderTransitionRequest]):
    order = await transition(principal, order_id, action, notes=payload.notes if payload else None)
    data = OrderPlacementResponse(
        order_id=order.id,
        order_ref=order.order_ref,
        status=order.status,
        total_amount=order.total_amount,
        message=f"Order status successfully updated to {order.status.value}",
    ).model_dump(mode="json")
    return SuccessResponse(data=data)


@router.post("/{order_id}/approve", response_model=SuccessResponse)
async def approve_order_endpoint(
    order_id: UUID, payload: Optional[OrderTransitionRequest] = None, principal: Principal = Depends(get_principal)
):
    """Signs off a pending organization bill."""
    return await _transition_response(principal, order_id, OrderAction.APPROVE, payload)


@router.post("/{order_id}/reject", response_model=SuccessResponse)
async def reject_order_endpoint(
    order_id: UUID, payload: Optional[OrderTransitionRequest] = None, principal: Principal = Depends(get_principal)
):
    """Rejects a pending organization bill. Reserved stock is not restored."""
    return await _transition_response(principal, order_id, OrderAction.REJECT, payload)


@router.post("/{order_id}/complete", response_model=SuccessResponse)
async def complete_order_endpoint(
    order_id: UUID, payload: Optional[OrderTransitionRequest] = None, principal: Principal = Depends(get_principal)
):
    return await _transition_response(principal, order_id, OrderAction.COMPLETE, payload)


@router.post("/{order_id}/cancel", response_model=SuccessResponse)
async def cancel_order_endpoint(
    order_id: UUID, payload: Optional[OrderTransitionRequest] = None, principal: Principal = Depends(get_principal)
):
    """
    Cancels a pending or approved order and puts its reserved stock back.
    """
    return await _transition_response(principal, order_id, OrderAction.CANCEL, payload)
